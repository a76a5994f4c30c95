"""HBOT wellness booking service: analytics aggregation and the booking wizard."""
