"""Data models for the booking layer."""

from .booking import BookingRecord, Profile
from .form import BookingForm, SeatInfo

__all__ = ["BookingForm", "BookingRecord", "Profile", "SeatInfo"]
