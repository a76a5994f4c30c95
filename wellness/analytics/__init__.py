"""Booking analytics: grouping bookings by period, demographic and location."""

from .aggregator import (
    AnalyticsRequest,
    AnalyticsType,
    aggregate,
    compute_analytics,
    count_by_demographic,
    count_by_location,
    count_by_time_period,
    parse_request,
    revenue_by_time_period,
    summarize,
)

__all__ = [
    "AnalyticsRequest",
    "AnalyticsType",
    "aggregate",
    "compute_analytics",
    "count_by_demographic",
    "count_by_location",
    "count_by_time_period",
    "parse_request",
    "revenue_by_time_period",
    "summarize",
]
