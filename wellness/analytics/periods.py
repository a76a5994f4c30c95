"""Date parsing and period labels for time-based aggregation."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any

from wellness.errors import InvalidRequest

PERIODS = ("day", "week", "month", "quarter", "year")


def parse_booking_date(value: Any) -> date | None:
    """Parse a stored booking date into a calendar date.

    Accepts ``YYYY-MM-DD`` strings, full ISO datetimes (aware values are
    converted to UTC first) and date/datetime objects. Returns None for
    anything missing or unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _utc_date(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    try:
        return _utc_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        return None


def _utc_date(dt: datetime) -> date:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date()


def week_start(d: date) -> date:
    """Sunday that starts the week containing ``d``."""
    return d - timedelta(days=(d.weekday() + 1) % 7)


def format_period(d: date, period: str) -> str:
    """Label a date for the given grouping period.

    day     → ``YYYY-MM-DD``
    week    → ``YYYY-MM-DD`` of the week's Sunday
    month   → ``YYYY-MM``
    quarter → ``YYYY-Q{1..4}``
    year    → ``YYYY``
    """
    if period == "day":
        return d.isoformat()
    if period == "week":
        return week_start(d).isoformat()
    if period == "month":
        return f"{d.year:04d}-{d.month:02d}"
    if period == "quarter":
        return f"{d.year:04d}-Q{(d.month - 1) // 3 + 1}"
    if period == "year":
        return f"{d.year:04d}"
    raise InvalidRequest(f"Invalid period: {period!r}. Expected one of {', '.join(PERIODS)}.")
