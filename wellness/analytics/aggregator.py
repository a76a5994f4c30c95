"""Booking analytics aggregation.

Every aggregation is a pure function over an already-fetched list of
booking rows and returns a new dict. ``compute_analytics`` is the only
place that talks to the datastore: one read of all bookings, plus a keyed
profile lookup when grouping by demographic.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

from pydantic import BaseModel, ValidationError

from wellness.analytics.demographics import Demographic, demographic_label
from wellness.analytics.periods import PERIODS, format_period, parse_booking_date
from wellness.errors import InvalidRequest

log = logging.getLogger("wellness.analytics")

LOCATION_WILDCARD = "all"

Record = Mapping[str, Any]


class AnalyticsType(str, Enum):
    BY_TIME_PERIOD = "byTimePeriod"
    BY_DEMOGRAPHIC = "byDemographic"
    BY_LOCATION = "byLocation"
    REVENUE = "revenue"
    SUMMARY = "summary"


class AnalyticsRequest(BaseModel):
    """Body of ``POST /api/admin/bookings``."""

    type: str
    period: Optional[str] = None
    demographic: Optional[str] = None
    location: Optional[str] = None


def parse_request(body: Any) -> AnalyticsRequest:
    """Validate a raw JSON body into an AnalyticsRequest."""
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object.")
    try:
        return AnalyticsRequest.model_validate(body)
    except ValidationError as exc:
        raise InvalidRequest(f"Malformed analytics request: {exc.errors()[0]['msg']}") from exc


# ── Helpers ──────────────────────────────────────────────────────


def coerce_amount(value: Any) -> float:
    """Booking amount as a number; missing or non-numeric values count as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def _require_period(period: Optional[str]) -> str:
    if period not in PERIODS:
        raise InvalidRequest(
            f"Invalid period: {period!r}. Expected one of {', '.join(PERIODS)}."
        )
    return period


def _period_labels(bookings: Iterable[Record], period: str) -> Iterable[tuple[str, Record]]:
    """Yield (label, booking) for every booking with a usable date."""
    for booking in bookings:
        d = parse_booking_date(booking.get("date"))
        if d is None:
            continue
        yield format_period(d, period), booking


# ── Aggregations ─────────────────────────────────────────────────


def count_by_time_period(bookings: Sequence[Record], period: str) -> dict[str, int]:
    period = _require_period(period)
    return dict(Counter(label for label, _ in _period_labels(bookings, period)))


def count_by_demographic(
    bookings: Sequence[Record],
    demographic: str,
    profiles: Optional[Mapping[str, Record]] = None,
    today: Optional[date] = None,
) -> dict[str, int]:
    """Count bookings per demographic label.

    ``profiles`` maps profile id to profile row; a booking's ``user_id``
    selects the profile used as fallback for fields the booking lacks.
    """
    try:
        field = Demographic(demographic)
    except ValueError:
        raise InvalidRequest(f"Invalid demographic: {demographic!r}.") from None

    profiles = profiles or {}
    today = today or date.today()
    return dict(Counter(
        demographic_label(field, booking, profiles.get(booking.get("user_id") or ""), today)
        for booking in bookings
    ))


def count_by_location(
    bookings: Sequence[Record], known_locations: Sequence[str],
) -> dict[str, int]:
    """Count bookings per known location.

    The result is seeded with every known location at 0. Bookings at any
    other location are dropped rather than given a new key.
    """
    counts = {location: 0 for location in known_locations}
    dropped = 0
    for booking in bookings:
        location = booking.get("location")
        if location in counts:
            counts[location] += 1
        else:
            dropped += 1
    if dropped:
        log.debug("byLocation ignored %d booking(s) at unknown locations", dropped)
    return counts


def revenue_by_time_period(
    bookings: Sequence[Record], period: str, location: Optional[str] = None,
) -> dict[str, float]:
    """Sum booking amounts per period label, optionally for one location."""
    period = _require_period(period)
    if location and location != LOCATION_WILDCARD:
        bookings = [b for b in bookings if b.get("location") == location]

    revenue: dict[str, float] = {}
    for label, booking in _period_labels(bookings, period):
        amount = coerce_amount(booking.get("amount"))
        if not amount:
            continue
        revenue[label] = revenue.get(label, 0.0) + amount
    return revenue


def summarize(bookings: Sequence[Record]) -> dict[str, float]:
    total_bookings = len(bookings)
    total_revenue = sum(coerce_amount(b.get("amount")) for b in bookings)
    average = total_revenue / total_bookings if total_bookings > 0 else 0
    return {
        "totalBookings": total_bookings,
        "totalRevenue": total_revenue,
        "averageBookingValue": average,
    }


# ── Dispatch ─────────────────────────────────────────────────────


def aggregate(
    bookings: Sequence[Record],
    request: AnalyticsRequest,
    known_locations: Sequence[str] = (),
    profiles: Optional[Mapping[str, Record]] = None,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """Run the aggregation selected by ``request.type``."""
    try:
        kind = AnalyticsType(request.type)
    except ValueError:
        raise InvalidRequest(f"Invalid analytics type: {request.type!r}") from None

    if kind is AnalyticsType.BY_TIME_PERIOD:
        return count_by_time_period(bookings, request.period)
    if kind is AnalyticsType.BY_DEMOGRAPHIC:
        return count_by_demographic(bookings, request.demographic, profiles, today)
    if kind is AnalyticsType.BY_LOCATION:
        return count_by_location(bookings, known_locations)
    if kind is AnalyticsType.REVENUE:
        return revenue_by_time_period(bookings, request.period, request.location)
    return summarize(bookings)


async def compute_analytics(
    store,
    request: AnalyticsRequest,
    known_locations: Sequence[str] = (),
    today: Optional[date] = None,
) -> dict[str, Any]:
    """Fetch bookings (and profiles when needed) and aggregate them.

    The request is checked before any datastore read. Datastore errors
    propagate as ``DependencyUnavailable``; nothing partial is returned.
    """
    # Fail fast on bad descriptors without touching the datastore
    aggregate([], request, known_locations)

    bookings = await store.list_bookings()

    profiles: dict[str, Record] = {}
    if request.type == AnalyticsType.BY_DEMOGRAPHIC.value:
        user_ids = sorted({b["user_id"] for b in bookings if b.get("user_id")})
        if user_ids:
            rows = await store.get_profiles(user_ids)
            profiles = {row["id"]: row for row in rows if row.get("id")}

    log.info(
        "Analytics %s over %d booking(s) (period=%s demographic=%s location=%s)",
        request.type, len(bookings), request.period, request.demographic, request.location,
    )
    return aggregate(bookings, request, known_locations, profiles, today)
