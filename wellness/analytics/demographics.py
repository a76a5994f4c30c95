"""Demographic label derivation.

Each supported demographic maps to an explicit accessor that resolves the
value from the booking first and the joined profile second. Labels are
normalized so the same category always lands in the same bucket.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from wellness.analytics.periods import parse_booking_date

NOT_SPECIFIED = "not_specified"

# (exclusive upper bound, label); anything at or above the last bound is 65+
AGE_BUCKETS = (
    (25, "18-24"),
    (35, "25-34"),
    (45, "35-44"),
    (55, "45-54"),
    (65, "55-64"),
)
OLDEST_BUCKET = "65+"


class Demographic(str, Enum):
    GENDER = "gender"
    RACE = "race"
    EDUCATION = "education"
    PROFESSION = "profession"
    AGE = "age"


Record = Mapping[str, Any]


def bucket_age(age: int) -> str:
    for upper, label in AGE_BUCKETS:
        if age < upper:
            return label
    return OLDEST_BUCKET


def age_on(birth: date, today: date) -> int:
    """Whole years between ``birth`` and ``today``."""
    years = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        years -= 1
    return years


def title_case(value: str) -> str:
    """``prefer_not_to_say`` → ``Prefer Not To Say``."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in value.split("_"))


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _lookup(booking: Record, profile: Optional[Record], name: str) -> Any:
    value = booking.get(name)
    if _is_blank(value) and profile:
        value = profile.get(name)
    return None if _is_blank(value) else value


def _plain(name: str) -> Callable[[Record, Optional[Record], date], Any]:
    def accessor(booking: Record, profile: Optional[Record], today: date) -> Any:
        return _lookup(booking, profile, name)
    return accessor


def _age(booking: Record, profile: Optional[Record], today: date) -> Any:
    raw = _lookup(booking, profile, "age")

    if isinstance(raw, str):
        text = raw.strip()
        if "-" in text or text == OLDEST_BUCKET:
            return text
        try:
            raw = int(float(text))
        except ValueError:
            # Other stored categories ("Under 18") pass through unchanged
            return text

    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return bucket_age(int(raw))

    birth = parse_booking_date(_lookup(booking, profile, "date_of_birth"))
    if birth is not None:
        return bucket_age(age_on(birth, today))

    return None


ACCESSORS: dict[Demographic, Callable[[Record, Optional[Record], date], Any]] = {
    Demographic.GENDER: _plain("gender"),
    Demographic.RACE: _plain("race"),
    Demographic.EDUCATION: _plain("education"),
    Demographic.PROFESSION: _plain("profession"),
    Demographic.AGE: _age,
}


def demographic_label(
    demographic: Demographic,
    booking: Record,
    profile: Optional[Record] = None,
    today: Optional[date] = None,
) -> str:
    """Derive the aggregation label for one booking. Always returns a label."""
    value = ACCESSORS[demographic](booking, profile, today or date.today())
    if _is_blank(value):
        return NOT_SPECIFIED
    return title_case(str(value).strip())
