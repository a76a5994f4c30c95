"""Per-step validation rules for the booking wizard.

Each validator takes the current form and returns the names of the
fields that fail; an empty list means the step may be left. Validators
are bound to step ids in ``STEP_VALIDATORS``.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Callable

from wellness.models.form import BookingForm

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

GENDER_OPTIONS = ("male", "female", "other", "prefer_not_to_say")
RACE_OPTIONS = ("Asian", "Black", "Hispanic", "White", "Other")
EDUCATION_OPTIONS = ("High School", "Bachelor", "Master", "PhD", "Other")
PROFESSION_OPTIONS = ("Healthcare", "Finance", "Technology", "Education", "Other")
AGE_OPTIONS = ("Under 18", "18-24", "25-34", "35-44", "45-54", "55-64", "65+")

TIME_SLOTS = (
    "9:00 AM", "10:00 AM", "11:00 AM", "12:00 PM",
    "1:00 PM", "2:00 PM", "3:00 PM", "4:00 PM", "5:00 PM",
)
DURATIONS = (60, 90, 120)

MIN_NAME_LENGTH = 2
MIN_PHONE_LENGTH = 10

FIELD_LABELS = {
    "first_name": "first name",
    "last_name": "last name",
    "email": "email",
    "phone": "phone",
    "gender": "gender",
    "race": "race/ethnicity",
    "education": "education",
    "profession": "profession",
    "age": "age group",
    "location": "location",
    "date": "date",
    "time": "time",
    "duration": "duration",
}

Validator = Callable[[BookingForm, date, str], list[str]]


def validate_guest_info(form: BookingForm, today: date, location: str) -> list[str]:
    errors: list[str] = []
    if len(form.first_name.strip()) < MIN_NAME_LENGTH:
        errors.append("first_name")
    if len(form.last_name.strip()) < MIN_NAME_LENGTH:
        errors.append("last_name")
    if not EMAIL_RE.match(form.email.strip()):
        errors.append("email")
    if len(form.phone.strip()) < MIN_PHONE_LENGTH:
        errors.append("phone")

    for field, options in (
        ("gender", GENDER_OPTIONS),
        ("race", RACE_OPTIONS),
        ("education", EDUCATION_OPTIONS),
        ("profession", PROFESSION_OPTIONS),
        ("age", AGE_OPTIONS),
    ):
        if getattr(form, field) not in options:
            errors.append(field)
    return errors


def validate_location(form: BookingForm, today: date, location: str) -> list[str]:
    return [] if form.location == location else ["location"]


def validate_booking_details(form: BookingForm, today: date, location: str) -> list[str]:
    errors: list[str] = []
    try:
        chosen = date.fromisoformat(form.date)
    except ValueError:
        errors.append("date")
    else:
        if chosen < today:
            errors.append("date")
    if form.time not in TIME_SLOTS:
        errors.append("time")
    if form.duration not in DURATIONS:
        errors.append("duration")
    return errors


STEP_VALIDATORS: dict[str, Validator] = {
    "guest_info": validate_guest_info,
    "select_location": validate_location,
    "booking_details": validate_booking_details,
}


def failure_message(group: str, fields: list[str]) -> str:
    """One user-facing message naming the step's field group."""
    labels = ", ".join(FIELD_LABELS.get(f, f) for f in fields)
    return f"Please complete your {group} correctly ({labels})."
