"""Pydantic models tracking the wizard's form values and seat selection."""

from typing import Optional

from pydantic import BaseModel


class SeatInfo(BaseModel):
    """One of the four chamber seats."""

    id: int
    selected: bool = False
    name: str = ""
    error: bool = False


class BookingForm(BaseModel):
    """Mutable form state for a single booking wizard.

    Fields are populated progressively as the user moves through the
    steps. Values are kept as entered; validation happens per step when
    the user tries to advance.
    """

    # Personal information (guest step)
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    gender: str = ""
    race: str = ""
    education: str = ""
    profession: str = ""
    age: str = ""

    # Location
    location: str = ""

    # Booking details
    date: str = ""  # YYYY-MM-DD
    time: str = ""
    duration: Optional[int] = None
    booking_reason: str = ""
    notes: str = ""

    # Seating
    group_size: int = 1

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
