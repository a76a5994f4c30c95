"""Pydantic models for persisted bookings and user profiles."""

from typing import Any, Optional, Union

from pydantic import BaseModel


class BookingRecord(BaseModel):
    """A booking row as submitted by the wizard and stored in ``bookings``."""

    id: Optional[str] = None
    user_id: Optional[str] = None

    first_name: str
    last_name: str
    email: str
    phone: str = ""

    gender: Optional[str] = None
    race: Optional[str] = None
    education: Optional[str] = None
    profession: Optional[str] = None
    age: Optional[Union[int, str]] = None
    date_of_birth: Optional[str] = None

    date: str  # YYYY-MM-DD
    time: str  # "9:00 AM" slot label
    duration: int = 60
    location: str
    group_size: int = 1
    amount: float = 0

    booking_reason: Optional[str] = None
    notes: Optional[str] = None
    seat_data: Optional[list[dict[str, Any]]] = None
    created_at: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Profile(BaseModel):
    """An authenticated user's profile row (``profiles`` table)."""

    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    gender: Optional[str] = None
    race: Optional[str] = None
    education: Optional[str] = None
    profession: Optional[str] = None
    age: Optional[Union[int, str]] = None
    date_of_birth: Optional[str] = None  # YYYY-MM-DD
