"""In-process booking store for development and tests."""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from wellness.errors import SchemaMismatch
from .base import BookingStore, SchemaMigrator

logger = logging.getLogger(__name__)

# Columns of the bookings table before seat selection was added
BASE_COLUMNS = frozenset({
    "id", "user_id", "first_name", "last_name", "email", "phone",
    "gender", "race", "education", "profession", "age",
    "date", "time", "duration", "location", "group_size", "amount",
    "booking_reason", "notes", "created_at",
})

MIGRATED_COLUMNS = frozenset({"seat_data"})


class InMemoryBookingStore(BookingStore):
    """BookingStore backed by plain lists.

    Pass ``columns`` to emulate a table with a fixed schema: inserts that
    name any other non-null column raise ``SchemaMismatch`` until
    ``InMemorySchemaMigrator`` adds it. ``columns=None`` accepts anything.
    """

    def __init__(
        self,
        bookings: Optional[Iterable[dict[str, Any]]] = None,
        profiles: Optional[Iterable[dict[str, Any]]] = None,
        columns: Optional[Iterable[str]] = None,
    ) -> None:
        self._bookings: list[dict[str, Any]] = [dict(b) for b in bookings or []]
        self._profiles: dict[str, dict[str, Any]] = {
            p["id"]: dict(p) for p in profiles or [] if p.get("id")
        }
        self.columns: Optional[set[str]] = set(columns) if columns is not None else None

    async def list_bookings(self) -> list[dict[str, Any]]:
        rows = copy.deepcopy(self._bookings)
        rows.sort(key=lambda b: str(b.get("date") or ""), reverse=True)
        return rows

    async def insert_booking(self, record: dict[str, Any]) -> dict[str, Any]:
        if self.columns is not None:
            for column, value in record.items():
                if value is not None and column not in self.columns:
                    raise SchemaMismatch(
                        f"Could not find the '{column}' column of 'bookings'",
                        column=column,
                    )

        row = copy.deepcopy(record)
        row["id"] = row.get("id") or str(uuid.uuid4())
        row.setdefault("created_at", datetime.now(tz=timezone.utc).isoformat())
        self._bookings.append(row)
        logger.debug("Stored booking %s", row["id"])
        return copy.deepcopy(row)

    async def get_profiles(self, ids: list[str]) -> list[dict[str, Any]]:
        return [copy.deepcopy(self._profiles[i]) for i in ids if i in self._profiles]

    def add_profile(self, profile: dict[str, Any]) -> None:
        self._profiles[profile["id"]] = dict(profile)


class InMemorySchemaMigrator(SchemaMigrator):
    """Adds the seat-selection columns to an InMemoryBookingStore."""

    def __init__(self, store: InMemoryBookingStore) -> None:
        self._store = store
        self.calls = 0

    async def add_missing_columns(self) -> None:
        self.calls += 1
        if self._store.columns is not None:
            self._store.columns |= MIGRATED_COLUMNS
        logger.info("In-memory schema migration applied (%d call(s))", self.calls)
