"""Abstract base classes for the booking datastore.

Defines the interface the analytics route and the booking wizard rely on.
Any backend (hosted Postgres over REST, in-memory, ...) implements these.
"""

from abc import ABC, abstractmethod
from typing import Any


class BookingStore(ABC):
    """Abstract booking datastore.

    Implementations raise ``DependencyUnavailable`` when the backend cannot
    be reached, and ``SchemaMismatch`` when a write names a column the
    backend does not have.
    """

    @abstractmethod
    async def list_bookings(self) -> list[dict[str, Any]]:
        """Return every booking row, newest ``date`` first."""

    @abstractmethod
    async def insert_booking(self, record: dict[str, Any]) -> dict[str, Any]:
        """Persist one booking.

        Args:
            record: Column name → value for the new row.

        Returns:
            The stored row, including its assigned ``id``.
        """

    @abstractmethod
    async def get_profiles(self, ids: list[str]) -> list[dict[str, Any]]:
        """Return the profile rows whose ``id`` is in ``ids``.

        Unknown ids are silently absent from the result.
        """


class SchemaMigrator(ABC):
    """Remote trigger that adds columns newer code writes to."""

    @abstractmethod
    async def add_missing_columns(self) -> None:
        """Add any missing booking columns. Must be idempotent."""
