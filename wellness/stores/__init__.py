"""Booking datastore abstractions and implementations."""

from .base import BookingStore, SchemaMigrator
from .memory import InMemoryBookingStore, InMemorySchemaMigrator

__all__ = [
    "BookingStore",
    "InMemoryBookingStore",
    "InMemorySchemaMigrator",
    "SchemaMigrator",
    "create_store",
]


def create_store(settings) -> tuple[BookingStore, SchemaMigrator]:
    """Build the configured datastore and its schema migrator."""
    if settings.store_provider == "supabase":
        from .supabase import SupabaseBookingStore, SupabaseSchemaMigrator

        kwargs = dict(
            url=settings.supabase_url,
            service_role_key=settings.supabase_service_role_key,
            timeout=settings.request_timeout,
        )
        return SupabaseBookingStore(**kwargs), SupabaseSchemaMigrator(**kwargs)

    store = InMemoryBookingStore()
    return store, InMemorySchemaMigrator(store)
