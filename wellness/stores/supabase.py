"""Supabase (PostgREST) booking store.

Talks to the hosted Postgres database through its REST interface using
the service-role key, so row-level security does not hide rows from the
admin analytics. The project URL and key come from ``SUPABASE_URL`` and
``SUPABASE_SERVICE_ROLE_KEY``.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import httpx

from wellness.errors import DependencyUnavailable, SchemaMismatch
from .base import BookingStore, SchemaMigrator

logger = logging.getLogger(__name__)

# PostgREST "column not in schema cache" and Postgres undefined_column
MISSING_COLUMN_CODES = {"PGRST204", "42703"}

_COLUMN_RE = re.compile(r"'([A-Za-z0-9_]+)' column")


class _SupabaseClient:
    """Shared request plumbing for the store and the migrator."""

    def __init__(
        self,
        url: str,
        service_role_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not url or not service_role_key:
            raise ValueError(
                "Supabase URL and service role key must be provided via "
                "constructor arguments or SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY."
            )
        self._base_url = url.rstrip("/") + "/rest/v1"
        self._headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
        }
        self._timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await client.request(
                    method, path, params=params, json=json, headers=headers,
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise self._translate_error(exc) from exc
        except httpx.HTTPError as exc:
            logger.error("Supabase %s %s failed: %s", method, path, exc)
            raise DependencyUnavailable(f"Datastore unreachable: {exc}") from exc

        if not resp.content:
            return None
        return resp.json()

    @staticmethod
    def _translate_error(exc: httpx.HTTPStatusError) -> DependencyUnavailable:
        """Map a PostgREST error response onto the domain exceptions."""
        status = exc.response.status_code
        try:
            body = exc.response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        code = str(body.get("code", ""))
        message = str(body.get("message", "")) or exc.response.text

        if code in MISSING_COLUMN_CODES:
            match = _COLUMN_RE.search(message)
            logger.warning("Supabase schema mismatch (%s): %s", code, message)
            return SchemaMismatch(message, column=match.group(1) if match else "")

        logger.error("Supabase request failed (status %s, code %s): %s", status, code, message)
        return DependencyUnavailable(f"Datastore error (status {status})")


class SupabaseBookingStore(_SupabaseClient, BookingStore):
    """BookingStore backed by the Supabase ``bookings`` and ``profiles`` tables."""

    async def list_bookings(self) -> list[dict[str, Any]]:
        rows = await self._request(
            "GET", "/bookings", params={"select": "*", "order": "date.desc"},
        )
        return list(rows or [])

    async def insert_booking(self, record: dict[str, Any]) -> dict[str, Any]:
        payload = {k: v for k, v in record.items() if v is not None}
        rows = await self._request(
            "POST",
            "/bookings",
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise DependencyUnavailable("Datastore returned no row for the inserted booking")
        row = rows[0] if isinstance(rows, list) else rows
        logger.info("Inserted booking %s", row.get("id", "?"))
        return row

    async def get_profiles(self, ids: list[str]) -> list[dict[str, Any]]:
        if not ids:
            return []
        quoted = ",".join(f'"{i}"' for i in ids)
        rows = await self._request(
            "GET", "/profiles", params={"select": "*", "id": f"in.({quoted})"},
        )
        return list(rows or [])


class SupabaseSchemaMigrator(_SupabaseClient, SchemaMigrator):
    """Adds the ``seat_data`` JSONB column to ``bookings`` through RPC.

    Tries the ``alter_table_add_column`` helper first and falls back to the
    generic ``execute_sql`` function if the helper is not installed.
    """

    ADD_SEAT_DATA_SQL = (
        "ALTER TABLE bookings ADD COLUMN IF NOT EXISTS seat_data jsonb DEFAULT null"
    )

    async def add_missing_columns(self) -> None:
        try:
            await self._request(
                "POST",
                "/rpc/alter_table_add_column",
                json={
                    "table_name": "bookings",
                    "column_name": "seat_data",
                    "column_type": "jsonb",
                    "column_default": "null",
                },
            )
            logger.info("seat_data column ensured via alter_table_add_column")
            return
        except DependencyUnavailable as exc:
            logger.warning("alter_table_add_column failed (%s); trying execute_sql", exc)

        await self._request("POST", "/rpc/execute_sql", json={"sql": self.ADD_SEAT_DATA_SQL})
        logger.info("seat_data column ensured via execute_sql")
