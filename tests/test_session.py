"""Tests for BookingWizardSession: the per-booking wizard FSM."""

import asyncio
import logging
import os
import sys
from datetime import date

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from wellness.config import settings
from wellness.errors import DependencyUnavailable, ValidationFailure, WizardStateError
from wellness.models.booking import Profile
from wellness.notifications import EmailSender, LoggingEmailSender
from wellness.session import (
    BookingWizardSession,
    get_session,
    redact_pii,
    register_session,
    unregister_session,
)
from wellness.stores import InMemoryBookingStore, InMemorySchemaMigrator, SchemaMigrator
from wellness.stores.memory import BASE_COLUMNS

TODAY = date(2024, 6, 15)

GUEST_INFO = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "ada@example.com",
    "phone": "5551234567",
    "gender": "female",
    "race": "White",
    "education": "Master",
    "profession": "Technology",
    "age": "35-44",
}

DETAILS = {"date": "2024-06-20", "time": "10:00 AM", "duration": 90}


def _session(store=None, **kwargs):
    kwargs.setdefault("location", "atmos")
    return BookingWizardSession(
        store=store or InMemoryBookingStore(),
        transition_delay=0,
        today=lambda: TODAY,
        **kwargs,
    )


async def _to_seating(session):
    if session.is_guest:
        session.update_fields(**GUEST_INFO)
        await session.advance()
    session.update_fields(location="atmos")
    await session.advance()
    session.update_fields(**DETAILS)
    await session.advance()
    assert session.current_step == "seating_options"


class _FailingSender(EmailSender):
    async def send(self, to, subject, body):
        raise RuntimeError("provider exploded")


class _FailingMigrator(SchemaMigrator):
    async def add_missing_columns(self):
        raise DependencyUnavailable("no rpc")


class _DownStore(InMemoryBookingStore):
    async def insert_booking(self, record):
        raise DependencyUnavailable("connection refused")


class _SlowStore(InMemoryBookingStore):
    async def insert_booking(self, record):
        await asyncio.sleep(0.05)
        return await super().insert_booking(record)


# ── Initial state ──────────────────────────────────────────────────


class TestSessionInit:
    def test_guest_starts_at_personal_info(self):
        session = _session()
        assert session.is_guest is True
        assert session.current_step == "guest_info"
        assert session.step_number == 1
        assert session.total_steps == 4
        assert session.is_done is False

    def test_member_skips_personal_info(self):
        profile = Profile(id="u1", first_name="Ada", last_name="Lovelace", email="ada@example.com")
        session = _session(profile=profile)
        assert session.is_guest is False
        assert session.current_step == "select_location"
        assert session.total_steps == 3
        assert session.form.email == "ada@example.com"
        assert session.seats[0].name == "Ada Lovelace"

    def test_one_seat_selected_initially(self):
        session = _session()
        assert [s.selected for s in session.seats] == [True, False, False, False]
        assert session.form.group_size == 1

    def test_to_dict(self):
        data = _session().to_dict()
        assert data["current_step"] == "guest_info"
        assert data["step_title"] == "Your Information"
        assert data["steps"][-1] == "submitted"
        assert len(data["seats"]) == 4
        assert data["booking"] is None


# ── Step validation ────────────────────────────────────────────────


class TestAdvance:
    async def test_blocked_with_empty_form(self):
        session = _session()
        with pytest.raises(ValidationFailure) as exc_info:
            await session.advance()
        assert exc_info.value.group == "personal information"
        assert "first_name" in exc_info.value.fields
        assert "personal information" in exc_info.value.message
        assert session.current_step == "guest_info"

    async def test_bad_email_and_short_phone(self):
        session = _session()
        session.update_fields(**{**GUEST_INFO, "email": "ada@", "phone": "555"})
        with pytest.raises(ValidationFailure) as exc_info:
            await session.advance()
        assert exc_info.value.fields == ["email", "phone"]

    async def test_advances_when_valid(self):
        session = _session()
        session.update_fields(**GUEST_INFO)
        assert await session.advance() == "select_location"
        assert session.step_number == 2
        assert session.is_loading is False

    async def test_location_must_match(self):
        session = _session()
        session.update_fields(**GUEST_INFO)
        await session.advance()
        session.update_fields(location="brooklyn")
        with pytest.raises(ValidationFailure) as exc_info:
            await session.advance()
        assert exc_info.value.fields == ["location"]

    async def test_past_date_rejected(self):
        session = _session(profile=Profile(id="u1", first_name="Ada", last_name="L"))
        session.update_fields(location="atmos")
        await session.advance()
        session.update_fields(date="2024-06-14", time="10:00 AM", duration=60)
        with pytest.raises(ValidationFailure) as exc_info:
            await session.advance()
        assert exc_info.value.fields == ["date"]

    async def test_today_is_bookable(self):
        session = _session(profile=Profile(id="u1", first_name="Ada", last_name="L"))
        session.update_fields(location="atmos")
        await session.advance()
        session.update_fields(date="2024-06-15", time="5:00 PM", duration=120)
        assert await session.advance() == "seating_options"

    async def test_bad_slot_and_duration(self):
        session = _session(profile=Profile(id="u1", first_name="Ada", last_name="L"))
        session.update_fields(location="atmos")
        await session.advance()
        session.update_fields(date="2024-06-20", time="8:00 PM", duration=45)
        with pytest.raises(ValidationFailure) as exc_info:
            await session.advance()
        assert exc_info.value.fields == ["time", "duration"]

    async def test_cannot_advance_past_seating(self):
        session = _session()
        await _to_seating(session)
        with pytest.raises(WizardStateError):
            await session.advance()

    async def test_entering_seating_names_first_seat(self):
        session = _session()
        await _to_seating(session)
        assert session.seats[0].name == "Ada Lovelace"

    async def test_entering_seating_keeps_earlier_selection(self):
        session = _session()
        session.toggle_seat(3)
        await _to_seating(session)
        assert [s.selected for s in session.seats] == [True, False, True, False]
        assert session.form.group_size == 2
        assert session.seats[0].name == "Ada Lovelace"

    async def test_overlapping_advance_rejected(self):
        session = BookingWizardSession(
            store=InMemoryBookingStore(), location="atmos",
            transition_delay=0.05, today=lambda: TODAY,
        )
        session.update_fields(**GUEST_INFO)

        results = await asyncio.gather(
            session.advance(), session.advance(), return_exceptions=True,
        )

        assert results[0] == "select_location"
        assert isinstance(results[1], WizardStateError)
        assert session.current_step == "select_location"
        assert session.is_loading is False


class TestBack:
    async def test_back_then_forward(self):
        session = _session()
        session.update_fields(**GUEST_INFO)
        await session.advance()
        assert session.back() == "guest_info"
        assert session.form.first_name == "Ada"

    def test_first_step_has_no_back(self):
        with pytest.raises(WizardStateError):
            _session().back()

    def test_member_cannot_go_back_to_guest_step(self):
        session = _session(profile=Profile(id="u1"))
        with pytest.raises(WizardStateError):
            session.back()


class TestFormEditing:
    def test_unknown_field(self):
        with pytest.raises(ValueError):
            _session().update_fields(favourite_color="blue")

    def test_group_size_routes_through_seats(self):
        session = _session()
        session.update_fields(group_size=3)
        assert session.form.group_size == 3
        assert sum(s.selected for s in session.seats) == 3

    def test_invalid_group_size(self):
        with pytest.raises(ValidationFailure):
            _session().set_group_size(7)

    def test_rejected_group_size_leaves_other_fields(self):
        session = _session()
        with pytest.raises(ValidationFailure):
            session.update_fields(first_name="Xavier", group_size=9)
        assert session.form.first_name == ""
        assert session.form.group_size == 1
        assert [s.selected for s in session.seats] == [True, False, False, False]

    def test_non_numeric_group_size(self):
        with pytest.raises(ValidationFailure):
            _session().update_fields(group_size="lots")

    def test_toggle_updates_group_size(self):
        session = _session()
        session.toggle_seat(2)
        assert session.form.group_size == 2
        session.toggle_seat(1)
        assert session.form.group_size == 1
        assert [s.selected for s in session.seats] == [False, True, False, False]


# ── Submit ─────────────────────────────────────────────────────────


class TestSubmit:
    async def test_unnamed_seat_blocks_submit(self):
        store = InMemoryBookingStore()
        session = _session(store)
        await _to_seating(session)
        session.set_group_size(2)

        with pytest.raises(ValidationFailure) as exc_info:
            await session.submit()

        assert exc_info.value.fields == ["2"]
        assert session.seats[1].error is True
        assert session.current_step == "seating_options"
        assert await store.list_bookings() == []

    async def test_submit_stores_booking(self):
        store = InMemoryBookingStore()
        sender = LoggingEmailSender()
        session = _session(store, email_sender=sender, contact_email="staff@example.com")
        await _to_seating(session)
        session.set_group_size(2)
        session.rename_seat(2, "Charles Babbage")

        booking = await session.submit()
        await session.drain_notifications()

        assert session.is_done
        assert session.current_step == "submitted"
        assert booking.id
        assert booking.amount == 0
        assert booking.group_size == 2
        assert booking.duration == 90
        assert booking.seat_data == [
            {"id": 1, "name": "Ada Lovelace"},
            {"id": 2, "name": "Charles Babbage"},
        ]

        rows = await store.list_bookings()
        assert len(rows) == 1
        assert rows[0]["email"] == "ada@example.com"

        assert [m["to"] for m in sender.sent] == ["ada@example.com", "staff@example.com"]

    async def test_member_booking_carries_user_id(self):
        store = InMemoryBookingStore()
        profile = Profile(id="u1", first_name="Ada", last_name="Lovelace", email="ada@example.com")
        session = _session(store, profile=profile)
        await _to_seating(session)
        booking = await session.submit()
        assert booking.user_id == "u1"

    async def test_submitted_session_is_closed(self):
        session = _session()
        await _to_seating(session)
        await session.submit()
        with pytest.raises(WizardStateError):
            await session.submit()
        with pytest.raises(WizardStateError):
            session.update_fields(notes="late edit")

    async def test_missing_column_migrates_and_retries(self):
        store = InMemoryBookingStore(columns=BASE_COLUMNS)
        migrator = InMemorySchemaMigrator(store)
        session = _session(store, migrator=migrator)
        await _to_seating(session)

        booking = await session.submit()

        assert migrator.calls == 1
        assert booking.seat_data == [{"id": 1, "name": "Ada Lovelace"}]
        assert len(await store.list_bookings()) == 1

    async def test_missing_column_without_migrator(self):
        store = InMemoryBookingStore(columns=BASE_COLUMNS)
        session = _session(store)
        await _to_seating(session)
        with pytest.raises(DependencyUnavailable):
            await session.submit()
        assert session.current_step == "seating_options"

    async def test_failed_migration_surfaces(self):
        store = InMemoryBookingStore(columns=BASE_COLUMNS)
        session = _session(store, migrator=_FailingMigrator())
        await _to_seating(session)
        with pytest.raises(DependencyUnavailable):
            await session.submit()
        assert session.current_step == "seating_options"

    async def test_store_outage_keeps_form(self):
        session = _session(_DownStore())
        await _to_seating(session)
        session.update_fields(notes="first visit")

        with pytest.raises(DependencyUnavailable):
            await session.submit()

        assert session.current_step == "seating_options"
        assert session.form.notes == "first visit"
        assert session.is_loading is False
        assert session.booking is None

    async def test_overlapping_submit_stores_one_booking(self):
        store = _SlowStore()
        sender = LoggingEmailSender()
        session = _session(store, email_sender=sender)
        await _to_seating(session)

        results = await asyncio.gather(
            session.submit(), session.submit(), return_exceptions=True,
        )
        await session.drain_notifications()

        assert len(await store.list_bookings()) == 1
        assert sum(isinstance(r, WizardStateError) for r in results) == 1
        assert len(sender.sent) == 1
        assert session.is_done

    async def test_email_failure_does_not_fail_booking(self, caplog):
        session = _session(email_sender=_FailingSender())
        await _to_seating(session)

        with caplog.at_level(logging.ERROR, logger="wellness.session"):
            booking = await session.submit()
            await session.drain_notifications()

        assert session.is_done
        assert booking.id
        assert "Confirmation email" in caplog.text


# ── Registry ───────────────────────────────────────────────────────


class TestRegistry:
    def test_register_and_unregister(self):
        session = _session()
        session_id = register_session(session)
        assert session.session_id == session_id
        assert get_session(session_id) is session
        unregister_session(session_id)
        assert get_session(session_id) is None

    def test_idle_sessions_evicted(self, monkeypatch):
        monkeypatch.setattr(settings, "wizard_session_ttl", 60.0)
        stale, fresh = _session(), _session()
        stale_id = register_session(stale)
        stale._last_seen -= 120

        fresh_id = register_session(fresh)

        assert get_session(stale_id) is None
        assert get_session(fresh_id) is fresh
        unregister_session(fresh_id)

    def test_lookup_keeps_session_alive(self, monkeypatch):
        monkeypatch.setattr(settings, "wizard_session_ttl", 60.0)
        session = _session()
        session_id = register_session(session)
        session._last_seen -= 50

        assert get_session(session_id) is session
        session._last_seen -= 50
        assert get_session(session_id) is session
        unregister_session(session_id)

    def test_zero_ttl_never_evicts(self, monkeypatch):
        monkeypatch.setattr(settings, "wizard_session_ttl", 0)
        session = _session()
        session_id = register_session(session)
        session._last_seen -= 10_000_000
        assert get_session(session_id) is session
        unregister_session(session_id)


class TestRedactPii:
    def test_long_value(self):
        assert redact_pii("ada@example.com") == "ada***om"

    def test_short_value(self):
        assert redact_pii("abc") == "***"
        assert redact_pii("") == "***"
