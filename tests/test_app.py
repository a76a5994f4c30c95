"""HTTP tests for the admin analytics, confirmation email and wizard routes."""

import os
import sys
from datetime import date, timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi.testclient import TestClient

from wellness.app import create_app
from wellness.config import settings
from wellness.errors import DependencyUnavailable
from wellness.notifications import LoggingEmailSender
from wellness.session import get_active_sessions
from wellness.stores import InMemoryBookingStore, InMemorySchemaMigrator
from wellness.stores.memory import BASE_COLUMNS

ADMIN = {"Authorization": "Bearer secret"}

BOOKINGS = [
    {"id": "b1", "date": "2024-01-03", "location": "atmos", "amount": 150, "gender": "male"},
    {"id": "b2", "date": "2024-01-20", "location": "atmos", "amount": 200, "gender": "female"},
    {"id": "b3", "date": "2024-02-01", "location": "soho", "amount": 250},
]

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


class _DownStore(InMemoryBookingStore):
    async def list_bookings(self):
        raise DependencyUnavailable("connection refused")

    async def insert_booking(self, record):
        raise DependencyUnavailable("connection refused")


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", "secret")
    monkeypatch.setattr(settings, "debug", False)
    monkeypatch.setattr(settings, "step_transition_delay", 0.0)
    monkeypatch.setattr(settings, "booking_location", "atmos")
    monkeypatch.setattr(settings, "known_locations", ["atmos"])
    monkeypatch.setattr(settings, "contact_email", "staff@example.com")
    return settings


@pytest.fixture
def store():
    return InMemoryBookingStore(bookings=BOOKINGS)


@pytest.fixture
def sender():
    return LoggingEmailSender()


@pytest.fixture
def client(configured, store, sender):
    app = create_app(store=store, migrator=InMemorySchemaMigrator(store), email_sender=sender)
    return TestClient(app)


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_counts_active_wizards(self, client):
        before = client.get("/health").json()["active_wizards"]
        client.post("/api/wizard/sessions", json={})
        assert client.get("/health").json()["active_wizards"] == before + 1


# ── Admin analytics ────────────────────────────────────────────────


class TestAdminBookings:
    def test_requires_token(self, client):
        assert client.post("/api/admin/bookings", json={"type": "summary"}).status_code == 401

    def test_list_newest_first(self, client):
        resp = client.get("/api/admin/bookings", headers=ADMIN)
        assert resp.status_code == 200
        assert [b["id"] for b in resp.json()] == ["b3", "b2", "b1"]

    def test_summary(self, client):
        resp = client.post("/api/admin/bookings", json={"type": "summary"}, headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json() == {
            "data": {"totalBookings": 3, "totalRevenue": 600, "averageBookingValue": 200},
        }

    def test_by_time_period(self, client):
        resp = client.post(
            "/api/admin/bookings", json={"type": "byTimePeriod", "period": "month"}, headers=ADMIN,
        )
        assert resp.json()["data"] == {"2024-01": 2, "2024-02": 1}

    def test_by_demographic(self, client):
        resp = client.post(
            "/api/admin/bookings", json={"type": "byDemographic", "demographic": "gender"},
            headers=ADMIN,
        )
        assert resp.json()["data"] == {"Male": 1, "Female": 1, "not_specified": 1}

    def test_by_location_drops_unknown(self, client):
        resp = client.post("/api/admin/bookings", json={"type": "byLocation"}, headers=ADMIN)
        assert resp.json()["data"] == {"atmos": 2}

    def test_revenue_for_location(self, client):
        resp = client.post(
            "/api/admin/bookings",
            json={"type": "revenue", "period": "year", "location": "soho"},
            headers=ADMIN,
        )
        assert resp.json()["data"] == {"2024": 250}

    def test_invalid_type(self, client):
        resp = client.post("/api/admin/bookings", json={"type": "byMood"}, headers=ADMIN)
        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_invalid_period(self, client):
        resp = client.post(
            "/api/admin/bookings", json={"type": "byTimePeriod", "period": "hour"}, headers=ADMIN,
        )
        assert resp.status_code == 400

    def test_invalid_json(self, client):
        resp = client.post(
            "/api/admin/bookings", content=b"{not json",
            headers={**ADMIN, "Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    def test_datastore_down(self, configured, sender):
        client = TestClient(create_app(store=_DownStore(), email_sender=sender))
        resp = client.post("/api/admin/bookings", json={"type": "summary"}, headers=ADMIN)
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to access bookings table"}

    def test_migrate_seat_selection(self, configured, sender):
        store = InMemoryBookingStore(columns=BASE_COLUMNS)
        client = TestClient(create_app(
            store=store, migrator=InMemorySchemaMigrator(store), email_sender=sender,
        ))
        resp = client.post("/api/admin/migrate-seat-selection", headers=ADMIN)
        assert resp.status_code == 200
        assert "seat_data" in store.columns


# ── Confirmation email ─────────────────────────────────────────────


class TestSendEmailAction:
    def _booking(self):
        return {
            "first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com",
            "date": "2024-06-20", "time": "10:00 AM", "duration": 60, "location": "atmos",
        }

    def test_sends(self, client, sender):
        resp = client.post("/api/bookings", json={"action": "send-email", "data": self._booking()})
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert sender.sent[0]["to"] == "ada@example.com"

    def test_missing_data(self, client):
        resp = client.post("/api/bookings", json={"action": "send-email", "data": {"first_name": "Ada"}})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Missing required booking data"

    def test_unknown_action(self, client):
        resp = client.post("/api/bookings", json={"action": "cancel", "data": {}})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid action"


# ── Wizard ─────────────────────────────────────────────────────────


def _future_date():
    return (date.today() + timedelta(days=7)).isoformat()


def _walk_to_seating(client):
    sid = client.post("/api/wizard/sessions", json={}).json()["session_id"]
    base = f"/api/wizard/sessions/{sid}"
    client.patch(f"{base}/fields", json=GUEST_INFO)
    assert client.post(f"{base}/advance").status_code == 200
    client.patch(f"{base}/fields", json={"location": "atmos"})
    assert client.post(f"{base}/advance").status_code == 200
    client.patch(f"{base}/fields", json={"date": _future_date(), "time": "10:00 AM", "duration": 60})
    resp = client.post(f"{base}/advance")
    assert resp.json()["current_step"] == "seating_options"
    return base


class TestWizardRoutes:
    def test_start_guest(self, client):
        resp = client.post("/api/wizard/sessions", json={})
        assert resp.status_code == 201
        data = resp.json()
        assert data["current_step"] == "guest_info"
        assert data["total_steps"] == 4

    def test_start_member(self, client, store):
        store.add_profile({"id": "u1", "first_name": "Ada", "last_name": "Lovelace"})
        resp = client.post("/api/wizard/sessions", json={"user_id": "u1"})
        assert resp.status_code == 201
        assert resp.json()["current_step"] == "select_location"
        assert resp.json()["form"]["first_name"] == "Ada"

    def test_start_member_unknown_profile(self, client):
        assert client.post("/api/wizard/sessions", json={"user_id": "ghost"}).status_code == 404

    def test_unknown_session(self, client):
        assert client.get("/api/wizard/sessions/nope").status_code == 404

    def test_advance_blocked(self, client):
        sid = client.post("/api/wizard/sessions", json={}).json()["session_id"]
        resp = client.post(f"/api/wizard/sessions/{sid}/advance")
        assert resp.status_code == 422
        assert resp.json()["group"] == "personal information"

    def test_back_from_first_step(self, client):
        sid = client.post("/api/wizard/sessions", json={}).json()["session_id"]
        assert client.post(f"/api/wizard/sessions/{sid}/back").status_code == 409

    def test_unknown_field(self, client):
        sid = client.post("/api/wizard/sessions", json={}).json()["session_id"]
        resp = client.patch(f"/api/wizard/sessions/{sid}/fields", json={"favourite_color": "blue"})
        assert resp.status_code == 422

    def test_group_size_out_of_range(self, client):
        sid = client.post("/api/wizard/sessions", json={}).json()["session_id"]
        resp = client.put(f"/api/wizard/sessions/{sid}/group-size", json={"group_size": 5})
        assert resp.status_code == 422

    def test_full_booking(self, client, store, sender):
        base = _walk_to_seating(client)
        client.put(f"{base}/group-size", json={"group_size": 2})

        resp = client.post(f"{base}/submit")
        assert resp.status_code == 422
        assert resp.json()["fields"] == ["2"]
        assert resp.json()["session"]["seats"][1]["error"] is True

        client.put(f"{base}/seats/2/name", json={"name": "Charles Babbage"})
        resp = client.post(f"{base}/submit")
        assert resp.status_code == 200
        data = resp.json()
        assert data["is_done"] is True
        assert data["booking"]["group_size"] == 2
        assert len(store._bookings) == len(BOOKINGS) + 1

    def test_toggle_seat(self, client):
        base = _walk_to_seating(client)
        resp = client.post(f"{base}/seats/3/toggle")
        assert resp.status_code == 200
        assert [s["selected"] for s in resp.json()["seats"]] == [True, False, True, False]
        assert resp.json()["form"]["group_size"] == 2

    def test_submit_datastore_down(self, configured, sender):
        client = TestClient(create_app(store=_DownStore(), email_sender=sender))
        base = _walk_to_seating(client)
        resp = client.post(f"{base}/submit")
        assert resp.status_code == 503
        assert client.get(base).json()["current_step"] == "seating_options"

    def test_abandoned_wizards_expire(self, client, monkeypatch):
        monkeypatch.setattr(settings, "wizard_session_ttl", 60.0)
        old = client.post("/api/wizard/sessions", json={}).json()["session_id"]
        get_active_sessions()[old]._last_seen -= 120

        client.post("/api/wizard/sessions", json={})

        assert old not in get_active_sessions()
        assert client.get(f"/api/wizard/sessions/{old}").status_code == 404

    def test_discard(self, client):
        sid = client.post("/api/wizard/sessions", json={}).json()["session_id"]
        assert client.delete(f"/api/wizard/sessions/{sid}").status_code == 204
        assert client.get(f"/api/wizard/sessions/{sid}").status_code == 404
