"""FastAPI application: admin analytics and booking wizard endpoints.

Endpoints:

  GET    /health                                     Health check
  GET    /api/admin/bookings                         All bookings, newest first (admin)
  POST   /api/admin/bookings                         Booking analytics (admin)
  POST   /api/admin/migrate-seat-selection           Add the seat_data column (admin)
  POST   /api/bookings                               {"action": "send-email"} confirmation
  POST   /api/wizard/sessions                        Start a booking wizard
  GET    /api/wizard/sessions/{id}                   Wizard snapshot
  PATCH  /api/wizard/sessions/{id}/fields            Update form values
  POST   /api/wizard/sessions/{id}/advance           Validate and go to the next step
  POST   /api/wizard/sessions/{id}/back              Previous step
  PUT    /api/wizard/sessions/{id}/group-size        Set group size
  POST   /api/wizard/sessions/{id}/seats/{n}/toggle  Toggle a seat
  PUT    /api/wizard/sessions/{id}/seats/{n}/name    Name a seat's occupant
  POST   /api/wizard/sessions/{id}/submit            Persist the booking
  DELETE /api/wizard/sessions/{id}                   Discard a wizard

The booking flow:
  1. The page creates a wizard (guest, or signed-in with a user_id)
  2. Each step PATCHes its fields and POSTs /advance; a 422 carries the
     message to show next to the offending group
  3. The seating step toggles seats / sets group size, then POSTs /submit
  4. The booking is stored and the confirmation email is sent in the
     background; the wizard is kept so the confirmation can be shown
"""

from __future__ import annotations

# Load .env into os.environ before settings are read elsewhere
from dotenv import load_dotenv
load_dotenv()

import logging
import time
from typing import Any, Optional

# Configure root logger early so all app loggers are visible when run via
# `uvicorn wellness.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError

from wellness.analytics import compute_analytics, parse_request
from wellness.auth import require_admin_token, validate_id
from wellness.config import settings
from wellness.errors import (
    DependencyUnavailable,
    InvalidRequest,
    ValidationFailure,
    WizardStateError,
)
from wellness.models.booking import BookingRecord, Profile
from wellness.notifications import (
    EmailSender,
    LoggingEmailSender,
    SmtpEmailSender,
    send_booking_confirmation,
)
from wellness.session import (
    BookingWizardSession,
    get_active_sessions,
    get_session,
    redact_pii,
    register_session,
    unregister_session,
)
from wellness.stores import BookingStore, SchemaMigrator, create_store

log = logging.getLogger("wellness.app")

_START_TIME = time.time()


# ── Request bodies ───────────────────────────────────────────────


class StartWizardRequest(BaseModel):
    user_id: Optional[str] = None


class GroupSizeRequest(BaseModel):
    group_size: int


class SeatNameRequest(BaseModel):
    name: str


class BookingActionRequest(BaseModel):
    action: str
    data: dict[str, Any] = {}


def create_app(
    store: Optional[BookingStore] = None,
    migrator: Optional[SchemaMigrator] = None,
    email_sender: Optional[EmailSender] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to what the settings configure; tests pass
    their own.
    """
    for warning in settings.validate_startup():
        log.warning(warning)

    if store is None:
        store, default_migrator = create_store(settings)
        migrator = migrator or default_migrator
    email_sender = email_sender or _create_email_sender()

    app = FastAPI(
        title="HBOT Wellness Booking",
        description="Hyperbaric oxygen therapy booking wizard and admin analytics",
        version="0.1.0",
    )
    app.state.store = store
    app.state.migrator = migrator
    app.state.email_sender = email_sender

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "active_wizards": len(get_active_sessions()),
        })

    # ── Admin: bookings & analytics ────────────────────────────

    @app.get("/api/admin/bookings", dependencies=[Depends(require_admin_token)])
    async def list_bookings():
        try:
            bookings = await store.list_bookings()
        except DependencyUnavailable as exc:
            log.error("Error accessing bookings table: %s", exc)
            return JSONResponse({"error": "Failed to access bookings table"}, status_code=500)
        return JSONResponse(bookings)

    @app.post("/api/admin/bookings", dependencies=[Depends(require_admin_token)])
    async def booking_analytics(request: Request):
        """Aggregate bookings by time period, demographic, location or revenue."""
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "Request body must be valid JSON"}, status_code=400)

        try:
            analytics_request = parse_request(body)
            data = await compute_analytics(
                store, analytics_request, known_locations=settings.known_locations,
            )
        except InvalidRequest as exc:
            return JSONResponse({"error": str(exc)}, status_code=400)
        except DependencyUnavailable as exc:
            log.error("Analytics failed, datastore unavailable: %s", exc)
            return JSONResponse({"error": "Failed to access bookings table"}, status_code=500)

        return JSONResponse({"data": data})

    @app.post("/api/admin/migrate-seat-selection", dependencies=[Depends(require_admin_token)])
    async def migrate_seat_selection():
        if migrator is None:
            return JSONResponse({"error": "No schema migrator configured"}, status_code=501)
        try:
            await migrator.add_missing_columns()
        except DependencyUnavailable as exc:
            log.error("Seat selection migration failed: %s", exc)
            return JSONResponse({"error": "Migration failed"}, status_code=500)
        return JSONResponse({"message": "seat_data column is present"})

    # ── Confirmation email ─────────────────────────────────────

    @app.post("/api/bookings")
    async def booking_action(body: BookingActionRequest):
        if body.action != "send-email":
            return JSONResponse({"success": False, "message": "Invalid action"}, status_code=400)

        try:
            booking = BookingRecord.model_validate(body.data)
        except ValidationError:
            return JSONResponse(
                {"success": False, "message": "Missing required booking data"}, status_code=400,
            )

        log.info("Sending booking confirmation to %s", redact_pii(booking.email))
        delivered = await send_booking_confirmation(
            email_sender, booking, settings.contact_email,
        )
        if not delivered:
            return JSONResponse(
                {"success": False, "message": "Failed to send confirmation email"},
                status_code=500,
            )
        return JSONResponse(
            {"success": True, "message": "Booking confirmation email sent successfully"},
        )

    # ── Booking wizard ─────────────────────────────────────────

    def _wizard(session_id: str) -> BookingWizardSession:
        validate_id(session_id)
        session = get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Wizard session not found")
        return session

    @app.exception_handler(ValidationFailure)
    async def _validation_failure(request: Request, exc: ValidationFailure):
        return JSONResponse(
            {"error": exc.message, "group": exc.group, "fields": exc.fields},
            status_code=422,
        )

    @app.exception_handler(WizardStateError)
    async def _wizard_state(request: Request, exc: WizardStateError):
        return JSONResponse({"error": str(exc)}, status_code=409)

    @app.post("/api/wizard/sessions", status_code=201)
    async def start_wizard(body: StartWizardRequest):
        profile = None
        if body.user_id:
            validate_id(body.user_id)
            try:
                rows = await store.get_profiles([body.user_id])
            except DependencyUnavailable as exc:
                log.error("Profile lookup failed: %s", exc)
                return JSONResponse({"error": "Failed to load your profile"}, status_code=503)
            if not rows:
                return JSONResponse({"error": "Profile not found"}, status_code=404)
            profile = Profile.model_validate(rows[0])

        session = _create_session(store, migrator, email_sender, profile)
        register_session(session)
        return JSONResponse(session.to_dict(), status_code=201)

    @app.get("/api/wizard/sessions/{session_id}")
    async def get_wizard(session_id: str):
        return _wizard(session_id).to_dict()

    @app.patch("/api/wizard/sessions/{session_id}/fields")
    async def update_wizard_fields(session_id: str, request: Request):
        session = _wizard(session_id)
        try:
            values = await request.json()
        except ValueError:
            return JSONResponse({"error": "Request body must be valid JSON"}, status_code=400)
        if not isinstance(values, dict):
            return JSONResponse({"error": "Expected a JSON object of fields"}, status_code=400)
        try:
            session.update_fields(**values)
        except ValidationError as exc:
            return JSONResponse({"error": exc.errors()[0]["msg"]}, status_code=422)
        except ValueError as exc:
            return JSONResponse({"error": str(exc)}, status_code=422)
        return session.to_dict()

    @app.post("/api/wizard/sessions/{session_id}/advance")
    async def advance_wizard(session_id: str):
        session = _wizard(session_id)
        await session.advance()
        return session.to_dict()

    @app.post("/api/wizard/sessions/{session_id}/back")
    async def back_wizard(session_id: str):
        session = _wizard(session_id)
        session.back()
        return session.to_dict()

    @app.put("/api/wizard/sessions/{session_id}/group-size")
    async def set_group_size(session_id: str, body: GroupSizeRequest):
        session = _wizard(session_id)
        session.set_group_size(body.group_size)
        return session.to_dict()

    @app.post("/api/wizard/sessions/{session_id}/seats/{seat_id}/toggle")
    async def toggle_seat(session_id: str, seat_id: int):
        session = _wizard(session_id)
        session.toggle_seat(seat_id)
        return session.to_dict()

    @app.put("/api/wizard/sessions/{session_id}/seats/{seat_id}/name")
    async def name_seat(session_id: str, seat_id: int, body: SeatNameRequest):
        session = _wizard(session_id)
        session.rename_seat(seat_id, body.name)
        return session.to_dict()

    @app.post("/api/wizard/sessions/{session_id}/submit")
    async def submit_wizard(session_id: str):
        session = _wizard(session_id)
        try:
            await session.submit()
        except ValidationFailure as exc:
            return JSONResponse(
                {
                    "error": exc.message,
                    "group": exc.group,
                    "fields": exc.fields,
                    "session": session.to_dict(),
                },
                status_code=422,
            )
        except DependencyUnavailable as exc:
            log.error("Booking submission failed: %s", exc)
            return JSONResponse(
                {"error": "There was an error submitting your booking. Please try again."},
                status_code=503,
            )
        return session.to_dict()

    @app.delete("/api/wizard/sessions/{session_id}", status_code=204)
    async def discard_wizard(session_id: str):
        _wizard(session_id)
        unregister_session(session_id)
        return Response(status_code=204)

    return app


# ── Helper functions ──────────────────────────────────────────────


def _create_email_sender() -> EmailSender:
    if settings.smtp_host:
        return SmtpEmailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from,
            reply_to=settings.contact_email,
            timeout=settings.request_timeout,
        )
    return LoggingEmailSender()


def _create_session(
    store: BookingStore,
    migrator: Optional[SchemaMigrator],
    email_sender: EmailSender,
    profile: Optional[Profile] = None,
) -> BookingWizardSession:
    """Create a BookingWizardSession with the configured collaborators."""
    return BookingWizardSession(
        store=store,
        migrator=migrator,
        email_sender=email_sender,
        profile=profile,
        location=settings.booking_location,
        contact_email=settings.contact_email,
    )


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run("wellness.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
