"""Per-user booking wizard session: drives the step FSM for one booking.

Each wizard (one browser tab filling in a booking) gets a
BookingWizardSession that:
  1. Holds the BookingForm values and the four-seat selection
  2. Tracks the current step of the wizard workflow
  3. Guards ``next`` with the step's validation rules
  4. Keeps seats and group size in sync through the seat reducer
  5. On submit, persists the booking (with one schema-migration retry)
     and fires the confirmation email without waiting for it
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from datetime import date
from typing import Any, Callable, Optional

from wellness import seats as seat_ops
from wellness.config import settings
from wellness.errors import (
    DependencyUnavailable,
    SchemaMismatch,
    ValidationFailure,
    WizardStateError,
)
from wellness.models.booking import BookingRecord, Profile
from wellness.models.form import BookingForm, SeatInfo
from wellness.notifications.base import EmailSender
from wellness.notifications.confirmation import send_booking_confirmation
from wellness.stores.base import BookingStore, SchemaMigrator
from wellness.validation import STEP_VALIDATORS, failure_message
from wellness.workflows.booking_wizard import WORKFLOW_DEF as _DEFAULT_WORKFLOW
from wellness.workflows.booking_wizard import build_step_order
from wellness.workflows.schema import WizardStepDef, WizardWorkflowDef

log = logging.getLogger("wellness.session")

# Profile fields copied into the form for signed-in users
_PROFILE_FIELDS = (
    "first_name", "last_name", "email", "phone",
    "gender", "race", "education", "profession",
)


def redact_pii(value: str) -> str:
    """Mask PII for logging: show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "BookingWizardSession"] = {}


def _evict_idle(now: float) -> None:
    """Drop wizards untouched for longer than WIZARD_SESSION_TTL (0 disables)."""
    ttl = settings.wizard_session_ttl
    if ttl <= 0:
        return
    expired = [sid for sid, s in _active_sessions.items() if now - s._last_seen > ttl]
    for sid in expired:
        _active_sessions.pop(sid, None)
    if expired:
        log.info("Evicted %d idle wizard(s)", len(expired))


def register_session(session: "BookingWizardSession") -> str:
    """Register a session and return its unique ID."""
    now = time.time()
    _evict_idle(now)
    session_id = secrets.token_urlsafe(18)
    session._session_id = session_id
    session._started_at = now
    session._last_seen = now
    _active_sessions[session_id] = session
    log.info("Wizard registered: %s", session_id)
    return session_id


def unregister_session(session_id: str) -> None:
    """Remove a session from the registry."""
    _active_sessions.pop(session_id, None)
    log.info("Wizard unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "BookingWizardSession"]:
    """Return all active sessions."""
    return _active_sessions


def get_session(session_id: str) -> "BookingWizardSession | None":
    """Look up a session by ID and mark it as recently used."""
    now = time.time()
    _evict_idle(now)
    session = _active_sessions.get(session_id)
    if session is not None:
        session._last_seen = now
    return session


class BookingWizardSession:
    """One user's trip through the booking wizard.

    Typical lifecycle::

        session = BookingWizardSession(store=store, email_sender=sender)
        session.update_fields(first_name="Ada", last_name="Lovelace", ...)
        await session.advance()          # guest_info → select_location
        ...
        session.set_group_size(2)
        session.rename_seat(2, "Charles Babbage")
        booking = await session.submit() # seating_options → submitted
    """

    def __init__(
        self,
        store: BookingStore,
        migrator: Optional[SchemaMigrator] = None,
        email_sender: Optional[EmailSender] = None,
        profile: Optional[Profile] = None,
        workflow: WizardWorkflowDef | None = None,
        location: str = "",
        contact_email: str = "",
        transition_delay: Optional[float] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._workflow = workflow or _DEFAULT_WORKFLOW
        self._store = store
        self._migrator = migrator
        self._email_sender = email_sender
        self._profile = profile
        self._location = location or settings.booking_location
        self._contact_email = contact_email
        self._transition_delay = (
            settings.step_transition_delay if transition_delay is None else transition_delay
        )
        self._today = today or date.today

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._started_at: float = 0.0
        self._last_seen: float = 0.0

        # FSM state: guests start at personal info, members skip it
        self._step_order = build_step_order(self._workflow, is_guest=profile is None)
        if not self._step_order:
            raise ValueError(f"Workflow {self._workflow.id} has no reachable steps")
        self._current_step_id: str = self._step_order[0]
        self._loading = False

        self._form = BookingForm()
        if profile is not None:
            self._prefill_from_profile(profile)
        self._seats: list[SeatInfo] = seat_ops.initial_seats(
            self._form.group_size, self._form.full_name,
        )

        self._booking: BookingRecord | None = None
        self._email_tasks: set[asyncio.Task] = set()

    # ── Helpers ────────────────────────────────────────────────

    def _get_state(self, state_id: str) -> WizardStepDef | None:
        """Look up a step in the workflow definition."""
        return self._workflow.states.get(state_id)

    def _current_state(self) -> WizardStepDef:
        state = self._get_state(self._current_step_id)
        if state is None:
            raise WizardStateError(f"Unknown wizard step {self._current_step_id!r}")
        return state

    def _require_open(self) -> WizardStepDef:
        state = self._current_state()
        if state.terminal:
            raise WizardStateError("This booking has already been submitted.")
        return state

    def _require_idle(self) -> WizardStepDef:
        """Like _require_open, but also rejects a second transition while one is running."""
        if self._loading:
            raise WizardStateError("Please wait, the previous step is still being processed.")
        return self._require_open()

    def _prefill_from_profile(self, profile: Profile) -> None:
        values = {f: getattr(profile, f) for f in _PROFILE_FIELDS if getattr(profile, f)}
        if profile.age is not None:
            values["age"] = str(profile.age)
        self._form = self._form.model_copy(update=values)

    # ── Public API ────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def is_guest(self) -> bool:
        return self._profile is None

    @property
    def current_step(self) -> str:
        return self._current_step_id

    @property
    def step_number(self) -> int:
        """1-based position of the current step among this user's steps."""
        return min(self._step_order.index(self._current_step_id) + 1, self.total_steps)

    @property
    def total_steps(self) -> int:
        """Number of form steps (the confirmation screen is not counted)."""
        return len([s for s in self._step_order if not self._workflow.states[s].terminal])

    @property
    def is_done(self) -> bool:
        return self._current_state().terminal

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def form(self) -> BookingForm:
        return self._form

    @property
    def seats(self) -> list[SeatInfo]:
        return list(self._seats)

    @property
    def booking(self) -> BookingRecord | None:
        return self._booking

    def to_dict(self) -> dict[str, Any]:
        """Serialize wizard state for the API."""
        state = self._current_state()
        return {
            "session_id": self._session_id,
            "started_at": self._started_at,
            "is_guest": self.is_guest,
            "current_step": self._current_step_id,
            "step_title": state.title,
            "step_number": self.step_number,
            "total_steps": self.total_steps,
            "steps": list(self._step_order),
            "is_loading": self._loading,
            "is_done": self.is_done,
            "form": self._form.model_dump(),
            "seats": [s.model_dump() for s in self._seats],
            "booking": self._booking.model_dump() if self._booking else None,
        }

    # ── Form editing ──────────────────────────────────────────

    def update_fields(self, **values: Any) -> BookingForm:
        """Update form values. ``group_size`` is routed through the seat reducer."""
        self._require_open()

        unknown = set(values) - set(BookingForm.model_fields)
        if unknown:
            raise ValueError(f"Unknown form field(s): {', '.join(sorted(unknown))}")

        # Build the new form and seats first; nothing is committed if either fails
        group_size = values.pop("group_size", None)
        form = self._form
        if values:
            form = BookingForm.model_validate({**form.model_dump(), **values})
        seats = self._seats
        if group_size is not None:
            form, seats = self._resize(form, seats, group_size)

        self._form, self._seats = form, seats
        return self._form

    def set_group_size(self, group_size: int) -> list[SeatInfo]:
        """Select the first ``group_size`` seats and record the new size."""
        self._require_open()
        self._form, self._seats = self._resize(self._form, self._seats, group_size)
        return self.seats

    @staticmethod
    def _resize(
        form: BookingForm, seats: list[SeatInfo], group_size: Any,
    ) -> tuple[BookingForm, list[SeatInfo]]:
        try:
            group_size = int(group_size)
            seats = seat_ops.set_group_size(seats, group_size, form.full_name)
        except (TypeError, ValueError) as exc:
            raise ValidationFailure(str(exc), group="seating", fields=["group_size"]) from exc
        return form.model_copy(update={"group_size": group_size}), seats

    def toggle_seat(self, seat_id: int) -> list[SeatInfo]:
        """Select or deselect one seat; group size follows the selection."""
        self._require_open()
        try:
            self._seats = seat_ops.toggle_seat(self._seats, seat_id, self._form.full_name)
        except ValueError as exc:
            raise ValidationFailure(str(exc), group="seating", fields=[str(seat_id)]) from exc
        count = seat_ops.selected_count(self._seats)
        if count > 0:
            self._form = self._form.model_copy(update={"group_size": count})
        return self.seats

    def rename_seat(self, seat_id: int, name: str) -> list[SeatInfo]:
        self._require_open()
        try:
            self._seats = seat_ops.rename_seat(self._seats, seat_id, name)
        except ValueError as exc:
            raise ValidationFailure(str(exc), group="seating", fields=[str(seat_id)]) from exc
        return self.seats

    # ── Transitions ───────────────────────────────────────────

    async def advance(self) -> str:
        """Validate the current step and move to the next one.

        Raises ValidationFailure (and stays put) if any required field of
        the step fails. Returns the new step id.
        """
        state = self._require_idle()
        target = state.transitions.get("next")
        if not target:
            raise WizardStateError(f"Step {state.id!r} is completed with submit, not next.")

        validator = STEP_VALIDATORS.get(state.id)
        if validator is not None:
            failed = validator(self._form, self._today(), self._location)
            if failed:
                log.info("Wizard %s blocked at %s: %s", self._session_id, state.id, failed)
                raise ValidationFailure(
                    failure_message(state.group, failed), group=state.group, fields=failed,
                )

        self._current_step_id = target
        log.info("Wizard advance: %s → %s", state.id, target)

        entered = self._get_state(target)
        if entered is not None and "submit" in entered.transitions:
            # Entering seating: the booker's own seat carries their name
            self._seats = seat_ops.name_first_seat(self._seats, self._form.full_name)

        self._loading = True
        try:
            await asyncio.sleep(self._transition_delay)
        finally:
            self._loading = False
        return target

    def back(self) -> str:
        """Return to the previous step this user can see."""
        state = self._require_idle()
        target = state.transitions.get("back", "")
        if target not in self._step_order:
            raise WizardStateError(f"Step {state.id!r} is the first step.")
        self._current_step_id = target
        log.info("Wizard back: %s → %s", state.id, target)
        return target

    async def submit(self) -> BookingRecord:
        """Persist the booking and finish the wizard.

        Raises ValidationFailure if a selected seat is unnamed (those seats
        get ``error=True``), and DependencyUnavailable if the datastore
        rejects the booking. In both cases the step and the form values are
        left untouched so the user can correct and resubmit. A submit that
        overlaps one already in flight raises WizardStateError.
        """
        state = self._require_idle()
        target = state.transitions.get("submit")
        if not target:
            raise WizardStateError(f"Step {state.id!r} cannot be submitted.")

        self._seats, flagged = seat_ops.flag_unnamed(self._seats)
        if flagged:
            raise ValidationFailure(
                "Please enter a name for each selected seat.",
                group=state.group,
                fields=[str(i) for i in flagged],
            )

        record = self._build_record()
        self._loading = True
        try:
            stored = await self._persist(record.model_dump(exclude={"id", "created_at"}))
        finally:
            self._loading = False

        self._booking = BookingRecord.model_validate({**record.model_dump(), **stored})
        self._current_step_id = target
        log.info(
            "Booking %s submitted for %s (group of %d)",
            self._booking.id, redact_pii(self._booking.email), self._booking.group_size,
        )

        self._schedule_confirmation(self._booking)
        return self._booking

    # ── Internal: persistence ────────────────────────────────

    def _build_record(self) -> BookingRecord:
        form = self._form
        return BookingRecord(
            user_id=self._profile.id if self._profile else None,
            first_name=form.first_name.strip(),
            last_name=form.last_name.strip(),
            email=form.email.strip(),
            phone=form.phone.strip(),
            gender=form.gender or None,
            race=form.race or None,
            education=form.education or None,
            profession=form.profession or None,
            age=form.age or None,
            date=form.date,
            time=form.time,
            duration=form.duration or 60,
            location=form.location,
            group_size=form.group_size,
            amount=0,  # Sessions are free in this deployment
            booking_reason=form.booking_reason or None,
            notes=form.notes or None,
            seat_data=[
                {"id": s.id, "name": s.name.strip()} for s in self._seats if s.selected
            ],
        )

    async def _persist(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Insert the booking, migrating the schema and retrying once if a column is missing."""
        try:
            return await self._store.insert_booking(payload)
        except SchemaMismatch as exc:
            if self._migrator is None:
                log.error("Booking insert hit a missing column and no migrator is configured")
                raise
            log.warning("Missing column %r on insert; running schema migration", exc.column)

        try:
            await self._migrator.add_missing_columns()
        except DependencyUnavailable as exc:
            log.error("Schema migration failed: %s", exc)
            raise

        return await self._store.insert_booking(payload)

    # ── Internal: notifications ──────────────────────────────

    def _schedule_confirmation(self, booking: BookingRecord) -> None:
        if self._email_sender is None:
            return
        task = asyncio.create_task(self._send_confirmation(booking))
        self._email_tasks.add(task)
        task.add_done_callback(self._email_tasks.discard)

    async def _send_confirmation(self, booking: BookingRecord) -> None:
        try:
            await send_booking_confirmation(self._email_sender, booking, self._contact_email)
        except Exception:
            log.exception("Confirmation email for booking %s failed", booking.id)

    async def drain_notifications(self) -> None:
        """Wait for any in-flight confirmation emails (shutdown and tests)."""
        if self._email_tasks:
            await asyncio.gather(*list(self._email_tasks), return_exceptions=True)
