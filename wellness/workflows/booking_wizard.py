"""Booking wizard definition: guest info → location → details → seating.

Loaded from ``booking_wizard.jsonl`` next to this module. Exports the
happy-path step order for guests and for signed-in users, who skip the
personal-information step.
"""

from __future__ import annotations

from pathlib import Path

from wellness.workflows.loader import load_workflow_jsonl
from wellness.workflows.schema import WizardWorkflowDef

_JSONL_PATH = Path(__file__).resolve().parent / "booking_wizard.jsonl"

WORKFLOW_DEF: WizardWorkflowDef = load_workflow_jsonl(_JSONL_PATH)


def build_step_order(wf: WizardWorkflowDef, is_guest: bool) -> list[str]:
    """Walk the ``next``/``submit`` edges from the entry step for this user."""
    order: list[str] = []
    visited: set[str] = set()
    current = wf.initial_state if is_guest else wf.authenticated_initial_state

    while current and current not in visited:
        state = wf.states.get(current)
        if not state:
            break
        visited.add(current)
        if is_guest or not state.guest_only:
            order.append(current)
        current = state.transitions.get("next") or state.transitions.get("submit", "")

    return order


GUEST_STEP_ORDER: list[str] = build_step_order(WORKFLOW_DEF, is_guest=True)
MEMBER_STEP_ORDER: list[str] = build_step_order(WORKFLOW_DEF, is_guest=False)
TERMINAL_STEP: str = GUEST_STEP_ORDER[-1] if GUEST_STEP_ORDER else ""
