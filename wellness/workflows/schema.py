"""Pydantic models for the booking wizard's step definitions.

The wizard is a linear FSM with a guarded ``next`` edge, an unguarded
``back`` edge and a terminal ``submit`` edge out of the last step.
"""

from __future__ import annotations

from pydantic import BaseModel


class WizardStepDef(BaseModel):
    """One step of the booking wizard."""

    id: str
    title: str = ""                        # Heading shown above the step
    group: str = ""                        # Named in validation messages
    guest_only: bool = False               # Skipped for signed-in users
    terminal: bool = False
    transitions: dict[str, str] = {}       # "next" | "back" | "submit" -> step id


class WizardWorkflowDef(BaseModel):
    """A complete wizard definition."""

    id: str
    name: str = ""
    initial_state: str = ""                # Guests start here
    authenticated_initial_state: str = ""  # Signed-in users start here
    states: dict[str, WizardStepDef] = {}
