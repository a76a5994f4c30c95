"""Load JSONL wizard definitions into WizardWorkflowDef objects."""

from __future__ import annotations

import json
from pathlib import Path

from wellness.workflows.schema import WizardStepDef, WizardWorkflowDef


def load_workflow_jsonl(path: str | Path) -> WizardWorkflowDef:
    """Load a single workflow from a JSONL file.

    The file holds one JSON object per line; the first non-empty line is
    the workflow. Steps are nested inside the top-level ``states`` dict.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8").strip()

    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        return parse_workflow(json.loads(line))

    raise ValueError(f"No workflow found in {path}")


def parse_workflow(data: dict) -> WizardWorkflowDef:
    """Parse a raw dict into a WizardWorkflowDef and check its edges."""
    raw_states = data.get("states", {})
    states: dict[str, WizardStepDef] = {}
    for state_id, state_data in raw_states.items():
        if isinstance(state_data, dict):
            state_data = {**state_data}
            state_data.setdefault("id", state_id)
            states[state_id] = WizardStepDef(**state_data)
        else:
            states[state_id] = state_data

    workflow = WizardWorkflowDef(**{**data, "states": states})
    _check_targets(workflow)
    return workflow


def _check_targets(workflow: WizardWorkflowDef) -> None:
    for entry in (workflow.initial_state, workflow.authenticated_initial_state):
        if entry and entry not in workflow.states:
            raise ValueError(f"Workflow {workflow.id}: unknown initial state {entry!r}")
    for state in workflow.states.values():
        for edge, target in state.transitions.items():
            if target not in workflow.states:
                raise ValueError(
                    f"Workflow {workflow.id}: step {state.id!r} edge {edge!r} "
                    f"points to unknown step {target!r}"
                )
