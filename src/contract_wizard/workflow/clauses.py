"""Clause engine: clause activation, completion tracking and rendering.

Completion of a mandatory clause is driven by the fields its template
needs. Once a clause is complete it stays complete for the rest of the
session. Clauses without required fields are completed explicitly.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

import structlog

from contract_wizard.errors import MandatoryClauseToggleError, UnknownClauseError
from contract_wizard.models import ClauseStatus, IdType
from contract_wizard.policy import ClausePolicy
from contract_wizard.workflow.state import WorkflowState, is_filled, read_field

logger = structlog.get_logger(__name__)

UNRESOLVED = "[TO BE FILLED]"

_PLACEHOLDER = re.compile(r"\[([A-Z][A-Z0-9_]*)\]")

_DISPLAY: dict[Enum, str] = {
    IdType.NATIONAL_ID: "National ID",
    IdType.PASSPORT: "Passport",
    IdType.COMPANY_REGISTRATION: "Company Registration",
}


def _clause(state: WorkflowState, key: str) -> ClauseStatus:
    try:
        return state.clauses[key]
    except KeyError:
        raise UnknownClauseError(key) from None


def toggle_optional(state: WorkflowState, clause_key: str) -> WorkflowState:
    """Flip ``is_active`` of an optional clause.

    Raises:
        MandatoryClauseToggleError: If the clause is mandatory. The state is
            left untouched.
        UnknownClauseError: If the clause is not tracked.
    """
    clause = _clause(state, clause_key)
    if clause.is_mandatory:
        raise MandatoryClauseToggleError(clause_key)

    state.clauses[clause_key] = clause.model_copy(update={"is_active": not clause.is_active})
    return state


def recompute_completion(
    state: WorkflowState,
    changed_field: str,
    policy: ClausePolicy,
) -> list[str]:
    """Mark mandatory clauses complete once all their required fields are filled.

    Only clauses that list *changed_field* among their required fields are
    considered. Completion is never reset here.

    Returns:
        The keys of clauses that became complete.
    """
    newly_completed: list[str] = []
    for definition in policy.clauses_requiring(changed_field):
        status = state.clauses.get(definition.key)
        if status is None or status.is_completed:
            continue
        if all(is_filled(read_field(state, f)) for f in definition.required_fields):
            state.clauses[definition.key] = status.model_copy(update={"is_completed": True})
            newly_completed.append(definition.key)

    if newly_completed:
        logger.debug("clauses_completed", field=changed_field, clauses=newly_completed)
    refresh_compliance(state)
    return newly_completed


def mark_complete(state: WorkflowState, clause_key: str) -> WorkflowState:
    """Explicitly confirm a clause ("Mark Complete")."""
    clause = _clause(state, clause_key)
    if not clause.is_completed:
        state.clauses[clause_key] = clause.model_copy(update={"is_completed": True})
    refresh_compliance(state)
    return state


def refresh_compliance(state: WorkflowState) -> WorkflowState:
    """Recompute the derived compliance summary."""
    mandatory = [c for c in state.clauses.values() if c.is_mandatory]
    completed = sum(1 for c in mandatory if c.is_completed)
    percent = round(completed * 100 / len(mandatory)) if mandatory else 100

    state.compliance_state.mandatory_completion_percent = percent
    state.compliance_state.can_advance = completed == len(mandatory)
    return state


def _display(value: Any) -> str:
    if isinstance(value, Enum):
        return _DISPLAY.get(value, str(value.value).replace("_", " "))
    if isinstance(value, float) and value.is_integer():
        return f"{int(value):,}"
    return str(value)


def render_clause_text(state: WorkflowState, clause_key: str, policy: ClausePolicy) -> str:
    """Render a clause template with the current field values.

    Placeholders whose field is empty, or that the policy does not map,
    render as ``[TO BE FILLED]``.
    """
    definition = policy.get(clause_key)
    if definition is None:
        raise UnknownClauseError(clause_key)

    unresolved: list[str] = []

    def _substitute(match: re.Match[str]) -> str:
        token = match.group(1)
        path = policy.placeholders.get(token)
        value = read_field(state, path) if path else None
        if not is_filled(value):
            unresolved.append(token)
            return UNRESOLVED
        return _display(value)

    text = _PLACEHOLDER.sub(_substitute, definition.template)
    if unresolved:
        logger.debug("unresolved_placeholders", clause=clause_key, placeholders=unresolved)
    return text


def render_all(state: WorkflowState, policy: ClausePolicy) -> dict[str, str]:
    """Render every active clause, mandatory clauses first."""
    return {
        c.key: render_clause_text(state, c.key, policy)
        for c in policy.ordered()
        if c.key in state.clauses and state.clauses[c.key].is_active
    }
