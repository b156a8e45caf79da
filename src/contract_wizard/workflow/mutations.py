"""The single mutation path for workflow fields.

User edits, identity lookups and AI suggestions all change the state
through :func:`set_field`, so clause completion, compliance and validation
messages are recomputed the same way whoever produced the value.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError

from contract_wizard.models import (
    ContractTerms,
    EditRecord,
    EditSource,
    IndividualParty,
    OrganisationParty,
    PartyRole,
    PartyType,
)
from contract_wizard.policy import ClausePolicy
from contract_wizard.workflow.clauses import recompute_completion
from contract_wizard.workflow.gate import field_warnings
from contract_wizard.workflow.state import WorkflowState, split_path

logger = structlog.get_logger(__name__)


def record_edit(
    state: WorkflowState,
    field: str,
    value: Any,
    source: EditSource,
) -> EditRecord:
    """Append an entry to the audit trail.

    Sequence numbers increase by one per entry and timestamps never go
    backwards, so the trail order matches mutation order.
    """
    now = datetime.now(tz=timezone.utc)
    if state.edit_history and state.edit_history[-1].timestamp > now:
        now = state.edit_history[-1].timestamp

    record = EditRecord(
        sequence=len(state.edit_history),
        field=field,
        value=value.value if isinstance(value, Enum) else value,
        source=source,
        timestamp=now,
    )
    state.edit_history.append(record)
    return record


def _normalise_empty(section: str, name: str, value: Any) -> Any:
    if section == "terms" and isinstance(value, str) and not value.strip():
        if ContractTerms.model_fields[name].default is None:
            return None
    return value


def _retype_party(state: WorkflowState, role: PartyRole, value: Any) -> None:
    party_type = PartyType(value)
    current = state.parties.get(role)
    common = current.model_dump(exclude={"party_type", "business_registration_number"})

    if party_type == PartyType.INDIVIDUAL:
        replacement = IndividualParty(**common)
    else:
        replacement = OrganisationParty(
            **common,
            party_type=party_type,
            business_registration_number=getattr(current, "business_registration_number", ""),
        )
    setattr(state.parties, role.value, replacement)


def _apply(state: WorkflowState, section: str, name: str, value: Any) -> Any:
    if section == "terms":
        setattr(state.terms, name, value)
        return getattr(state.terms, name)

    role = PartyRole(section)
    if name == "party_type":
        _retype_party(state, role, value)
        return state.parties.get(role).party_type

    party = state.parties.get(role)
    if name not in type(party).model_fields:
        raise ValueError("Only applies to company, partnership or sole proprietorship parties")
    setattr(party, name, value)
    return getattr(party, name)


def set_field(
    state: WorkflowState,
    path: str,
    value: Any,
    policy: ClausePolicy,
    source: EditSource = EditSource.USER,
) -> bool:
    """Set the field at *path* and recompute everything derived from it.

    Args:
        state: The state to mutate.
        path: ``"<role>.<field>"`` or ``"terms.<field>"``.
        value: The new value; coerced by the field's type.
        policy: Clause policy driving completion and warnings.
        source: Who produced the value, recorded in the audit trail.

    Returns:
        ``True`` if the value was applied. Values that fail validation are
        not applied; the reason is stored in ``validation_errors[path]``.

    Raises:
        UnknownFieldError: If *path* does not address a workflow field.
    """
    section, name = split_path(path)
    value = _normalise_empty(section, name, value)

    try:
        applied = _apply(state, section, name, value)
    except (ValidationError, ValueError) as exc:
        message = _first_message(exc)
        warnings = field_warnings(state, policy)
        warnings[path] = message
        state.validation_errors = warnings
        logger.info("field_rejected", field=path, source=source.value, reason=message)
        return False

    if name == "app_id" and source != EditSource.IDENTITY:
        # A hand-edited app id has not been resolved yet.
        state.parties.get(PartyRole(section)).is_verified = False

    record_edit(state, path, applied, source)
    recompute_completion(state, path, policy)
    state.validation_errors = field_warnings(state, policy)
    return True


def _first_message(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        errors = exc.errors()
        if errors:
            return str(errors[0].get("msg", exc))
    return str(exc)
