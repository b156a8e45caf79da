"""Step gate: pure checks deciding whether the wizard may change step.

Every function here reads the state and returns a result. None of them
mutate the state or perform I/O; the controller applies the outcome.
"""

from __future__ import annotations

import re

from contract_wizard.models import (
    LOCKED_STEPS,
    STEP_ORDER,
    FieldError,
    GateFailure,
    GateResult,
    OrganisationParty,
    PartyRole,
    WorkflowStep,
)
from contract_wizard.policy import ClausePolicy
from contract_wizard.workflow.state import WorkflowState, is_filled

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s.]+$")

_PARTY_FIELDS_BOTH = ("legal_name", "email", "address")
_PARTY_FIELDS_FIRST = ("id_number", "app_id")


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value.strip()))


def check_party_details(state: WorkflowState) -> GateResult:
    """Gate ``party_details -> mandatory_clauses``.

    Lists every missing or malformed field, not just the first.
    """
    errors: list[FieldError] = []
    for role in PartyRole:
        party = state.parties.get(role)
        required = list(_PARTY_FIELDS_BOTH)
        if role == PartyRole.DISCLOSING:
            required.extend(_PARTY_FIELDS_FIRST)
        if isinstance(party, OrganisationParty):
            required.append("business_registration_number")

        for name in required:
            path = f"{role.value}.{name}"
            value = getattr(party, name)
            if not is_filled(value):
                errors.append(FieldError(field=path, message="This field is required"))
            elif name == "email" and not is_valid_email(value):
                errors.append(FieldError(field=path, message="Enter a valid email address"))

    if errors:
        return GateResult.refuse(GateFailure.INCOMPLETE_PARTY_INFO, errors)
    return GateResult.ok()


def check_mandatory_clauses(state: WorkflowState) -> GateResult:
    """Gate ``mandatory_clauses -> optional_clauses``."""
    if state.compliance_state.can_advance and not state.pending_mandatory():
        return GateResult.ok()
    return GateResult.refuse(
        GateFailure.MANDATORY_CLAUSES_INCOMPLETE,
        [
            FieldError(field=key, message="Mandatory clause is not complete")
            for key in state.pending_mandatory()
        ],
    )


def check_optional_clauses(state: WorkflowState) -> GateResult:
    """Gate ``optional_clauses -> review``: the mandatory gate must still hold."""
    return check_mandatory_clauses(state)


def check_review(state: WorkflowState, policy: ClausePolicy) -> GateResult:
    """Gate ``review -> complete``: final compliance check."""
    errors = [
        FieldError(field=key, message="Mandatory clause is not complete")
        for key in state.pending_mandatory()
    ]

    duration = state.terms.duration_months
    if duration is None:
        errors.append(
            FieldError(field="terms.duration_months", message="Duration is required")
        )
    elif duration > policy.duration_ceiling_months:
        errors.append(
            FieldError(
                field="terms.duration_months",
                message=(
                    f"Duration exceeds the {policy.duration_ceiling_months}-month "
                    f"ceiling for {policy.jurisdiction}"
                ),
            )
        )

    if errors:
        return GateResult.refuse(GateFailure.COMPLIANCE_CHECK_FAILED, errors)
    return GateResult.ok()


def check_backward(state: WorkflowState) -> GateResult:
    """Going back is allowed until legal review starts."""
    if state.current_step in LOCKED_STEPS:
        return GateResult.refuse(
            GateFailure.BACKWARD_TRANSITION_DENIED,
            [
                FieldError(
                    field="current_step",
                    message=f"Cannot go back from '{state.current_step.value}'",
                )
            ],
        )
    if state.current_step == WorkflowStep.PARTY_DETAILS:
        return GateResult.refuse(
            GateFailure.INVALID_TRANSITION,
            [FieldError(field="current_step", message="Already at the first step")],
        )
    return GateResult.ok()


def check_transition(
    state: WorkflowState,
    target: WorkflowStep,
    policy: ClausePolicy,
) -> GateResult:
    """Decide whether the state may move from its current step to *target*."""
    current = state.current_step.index
    wanted = target.index

    if wanted < current:
        result = check_backward(state)
        if result.allowed and wanted < current - 1:
            return _invalid(f"Cannot skip back to '{target.value}'")
        return result

    if wanted != current + 1:
        return _invalid(f"Cannot move from '{state.current_step.value}' to '{target.value}'")

    if state.current_step == WorkflowStep.PARTY_DETAILS:
        return check_party_details(state)
    if state.current_step == WorkflowStep.MANDATORY_CLAUSES:
        return check_mandatory_clauses(state)
    if state.current_step == WorkflowStep.OPTIONAL_CLAUSES:
        return check_optional_clauses(state)
    return check_review(state, policy)


def next_step(step: WorkflowStep) -> WorkflowStep | None:
    if step.index + 1 < len(STEP_ORDER):
        return STEP_ORDER[step.index + 1]
    return None


def previous_step(step: WorkflowStep) -> WorkflowStep | None:
    if step.index > 0:
        return STEP_ORDER[step.index - 1]
    return None


def _invalid(message: str) -> GateResult:
    return GateResult.refuse(
        GateFailure.INVALID_TRANSITION,
        [FieldError(field="current_step", message=message)],
    )


def field_warnings(state: WorkflowState, policy: ClausePolicy) -> dict[str, str]:
    """Recompute per-field validation messages.

    These never block editing or saving a draft. The duration ceiling is
    enforced separately at the final review gate.
    """
    warnings: dict[str, str] = {}

    for role in PartyRole:
        email = state.parties.get(role).email
        if is_filled(email) and not is_valid_email(email):
            warnings[f"{role.value}.email"] = "Enter a valid email address"

    duration = state.terms.duration_months
    if duration is not None and duration > policy.duration_ceiling_months:
        warnings["terms.duration_months"] = (
            f"Duration over {policy.duration_ceiling_months} months may not be "
            f"enforceable under {policy.jurisdiction} law"
        )

    low, high = policy.return_timeline_range_days
    days = state.terms.return_timeline_days
    if days is not None and not low <= days <= high:
        warnings["terms.return_timeline_days"] = (
            f"Return timelines of {low} to {high} days are standard"
        )

    return warnings
