"""Step gate checks."""

from __future__ import annotations

from contract_wizard.models import GateFailure, WorkflowStep
from contract_wizard.workflow.clauses import mark_complete
from contract_wizard.workflow.gate import (
    check_backward,
    check_party_details,
    check_transition,
    field_warnings,
    is_valid_email,
    next_step,
    previous_step,
)
from contract_wizard.workflow.mutations import set_field
from contract_wizard.workflow.state import create_initial

from conftest import PARTY_DETAILS


def _state_with(policy, changes):
    state = create_initial(policy)
    for path, value in changes.items():
        set_field(state, path, value, policy)
    return state


def test_party_details_lists_every_missing_field(policy):
    state = create_initial(policy)

    result = check_party_details(state)

    assert not result.allowed
    assert result.failure == GateFailure.INCOMPLETE_PARTY_INFO
    assert {e.field for e in result.errors} == set(PARTY_DETAILS)


def test_party_details_reports_malformed_email(policy):
    state = _state_with(policy, {**PARTY_DETAILS, "receiving.email": "wanjiru@"})

    result = check_party_details(state)

    assert not result.allowed
    assert [e.field for e in result.errors] == ["receiving.email"]


def test_party_details_requires_registration_number_for_organisations(policy):
    state = _state_with(policy, {**PARTY_DETAILS, "disclosing.party_type": "company"})

    result = check_party_details(state)
    assert [e.field for e in result.errors] == ["disclosing.business_registration_number"]

    set_field(state, "disclosing.business_registration_number", "PVT-ABC123", policy)
    assert check_party_details(state).allowed


def test_mandatory_gate_names_the_single_pending_clause(policy):
    state = create_initial(policy)
    state.current_step = WorkflowStep.MANDATORY_CLAUSES
    for key in policy.mandatory_keys:
        if key != "dispute_resolution":
            mark_complete(state, key)

    result = check_transition(state, WorkflowStep.OPTIONAL_CLAUSES, policy)

    assert not result.allowed
    assert result.failure == GateFailure.MANDATORY_CLAUSES_INCOMPLETE
    assert [e.field for e in result.errors] == ["dispute_resolution"]
    assert state.compliance_state.mandatory_completion_percent == 90


def test_review_gate_enforces_duration_ceiling(policy):
    state = _state_with(policy, {"terms.duration_months": 72})
    for key in policy.mandatory_keys:
        mark_complete(state, key)
    state.current_step = WorkflowStep.REVIEW

    result = check_transition(state, WorkflowStep.COMPLETE, policy)

    assert not result.allowed
    assert result.failure == GateFailure.COMPLIANCE_CHECK_FAILED
    assert [e.field for e in result.errors] == ["terms.duration_months"]
    # Only a warning while drafting.
    assert "terms.duration_months" in state.validation_errors

    set_field(state, "terms.duration_months", 60, policy)
    assert check_transition(state, WorkflowStep.COMPLETE, policy).allowed
    assert "terms.duration_months" not in state.validation_errors


def test_backward_denied_from_locked_steps(policy):
    state = create_initial(policy)
    for step in (WorkflowStep.REVIEW, WorkflowStep.COMPLETE):
        state.current_step = step
        result = check_backward(state)
        assert not result.allowed
        assert result.failure == GateFailure.BACKWARD_TRANSITION_DENIED


def test_backward_allowed_before_review(policy):
    state = create_initial(policy)
    state.current_step = WorkflowStep.OPTIONAL_CLAUSES

    assert check_transition(state, WorkflowStep.MANDATORY_CLAUSES, policy).allowed
    skipped = check_transition(state, WorkflowStep.PARTY_DETAILS, policy)
    assert skipped.failure == GateFailure.INVALID_TRANSITION


def test_no_back_from_first_step(policy):
    state = create_initial(policy)

    result = check_backward(state)
    assert result.failure == GateFailure.INVALID_TRANSITION


def test_cannot_skip_forward(policy):
    state = _state_with(policy, PARTY_DETAILS)

    result = check_transition(state, WorkflowStep.REVIEW, policy)

    assert not result.allowed
    assert result.failure == GateFailure.INVALID_TRANSITION


def test_field_warnings(policy):
    state = _state_with(
        policy,
        {"disclosing.email": "nope", "terms.return_timeline_days": 45},
    )

    warnings = field_warnings(state, policy)

    assert set(warnings) == {"disclosing.email", "terms.return_timeline_days"}


def test_step_order():
    assert next_step(WorkflowStep.PARTY_DETAILS) == WorkflowStep.MANDATORY_CLAUSES
    assert next_step(WorkflowStep.COMPLETE) is None
    assert previous_step(WorkflowStep.PARTY_DETAILS) is None
    assert previous_step(WorkflowStep.REVIEW) == WorkflowStep.OPTIONAL_CLAUSES


def test_is_valid_email():
    assert is_valid_email("a@x.com")
    assert not is_valid_email("a@x")
    assert not is_valid_email("a x@y.com")
