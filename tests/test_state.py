"""Workflow state construction, serialization and hydration."""

from __future__ import annotations

import pytest

from contract_wizard.errors import MalformedStateError, UnknownFieldError
from contract_wizard.models import PartyType, WorkflowStep
from contract_wizard.workflow.mutations import set_field
from contract_wizard.workflow.state import (
    REQUIRED_KEYS,
    create_initial,
    hydrate,
    read_field,
    serialize,
    split_path,
)


def test_create_initial(policy):
    state = create_initial(policy)

    assert state.current_step == WorkflowStep.PARTY_DETAILS
    assert len(state.mandatory_keys()) == 10
    assert len(state.clauses) == 16
    for key in policy.mandatory_keys:
        assert state.clauses[key].is_active
        assert not state.clauses[key].is_completed
    for key in policy.optional_keys:
        assert not state.clauses[key].is_active
    assert state.terms.duration_months == 24
    assert state.terms.penalty_currency == "KSH"
    assert state.compliance_state.mandatory_completion_percent == 0
    assert not state.compliance_state.can_advance
    assert state.edit_history == []


def test_serialize_excludes_validation_errors(policy):
    state = create_initial(policy)
    set_field(state, "disclosing.email", "not-an-email", policy)
    assert "disclosing.email" in state.validation_errors

    data = serialize(state)
    assert "validation_errors" not in data
    for key in REQUIRED_KEYS:
        assert key in data


def test_round_trip(policy):
    state = create_initial(policy)
    set_field(state, "disclosing.legal_name", "Amani Holdings Ltd", policy)
    set_field(state, "disclosing.party_type", "company", policy)
    set_field(state, "receiving.email", "broken", policy)
    set_field(state, "terms.purpose", "Joint venture", policy)

    restored = hydrate(serialize(state), policy)

    assert restored == state
    assert restored.parties.disclosing.party_type == PartyType.COMPANY
    assert restored.validation_errors == state.validation_errors


def test_hydrate_missing_keys(policy):
    data = serialize(create_initial(policy))
    del data["clauses"]
    del data["edit_history"]

    with pytest.raises(MalformedStateError) as exc_info:
        hydrate(data, policy)
    assert exc_info.value.missing_keys == ["clauses", "edit_history"]


def test_hydrate_rejects_invalid_values(policy):
    data = serialize(create_initial(policy))
    data["current_step"] = "signing"

    with pytest.raises(MalformedStateError):
        hydrate(data, policy)


def test_hydrate_rejects_inactive_mandatory_clause(policy):
    data = serialize(create_initial(policy))
    data["clauses"]["dispute_resolution"]["is_active"] = False

    with pytest.raises(MalformedStateError):
        hydrate(data, policy)


def test_hydrate_requires_policy_mandatory_clauses(policy):
    data = serialize(create_initial(policy))
    del data["clauses"]["signatures_execution"]

    with pytest.raises(MalformedStateError) as exc_info:
        hydrate(data, policy)
    assert exc_info.value.missing_keys == ["signatures_execution"]


def test_hydrate_recomputes_compliance(policy):
    data = serialize(create_initial(policy))
    for key in policy.mandatory_keys:
        data["clauses"][key]["is_completed"] = True
    data["compliance_state"] = {"mandatory_completion_percent": 0, "can_advance": False}

    state = hydrate(data, policy)
    assert state.compliance_state.mandatory_completion_percent == 100
    assert state.compliance_state.can_advance


def test_field_paths(policy):
    state = create_initial(policy)

    assert split_path("terms.purpose") == ("terms", "purpose")
    assert split_path("receiving.email") == ("receiving", "email")
    assert read_field(state, "disclosing.business_registration_number") is None
    for path in ("purpose", "terms.colour", "witness.email", "disclosing.age"):
        with pytest.raises(UnknownFieldError):
            split_path(path)
