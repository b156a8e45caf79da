"""Field edits and the edit audit trail."""

from __future__ import annotations

import pytest

from contract_wizard.errors import ReadOnlyFieldError, UnknownFieldError
from contract_wizard.models import EditSource, OrganisationParty, PartyType
from contract_wizard.workflow.mutations import set_field
from contract_wizard.workflow.state import create_initial


def test_edit_history_is_ordered(policy):
    state = create_initial(policy)

    set_field(state, "terms.purpose", "Joint venture", policy)
    set_field(state, "disclosing.legal_name", "Amani", policy)
    set_field(state, "terms.duration_months", 36, policy, source=EditSource.ASSISTANT)

    history = state.edit_history
    assert [r.sequence for r in history] == [0, 1, 2]
    assert [r.field for r in history] == [
        "terms.purpose",
        "disclosing.legal_name",
        "terms.duration_months",
    ]
    assert all(a.timestamp <= b.timestamp for a, b in zip(history, history[1:]))
    assert history[2].source == EditSource.ASSISTANT
    assert state.user_set_fields() == {"terms.purpose", "disclosing.legal_name"}


def test_invalid_value_is_rejected_without_mutation(policy):
    state = create_initial(policy)

    accepted = set_field(state, "terms.duration_months", "twelve", policy)

    assert not accepted
    assert state.terms.duration_months == 24
    assert "terms.duration_months" in state.validation_errors
    assert state.edit_history == []


def test_non_positive_duration_rejected(policy):
    state = create_initial(policy)

    assert not set_field(state, "terms.duration_months", 0, policy)
    assert state.terms.duration_months == 24


def test_empty_string_clears_optional_number(policy):
    state = create_initial(policy)
    set_field(state, "terms.penalty_amount", 1000, policy)

    assert set_field(state, "terms.penalty_amount", "", policy)
    assert state.terms.penalty_amount is None


def test_unknown_field_raises(policy):
    state = create_initial(policy)

    with pytest.raises(UnknownFieldError):
        set_field(state, "terms.colour", "blue", policy)


def test_verification_flag_cannot_be_edited(policy):
    state = create_initial(policy)

    with pytest.raises(ReadOnlyFieldError):
        set_field(state, "disclosing.is_verified", True, policy)

    assert not state.parties.disclosing.is_verified
    assert state.edit_history == []


def test_party_type_change_keeps_shared_fields(policy):
    state = create_initial(policy)
    set_field(state, "receiving.legal_name", "Kamau & Sons", policy)

    assert set_field(state, "receiving.party_type", "partnership", policy)

    party = state.parties.receiving
    assert isinstance(party, OrganisationParty)
    assert party.party_type == PartyType.PARTNERSHIP
    assert party.legal_name == "Kamau & Sons"


def test_registration_number_rejected_for_individual(policy):
    state = create_initial(policy)

    assert not set_field(state, "disclosing.business_registration_number", "X1", policy)
    assert "disclosing.business_registration_number" in state.validation_errors


def test_hand_edited_app_id_is_unverified(policy):
    state = create_initial(policy)
    set_field(state, "disclosing.app_id", "APP-001", policy, source=EditSource.IDENTITY)
    state.parties.disclosing.is_verified = True

    set_field(state, "disclosing.app_id", "APP-002", policy)

    assert not state.parties.disclosing.is_verified
