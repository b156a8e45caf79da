"""Workflow state for the contract-creation wizard.

Holds the contract-in-creation and its progress. One instance exists per
editing session; it is mutated in place by the controller and handed to
the persistence service as a plain mapping.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from contract_wizard.errors import MalformedStateError, ReadOnlyFieldError, UnknownFieldError
from contract_wizard.models import (
    ClauseStatus,
    ComplianceState,
    ContractTerms,
    EditRecord,
    EditSource,
    OrganisationParty,
    Parties,
    PartyRole,
    WorkflowStep,
)
from contract_wizard.policy import ClausePolicy

REQUIRED_KEYS = ("current_step", "parties", "terms", "clauses", "edit_history")

# Never serialized; recomputed after hydration.
TRANSIENT_FIELDS = {"validation_errors"}

# Party fields owned by identity lookup; no field path addresses them.
IDENTITY_ONLY_FIELDS = frozenset({"is_verified"})


class WorkflowState(BaseModel):
    """A contract-in-creation and its progress through the wizard."""

    current_step: WorkflowStep = WorkflowStep.PARTY_DETAILS
    parties: Parties = Field(default_factory=Parties)
    terms: ContractTerms = Field(default_factory=ContractTerms)
    clauses: dict[str, ClauseStatus] = Field(default_factory=dict)
    edit_history: list[EditRecord] = Field(default_factory=list)
    validation_errors: dict[str, str] = Field(default_factory=dict)
    compliance_state: ComplianceState = Field(default_factory=ComplianceState)

    draft_id: str | None = None
    risk_assessment: dict[str, Any] | None = None

    def mandatory_keys(self) -> list[str]:
        return [k for k, c in self.clauses.items() if c.is_mandatory]

    def pending_mandatory(self) -> list[str]:
        return [k for k, c in self.clauses.items() if c.is_mandatory and not c.is_completed]

    def user_set_fields(self) -> set[str]:
        """Fields the user has explicitly edited during the session."""
        return {r.field for r in self.edit_history if r.source == EditSource.USER}

    def protected_fields(self) -> set[str]:
        """Fields an assistant suggestion must not overwrite while non-empty.

        Covers user edits and values filled from a verified identity record.
        """
        return {
            r.field
            for r in self.edit_history
            if r.source in (EditSource.USER, EditSource.IDENTITY)
        }


# ---------------------------------------------------------------------------
# Field paths
# ---------------------------------------------------------------------------


def split_path(path: str) -> tuple[str, str]:
    """Split ``"<section>.<name>"`` into its parts.

    The section is a party role (``disclosing``/``receiving``) or ``terms``.
    """
    section, _, name = path.partition(".")
    if not name:
        raise UnknownFieldError(path)
    if section == "terms":
        if name not in ContractTerms.model_fields:
            raise UnknownFieldError(path)
    elif section in (PartyRole.DISCLOSING.value, PartyRole.RECEIVING.value):
        if name in IDENTITY_ONLY_FIELDS:
            raise ReadOnlyFieldError(path)
        if name not in OrganisationParty.model_fields:
            raise UnknownFieldError(path)
    else:
        raise UnknownFieldError(path)
    return section, name


def read_field(state: WorkflowState, path: str) -> Any:
    """Return the current value at *path*, or ``None`` if the party lacks it."""
    section, name = split_path(path)
    if section == "terms":
        return getattr(state.terms, name)
    party = state.parties.get(PartyRole(section))
    return getattr(party, name, None)


def is_filled(value: Any) -> bool:
    """Return ``True`` when a field value counts as non-empty."""
    if value is None:
        return False
    if isinstance(value, Enum):
        return True
    if isinstance(value, str):
        return bool(value.strip())
    return True


# ---------------------------------------------------------------------------
# Constructors and serialization
# ---------------------------------------------------------------------------


def create_initial(policy: ClausePolicy) -> WorkflowState:
    """Return a fresh state for a new contract.

    Mandatory clauses start active and incomplete, optional clauses start
    inactive. Terms are seeded with the policy's defaults.
    """
    clauses = {
        c.key: ClauseStatus(
            is_mandatory=c.mandatory,
            is_active=c.mandatory,
            is_completed=False,
            risk_level=c.risk_level,
        )
        for c in policy.ordered()
    }
    state = WorkflowState(
        terms=ContractTerms(**policy.default_terms),
        clauses=clauses,
    )
    # Imported here to keep state free of an import cycle with the engine.
    from contract_wizard.workflow.clauses import refresh_compliance
    from contract_wizard.workflow.gate import field_warnings

    refresh_compliance(state)
    state.validation_errors = field_warnings(state, policy)
    return state


def serialize(state: WorkflowState) -> dict[str, Any]:
    """Return a JSON-safe mapping of everything except transient fields."""
    return state.model_dump(mode="json", exclude=TRANSIENT_FIELDS)


def hydrate(serialized: dict[str, Any], policy: ClausePolicy | None = None) -> WorkflowState:
    """Rebuild a state from :func:`serialize` output.

    Args:
        serialized: A previously saved draft state.
        policy: When given, the draft must contain every mandatory clause of
            the policy, and validation warnings are recomputed against it.

    Raises:
        MalformedStateError: If required keys are missing or any value fails
            validation. Nothing is partially hydrated.
    """
    if not isinstance(serialized, dict):
        raise MalformedStateError("Serialized state must be a mapping")

    missing = [key for key in REQUIRED_KEYS if key not in serialized]
    if missing:
        raise MalformedStateError(
            f"Serialized state is missing required keys: {', '.join(missing)}",
            missing_keys=missing,
        )

    try:
        state = WorkflowState.model_validate(
            {k: v for k, v in serialized.items() if k not in TRANSIENT_FIELDS}
        )
    except ValidationError as exc:
        raise MalformedStateError(f"Serialized state is invalid: {exc}") from exc

    if policy is not None:
        absent = [k for k in policy.mandatory_keys if k not in state.clauses]
        if absent:
            raise MalformedStateError(
                f"Draft lacks mandatory clauses: {', '.join(absent)}",
                missing_keys=absent,
            )

    from contract_wizard.workflow.clauses import refresh_compliance
    from contract_wizard.workflow.gate import field_warnings

    refresh_compliance(state)
    if policy is not None:
        state.validation_errors = field_warnings(state, policy)
    return state
