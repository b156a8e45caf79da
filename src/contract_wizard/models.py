"""Pydantic models for the Contract Wizard.

Defines the domain objects shared by the workflow, the AI bridge, the
persistence adapters and the API: workflow steps, party records, contract
terms, clause status, the edit audit trail, gate results and SSE events.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class WorkflowStep(str, Enum):
    """Steps of the contract-creation wizard, in order."""

    PARTY_DETAILS = "party_details"
    MANDATORY_CLAUSES = "mandatory_clauses"
    OPTIONAL_CLAUSES = "optional_clauses"
    REVIEW = "review"
    COMPLETE = "complete"

    @property
    def index(self) -> int:
        return STEP_ORDER.index(self)


STEP_ORDER: list[WorkflowStep] = list(WorkflowStep)

# Once legal review starts the wizard is a one-way door.
LOCKED_STEPS = frozenset({WorkflowStep.REVIEW, WorkflowStep.COMPLETE})


class PartyRole(str, Enum):
    """The two sides of the agreement."""

    DISCLOSING = "disclosing"
    RECEIVING = "receiving"


class PartyType(str, Enum):
    """Legal form of a party."""

    INDIVIDUAL = "individual"
    COMPANY = "company"
    PARTNERSHIP = "partnership"
    SOLE_PROPRIETORSHIP = "sole_proprietorship"


class IdType(str, Enum):
    """Identification document presented by a party."""

    NATIONAL_ID = "national_id"
    PASSPORT = "passport"
    COMPANY_REGISTRATION = "company_registration"


class RiskLevel(str, Enum):
    """Risk severity of a clause."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DisputeResolutionMethod(str, Enum):
    """How disputes under the agreement are resolved."""

    ARBITRATION = "arbitration"
    COURT = "court"
    MEDIATION = "mediation"


class EditSource(str, Enum):
    """Who produced a recorded edit."""

    USER = "user"
    ASSISTANT = "assistant"
    IDENTITY = "identity"
    SYSTEM = "system"


class GateFailure(str, Enum):
    """Reasons a step transition can be refused."""

    INCOMPLETE_PARTY_INFO = "IncompletePartyInfo"
    MANDATORY_CLAUSES_INCOMPLETE = "MandatoryClausesIncomplete"
    COMPLIANCE_CHECK_FAILED = "ComplianceCheckFailed"
    BACKWARD_TRANSITION_DENIED = "BackwardTransitionDenied"
    INVALID_TRANSITION = "InvalidTransition"


class EventType(str, Enum):
    """Kinds of session event published on the SSE stream."""

    SESSION_CREATED = "session_created"
    STEP_ADVANCED = "step_advanced"
    STEP_BLOCKED = "step_blocked"
    STEP_RETREATED = "step_retreated"
    DRAFT_SAVED = "draft_saved"
    SAVE_FAILED = "save_failed"
    ASSISTANCE_REQUESTED = "assistance_requested"
    ASSISTANCE_MERGED = "assistance_merged"
    ASSISTANCE_FAILED = "assistance_failed"
    PARTY_VERIFIED = "party_verified"
    HANDED_OFF = "handed_off"
    SESSION_CLOSED = "session_closed"



class AssistContext(str, Enum):
    """Context tags understood by the AI assistance endpoint."""

    PARTY_VERIFICATION = "party_verification"
    MANDATORY_CLAUSES = "mandatory_clauses"
    OPTIONAL_CLAUSES = "optional_clauses"
    CLAUSE_GUIDANCE = "clause_guidance"
    COMPLIANCE_REVIEW = "compliance_review"
    SUGGEST_IMPROVEMENTS = "suggest_improvements"
    FINAL_REVIEW = "final_review"
    GENERAL_HELP = "general_help"


# ---------------------------------------------------------------------------
# Parties
# ---------------------------------------------------------------------------


class _PartyBase(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    legal_name: str = ""
    id_type: IdType = IdType.NATIONAL_ID
    id_number: str = ""
    address: str = ""
    email: str = ""
    phone: str = ""
    app_id: str = ""
    is_verified: bool = False


class IndividualParty(_PartyBase):
    """A natural person."""

    party_type: Literal[PartyType.INDIVIDUAL] = PartyType.INDIVIDUAL


class OrganisationParty(_PartyBase):
    """A company, partnership or sole proprietorship."""

    party_type: Literal[
        PartyType.COMPANY,
        PartyType.PARTNERSHIP,
        PartyType.SOLE_PROPRIETORSHIP,
    ]
    business_registration_number: str = ""


Party = Annotated[
    Union[IndividualParty, OrganisationParty],
    Field(discriminator="party_type"),
]


class Parties(BaseModel):
    """Both sides of the agreement."""

    model_config = ConfigDict(validate_assignment=True)

    disclosing: Party = Field(default_factory=IndividualParty)
    receiving: Party = Field(default_factory=IndividualParty)

    def get(self, role: PartyRole) -> IndividualParty | OrganisationParty:
        return getattr(self, role.value)


# ---------------------------------------------------------------------------
# Terms and clauses
# ---------------------------------------------------------------------------


class ContractTerms(BaseModel):
    """Free-text and scalar terms of the agreement."""

    model_config = ConfigDict(validate_assignment=True)

    purpose: str = ""
    permitted_use: str = ""
    confidential_info_scope: str = ""
    duration_months: int | None = Field(default=None, gt=0)
    effective_date: str = ""
    return_timeline_days: int | None = Field(default=None, gt=0)
    survival_years: int | None = Field(default=None, gt=0)
    governing_law: str = ""
    jurisdiction: str = ""
    dispute_resolution_method: DisputeResolutionMethod | None = None
    arbitration_location: str = ""
    penalty_amount: float | None = Field(default=None, ge=0)
    penalty_currency: str = ""


class ClauseStatus(BaseModel):
    """Progress of a single clause within the wizard."""

    is_mandatory: bool
    is_active: bool
    is_completed: bool = False
    risk_level: RiskLevel = RiskLevel.LOW
    ai_recommended: bool = False

    @model_validator(mode="after")
    def _mandatory_is_active(self) -> ClauseStatus:
        if self.is_mandatory and not self.is_active:
            raise ValueError("mandatory clauses are always active")
        return self


class EditRecord(BaseModel):
    """One immutable entry of the edit audit trail."""

    model_config = ConfigDict(frozen=True)

    sequence: int
    field: str
    value: Any = None
    source: EditSource = EditSource.USER
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))


class ComplianceState(BaseModel):
    """Derived mandatory-clause compliance summary."""

    mandatory_completion_percent: int = Field(default=0, ge=0, le=100)
    can_advance: bool = False


# ---------------------------------------------------------------------------
# Gate results
# ---------------------------------------------------------------------------


class FieldError(BaseModel):
    """A validation problem attached to a specific field or clause key."""

    field: str
    message: str


class GateResult(BaseModel):
    """Outcome of a StepGate check."""

    allowed: bool
    failure: GateFailure | None = None
    errors: list[FieldError] = Field(default_factory=list)

    @classmethod
    def ok(cls) -> GateResult:
        return cls(allowed=True)

    @classmethod
    def refuse(cls, failure: GateFailure, errors: list[FieldError]) -> GateResult:
        return cls(allowed=False, failure=failure, errors=errors)


class TransitionResult(BaseModel):
    """Outcome of a controller step transition."""

    allowed: bool
    step: WorkflowStep
    previous_step: WorkflowStep
    failure: GateFailure | None = None
    errors: list[FieldError] = Field(default_factory=list)
    draft_id: str | None = None
    persistence_error: str | None = None


class HandOffNotice(BaseModel):
    """What the second party receives when a completed draft is handed over."""

    contract_id: str
    from_party: str
    to_party: str
    contract_type: str
    status: Literal["pending_signature"] = "pending_signature"


class HandOffResult(BaseModel):
    """Outcome of handing a draft to the receiving party."""

    allowed: bool
    notice: HandOffNotice | None = None
    errors: list[FieldError] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# AI suggestions and identity
# ---------------------------------------------------------------------------


class Suggestions(BaseModel):
    """Response of the AI assistance endpoint. Every part is optional."""

    model_config = ConfigDict(populate_by_name=True)

    form_fields: dict[str, Any] = Field(default_factory=dict, alias="formFields")
    recommended_clauses: dict[str, Any] = Field(
        default_factory=dict, alias="recommendedClauses"
    )
    risk_assessment: dict[str, Any] | None = Field(default=None, alias="riskAssessment")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class PartyRecord(BaseModel):
    """A verified user returned by the identity service."""

    app_id: str
    name: str
    email: str = ""
    phone: str = ""
    address: str = ""
    id_type: IdType | None = None
    id_number: str = ""
    party_type: PartyType = PartyType.INDIVIDUAL
    is_verified: bool = True


# ---------------------------------------------------------------------------
# Events and API envelopes
# ---------------------------------------------------------------------------


class WizardEvent(BaseModel):
    """SSE event emitted while a wizard session is being edited."""

    event_type: EventType
    session_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))


class HealthResponse(BaseModel):
    """Health check payload."""

    status: str
    service: str
    version: str


class ErrorResponse(BaseModel):
    """Error payload returned by the API exception handlers."""

    error: str
    detail: str = ""
    status_code: int
    errors: list[FieldError] = Field(default_factory=list)
