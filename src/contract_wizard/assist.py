"""AI assistance bridge.

Sends the current workflow state to the AI assistance service and merges
the returned suggestions back through the regular mutation path, so the
same invariants hold for AI-produced values as for user edits.

At most one request per context tag may be outstanding. A duplicate is
rejected before any network call is made.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import httpx
import structlog
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from contract_wizard.errors import AssistanceInFlight, AssistanceUnavailable, UnknownFieldError
from contract_wizard.models import (
    AssistContext,
    ContractTerms,
    EditSource,
    PartyRole,
    RiskLevel,
    Suggestions,
    WorkflowStep,
)
from contract_wizard.policy import ClausePolicy
from contract_wizard.workflow.clauses import refresh_compliance, toggle_optional
from contract_wizard.workflow.gate import check_party_details, field_warnings
from contract_wizard.workflow.mutations import record_edit, set_field
from contract_wizard.workflow.state import WorkflowState, is_filled, read_field, serialize

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


class AssistClient(Protocol):
    """Anything that can answer an assistance request."""

    async def assist(self, context: str, snapshot: dict[str, Any]) -> Suggestions: ...


class HttpAssistClient:
    """Client for the external ``POST /assist`` endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = http_client is None

    async def assist(self, context: str, snapshot: dict[str, Any]) -> Suggestions:
        try:
            response = await self._client.post(
                "/assist", json={"context": context, "state": snapshot}
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise AssistanceUnavailable(f"AI assistance timed out for '{context}'") from exc
        except httpx.HTTPStatusError as exc:
            raise AssistanceUnavailable(
                f"AI assistance returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise AssistanceUnavailable(f"AI assistance unreachable: {exc}") from exc
        except ValueError as exc:
            raise AssistanceUnavailable("AI assistance returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise AssistanceUnavailable("AI assistance returned a non-object response")
        try:
            return Suggestions.model_validate(payload)
        except ValidationError as exc:
            raise AssistanceUnavailable(f"AI assistance response is malformed: {exc}") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class PolicyAssistClient:
    """Offline assistant deriving suggestions from the clause policy.

    Used when no AI service is configured. It fills empty terms with the
    policy defaults, recommends the policy's recommended optional clauses
    and produces a simple risk assessment.
    """

    def __init__(self, policy: ClausePolicy) -> None:
        self._policy = policy

    async def assist(self, context: str, snapshot: dict[str, Any]) -> Suggestions:
        terms = snapshot.get("terms", {})
        clauses = snapshot.get("clauses", {})

        form_fields: dict[str, Any] = {}
        if context in (AssistContext.MANDATORY_CLAUSES.value, AssistContext.GENERAL_HELP.value):
            form_fields = {
                f"terms.{name}": value
                for name, value in self._policy.default_terms.items()
                if not is_filled(terms.get(name))
            }

        recommended: dict[str, Any] = {}
        if context in (
            AssistContext.OPTIONAL_CLAUSES.value,
            AssistContext.SUGGEST_IMPROVEMENTS.value,
        ):
            recommended = {
                c.key: {"is_active": True, "ai_recommended": True}
                for c in self._policy.clauses
                if not c.mandatory and c.recommended
            }

        risk: dict[str, Any] | None = None
        if context in (
            AssistContext.FINAL_REVIEW.value,
            AssistContext.COMPLIANCE_REVIEW.value,
        ):
            risk = self._assess(terms, clauses)

        return Suggestions(
            form_fields=form_fields,
            recommended_clauses=recommended,
            risk_assessment=risk,
        )

    def _assess(self, terms: dict[str, Any], clauses: dict[str, Any]) -> dict[str, Any]:
        findings: list[str] = []
        duration = terms.get("duration_months")
        if duration and duration > self._policy.duration_ceiling_months:
            findings.append(
                f"Duration of {duration} months exceeds the "
                f"{self._policy.duration_ceiling_months}-month ceiling"
            )
        high_risk = [
            key
            for key, status in clauses.items()
            if status.get("is_active") and status.get("risk_level") == RiskLevel.HIGH.value
        ]
        if high_risk:
            findings.append(f"High-risk clauses active: {', '.join(high_risk)}")
        pending = [
            key
            for key, status in clauses.items()
            if status.get("is_mandatory") and not status.get("is_completed")
        ]
        if pending:
            findings.append(f"Mandatory clauses pending: {', '.join(pending)}")

        if pending or (duration and duration > self._policy.duration_ceiling_months):
            level = RiskLevel.HIGH
        elif high_risk:
            level = RiskLevel.MEDIUM
        else:
            level = RiskLevel.LOW
        return {"overall_risk": level.value, "findings": findings}


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


class MergeOutcome(BaseModel):
    """What a merge applied and what it left alone."""

    applied_fields: list[str] = Field(default_factory=list)
    skipped_fields: list[str] = Field(default_factory=list)
    activated_clauses: list[str] = Field(default_factory=list)
    deactivated_clauses: list[str] = Field(default_factory=list)
    recommended_clauses: list[str] = Field(default_factory=list)


def flatten_form_fields(form_fields: dict[str, Any]) -> dict[str, Any]:
    """Normalise suggested form fields to dotted field paths.

    Accepts dotted paths (``"terms.purpose"``), nested party or terms
    mappings (``{"disclosing": {"email": ...}}``) and bare term names
    (``"purpose"``).
    """
    roles = {r.value for r in PartyRole}
    flat: dict[str, Any] = {}
    for key, value in form_fields.items():
        if "." in key:
            flat[key] = value
        elif (key in roles or key == "terms") and isinstance(value, dict):
            for name, inner in value.items():
                flat[f"{key}.{name}"] = inner
        elif key in ContractTerms.model_fields:
            flat[f"terms.{key}"] = value
        else:
            flat[key] = value
    return flat


class ClauseRecommendation(BaseModel):
    """One entry of ``recommendedClauses`` after normalisation."""

    is_active: bool | None = Field(
        default=None, validation_alias=AliasChoices("is_active", "isActive", "active")
    )
    ai_recommended: bool = Field(
        default=True,
        validation_alias=AliasChoices("ai_recommended", "aiRecommended", "recommended"),
    )
    risk_level: RiskLevel | None = Field(
        default=None, validation_alias=AliasChoices("risk_level", "riskLevel")
    )


def parse_clause_recommendations(
    recommended: dict[str, Any],
) -> dict[str, ClauseRecommendation]:
    """Validate every clause recommendation before any of them is applied.

    A bare boolean means "recommend and activate" (or neither).

    Raises:
        AssistanceUnavailable: If any entry has an unusable shape.
    """
    parsed: dict[str, ClauseRecommendation] = {}
    for key, value in recommended.items():
        if isinstance(value, bool):
            parsed[key] = ClauseRecommendation(is_active=value, ai_recommended=value)
            continue
        if not isinstance(value, dict):
            raise AssistanceUnavailable(
                f"AI recommendation for clause '{key}' is malformed"
            )
        try:
            parsed[key] = ClauseRecommendation.model_validate(value)
        except ValidationError as exc:
            raise AssistanceUnavailable(
                f"AI recommendation for clause '{key}' is malformed: {exc}"
            ) from exc
    return parsed


def merge_suggestions(
    state: WorkflowState,
    suggestions: Suggestions,
    policy: ClausePolicy,
) -> MergeOutcome:
    """Apply AI suggestions without overriding user intent.

    A suggested field is skipped when the user set it, or identity lookup
    filled it, and it is still non-empty. Mandatory clauses are never
    deactivated and never completed by a suggestion.

    Raises:
        AssistanceUnavailable: If the clause recommendations are malformed.
            Nothing has been applied when this is raised.
    """
    recommendations = parse_clause_recommendations(suggestions.recommended_clauses)
    outcome = MergeOutcome()
    protected = state.protected_fields()

    for path, value in flatten_form_fields(suggestions.form_fields).items():
        try:
            current = read_field(state, path)
        except UnknownFieldError:
            logger.warning("suggestion_unknown_field", field=path)
            outcome.skipped_fields.append(path)
            continue
        if path in protected and is_filled(current):
            outcome.skipped_fields.append(path)
            continue
        if current == value or not is_filled(value):
            continue
        if set_field(state, path, value, policy, source=EditSource.ASSISTANT):
            outcome.applied_fields.append(path)
        else:
            outcome.skipped_fields.append(path)

    for key, rec in recommendations.items():
        status = state.clauses.get(key)
        if status is None:
            logger.warning("suggestion_unknown_clause", clause=key)
            continue

        update: dict[str, Any] = {"ai_recommended": rec.ai_recommended}
        if rec.risk_level is not None:
            update["risk_level"] = rec.risk_level
        state.clauses[key] = status.model_copy(update=update)
        if rec.ai_recommended:
            outcome.recommended_clauses.append(key)

        toggle_field = f"clauses.{key}.is_active"
        if (
            status.is_mandatory
            or rec.is_active is None
            or rec.is_active == status.is_active
            or toggle_field in protected
        ):
            continue
        toggle_optional(state, key)
        record_edit(state, toggle_field, rec.is_active, EditSource.ASSISTANT)
        target = outcome.activated_clauses if rec.is_active else outcome.deactivated_clauses
        target.append(key)

    if suggestions.risk_assessment is not None:
        state.risk_assessment = suggestions.risk_assessment

    refresh_compliance(state)
    state.validation_errors = field_warnings(state, policy)
    return outcome


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------


class AssistBridge:
    """Tracks in-flight assistance requests for one editing session."""

    def __init__(self, client: AssistClient) -> None:
        self._client = client
        self._inflight: dict[str, asyncio.Task[Suggestions]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def in_flight(self) -> list[str]:
        return [ctx for ctx, task in self._inflight.items() if not task.done()]

    def begin(self, state: WorkflowState, context: str) -> asyncio.Task[Suggestions]:
        """Start a request for *context* and return its task.

        Raises:
            AssistanceInFlight: If a request for *context* is outstanding.
                Raised synchronously; no request is sent.
            AssistanceUnavailable: If the session has been closed.
        """
        if self._closed:
            raise AssistanceUnavailable("The editing session has been closed")
        existing = self._inflight.get(context)
        if existing is not None and not existing.done():
            raise AssistanceInFlight(context)

        snapshot = serialize(state)
        snapshot["context_hints"] = {
            "current_step": state.current_step.value,
            "mandatory_completion_percent": state.compliance_state.mandatory_completion_percent,
            "party_details_complete": check_party_details(state).allowed,
            "is_final": state.current_step == WorkflowStep.COMPLETE,
        }
        task = asyncio.create_task(self._client.assist(context, snapshot))
        self._inflight[context] = task

        def _release(done: asyncio.Task[Suggestions]) -> None:
            if self._inflight.get(context) is done:
                del self._inflight[context]

        task.add_done_callback(_release)
        logger.debug("assistance_started", context=context)
        return task

    async def request_assistance(self, state: WorkflowState, context: str) -> Suggestions:
        """Request suggestions for *context* and wait for them."""
        return await self.begin(state, context)

    def cancel_all(self) -> None:
        """Cancel outstanding requests and refuse new ones."""
        self._closed = True
        for context, task in list(self._inflight.items()):
            if not task.done():
                task.cancel()
                logger.info("assistance_cancelled", context=context)
