"""Workflow controller - orchestration of one wizard editing session.

The controller is the only component allowed to change ``current_step``.
Every transition runs through the step gate; on success the step moves
forward and the draft is saved. Field edits, clause toggles and AI
suggestions all go through the same mutation path.

Session lifecycle::

    create / load -> edit_field* -> advance -> ... -> review -> complete
                        |                ^
                        v                |
                  request_assistance   retreat (until review)
"""

from __future__ import annotations

import asyncio
import uuid
from enum import Enum
from typing import Any

import structlog

from contract_wizard.assist import AssistBridge, AssistClient, MergeOutcome, merge_suggestions
from contract_wizard.errors import (
    AssistanceUnavailable,
    IdentityLookupFailed,
    PartyNotFound,
    PersistenceFailure,
)
from contract_wizard.identity import IdentityResolver
from contract_wizard.models import (
    ClauseStatus,
    EditSource,
    EventType,
    FieldError,
    GateFailure,
    GateResult,
    HandOffNotice,
    HandOffResult,
    PartyRecord,
    PartyRole,
    TransitionResult,
    WorkflowStep,
)
from contract_wizard.persistence import DraftStore, build_draft, state_digest
from contract_wizard.policy import ClausePolicy
from contract_wizard.streaming import WizardEventStream
from contract_wizard.workflow.clauses import mark_complete, toggle_optional
from contract_wizard.workflow.gate import (
    check_backward,
    check_transition,
    next_step,
    previous_step,
)
from contract_wizard.workflow.mutations import record_edit, set_field
from contract_wizard.workflow.state import (
    WorkflowState,
    create_initial,
    hydrate,
    is_filled,
)

logger = structlog.get_logger(__name__)


class WorkflowController:
    """Drives a single contract-creation session."""

    def __init__(
        self,
        *,
        policy: ClausePolicy,
        store: DraftStore,
        assistant: AssistClient,
        identity: IdentityResolver | None = None,
        state: WorkflowState | None = None,
        session_id: str | None = None,
        events: WizardEventStream | None = None,
    ) -> None:
        self.session_id = session_id or str(uuid.uuid4())
        self.policy = policy
        self._state = state or create_initial(policy)
        self._store = store
        self._bridge = AssistBridge(assistant)
        self._identity = identity
        self._events = events
        self._save_lock = asyncio.Lock()
        self._last_saved_digest: str | None = None
        self._closed = False

    @classmethod
    async def load(
        cls,
        draft_id: str,
        *,
        policy: ClausePolicy,
        store: DraftStore,
        **kwargs: Any,
    ) -> WorkflowController:
        """Resume a session from a saved draft.

        Raises:
            PersistenceFailure: If the draft cannot be fetched.
            MalformedStateError: If the stored state cannot be hydrated.
        """
        draft = await store.load(draft_id)
        state = hydrate(draft.get("state", draft), policy)
        if state.draft_id is None:
            state.draft_id = draft_id

        controller = cls(policy=policy, store=store, state=state, **kwargs)
        controller._last_saved_digest = state_digest(state)
        logger.info(
            "session_resumed",
            session_id=controller.session_id,
            draft_id=draft_id,
            step=state.current_step.value,
        )
        return controller

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def edit_field(self, path: str, value: Any, source: EditSource = EditSource.USER) -> bool:
        """Apply a single field edit. See :func:`set_field`."""
        return set_field(self._state, path, value, self.policy, source=source)

    def edit_fields(self, changes: dict[str, Any]) -> dict[str, bool]:
        """Apply several edits in order and report which were accepted."""
        return {path: self.edit_field(path, value) for path, value in changes.items()}

    def toggle_clause(self, clause_key: str) -> ClauseStatus:
        """Activate or deactivate an optional clause."""
        toggle_optional(self._state, clause_key)
        status = self._state.clauses[clause_key]
        record_edit(self._state, f"clauses.{clause_key}.is_active", status.is_active, EditSource.USER)
        return status

    def mark_clause_complete(self, clause_key: str) -> ClauseStatus:
        """Confirm a clause explicitly."""
        mark_complete(self._state, clause_key)
        record_edit(self._state, f"clauses.{clause_key}.is_completed", True, EditSource.USER)
        return self._state.clauses[clause_key]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def preview_advance(self) -> GateResult:
        """Return what :meth:`advance` would decide, without acting on it."""
        target = next_step(self._state.current_step)
        if target is None:
            return _already_complete()
        return check_transition(self._state, target, self.policy)

    async def advance(self) -> TransitionResult:
        """Move to the next step if the gate allows it, then save."""
        previous = self._state.current_step
        target = next_step(previous)
        gate = _already_complete() if target is None else check_transition(
            self._state, target, self.policy
        )

        if not gate.allowed or target is None:
            logger.info(
                "step_blocked",
                session_id=self.session_id,
                step=previous.value,
                failure=gate.failure.value if gate.failure else None,
                errors=len(gate.errors),
            )
            await self._emit(
                EventType.STEP_BLOCKED,
                {
                    "step": previous.value,
                    "failure": gate.failure.value if gate.failure else None,
                    "errors": [e.model_dump() for e in gate.errors],
                },
                f"Cannot leave '{previous.value}' yet.",
            )
            return TransitionResult(
                allowed=False,
                step=previous,
                previous_step=previous,
                failure=gate.failure,
                errors=gate.errors,
                draft_id=self._state.draft_id,
            )

        self._state.current_step = target
        record_edit(self._state, "current_step", target, EditSource.SYSTEM)
        logger.info(
            "step_advanced",
            session_id=self.session_id,
            previous=previous.value,
            step=target.value,
        )

        persistence_error: str | None = None
        try:
            await self.save()
        except PersistenceFailure as exc:
            persistence_error = str(exc)

        await self._emit(
            EventType.STEP_ADVANCED,
            {"previous": previous.value, "step": target.value, "saved": persistence_error is None},
            f"Moved to '{target.value}'.",
        )
        return TransitionResult(
            allowed=True,
            step=target,
            previous_step=previous,
            draft_id=self._state.draft_id,
            persistence_error=persistence_error,
        )

    def retreat(self) -> TransitionResult:
        """Go back one step, unless legal review has started."""
        previous = self._state.current_step
        gate = check_backward(self._state)
        target = previous_step(previous)

        if not gate.allowed or target is None:
            logger.info(
                "retreat_denied",
                session_id=self.session_id,
                step=previous.value,
                failure=gate.failure.value if gate.failure else None,
            )
            return TransitionResult(
                allowed=False,
                step=previous,
                previous_step=previous,
                failure=gate.failure,
                errors=gate.errors,
                draft_id=self._state.draft_id,
            )

        self._state.current_step = target
        record_edit(self._state, "current_step", target, EditSource.USER)
        logger.info(
            "step_retreated",
            session_id=self.session_id,
            previous=previous.value,
            step=target.value,
        )
        return TransitionResult(
            allowed=True,
            step=target,
            previous_step=previous,
            draft_id=self._state.draft_id,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save(self) -> str:
        """Hand the draft to the draft store.

        Saving an unchanged state is a no-op that returns the known draft
        id. A failed save leaves the state exactly as it was.

        Raises:
            PersistenceFailure: If the store rejects the draft.
        """
        async with self._save_lock:
            digest = state_digest(self._state)
            if self._state.draft_id and digest == self._last_saved_digest:
                logger.debug("save_skipped_unchanged", session_id=self.session_id)
                return self._state.draft_id

            draft = build_draft(self._state, self.policy)
            try:
                draft_id = await self._store.save(draft)
            except PersistenceFailure as exc:
                logger.warning("save_failed", session_id=self.session_id, error=str(exc))
                await self._emit(EventType.SAVE_FAILED, {"error": str(exc)}, "Draft could not be saved.")
                raise

            self._state.draft_id = draft_id
            self._last_saved_digest = digest

        logger.info(
            "draft_saved",
            session_id=self.session_id,
            draft_id=draft_id,
            step=self._state.current_step.value,
        )
        await self._emit(EventType.DRAFT_SAVED, {"draft_id": draft_id}, "Draft saved.")
        return draft_id

    # ------------------------------------------------------------------
    # AI assistance
    # ------------------------------------------------------------------

    async def request_assistance(self, context: str | Enum) -> MergeOutcome | None:
        """Ask the AI service for suggestions and merge them.

        Returns:
            What the merge applied, or ``None`` if the session was closed
            before the result arrived.

        Raises:
            AssistanceInFlight: If a request for *context* is outstanding.
            AssistanceUnavailable: If the AI service failed.
        """
        ctx = context.value if isinstance(context, Enum) else str(context)
        task = self._bridge.begin(self._state, ctx)
        await self._emit(EventType.ASSISTANCE_REQUESTED, {"context": ctx}, f"Asking AI for '{ctx}'.")

        try:
            suggestions = await task
        except asyncio.CancelledError:
            if task.cancelled() and self._bridge.closed:
                logger.info("assistance_discarded", session_id=self.session_id, context=ctx)
                return None
            raise
        except AssistanceUnavailable as exc:
            logger.warning(
                "assistance_failed", session_id=self.session_id, context=ctx, error=str(exc)
            )
            await self._emit(EventType.ASSISTANCE_FAILED, {"context": ctx, "error": str(exc)}, str(exc))
            raise

        if self._bridge.closed:
            logger.info("assistance_discarded", session_id=self.session_id, context=ctx)
            return None

        try:
            outcome = merge_suggestions(self._state, suggestions, self.policy)
        except AssistanceUnavailable as exc:
            logger.warning(
                "assistance_rejected", session_id=self.session_id, context=ctx, error=str(exc)
            )
            await self._emit(EventType.ASSISTANCE_FAILED, {"context": ctx, "error": str(exc)}, str(exc))
            raise
        logger.info(
            "assistance_merged",
            session_id=self.session_id,
            context=ctx,
            applied=len(outcome.applied_fields),
            skipped=len(outcome.skipped_fields),
        )
        await self._emit(
            EventType.ASSISTANCE_MERGED,
            {"context": ctx, **outcome.model_dump()},
            f"AI suggestions for '{ctx}' applied.",
        )
        return outcome

    def assistance_in_flight(self) -> list[str]:
        return self._bridge.in_flight()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def verify_party(self, role: PartyRole | str, app_id: str) -> PartyRecord:
        """Resolve *app_id* and fill the party's details from the record.

        Raises:
            PartyNotFound: If no user matches; the app id field is flagged.
            IdentityLookupFailed: If the identity service is unavailable.
        """
        role = PartyRole(role)
        if self._identity is None:
            raise IdentityLookupFailed("No identity service configured")

        try:
            record = await self._identity.resolve(app_id)
        except PartyNotFound:
            self._state.validation_errors[f"{role.value}.app_id"] = (
                "No registered user found for this App ID"
            )
            raise

        values = {
            "party_type": record.party_type,
            "app_id": record.app_id,
            "legal_name": record.name,
            "email": record.email,
            "phone": record.phone,
            "address": record.address,
            "id_type": record.id_type,
            "id_number": record.id_number,
        }
        for name, value in values.items():
            if is_filled(value):
                set_field(
                    self._state,
                    f"{role.value}.{name}",
                    value,
                    self.policy,
                    source=EditSource.IDENTITY,
                )
        self._state.parties.get(role).is_verified = record.is_verified

        logger.info("party_verified", session_id=self.session_id, role=role.value, app_id=app_id)
        await self._emit(
            EventType.PARTY_VERIFIED,
            {"role": role.value, "app_id": record.app_id, "name": record.name},
            f"Verified {record.name}.",
        )
        return record

    # ------------------------------------------------------------------
    # Hand-off
    # ------------------------------------------------------------------

    async def hand_off(self) -> HandOffResult:
        """Save the draft and address it to the receiving party for signature.

        Needs the receiving party's app id and every mandatory clause
        completed; otherwise the result lists what is missing.

        Raises:
            PersistenceFailure: If the draft cannot be saved.
        """
        receiving_app_id = self._state.parties.receiving.app_id
        errors: list[FieldError] = []
        if not is_filled(receiving_app_id):
            errors.append(
                FieldError(
                    field=f"{PartyRole.RECEIVING.value}.app_id",
                    message="The receiving party's App ID is required",
                )
            )
        if not self._state.compliance_state.can_advance:
            errors.append(
                FieldError(field="clauses", message="All mandatory clauses must be completed")
            )
        if errors:
            logger.info("hand_off_refused", session_id=self.session_id, errors=len(errors))
            return HandOffResult(allowed=False, errors=errors)

        draft_id = await self.save()
        notice = HandOffNotice(
            contract_id=draft_id,
            from_party=self._state.parties.disclosing.app_id,
            to_party=receiving_app_id,
            contract_type=self.policy.contract_type,
        )
        logger.info(
            "draft_handed_off",
            session_id=self.session_id,
            draft_id=draft_id,
            to_party=receiving_app_id,
        )
        await self._emit(
            EventType.HANDED_OFF,
            notice.model_dump(),
            f"Sent to {receiving_app_id} for signature.",
        )
        return HandOffResult(allowed=True, notice=notice)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """End the session; outstanding AI requests are cancelled."""
        if self._closed:
            return
        self._closed = True
        self._bridge.cancel_all()
        logger.info("session_closed", session_id=self.session_id)

    async def _emit(self, event_type: EventType, data: dict[str, Any], message: str) -> None:
        if self._events is not None:
            await self._events.emit(
                session_id=self.session_id,
                event_type=event_type,
                data=data,
                message=message,
            )


def _already_complete() -> GateResult:
    return GateResult.refuse(
        GateFailure.INVALID_TRANSITION,
        [FieldError(field="current_step", message=f"'{WorkflowStep.COMPLETE.value}' is the last step")],
    )
