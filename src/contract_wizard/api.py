"""FastAPI application for the Contract Wizard.

Exposes REST endpoints for:
- Wizard session creation, resumption and teardown
- Field edits, clause toggles and explicit clause completion
- Step transitions (advance / retreat), draft saving and hand-off
- AI assistance and party verification
- SSE streaming of session events
"""

from __future__ import annotations

import json
import time
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from contract_wizard.assist import AssistClient, HttpAssistClient, PolicyAssistClient
from contract_wizard.config import Settings
from contract_wizard.errors import (
    AssistanceInFlight,
    AssistanceUnavailable,
    DraftNotFound,
    IdentityLookupFailed,
    InvariantViolation,
    MalformedStateError,
    PartyNotFound,
    PersistenceFailure,
    UnknownClauseError,
    UnknownFieldError,
    WizardError,
)
from contract_wizard.identity import (
    HttpIdentityResolver,
    IdentityResolver,
    InMemoryIdentityDirectory,
)
from contract_wizard.models import ErrorResponse, EventType, HealthResponse, PartyRole
from contract_wizard.persistence import DraftStore, HttpDraftStore, InMemoryDraftStore
from contract_wizard.policy import ClausePolicy, resolve_policy
from contract_wizard.streaming import WizardEventStream
from contract_wizard.workflow.clauses import render_all
from contract_wizard.workflow.controller import WorkflowController
from contract_wizard.workflow.state import serialize

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CreateSessionRequest(BaseModel):
    """Request body for starting or resuming a wizard session."""

    draft_id: str | None = Field(
        None, description="Resume from this saved draft instead of starting empty."
    )


class FieldChangesRequest(BaseModel):
    """Request body for field edits, applied in order."""

    changes: dict[str, Any] = Field(
        ...,
        description='Mapping of field paths (e.g. "disclosing.email") to new values.',
    )


class AssistRequest(BaseModel):
    """Request body for AI assistance."""

    context: str = Field(..., min_length=1, description="Assistance context tag.")


class VerifyPartyRequest(BaseModel):
    """Request body for party verification."""

    app_id: str = Field(..., min_length=1, description="App id entered by the user.")


# ---------------------------------------------------------------------------
# Session manager (in-memory)
# ---------------------------------------------------------------------------


class SessionManager:
    """In-memory store of live wizard sessions.

    Closing a session, explicitly or through expiry, cancels its AI
    requests and ends its event channel.
    """

    def __init__(self, ttl_seconds: int, events: WizardEventStream) -> None:
        self._sessions: dict[str, WorkflowController] = {}
        self._last_seen: dict[str, float] = {}
        self._ttl = ttl_seconds
        self._events = events

    def add(self, controller: WorkflowController) -> None:
        self._sessions[controller.session_id] = controller
        self.touch(controller.session_id)

    def get(self, session_id: str) -> WorkflowController | None:
        controller = self._sessions.get(session_id)
        if controller is not None:
            self.touch(session_id)
        return controller

    def touch(self, session_id: str) -> None:
        self._last_seen[session_id] = time.monotonic()

    async def close(
        self, session_id: str, message: str = "Wizard session closed."
    ) -> WorkflowController | None:
        self._last_seen.pop(session_id, None)
        controller = self._sessions.pop(session_id, None)
        if controller is None:
            return None
        controller.close()
        await self._events.end_session(session_id, message=message)
        return controller

    async def purge_expired(self) -> list[str]:
        """Close sessions idle for longer than the TTL."""
        cutoff = time.monotonic() - self._ttl
        expired = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in expired:
            await self.close(session_id, message="Wizard session expired.")
        if expired:
            logger.info("sessions_expired", count=len(expired))
        return expired

    def list_sessions(self) -> list[WorkflowController]:
        return list(self._sessions.values())


# ---------------------------------------------------------------------------
# Application state container
# ---------------------------------------------------------------------------


class AppState:
    """Shared application state accessible from route handlers."""

    def __init__(
        self,
        settings: Settings,
        policy: ClausePolicy,
        store: DraftStore,
        assistant: AssistClient,
        identity: IdentityResolver,
    ) -> None:
        self.settings = settings
        self.policy = policy
        self.store = store
        self.assistant = assistant
        self.identity = identity
        self.event_stream = WizardEventStream()
        self.sessions = SessionManager(settings.session_ttl_seconds, self.event_stream)

    def controller_kwargs(self) -> dict[str, Any]:
        return {
            "policy": self.policy,
            "store": self.store,
            "assistant": self.assistant,
            "identity": self.identity,
            "events": self.event_stream,
        }


def build_collaborators(
    settings: Settings, policy: ClausePolicy
) -> tuple[DraftStore, AssistClient, IdentityResolver]:
    """Create the external collaborators named in *settings*.

    Unconfigured collaborators fall back to in-process implementations.
    """
    store: DraftStore = (
        HttpDraftStore(settings.persistence_url, timeout=settings.http_timeout_seconds)
        if settings.persistence_url
        else InMemoryDraftStore()
    )
    assistant: AssistClient = (
        HttpAssistClient(settings.ai_assist_url, timeout=settings.ai_assist_timeout_seconds)
        if settings.ai_assist_url
        else PolicyAssistClient(policy)
    )
    identity: IdentityResolver = (
        HttpIdentityResolver(settings.identity_url, timeout=settings.http_timeout_seconds)
        if settings.identity_url
        else InMemoryIdentityDirectory()
    )
    return store, assistant, identity


def _session_view(controller: WorkflowController) -> dict[str, Any]:
    state = controller.state
    gate = controller.preview_advance()
    return {
        "session_id": controller.session_id,
        "state": serialize(state),
        "validation_errors": state.validation_errors,
        "compliance_state": state.compliance_state.model_dump(),
        "next_step_allowed": gate.allowed,
        "blocking_errors": [e.model_dump() for e in gate.errors],
        "assistance_in_flight": controller.assistance_in_flight(),
    }


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    *,
    policy: ClausePolicy | None = None,
    store: DraftStore | None = None,
    assistant: AssistClient | None = None,
    identity: IdentityResolver | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()
    policy = policy or resolve_policy(settings.policy_path)
    default_store, default_assistant, default_identity = build_collaborators(settings, policy)

    app = FastAPI(
        title="Contract Wizard",
        description=(
            "Multi-step contract-creation workflow: party details, mandatory and "
            "optional clauses, review and completion, with AI assistance and "
            "draft persistence."
        ),
        version=settings.service_version,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    state = AppState(
        settings,
        policy,
        store or default_store,
        assistant or default_assistant,
        identity or default_identity,
    )
    app.state.app_state = state
    app.state.settings = settings

    def _get_controller(session_id: str) -> WorkflowController:
        controller = state.sessions.get(session_id)
        if controller is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return controller

    # -------------------------------------------------------------------
    # Health and policy
    # -------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            service=settings.service_name,
            version=settings.service_version,
        )

    @app.get("/api/v1/policy", tags=["policy"])
    async def get_policy() -> dict[str, Any]:
        """Describe the active clause policy."""
        return state.policy.model_dump(mode="json")

    # -------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------

    @app.post("/api/v1/sessions", tags=["sessions"])
    async def create_session(req: CreateSessionRequest | None = None) -> dict[str, Any]:
        """Start a new wizard session, or resume one from a saved draft."""
        await state.sessions.purge_expired()
        draft_id = req.draft_id if req else None

        if draft_id:
            controller = await WorkflowController.load(draft_id, **state.controller_kwargs())
        else:
            controller = WorkflowController(**state.controller_kwargs())
        state.sessions.add(controller)

        await state.event_stream.emit(
            session_id=controller.session_id,
            event_type=EventType.SESSION_CREATED,
            data={"draft_id": draft_id, "step": controller.state.current_step.value},
            message="Wizard session started.",
        )
        logger.info("session_created", session_id=controller.session_id, draft_id=draft_id)

        view = _session_view(controller)
        view["stream_url"] = f"/api/v1/sessions/{controller.session_id}/stream"
        return view

    @app.get("/api/v1/sessions", tags=["sessions"])
    async def list_sessions() -> dict[str, Any]:
        """List live sessions."""
        sessions = state.sessions.list_sessions()
        return {
            "sessions": [
                {
                    "session_id": c.session_id,
                    "step": c.state.current_step.value,
                    "draft_id": c.state.draft_id,
                    "mandatory_completion_percent": (
                        c.state.compliance_state.mandatory_completion_percent
                    ),
                }
                for c in sessions
            ],
            "total": len(sessions),
        }

    @app.get("/api/v1/sessions/{session_id}", tags=["sessions"])
    async def get_session(session_id: str) -> dict[str, Any]:
        """Return the current state of a session."""
        return _session_view(_get_controller(session_id))

    @app.delete("/api/v1/sessions/{session_id}", tags=["sessions"])
    async def close_session(session_id: str) -> dict[str, Any]:
        """Close a session; outstanding AI requests are cancelled."""
        controller = await state.sessions.close(session_id)
        if controller is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return {"session_id": session_id, "closed": True, "draft_id": controller.state.draft_id}

    # -------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------

    @app.patch("/api/v1/sessions/{session_id}/fields", tags=["edits"])
    async def edit_fields(session_id: str, req: FieldChangesRequest) -> dict[str, Any]:
        """Apply field edits in order."""
        controller = _get_controller(session_id)
        accepted = controller.edit_fields(req.changes)
        view = _session_view(controller)
        view["accepted"] = accepted
        return view

    @app.post("/api/v1/sessions/{session_id}/clauses/{clause_key}/toggle", tags=["clauses"])
    async def toggle_clause(session_id: str, clause_key: str) -> dict[str, Any]:
        """Activate or deactivate an optional clause."""
        controller = _get_controller(session_id)
        status = controller.toggle_clause(clause_key)
        return {"clause": clause_key, **status.model_dump(mode="json")}

    @app.post("/api/v1/sessions/{session_id}/clauses/{clause_key}/complete", tags=["clauses"])
    async def complete_clause(session_id: str, clause_key: str) -> dict[str, Any]:
        """Mark a clause complete."""
        controller = _get_controller(session_id)
        status = controller.mark_clause_complete(clause_key)
        return {
            "clause": clause_key,
            **status.model_dump(mode="json"),
            "compliance_state": controller.state.compliance_state.model_dump(),
        }

    @app.get("/api/v1/sessions/{session_id}/clauses", tags=["clauses"])
    async def rendered_clauses(session_id: str) -> dict[str, Any]:
        """Render the text of every active clause."""
        controller = _get_controller(session_id)
        return {
            "session_id": session_id,
            "clauses": render_all(controller.state, controller.policy),
        }

    # -------------------------------------------------------------------
    # Transitions and persistence
    # -------------------------------------------------------------------

    @app.post("/api/v1/sessions/{session_id}/advance", tags=["workflow"])
    async def advance(session_id: str) -> JSONResponse:
        """Move to the next step if the gate allows it."""
        controller = _get_controller(session_id)
        result = await controller.advance()
        return JSONResponse(
            status_code=200 if result.allowed else 422,
            content=result.model_dump(mode="json"),
        )

    @app.post("/api/v1/sessions/{session_id}/retreat", tags=["workflow"])
    async def retreat(session_id: str) -> JSONResponse:
        """Go back one step, unless legal review has started."""
        controller = _get_controller(session_id)
        result = controller.retreat()
        if result.allowed:
            await state.event_stream.emit(
                session_id=session_id,
                event_type=EventType.STEP_RETREATED,
                data={"previous": result.previous_step.value, "step": result.step.value},
                message=f"Returned to '{result.step.value}'.",
            )
        return JSONResponse(
            status_code=200 if result.allowed else 409,
            content=result.model_dump(mode="json"),
        )

    @app.post("/api/v1/sessions/{session_id}/save", tags=["workflow"])
    async def save(session_id: str) -> dict[str, Any]:
        """Save the draft."""
        controller = _get_controller(session_id)
        draft_id = await controller.save()
        return {
            "session_id": session_id,
            "draft_id": draft_id,
            "validation_errors": controller.state.validation_errors,
        }

    @app.post("/api/v1/sessions/{session_id}/hand-off", tags=["workflow"])
    async def hand_off(session_id: str) -> JSONResponse:
        """Save the draft and address it to the receiving party for signature."""
        controller = _get_controller(session_id)
        result = await controller.hand_off()
        return JSONResponse(
            status_code=200 if result.allowed else 422,
            content=result.model_dump(mode="json"),
        )

    # -------------------------------------------------------------------
    # AI assistance and identity
    # -------------------------------------------------------------------

    @app.post("/api/v1/sessions/{session_id}/assist", tags=["assistance"])
    async def assist(session_id: str, req: AssistRequest) -> dict[str, Any]:
        """Request AI suggestions for a context and merge them."""
        controller = _get_controller(session_id)
        outcome = await controller.request_assistance(req.context)
        view = _session_view(controller)
        view["merge"] = outcome.model_dump() if outcome else None
        view["risk_assessment"] = controller.state.risk_assessment
        return view

    @app.post("/api/v1/sessions/{session_id}/parties/{role}/verify", tags=["parties"])
    async def verify_party(
        session_id: str, role: PartyRole, req: VerifyPartyRequest
    ) -> dict[str, Any]:
        """Resolve an app id and fill the party's details."""
        controller = _get_controller(session_id)
        record = await controller.verify_party(role, req.app_id)
        view = _session_view(controller)
        view["party"] = record.model_dump(mode="json")
        return view

    # -------------------------------------------------------------------
    # SSE streaming
    # -------------------------------------------------------------------

    @app.get("/api/v1/sessions/{session_id}/stream", tags=["sessions"])
    async def stream_session(session_id: str) -> EventSourceResponse:
        """SSE stream of session events."""
        _get_controller(session_id)

        async def event_generator():  # type: ignore[no-untyped-def]
            async for event in state.event_stream.subscribe(session_id):
                yield {
                    "event": event.event_type.value,
                    "data": json.dumps(event.model_dump(mode="json")),
                }

        return EventSourceResponse(event_generator())

    # -------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------

    def _error(status_code: int, error: str, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=error,
                detail=str(exc),
                status_code=status_code,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(WizardError)
    async def wizard_exception_handler(request: Request, exc: WizardError) -> JSONResponse:
        """Map wizard errors to HTTP responses."""
        if isinstance(exc, (UnknownClauseError, PartyNotFound, DraftNotFound)):
            status_code, error = 404, type(exc).__name__
        elif isinstance(exc, (MalformedStateError, UnknownFieldError)):
            status_code, error = 422, type(exc).__name__
        elif isinstance(exc, InvariantViolation):
            status_code, error = 400, type(exc).__name__
        elif isinstance(exc, AssistanceInFlight):
            status_code, error = 409, type(exc).__name__
        elif isinstance(exc, (AssistanceUnavailable, IdentityLookupFailed)):
            status_code, error = 503, type(exc).__name__
        elif isinstance(exc, PersistenceFailure):
            status_code, error = 502, type(exc).__name__
        else:
            status_code, error = 400, type(exc).__name__

        logger.warning(
            "request_failed",
            error=error,
            detail=str(exc),
            path=request.url.path,
            status_code=status_code,
        )
        return _error(status_code, error, exc)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all error handler."""
        logger.error("unhandled_exception", error=str(exc), path=request.url.path)
        return _error(500, "Internal server error", exc)

    return app
