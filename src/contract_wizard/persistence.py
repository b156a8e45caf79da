"""Draft persistence adapters.

The durable copy of a draft lives in an external service. Saves are
upserts: saving the same draft twice never creates a second record.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx
import structlog

from contract_wizard.errors import DraftNotFound, PersistenceFailure
from contract_wizard.policy import ClausePolicy
from contract_wizard.workflow.clauses import render_all
from contract_wizard.workflow.state import WorkflowState, serialize

logger = structlog.get_logger(__name__)


class DraftStore(Protocol):
    """External persistence collaborator."""

    async def save(self, draft: dict[str, Any]) -> str: ...

    async def load(self, draft_id: str) -> dict[str, Any]: ...


def state_digest(state: WorkflowState) -> str:
    """Return a stable fingerprint of the persisted part of *state*."""
    payload = serialize(state)
    payload.pop("draft_id", None)
    encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def build_draft(state: WorkflowState, policy: ClausePolicy) -> dict[str, Any]:
    """Assemble the payload handed to the draft store."""
    disclosing = state.parties.disclosing.legal_name or "First party"
    receiving = state.parties.receiving.legal_name or "Second party"
    return {
        "draft_id": state.draft_id,
        "title": f"{policy.contract_type.upper()}: {disclosing} & {receiving}",
        "contract_type": policy.contract_type,
        "policy": policy.name,
        "jurisdiction": policy.jurisdiction,
        "status": "complete" if state.current_step.value == "complete" else "draft",
        "workflow_step": state.current_step.value,
        "created_by": state.parties.disclosing.app_id or None,
        "mandatory_clauses_completed": state.compliance_state.can_advance,
        "generated_clauses": render_all(state, policy),
        "digest": state_digest(state),
        "state": serialize(state),
    }


class InMemoryDraftStore:
    """Draft store kept in process memory.

    Drafts without an id are matched by digest, so repeating the first
    save of an identical draft returns the same id.
    """

    def __init__(self) -> None:
        self._drafts: dict[str, dict[str, Any]] = {}
        self._by_digest: dict[str, str] = {}
        self.save_calls = 0

    async def save(self, draft: dict[str, Any]) -> str:
        self.save_calls += 1
        draft_id = draft.get("draft_id") or self._by_digest.get(draft.get("digest", ""))
        if not draft_id:
            draft_id = str(uuid.uuid4())

        stored = {**draft, "draft_id": draft_id, "saved_at": datetime.now(tz=timezone.utc).isoformat()}
        stored["state"] = {**draft["state"], "draft_id": draft_id}
        self._drafts[draft_id] = stored
        if draft.get("digest"):
            self._by_digest[draft["digest"]] = draft_id
        return draft_id

    async def load(self, draft_id: str) -> dict[str, Any]:
        try:
            return dict(self._drafts[draft_id])
        except KeyError:
            raise DraftNotFound(draft_id) from None

    def __len__(self) -> int:
        return len(self._drafts)


class HttpDraftStore:
    """Draft store backed by the external persistence API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = http_client is None

    async def save(self, draft: dict[str, Any]) -> str:
        data = await self._request("POST", "/drafts", json=draft)
        draft_id = data.get("draft_id") or data.get("id")
        if not draft_id:
            raise PersistenceFailure("Draft store response did not include a draft id")
        return str(draft_id)

    async def load(self, draft_id: str) -> dict[str, Any]:
        try:
            return await self._request("GET", f"/drafts/{draft_id}")
        except PersistenceFailure as exc:
            cause = exc.__cause__
            if isinstance(cause, httpx.HTTPStatusError) and cause.response.status_code == 404:
                raise DraftNotFound(draft_id) from cause
            raise

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise PersistenceFailure(
                f"Draft store returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise PersistenceFailure(f"Draft store unreachable: {exc}") from exc
        except ValueError as exc:
            raise PersistenceFailure("Draft store returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise PersistenceFailure("Draft store returned a non-object response")
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
