"""Identity lookup: resolve a user-entered app id to a registered party."""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog
from pydantic import ValidationError

from contract_wizard.errors import IdentityLookupFailed, PartyNotFound
from contract_wizard.models import PartyRecord

logger = structlog.get_logger(__name__)


class IdentityResolver(Protocol):
    """External identity collaborator."""

    async def resolve(self, app_id: str) -> PartyRecord: ...


class InMemoryIdentityDirectory:
    """Identity directory backed by a dictionary of known users."""

    def __init__(self, records: list[PartyRecord] | None = None) -> None:
        self._records = {r.app_id: r for r in records or []}

    def register(self, record: PartyRecord) -> None:
        self._records[record.app_id] = record

    async def resolve(self, app_id: str) -> PartyRecord:
        record = self._records.get(app_id.strip())
        if record is None:
            raise PartyNotFound(app_id)
        return record


class HttpIdentityResolver:
    """Client for the ``POST /search-user`` identity endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = http_client is None

    async def resolve(self, app_id: str) -> PartyRecord:
        try:
            response = await self._client.post("/search-user", json={"app_id": app_id})
            if response.status_code == 404:
                raise PartyNotFound(app_id)
            response.raise_for_status()
            data: Any = response.json()
        except httpx.HTTPStatusError as exc:
            raise IdentityLookupFailed(
                f"Identity service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise IdentityLookupFailed(f"Identity service unreachable: {exc}") from exc
        except ValueError as exc:
            raise IdentityLookupFailed("Identity service returned invalid JSON") from exc

        if not isinstance(data, dict) or not data.get("found", True):
            raise PartyNotFound(app_id)
        info = data.get("user_info", data)
        try:
            return PartyRecord.model_validate({"app_id": app_id, **info})
        except (ValidationError, TypeError) as exc:
            logger.warning("identity_response_malformed", app_id=app_id, error=str(exc))
            raise IdentityLookupFailed("Identity service returned a malformed record") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
