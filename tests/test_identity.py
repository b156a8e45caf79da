"""Identity lookup adapters."""

from __future__ import annotations

import httpx
import pytest

from contract_wizard.errors import IdentityLookupFailed, PartyNotFound
from contract_wizard.identity import HttpIdentityResolver
from contract_wizard.models import IdType, PartyType


def _resolver(handler) -> tuple[HttpIdentityResolver, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://id")
    return HttpIdentityResolver("http://id", http_client=http), http


@pytest.mark.asyncio
async def test_directory_lookup(directory):
    record = await directory.resolve(" APP-001 ")

    assert record.party_type == PartyType.COMPANY
    with pytest.raises(PartyNotFound):
        await directory.resolve("APP-999")


@pytest.mark.asyncio
async def test_http_resolver_parses_user_info():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/search-user"
        return httpx.Response(
            200,
            json={
                "found": True,
                "user_info": {
                    "name": "Wanjiru Kamau",
                    "email": "wanjiru@example.com",
                    "id_type": "passport",
                    "id_number": "A1234567",
                },
            },
        )

    resolver, http = _resolver(handler)
    record = await resolver.resolve("APP-002")

    assert record.app_id == "APP-002"
    assert record.name == "Wanjiru Kamau"
    assert record.id_type == IdType.PASSPORT
    assert record.party_type == PartyType.INDIVIDUAL
    await http.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [httpx.Response(404), httpx.Response(200, json={"found": False})],
)
async def test_http_resolver_not_found(response):
    resolver, http = _resolver(lambda request: response)

    with pytest.raises(PartyNotFound):
        await resolver.resolve("APP-404")
    await http.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(503),
        httpx.Response(200, content=b"<html>"),
        httpx.Response(200, json={"found": True, "user_info": {"email": "x@y.com"}}),
    ],
)
async def test_http_resolver_failures(response):
    resolver, http = _resolver(lambda request: response)

    with pytest.raises(IdentityLookupFailed):
        await resolver.resolve("APP-500")
    await http.aclose()
