"""Draft store adapters."""

from __future__ import annotations

import json

import httpx
import pytest

from contract_wizard.errors import DraftNotFound, PersistenceFailure
from contract_wizard.persistence import (
    HttpDraftStore,
    InMemoryDraftStore,
    build_draft,
    state_digest,
)
from contract_wizard.workflow.mutations import set_field
from contract_wizard.workflow.state import create_initial


def test_build_draft(policy):
    state = create_initial(policy)
    set_field(state, "disclosing.legal_name", "Amani Holdings Ltd", policy)

    draft = build_draft(state, policy)

    assert draft["title"] == "NDA: Amani Holdings Ltd & Second party"
    assert draft["status"] == "draft"
    assert draft["workflow_step"] == "party_details"
    assert draft["mandatory_clauses_completed"] is False
    assert set(draft["generated_clauses"]) == set(policy.mandatory_keys)
    assert "validation_errors" not in draft["state"]


def test_digest_ignores_draft_id(policy):
    state = create_initial(policy)
    before = state_digest(state)

    state.draft_id = "draft-1"
    assert state_digest(state) == before

    set_field(state, "terms.purpose", "Audit", policy)
    assert state_digest(state) != before


@pytest.mark.asyncio
async def test_in_memory_store_upserts(policy):
    store = InMemoryDraftStore()
    draft = build_draft(create_initial(policy), policy)

    first = await store.save(draft)
    second = await store.save(draft)

    assert first == second
    assert len(store) == 1
    loaded = await store.load(first)
    assert loaded["state"]["draft_id"] == first


@pytest.mark.asyncio
async def test_in_memory_store_missing_draft():
    with pytest.raises(DraftNotFound):
        await InMemoryDraftStore().load("nope")


@pytest.mark.asyncio
async def test_http_store_round_trip(policy):
    saved: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == "/drafts":
            saved.update(json.loads(request.content))
            return httpx.Response(201, json={"id": "d-42"})
        if request.method == "GET" and request.url.path == "/drafts/d-42":
            return httpx.Response(200, json=saved)
        return httpx.Response(404)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://db")
    store = HttpDraftStore("http://db", http_client=http)

    draft_id = await store.save(build_draft(create_initial(policy), policy))
    loaded = await store.load(draft_id)

    assert draft_id == "d-42"
    assert loaded["policy"] == "kenya_nda"
    with pytest.raises(DraftNotFound):
        await store.load("missing")
    await http.aclose()


@pytest.mark.asyncio
async def test_http_store_requires_draft_id(policy):
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
        base_url="http://db",
    )
    store = HttpDraftStore("http://db", http_client=http)

    with pytest.raises(PersistenceFailure):
        await store.save(build_draft(create_initial(policy), policy))
    await http.aclose()


@pytest.mark.asyncio
async def test_http_store_unreachable(policy):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://db")
    store = HttpDraftStore("http://db", http_client=http)

    with pytest.raises(PersistenceFailure):
        await store.save(build_draft(create_initial(policy), policy))
    await http.aclose()


@pytest.mark.asyncio
async def test_http_store_server_error_is_not_a_missing_draft():
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        base_url="http://db",
    )
    store = HttpDraftStore("http://db", http_client=http)

    with pytest.raises(PersistenceFailure) as excinfo:
        await store.load("d-1")
    assert not isinstance(excinfo.value, DraftNotFound)
    await http.aclose()
