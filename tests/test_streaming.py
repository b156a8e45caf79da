"""Session event stream."""

from __future__ import annotations

import asyncio

import pytest

from contract_wizard.models import EventType
from contract_wizard.streaming import WizardEventStream


@pytest.mark.asyncio
async def test_subscribe_replays_history_and_ends_with_session():
    stream = WizardEventStream()
    await stream.emit("s1", EventType.SESSION_CREATED, message="started")

    received: list[EventType] = []

    async def consume():
        async for event in stream.subscribe("s1"):
            received.append(event.event_type)

    consumer = asyncio.create_task(consume())
    await asyncio.sleep(0)
    await stream.emit("s1", EventType.DRAFT_SAVED, {"draft_id": "d-1"})
    await stream.end_session("s1")
    await asyncio.wait_for(consumer, timeout=1)

    assert received == [
        EventType.SESSION_CREATED,
        EventType.DRAFT_SAVED,
        EventType.SESSION_CLOSED,
    ]
    assert not stream.has_session("s1")
    assert stream.get_history("s1") == []


@pytest.mark.asyncio
async def test_sessions_are_isolated():
    stream = WizardEventStream()
    await stream.emit("s1", EventType.SESSION_CREATED)
    await stream.emit("s2", EventType.DRAFT_SAVED)

    assert [e.event_type for e in stream.get_history("s1")] == [EventType.SESSION_CREATED]

    await stream.end_session("s1")
    assert stream.get_history("s1") == []
    assert len(stream.get_history("s2")) == 1


@pytest.mark.asyncio
async def test_lagging_subscriber_still_sees_session_end():
    stream = WizardEventStream(max_queue_size=1)
    await stream.emit("s1", EventType.SESSION_CREATED)
    subscription = stream.subscribe("s1")

    assert (await subscription.__anext__()).event_type == EventType.SESSION_CREATED
    await stream.emit("s1", EventType.DRAFT_SAVED)
    await stream.emit("s1", EventType.STEP_ADVANCED)
    await stream.end_session("s1")

    remaining = [event.event_type async for event in subscription]
    assert remaining[-1] == EventType.SESSION_CLOSED


@pytest.mark.asyncio
async def test_ending_unknown_session_is_a_no_op():
    stream = WizardEventStream()

    await stream.end_session("missing")

    assert not stream.has_session("missing")
