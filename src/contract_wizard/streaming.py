"""Per-session event channels behind the SSE endpoint.

The controller and the API publish :class:`WizardEvent` objects here; each
SSE client subscribes to one session and receives that session's history
followed by live events until the session ends.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import structlog

from contract_wizard.models import EventType, WizardEvent

logger = structlog.get_logger(__name__)


@dataclass
class SessionChannel:
    """Event history and live subscribers of one session."""

    history: list[WizardEvent] = field(default_factory=list)
    subscribers: list[asyncio.Queue[WizardEvent]] = field(default_factory=list)

    def deliver(self, event: WizardEvent) -> int:
        """Queue *event* for every subscriber; return how many got it."""
        delivered = 0
        for queue in self.subscribers:
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                if event.event_type is EventType.SESSION_CLOSED:
                    # A lagging subscriber must still see the end of the session.
                    queue.get_nowait()
                    queue.put_nowait(event)
                    delivered += 1
                    continue
                logger.warning(
                    "subscriber_lagging",
                    session_id=event.session_id,
                    event_type=event.event_type.value,
                )
        return delivered


class WizardEventStream:
    """Routes wizard events to the SSE clients following each session.

    A channel is created on the first event for a session and dropped by
    :meth:`end_session`, which is the only way a session's history is
    released.
    """

    def __init__(self, max_queue_size: int = 256) -> None:
        self._channels: dict[str, SessionChannel] = {}
        self._max_queue_size = max_queue_size

    def _channel(self, session_id: str) -> SessionChannel:
        channel = self._channels.get(session_id)
        if channel is None:
            channel = self._channels[session_id] = SessionChannel()
        return channel

    async def emit(
        self,
        session_id: str,
        event_type: EventType,
        data: dict[str, Any] | None = None,
        message: str = "",
    ) -> WizardEvent:
        """Record an event for *session_id* and hand it to live subscribers."""
        event = WizardEvent(
            event_type=event_type,
            session_id=session_id,
            data=data or {},
            message=message,
        )
        channel = self._channel(session_id)
        channel.history.append(event)
        delivered = channel.deliver(event)
        logger.debug(
            "event_emitted",
            session_id=session_id,
            event_type=event.event_type.value,
            subscribers=delivered,
        )
        return event

    async def subscribe(self, session_id: str) -> AsyncIterator[WizardEvent]:
        """Replay the session's history, then follow it until it ends."""
        channel = self._channel(session_id)
        # Snapshot before registering so a replayed event is never queued too.
        backlog = list(channel.history)
        queue: asyncio.Queue[WizardEvent] = asyncio.Queue(maxsize=self._max_queue_size)
        channel.subscribers.append(queue)
        try:
            for event in backlog:
                yield event
                if event.event_type is EventType.SESSION_CLOSED:
                    return
            while True:
                event = await queue.get()
                yield event
                if event.event_type is EventType.SESSION_CLOSED:
                    return
        finally:
            if queue in channel.subscribers:
                channel.subscribers.remove(queue)

    async def end_session(self, session_id: str, message: str = "Session closed.") -> None:
        """Publish ``session_closed`` and release everything held for the session.

        Subscribers receive the closing event and stop; later subscribers
        start from an empty history.
        """
        channel = self._channels.get(session_id)
        if channel is None:
            return
        await self.emit(session_id, EventType.SESSION_CLOSED, message=message)
        self._channels.pop(session_id, None)
        logger.info("session_channel_released", session_id=session_id)

    def get_history(self, session_id: str) -> list[WizardEvent]:
        """Return the events recorded for a session that has not ended."""
        channel = self._channels.get(session_id)
        return list(channel.history) if channel is not None else []

    def has_session(self, session_id: str) -> bool:
        return session_id in self._channels
