"""Per-conversation trace events for operators.

A BookingDialog can have a TraceBroadcaster attached. Each turn, stage
transition, extraction result, search and selection is recorded in the
broadcaster's log and pushed to every subscriber queue (the admin trace
WebSocket drains one).
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TypedDict

log = logging.getLogger("flight_booking.trace_events")

SUBSCRIBER_QUEUE_SIZE = 200
EVENT_LOG_LIMIT = 500


class TraceEvent(TypedDict):
    type: str          # turn | extraction | correction | transition | search | selection | restart | error
    timestamp: float
    session_id: str
    stage: str
    data: dict


class TraceBroadcaster:
    """Fan-out of one conversation's trace events."""

    def __init__(self, session_id: str) -> None:
        self._session_id = session_id
        self._subscribers: list[asyncio.Queue[TraceEvent]] = []
        self._event_log: list[TraceEvent] = []

    @property
    def session_id(self) -> str:
        return self._session_id

    def subscribe(self) -> asyncio.Queue[TraceEvent]:
        q: asyncio.Queue[TraceEvent] = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers.append(q)
        log.debug("Trace subscriber added for %s (total: %d)",
                  self._session_id, len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[TraceEvent]) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)

    def emit(self, event_type: str, stage: str, data: dict) -> None:
        event: TraceEvent = {
            "type": event_type,
            "timestamp": time.time(),
            "session_id": self._session_id,
            "stage": stage,
            "data": data,
        }
        self._event_log.append(event)
        if len(self._event_log) > EVENT_LOG_LIMIT:
            del self._event_log[: len(self._event_log) - EVENT_LOG_LIMIT]

        for q in self._subscribers:
            if q.full():
                # Slow subscriber: drop its oldest event
                q.get_nowait()
            q.put_nowait(event)

    @property
    def event_log(self) -> list[TraceEvent]:
        return list(self._event_log)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


_broadcasters: dict[str, TraceBroadcaster] = {}


def get_broadcaster(session_id: str) -> TraceBroadcaster:
    """Get or create the broadcaster for a session."""
    if session_id not in _broadcasters:
        _broadcasters[session_id] = TraceBroadcaster(session_id)
    return _broadcasters[session_id]


def remove_broadcaster(session_id: str) -> None:
    _broadcasters.pop(session_id, None)
