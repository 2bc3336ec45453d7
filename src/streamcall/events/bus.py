"""Session-aware event bus.

Every event a controller publishes carries the ``session_id`` of the
session it belongs to.  A subscription names an event type (or ``"*"``)
and optionally one session; only events matching both reach its handler.

    bus = EventBus()
    sub = bus.subscribe("*", print, session_id=sid)
    ...
    bus.drop_session(sid)      # when the session is closed
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

from streamcall.types import AgentEvent, EventType

_logger = logging.getLogger(__name__)

WILDCARD = "*"

Handler = Callable[[AgentEvent], Any]


def _type_key(event_type: EventType | str) -> str:
    if isinstance(event_type, EventType):
        return event_type.value
    return str(event_type)


@dataclass(frozen=True)
class Subscription:
    """One handler bound to an event type and, optionally, a session."""

    handler: Handler
    event_type: str = WILDCARD
    session_id: str | None = None

    def matches(self, event: AgentEvent) -> bool:
        if self.event_type != WILDCARD and self.event_type != event.type.value:
            return False
        if self.session_id is None:
            return True
        return event.data.get("session_id") == self.session_id


class EventBus:
    """Fans controller events out to subscribers.

    Handlers may be plain callables or coroutine functions; matching
    handlers run concurrently.  A failing handler is logged and never
    interrupts the publisher or the other handlers.  The most recent
    *max_history* events are kept for inspection.
    """

    def __init__(self, max_history: int = 200) -> None:
        self._subscriptions: list[Subscription] = []
        self._history: deque[AgentEvent] = deque(maxlen=max_history)

    def subscribe(
        self,
        event_type: EventType | str,
        handler: Handler,
        *,
        session_id: str | None = None,
    ) -> Subscription:
        """Register *handler*; ``session_id=None`` listens to every session."""
        subscription = Subscription(handler, _type_key(event_type), session_id)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def drop_session(self, session_id: str) -> int:
        """Remove every subscription scoped to *session_id*; return how many."""
        kept = [s for s in self._subscriptions if s.session_id != session_id]
        dropped = len(self._subscriptions) - len(kept)
        self._subscriptions = kept
        return dropped

    async def emit(self, event: AgentEvent) -> None:
        self._history.append(event)
        matching = [s for s in self._subscriptions if s.matches(event)]
        if matching:
            await asyncio.gather(*(self._deliver(s, event) for s in matching))

    async def publish(self, event_type: EventType, **data: Any) -> AgentEvent:
        """Build an ``AgentEvent`` from keyword data and emit it."""
        event = AgentEvent(type=event_type, data=data)
        await self.emit(event)
        return event

    @property
    def history(self) -> list[AgentEvent]:
        return list(self._history)

    def history_for(self, session_id: str) -> list[AgentEvent]:
        """Recent events that belong to *session_id*."""
        return [e for e in self._history if e.data.get("session_id") == session_id]

    def clear(self) -> None:
        self._subscriptions.clear()
        self._history.clear()

    @staticmethod
    async def _deliver(subscription: Subscription, event: AgentEvent) -> None:
        try:
            result = subscription.handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            _logger.exception(
                "Event handler %s failed on %s",
                getattr(subscription.handler, "__name__", subscription.handler),
                event.type.value,
            )
