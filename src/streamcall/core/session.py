"""Conversation session and its single-flight guard."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from typing import Any

from streamcall.errors import SessionBusyError
from streamcall.types import Message, Role, SessionState


class SessionGuard:
    """Non-blocking single-flight flag.

    ``acquire()`` either takes the flag or raises ``SessionBusyError`` at
    once; it never waits and never queues.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise SessionBusyError("session is busy with another prompt")

    def release(self) -> None:
        if self._lock.locked():
            self._lock.release()


@dataclass
class Session:
    """History and state of one logical conversation.

    History is append-only; messages are immutable once added.
    """

    system_prompt: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: SessionState = SessionState.IDLE
    guard: SessionGuard = field(default_factory=SessionGuard)
    _history: list[Message] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.system_prompt:
            self._history.append(Message(role=Role.SYSTEM, content=self.system_prompt))

    @property
    def history(self) -> list[Message]:
        return list(self._history)

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CANCELLED

    def append(self, message: Message) -> None:
        self._history.append(message)

    def to_messages(self) -> list[dict[str, Any]]:
        """Render the whole history in wire form."""
        return [m.to_dict() for m in self._history]
