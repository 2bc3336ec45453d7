"""Event-stream frame parsing.

Turns raw wire lines into ``FramedEvent`` objects::

    id: 7
    event: message
    data: {"choices": [...]}
    <blank line>

Lines are fed one at a time; a blank line dispatches the accumulated frame.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

from streamcall.types import FramedEvent

_logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPE = "message"


def _field_value(line: str, prefix: str) -> str:
    value = line[len(prefix):]
    if value.startswith(" "):
        value = value[1:]
    return value


class FrameParser:
    """Incremental parser for event-stream lines."""

    def __init__(self) -> None:
        self._data: list[str] = []
        self._type = DEFAULT_EVENT_TYPE
        self._last_id: str | None = None

    @property
    def pending(self) -> bool:
        """True if data has been buffered but not yet dispatched."""
        return bool(self._data)

    def feed_line(self, line: str) -> FramedEvent | None:
        """Consume one line.  Returns a frame when *line* completes one."""
        line = line.rstrip("\r\n")

        if not line:
            return self._dispatch()

        if line.startswith("data:"):
            self._data.append(_field_value(line, "data:"))
            self._data.append("\n")
        elif line.startswith("id:"):
            self._last_id = _field_value(line, "id:")
        elif line.startswith("event:"):
            self._type = _field_value(line, "event:")
        elif line.startswith(":") or line.startswith("retry:"):
            pass
        else:
            _logger.debug("Ignoring unrecognized stream line: %r", line[:80])
        return None

    def close(self) -> FramedEvent | None:
        """Flush the last frame when the stream ends without a blank line."""
        return self._dispatch()

    def _dispatch(self) -> FramedEvent | None:
        if not self._data:
            return None
        data = "".join(self._data)
        if data.endswith("\n"):
            data = data[:-1]
        event = FramedEvent(data=data, type=self._type, id=self._last_id)
        self._data = []
        self._type = DEFAULT_EVENT_TYPE
        return event


async def iter_frames(lines: AsyncIterator[str]) -> AsyncIterator[FramedEvent]:
    """Yield frames parsed from an async iterator of lines.

    Exhaustion of this generator is the closure signal.  Errors raised by
    *lines* propagate unchanged.
    """
    parser = FrameParser()
    async for line in lines:
        event = parser.feed_line(line)
        if event is not None:
            yield event
    tail = parser.close()
    if tail is not None:
        yield tail


def encode_frame(event: FramedEvent) -> list[str]:
    """Render *event* as wire lines, including the blank terminator."""
    lines: list[str] = []
    if event.id is not None:
        lines.append(f"id: {event.id}")
    if event.type != DEFAULT_EVENT_TYPE:
        lines.append(f"event: {event.type}")
    for part in event.data.split("\n"):
        lines.append(f"data: {part}")
    lines.append("")
    return lines
