"""Per-turn classification of framed events.

Each ``FramedEvent`` of a turn is one of:

- a terminal marker (empty data or ``[DONE]``),
- a text increment, forwarded to the caller immediately,
- a tool-call delta, buffered whole until the turn ends,
- both of the above in a single frame,
- noise (server progress notifications, malformed JSON), skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from streamcall.types import FramedEvent

_logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"

# Server-side progress notifications that carry no model output
_SKIPPED_EVENT_TYPES = frozenset({"tool_status", "tool_complete"})


@dataclass
class Delta:
    """What one frame contributed to the current turn."""

    text: str = ""
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    terminal: bool = False
    skipped: bool = False

    @property
    def has_text(self) -> bool:
        return bool(self.text)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


def _extract_body(payload: dict[str, Any]) -> dict[str, Any] | None:
    """Return the delta body of an OpenAI-shaped or bare payload."""
    if "choices" in payload:
        choices = payload.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return {}
        choice = choices[0]
        body = choice.get("delta") or choice.get("message") or {}
        return body if isinstance(body, dict) else None
    if any(k in payload for k in ("content", "tool_calls", "function")):
        return payload
    return None


class TurnAccumulator:
    """Owns the text buffer and the tool-call fragment cache of one turn.

    The cache is a list of frames, each holding the raw tool-call entries
    of that frame in arrival order.  It is handed to
    ``merge_fragments`` once the terminal marker arrives.
    """

    def __init__(self) -> None:
        self._text: list[str] = []
        self._cache: list[list[dict[str, Any]]] = []
        self._finished = False

    @property
    def text(self) -> str:
        return "".join(self._text)

    @property
    def cache(self) -> list[list[dict[str, Any]]]:
        return self._cache

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def has_tool_calls(self) -> bool:
        return bool(self._cache)

    def discard(self) -> None:
        """Drop buffered fragments; used on cancellation."""
        self._cache = []

    def feed(self, event: FramedEvent) -> Delta:
        """Classify *event* and buffer what it carries."""
        if self._finished:
            return Delta(skipped=True)

        data = event.data.strip()
        if not data or data == DONE_MARKER:
            self._finished = True
            return Delta(terminal=True)

        if event.type in _SKIPPED_EVENT_TYPES:
            _logger.debug("Skipping %s notification: %s", event.type, data[:200])
            return Delta(skipped=True)

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            _logger.warning("Skipping frame with invalid JSON: %s", data[:200])
            return Delta(skipped=True)

        body = _extract_body(payload) if isinstance(payload, dict) else None
        if body is None:
            _logger.warning("Skipping frame with unrecognized shape: %s", data[:200])
            return Delta(skipped=True)

        delta = Delta()

        content = body.get("content")
        if isinstance(content, str) and content:
            self._text.append(content)
            delta.text = content

        tool_calls = body.get("tool_calls")
        if isinstance(tool_calls, list) and tool_calls:
            delta.tool_calls = [tc for tc in tool_calls if isinstance(tc, dict)]
        elif "function" in body:
            delta.tool_calls = [body]

        if delta.tool_calls:
            self._cache.append(delta.tool_calls)

        if not delta.has_text and not delta.has_tool_calls:
            # role-only or usage-only chunks
            delta.skipped = True
        return delta
