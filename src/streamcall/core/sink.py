"""Output sinks: where a session delivers what the model produces."""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from streamcall.types import ToolCall


class OutputSink(Protocol):
    """Receives streamed output for one exchange.

    Methods may be plain functions or coroutine functions.
    """

    def on_text(self, text: str) -> Any: ...

    def on_tool_call(self, call: ToolCall) -> Any: ...

    def on_tool_result(self, name: str, payload: str) -> Any: ...

    def on_complete(self) -> Any: ...

    def on_error(self, reason: str) -> Any: ...


async def notify(method: Callable[..., Any], *args: Any) -> None:
    """Call a sink method, awaiting it if it is a coroutine."""
    result = method(*args)
    if inspect.isawaitable(result):
        await result


class NullSink:
    """Discards everything."""

    def on_text(self, text: str) -> None:
        pass

    def on_tool_call(self, call: ToolCall) -> None:
        pass

    def on_tool_result(self, name: str, payload: str) -> None:
        pass

    def on_complete(self) -> None:
        pass

    def on_error(self, reason: str) -> None:
        pass


@dataclass
class CollectingSink:
    """Records every callback in order.  Handy in tests and scripts."""

    texts: list[str] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[tuple[str, str]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    completed: int = 0
    events: list[tuple[str, Any]] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(self.texts)

    def on_text(self, text: str) -> None:
        self.texts.append(text)
        self.events.append(("text", text))

    def on_tool_call(self, call: ToolCall) -> None:
        self.tool_calls.append(call)
        self.events.append(("tool_call", call.function))

    def on_tool_result(self, name: str, payload: str) -> None:
        self.tool_results.append((name, payload))
        self.events.append(("tool_result", name))

    def on_complete(self) -> None:
        self.completed += 1
        self.events.append(("complete", None))

    def on_error(self, reason: str) -> None:
        self.errors.append(reason)
        self.events.append(("error", reason))
