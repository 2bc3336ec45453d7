"""Tool dispatcher: resolves a merged call and runs it on an executor."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any, Sequence

from streamcall.events.bus import EventBus
from streamcall.tools.base import ToolExecutor
from streamcall.types import EventType, ToolCall, ToolDescriptor, ToolResult

_logger = logging.getLogger(__name__)


def not_found_message(name: str, descriptors: Sequence[ToolDescriptor]) -> str:
    available = ", ".join(d.name for d in descriptors)
    return f"tool not found: {name}, available: {available}"


def _encode_payload(output: Any) -> str:
    if isinstance(output, str):
        return output
    if output is None:
        return ""
    return json.dumps(output, ensure_ascii=False, default=str)


class ToolDispatcher:
    """Executes tool calls and always produces a ``ToolResult``.

    Usage::

        dispatcher = ToolDispatcher(executor, event_bus)
        result = await dispatcher.execute(call, registry.list())

    Lookups match names exactly against the descriptor snapshot the
    model was offered.  Unknown names and executor failures become error
    results so the model can correct itself on the next turn.
    """

    def __init__(
        self,
        executor: ToolExecutor,
        event_bus: EventBus | None = None,
        session_id: str | None = None,
    ) -> None:
        self._executor = executor
        self._event_bus = event_bus
        self._session_id = session_id

    async def execute(
        self,
        call: ToolCall,
        descriptors: Sequence[ToolDescriptor],
    ) -> ToolResult:
        if not any(d.name == call.function for d in descriptors):
            message = not_found_message(call.function, descriptors)
            _logger.warning("%s", message)
            await self._emit(EventType.TOOL_ERROR, {
                "tool": call.function,
                "call_id": call.id,
                "error": message,
            })
            return ToolResult.failure(message)

        await self._emit(EventType.TOOL_EXECUTING, {
            "tool": call.function,
            "call_id": call.id,
            "arguments": call.arguments,
        })

        try:
            output = await self._invoke(call.function, call.arguments)
        except Exception as e:
            message = str(e) or type(e).__name__
            _logger.warning("Tool %s failed: %s", call.function, message)
            await self._emit(EventType.TOOL_ERROR, {
                "tool": call.function,
                "call_id": call.id,
                "error": message,
            })
            return ToolResult.failure(message)

        if isinstance(output, ToolResult):
            result = output
        else:
            result = ToolResult.success(_encode_payload(output))
        await self._emit(EventType.TOOL_EXECUTED, {
            "tool": call.function,
            "call_id": call.id,
            "output_length": len(result.payload),
        })
        return result

    async def _invoke(self, name: str, arguments: dict[str, Any]) -> Any:
        invoke = self._executor.invoke
        if inspect.iscoroutinefunction(invoke):
            return await invoke(name, arguments)
        # blocking executors run off the event loop
        output = await asyncio.to_thread(invoke, name, arguments)
        if inspect.isawaitable(output):
            output = await output
        return output

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self._event_bus:
            if self._session_id is not None:
                data = {"session_id": self._session_id, **data}
            await self._event_bus.publish(event_type, **data)
