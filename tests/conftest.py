"""Shared fakes for streamcall tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from streamcall.config import EndpointSpec, StreamConfig
from streamcall.tools.base import Tool, ToolParameter
from streamcall.tools.registry import ToolRegistry
from streamcall.types import ChatRequest

# Placed in a scripted line list: the handle blocks there until released.
WAIT = object()


# ---------------------------------------------------------------------------
# Frame builders
# ---------------------------------------------------------------------------

def text_chunk(content: str) -> dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {"content": content}}]}


def tool_chunk(
    index: int | None = 0,
    call_id: str | None = None,
    name: str | None = None,
    arguments: Any = None,
) -> dict[str, Any]:
    entry: dict[str, Any] = {}
    if index is not None:
        entry["index"] = index
    if call_id is not None:
        entry["id"] = call_id
        entry["type"] = "function"
    function: dict[str, Any] = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    entry["function"] = function
    return {"choices": [{"index": 0, "delta": {"tool_calls": [entry]}}]}


def sse(*payloads: Any, done: bool = True) -> list[Any]:
    """Render payloads as event-stream lines, ending with ``[DONE]``."""
    lines: list[Any] = []
    for payload in payloads:
        if payload is WAIT or isinstance(payload, Exception):
            lines.append(payload)
            continue
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.extend([f"data: {data}", ""])
    if done:
        lines.extend(["data: [DONE]", ""])
    return lines


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------

class FakeHandle:
    def __init__(self, lines: list[Any]) -> None:
        self._lines = lines
        self.closed = False
        self.reached_wait = asyncio.Event()
        self.release = asyncio.Event()

    async def lines(self):
        for line in self._lines:
            if self.closed:
                return
            if line is WAIT:
                self.reached_wait.set()
                await self.release.wait()
                continue
            if isinstance(line, Exception):
                raise line
            yield line

    async def aclose(self) -> None:
        self.closed = True


class FakeTransport:
    """Plays back one scripted line list per opened request."""

    def __init__(self, *turns: list[Any] | Exception) -> None:
        self._turns = list(turns)
        self.requests: list[ChatRequest] = []
        self.handles: list[FakeHandle] = []

    def add_turn(self, turn: list[Any] | Exception) -> None:
        self._turns.append(turn)

    async def open(self, request: ChatRequest) -> FakeHandle:
        self.requests.append(request)
        if not self._turns:
            raise AssertionError("no scripted turn left")
        turn = self._turns.pop(0)
        if isinstance(turn, Exception):
            raise turn
        handle = FakeHandle(turn)
        self.handles.append(handle)
        return handle

    async def until_waiting(self) -> FakeHandle:
        while not self.handles:
            await asyncio.sleep(0)
        handle = self.handles[-1]
        await handle.reached_wait.wait()
        return handle


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

class WeatherTool(Tool):
    name = "get_weather"
    description = "Current weather for a city"
    parameters = [ToolParameter(name="city", type="string", description="City name")]

    async def execute(self, city: str = "", **kwargs: Any) -> str:
        return f"Sunny in {city}"


@pytest.fixture
def config() -> StreamConfig:
    return StreamConfig(endpoint=EndpointSpec(model="test-model"), max_turns=10)


@pytest.fixture
def registry() -> ToolRegistry:
    reg = ToolRegistry()
    reg.register(WeatherTool())
    return reg
