"""Registry of tools offered to the model."""

from __future__ import annotations

import inspect
import logging
from typing import Any

from streamcall.errors import ErrorKind, ToolExecutionError
from streamcall.tools.base import Tool, ToolExecutor
from streamcall.types import ToolDescriptor

_logger = logging.getLogger(__name__)


def _smart_truncate(text: str, max_length: int) -> str:
    """Keep the head and the tail of long output, noting what was cut."""
    if len(text) <= max_length:
        return text
    head_size = max_length // 4
    tail_size = max_length - head_size
    omitted = len(text) - max_length
    return (
        text[:head_size]
        + f"\n\n... [{omitted} chars truncated] ...\n\n"
        + text[-tail_size:]
    )


class ToolRegistry:
    """Holds local ``Tool`` implementations and declared descriptors.

    Declared descriptors (typically from configuration) have no local
    implementation; calls to them are forwarded to *remote*, usually an
    ``HttpToolExecutor``.  The registry itself satisfies the
    ``ToolExecutor`` protocol, so the controller can use it directly.
    """

    def __init__(self, remote: ToolExecutor | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        self._declared: dict[str, ToolDescriptor] = {}
        self._remote = remote

    def register(self, tool: Tool) -> None:
        """Register a local tool instance."""
        self._tools[tool.name] = tool
        self._declared.pop(tool.name, None)

    def declare(self, descriptor: ToolDescriptor) -> None:
        """Advertise a tool that is executed remotely."""
        if descriptor.name in self._tools:
            _logger.warning("Tool %s is implemented locally, ignoring declaration", descriptor.name)
            return
        self._declared[descriptor.name] = descriptor

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def tool_names(self) -> list[str]:
        return [*self._tools, *self._declared]

    def list(self) -> list[ToolDescriptor]:
        """Snapshot of every tool descriptor, local tools first."""
        descriptors = [t.to_descriptor() for t in self._tools.values()]
        descriptors.extend(self._declared.values())
        return descriptors

    def get_openai_schemas(self) -> list[dict[str, Any]]:
        return [d.to_openai_schema() for d in self.list()]

    async def invoke(self, name: str, arguments: dict[str, Any]) -> Any:
        """Run tool *name* and return its output.

        Raises
        ------
        ToolExecutionError
            If the tool is unknown or cannot be executed anywhere.
        """
        tool = self._tools.get(name)
        if tool is not None:
            output = await tool.execute(**arguments)
            if isinstance(output, str) and tool.max_output > 0:
                output = _smart_truncate(output, tool.max_output)
            return output

        if name in self._declared:
            if self._remote is None:
                raise ToolExecutionError(f"no executor configured for tool: {name}")
            _logger.debug("Forwarding %s to remote executor", name)
            result = self._remote.invoke(name, arguments)
            if inspect.isawaitable(result):
                result = await result
            return result

        raise ToolExecutionError(f"tool not found: {name}", kind=ErrorKind.TOOL_NOT_FOUND)
