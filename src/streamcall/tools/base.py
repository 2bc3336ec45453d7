"""Tool abstractions: local tool base class and the executor protocol."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from streamcall.types import ToolDescriptor


@runtime_checkable
class ToolExecutor(Protocol):
    """Anything that can run a named tool.

    ``invoke`` may be a plain method or a coroutine method.  It returns the
    tool output and raises on failure; the dispatcher turns both outcomes
    into a ``ToolResult``.
    """

    def invoke(self, name: str, arguments: dict[str, Any]) -> Any: ...


@dataclass
class ToolParameter:
    """Schema for a single tool parameter."""

    name: str
    type: str  # "string", "integer", "boolean", "number", "array", "object"
    description: str
    required: bool = True
    enum: list[str] | None = None
    default: Any = None
    items: dict[str, Any] = field(default_factory=dict)


class Tool(ABC):
    """Base class for locally implemented tools.

    Subclasses set ``name``, ``description`` and ``parameters`` as class
    attributes and implement ``execute()``.
    """

    name: str
    description: str = ""
    parameters: list[ToolParameter] = []
    max_output: int = 5000  # chars; 0 disables truncation

    @abstractmethod
    async def execute(self, **kwargs: Any) -> Any:
        """Run the tool.  Raise to report failure."""

    def parameter_schema(self) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        required: list[str] = []
        for p in self.parameters:
            prop: dict[str, Any] = {"type": p.type, "description": p.description}
            if p.enum:
                prop["enum"] = p.enum
            if p.default is not None:
                prop["default"] = p.default
            if p.items:
                prop["items"] = p.items
            properties[p.name] = prop
            if p.required:
                required.append(p.name)
        return {"type": "object", "properties": properties, "required": required}

    def to_descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            parameters=self.parameter_schema(),
        )
