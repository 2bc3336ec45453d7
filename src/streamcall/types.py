"""Shared data types for streamcall."""

from __future__ import annotations

import enum
import json
import time
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Conversation types
# ---------------------------------------------------------------------------

class Role(enum.Enum):
    """Author of a message in the session history."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolStatus(enum.Enum):
    OK = "ok"
    ERROR = "error"


@dataclass
class ToolResult:
    """Outcome of one tool execution.  Failures are values, never raised."""

    status: ToolStatus
    payload: str

    @classmethod
    def success(cls, payload: str) -> ToolResult:
        return cls(status=ToolStatus.OK, payload=payload)

    @classmethod
    def failure(cls, payload: str) -> ToolResult:
        return cls(status=ToolStatus.ERROR, payload=payload)

    @property
    def is_error(self) -> bool:
        return self.status is ToolStatus.ERROR


@dataclass
class ToolCall:
    """A fully merged tool invocation requested by the model."""

    id: str
    function: str
    arguments: dict[str, Any] = field(default_factory=dict)
    result: ToolResult | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render in the OpenAI-compatible ``tool_calls`` form."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.function,
                "arguments": json.dumps(self.arguments, ensure_ascii=False),
            },
        }


@dataclass(frozen=True)
class Message:
    """One entry of the session history.  Immutable once created."""

    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data


@dataclass(frozen=True)
class ToolDescriptor:
    """Name, description and JSON parameter schema of a callable tool."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        parameters = self.parameters or {"type": "object", "properties": {}}
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }


# ---------------------------------------------------------------------------
# Wire types
# ---------------------------------------------------------------------------

@dataclass
class FramedEvent:
    """One event-stream frame: optional id, type, newline-joined data."""

    data: str
    type: str = "message"
    id: str | None = None


@dataclass
class ToolCallFragment:
    """A partial tool call as received in one streaming delta."""

    key: str
    name: str | None = None
    arguments: Any = None  # str while partial, dict if sent structured
    index: int | None = None
    call_id: str | None = None
    position: int = 0


@dataclass
class ChatRequest:
    """Everything needed to open one streaming completion request."""

    model: str
    messages: list[dict[str, Any]]
    tools: list[dict[str, Any]] = field(default_factory=list)
    temperature: float = 0.7
    max_tokens: int = 2048
    stream: bool = True
    extra: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": self.messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": self.stream,
        }
        if self.tools:
            payload["tools"] = self.tools
            payload["tool_choice"] = "auto"
        if self.extra:
            payload.update(self.extra)
        return payload


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

class SessionState(enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    MERGING = "merging"
    DISPATCHING = "dispatching"
    CONTINUING = "continuing"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            SessionState.COMPLETED,
            SessionState.ERRORED,
            SessionState.CANCELLED,
        )


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

class EventType(enum.Enum):
    """Lifecycle events published on the EventBus."""

    # Session lifecycle
    SESSION_STARTED = "session.started"
    SESSION_STATE = "session.state"
    SESSION_COMPLETED = "session.completed"
    SESSION_ERROR = "session.error"
    SESSION_CANCELLED = "session.cancelled"

    # Turns
    TURN_STARTED = "turn.started"
    TURN_FINISHED = "turn.finished"

    # Tool events
    TOOL_EXECUTING = "tool.executing"
    TOOL_EXECUTED = "tool.executed"
    TOOL_ERROR = "tool.error"


@dataclass
class AgentEvent:
    """Event emitted via the EventBus."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
