"""Error kinds and exceptions raised by streamcall.

Only transport failures and internal invariant violations end a session.
Tool problems are turned into tool results so the model can recover.
"""

from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    TRANSPORT_FAILURE = "transport_failure"
    BUSY = "busy"
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_EXECUTION_FAILURE = "tool_execution_failure"
    UNPARSEABLE_FRAGMENT = "unparseable_fragment"
    INVARIANT_VIOLATION = "invariant_violation"
    SESSION_CLOSED = "session_closed"
    CONFIG = "config"


class StreamCallError(Exception):
    """Base class for all streamcall errors."""

    kind: ErrorKind = ErrorKind.INVARIANT_VIOLATION

    def __init__(self, message: str = "", kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class TransportError(StreamCallError):
    """Network, HTTP status or timeout failure while streaming."""

    kind = ErrorKind.TRANSPORT_FAILURE

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionBusyError(StreamCallError):
    """A prompt was sent while the session already has an exchange in flight."""

    kind = ErrorKind.BUSY


class SessionClosedError(StreamCallError):
    """The session was cancelled or closed and cannot accept prompts."""

    kind = ErrorKind.SESSION_CLOSED


class ToolExecutionError(StreamCallError):
    """Raised by executors; converted to an error ToolResult by the dispatcher."""

    kind = ErrorKind.TOOL_EXECUTION_FAILURE


class InvariantViolation(StreamCallError):
    kind = ErrorKind.INVARIANT_VIOLATION


class ConfigError(StreamCallError):
    kind = ErrorKind.CONFIG
