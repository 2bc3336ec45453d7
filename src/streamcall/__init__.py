"""streamcall - streaming tool-call orchestration for chat completion endpoints.

Streams a model's reply, reassembles tool calls that arrive in fragments,
executes them and continues the conversation until the model answers.
"""

__version__ = "0.1.0"

from streamcall.config import StreamConfig, load_config
from streamcall.core import (
    CollectingSink,
    ContinuationController,
    NullSink,
    OutputSink,
    Session,
    SessionManager,
)
from streamcall.errors import (
    ErrorKind,
    SessionBusyError,
    SessionClosedError,
    StreamCallError,
    TransportError,
)
from streamcall.events import EventBus
from streamcall.tools import HttpToolExecutor, Tool, ToolRegistry
from streamcall.types import SessionState, ToolCall, ToolDescriptor, ToolResult

__all__ = [
    "CollectingSink",
    "ContinuationController",
    "ErrorKind",
    "EventBus",
    "HttpToolExecutor",
    "NullSink",
    "OutputSink",
    "Session",
    "SessionBusyError",
    "SessionClosedError",
    "SessionManager",
    "SessionState",
    "StreamCallError",
    "StreamConfig",
    "Tool",
    "ToolCall",
    "ToolDescriptor",
    "ToolRegistry",
    "ToolResult",
    "TransportError",
    "load_config",
]
