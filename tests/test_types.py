"""Tests for streamcall data types."""

import dataclasses

import pytest

from streamcall.errors import (
    ErrorKind,
    SessionBusyError,
    StreamCallError,
    ToolExecutionError,
    TransportError,
)
from streamcall.types import (
    ChatRequest,
    Message,
    Role,
    SessionState,
    ToolCall,
    ToolDescriptor,
    ToolResult,
    ToolStatus,
)


class TestToolResult:
    def test_constructors(self):
        assert ToolResult.success("ok").status is ToolStatus.OK
        assert ToolResult.failure("bad").is_error
        assert not ToolResult.success("ok").is_error


class TestMessage:
    def test_plain_message(self):
        assert Message(role=Role.USER, content="hi").to_dict() == {
            "role": "user", "content": "hi",
        }

    def test_assistant_with_tool_calls(self):
        call = ToolCall(id="c1", function="get_weather", arguments={"city": "Zürich"})
        data = Message(role=Role.ASSISTANT, tool_calls=(call,)).to_dict()
        assert data["content"] is None
        assert data["tool_calls"] == [{
            "id": "c1",
            "type": "function",
            "function": {"name": "get_weather", "arguments": '{"city": "Zürich"}'},
        }]

    def test_tool_message(self):
        data = Message(role=Role.TOOL, content="Sunny", tool_call_id="c1").to_dict()
        assert data == {"role": "tool", "content": "Sunny", "tool_call_id": "c1"}

    def test_messages_are_immutable(self):
        message = Message(role=Role.USER, content="hi")
        with pytest.raises(dataclasses.FrozenInstanceError):
            message.content = "changed"


class TestToolDescriptor:
    def test_openai_schema(self):
        params = {"type": "object", "properties": {"city": {"type": "string"}}}
        schema = ToolDescriptor("get_weather", "Weather", params).to_openai_schema()
        assert schema == {
            "type": "function",
            "function": {"name": "get_weather", "description": "Weather", "parameters": params},
        }

    def test_empty_parameters(self):
        schema = ToolDescriptor("ping").to_openai_schema()
        assert schema["function"]["parameters"] == {"type": "object", "properties": {}}


class TestChatRequest:
    def test_payload_without_tools(self):
        payload = ChatRequest(model="m", messages=[]).to_payload()
        assert payload["stream"] is True
        assert "tools" not in payload
        assert "tool_choice" not in payload

    def test_payload_with_tools_and_extra(self):
        tools = [ToolDescriptor("ping").to_openai_schema()]
        payload = ChatRequest(
            model="m", messages=[], tools=tools, extra={"top_p": 0.5},
        ).to_payload()
        assert payload["tools"] == tools
        assert payload["tool_choice"] == "auto"
        assert payload["top_p"] == 0.5


class TestSessionState:
    @pytest.mark.parametrize("state,terminal", [
        (SessionState.IDLE, False),
        (SessionState.STREAMING, False),
        (SessionState.DISPATCHING, False),
        (SessionState.COMPLETED, True),
        (SessionState.ERRORED, True),
        (SessionState.CANCELLED, True),
    ])
    def test_is_terminal(self, state, terminal):
        assert state.is_terminal is terminal


class TestErrors:
    def test_kinds(self):
        assert TransportError("x").kind is ErrorKind.TRANSPORT_FAILURE
        assert SessionBusyError().kind is ErrorKind.BUSY
        assert ToolExecutionError("x").kind is ErrorKind.TOOL_EXECUTION_FAILURE

    def test_kind_override(self):
        err = ToolExecutionError("missing", kind=ErrorKind.TOOL_NOT_FOUND)
        assert err.kind is ErrorKind.TOOL_NOT_FOUND
        assert isinstance(err, StreamCallError)

    def test_transport_status_code(self):
        assert TransportError("HTTP 500", status_code=500).status_code == 500
