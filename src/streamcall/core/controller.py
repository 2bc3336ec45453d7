"""Continuation controller: the per-session streaming loop.

    prompt → stream → merge tool calls → dispatch → stream again → ... → done

One ``send_prompt`` call drives as many streaming turns as the model
needs.  A turn that ends without tool calls completes the exchange;
otherwise each call is executed, its result is appended to the history
and a new turn is requested with the full history.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from streamcall.config import StreamConfig
from streamcall.core.session import Session
from streamcall.core.sink import NullSink, OutputSink, notify
from streamcall.errors import (
    InvariantViolation,
    SessionClosedError,
    StreamCallError,
)
from streamcall.events.bus import EventBus
from streamcall.stream.deltas import TurnAccumulator
from streamcall.stream.frames import iter_frames
from streamcall.stream.merger import merge_fragments, normalize_arguments
from streamcall.stream.transport import StreamHandle, Transport
from streamcall.tools.base import ToolExecutor
from streamcall.tools.dispatcher import ToolDispatcher
from streamcall.tools.registry import ToolRegistry
from streamcall.types import (
    ChatRequest,
    EventType,
    Message,
    Role,
    SessionState,
    ToolCall,
    ToolDescriptor,
)

_logger = logging.getLogger(__name__)


class ContinuationController:
    """Drives one session through streaming turns and tool dispatch.

    Parameters
    ----------
    session:
        The session whose history this controller extends.
    config:
        Loaded configuration; supplies the endpoint parameters and
        ``max_turns``.
    transport:
        Opens streaming requests.
    registry:
        Source of the tool descriptor snapshot offered on each request.
    executor:
        Runs tool calls.  Defaults to *registry*.
    event_bus:
        Receives lifecycle events (optional).
    """

    def __init__(
        self,
        session: Session,
        config: StreamConfig,
        transport: Transport,
        registry: ToolRegistry,
        executor: ToolExecutor | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._session = session
        self._config = config
        self._transport = transport
        self._registry = registry
        self._event_bus = event_bus
        self._dispatcher = ToolDispatcher(
            executor or registry, event_bus, session_id=session.id,
        )
        self._handle: StreamHandle | None = None
        self._accumulator: TurnAccumulator | None = None
        self._task: asyncio.Task[Any] | None = None
        self._cancel_requested = False

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def busy(self) -> bool:
        return self._session.guard.busy

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send_prompt(
        self,
        prompt: str,
        sink: OutputSink | None = None,
    ) -> SessionState:
        """Run one exchange to a terminal state and return that state.

        Raises
        ------
        SessionClosedError
            If the session was cancelled.
        SessionBusyError
            If another prompt is in flight.  Nothing is changed.
        """
        if self._session.closed:
            raise SessionClosedError(f"session {self._session.id} is closed")
        self._session.guard.acquire()

        # Nothing above this line awaits, so a concurrent caller always
        # observes the guard taken and the prompt recorded.
        self._cancel_requested = False
        self._task = asyncio.current_task()
        self._session.state = SessionState.IDLE
        self._session.append(Message(role=Role.USER, content=prompt))
        try:
            return await self._run(sink or NullSink())
        finally:
            self._task = None
            self._accumulator = None
            self._session.guard.release()

    async def cancel(self) -> None:
        """Abort any in-flight exchange and close the session for good."""
        if self._session.closed:
            return
        self._cancel_requested = True
        await self._close_handle()
        task = self._task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        await self._finish_cancelled()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _run(self, sink: OutputSink) -> SessionState:
        await self._emit(EventType.SESSION_STARTED, {
            "history_length": len(self._session.history),
        })
        max_turns = self._config.max_turns
        turn = 0
        try:
            while True:
                turn += 1
                if max_turns and turn > max_turns:
                    raise InvariantViolation(
                        f"exceeded max_turns ({max_turns}) without a final answer"
                    )

                descriptors = self._registry.list()
                text, calls = await self._stream_turn(turn, descriptors, sink)

                if not calls:
                    self._session.append(Message(role=Role.ASSISTANT, content=text))
                    await self._set_state(SessionState.COMPLETED)
                    await notify(sink.on_complete)
                    await self._emit(EventType.SESSION_COMPLETED, {"turns": turn})
                    return SessionState.COMPLETED

                await self._set_state(SessionState.DISPATCHING)
                await self._dispatch(calls, descriptors, sink)
                self._session.append(
                    Message(role=Role.ASSISTANT, content=text or None, tool_calls=tuple(calls))
                )
                for call in calls:
                    self._session.append(
                        Message(
                            role=Role.TOOL,
                            content=call.result.payload if call.result else "",
                            tool_call_id=call.id,
                        )
                    )
                self._check_cancelled()
                await self._set_state(SessionState.CONTINUING)

        except asyncio.CancelledError:
            self._cancel_requested = True
            await self._close_handle()
            await self._finish_cancelled()
            return SessionState.CANCELLED
        except StreamCallError as e:
            return await self._fail(e, sink)
        except Exception as e:
            _logger.exception("Unexpected error in session %s", self._session.id)
            return await self._fail(
                InvariantViolation(f"{type(e).__name__}: {e}"), sink,
            )

    async def _stream_turn(
        self,
        turn: int,
        descriptors: list[ToolDescriptor],
        sink: OutputSink,
    ) -> tuple[str, list[ToolCall]]:
        await self._set_state(SessionState.STREAMING)
        await self._emit(EventType.TURN_STARTED, {"turn": turn})

        endpoint = self._config.endpoint
        request = ChatRequest(
            model=endpoint.model,
            messages=self._session.to_messages(),
            tools=[d.to_openai_schema() for d in descriptors],
            temperature=endpoint.temperature,
            max_tokens=endpoint.max_tokens,
            extra=dict(endpoint.extra_params),
        )

        accumulator = self._accumulator = TurnAccumulator()
        self._handle = await self._transport.open(request)
        frames = iter_frames(self._handle.lines())
        try:
            async for event in frames:
                if self._cancel_requested:
                    break
                delta = accumulator.feed(event)
                if delta.terminal:
                    break
                if delta.text:
                    await notify(sink.on_text, delta.text)
        finally:
            await frames.aclose()
            await self._close_handle()
        self._check_cancelled()

        await self._set_state(SessionState.MERGING)
        calls = merge_fragments(accumulator.cache)
        for call in calls:
            call.arguments = normalize_arguments(call.arguments)
        _logger.debug(
            "Turn %d: %d chars, %d tool call(s)", turn, len(accumulator.text), len(calls),
        )
        await self._emit(EventType.TURN_FINISHED, {
            "turn": turn,
            "text_length": len(accumulator.text),
            "tool_calls": [c.function for c in calls],
        })
        return accumulator.text, calls

    async def _dispatch(
        self,
        calls: list[ToolCall],
        descriptors: list[ToolDescriptor],
        sink: OutputSink,
    ) -> None:
        for call in calls:
            await notify(sink.on_tool_call, call)
            call.result = await self._dispatcher.execute(call, descriptors)
            await notify(sink.on_tool_result, call.function, call.result.payload)
            self._check_cancelled()

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _check_cancelled(self) -> None:
        if self._cancel_requested:
            raise asyncio.CancelledError()

    async def _fail(self, error: StreamCallError, sink: OutputSink) -> SessionState:
        reason = str(error) or error.kind.value
        _logger.warning("Session %s errored (%s): %s", self._session.id, error.kind.value, reason)
        if self._accumulator is not None:
            self._accumulator.discard()
        await self._close_handle()
        await self._set_state(SessionState.ERRORED)
        await notify(sink.on_error, reason)
        await self._emit(EventType.SESSION_ERROR, {
            "error": reason,
            "kind": error.kind.value,
        })
        return SessionState.ERRORED

    async def _finish_cancelled(self) -> None:
        if self._session.state is SessionState.CANCELLED:
            return
        if self._accumulator is not None:
            self._accumulator.discard()
        await self._set_state(SessionState.CANCELLED)
        await self._emit(EventType.SESSION_CANCELLED, {})

    async def _close_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            try:
                await handle.aclose()
            except Exception:
                _logger.debug("Error closing stream handle", exc_info=True)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def _set_state(self, state: SessionState) -> None:
        self._session.state = state
        await self._emit(EventType.SESSION_STATE, {"state": state.value})

    async def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self._event_bus:
            await self._event_bus.publish(
                event_type, session_id=self._session.id, **data,
            )
