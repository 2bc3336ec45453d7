"""Session manager: a table of live sessions keyed by session id."""

from __future__ import annotations

import logging

from streamcall.config import StreamConfig
from streamcall.core.controller import ContinuationController
from streamcall.core.session import Session
from streamcall.core.sink import OutputSink
from streamcall.errors import SessionClosedError
from streamcall.events.bus import EventBus
from streamcall.stream.transport import Transport
from streamcall.tools.base import ToolExecutor
from streamcall.tools.registry import ToolRegistry
from streamcall.types import SessionState

_logger = logging.getLogger(__name__)


class SessionManager:
    """Creates controllers and routes calls to them by session id.

    All sessions share the transport, the registry and the executor; each
    has its own history, state and guard.
    """

    def __init__(
        self,
        config: StreamConfig,
        transport: Transport,
        registry: ToolRegistry,
        executor: ToolExecutor | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._registry = registry
        self._executor = executor
        self._event_bus = event_bus
        self._sessions: dict[str, ContinuationController] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    @property
    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def open_session(self, system_prompt: str | None = None) -> str:
        """Create a session and return its id.

        *system_prompt* defaults to the configured one.
        """
        if system_prompt is None:
            system_prompt = self._config.system_prompt
        session = Session(system_prompt=system_prompt)
        self._sessions[session.id] = ContinuationController(
            session,
            self._config,
            self._transport,
            self._registry,
            executor=self._executor,
            event_bus=self._event_bus,
        )
        _logger.debug("Opened session %s", session.id)
        return session.id

    def get(self, session_id: str) -> ContinuationController:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionClosedError(f"unknown session: {session_id}") from None

    async def send_prompt(
        self,
        session_id: str,
        prompt: str,
        sink: OutputSink | None = None,
    ) -> SessionState:
        return await self.get(session_id).send_prompt(prompt, sink)

    async def cancel(self, session_id: str) -> None:
        await self.get(session_id).cancel()

    async def close(self, session_id: str) -> None:
        """Cancel the session if running, drop its event subscriptions, forget it."""
        controller = self._sessions.pop(session_id, None)
        if controller is None:
            return
        if controller.busy:
            await controller.cancel()
        if self._event_bus is not None:
            self._event_bus.drop_session(session_id)
        _logger.debug("Closed session %s", session_id)

    async def aclose(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)
