"""Tests for the SessionManager."""

import asyncio

import pytest

from streamcall.config import StreamConfig
from streamcall.core.manager import SessionManager
from streamcall.core.sink import CollectingSink
from streamcall.errors import SessionClosedError
from streamcall.events.bus import WILDCARD, EventBus
from streamcall.types import Role, SessionState

from conftest import WAIT, FakeTransport, sse, text_chunk


class TestSessions:
    def test_open_session_returns_distinct_ids(self, config, registry):
        manager = SessionManager(config, FakeTransport(), registry)
        first = manager.open_session()
        second = manager.open_session()
        assert first != second
        assert len(manager) == 2
        assert first in manager

    def test_system_prompt_defaults_to_config(self, registry):
        config = StreamConfig(system_prompt="You are terse.")
        manager = SessionManager(config, FakeTransport(), registry)
        sid = manager.open_session()
        history = manager.get(sid).session.history
        assert history[0].role is Role.SYSTEM
        assert history[0].content == "You are terse."

    def test_explicit_system_prompt(self, config, registry):
        manager = SessionManager(config, FakeTransport(), registry)
        sid = manager.open_session(system_prompt="Custom")
        assert manager.get(sid).session.history[0].content == "Custom"

    def test_unknown_session(self, config, registry):
        manager = SessionManager(config, FakeTransport(), registry)
        with pytest.raises(SessionClosedError):
            manager.get("missing")


class TestRouting:
    @pytest.mark.asyncio
    async def test_histories_are_independent(self, config, registry):
        transport = FakeTransport(sse(text_chunk("one")), sse(text_chunk("two")))
        manager = SessionManager(config, transport, registry)
        a = manager.open_session()
        b = manager.open_session()

        await manager.send_prompt(a, "for a")
        await manager.send_prompt(b, "for b")

        assert [m.content for m in manager.get(a).session.history] == ["for a", "one"]
        assert [m.content for m in manager.get(b).session.history] == ["for b", "two"]

    @pytest.mark.asyncio
    async def test_sessions_run_concurrently(self, config, registry):
        transport = FakeTransport(sse(WAIT, text_chunk("slow")), sse(text_chunk("fast")))
        manager = SessionManager(config, transport, registry)
        slow = manager.open_session()
        fast = manager.open_session()
        slow_sink, fast_sink = CollectingSink(), CollectingSink()

        slow_task = asyncio.create_task(manager.send_prompt(slow, "1", slow_sink))
        handle = await transport.until_waiting()

        assert await manager.send_prompt(fast, "2", fast_sink) is SessionState.COMPLETED
        assert fast_sink.text == "fast"

        handle.release.set()
        assert await slow_task is SessionState.COMPLETED
        assert slow_sink.text == "slow"


class TestClose:
    @pytest.mark.asyncio
    async def test_close_removes_session(self, config, registry):
        manager = SessionManager(config, FakeTransport(), registry)
        sid = manager.open_session()
        await manager.close(sid)
        assert sid not in manager
        with pytest.raises(SessionClosedError):
            await manager.send_prompt(sid, "hi")

    @pytest.mark.asyncio
    async def test_close_cancels_running_exchange(self, config, registry):
        transport = FakeTransport(sse(WAIT, text_chunk("never")))
        manager = SessionManager(config, transport, registry)
        sid = manager.open_session()
        controller = manager.get(sid)

        task = asyncio.create_task(manager.send_prompt(sid, "hi"))
        await transport.until_waiting()
        await manager.close(sid)

        assert await task is SessionState.CANCELLED
        assert controller.state is SessionState.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_by_id(self, config, registry):
        manager = SessionManager(config, FakeTransport(), registry)
        sid = manager.open_session()
        await manager.cancel(sid)
        with pytest.raises(SessionClosedError):
            await manager.send_prompt(sid, "hi")

    @pytest.mark.asyncio
    async def test_aclose_closes_everything(self, config, registry):
        manager = SessionManager(config, FakeTransport(), registry)
        manager.open_session()
        manager.open_session()
        await manager.aclose()
        assert len(manager) == 0
        assert manager.session_ids == []

    @pytest.mark.asyncio
    async def test_close_drops_session_subscriptions(self, config, registry):
        bus = EventBus()
        transport = FakeTransport(sse(text_chunk("one")), sse(text_chunk("two")))
        manager = SessionManager(config, transport, registry, event_bus=bus)
        first = manager.open_session()
        seen = []
        bus.subscribe(WILDCARD, seen.append, session_id=first)

        await manager.send_prompt(first, "hi")
        delivered = len(seen)
        await manager.close(first)
        second = manager.open_session()
        await manager.send_prompt(second, "hi")

        assert delivered > 0
        assert len(seen) == delivered
        assert all(e.data["session_id"] == first for e in seen)
