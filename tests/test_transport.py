"""
Unit tests for the stream transport, registry and keep-alive scheduler.
"""

import asyncio

import pytest

from conftest import settle
from constants import KEEP_ALIVE_FRAME
from core.errors import TransportError, ValidationError
from services.transport import (
    KeepAliveScheduler,
    SseTransport,
    TransportBinding,
    TransportRegistry,
    format_event,
)


def bind(registry: TransportRegistry, session_id: str, clock) -> SseTransport:
    transport = SseTransport(session_id, "/mcp")
    registry.bind(TransportBinding(session_id=session_id, transport=transport, created_at=clock.now()))
    return transport


class TestSseTransport:
    def test_format_event_prefixes_every_data_line(self):
        assert format_event("message", "a\nb") == "event: message\ndata: a\ndata: b\n\n"

    async def test_start_announces_message_endpoint(self):
        transport = SseTransport("abc", "/messages")
        transport.start()

        frame = await transport.events().__anext__()
        assert frame == "event: endpoint\ndata: /messages?sessionId=abc\n\n"

    def test_write_after_close_raises(self):
        transport = SseTransport("abc", "/mcp")
        transport.close()

        with pytest.raises(TransportError):
            transport.write(KEEP_ALIVE_FRAME)

    def test_close_runs_hooks_once(self):
        transport = SseTransport("abc", "/mcp")
        calls = []
        transport.add_close_hook(lambda: calls.append("closed"))

        transport.close()
        transport.close()

        assert calls == ["closed"]
        assert transport.closed

    def test_failing_hook_does_not_block_others(self):
        transport = SseTransport("abc", "/mcp")
        calls = []

        def broken():
            raise RuntimeError("boom")

        transport.add_close_hook(broken)
        transport.add_close_hook(lambda: calls.append("second"))
        transport.close()

        assert calls == ["second"]

    async def test_events_end_when_closed(self):
        transport = SseTransport("abc", "/mcp")
        transport.write("frame-1")
        transport.close()

        frames = [frame async for frame in transport.events()]
        assert frames == ["frame-1"]

    async def test_post_message_decodes_json(self):
        transport = SseTransport("abc", "/mcp")
        received = []

        async def on_message(message):
            received.append(message)

        transport.on_message = on_message
        await transport.handle_post_message(b'{"jsonrpc": "2.0", "id": 1, "method": "ping"}')

        assert received == [{"jsonrpc": "2.0", "id": 1, "method": "ping"}]

    async def test_post_message_rejects_invalid_json(self):
        transport = SseTransport("abc", "/mcp")

        async def on_message(message):
            pass

        transport.on_message = on_message
        with pytest.raises(ValidationError):
            await transport.handle_post_message(b"{not json")

    async def test_post_message_without_handler_raises(self):
        transport = SseTransport("abc", "/mcp")
        with pytest.raises(TransportError):
            await transport.handle_post_message(b"{}")


class TestTransportRegistry:
    def test_bind_returns_replaced_binding(self, registry, clock):
        first = bind(registry, "s1", clock)
        second = SseTransport("s1", "/mcp")

        replaced = registry.bind(TransportBinding("s1", second, clock.now()))

        assert replaced.transport is first
        assert registry.get("s1").transport is second
        assert len(registry) == 1

    def test_remove_is_idempotent(self, registry, clock):
        bind(registry, "s1", clock)

        assert registry.remove("s1") is not None
        assert registry.remove("s1") is None
        assert "s1" not in registry

    def test_remove_checks_transport_identity(self, registry, clock):
        stale = bind(registry, "s1", clock)
        fresh = bind(registry, "s1", clock)

        assert registry.remove("s1", stale) is None
        assert registry.get("s1").transport is fresh
        assert registry.remove("s1", fresh) is not None

    def test_injected_map_is_used(self, clock):
        bindings = {}
        registry = TransportRegistry(bindings)
        bind(registry, "s1", clock)

        assert list(bindings) == ["s1"]
        assert registry.session_ids() == ["s1"]


class TestKeepAliveScheduler:
    async def test_one_ping_per_interval(self, registry, scheduler, clock):
        transport = bind(registry, "s1", clock)
        scheduler.start("s1")

        await clock.fire()
        assert transport.frames_written == 1
        await clock.fire()
        assert transport.frames_written == 2

        stream = transport.events()
        frames = [await stream.__anext__(), await stream.__anext__()]
        assert frames == [KEEP_ALIVE_FRAME, KEEP_ALIVE_FRAME]
        scheduler.stop_all()

    async def test_restart_replaces_timer(self, registry, clock):
        timers = {}
        scheduler = KeepAliveScheduler(registry, 30.0, clock, timers=timers)
        transport = bind(registry, "s1", clock)

        scheduler.start("s1")
        first = timers["s1"]
        scheduler.start("s1")
        second = timers["s1"]
        await settle()

        assert first is not second
        assert first.cancelled()
        assert len(scheduler) == 1

        await clock.fire()
        assert transport.frames_written == 1
        scheduler.stop_all()

    async def test_timer_stops_itself_without_binding(self, registry, scheduler, clock):
        bind(registry, "s1", clock)
        scheduler.start("s1")
        await settle()

        registry.remove("s1")
        await clock.fire()

        assert "s1" not in scheduler
        assert clock.sleepers == 0

    async def test_write_failure_stops_timer_and_reports(self, registry, scheduler, clock):
        failed = []
        scheduler.on_write_failure = failed.append
        transport = bind(registry, "s1", clock)
        scheduler.start("s1")

        transport.close()
        await clock.fire()

        assert failed == ["s1"]
        assert "s1" not in scheduler

    def test_tick_without_binding_returns_false(self, scheduler):
        assert scheduler.tick("missing") is False

    async def test_stop_is_idempotent(self, registry, scheduler, clock):
        bind(registry, "s1", clock)
        scheduler.start("s1")

        assert scheduler.stop("s1") is True
        assert scheduler.stop("s1") is False
        await settle()
        assert len(scheduler) == 0

    async def test_stopped_timer_never_fires(self, registry, scheduler, clock):
        transport = bind(registry, "s1", clock)
        scheduler.start("s1")
        await settle()

        scheduler.stop("s1")
        await clock.fire()
        await asyncio.sleep(0)

        assert transport.frames_written == 0
