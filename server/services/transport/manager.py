"""Stream lifecycle coordinator.

Explicit termination, connection close and write failures all end in
``cleanup``, which removes the binding, stops its heartbeat timer and closes
the stream. ``cleanup`` is idempotent.
"""

from typing import Any, Dict, Optional, TYPE_CHECKING

from core.clock import Clock
from core.errors import BackendError, NotFoundError
from core.logging import get_logger, log_session_event
from services.transport.keepalive import KeepAliveScheduler
from services.transport.registry import TransportBinding, TransportRegistry
from services.transport.sse import SseTransport

if TYPE_CHECKING:
    from services.engine import ProtocolEngine

logger = get_logger(__name__)


class TransportManager:
    """Owns the registry/timer pair and keeps them in step."""

    def __init__(
        self,
        registry: TransportRegistry,
        scheduler: KeepAliveScheduler,
        engine: "ProtocolEngine",
        clock: Clock,
    ):
        self.registry = registry
        self.scheduler = scheduler
        self.engine = engine
        self.clock = clock
        scheduler.on_write_failure = self.cleanup

    async def open_stream(self, session_id: str, endpoint: str) -> SseTransport:
        """Bind a new stream to ``session_id``, replacing any existing one."""
        transport = SseTransport(session_id, endpoint)
        binding = TransportBinding(session_id=session_id, transport=transport, created_at=self.clock.now())

        replaced = self.registry.bind(binding)
        self.scheduler.start(session_id)
        transport.add_close_hook(lambda: self.cleanup(session_id, transport))
        if replaced is not None:
            log_session_event(logger, "binding_replaced", session_id)
            replaced.transport.close()

        log_session_event(logger, "binding_created", session_id,
                          endpoint=endpoint, active_sessions=len(self.registry))

        try:
            await self.engine.connect(transport)
        except Exception as e:
            self.cleanup(session_id, transport)
            raise BackendError("Error establishing SSE connection", detail=str(e)) from e
        return transport

    def cleanup(self, session_id: str, transport: Optional[SseTransport] = None) -> bool:
        """Tear down the session's binding. Returns whether one was removed.

        With ``transport`` given, only that stream's binding is torn down; a
        stale stream closing after it was replaced leaves the new one alone.
        """
        binding = self.registry.remove(session_id, transport)
        if binding is None:
            if transport is not None:
                transport.close()
            return False

        self.scheduler.stop(session_id)
        binding.transport.close()
        log_session_event(logger, "binding_removed", session_id, active_sessions=len(self.registry))
        return True

    def terminate(self, session_id: str) -> bool:
        return self.cleanup(session_id)

    def is_bound(self, session_id: Optional[str]) -> bool:
        return bool(session_id) and session_id in self.registry

    async def deliver(self, session_id: str, body: Any) -> None:
        """Hand a POSTed message to the bound stream's handler."""
        binding = self.registry.get(session_id)
        if binding is None:
            raise NotFoundError("No transport found for sessionId")
        logger.debug("Processing message", session_id=session_id)
        await binding.transport.handle_post_message(body)

    def shutdown(self) -> int:
        """Close every stream (application shutdown)."""
        closed = 0
        for session_id in self.registry.session_ids():
            if self.cleanup(session_id):
                closed += 1
        self.scheduler.stop_all()
        return closed

    def stats(self) -> Dict[str, int]:
        return {"bindings": len(self.registry), "timers": len(self.scheduler)}
