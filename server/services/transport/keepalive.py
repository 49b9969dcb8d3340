"""Per-session keep-alive heartbeats.

One periodic task per session id. Each tick writes a ping frame to the bound
stream; a tick that finds no binding, or fails to write, ends its own task.
"""

import asyncio
from typing import Callable, Dict, List, Optional

from constants import KEEP_ALIVE_FRAME
from core.clock import Clock
from core.errors import TransportError
from core.logging import get_logger, log_session_event
from services.transport.registry import TransportRegistry

logger = get_logger(__name__)

WriteFailureCallback = Callable[[str], object]


class KeepAliveScheduler:
    """Starts, restarts and stops heartbeat timers keyed by session id."""

    def __init__(
        self,
        registry: TransportRegistry,
        interval: float,
        clock: Clock,
        timers: Optional[Dict[str, asyncio.Task]] = None,
    ):
        self.registry = registry
        self.interval = interval
        self.clock = clock
        self._timers: Dict[str, asyncio.Task] = timers if timers is not None else {}
        # Set by the transport manager so write failures run the full cleanup
        self.on_write_failure: Optional[WriteFailureCallback] = None

    def start(self, session_id: str) -> None:
        """Start the session's timer, cancelling any timer it already has."""
        if self.stop(session_id):
            logger.debug("Cleared existing keep-alive timer", session_id=session_id)
        task = asyncio.get_running_loop().create_task(
            self._run(session_id), name=f"keepalive:{session_id}"
        )
        self._timers[session_id] = task
        log_session_event(logger, "keepalive_started", session_id, interval=self.interval)

    def stop(self, session_id: str) -> bool:
        """Cancel the session's timer. Returns whether one was running."""
        task = self._timers.pop(session_id, None)
        if task is None:
            return False
        if task is not asyncio.current_task() and not task.done():
            task.cancel()
        log_session_event(logger, "keepalive_stopped", session_id)
        return True

    def stop_all(self) -> int:
        session_ids = list(self._timers)
        for session_id in session_ids:
            self.stop(session_id)
        return len(session_ids)

    def tick(self, session_id: str) -> bool:
        """Send one heartbeat. Returns False when the timer should end."""
        binding = self.registry.get(session_id)
        if binding is None:
            self.stop(session_id)
            return False
        try:
            binding.transport.write(KEEP_ALIVE_FRAME)
        except TransportError as e:
            logger.warning("Keep-alive write failed", session_id=session_id, error=e.message)
            self.stop(session_id)
            if self.on_write_failure is not None:
                self.on_write_failure(session_id)
            return False
        logger.debug("Sent keep-alive ping", session_id=session_id)
        return True

    async def _run(self, session_id: str) -> None:
        me = asyncio.current_task()
        try:
            while self._timers.get(session_id) is me:
                await self.clock.sleep(self.interval)
                if self._timers.get(session_id) is not me:
                    break
                if not self.tick(session_id):
                    break
        finally:
            if self._timers.get(session_id) is me:
                del self._timers[session_id]

    def active_sessions(self) -> List[str]:
        return list(self._timers)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._timers

    def __len__(self) -> int:
        return len(self._timers)
