"""Periodic sweep of idle sessions and stale cache entries.

Cold load already purges expired state; this covers long-lived processes
where an actor stays loaded for hours. Only actors that are already loaded
are swept, so the sweep never forces a cold load. Afterwards, actors that
hold nothing and were not requested for ``actor_idle_ms`` are dropped from
memory.
"""
import asyncio
from typing import Optional, TYPE_CHECKING

from core.logging import get_logger

if TYPE_CHECKING:
    from services.actors import ActorDirectory
    from services.resource_cache import ResourceCache
    from services.session_store import SessionStore

logger = get_logger(__name__)


class CleanupService:
    """Background sweeper for durable actors."""

    def __init__(
        self,
        sessions: "ActorDirectory[SessionStore]",
        caches: "ActorDirectory[ResourceCache]",
        interval: int,
        actor_idle_ms: int = 300_000,
    ):
        self.sessions = sessions
        self.caches = caches
        self.interval = interval
        self.actor_idle_ms = actor_idle_ms
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the cleanup background task. An interval of 0 disables it."""
        if self._running or self.interval <= 0:
            return
        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop())
        logger.info("Cleanup service started", interval=self.interval)

    async def stop(self) -> None:
        """Stop the cleanup service gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Cleanup service stopped")

    async def _cleanup_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Cleanup failed", error=str(e))

    async def run_once(self) -> dict:
        """Sweep every loaded actor once, then drop idle empty actors.

        Returns removal counts.
        """
        results = {"expired_sessions": 0, "stale_cache_entries": 0, "evicted_actors": 0}

        for store in self.sessions.actors():
            if not store.loaded:
                continue
            try:
                results["expired_sessions"] += await store.sweep()
            except Exception as e:
                logger.warning("Failed to sweep sessions", partition=store.partition, error=str(e))

        for cache in self.caches.actors():
            if not cache.loaded:
                continue
            try:
                results["stale_cache_entries"] += await cache.sweep()
            except Exception as e:
                logger.warning("Failed to sweep cache", partition=cache.partition, error=str(e))

        results["evicted_actors"] = (
            self.sessions.evict_idle(self.actor_idle_ms) + self.caches.evict_idle(self.actor_idle_ms)
        )

        if sum(results.values()) > 0:
            logger.info("Cleanup completed", **results)
        return results
