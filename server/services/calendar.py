"""Calendar data facade with read-through caching.

The backend client (CalDAV or otherwise) is an external collaborator: each
call is awaited once, never retried, and its result is cached under the
owner's key in the Resource Cache.
"""

from typing import Any, Awaitable, Callable, Dict, List, Protocol

from constants import DEFAULT_PARTITION
from core.errors import BackendError, ServiceError
from core.logging import get_logger
from models.calendar import Calendar, Event, dump_models
from services.actors import ActorDirectory
from services.resource_cache import CacheKey, ResourceCache

logger = get_logger(__name__)


class CalendarBackend(Protocol):
    async def list_calendars(self, owner_id: str) -> List[Calendar]:
        ...

    async def list_events(self, owner_id: str, calendar_id: str) -> List[Event]:
        ...

    async def get_preferences(self, owner_id: str) -> Dict[str, Any]:
        ...


class UnconfiguredBackend:
    """Stand-in used until backend credentials are provided."""

    async def list_calendars(self, owner_id: str) -> List[Calendar]:
        raise BackendError("Calendar service not configured")

    async def list_events(self, owner_id: str, calendar_id: str) -> List[Event]:
        raise BackendError("Calendar service not configured")

    async def get_preferences(self, owner_id: str) -> Dict[str, Any]:
        raise BackendError("Calendar service not configured")


class CalendarDataService:
    """Serves calendar reads from the cache, falling back to the backend."""

    def __init__(self, cache_directory: ActorDirectory[ResourceCache], backend: CalendarBackend):
        self.cache_directory = cache_directory
        self.backend = backend

    async def _read_through(self, partition: str, key: CacheKey,
                            fetch: Callable[[], Awaitable[Any]]) -> Any:
        cache = self.cache_directory.get(partition)
        hit = await cache.get(key)
        if hit is not None:
            return hit.data

        try:
            fresh = await fetch()
        except ServiceError:
            raise
        except Exception as e:
            logger.error("Calendar backend call failed", cache_key=str(key), error=str(e))
            raise BackendError("Calendar backend request failed", detail=str(e)) from e

        await cache.put(key, fresh)
        return fresh

    async def get_calendars(self, owner_id: str, partition: str = DEFAULT_PARTITION) -> List[Calendar]:
        async def fetch():
            return dump_models(await self.backend.list_calendars(owner_id))

        data = await self._read_through(partition, CacheKey.calendars(owner_id), fetch)
        return [Calendar.model_validate(item) for item in data]

    async def get_events(self, owner_id: str, calendar_id: str,
                         partition: str = DEFAULT_PARTITION) -> List[Event]:
        async def fetch():
            return dump_models(await self.backend.list_events(owner_id, calendar_id))

        data = await self._read_through(partition, CacheKey.events(owner_id, calendar_id), fetch)
        return [Event.model_validate(item) for item in data]

    async def get_preferences(self, owner_id: str, partition: str = DEFAULT_PARTITION) -> Dict[str, Any]:
        return await self._read_through(
            partition, CacheKey.preferences(owner_id),
            lambda: self.backend.get_preferences(owner_id),
        )

    async def invalidate(self, owner_id: str, partition: str = DEFAULT_PARTITION) -> int:
        """Drop everything cached for ``owner_id`` (e.g. after a write)."""
        return await self.cache_directory.get(partition).clear_for_owner(owner_id)
