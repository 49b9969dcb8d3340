"""Resource Cache durable actor.

Caches backend query results per partition under composite keys
``<category>:<owner>[:<resourceId>]``. Entries expire on a fixed window that
depends on the category; the TTL is never stored with the entry, so it is
always derived from the key's category (or supplied by the caller).
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from constants import (
    CACHE_KEY_DELIMITER,
    CACHE_NAMESPACE,
    CATEGORIES_WITH_RESOURCE_ID,
    CacheCategory,
)
from core.clock import Clock
from core.config import Settings
from core.errors import ValidationError
from core.logging import get_logger, log_cache_operation
from core.storage import StorageService
from services.actors import DurableActor

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheKey:
    """Parsed cache key. The owner segment is always delimiter-bounded."""

    category: CacheCategory
    owner: str
    resource_id: Optional[str] = None

    def __post_init__(self):
        if not self.owner:
            raise ValidationError("userId required")
        if CACHE_KEY_DELIMITER in self.owner:
            raise ValidationError(f"userId must not contain '{CACHE_KEY_DELIMITER}'")
        if self.category in CATEGORIES_WITH_RESOURCE_ID and not self.resource_id:
            raise ValidationError(f"{self.category.value} entries require a resource id")

    def render(self) -> str:
        parts = [self.category.value, self.owner]
        if self.resource_id:
            parts.append(self.resource_id)
        return CACHE_KEY_DELIMITER.join(parts)

    @classmethod
    def parse(cls, key: str) -> "CacheKey":
        parts = key.split(CACHE_KEY_DELIMITER, 2)
        if len(parts) < 2:
            raise ValidationError(f"Malformed cache key: {key}")
        try:
            category = CacheCategory(parts[0])
        except ValueError as e:
            raise ValidationError(f"Unknown cache category: {parts[0]}") from e
        resource_id = parts[2] if len(parts) == 3 else None
        return cls(category=category, owner=parts[1], resource_id=resource_id)

    @classmethod
    def calendars(cls, owner: str) -> "CacheKey":
        return cls(CacheCategory.CALENDARS, owner)

    @classmethod
    def events(cls, owner: str, calendar_id: str) -> "CacheKey":
        return cls(CacheCategory.EVENTS, owner, calendar_id)

    @classmethod
    def preferences(cls, owner: str) -> "CacheKey":
        return cls(CacheCategory.PREFERENCES, owner)

    def __str__(self) -> str:
        return self.render()


class CachePolicy:
    """Category -> TTL (milliseconds)."""

    def __init__(self, ttls_ms: Mapping[str, int], default_ttl_ms: int):
        self._ttls = dict(ttls_ms)
        self.default_ttl_ms = default_ttl_ms

    @classmethod
    def from_settings(cls, settings: Settings) -> "CachePolicy":
        return cls(settings.cache_ttls_ms(), settings.cache_default_ttl * 1000)

    def ttl_for(self, category: Union[CacheCategory, str]) -> int:
        name = category.value if isinstance(category, CacheCategory) else category
        return self._ttls.get(name, self.default_ttl_ms)

    def ttl_for_key(self, key: str) -> int:
        return self.ttl_for(key.split(CACHE_KEY_DELIMITER, 1)[0])


@dataclass
class CacheEntry:
    data: Any
    timestamp: int

    def age_ms(self, now: int) -> int:
        return now - self.timestamp

    def is_fresh(self, now: int, ttl_ms: int) -> bool:
        return self.age_ms(now) < ttl_ms

    def to_json(self) -> Dict[str, Any]:
        return {"data": self.data, "timestamp": self.timestamp}


@dataclass(frozen=True)
class CacheHit:
    data: Any
    age_ms: int


KeyLike = Union[CacheKey, str]


class ResourceCache(DurableActor):
    """Serialized result cache for one partition."""

    namespace = CACHE_NAMESPACE

    def __init__(self, partition: str, storage: StorageService, clock: Clock, policy: CachePolicy):
        super().__init__(partition, storage, clock)
        self.policy = policy
        self._entries: Dict[str, CacheEntry] = {}

    async def _on_load(self, state: Dict[str, Any]) -> None:
        self._entries = {}
        for key, raw in state.items():
            if not isinstance(raw, dict) or "timestamp" not in raw:
                logger.warning("Discarding malformed cache entry", partition=self.partition, key=key)
                continue
            self._entries[key] = CacheEntry(data=raw.get("data"), timestamp=int(raw["timestamp"]))
        await self._purge_stale()

    async def _purge_stale(self) -> int:
        now = self.clock.now()
        stale = [
            key for key, entry in self._entries.items()
            if not entry.is_fresh(now, self.policy.ttl_for_key(key))
        ]
        if not stale:
            return 0
        await self._forget(*stale)
        for key in stale:
            del self._entries[key]
        logger.info("Purged stale cache entries", partition=self.partition, count=len(stale))
        return len(stale)

    def is_empty(self) -> bool:
        return not self._entries

    def _resolve(self, key: KeyLike, ttl_ms: Optional[int]):
        rendered = key.render() if isinstance(key, CacheKey) else key
        ttl = ttl_ms if ttl_ms is not None else self.policy.ttl_for_key(rendered)
        return rendered, ttl

    async def get(self, key: KeyLike, ttl_ms: Optional[int] = None) -> Optional[CacheHit]:
        """Return a hit while ``now - timestamp < ttl``; ``None`` otherwise."""
        async with self.serialized():
            rendered, ttl = self._resolve(key, ttl_ms)
            entry = self._entries.get(rendered)
            now = self.clock.now()
            if entry is None or not entry.is_fresh(now, ttl):
                log_cache_operation(logger, "get", rendered, hit=False, stale=entry is not None)
                return None
            log_cache_operation(logger, "get", rendered, hit=True)
            return CacheHit(data=entry.data, age_ms=entry.age_ms(now))

    async def put(self, key: KeyLike, data: Any) -> None:
        async with self.serialized():
            rendered = key.render() if isinstance(key, CacheKey) else key
            entry = CacheEntry(data=data, timestamp=self.clock.now())
            await self._persist(rendered, entry.to_json())
            self._entries[rendered] = entry
            log_cache_operation(logger, "put", rendered)

    async def clear_for_owner(self, owner_id: str) -> int:
        """Remove every entry whose owner segment equals ``owner_id`` exactly."""
        async with self.serialized():
            owned = []
            for key in self._entries:
                try:
                    if CacheKey.parse(key).owner == owner_id:
                        owned.append(key)
                except ValidationError:
                    continue
            await self._forget(*owned)
            for key in owned:
                del self._entries[key]
            log_cache_operation(logger, "clear_for_owner", owner_id, deleted=len(owned))
            return len(owned)

    async def sweep(self) -> int:
        async with self.serialized():
            return await self._purge_stale()

    async def size(self) -> int:
        async with self.serialized():
            return len(self._entries)
