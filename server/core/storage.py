"""Keyed persistence substrate for durable actors.

Backends, selected by ``STORAGE_BACKEND``:
- sqlite: one ``actor_storage`` row per key (default, single process)
- redis: one hash per ``namespace:partition``, one field per key
- memory: process-local dict, lost on restart (tests, throwaway runs)

Values are JSON documents. Every mutation is a per-key write; no operation
rewrites an actor's whole state.
"""

from typing import Any, Dict, Iterable, Optional, Tuple, TYPE_CHECKING

import orjson
import redis.asyncio as redis

from core.config import Settings
from core.errors import BackendError
from core.logging import get_logger

if TYPE_CHECKING:
    from core.database import Database

logger = get_logger(__name__)


def _dumps(value: Any) -> str:
    return orjson.dumps(value).decode()


class StorageService:
    """Async keyed storage with Redis, SQLite or in-memory backend."""

    def __init__(self, settings: Settings, database: Optional["Database"] = None):
        self.settings = settings
        self.database = database
        self.redis: Optional[redis.Redis] = None
        self.memory: Dict[Tuple[str, str], Dict[str, str]] = {}
        self.backend = settings.storage_backend
        if self.backend == "sqlite" and database is None:
            self.backend = "memory"

    async def startup(self):
        """Open the selected backend."""
        if self.backend == "redis":
            if not self.settings.redis_url:
                raise BackendError("Storage unavailable", detail="STORAGE_BACKEND=redis requires REDIS_URL")
            self.redis = redis.from_url(
                self.settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            await self.redis.ping()
            logger.info("Redis storage initialized", url=self.settings.redis_url)
        elif self.backend == "sqlite":
            await self.database.startup()
            logger.info("Using SQLite storage")
        else:
            logger.info("Using in-memory storage (state is lost on restart)")

    async def shutdown(self):
        """Close storage connections."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            logger.info("Redis storage connections closed")
        if self.backend == "sqlite" and self.database:
            await self.database.shutdown()

    @staticmethod
    def _hash_name(namespace: str, partition: str) -> str:
        return f"actor:{namespace}:{partition}"

    async def load(self, namespace: str, partition: str) -> Dict[str, Any]:
        """Load every key of one actor partition."""
        try:
            if self.backend == "redis":
                raw = await self.redis.hgetall(self._hash_name(namespace, partition))
            elif self.backend == "sqlite":
                raw = await self.database.load_actor_entries(namespace, partition)
            else:
                raw = dict(self.memory.get((namespace, partition), {}))
        except Exception as e:
            raise BackendError("Failed to load state", detail=str(e)) from e

        loaded = {}
        for key, value in raw.items():
            try:
                loaded[key] = orjson.loads(value)
            except orjson.JSONDecodeError:
                logger.warning("Dropping undecodable entry", namespace=namespace,
                               partition=partition, key=key)
        return loaded

    async def put(self, namespace: str, partition: str, key: str, value: Any) -> None:
        """Persist one key."""
        serialized = _dumps(value)
        try:
            if self.backend == "redis":
                await self.redis.hset(self._hash_name(namespace, partition), key, serialized)
            elif self.backend == "sqlite":
                await self.database.put_actor_entry(namespace, partition, key, serialized)
            else:
                self.memory.setdefault((namespace, partition), {})[key] = serialized
        except Exception as e:
            raise BackendError("Failed to persist state", detail=str(e)) from e

    async def delete(self, namespace: str, partition: str, key: str) -> bool:
        """Remove one key. Returns whether it existed."""
        return await self.delete_many(namespace, partition, [key]) > 0

    async def delete_many(self, namespace: str, partition: str, keys: Iterable[str]) -> int:
        """Remove several keys. Returns how many existed."""
        keys = list(keys)
        if not keys:
            return 0
        try:
            if self.backend == "redis":
                return await self.redis.hdel(self._hash_name(namespace, partition), *keys)
            elif self.backend == "sqlite":
                return await self.database.delete_actor_entries(namespace, partition, keys)
            else:
                bucket = self.memory.get((namespace, partition), {})
                removed = 0
                for key in keys:
                    if bucket.pop(key, None) is not None:
                        removed += 1
                return removed
        except Exception as e:
            raise BackendError("Failed to persist state", detail=str(e)) from e

    async def ping(self) -> bool:
        """Cheap connectivity check for /health."""
        try:
            if self.backend == "redis":
                return bool(await self.redis.ping())
            if self.backend == "sqlite":
                await self.database.load_actor_entries("_health", "_health")
            return True
        except Exception as e:
            logger.warning("Storage ping failed", backend=self.backend, error=str(e))
            return False
