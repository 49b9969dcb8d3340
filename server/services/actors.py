"""Durable actor base and identity-addressed directory.

A durable actor owns one partition of persisted state. All of its operations
run one at a time, in arrival order, behind a single FIFO lock; the first
operation loads the partition from storage while holding that lock, so
nothing can observe a partially loaded state. Different partitions never
coordinate with each other.

Actors live in memory only while they are in use: the directory drops actors
that hold no entries and have not been requested for a while. Storage stays
the source of truth, so a dropped partition simply cold-loads again.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Generic, List, TypeVar

from core.clock import Clock
from core.errors import ValidationError
from core.logging import get_logger
from core.storage import StorageService

logger = get_logger(__name__)


class DurableActor:
    """Serialized, storage-backed unit of state for one partition."""

    namespace: str = ""

    def __init__(self, partition: str, storage: StorageService, clock: Clock):
        self.partition = partition
        self.storage = storage
        self.clock = clock
        self._lock = asyncio.Lock()
        self._loaded = False
        self.last_used = clock.now()

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def touch(self) -> None:
        self.last_used = self.clock.now()

    def is_empty(self) -> bool:
        """Whether the loaded in-memory state holds no entries."""
        raise NotImplementedError

    @asynccontextmanager
    async def serialized(self):
        """Run the enclosed block exclusively, loading state first if needed."""
        async with self._lock:
            if not self._loaded:
                state = await self.storage.load(self.namespace, self.partition)
                await self._on_load(state)
                self._loaded = True
                logger.info("Actor loaded", namespace=self.namespace,
                            partition=self.partition, entries=len(state))
            yield

    async def ensure_loaded(self) -> None:
        async with self.serialized():
            pass

    async def _on_load(self, state: Dict[str, Any]) -> None:
        """Populate in-memory state from storage. Runs under the actor lock."""
        raise NotImplementedError

    # Persistence helpers, called from inside ``serialized`` blocks

    async def _persist(self, key: str, value: Any) -> None:
        await self.storage.put(self.namespace, self.partition, key, value)

    async def _forget(self, *keys: str) -> int:
        return await self.storage.delete_many(self.namespace, self.partition, keys)


A = TypeVar("A", bound=DurableActor)


class ActorDirectory(Generic[A]):
    """Maps partition identities to lazily created actors."""

    def __init__(self, factory: Callable[[str], A]):
        self._factory = factory
        self._actors: Dict[str, A] = {}

    def get(self, partition: str) -> A:
        if not partition or not partition.strip():
            raise ValidationError("Partition required")
        actor = self._actors.get(partition)
        if actor is None:
            actor = self._factory(partition)
            self._actors[partition] = actor
        actor.touch()
        return actor

    def evict_idle(self, idle_ms: int) -> int:
        """Drop actors holding nothing that were not requested for ``idle_ms``.

        Busy actors and actors with loaded entries are kept. Returns how many
        were dropped.
        """
        evicted = []
        for partition, actor in list(self._actors.items()):
            if actor.busy or (actor.loaded and not actor.is_empty()):
                continue
            if actor.clock.now() - actor.last_used < idle_ms:
                continue
            del self._actors[partition]
            evicted.append(partition)
        if evicted:
            logger.debug("Evicted idle actors", count=len(evicted))
        return len(evicted)

    def actors(self) -> List[A]:
        return list(self._actors.values())

    def __len__(self) -> int:
        return len(self._actors)

    def __contains__(self, partition: str) -> bool:
        return partition in self._actors
