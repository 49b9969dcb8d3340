"""
Shared pytest fixtures
======================

Every component takes its clock, storage and registries by injection, so the
fixtures below wire them together in-process: a manual clock drives TTLs and
heartbeat timers, and the memory storage backend stands in for SQLite/Redis
unless a test asks for the real database.
"""

import asyncio
import os
from typing import List

import httpx
import pytest
from dependency_injector import providers

# Must be set before the application settings are first instantiated
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SESSION_SWEEP_INTERVAL", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "console")

from core.config import Settings
from core.container import container
from core.database import Database
from core.storage import StorageService
from services.actors import ActorDirectory
from services.engine import LoopbackEngine
from services.resource_cache import CachePolicy, ResourceCache
from services.session_store import SessionStore
from services.transport import KeepAliveScheduler, TransportManager, TransportRegistry


START_MS = 1_700_000_000_000


class ManualClock:
    """Clock whose time only moves when a test says so.

    ``sleep`` parks the caller until ``fire()`` releases every parked sleeper
    once, which stands in for one heartbeat interval elapsing.
    """

    def __init__(self, start_ms: int = START_MS):
        self._now = start_ms
        self._sleepers: List[asyncio.Future] = []

    def now(self) -> int:
        return self._now

    def advance(self, ms: int) -> None:
        self._now += ms

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append(future)
        await future

    @property
    def sleepers(self) -> int:
        return sum(1 for future in self._sleepers if not future.done())

    async def fire(self) -> None:
        await settle()
        sleepers, self._sleepers = self._sleepers, []
        for future in sleepers:
            if not future.done():
                future.set_result(None)
        await settle()


async def settle(rounds: int = 5) -> None:
    """Let pending tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ============================================================================
# CORE
# ============================================================================

@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        database_url="sqlite+aiosqlite:///:memory:",
        session_sweep_interval=0,
    )


@pytest.fixture
def storage(settings) -> StorageService:
    return StorageService(settings)


@pytest.fixture
async def sqlite_storage(tmp_path):
    """Real SQLite substrate in a temp file, for durability across cold loads."""
    db_settings = Settings(
        storage_backend="sqlite",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'actors.db'}",
    )
    storage = StorageService(db_settings, Database(db_settings))
    await storage.startup()
    yield storage
    await storage.shutdown()


@pytest.fixture
def policy(settings) -> CachePolicy:
    return CachePolicy.from_settings(settings)


# ============================================================================
# DURABLE ACTORS
# ============================================================================

@pytest.fixture
def session_stores(storage, clock, settings) -> ActorDirectory:
    return ActorDirectory(lambda partition: SessionStore(partition, storage, clock, settings.session_ttl_ms))


@pytest.fixture
def resource_caches(storage, clock, policy) -> ActorDirectory:
    return ActorDirectory(lambda partition: ResourceCache(partition, storage, clock, policy))


# ============================================================================
# TRANSPORT
# ============================================================================

@pytest.fixture
def registry() -> TransportRegistry:
    return TransportRegistry()


@pytest.fixture
def scheduler(registry, clock) -> KeepAliveScheduler:
    return KeepAliveScheduler(registry, 30.0, clock)


@pytest.fixture
async def manager(registry, scheduler, clock):
    manager = TransportManager(registry, scheduler, LoopbackEngine(), clock)
    yield manager
    manager.shutdown()
    await settle()


# ============================================================================
# HTTP
# ============================================================================

@pytest.fixture
async def client(settings, storage, manager, session_stores, resource_caches, policy):
    """ASGI client against the real app with in-process collaborators."""
    from main import app

    overridden = {
        container.settings: settings,
        container.storage: storage,
        container.transport_manager: manager,
        container.session_stores: session_stores,
        container.resource_caches: resource_caches,
        container.cache_policy: policy,
    }
    for provider, value in overridden.items():
        provider.override(providers.Object(value))

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    for provider in overridden:
        provider.reset_override()
