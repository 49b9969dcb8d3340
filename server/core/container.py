"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.clock import SystemClock
from core.cleanup import CleanupService
from core.config import Settings
from core.database import Database
from core.storage import StorageService
from services.actors import ActorDirectory
from services.calendar import CalendarDataService, UnconfiguredBackend
from services.engine import LoopbackEngine
from services.resource_cache import CachePolicy, ResourceCache
from services.session_store import SessionStore
from services.transport import KeepAliveScheduler, TransportManager, TransportRegistry


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    clock = providers.Singleton(
        SystemClock,
    )

    # Persistence substrate
    database = providers.Singleton(
        Database,
        settings=settings
    )

    storage = providers.Singleton(
        StorageService,
        settings=settings,
        database=database
    )

    # Process-local transport state
    transport_registry = providers.Singleton(
        TransportRegistry,
    )

    keep_alive = providers.Singleton(
        KeepAliveScheduler,
        registry=transport_registry,
        interval=settings.provided.keep_alive_interval,
        clock=clock
    )

    engine = providers.Singleton(
        LoopbackEngine,
    )

    transport_manager = providers.Singleton(
        TransportManager,
        registry=transport_registry,
        scheduler=keep_alive,
        engine=engine,
        clock=clock
    )

    # Durable actors, one instance per partition
    session_store_factory = providers.Factory(
        SessionStore,
        storage=storage,
        clock=clock,
        ttl_ms=settings.provided.session_ttl_ms
    )

    session_stores = providers.Singleton(
        ActorDirectory,
        factory=session_store_factory.provider
    )

    cache_policy = providers.Singleton(
        CachePolicy.from_settings,
        settings
    )

    resource_cache_factory = providers.Factory(
        ResourceCache,
        storage=storage,
        clock=clock,
        policy=cache_policy
    )

    resource_caches = providers.Singleton(
        ActorDirectory,
        factory=resource_cache_factory.provider
    )

    # Services
    calendar_backend = providers.Singleton(
        UnconfiguredBackend,
    )

    calendar_service = providers.Singleton(
        CalendarDataService,
        cache_directory=resource_caches,
        backend=calendar_backend
    )

    cleanup = providers.Singleton(
        CleanupService,
        sessions=session_stores,
        caches=resource_caches,
        interval=settings.provided.session_sweep_interval,
        actor_idle_ms=settings.provided.actor_idle_ttl_ms
    )


# Global container instance
container = Container()
