"""Health check utilities for daemon monitoring.

Provides uptime tracking and the status document served on /health.
"""
import time
from typing import Dict, Any, TYPE_CHECKING

if TYPE_CHECKING:
    from core.config import Settings
    from core.storage import StorageService
    from services.transport import TransportManager

# Module-level startup time tracking
_startup_time: float = 0.0


def set_startup_time() -> None:
    """Record the application startup time. Call once during lifespan startup."""
    global _startup_time
    _startup_time = time.time()


def get_uptime() -> float:
    """Get uptime in seconds since startup."""
    return time.time() - _startup_time if _startup_time else 0.0


async def get_health_status(
    storage: "StorageService",
    transport_manager: "TransportManager",
    settings: "Settings"
) -> Dict[str, Any]:
    """Build the /health document.

    ``transport`` reports live bindings and timers; the two counts are
    equal whenever the process is healthy.
    """
    storage_healthy = await storage.ping()
    transport = transport_manager.stats()
    backend = settings.backend_config_status()

    healthy = storage_healthy and transport["bindings"] == transport["timers"]

    return {
        "status": "healthy" if healthy else "degraded",
        "server": settings.server_name,
        "version": settings.server_version,
        "environment": settings.environment,
        "uptime_seconds": round(get_uptime(), 1),
        "checks": {
            "storage": storage_healthy,
            "storage_backend": storage.backend,
        },
        "transport": transport,
        "backend": {
            "calendarReady": backend["calendarReady"],
            "missing": backend["missing"],
        },
    }
