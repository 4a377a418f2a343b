"""Health check utilities.

Provides uptime tracking and store status for the /health endpoint.
"""
import time
from typing import Dict, Any, TYPE_CHECKING

import psutil

if TYPE_CHECKING:
    from adcraft.core.config import Settings
    from adcraft.core.cleanup import RetentionSweeper
    from adcraft.core.storage import KeyValueStore

# Module-level startup time tracking
_startup_time: float = 0.0


def set_startup_time() -> None:
    """Record the application startup time. Call once during lifespan startup."""
    global _startup_time
    _startup_time = time.time()


def get_uptime() -> float:
    """Get uptime in seconds since startup."""
    return time.time() - _startup_time if _startup_time else 0.0


def get_memory_mb() -> float:
    """Get current process memory usage in MB."""
    try:
        return psutil.Process().memory_info().rss / (1024 * 1024)
    except psutil.Error:
        return 0.0


async def get_health_status(
    store: "KeyValueStore",
    sweeper: "RetentionSweeper",
    settings: "Settings"
) -> Dict[str, Any]:
    """Get health status for /health endpoint.

    Returns:
        Dict containing status, uptime, resource usage, and feature flags.
    """
    store_healthy = await store.ping()

    return {
        "status": "healthy" if store_healthy else "degraded",
        "uptime_seconds": round(get_uptime(), 1),
        "memory_mb": round(get_memory_mb(), 1),
        "checks": {
            "store": store_healthy,
        },
        "features": {
            "store_backend": settings.store_backend,
            "maintenance": sweeper.running,
        },
    }
