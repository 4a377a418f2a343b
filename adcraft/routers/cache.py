"""Result cache administration routes."""

from fastapi import APIRouter, Depends

from adcraft.core.cache import ResultCache
from adcraft.core.cleanup import RetentionSweeper
from adcraft.core.container import container
from adcraft.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api/cache", tags=["cache"])


@router.get("/stats")
async def get_cache_stats(
    cache: ResultCache = Depends(lambda: container.result_cache())
):
    """Entry counts per cache partition."""
    try:
        stats = await cache.get_cache_stats()
        return {"success": True, "stats": stats.model_dump()}
    except Exception as e:
        logger.error("Failed to get cache stats", error=str(e))
        return {"success": False, "error": str(e)}


@router.delete("")
async def clear_all_caches(
    cache: ResultCache = Depends(lambda: container.result_cache())
):
    try:
        await cache.clear_all_caches()
        return {"success": True}
    except Exception as e:
        logger.error("Failed to clear caches", error=str(e))
        return {"success": False, "error": str(e)}


@router.post("/cleanup")
async def cleanup_expired_cache(
    sweeper: RetentionSweeper = Depends(lambda: container.sweeper())
):
    try:
        removed = await sweeper.sweep_expired_cache()
        return {"success": True, "removed": removed}
    except Exception as e:
        logger.error("Failed to cleanup expired cache", error=str(e))
        return {"success": False, "error": str(e)}
