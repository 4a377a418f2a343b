"""Performance metrics routes (dashboard read boundary and instrumentation)."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from adcraft.core.cleanup import RetentionSweeper
from adcraft.core.container import container
from adcraft.core.logging import get_logger
from adcraft.models.metrics import (
    APICallData,
    ImageOptimizationData,
    MetricKind,
    metric_adapter,
)
from adcraft.services.performance import MetricsRecorder
from adcraft.services.statistics import StatisticsAggregator

logger = get_logger(__name__)
router = APIRouter(prefix="/api/performance", tags=["performance"])


class VideoGenerationRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    duration: float = Field(ge=0)
    success: bool
    error_message: Optional[str] = None


class UserActionRequest(BaseModel):
    action: str
    duration: Optional[float] = None
    data: Dict[str, Any] = {}


def _tracked(metric) -> Dict[str, Any]:
    if metric is None:
        return {"success": False, "error": "metric not stored"}
    return {"success": True, "id": metric.id}


@router.get("/stats")
async def get_performance_stats(
    hours: float = Query(default=24, gt=0),
    statistics: StatisticsAggregator = Depends(lambda: container.statistics())
):
    """Windowed performance statistics for the dashboard."""
    try:
        stats = await statistics.get_performance_stats(hours)
        return {"success": True, "stats": stats.model_dump(by_alias=True)}
    except Exception as e:
        logger.error("Failed to compute performance stats", hours=hours, error=str(e))
        return {"success": False, "error": str(e)}


@router.get("/trend")
async def get_performance_trend(
    days: int = Query(default=7, ge=1, le=365),
    statistics: StatisticsAggregator = Depends(lambda: container.statistics())
):
    try:
        trend = await statistics.get_performance_trend(days)
        return {"success": True, "trend": [p.model_dump(by_alias=True) for p in trend]}
    except Exception as e:
        logger.error("Failed to compute performance trend", days=days, error=str(e))
        return {"success": False, "error": str(e)}


@router.get("/metrics")
async def get_metrics(
    type: Optional[MetricKind] = None,
    start: Optional[int] = None,
    end: Optional[int] = None,
    recorder: MetricsRecorder = Depends(lambda: container.metrics())
):
    """Raw metric records, newest first, optionally filtered by kind and time range."""
    try:
        if start is not None or end is not None:
            metrics = await recorder.get_metrics_in_range(
                start or 0, end if end is not None else recorder.clock()
            )
        else:
            metrics = await recorder.get_all_metrics()
        if type is not None:
            metrics = [m for m in metrics if m.type == type.value]
        return {
            "success": True,
            "metrics": [metric_adapter.dump_python(m, mode="json", by_alias=True) for m in metrics],
        }
    except Exception as e:
        logger.error("Failed to get metrics", error=str(e))
        return {"success": False, "error": str(e)}


@router.get("/export")
async def export_metrics(
    recorder: MetricsRecorder = Depends(lambda: container.metrics())
):
    exported = await recorder.export_metrics()
    return Response(
        content=exported,
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="performance_metrics.json"'},
    )


# ============================================================================
# Instrumentation
# ============================================================================

@router.post("/track/api-call")
async def track_api_call(
    request: APICallData,
    recorder: MetricsRecorder = Depends(lambda: container.metrics())
):
    return _tracked(await recorder.track_api_call(request))


@router.post("/track/image-optimization")
async def track_image_optimization(
    request: ImageOptimizationData,
    recorder: MetricsRecorder = Depends(lambda: container.metrics())
):
    return _tracked(await recorder.track_image_optimization(request))


@router.post("/track/video-generation")
async def track_video_generation(
    request: VideoGenerationRequest,
    recorder: MetricsRecorder = Depends(lambda: container.metrics())
):
    return _tracked(await recorder.track_video_generation(
        request.duration, request.success, request.error_message
    ))


@router.post("/track/user-action")
async def track_user_action(
    request: UserActionRequest,
    recorder: MetricsRecorder = Depends(lambda: container.metrics())
):
    return _tracked(await recorder.track_user_action(
        request.action, request.duration, request.data
    ))


# ============================================================================
# Maintenance
# ============================================================================

@router.delete("/metrics")
async def clear_metrics(
    recorder: MetricsRecorder = Depends(lambda: container.metrics())
):
    try:
        await recorder.clear_all_metrics()
        return {"success": True}
    except Exception as e:
        logger.error("Failed to clear metrics", error=str(e))
        return {"success": False, "error": str(e)}


@router.post("/cleanup")
async def cleanup_metrics(
    retention_days: Optional[int] = Query(default=None, ge=1),
    sweeper: RetentionSweeper = Depends(lambda: container.sweeper())
):
    try:
        removed = await sweeper.sweep_old_metrics(retention_days)
        return {"success": True, "removed": removed}
    except Exception as e:
        logger.error("Failed to cleanup metrics", error=str(e))
        return {"success": False, "error": str(e)}
