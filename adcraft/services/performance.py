"""Performance metrics recorder.

Appends one immutable, timestamped record per instrumentation call to the
``performance_metrics`` partition. Nothing is aggregated at write time; see
:mod:`adcraft.services.statistics` for the read side.

Recording is best-effort telemetry: a failed write is logged and the caller
carries on.
"""

import json
import uuid
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

from adcraft.constants import METRICS_PARTITION
from adcraft.core.codec import Clock, now_ms
from adcraft.core.logging import get_logger, log_metric
from adcraft.core.storage import KeyValueStore
from adcraft.models.metrics import (
    GENERATION_KINDS,
    APICallData,
    ImageOptimizationData,
    MetricKind,
    PerformanceMetric,
    metric_adapter,
)

logger = get_logger(__name__)

Payload = Union[BaseModel, Dict[str, Any], None]


class MetricsRecorder:
    """Writes performance metric records and reads them back unaggregated."""

    def __init__(self, store: KeyValueStore, clock: Clock = now_ms):
        self.partition = store.create_partition(METRICS_PARTITION)
        self.clock = clock

    def _new_id(self, timestamp: int) -> str:
        return f"metric_{timestamp}_{uuid.uuid4().hex[:9]}"

    async def record(
        self,
        kind: Union[MetricKind, str],
        payload: Payload = None,
        duration: Optional[float] = None,
        success: bool = True,
        user_id: Optional[str] = None,
    ) -> Optional[PerformanceMetric]:
        """Append one metric record. Returns it, or None if it could not be stored."""
        kind = MetricKind(kind)
        timestamp = self.clock()
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(by_alias=True)

        try:
            metric = metric_adapter.validate_python({
                "id": self._new_id(timestamp),
                "type": kind.value,
                "timestamp": timestamp,
                "duration": duration,
                "success": success,
                "userId": user_id,
                "data": payload or {},
            })
            await self.partition.set(
                metric.id, metric_adapter.dump_python(metric, mode="json", by_alias=True)
            )
        except Exception as e:
            logger.error("Failed to track metric", metric_type=kind.value, error=str(e))
            return None

        log_metric(logger, kind.value, success, metric_id=metric.id, duration_ms=duration)
        return metric

    # ============================================================================
    # Instrumentation helpers
    # ============================================================================

    async def track_image_optimization(self, data: Union[ImageOptimizationData, Dict[str, Any]]):
        if isinstance(data, dict):
            data = ImageOptimizationData.model_validate(data)
        return await self.record(MetricKind.IMAGE_OPTIMIZATION, data, data.processing_time, True)

    async def track_api_call(self, data: Union[APICallData, Dict[str, Any]]):
        """Record an external-call outcome as cache_hit or cache_miss."""
        if isinstance(data, dict):
            data = APICallData.model_validate(data)
        kind = MetricKind.CACHE_HIT if data.cache_hit else MetricKind.CACHE_MISS
        return await self.record(kind, data, data.duration, data.status == "success")

    async def track_video_generation(self, duration: float, success: bool,
                                     error_message: Optional[str] = None):
        return await self.record(
            MetricKind.VIDEO_GENERATION,
            {"errorMessage": error_message},
            duration,
            success,
        )

    async def track_user_action(self, action: str, duration: Optional[float] = None,
                                data: Optional[Dict[str, Any]] = None):
        """Record a user action; extra fields in ``data`` are kept, ``action`` wins."""
        return await self.record(MetricKind.USER_ACTION, {**(data or {}), "action": action}, duration)

    async def track_generation(self, kind: Union[MetricKind, str], data: Optional[Dict[str, Any]] = None,
                               duration: Optional[float] = None, success: bool = True):
        """Record an image-analysis, scene, TTS or batch generation run."""
        kind = MetricKind(kind)
        if kind not in GENERATION_KINDS:
            raise ValueError(f"{kind.value} is not a generation metric kind")
        return await self.record(kind, data or {}, duration, success)

    # ============================================================================
    # Raw reads
    # ============================================================================

    async def get_all_metrics(self) -> List[PerformanceMetric]:
        """Every decodable record, newest first."""
        metrics: List[PerformanceMetric] = []

        def collect(document: Any, key: str) -> None:
            try:
                metrics.append(metric_adapter.validate_python(document))
            except ValidationError as e:
                logger.warning("Skipping malformed metric", metric_id=key, error=str(e))

        await self.partition.for_each(collect)
        return sorted(metrics, key=lambda m: m.timestamp, reverse=True)

    async def get_metrics_by_type(self, kind: Union[MetricKind, str]) -> List[PerformanceMetric]:
        kind = MetricKind(kind)
        return [m for m in await self.get_all_metrics() if m.type == kind.value]

    async def get_metrics_in_range(self, start_time: int, end_time: int) -> List[PerformanceMetric]:
        """Records with ``start_time <= timestamp <= end_time`` (epoch ms)."""
        return [
            m for m in await self.get_all_metrics()
            if start_time <= m.timestamp <= end_time
        ]

    async def export_metrics(self) -> str:
        metrics = await self.get_all_metrics()
        return json.dumps(
            [metric_adapter.dump_python(m, mode="json", by_alias=True) for m in metrics],
            indent=2,
        )

    async def clear_all_metrics(self) -> None:
        logger.info("Clearing all metrics")
        await self.partition.clear()
        logger.info("All metrics cleared")
