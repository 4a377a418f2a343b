"""Windowed performance statistics.

Pure read-side computation over the metric records: every call rescans the
metrics partition, filters by time window and derives counts, sums, rates and
unweighted means. Nothing is written back, so overlapping windows can be
computed repeatedly.
"""

from datetime import datetime, timezone
from typing import Dict, List, Sequence

from adcraft.core.codec import Clock, now_ms
from adcraft.constants import DAY_MS, HOUR_MS
from adcraft.core.logging import get_logger
from adcraft.models.metrics import (
    APICallStats,
    CacheEfficiencyStats,
    ImageOptimizationStats,
    MetricKind,
    PerformanceMetric,
    PerformanceStats,
    TrendPoint,
    UserEngagementStats,
    VideoGenerationStats,
)
from adcraft.services.performance import MetricsRecorder

logger = get_logger(__name__)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _rate(part: int, whole: int) -> float:
    """Percentage, 0 when there is nothing to divide by."""
    return part / whole * 100 if whole > 0 else 0.0


def _by_type(metrics: Sequence[PerformanceMetric]) -> Dict[str, List[PerformanceMetric]]:
    groups: Dict[str, List[PerformanceMetric]] = {kind.value: [] for kind in MetricKind}
    for metric in metrics:
        groups[metric.type].append(metric)
    return groups


class StatisticsAggregator:
    """Derives :class:`PerformanceStats` from the recorded metrics."""

    def __init__(self, recorder: MetricsRecorder, cost_per_call: float, clock: Clock = now_ms):
        self.recorder = recorder
        self.cost_per_call = cost_per_call
        self.clock = clock

    async def compute_stats(self, window_hours: float = 24) -> PerformanceStats:
        """Statistics over records with ``now - window_hours <= timestamp <= now``."""
        now = self.clock()
        start_time = now - int(window_hours * HOUR_MS)
        metrics = await self.recorder.get_metrics_in_range(start_time, now)
        return self.summarize(metrics)

    # Dashboard read boundary
    get_performance_stats = compute_stats

    def summarize(self, metrics: Sequence[PerformanceMetric]) -> PerformanceStats:
        groups = _by_type(metrics)

        # Image optimization
        optimizations = [m.data for m in groups[MetricKind.IMAGE_OPTIMIZATION.value]]
        total_original = sum(d.original_size for d in optimizations)
        total_optimized = sum(d.optimized_size for d in optimizations)
        image_stats = ImageOptimizationStats(
            count=len(optimizations),
            total_original_size=total_original,
            total_optimized_size=total_optimized,
            average_compression_ratio=_mean([d.compression_ratio for d in optimizations]),
            average_processing_time=_mean([d.processing_time for d in optimizations]),
            total_savings=total_original - total_optimized,
        )

        # API calls: every call site reports exactly one hit or miss
        hits = groups[MetricKind.CACHE_HIT.value]
        misses = groups[MetricKind.CACHE_MISS.value]
        api_calls = hits + misses
        successful = sum(1 for m in api_calls if m.success)
        api_stats = APICallStats(
            total=len(api_calls),
            successful=successful,
            failed=len(api_calls) - successful,
            average_duration=_mean([m.duration or 0 for m in api_calls]),
            total_cost=len(misses) * self.cost_per_call,
        )

        cache_stats = CacheEfficiencyStats(
            hits=len(hits),
            misses=len(misses),
            hit_rate=_rate(len(hits), len(api_calls)),
            cost_saved=len(hits) * self.cost_per_call,
        )

        # Video generation, durations stored in ms and reported in seconds
        videos = groups[MetricKind.VIDEO_GENERATION.value]
        video_stats = VideoGenerationStats(
            count=len(videos),
            success_rate=_rate(sum(1 for m in videos if m.success), len(videos)),
            average_duration=_mean([m.duration or 0 for m in videos]) / 1000,
        )

        actions = groups[MetricKind.USER_ACTION.value]
        timed_actions = [m.duration for m in actions if m.duration is not None]
        engagement_stats = UserEngagementStats(
            total_actions=len(actions),
            average_session_duration=_mean(timed_actions) / 1000,
        )

        return PerformanceStats(
            total_metrics=len(metrics),
            image_optimizations=image_stats,
            api_calls=api_stats,
            cache=cache_stats,
            video_generation=video_stats,
            user_engagement=engagement_stats,
        )

    async def get_performance_trend(self, days: int = 7) -> List[TrendPoint]:
        """One point per day-long window ending now, oldest first."""
        now = self.clock()
        metrics = await self.recorder.get_all_metrics()
        trend: List[TrendPoint] = []

        for i in range(days - 1, -1, -1):
            day_start = now - i * DAY_MS
            day_end = day_start + DAY_MS
            groups = _by_type([m for m in metrics if day_start <= m.timestamp <= day_end])

            hits = len(groups[MetricKind.CACHE_HIT.value])
            total_calls = hits + len(groups[MetricKind.CACHE_MISS.value])
            trend.append(TrendPoint(
                date=datetime.fromtimestamp(day_start / 1000, tz=timezone.utc).strftime("%Y-%m-%d"),
                optimizations=len(groups[MetricKind.IMAGE_OPTIMIZATION.value]),
                api_calls=total_calls,
                cache_hit_rate=_rate(hits, total_calls),
                videos=len(groups[MetricKind.VIDEO_GENERATION.value]),
            ))

        return trend
