"""Retention sweeper for the result cache and the metrics store.

Two background loops, both started explicitly by the application lifespan:
- cache: drop expired entries from all cache partitions (hourly by default)
- metrics: drop records older than the retention horizon (daily by default)

Each loop sweeps once immediately when started. Deletes are idempotent, so a
sweep overlapping another sweep, or racing ordinary reads and writes, is safe.
"""
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

from adcraft.core.codec import Clock, now_ms
from adcraft.constants import DAY_MS
from adcraft.core.exceptions import CorruptEntryError
from adcraft.core.logging import get_logger
from adcraft.models.metrics import metric_adapter

if TYPE_CHECKING:
    from adcraft.core.cache import ResultCache
    from adcraft.core.config import Settings
    from adcraft.services.performance import MetricsRecorder

logger = get_logger(__name__)


class RetentionSweeper:
    """Removes expired cache entries and metric records past retention."""

    def __init__(
        self,
        cache: "ResultCache",
        recorder: "MetricsRecorder",
        settings: "Settings",
        clock: Clock = now_ms,
    ):
        self.cache = cache
        self.recorder = recorder
        self.settings = settings
        self.clock = clock
        self._running = False
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return self._running

    async def sweep_expired_cache(self) -> int:
        """Delete expired entries from every cache partition."""
        removed = await self.cache.sweep_expired()
        if removed:
            logger.info("Removed expired cache entries", count=removed)
        return removed

    async def sweep_old_metrics(self, retention_days: Optional[int] = None) -> int:
        """Delete metric records with ``timestamp < now - retention_days``."""
        if retention_days is None:
            retention_days = self.settings.metrics_retention_days
        cutoff = self.clock() - retention_days * DAY_MS
        partition = self.recorder.partition
        removed = 0

        try:
            keys = await partition.keys()
        except Exception as e:
            logger.error("Metrics sweep failed", error=str(e))
            return 0

        for key in keys:
            try:
                if await self._is_past_retention(key, cutoff):
                    await partition.remove(key)
                    removed += 1
            except Exception as e:
                logger.error("Metrics sweep failed for record", metric_id=key, error=str(e))

        if removed:
            logger.info("Removed old metrics", count=removed, retention_days=retention_days)
        return removed

    async def _is_past_retention(self, key: str, cutoff: int) -> bool:
        try:
            document = await self.recorder.partition.get(key)
            if document is None:
                return False
            return metric_adapter.validate_python(document).timestamp < cutoff
        except (CorruptEntryError, ValueError):
            logger.warning("Removing malformed metric record", metric_id=key)
            return True

    async def run_once(self) -> Dict[str, int]:
        """Run both sweeps once and return removal counts."""
        return {
            "expired_cache": await self.sweep_expired_cache(),
            "old_metrics": await self.sweep_old_metrics(),
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_background_maintenance(self) -> None:
        """Start the periodic sweep loops. Calling it again while running is a no-op."""
        if self._running:
            logger.warning("Retention sweeper already running")
            return
        self._running = True
        self._tasks = [
            asyncio.create_task(
                self._sweep_loop("cache", self.sweep_expired_cache,
                                 self.settings.cache_sweep_interval)
            ),
            asyncio.create_task(
                self._sweep_loop("metrics", self.sweep_old_metrics,
                                 self.settings.metrics_sweep_interval)
            ),
        ]
        logger.info(
            "Retention sweeper started",
            cache_interval=self.settings.cache_sweep_interval,
            metrics_interval=self.settings.metrics_sweep_interval,
            retention_days=self.settings.metrics_retention_days,
        )

    async def stop_background_maintenance(self) -> None:
        """Cancel the sweep loops and wait for them to finish."""
        self._running = False
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Retention sweeper stopped")

    async def _sweep_loop(self, name: str, sweep: Callable[[], Awaitable[int]],
                          interval: float) -> None:
        """Sweep now, then every ``interval`` seconds until stopped."""
        while self._running:
            try:
                await sweep()
            except Exception as e:
                logger.error("Sweep failed", sweep=name, error=str(e))
            await asyncio.sleep(interval)
