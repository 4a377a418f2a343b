"""Result cache for expensive generative AI calls.

Three independently namespaced caches (image analysis, generated videos,
generic generation results) share one implementation, :class:`PartitionCache`.

A cache is an optimization, never a source of truth: read failures, corrupt
documents and expired entries all come back as a miss, and write failures
are logged and swallowed.
"""

import time
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING

from adcraft.constants import (
    GENERATION,
    IMAGE_ANALYSIS,
    KEY_PREFIXES,
    KIND_PARTITIONS,
    VIDEO,
)
from adcraft.core.codec import CacheCodec
from adcraft.core.exceptions import CorruptEntryError
from adcraft.core.logging import get_logger, log_cache_operation
from adcraft.core.storage import KeyValueStore, Partition
from adcraft.models.cache import CacheLookup, CacheOptions, CacheStats
from adcraft.models.metrics import APICallData

if TYPE_CHECKING:
    from adcraft.services.performance import MetricsRecorder

logger = get_logger(__name__)

RequestKey = Any  # a string, or a sequence of every parameter of the request


class PartitionCache:
    """TTL cache over one store partition."""

    def __init__(self, prefix: str, partition: Partition, codec: CacheCodec, default_ttl: int):
        self.prefix = prefix
        self.partition = partition
        self.codec = codec
        self.default_ttl = default_ttl

    def key_for(self, request_key: RequestKey) -> str:
        return self.codec.compute_key(self.prefix, request_key)

    async def get(self, request_key: RequestKey, options: Optional[CacheOptions] = None) -> CacheLookup:
        """Look up a live entry. Expired or corrupt entries are deleted on the way."""
        key = self.key_for(request_key)

        if options and options.force_refresh:
            log_cache_operation(logger, "get", key, hit=False, force_refresh=True)
            return CacheLookup.miss(key)

        try:
            document = await self.partition.get(key)
            if document is None:
                log_cache_operation(logger, "get", key, hit=False)
                return CacheLookup.miss(key)
            entry = self.codec.decode(key, document)
        except CorruptEntryError as e:
            logger.warning("Discarding corrupt cache entry", cache_key=key, error=str(e))
            await self._discard(key)
            return CacheLookup.miss(key)
        except Exception as e:
            logger.error("Cache read failed", cache_key=key, partition=self.partition.namespace,
                         error=str(e))
            return CacheLookup.miss(key)

        if not self.codec.is_live(entry):
            log_cache_operation(logger, "get", key, hit=False, expired=True)
            await self._discard(key)
            return CacheLookup.miss(key)

        log_cache_operation(logger, "get", key, hit=True)
        return CacheLookup(hit=True, key=key, data=entry.data)

    async def set(self, request_key: RequestKey, data: Any, options: Optional[CacheOptions] = None) -> bool:
        """Write ``data``, replacing any previous entry for the key."""
        key = self.key_for(request_key)
        ttl = options.ttl if options and options.ttl is not None else self.default_ttl
        try:
            entry = self.codec.wrap(data, ttl, key)
            await self.partition.set(key, entry.to_document())
            log_cache_operation(logger, "set", key, ttl_ms=ttl)
            return True
        except Exception as e:
            logger.error("Cache write failed", cache_key=key, partition=self.partition.namespace,
                         error=str(e))
            return False

    async def sweep_expired(self) -> int:
        """Delete every expired or undecodable entry. Returns the number removed.

        A store failure on one key is logged and the sweep moves on.
        """
        removed = 0
        for key in await self.partition.keys():
            try:
                if await self._is_stale(key):
                    await self.partition.remove(key)
                    removed += 1
            except Exception as e:
                logger.error("Cache sweep failed for entry", cache_key=key,
                             partition=self.partition.namespace, error=str(e))
        return removed

    async def _is_stale(self, key: str) -> bool:
        try:
            document = await self.partition.get(key)
            if document is None:
                return False  # removed since keys() was read
            return not self.codec.is_live(self.codec.decode(key, document))
        except CorruptEntryError:
            return True

    async def _discard(self, key: str) -> None:
        try:
            await self.partition.remove(key)
        except Exception as e:
            logger.warning("Failed to delete stale cache entry", cache_key=key, error=str(e))


class ResultCache:
    """The three logical caches in front of the generative AI service."""

    def __init__(
        self,
        store: KeyValueStore,
        codec: CacheCodec,
        default_ttl: int,
        metrics: Optional["MetricsRecorder"] = None,
        cost_per_call: float = 0.0,
    ):
        self.codec = codec
        self.metrics = metrics
        self.cost_per_call = cost_per_call
        self.caches: Dict[str, PartitionCache] = {
            kind: PartitionCache(
                KEY_PREFIXES[kind],
                store.create_partition(KIND_PARTITIONS[kind]),
                codec,
                default_ttl,
            )
            for kind in (IMAGE_ANALYSIS, VIDEO, GENERATION)
        }

    # ============================================================================
    # Image analysis
    # ============================================================================

    async def get_cached_image_analysis(self, content_hash: str,
                                        options: Optional[CacheOptions] = None) -> CacheLookup:
        return await self.caches[IMAGE_ANALYSIS].get(content_hash, options)

    async def cache_image_analysis(self, content_hash: str, result: Any,
                                   options: Optional[CacheOptions] = None) -> bool:
        return await self.caches[IMAGE_ANALYSIS].set(content_hash, result, options)

    # ============================================================================
    # Generated videos
    # ============================================================================

    async def get_cached_video(self, request_key: RequestKey,
                               options: Optional[CacheOptions] = None) -> CacheLookup:
        return await self.caches[VIDEO].get(request_key, options)

    async def cache_video(self, request_key: RequestKey, url: str,
                          options: Optional[CacheOptions] = None) -> bool:
        return await self.caches[VIDEO].set(request_key, url, options)

    # ============================================================================
    # Generic generation results
    # ============================================================================

    async def get_cached_generation_result(self, request_key: RequestKey,
                                           options: Optional[CacheOptions] = None) -> CacheLookup:
        return await self.caches[GENERATION].get(request_key, options)

    async def cache_generation_result(self, request_key: RequestKey, result: Any,
                                      options: Optional[CacheOptions] = None) -> bool:
        return await self.caches[GENERATION].set(request_key, result, options)

    # ============================================================================
    # Call-site helper
    # ============================================================================

    async def get_or_compute(
        self,
        kind: str,
        request_key: RequestKey,
        producer: Callable[[], Awaitable[Any]],
        *,
        endpoint: str,
        options: Optional[CacheOptions] = None,
    ) -> Any:
        """Serve from cache, or await ``producer`` and cache its result.

        Reports exactly one cache_hit or cache_miss API-call metric. Only the
        producer's own errors propagate.
        """
        cache = self.caches[kind]
        started = time.perf_counter()

        lookup = await cache.get(request_key, options)
        if lookup.hit:
            await self._track(endpoint, started, cache_hit=True, cost=0.0)
            return lookup.data

        try:
            result = await producer()
        except Exception as e:
            await self._track(endpoint, started, cache_hit=False, cost=self.cost_per_call,
                              status="error", error_message=str(e))
            raise

        await cache.set(request_key, result, options)
        await self._track(endpoint, started, cache_hit=False, cost=self.cost_per_call)
        return result

    async def _track(self, endpoint: str, started: float, *, cache_hit: bool, cost: float,
                     status: str = "success", error_message: Optional[str] = None) -> None:
        if self.metrics is None:
            return
        await self.metrics.track_api_call(APICallData(
            endpoint=endpoint,
            duration=(time.perf_counter() - started) * 1000,
            status=status,
            cache_hit=cache_hit,
            cost=cost,
            error_message=error_message,
        ))

    # ============================================================================
    # Maintenance
    # ============================================================================

    async def clear_all_caches(self) -> None:
        logger.info("Clearing all caches")
        for cache in self.caches.values():
            await cache.partition.clear()
        logger.info("All caches cleared")

    async def get_cache_stats(self) -> CacheStats:
        image_count = await self.caches[IMAGE_ANALYSIS].partition.length()
        video_count = await self.caches[VIDEO].partition.length()
        gen_count = await self.caches[GENERATION].partition.length()
        return CacheStats(
            image_analysis=image_count,
            videos=video_count,
            generations=gen_count,
            total=image_count + video_count + gen_count,
        )

    async def sweep_expired(self) -> int:
        """Remove expired entries from all three caches."""
        removed = 0
        for cache in self.caches.values():
            try:
                removed += await cache.sweep_expired()
            except Exception as e:
                logger.error("Cache sweep failed", partition=cache.partition.namespace,
                             error=str(e))
        return removed
