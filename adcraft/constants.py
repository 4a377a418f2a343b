"""Partition names and cache key prefixes.

Single source of truth for the namespaces shared by the result cache, the
metrics recorder and the retention sweeper.
"""

from typing import Dict

# =============================================================================
# TIME
# =============================================================================

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

# =============================================================================
# PARTITIONS
# =============================================================================

IMAGE_ANALYSIS_PARTITION = "image_analysis_cache"
VIDEO_PARTITION = "video_cache"
GENERATION_PARTITION = "generation_cache"
METRICS_PARTITION = "performance_metrics"

# =============================================================================
# CACHE KINDS
# =============================================================================

IMAGE_ANALYSIS = "image_analysis"
VIDEO = "video"
GENERATION = "generation"

# Key prefix per cache kind; prefixes keep kinds from colliding on equal input
KEY_PREFIXES: Dict[str, str] = {
    IMAGE_ANALYSIS: "img_analysis",
    VIDEO: "video",
    GENERATION: "gen",
}

KIND_PARTITIONS: Dict[str, str] = {
    IMAGE_ANALYSIS: IMAGE_ANALYSIS_PARTITION,
    VIDEO: VIDEO_PARTITION,
    GENERATION: GENERATION_PARTITION,
}
