"""Performance metric records and derived statistics.

Every record is immutable once written. ``type`` selects the payload shape,
so a record read back from the store is validated against exactly one
variant of :data:`PerformanceMetric`.
"""

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class MetricKind(str, Enum):
    """Kinds of performance metric records."""
    IMAGE_OPTIMIZATION = "image_optimization"
    IMAGE_ANALYSIS = "image_analysis"
    VIDEO_GENERATION = "video_generation"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    AI_SCENE_GENERATION = "ai_scene_generation"
    TTS_GENERATION = "tts_generation"
    BATCH_GENERATION = "batch_generation"
    USER_ACTION = "user_action"


GENERATION_KINDS = frozenset([
    MetricKind.IMAGE_ANALYSIS,
    MetricKind.AI_SCENE_GENERATION,
    MetricKind.TTS_GENERATION,
    MetricKind.BATCH_GENERATION,
])


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# =============================================================================
# Payloads
# =============================================================================

class ImageOptimizationData(_CamelModel):
    """Output of one image-compression run."""

    original_size: int = Field(ge=0)
    optimized_size: int = Field(ge=0)
    compression_ratio: float  # optimized_size / original_size, lower is better
    width: int = 0
    height: int = 0
    format: str = ""
    processing_time: float = 0.0  # ms

    @classmethod
    def from_sizes(cls, original_size: int, optimized_size: int,
                   processing_time: float = 0.0, **kwargs) -> "ImageOptimizationData":
        ratio = optimized_size / original_size if original_size else 1.0
        return cls(
            original_size=original_size,
            optimized_size=optimized_size,
            compression_ratio=ratio,
            processing_time=processing_time,
            **kwargs
        )

    @property
    def percent_saved(self) -> float:
        return (1 - self.compression_ratio) * 100


class APICallData(_CamelModel):
    """Outcome of one external AI-service call site, after cache lookup."""

    endpoint: str
    duration: float = 0.0  # ms
    status: Literal["success", "error"] = "success"
    cache_hit: bool = False
    cost: Optional[float] = None
    error_message: Optional[str] = None


class VideoGenerationData(_CamelModel):
    error_message: Optional[str] = None


class UserActionData(_CamelModel):
    model_config = ConfigDict(extra="allow")

    action: str


# =============================================================================
# Records (tagged by ``type``)
# =============================================================================

class _MetricBase(_CamelModel):
    id: str
    timestamp: int  # epoch ms
    duration: Optional[float] = None  # ms
    success: bool = True
    user_id: Optional[str] = None


class ImageOptimizationMetric(_MetricBase):
    type: Literal["image_optimization"]
    data: ImageOptimizationData


class APICallMetric(_MetricBase):
    type: Literal["cache_hit", "cache_miss"]
    data: APICallData


class VideoGenerationMetric(_MetricBase):
    type: Literal["video_generation"]
    data: VideoGenerationData = VideoGenerationData()


class UserActionMetric(_MetricBase):
    type: Literal["user_action"]
    data: UserActionData


class GenerationMetric(_MetricBase):
    type: Literal["image_analysis", "ai_scene_generation", "tts_generation", "batch_generation"]
    data: Dict[str, Any] = Field(default_factory=dict)


PerformanceMetric = Annotated[
    Union[
        ImageOptimizationMetric,
        APICallMetric,
        VideoGenerationMetric,
        UserActionMetric,
        GenerationMetric,
    ],
    Field(discriminator="type"),
]

metric_adapter: TypeAdapter = TypeAdapter(PerformanceMetric)


# =============================================================================
# Derived statistics (never stored)
# =============================================================================

class ImageOptimizationStats(_CamelModel):
    count: int = 0
    total_original_size: int = 0
    total_optimized_size: int = 0
    average_compression_ratio: float = 0.0
    average_processing_time: float = 0.0
    total_savings: int = 0


class APICallStats(_CamelModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    average_duration: float = 0.0
    total_cost: float = 0.0


class CacheEfficiencyStats(_CamelModel):
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    cost_saved: float = 0.0


class VideoGenerationStats(_CamelModel):
    count: int = 0
    success_rate: float = 0.0
    average_duration: float = 0.0  # seconds


class UserEngagementStats(_CamelModel):
    total_actions: int = 0
    average_session_duration: float = 0.0  # seconds


class PerformanceStats(_CamelModel):
    total_metrics: int = 0
    image_optimizations: ImageOptimizationStats = ImageOptimizationStats()
    api_calls: APICallStats = APICallStats()
    cache: CacheEfficiencyStats = CacheEfficiencyStats()
    video_generation: VideoGenerationStats = VideoGenerationStats()
    user_engagement: UserEngagementStats = UserEngagementStats()


class TrendPoint(_CamelModel):
    date: str
    optimizations: int = 0
    api_calls: int = 0
    cache_hit_rate: float = 0.0
    videos: int = 0
