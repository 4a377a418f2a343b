"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from adcraft.core.cache import ResultCache
from adcraft.core.cleanup import RetentionSweeper
from adcraft.core.codec import CacheCodec, now_ms
from adcraft.core.config import Settings
from adcraft.core.database import Database
from adcraft.core.storage import create_store
from adcraft.services.performance import MetricsRecorder
from adcraft.services.statistics import StatisticsAggregator


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Epoch-millisecond time source shared by every time-dependent component
    clock = providers.Object(now_ms)

    # Database (physical store behind the SQLite backend)
    database = providers.Singleton(
        Database,
        settings=settings
    )

    # Key/value store handing out named partitions
    store = providers.Singleton(
        create_store,
        settings=settings,
        database=database
    )

    codec = providers.Singleton(
        CacheCodec,
        clock=clock
    )

    metrics = providers.Singleton(
        MetricsRecorder,
        store=store,
        clock=clock
    )

    result_cache = providers.Singleton(
        ResultCache,
        store=store,
        codec=codec,
        default_ttl=settings.provided.cache_ttl_ms,
        metrics=metrics,
        cost_per_call=settings.provided.api_cost_per_call
    )

    statistics = providers.Singleton(
        StatisticsAggregator,
        recorder=metrics,
        cost_per_call=settings.provided.api_cost_per_call,
        clock=clock
    )

    sweeper = providers.Singleton(
        RetentionSweeper,
        cache=result_cache,
        recorder=metrics,
        settings=settings,
        clock=clock
    )


# Global container instance
container = Container()
