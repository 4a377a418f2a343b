"""Shared fixtures: a controllable clock and components over an in-memory store."""

import asyncio

import pytest

from adcraft.core.cache import ResultCache
from adcraft.core.cleanup import RetentionSweeper
from adcraft.core.codec import CacheCodec
from adcraft.constants import DAY_MS
from adcraft.core.config import Settings
from adcraft.core.storage import MemoryStore
from adcraft.services.performance import MetricsRecorder
from adcraft.services.statistics import StatisticsAggregator

UNIT_COST = 0.003
START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        store_backend="memory",
        database_url=f"sqlite+aiosqlite:///{tmp_path}/adcraft.db",
        api_cost_per_call=UNIT_COST,
        maintenance_enabled=False,
    )


@pytest.fixture
def store():
    return MemoryStore("test")


@pytest.fixture
def codec(clock):
    return CacheCodec(clock)


@pytest.fixture
def recorder(store, clock):
    return MetricsRecorder(store, clock)


@pytest.fixture
def result_cache(store, codec, recorder):
    return ResultCache(store, codec, default_ttl=DAY_MS, metrics=recorder, cost_per_call=UNIT_COST)


@pytest.fixture
def statistics(recorder, clock):
    return StatisticsAggregator(recorder, UNIT_COST, clock)


@pytest.fixture
def sweeper(result_cache, recorder, settings, clock):
    return RetentionSweeper(result_cache, recorder, settings, clock)
