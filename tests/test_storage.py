"""Key/value store adapter tests, in-memory and SQLite backends."""

import pytest

from adcraft.core.database import Database
from adcraft.core.exceptions import CorruptEntryError, StoreError, StoreUnavailableError
from adcraft.core.storage import MemoryStore, SQLiteStore, create_store


@pytest.fixture
async def sqlite_store(settings):
    store = SQLiteStore(Database(settings), name="adcraft")
    await store.startup()
    yield store
    await store.shutdown()


@pytest.fixture(params=["memory", "sqlite"])
async def any_store(request, sqlite_store):
    if request.param == "memory":
        return MemoryStore("adcraft")
    return sqlite_store


class TestPartitionContract:

    async def test_get_missing_returns_none(self, any_store):
        partition = any_store.create_partition("things")
        assert await partition.get("nope") is None

    async def test_set_get_remove(self, any_store):
        partition = any_store.create_partition("things")
        await partition.set("a", {"title": "Shoe", "tags": ["red"]})
        assert await partition.get("a") == {"title": "Shoe", "tags": ["red"]}

        await partition.remove("a")
        assert await partition.get("a") is None

    async def test_remove_missing_is_noop(self, any_store):
        partition = any_store.create_partition("things")
        await partition.remove("never-there")
        assert await partition.length() == 0

    async def test_overwrite_keeps_single_entry(self, any_store):
        partition = any_store.create_partition("things")
        await partition.set("a", 1)
        await partition.set("a", 2)
        assert await partition.get("a") == 2
        assert await partition.keys() == ["a"]
        assert await partition.length() == 1

    async def test_scalar_values(self, any_store):
        partition = any_store.create_partition("things")
        await partition.set("url", "https://cdn.example/video.mp4")
        await partition.set("n", 3.5)
        assert await partition.get("url") == "https://cdn.example/video.mp4"
        assert await partition.get("n") == 3.5

    async def test_partitions_are_independent(self, any_store):
        videos = any_store.create_partition("video_cache")
        images = any_store.create_partition("image_analysis_cache")
        await videos.set("k", "video")
        await images.set("k", "image")

        assert await videos.get("k") == "video"
        assert await images.get("k") == "image"

        await videos.clear()
        assert await videos.length() == 0
        assert await images.length() == 1

    async def test_keys_length_clear(self, any_store):
        partition = any_store.create_partition("things")
        for key in ("b", "a", "c"):
            await partition.set(key, key.upper())
        assert sorted(await partition.keys()) == ["a", "b", "c"]
        assert await partition.length() == 3

        await partition.clear()
        assert await partition.keys() == []
        assert await partition.length() == 0

    async def test_for_each_with_sync_and_async_visitors(self, any_store):
        partition = any_store.create_partition("things")
        await partition.set("a", 1)
        await partition.set("b", 2)

        seen = {}
        visited = await partition.for_each(lambda value, key: seen.__setitem__(key, value))
        assert visited == 2
        assert seen == {"a": 1, "b": 2}

        total = []

        async def add(value, key):
            total.append(value)

        await partition.for_each(add)
        assert sorted(total) == [1, 2]

    async def test_unserializable_value_raises(self, any_store):
        partition = any_store.create_partition("things")
        with pytest.raises(StoreError):
            await partition.set("bad", object())


class TestMemoryStore:

    def test_create_partition_returns_same_instance(self):
        store = MemoryStore("adcraft")
        assert store.create_partition("x") is store.create_partition("x")
        assert store.create_partition("x").namespace == "adcraft/x"

    async def test_corrupt_document(self):
        partition = MemoryStore("adcraft").create_partition("things")
        partition._data["broken"] = "{not json"
        await partition.set("ok", 1)

        with pytest.raises(CorruptEntryError):
            await partition.get("broken")

        seen = []
        assert await partition.for_each(lambda value, key: seen.append(key)) == 1
        assert seen == ["ok"]

    async def test_ping(self):
        assert await MemoryStore("adcraft").ping()


class TestSQLiteStore:

    async def test_values_persist_across_restarts(self, settings):
        first = SQLiteStore(Database(settings))
        await first.startup()
        await first.create_partition("video_cache").set("k", "https://cdn.example/v.mp4")
        await first.shutdown()

        second = SQLiteStore(Database(settings))
        await second.startup()
        try:
            assert await second.create_partition("video_cache").get("k") == "https://cdn.example/v.mp4"
        finally:
            await second.shutdown()

    async def test_store_names_isolate_data(self, sqlite_store, settings):
        other = SQLiteStore(sqlite_store.database, name="other")
        await sqlite_store.create_partition("p").set("k", 1)
        assert await other.create_partition("p").get("k") is None

    async def test_operations_fail_before_startup(self, settings):
        partition = SQLiteStore(Database(settings)).create_partition("p")
        with pytest.raises(StoreUnavailableError):
            await partition.set("k", 1)
        with pytest.raises(StoreUnavailableError):
            await partition.get("k")

    async def test_ping(self, sqlite_store):
        assert await sqlite_store.ping()


def test_create_store_selects_backend(settings):
    assert isinstance(create_store(settings, Database(settings)), MemoryStore)

    sqlite_settings = settings.model_copy(update={"store_backend": "sqlite"})
    assert isinstance(create_store(sqlite_settings, Database(sqlite_settings)), SQLiteStore)
    assert isinstance(create_store(sqlite_settings, None), MemoryStore)
