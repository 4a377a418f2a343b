"""Namespaced async key/value store.

A store hands out independent named partitions. Every partition offers the
same small surface (``get``/``set``/``remove``/``keys``/``for_each``/
``clear``/``length``) over JSON-serializable values, whichever backend holds
the data:

- ``SQLiteStore``: rows in the ``kv_entries`` table via :class:`Database`
- ``MemoryStore``: process-local dicts, for tests and throwaway sessions

The adapter adds no locking of its own; the SQLite backend serializes writes
and the memory backend never suspends mid-operation. Backend failures are
raised as :class:`StoreError` subclasses, never swallowed here.
"""

import inspect
import json
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union, TYPE_CHECKING

from adcraft.core.exceptions import CorruptEntryError, StoreError
from adcraft.core.logging import get_logger

if TYPE_CHECKING:
    from adcraft.core.database import Database

logger = get_logger(__name__)

Visitor = Callable[[Any, str], Union[None, Awaitable[None]]]


class Partition(ABC):
    """One independently namespaced key/value collection."""

    def __init__(self, namespace: str):
        self.namespace = namespace

    # ------------------------------------------------------------------
    # Backend primitives (raw JSON text)
    # ------------------------------------------------------------------

    @abstractmethod
    async def _get_raw(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def _set_raw(self, key: str, raw: str) -> None: ...

    @abstractmethod
    async def _items_raw(self) -> List[Tuple[str, str]]: ...

    @abstractmethod
    async def remove(self, key: str) -> None: ...

    @abstractmethod
    async def keys(self) -> List[str]: ...

    @abstractmethod
    async def clear(self) -> None: ...

    @abstractmethod
    async def length(self) -> int: ...

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when the key is absent.

        Raises CorruptEntryError if the stored document is not valid JSON.
        """
        raw = await self._get_raw(key)
        if raw is None:
            return None
        return self._decode(key, raw)

    async def set(self, key: str, value: Any) -> None:
        await self._set_raw(key, self._encode(key, value))

    async def for_each(self, visitor: Visitor) -> int:
        """Call ``visitor(value, key)`` for every entry; returns entries visited.

        Undecodable documents are skipped with a warning. The visitor may be a
        plain function or a coroutine function.
        """
        visited = 0
        for key, raw in await self._items_raw():
            try:
                value = self._decode(key, raw)
            except CorruptEntryError as e:
                logger.warning("Skipping undecodable entry", partition=self.namespace,
                               key=key, error=str(e))
                continue
            result = visitor(value, key)
            if inspect.isawaitable(result):
                await result
            visited += 1
        return visited

    def _encode(self, key: str, value: Any) -> str:
        try:
            return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StoreError(f"[{self.namespace}] value for {key} is not JSON-serializable: {e}") from e

    @staticmethod
    def _decode(key: str, raw: str) -> Any:
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise CorruptEntryError(key, str(e)) from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.namespace!r})"


class KeyValueStore(ABC):
    """Factory for named partitions sharing one physical store."""

    def __init__(self, name: str):
        self.name = name
        self._partitions: Dict[str, Partition] = {}

    def create_partition(self, namespace: str) -> Partition:
        """Return the partition for ``namespace`` (same object on repeat calls)."""
        full_name = f"{self.name}/{namespace}"
        if full_name not in self._partitions:
            self._partitions[full_name] = self._build_partition(full_name)
            logger.debug("Partition created", partition=full_name, backend=type(self).__name__)
        return self._partitions[full_name]

    @abstractmethod
    def _build_partition(self, full_name: str) -> Partition: ...

    async def startup(self) -> None:
        """Prepare the backend. No-op by default."""

    async def shutdown(self) -> None:
        """Release backend resources. No-op by default."""

    async def ping(self) -> bool:
        """Round-trip a value through a scratch partition."""
        try:
            probe = self.create_partition("_health_check")
            await probe.set("ping", "ok")
            result = await probe.get("ping")
            await probe.remove("ping")
            return result == "ok"
        except Exception as e:
            logger.warning("Store health check failed", store=self.name, error=str(e))
            return False


# =============================================================================
# SQLite backend
# =============================================================================

class SQLitePartition(Partition):

    def __init__(self, namespace: str, database: "Database"):
        super().__init__(namespace)
        self.database = database

    async def _get_raw(self, key: str) -> Optional[str]:
        return await self.database.kv_get(self.namespace, key)

    async def _set_raw(self, key: str, raw: str) -> None:
        await self.database.kv_set(self.namespace, key, raw)

    async def _items_raw(self) -> List[Tuple[str, str]]:
        return await self.database.kv_items(self.namespace)

    async def remove(self, key: str) -> None:
        await self.database.kv_delete(self.namespace, key)

    async def keys(self) -> List[str]:
        return await self.database.kv_keys(self.namespace)

    async def clear(self) -> None:
        await self.database.kv_clear(self.namespace)

    async def length(self) -> int:
        return await self.database.kv_count(self.namespace)


class SQLiteStore(KeyValueStore):
    """Partitions persisted through the async SQLModel database."""

    def __init__(self, database: "Database", name: str = "adcraft"):
        super().__init__(name)
        self.database = database

    def _build_partition(self, full_name: str) -> Partition:
        return SQLitePartition(full_name, self.database)

    async def startup(self) -> None:
        await self.database.startup()

    async def shutdown(self) -> None:
        await self.database.shutdown()


# =============================================================================
# In-memory backend
# =============================================================================

class MemoryPartition(Partition):
    """Dict-backed partition. Values are kept as JSON text, like on disk."""

    def __init__(self, namespace: str):
        super().__init__(namespace)
        self._data: Dict[str, str] = {}

    async def _get_raw(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def _set_raw(self, key: str, raw: str) -> None:
        self._data[key] = raw

    async def _items_raw(self) -> List[Tuple[str, str]]:
        return list(self._data.items())

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> List[str]:
        return sorted(self._data)

    async def clear(self) -> None:
        self._data.clear()

    async def length(self) -> int:
        return len(self._data)


class MemoryStore(KeyValueStore):

    def _build_partition(self, full_name: str) -> Partition:
        return MemoryPartition(full_name)


def create_store(settings, database: Optional["Database"] = None) -> KeyValueStore:
    """Build the configured store backend."""
    if settings.store_backend == "memory" or database is None:
        logger.info("Using in-memory key/value store", name=settings.store_name)
        return MemoryStore(settings.store_name)
    logger.info("Using SQLite key/value store", name=settings.store_name)
    return SQLiteStore(database, settings.store_name)
