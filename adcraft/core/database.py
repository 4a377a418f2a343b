"""Async database service with SQLModel and SQLAlchemy 2.0."""

import time
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

from sqlalchemy import delete, func
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from adcraft.core.config import Settings
from adcraft.core.exceptions import StoreUnavailableError
from adcraft.core.logging import get_logger
from adcraft.models.cache import KVEntry

logger = get_logger(__name__)


class Database:
    """Async database service backing the key/value partitions."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    @property
    def is_started(self) -> bool:
        return self.async_session is not None

    async def startup(self):
        """Initialize database connection and create tables."""
        if self.is_started:
            return
        try:
            self.engine = create_async_engine(
                self.settings.database_url,
                echo=self.settings.database_echo,
                future=True
            )

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully", url=self.settings.database_url)

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self.async_session = None

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise StoreUnavailableError("database", "session", "database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def _kv_session(self, partition: str, operation: str):
        """Session whose driver errors surface as StoreUnavailableError."""
        try:
            async with self.get_session() as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreUnavailableError(partition, operation, str(e)) from e

    # ============================================================================
    # Key/value entries
    # ============================================================================

    async def kv_get(self, partition: str, key: str) -> Optional[str]:
        """Get the raw JSON document stored under key, or None."""
        async with self._kv_session(partition, "get") as session:
            stmt = select(KVEntry.value).where(
                KVEntry.namespace == partition,
                KVEntry.key == key
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def kv_set(self, partition: str, key: str, value: str) -> None:
        """Insert or wholesale replace the document under key."""
        now = time.time()
        async with self._kv_session(partition, "set") as session:
            stmt = sqlite_insert(KVEntry).values(
                namespace=partition, key=key, value=value, updated_at=now
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["namespace", "key"],
                set_={"value": value, "updated_at": now}
            )
            await session.execute(stmt)
            await session.commit()

    async def kv_delete(self, partition: str, key: str) -> bool:
        """Delete one entry. Returns True if a row was removed."""
        async with self._kv_session(partition, "remove") as session:
            stmt = delete(KVEntry).where(
                KVEntry.namespace == partition,
                KVEntry.key == key
            )
            result = await session.execute(stmt)
            await session.commit()
            return bool(result.rowcount)

    async def kv_keys(self, partition: str) -> List[str]:
        async with self._kv_session(partition, "keys") as session:
            stmt = select(KVEntry.key).where(KVEntry.namespace == partition).order_by(KVEntry.key)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def kv_items(self, partition: str) -> List[Tuple[str, str]]:
        """Snapshot of (key, raw document) pairs for a partition."""
        async with self._kv_session(partition, "iterate") as session:
            stmt = select(KVEntry.key, KVEntry.value).where(KVEntry.namespace == partition)
            result = await session.execute(stmt)
            return [(key, value) for key, value in result.all()]

    async def kv_clear(self, partition: str) -> int:
        async with self._kv_session(partition, "clear") as session:
            stmt = delete(KVEntry).where(KVEntry.namespace == partition)
            result = await session.execute(stmt)
            await session.commit()
            count = result.rowcount or 0
            logger.debug("Cleared partition", partition=partition, count=count)
            return count

    async def kv_count(self, partition: str) -> int:
        async with self._kv_session(partition, "length") as session:
            stmt = select(func.count()).select_from(KVEntry).where(KVEntry.namespace == partition)
            result = await session.execute(stmt)
            return int(result.scalar_one())
