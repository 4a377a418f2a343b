"""Cache records: the SQLite key/value row and the TTL envelope stored in it.

A single ``kv_entries`` table holds every partition; rows are keyed by
``(namespace, key)``.
"""

import time
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field as PydanticField, model_validator
from sqlmodel import SQLModel, Field

T = TypeVar("T")


class KVEntry(SQLModel, table=True):
    """One JSON document inside a named partition."""

    __tablename__ = "kv_entries"

    namespace: str = Field(primary_key=True, max_length=255)
    key: str = Field(primary_key=True, max_length=512)
    value: str = Field(max_length=10000000)  # JSON serialized
    updated_at: float = Field(default_factory=time.time, index=True)


class CacheEntry(BaseModel):
    """Payload wrapped with creation and expiry timestamps (epoch ms).

    Stored field names are ``data``, ``timestamp``, ``expiresAt`` and ``key``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    data: Any
    created_at: int = PydanticField(alias="timestamp")
    expires_at: int = PydanticField(alias="expiresAt")
    key: str

    @model_validator(mode="after")
    def _check_keys(self):
        if not self.key:
            raise ValueError("cache entry key must not be empty")
        return self

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class CacheOptions(BaseModel):
    """Per-call cache behaviour."""

    ttl: Optional[int] = None  # milliseconds; None means the cache default
    force_refresh: bool = False


@dataclass(frozen=True)
class CacheLookup(Generic[T]):
    """Outcome of a cache read. Truthy only on a hit."""

    hit: bool
    key: str
    data: Optional[T] = None

    @classmethod
    def miss(cls, key: str) -> "CacheLookup[T]":
        return cls(hit=False, key=key)

    def __bool__(self) -> bool:
        return self.hit


class CacheStats(BaseModel):
    """Entry counts per cache partition."""

    image_analysis: int = 0
    videos: int = 0
    generations: int = 0
    total: int = 0
