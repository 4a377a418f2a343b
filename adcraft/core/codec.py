"""Cache key derivation and TTL envelopes.

Keys are ``{prefix}_{sha256}`` over a canonical encoding of the inputs, so
the same ordered inputs always map to the same slot, across restarts, and two
cache kinds never share a slot even for identical raw input.
"""

import hashlib
import json
import time
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterable, Union

from pydantic import ValidationError

from adcraft.core.exceptions import CorruptEntryError
from adcraft.models.cache import CacheEntry

Clock = Callable[[], int]

_CHUNK_SIZE = 1024 * 1024


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _iter_atoms(value: Any) -> Iterable[bytes]:
    """Yield one tagged, length-prefixed frame per scalar input.

    Lists and tuples are flattened in order; dicts are canonicalized with
    sorted keys so structured descriptors hash the same regardless of build
    order.
    """
    if isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_atoms(item)
        return

    if value is None:
        tag, payload = b"n", b""
    elif isinstance(value, bool):
        tag, payload = b"b", b"1" if value else b"0"
    elif isinstance(value, (int, float)):
        tag, payload = b"i" if isinstance(value, int) else b"f", repr(value).encode()
    elif isinstance(value, str):
        tag, payload = b"s", value.encode("utf-8")
    elif isinstance(value, (bytes, bytearray, memoryview)):
        tag, payload = b"x", bytes(value)
    elif isinstance(value, dict):
        tag = b"d"
        payload = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str).encode()
    else:
        tag, payload = b"s", str(value).encode("utf-8")

    yield tag + str(len(payload)).encode() + b":" + payload


def compute_key(prefix: str, *inputs: Any) -> str:
    """Deterministic, order-sensitive cache key for ``inputs`` under ``prefix``.

    >>> compute_key("video", "img-1", "a red shoe") == compute_key("video", ["img-1", "a red shoe"])
    True
    """
    digest = hashlib.sha256()
    for frame in _iter_atoms(list(inputs)):
        digest.update(frame)
    return f"{prefix}_{digest.hexdigest()}"


def hash_content(source: Union[bytes, bytearray, memoryview, str, Path, BinaryIO]) -> str:
    """SHA-256 hex digest of a byte payload, a file path, or a binary stream."""
    digest = hashlib.sha256()
    if isinstance(source, (bytes, bytearray, memoryview)):
        digest.update(source)
    elif isinstance(source, (str, Path)):
        with open(source, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
                digest.update(chunk)
    else:
        for chunk in iter(lambda: source.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class CacheCodec:
    """Wraps payloads in TTL envelopes and checks their liveness."""

    def __init__(self, clock: Clock = now_ms):
        self.clock = clock

    def compute_key(self, prefix: str, *inputs: Any) -> str:
        return compute_key(prefix, *inputs)

    def wrap(self, data: Any, ttl: int, key: str) -> CacheEntry:
        """Envelope ``data`` as of now."""
        created_at = self.clock()
        return CacheEntry(data=data, created_at=created_at, expires_at=created_at + ttl, key=key)

    def is_live(self, entry: CacheEntry) -> bool:
        """Live iff now <= expires_at. Zero or negative TTL entries are never live."""
        if entry.expires_at <= entry.created_at:
            return False
        return self.clock() <= entry.expires_at

    def decode(self, key: str, document: Any) -> CacheEntry:
        """Validate a stored document back into a :class:`CacheEntry`."""
        if not isinstance(document, dict):
            raise CorruptEntryError(key, f"expected an object, got {type(document).__name__}")
        try:
            return CacheEntry.model_validate(document)
        except ValidationError as e:
            raise CorruptEntryError(key, str(e)) from e
