"""
In-Memory Key-Value Store

Process-local backend for local development and tests. Keeps a version
counter per key so ``update`` behaves like the Redis backend, including
conflicts between interleaved coroutines.
"""

import asyncio
import json
import time
from typing import Any, Optional

from ..errors import WriteConflict
from .base import Mutator


class MemoryKeyValueStore:
    """Dictionary-backed store with TTL and optimistic versioning."""

    def __init__(self) -> None:
        # key -> (serialized value, expires_at)
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._versions: dict[str, int] = {}

    def _read(self, key: str) -> tuple[Optional[str], int]:
        entry = self._data.get(key)
        version = self._versions.get(key, 0)
        if entry is None:
            return None, version
        raw, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            self._versions[key] = version + 1
            return None, version + 1
        return raw, version

    def _write(self, key: str, raw: Optional[str], ttl: Optional[int]) -> None:
        version = self._versions.get(key, 0) + 1
        self._versions[key] = version
        if raw is None:
            self._data.pop(key, None)
            return
        expires_at = time.monotonic() + ttl if ttl else None
        self._data[key] = (raw, expires_at)

    async def get(self, key: str) -> Optional[Any]:
        raw, _ = self._read(key)
        return json.loads(raw) if raw is not None else None

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._write(key, json.dumps(value), ttl)

    async def delete(self, key: str) -> bool:
        raw, _ = self._read(key)
        if raw is None:
            return False
        self._write(key, None, None)
        return True

    async def update(self, key: str, mutate: Mutator, ttl: Optional[int] = None) -> Any:
        raw, version = self._read(key)
        current = json.loads(raw) if raw is not None else None
        new_value = mutate(current)
        serialized = json.dumps(new_value)

        # read and write are separate round trips
        await asyncio.sleep(0)

        _, latest = self._read(key)
        if latest != version:
            raise WriteConflict(f"Concurrent modification of '{key}'")
        self._write(key, serialized, ttl)
        return new_value

    async def close(self) -> None:
        self._data.clear()
