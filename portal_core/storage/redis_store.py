"""
Redis Key-Value Store

Async Redis backend. ``update`` uses WATCH/MULTI/EXEC so a concurrent write
to the same key aborts the transaction instead of being overwritten.
"""

import json
from typing import Any, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError, WatchError
from structlog import get_logger

from ..errors import ExternalServiceError, WriteConflict
from .base import Mutator

logger = get_logger()


class RedisKeyValueStore:
    """
    Redis-backed store.

    Attributes:
        redis: Async Redis client
        key_prefix: Prefix for all keys (for namespacing)
    """

    def __init__(self, redis: aioredis.Redis, key_prefix: str = "portal") -> None:
        self.redis = redis
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "portal") -> "RedisKeyValueStore":
        """Create a store from a Redis connection URL."""
        return cls(aioredis.from_url(url, decode_responses=True), key_prefix)

    def _make_key(self, key: str) -> str:
        """Create prefixed key for namespacing."""
        return f"{self.key_prefix}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(self._make_key(key))
        except RedisError as e:
            logger.error("redis_get_failed", key=key, error=str(e))
            raise ExternalServiceError("Key-value store unavailable") from e
        return json.loads(raw) if raw is not None else None

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            await self.redis.set(self._make_key(key), json.dumps(value), ex=ttl)
        except RedisError as e:
            logger.error("redis_set_failed", key=key, error=str(e))
            raise ExternalServiceError("Key-value store unavailable") from e

    async def delete(self, key: str) -> bool:
        try:
            return await self.redis.delete(self._make_key(key)) > 0
        except RedisError as e:
            logger.error("redis_delete_failed", key=key, error=str(e))
            raise ExternalServiceError("Key-value store unavailable") from e

    async def update(self, key: str, mutate: Mutator, ttl: Optional[int] = None) -> Any:
        full_key = self._make_key(key)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(full_key)
                raw = await pipe.get(full_key)
                current = json.loads(raw) if raw is not None else None
                new_value = mutate(current)

                pipe.multi()
                pipe.set(full_key, json.dumps(new_value), ex=ttl)
                await pipe.execute()
                return new_value
        except WatchError as e:
            raise WriteConflict(f"Concurrent modification of '{key}'") from e
        except RedisError as e:
            logger.error("redis_update_failed", key=key, error=str(e))
            raise ExternalServiceError("Key-value store unavailable") from e

    async def close(self) -> None:
        await self.redis.aclose()
