"""
Storage Module

Key-value store abstraction holding all durable portal state.
"""

from .base import KeyValueStore, Mutator, update_with_retry
from .factory import create_store
from .memory_store import MemoryKeyValueStore
from .redis_store import RedisKeyValueStore

__all__ = [
    "KeyValueStore",
    "Mutator",
    "update_with_retry",
    "create_store",
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
]
