"""
Key-Value Store Protocol

Contract for every store backend. Values are JSON-serializable Python
objects; backends own the serialization.
"""

from typing import Any, Callable, Optional, Protocol

from structlog import get_logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from ..errors import WriteConflict

logger = get_logger()

# Receives the current value (None when absent) and returns the value to write.
Mutator = Callable[[Optional[Any]], Any]


class KeyValueStore(Protocol):
    """
    Abstract key-value store interface.

    The store is the single source of truth shared by every request handler,
    so read-modify-write sequences must go through ``update``.
    """

    async def get(self, key: str) -> Optional[Any]:
        """
        Retrieve a value by key.

        Args:
            key: Store key

        Returns:
            Stored value or None if not found/expired
        """
        ...

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Store a value unconditionally.

        Args:
            key: Store key
            value: JSON-serializable value
            ttl: Time-to-live in seconds (None for no expiration)
        """
        ...

    async def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if the key existed
        """
        ...

    async def update(self, key: str, mutate: Mutator, ttl: Optional[int] = None) -> Any:
        """
        Optimistic read-modify-write.

        Reads the current value, computes the new one with ``mutate`` and
        writes it only if nobody else wrote the key in between. Exceptions
        raised by ``mutate`` abort the write and propagate unchanged.

        Args:
            key: Store key
            mutate: Function from current value to new value
            ttl: Time-to-live for the written value

        Returns:
            The value written

        Raises:
            WriteConflict: If the key changed between read and write
        """
        ...

    async def close(self) -> None:
        """Release backend resources."""
        ...


async def update_with_retry(
    store: KeyValueStore,
    key: str,
    mutate: Mutator,
    attempts: int = 10,
    ttl: Optional[int] = None,
) -> Any:
    """
    Run ``store.update`` and retry on ``WriteConflict``.

    Each attempt re-reads the current value, so ``mutate`` always sees the
    latest committed state.

    Args:
        store: Store backend
        key: Store key
        mutate: Function from current value to new value
        attempts: Maximum number of attempts
        ttl: Time-to-live for the written value

    Returns:
        The value written

    Raises:
        WriteConflict: If every attempt lost against a concurrent writer
    """

    @retry(
        retry=retry_if_exception_type(WriteConflict),
        stop=stop_after_attempt(attempts),
        wait=wait_random_exponential(multiplier=0.005, max=0.2),
        reraise=True,
    )
    async def _update():
        try:
            return await store.update(key, mutate, ttl=ttl)
        except WriteConflict:
            logger.debug("store_write_conflict", key=key)
            raise

    return await _update()
