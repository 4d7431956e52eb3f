"""Store construction from configuration."""

from typing import Optional

from structlog import get_logger

from ..config import PortalConfig, StoreBackend, get_config
from .base import KeyValueStore
from .memory_store import MemoryKeyValueStore
from .redis_store import RedisKeyValueStore

logger = get_logger()


def create_store(config: Optional[PortalConfig] = None) -> KeyValueStore:
    """
    Build the configured key-value store backend.

    Args:
        config: Portal configuration (uses cached config if not provided)

    Returns:
        Store backend instance
    """
    config = config or get_config()

    if config.store_backend == StoreBackend.REDIS:
        logger.info("using_redis_store", prefix=config.store_key_prefix)
        return RedisKeyValueStore.from_url(config.redis_url, config.store_key_prefix)

    if config.is_production:
        logger.warning("memory_store_in_production")
    return MemoryKeyValueStore()
