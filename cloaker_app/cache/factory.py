"""
Factory for creating cache instances.
"""

import logging
import time
from enum import Enum
from typing import Callable

from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache

logger = logging.getLogger(__name__)


class CacheBackend(Enum):
    """Available cache backends"""
    REDIS = "redis"
    MEMORY = "memory"
    NULL = "null"


class CacheFactory:
    """
    Simple factory for creating cache instances.

    Falls back to the in-memory cache when Redis can't be reached.
    """

    @classmethod
    def create(
        cls,
        backend: CacheBackend,
        settings,
        clock: Callable[[], float] = time.monotonic
    ) -> CacheStrategy:
        if backend == CacheBackend.REDIS:
            import redis

            try:
                redis_client = redis.from_url(
                    settings.redis_url,
                    decode_responses=False,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )

                # Test connection immediately
                redis_client.ping()

                logger.info("Redis cache initialized")
                return RedisCache(redis_client, prefix=settings.cache_key_prefix)

            except Exception as e:
                logger.warning("Redis connection failed (%s), falling back to in-memory cache", e)
                return InMemoryCache(clock=clock)

        elif backend == CacheBackend.MEMORY:
            logger.info("In-memory cache initialized")
            return InMemoryCache(clock=clock)

        elif backend == CacheBackend.NULL:
            logger.info("Null cache initialized")
            return NullCache()

        raise ValueError(f"Unknown cache backend: {backend}")
