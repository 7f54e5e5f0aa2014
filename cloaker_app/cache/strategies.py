"""
Cache strategies using Strategy Pattern.
Allows switching between different cache backends (Redis, In-Memory, Null).
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheStrategy(ABC):
    """
    Abstract base class for cache strategies.

    Values are strings (JSON snapshots). A ttl of zero or less means the
    entry is never served back, which turns the cache into a write-only
    pass-through.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Get value from cache.

        Returns:
            Cached value or None if missing or expired
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: float) -> bool:
        """
        Set value in cache with TTL (Time To Live).

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Returns:
            True if deleted, False if key didn't exist
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def clear(self) -> bool:
        pass


class RedisCache(CacheStrategy):
    """
    Snapshots in Redis, shared by every API process.

    Keys are namespaced with prefix so clear() only touches this app's
    entries. Expiry is left to Redis (SET PX). A Redis failure reads as a
    miss; the store stays authoritative.
    """

    def __init__(self, redis_client, prefix: str = "cloaker:"):
        self.redis = redis_client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            value = self.redis.get(self._key(key))
        except Exception as e:
            logger.error("Redis get %s failed: %s", key, e)
            return None
        return value.decode("utf-8") if value is not None else None

    async def set(self, key: str, value: str, ttl: float) -> bool:
        # Redis rejects PX 0, and a zero ttl entry would never be served anyway
        if ttl <= 0:
            return True
        try:
            return bool(self.redis.set(self._key(key), value, px=max(int(ttl * 1000), 1)))
        except Exception as e:
            logger.error("Redis set %s failed: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(self.redis.delete(self._key(key)))
        except Exception as e:
            logger.error("Redis delete %s failed: %s", key, e)
            return False

    async def exists(self, key: str) -> bool:
        try:
            return bool(self.redis.exists(self._key(key)))
        except Exception as e:
            logger.error("Redis exists %s failed: %s", key, e)
            return False

    async def clear(self) -> bool:
        """Delete every key under the prefix."""
        try:
            keys = list(self.redis.scan_iter(match=f"{self.prefix}*", count=500))
            if keys:
                self.redis.delete(*keys)
            return True
        except Exception as e:
            logger.error("Redis clear failed: %s", e)
            return False


class InMemoryCache(CacheStrategy):
    """
    In-memory cache using a dict of (value, stored_at, ttl).

    Entries are stamped with the injected clock and served only while
    now - stored_at < ttl; expired entries are dropped on read.
    Per-process only.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._cache: Dict[str, Tuple[str, float, float]] = {}

    def _fresh(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, stored_at, ttl = entry
        if self._clock() - stored_at < ttl:
            return value
        del self._cache[key]
        return None

    async def get(self, key: str) -> Optional[str]:
        return self._fresh(key)

    async def set(self, key: str, value: str, ttl: float) -> bool:
        self._cache[key] = (value, self._clock(), ttl)
        return True

    async def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return self._fresh(key) is not None

    async def clear(self) -> bool:
        self._cache.clear()
        return True


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.

    Every read is a miss, so every lookup hits the store.
    """

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str, ttl: float) -> bool:
        return True

    async def delete(self, key: str) -> bool:
        return True

    async def exists(self, key: str) -> bool:
        return False

    async def clear(self) -> bool:
        return True
