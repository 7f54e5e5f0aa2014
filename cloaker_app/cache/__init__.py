"""
Cache module for the campaign manager.
Implements Strategy Pattern for flexible cache backends, plus the typed
CacheLayer used by the services.
"""

from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache
from .factory import CacheFactory, CacheBackend
from .layer import CacheLayer

__all__ = [
    "CacheStrategy",
    "RedisCache",
    "InMemoryCache",
    "NullCache",
    "CacheFactory",
    "CacheBackend",
    "CacheLayer",
]
