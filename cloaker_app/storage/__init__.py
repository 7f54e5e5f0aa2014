"""
Persistent store for campaigns, URLs, master records, the blacklist and
click analytics.

This module implements the Strategy Pattern so services never touch
sessions directly.
"""

from .strategies import StoreStrategy, SQLAlchemyStore, InMemoryStore
from .factory import StoreFactory, StoreBackend

__all__ = [
    "StoreStrategy",
    "SQLAlchemyStore",
    "InMemoryStore",
    "StoreFactory",
    "StoreBackend",
]
