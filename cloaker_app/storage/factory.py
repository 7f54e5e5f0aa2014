"""
Factory for creating persistent store instances.
"""

import logging
from enum import Enum

from .strategies import StoreStrategy, SQLAlchemyStore, InMemoryStore

logger = logging.getLogger(__name__)


class StoreBackend(Enum):
    """Available store backends"""
    SQLALCHEMY = "sqlalchemy"
    MEMORY = "memory"


class StoreFactory:
    """
    Simple factory for creating store instances.

    The SQLAlchemy backend creates its tables on first use.
    """

    @classmethod
    def create(cls, backend: StoreBackend, settings) -> StoreStrategy:
        if backend == StoreBackend.SQLALCHEMY:
            from cloaker_app.database.connection import build_engine, build_session_factory, init_db

            engine = build_engine(settings.database_url)
            init_db(engine)
            logger.info("SQLAlchemy store initialized (%s)", engine.url.get_backend_name())
            return SQLAlchemyStore(build_session_factory(engine))

        elif backend == StoreBackend.MEMORY:
            logger.info("In-memory store initialized")
            return InMemoryStore()

        raise ValueError(f"Unknown store backend: {backend}")
