"""
Factory for creating queue instances.
"""

import logging
from enum import Enum

from .strategies import QueueStrategy, RedisStreamQueue, InMemoryQueue

logger = logging.getLogger(__name__)


class QueueBackend(Enum):
    """Available queue backends"""
    REDIS_STREAMS = "redis_streams"
    MEMORY = "memory"


class QueueFactory:
    """
    Simple factory for creating queue instances.

    Each call builds a fresh instance; the service container holds the one
    the application uses.
    """

    @classmethod
    def create(cls, backend: QueueBackend, settings) -> QueueStrategy:
        if backend == QueueBackend.REDIS_STREAMS:
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

                logger.info("Redis queue initialized")
                return RedisStreamQueue(redis_client, settings.queue_consumer_group)

            except Exception as e:
                logger.warning("Redis connection failed (%s), falling back to in-memory queue", e)
                return InMemoryQueue()

        elif backend == QueueBackend.MEMORY:
            logger.info("In-memory queue initialized")
            return InMemoryQueue()

        raise ValueError(f"Unknown queue backend: {backend}")
