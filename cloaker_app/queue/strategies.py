"""
Queue strategies using Strategy Pattern.
Allows switching between different queue backends (Redis Streams, In-Memory).
"""

import logging
import socket
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Dict, List, Optional, Set

from .models import ClickEvent

logger = logging.getLogger(__name__)


class QueueStrategy(ABC):
    """
    Abstract base class for queue strategies.

    Producers (the redirect dispatcher) publish, the click worker consumes
    and acknowledges once events are stored.
    """

    @abstractmethod
    async def publish(self, queue_name: str, message: ClickEvent) -> bool:
        """
        Publish a message to the queue.

        Returns:
            True if successful, False otherwise
        """
        pass

    @abstractmethod
    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: Optional[int] = None
    ) -> List[ClickEvent]:
        """
        Consume messages from the queue.

        Args:
            queue_name: Name of the queue
            batch_size: Maximum number of messages to retrieve
            block_time: Time to wait for messages in milliseconds (None = don't wait)
        """
        pass

    @abstractmethod
    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        """Acknowledge messages (mark as processed)."""
        pass

    @abstractmethod
    async def get_queue_length(self, queue_name: str) -> int:
        pass

    async def consume_batch(
        self,
        queue_name: str,
        batch_size: int = 100,
        block_time: Optional[int] = None
    ) -> List[ClickEvent]:
        """Consume with a larger default batch size."""
        return await self.consume(queue_name, batch_size, block_time)

    @abstractmethod
    async def requeue(self, queue_name: str) -> int:
        """
        Hand every consumed but unacknowledged message out again.

        Returns:
            Number of messages that will be redelivered
        """
        pass


class RedisStreamQueue(QueueStrategy):
    """
    Click events on a Redis stream read through a consumer group.

    publish is XADD, consume is XREADGROUP and ack is XACK. Entries this
    consumer read but never acknowledged stay in the group's pending list;
    after requeue() the next consume re-reads them (id '0') before taking
    new entries ('>').
    """

    def __init__(self, redis_client, consumer_group: str = "click_workers"):
        self.redis = redis_client
        self.consumer_group = consumer_group
        self.consumer_name = f"worker-{socket.gethostname()}-{id(self)}"
        self._ready: Set[str] = set()
        self._replay: Set[str] = set()

    def _ensure_group(self, queue_name: str) -> None:
        if queue_name in self._ready:
            return
        try:
            self.redis.xgroup_create(name=queue_name, groupname=self.consumer_group, id="0", mkstream=True)
            logger.info("Created consumer group %s on stream %s", self.consumer_group, queue_name)
        except Exception as e:
            if "BUSYGROUP" not in str(e):
                raise
        self._ready.add(queue_name)

    async def publish(self, queue_name: str, message: ClickEvent) -> bool:
        try:
            self._ensure_group(queue_name)
            self.redis.xadd(queue_name, {"data": message.model_dump_json()})
            return True
        except Exception as e:
            logger.error("Redis publish to %s failed: %s", queue_name, e)
            return False

    def _decode(self, entries) -> List[ClickEvent]:
        events = []
        for _stream, stream_entries in entries or []:
            for message_id, fields in stream_entries:
                if not fields:
                    # Entry was trimmed from the stream while pending
                    continue
                try:
                    event = ClickEvent.model_validate_json(fields[b"data"])
                except Exception as e:
                    logger.warning("Dropping unreadable click event %s: %s", message_id, e)
                    continue
                event.message_id = message_id.decode("utf-8")
                events.append(event)
        return events

    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: Optional[int] = None
    ) -> List[ClickEvent]:
        try:
            self._ensure_group(queue_name)
            if queue_name in self._replay:
                replayed = self._decode(self.redis.xreadgroup(
                    groupname=self.consumer_group,
                    consumername=self.consumer_name,
                    streams={queue_name: "0"},
                    count=batch_size,
                ))
                if replayed:
                    return replayed
                self._replay.discard(queue_name)

            return self._decode(self.redis.xreadgroup(
                groupname=self.consumer_group,
                consumername=self.consumer_name,
                streams={queue_name: ">"},
                count=batch_size,
                block=block_time,
            ))
        except Exception as e:
            logger.error("Redis consume from %s failed: %s", queue_name, e)
            return []

    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        if not message_ids:
            return True
        try:
            self.redis.xack(queue_name, self.consumer_group, *message_ids)
            return True
        except Exception as e:
            logger.error("Redis ack on %s failed: %s", queue_name, e)
            return False

    async def requeue(self, queue_name: str) -> int:
        try:
            summary = self.redis.xpending(queue_name, self.consumer_group)
        except Exception as e:
            logger.error("Redis pending lookup on %s failed: %s", queue_name, e)
            return 0
        self._replay.add(queue_name)
        return int(summary.get("pending", 0)) if summary else 0

    async def get_queue_length(self, queue_name: str) -> int:
        try:
            return int(self.redis.xlen(queue_name))
        except Exception:
            return 0


class InMemoryQueue(QueueStrategy):
    """
    In-memory queue using deque, for development and tests.

    Consumed messages are held as in-flight until acknowledged, so a batch
    the worker fails to store can be handed out again with requeue().
    """

    def __init__(self):
        self._queues: Dict[str, Deque[ClickEvent]] = {}
        self._inflight: Dict[str, Dict[str, ClickEvent]] = {}
        self._next_id = 0

    def _get_queue(self, queue_name: str) -> Deque[ClickEvent]:
        if queue_name not in self._queues:
            self._queues[queue_name] = deque()
            self._inflight[queue_name] = {}
        return self._queues[queue_name]

    async def publish(self, queue_name: str, message: ClickEvent) -> bool:
        self._next_id += 1
        message.message_id = str(self._next_id)
        self._get_queue(queue_name).append(message)
        return True

    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: Optional[int] = None
    ) -> List[ClickEvent]:
        """block_time is ignored, this queue never waits."""
        queue = self._get_queue(queue_name)
        messages = []
        while queue and len(messages) < batch_size:
            message = queue.popleft()
            self._inflight[queue_name][message.message_id] = message
            messages.append(message)
        return messages

    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        self._get_queue(queue_name)
        inflight = self._inflight[queue_name]
        for message_id in message_ids:
            inflight.pop(message_id, None)
        return True

    async def requeue(self, queue_name: str) -> int:
        """Put every unacknowledged message back at the head of the queue."""
        queue = self._get_queue(queue_name)
        inflight = self._inflight[queue_name]
        pending = sorted(inflight.values(), key=lambda m: int(m.message_id), reverse=True)
        for message in pending:
            queue.appendleft(message)
        inflight.clear()
        return len(pending)

    async def get_queue_length(self, queue_name: str) -> int:
        return len(self._get_queue(queue_name))
