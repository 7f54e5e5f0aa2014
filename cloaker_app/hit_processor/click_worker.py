"""
Click Worker

Runs inside the API process next to the request handlers, because the
pending-click accumulator it flushes is process-local.

Every interval it:
- consumes a batch of ClickEvents and stores them as click records
- acknowledges the batch only after it was stored (a failed batch is requeued)
- flushes pending click counts to the URL rows
"""

import asyncio
import logging

from cloaker_app.queue.strategies import QueueStrategy
from cloaker_app.services.click_accounting import ClickAccountingEngine
from cloaker_app.storage.strategies import StoreStrategy

logger = logging.getLogger(__name__)


class ClickWorker:

    def __init__(
        self,
        queue: QueueStrategy,
        store: StoreStrategy,
        clicks: ClickAccountingEngine,
        queue_name: str,
        batch_size: int = 100,
        interval: float = 1.0,
    ):
        self.queue = queue
        self.store = store
        self.clicks = clicks
        self.queue_name = queue_name
        self.batch_size = batch_size
        self.interval = interval
        self.running = False
        self.processed_count = 0

    async def start(self):
        """Loop until stop() is called or the task is cancelled."""
        self.running = True
        logger.info("Click worker started (batch size %d, interval %.2fs)", self.batch_size, self.interval)

        while self.running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("Click worker task cancelled")
                break
            except Exception:
                logger.exception("Click worker cycle failed")

            try:
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break

        self.running = False
        logger.info("Click worker stopped")

    async def run_once(self) -> int:
        """One cycle: store queued events, then flush pending counts."""
        stored = await self.process_events()
        await self.clicks.flush_pending_click_updates()
        return stored

    async def process_events(self) -> int:
        messages = await self.queue.consume_batch(queue_name=self.queue_name, batch_size=self.batch_size)
        if not messages:
            return 0

        try:
            await self.store.record_clicks(messages)
        except Exception:
            logger.exception("Failed to store %d click events, will retry", len(messages))
            await self.queue.requeue(self.queue_name)
            return 0

        message_ids = [msg.message_id for msg in messages if msg.message_id]
        if message_ids:
            await self.queue.ack(self.queue_name, message_ids)

        self.processed_count += len(messages)
        logger.debug("Stored %d click events, total %d", len(messages), self.processed_count)
        return len(messages)

    def stop(self):
        self.running = False
