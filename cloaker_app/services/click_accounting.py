"""
Click Accounting Engine.

A redirect only bumps an in-memory counter; counts reach the store in
batches, either when one URL collects batch_threshold clicks or on the
periodic flush. See cache/layer.py for how the accumulator avoids losing
or double counting clicks around a flush.
"""

import logging

from cloaker_app.cache.layer import CacheLayer
from cloaker_app.enums import UrlStatus
from cloaker_app.schemas.url import URLRecord
from cloaker_app.storage.strategies import StoreStrategy
from .background import BackgroundRunner
from .exceptions import NotFoundError
from .status_sync import StatusSynchronizer

logger = logging.getLogger(__name__)

DEFAULT_BATCH_THRESHOLD = 10


class ClickAccountingEngine:

    def __init__(
        self,
        store: StoreStrategy,
        cache: CacheLayer,
        synchronizer: StatusSynchronizer,
        background: BackgroundRunner,
        batch_threshold: int = DEFAULT_BATCH_THRESHOLD,
    ):
        self.store = store
        self.cache = cache
        self.synchronizer = synchronizer
        self.background = background
        self.batch_threshold = batch_threshold

    async def _resolve(self, url_id: int) -> URLRecord:
        url = await self.cache.get_url(url_id)
        if url is not None:
            return url
        url = await self.store.get_url(url_id)
        if url is None:
            raise NotFoundError(f"URL {url_id} not found")
        await self.cache.put_url(url)
        return url

    async def increment_clicks(self, url_id: int) -> URLRecord:
        """
        Count one click for a URL.

        Returns:
            Snapshot whose clicks already include this click and every
            other click not flushed yet
        """
        url = await self._resolve(url_id)
        new_clicks = url.clicks + self.cache.uncommitted(url_id) + 1
        status = url.status

        if new_clicks >= url.click_limit and url.status != UrlStatus.COMPLETED:
            status = UrlStatus.COMPLETED
            await self.cache.put_url(url.model_copy(update={"status": status}))
            self.background.submit(
                self.synchronizer.sync_url_status_to_original(url.name, UrlStatus.COMPLETED),
                label=f"sync-completed-{url_id}",
            )

        pending = self.cache.add_pending(url_id)

        if url.campaign_id is not None:
            await self.cache.invalidate_distribution(url.campaign_id)

        if pending >= self.batch_threshold:
            self.background.submit(self.flush_url(url_id), label=f"flush-url-{url_id}")

        return url.model_copy(update={"clicks": new_clicks, "status": status})

    async def flush_url(self, url_id: int) -> bool:
        """
        Write one URL's pending clicks.

        Returns:
            True if clicks were written
        """
        count = self.cache.begin_flush(url_id)
        if not count:
            return False

        try:
            result = await self.store.add_clicks(url_id, count)
        except Exception:
            self.cache.abort_flush(url_id, count)
            raise

        self.cache.commit_flush(url_id, count)

        if result is None:
            logger.warning("URL %s no longer exists, dropped %d pending clicks", url_id, count)
            await self.cache.invalidate_url(url_id)
            return False

        before, after = result
        await self.cache.put_url(after)
        if before.campaign_id is not None:
            if after.campaign_id != before.campaign_id:
                await self.cache.invalidate_campaign(before.campaign_id)
            else:
                await self.cache.invalidate_distribution(before.campaign_id)

        if after.status == UrlStatus.COMPLETED and before.status != UrlStatus.COMPLETED:
            logger.info("URL %s (%s) completed at %d/%d clicks", after.id, after.name, after.clicks, after.click_limit)
            self.background.submit(
                self.synchronizer.sync_url_status_to_original(after.name, UrlStatus.COMPLETED),
                label=f"sync-completed-{url_id}",
            )
        return True

    async def flush_pending_click_updates(self) -> int:
        """
        Write every URL's pending clicks. Safe to run while clicks keep arriving.

        Returns:
            Number of URLs written
        """
        flushed = 0
        for url_id in self.cache.pending_ids():
            try:
                if await self.flush_url(url_id):
                    flushed += 1
            except Exception:
                logger.exception("Failed to flush pending clicks for URL %s, will retry", url_id)
        if flushed:
            logger.debug("Flushed pending clicks for %d URL(s)", flushed)
        return flushed
