"""
Typed cache layer on top of a CacheStrategy.

Holds four snapshot caches (URL, campaign, weighted distribution,
custom path -> campaign id) and the pending-click accumulator.

The accumulator is process-local and is the only place clicks live
between a redirect and the next flush. Each URL has two counters:

- pending: clicks not yet picked up by a flush
- inflight: clicks a flush is currently writing

A flush moves pending to inflight (begin_flush), writes, then either
drops inflight (commit_flush) or moves it back to pending (abort_flush).
Clicks are therefore only forgotten after the store acknowledged them,
and an increment that lands mid-flush goes to pending for the next cycle.
"""

import logging
from typing import Dict, List, Optional

from .strategies import CacheStrategy
from cloaker_app.schemas.campaign import CampaignRecord
from cloaker_app.schemas.distribution import Distribution
from cloaker_app.schemas.url import URLRecord

logger = logging.getLogger(__name__)


class CacheLayer:

    def __init__(self, backend: CacheStrategy, ttl: float = 0):
        """
        Args:
            backend: Where snapshots are stored
            ttl: Seconds a snapshot is served back (0 = reads always miss)
        """
        self.backend = backend
        self.ttl = ttl
        self._pending: Dict[int, int] = {}
        self._inflight: Dict[int, int] = {}
        self._path_index: Dict[int, str] = {}

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @staticmethod
    def _url_key(url_id: int) -> str:
        return f"url:{url_id}"

    @staticmethod
    def _campaign_key(campaign_id: int) -> str:
        return f"campaign:{campaign_id}"

    @staticmethod
    def _distribution_key(campaign_id: int) -> str:
        return f"distribution:{campaign_id}"

    @staticmethod
    def _path_key(path: str) -> str:
        return f"path:{path}"

    async def get_url(self, url_id: int) -> Optional[URLRecord]:
        raw = await self.backend.get(self._url_key(url_id))
        return URLRecord.model_validate_json(raw) if raw else None

    async def put_url(self, url: URLRecord) -> None:
        await self.backend.set(self._url_key(url.id), url.model_dump_json(), self.ttl)

    async def invalidate_url(self, url_id: int) -> None:
        await self.backend.delete(self._url_key(url_id))

    async def get_campaign(self, campaign_id: int) -> Optional[CampaignRecord]:
        raw = await self.backend.get(self._campaign_key(campaign_id))
        return CampaignRecord.model_validate_json(raw) if raw else None

    async def put_campaign(self, campaign: CampaignRecord) -> None:
        await self.backend.set(self._campaign_key(campaign.id), campaign.model_dump_json(), self.ttl)
        if campaign.custom_path:
            await self.put_path(campaign.custom_path, campaign.id)

    async def invalidate_campaign(self, campaign_id: int) -> None:
        """Drop the campaign snapshot along with its distribution and path entry."""
        await self.backend.delete(self._campaign_key(campaign_id))
        await self.backend.delete(self._distribution_key(campaign_id))
        path = self._path_index.pop(campaign_id, None)
        if path is not None:
            await self.backend.delete(self._path_key(path))

    async def get_distribution(self, campaign_id: int) -> Optional[Distribution]:
        raw = await self.backend.get(self._distribution_key(campaign_id))
        return Distribution.model_validate_json(raw) if raw else None

    async def put_distribution(self, distribution: Distribution) -> None:
        await self.backend.set(
            self._distribution_key(distribution.campaign_id),
            distribution.model_dump_json(),
            self.ttl,
        )

    async def invalidate_distribution(self, campaign_id: int) -> None:
        await self.backend.delete(self._distribution_key(campaign_id))

    async def get_campaign_id_for_path(self, path: str) -> Optional[int]:
        raw = await self.backend.get(self._path_key(path))
        return int(raw) if raw else None

    async def put_path(self, path: str, campaign_id: int) -> None:
        old = self._path_index.get(campaign_id)
        if old is not None and old != path:
            await self.backend.delete(self._path_key(old))
        self._path_index[campaign_id] = path
        await self.backend.set(self._path_key(path), str(campaign_id), self.ttl)

    # ------------------------------------------------------------------
    # Pending-click accumulator
    # ------------------------------------------------------------------

    def add_pending(self, url_id: int, count: int = 1) -> int:
        """Record clicks for a URL; returns the count waiting for a flush."""
        self._pending[url_id] = self._pending.get(url_id, 0) + count
        return self._pending[url_id]

    def pending(self, url_id: int) -> int:
        return self._pending.get(url_id, 0)

    def uncommitted(self, url_id: int) -> int:
        """Clicks not yet visible in the store (pending plus inflight)."""
        return self._pending.get(url_id, 0) + self._inflight.get(url_id, 0)

    def pending_ids(self) -> List[int]:
        return [url_id for url_id, count in self._pending.items() if count > 0]

    def begin_flush(self, url_id: int) -> int:
        """Move the pending count to inflight and return it."""
        count = self._pending.pop(url_id, 0)
        if count:
            self._inflight[url_id] = self._inflight.get(url_id, 0) + count
        return count

    def commit_flush(self, url_id: int, count: int) -> None:
        remaining = self._inflight.get(url_id, 0) - count
        if remaining > 0:
            self._inflight[url_id] = remaining
        else:
            self._inflight.pop(url_id, None)

    def abort_flush(self, url_id: int, count: int) -> None:
        """Hand an unwritten batch back to pending for the next flush."""
        self.commit_flush(url_id, count)
        self.add_pending(url_id, count)

    def discard(self, url_id: int) -> int:
        """Forget every uncommitted click of a URL (the row is gone)."""
        dropped = self._pending.pop(url_id, 0) + self._inflight.pop(url_id, 0)
        if dropped:
            logger.warning("Discarded %d uncommitted clicks for URL %d", dropped, url_id)
        return dropped
