"""
Cache-aside reads of campaigns and URLs.
"""

import logging
from typing import List, Optional

from cloaker_app.cache.layer import CacheLayer
from cloaker_app.enums import UrlStatus
from cloaker_app.schemas.campaign import CampaignRecord
from cloaker_app.schemas.url import URLRecord
from cloaker_app.storage.strategies import StoreStrategy
from .background import BackgroundRunner
from .status_sync import StatusSynchronizer

logger = logging.getLogger(__name__)

HIDDEN_STATUSES = (UrlStatus.DELETED, UrlStatus.REJECTED)


class CatalogService:

    def __init__(
        self,
        store: StoreStrategy,
        cache: CacheLayer,
        synchronizer: StatusSynchronizer,
        background: BackgroundRunner,
    ):
        self.store = store
        self.cache = cache
        self.synchronizer = synchronizer
        self.background = background

    async def get_campaign(self, campaign_id: int, force_refresh: bool = False) -> Optional[CampaignRecord]:
        if not force_refresh:
            cached = await self.cache.get_campaign(campaign_id)
            if cached is not None:
                return cached

        campaign = await self.store.get_campaign(campaign_id)
        if campaign is not None:
            await self.cache.put_campaign(campaign)
        return campaign

    async def get_campaign_by_custom_path(self, custom_path: str) -> Optional[CampaignRecord]:
        path = custom_path.strip().lower()

        campaign_id = await self.cache.get_campaign_id_for_path(path)
        if campaign_id is not None:
            campaign = await self.get_campaign(campaign_id)
            # The path may have moved to another campaign since it was cached
            if campaign is not None and campaign.custom_path == path:
                return campaign

        campaign = await self.store.get_campaign_by_path(path)
        if campaign is not None:
            await self.cache.put_campaign(campaign)
        return campaign

    async def get_url(self, url_id: int) -> Optional[URLRecord]:
        """The URL as last committed (pending clicks not included)."""
        cached = await self.cache.get_url(url_id)
        if cached is not None:
            return cached

        url = await self.store.get_url(url_id)
        if url is not None:
            await self.cache.put_url(url)
        return url

    def with_pending(self, url: URLRecord) -> URLRecord:
        """Add clicks that are counted but not flushed yet."""
        uncommitted = self.cache.uncommitted(url.id)
        if not uncommitted:
            return url
        return url.model_copy(update={"clicks": url.clicks + uncommitted})

    async def get_live_url(self, url_id: int) -> Optional[URLRecord]:
        url = await self.get_url(url_id)
        return self.with_pending(url) if url is not None else None

    async def get_campaign_urls(self, campaign_id: int) -> List[URLRecord]:
        """
        The campaign's URLs as operators and the distribution engine see them.

        Deleted and rejected URLs are left out, newest first. Click counts
        include pending clicks. A URL found at or over its limit is reported
        completed right away, and the store is brought in line in the
        background.
        """
        urls = await self.store.list_campaign_urls(campaign_id, exclude_statuses=HIDDEN_STATUSES)

        result = []
        for url in urls:
            url = self.with_pending(url)
            if url.clicks >= url.click_limit and url.status != UrlStatus.COMPLETED:
                url = url.model_copy(update={"status": UrlStatus.COMPLETED})
                self.background.submit(
                    self.synchronizer.complete_url(url.id),
                    label=f"complete-url-{url.id}",
                )
            result.append(url)
        return result
