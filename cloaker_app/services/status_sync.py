"""
Status Synchronizer.

Keeps URL Records and their Original URL Record (matched by exact name)
consistent in both directions:

- URL -> master: a URL's status change is copied onto the master record.
- master -> URLs: quota and status of the master are pushed to every URL
  with the same name, in every campaign. This is the only caller of the
  store's privileged write path. Rejected URLs keep their status, and a
  blacklisted target is never activated this way.

Both directions skip writes when the target already matches, so running
them twice in a row changes nothing the second time.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional, Set

from cloaker_app.cache.layer import CacheLayer
from cloaker_app.enums import UrlStatus
from cloaker_app.schemas.campaign import CampaignRecord
from cloaker_app.schemas.original_url import OriginalURLRecord
from cloaker_app.schemas.url import URLRecord
from cloaker_app.storage.strategies import StoreStrategy
from .exceptions import NotFoundError
from .quota import scaled_click_limit

logger = logging.getLogger(__name__)


class SyncOutcome(str, Enum):
    NOT_FOUND = "not_found"
    UNCHANGED = "unchanged"
    UPDATED = "updated"


class StatusSynchronizer:

    def __init__(self, store: StoreStrategy, cache: CacheLayer):
        self.store = store
        self.cache = cache

    async def sync_url_status_to_original(self, url_name: str, new_status: UrlStatus) -> SyncOutcome:
        """Copy a URL's status onto the master record with the same name."""
        record = await self.store.get_original_by_name(url_name)
        if record is None:
            return SyncOutcome.NOT_FOUND
        if record.status == new_status:
            return SyncOutcome.UNCHANGED
        await self.store.update_original(record.id, {"status": new_status})
        logger.info("Original record %s (%s) status -> %s", record.id, url_name, UrlStatus(new_status).value)
        return SyncOutcome.UPDATED

    async def propagate_url_status(self, url_name: str, new_status: UrlStatus) -> Optional[SyncOutcome]:
        """sync_url_status_to_original for callers whose own write already succeeded.

        Errors are logged and swallowed.
        """
        try:
            return await self.sync_url_status_to_original(url_name, new_status)
        except Exception:
            logger.exception("Failed to sync status of %r to its original record", url_name)
            return None

    async def sync_original_to_urls(self, record_id: int) -> int:
        """
        Push the master's quota and status to every URL sharing its name.

        clickLimit is recomputed per URL from its campaign's multiplier
        (1 without a campaign). Touched campaigns are reloaded into the
        cache so the next read sees the new quotas.

        Returns:
            Number of URL Records that were written
        """
        record = await self.store.get_original(record_id)
        if record is None:
            raise NotFoundError(f"Original URL record {record_id} not found")

        urls = await self.store.find_urls_by_name(record.name)
        campaigns: Dict[int, Optional[CampaignRecord]] = {}
        touched: Set[int] = set()
        updated = 0

        for url in urls:
            multiplier = 1
            if url.campaign_id is not None:
                if url.campaign_id not in campaigns:
                    campaigns[url.campaign_id] = await self.store.get_campaign(url.campaign_id)
                campaign = campaigns[url.campaign_id]
                if campaign is not None:
                    multiplier = campaign.multiplier

            status = await self._fanout_status(url, record.status)
            changes = self._master_changes(url, record, status, scaled_click_limit(record.original_click_limit, multiplier))
            if not changes:
                continue

            await self.store.update_url(url.id, changes, privileged=True)
            await self.cache.invalidate_url(url.id)
            updated += 1
            if url.campaign_id is not None:
                touched.add(url.campaign_id)

        for campaign_id in touched:
            await self.reload_campaign(campaign_id)

        logger.info("Synced original record %s (%s) to %d URL(s)", record.id, record.name, updated)
        return updated

    async def _fanout_status(self, url: URLRecord, status: UrlStatus) -> UrlStatus:
        """
        Status a URL takes from its master.

        Rejected URLs stay rejected, and a URL whose target is blacklisted
        is rejected instead of activated.
        """
        if url.status == UrlStatus.REJECTED:
            return UrlStatus.REJECTED
        if status == UrlStatus.ACTIVE and url.status != UrlStatus.ACTIVE:
            entry = await self.store.find_blacklisted(url.target_url)
            if entry is not None:
                logger.info("URL %s not activated from its master, target blacklisted by %r", url.id, entry.name)
                return UrlStatus.REJECTED
        return status

    @staticmethod
    def _master_changes(
        url: URLRecord, record: OriginalURLRecord, status: UrlStatus, click_limit: int
    ) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        if url.original_click_limit != record.original_click_limit:
            changes["original_click_limit"] = record.original_click_limit
        if url.click_limit != click_limit:
            changes["click_limit"] = click_limit
        if url.status != status:
            changes["status"] = status
        return changes

    async def update_original_record(self, record_id: int, changes: Dict[str, Any]) -> OriginalURLRecord:
        """
        Write a master record and fan the result out.

        Writing original_click_limit, even with the current value, pauses
        the record first; the pause then reaches every matching URL.
        """
        changes = dict(changes)
        if "original_click_limit" in changes:
            changes["status"] = UrlStatus.PAUSED

        record = await self.store.update_original(record_id, changes)
        if record is None:
            raise NotFoundError(f"Original URL record {record_id} not found")

        await self.sync_original_to_urls(record_id)
        return record

    async def complete_url(self, url_id: int) -> Optional[URLRecord]:
        """Mark a URL completed, detach it from its campaign and tell the master."""
        url = await self.store.get_url(url_id)
        if url is None:
            return None

        await self.propagate_url_status(url.name, UrlStatus.COMPLETED)
        if url.status == UrlStatus.COMPLETED and url.campaign_id is None:
            return url

        completed = await self.store.update_url(url_id, {"status": UrlStatus.COMPLETED, "campaign_id": None})
        await self.cache.invalidate_url(url_id)
        if url.campaign_id is not None:
            await self.cache.invalidate_campaign(url.campaign_id)
        logger.info("URL %s (%s) completed at %d/%d clicks", url.id, url.name, url.clicks, url.click_limit)
        return completed

    async def reload_campaign(self, campaign_id: int) -> Optional[CampaignRecord]:
        """Drop everything cached for a campaign and load it fresh from the store."""
        await self.cache.invalidate_campaign(campaign_id)
        campaign = await self.store.get_campaign(campaign_id)
        if campaign is not None:
            await self.cache.put_campaign(campaign)
        return campaign
