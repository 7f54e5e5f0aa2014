import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from cloaker_app.cache.layer import CacheLayer
from cloaker_app.enums import UrlStatus
from cloaker_app.schemas.campaign import (
    CampaignCreate,
    CampaignRecord,
    CampaignUpdate,
    CampaignWithUrls,
    ClickSummary,
)
from cloaker_app.storage.strategies import StoreStrategy
from .catalog import CatalogService
from .exceptions import NotFoundError, ValidationError
from .quota import scaled_click_limit

logger = logging.getLogger(__name__)

RESCALED_STATUSES = (UrlStatus.ACTIVE, UrlStatus.PAUSED)


class CampaignService:
    """Campaign CRUD plus the per-campaign click report."""

    def __init__(self, store: StoreStrategy, cache: CacheLayer, catalog: CatalogService):
        self.store = store
        self.cache = cache
        self.catalog = catalog

    async def _with_urls(self, campaign: CampaignRecord) -> CampaignWithUrls:
        urls = await self.catalog.get_campaign_urls(campaign.id)
        return CampaignWithUrls(**campaign.model_dump(), urls=urls)

    async def list_campaigns(self) -> List[CampaignWithUrls]:
        return [await self._with_urls(c) for c in await self.store.list_campaigns()]

    async def get_campaign(self, campaign_id: int) -> CampaignWithUrls:
        campaign = await self.catalog.get_campaign(campaign_id)
        if campaign is None:
            raise NotFoundError(f"Campaign {campaign_id} not found")
        return await self._with_urls(campaign)

    async def get_campaign_by_path(self, custom_path: str) -> CampaignWithUrls:
        campaign = await self.catalog.get_campaign_by_custom_path(custom_path)
        if campaign is None:
            raise NotFoundError(f"No campaign at path {custom_path!r}")
        return await self._with_urls(campaign)

    async def _ensure_path_free(self, custom_path: Optional[str], campaign_id: Optional[int] = None) -> None:
        if not custom_path:
            return
        holder = await self.store.get_campaign_by_path(custom_path)
        if holder is not None and holder.id != campaign_id:
            raise ValidationError(f"Custom path {custom_path!r} is already in use")

    async def create_campaign(self, payload: CampaignCreate) -> CampaignRecord:
        await self._ensure_path_free(payload.custom_path)
        campaign = await self.store.create_campaign(payload.model_dump())
        await self.cache.put_campaign(campaign)
        logger.info("Created campaign %s (%s)", campaign.id, campaign.name)
        return campaign

    async def update_campaign(self, campaign_id: int, payload: CampaignUpdate) -> CampaignRecord:
        current = await self.store.get_campaign(campaign_id)
        if current is None:
            raise NotFoundError(f"Campaign {campaign_id} not found")

        changes: Dict[str, Any] = payload.model_dump(exclude_unset=True)
        # Only these may be cleared with null
        changes = {
            k: v for k, v in changes.items()
            if v is not None or k in ("custom_path", "trafficstar_campaign_id")
        }
        if changes.get("custom_path") != current.custom_path:
            await self._ensure_path_free(changes.get("custom_path"), campaign_id)

        campaign = await self.store.update_campaign(campaign_id, changes)

        if "multiplier" in changes and Decimal(changes["multiplier"]) != current.multiplier:
            await self._rescale_urls(campaign)

        await self.cache.invalidate_campaign(campaign_id)
        await self.cache.put_campaign(campaign)
        return campaign

    async def _rescale_urls(self, campaign: CampaignRecord) -> int:
        """Recompute click limits of active and paused URLs for a new multiplier."""
        urls = await self.store.list_campaign_urls(campaign.id, statuses=RESCALED_STATUSES)
        updated = 0
        for url in urls:
            click_limit = scaled_click_limit(url.original_click_limit, campaign.multiplier)
            if click_limit == url.click_limit:
                continue
            await self.store.update_url(url.id, {"click_limit": click_limit})
            await self.cache.invalidate_url(url.id)
            updated += 1
        logger.info("Multiplier of campaign %s is now %s, rescaled %d URL(s)", campaign.id, campaign.multiplier, updated)
        return updated

    async def delete_campaign(self, campaign_id: int) -> None:
        """Soft-delete every URL of the campaign, then remove the campaign row."""
        campaign = await self.store.get_campaign(campaign_id)
        if campaign is None:
            raise NotFoundError(f"Campaign {campaign_id} not found")

        urls = await self.store.list_campaign_urls(campaign_id)
        for url in urls:
            await self.store.update_url(url.id, {"status": UrlStatus.DELETED})
            await self.cache.invalidate_url(url.id)

        await self.store.delete_campaign(campaign_id)
        await self.cache.invalidate_campaign(campaign_id)
        logger.info("Deleted campaign %s (%s) and %d URL(s)", campaign_id, campaign.name, len(urls))

    async def click_summary(self, campaign_id: int) -> ClickSummary:
        """Recorded redirects per URL, including URLs deleted since."""
        counts = await self.store.click_counts(campaign_id)
        return ClickSummary(campaign_id=campaign_id, total_clicks=sum(counts.values()), by_url=counts)
