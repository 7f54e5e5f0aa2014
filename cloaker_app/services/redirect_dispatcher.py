"""
Redirect Dispatcher.

Resolves a request to (campaign, URL), counts the click and queues the
analytics event. Counting and analytics are best effort: once a URL is
picked, the redirect is answered no matter what they raise.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cloaker_app.queue.models import ClickEvent
from cloaker_app.queue.strategies import QueueStrategy
from cloaker_app.schemas.campaign import CampaignRecord
from cloaker_app.schemas.url import URLRecord
from .background import BackgroundRunner
from .catalog import CatalogService
from .click_accounting import ClickAccountingEngine
from .distribution import WeightedDistributionEngine
from .exceptions import ExhaustedError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ClientInfo:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None


@dataclass
class RedirectDecision:
    campaign: CampaignRecord
    url: URLRecord


class RedirectDispatcher:

    def __init__(
        self,
        catalog: CatalogService,
        distribution: WeightedDistributionEngine,
        clicks: ClickAccountingEngine,
        queue: QueueStrategy,
        queue_name: str,
        background: BackgroundRunner,
    ):
        self.catalog = catalog
        self.distribution = distribution
        self.clicks = clicks
        self.queue = queue
        self.queue_name = queue_name
        self.background = background

    async def dispatch_by_path(self, custom_path: str, client: Optional[ClientInfo] = None) -> RedirectDecision:
        campaign = await self.catalog.get_campaign_by_custom_path(custom_path)
        if campaign is None:
            raise NotFoundError("Campaign not found")
        return await self._dispatch_weighted(campaign, client)

    async def dispatch_by_campaign(self, campaign_id: int, client: Optional[ClientInfo] = None) -> RedirectDecision:
        campaign = await self.catalog.get_campaign(campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign not found")
        return await self._dispatch_weighted(campaign, client)

    async def dispatch_to_url(
        self,
        campaign_id: int,
        url_id: int,
        client: Optional[ClientInfo] = None,
    ) -> RedirectDecision:
        """Redirect to one specific URL of a campaign (copy-link URLs)."""
        url = await self.catalog.get_live_url(url_id)
        if url is None:
            raise NotFoundError("URL not found")
        if url.campaign_id != campaign_id:
            raise ValidationError("URL does not belong to this campaign")
        if url.clicks >= url.click_limit:
            raise ExhaustedError("URL has reached its click limit")

        campaign = await self.catalog.get_campaign(campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign not found")

        await self._record(campaign, url, client)
        return RedirectDecision(campaign=campaign, url=url)

    async def _dispatch_weighted(self, campaign: CampaignRecord, client: Optional[ClientInfo]) -> RedirectDecision:
        url = await self.distribution.pick_weighted(campaign.id)
        if url is None:
            raise ExhaustedError("No active URLs available for this campaign")
        await self._record(campaign, url, client)
        return RedirectDecision(campaign=campaign, url=url)

    async def _record(self, campaign: CampaignRecord, url: URLRecord, client: Optional[ClientInfo]) -> None:
        try:
            await self.clicks.increment_clicks(url.id)
        except Exception:
            logger.exception("Failed to count click for URL %s in campaign %s", url.id, campaign.id)

        client = client or ClientInfo()
        event = ClickEvent(
            campaign_id=campaign.id,
            url_id=url.id,
            redirect_method=campaign.redirect_method.value,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
            referer=client.referer,
        )
        self.background.submit(self._publish(event), label=f"click-event-{url.id}")

    async def _publish(self, event: ClickEvent) -> None:
        if not await self.queue.publish(self.queue_name, event):
            logger.warning("Click event for URL %s was not queued", event.url_id)
