"""
Weighted Distribution Engine.

Each active URL of a campaign owns a slice of [0, 1) proportional to its
remaining quota (click_limit - clicks, pending clicks included), so URLs
close to exhaustion are picked less often. A uniform draw selects the
slice it lands in.

Building and sampling are plain synchronous functions: no await happens
between reading the URL list and returning a pick from it.
"""

import logging
import random
from typing import List, Optional

from cloaker_app.cache.layer import CacheLayer
from cloaker_app.schemas.distribution import Distribution, WeightedRange
from cloaker_app.schemas.url import URLRecord
from .catalog import CatalogService

logger = logging.getLogger(__name__)


def build_distribution(campaign_id: int, active_urls: List[URLRecord]) -> Distribution:
    """Partition [0, 1) among active URLs in the given order."""
    total = sum(url.remaining for url in active_urls)
    ranges = []
    cumulative = 0.0
    if total > 0:
        for url in active_urls:
            weight = url.remaining / total
            ranges.append(WeightedRange(url_id=url.id, weight=weight, start=cumulative, end=cumulative + weight))
            cumulative += weight
    return Distribution(campaign_id=campaign_id, active_urls=active_urls, ranges=ranges)


def select_url(distribution: Distribution, draw: float) -> Optional[URLRecord]:
    """
    URL whose slice contains draw, or None when nothing is active.

    A single active URL is returned without looking at the draw. If
    rounding leaves draw outside every slice (e.g. on the last boundary)
    the first active URL is returned.
    """
    active = distribution.active_urls
    if not active:
        return None
    if len(active) == 1:
        return active[0]

    by_id = {url.id: url for url in active}
    for weighted in distribution.ranges:
        if weighted.start <= draw < weighted.end:
            return by_id[weighted.url_id]

    logger.debug("Draw %.17f matched no range for campaign %s, using first URL", draw, distribution.campaign_id)
    return active[0]


class WeightedDistributionEngine:

    def __init__(self, catalog: CatalogService, cache: CacheLayer, rng: Optional[random.Random] = None):
        self.catalog = catalog
        self.cache = cache
        self.rng = rng or random.Random()

    async def compute_distribution(self, campaign_id: int) -> Distribution:
        """Rebuild the distribution from current URL state and cache it."""
        urls = await self.catalog.get_campaign_urls(campaign_id)
        distribution = build_distribution(campaign_id, [url for url in urls if url.is_active])
        await self.cache.put_distribution(distribution)
        return distribution

    async def get_distribution(self, campaign_id: int) -> Distribution:
        cached = await self.cache.get_distribution(campaign_id)
        if cached is not None:
            return cached
        return await self.compute_distribution(campaign_id)

    async def pick_weighted(self, campaign_id: int, draw: Optional[float] = None) -> Optional[URLRecord]:
        """
        Pick one active URL of the campaign.

        Returns:
            The chosen URL, or None when the campaign has no active URL
        """
        distribution = await self.get_distribution(campaign_id)
        if draw is None:
            draw = self.rng.random()
        return select_url(distribution, draw)
