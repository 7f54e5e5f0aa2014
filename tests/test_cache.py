import asyncio

from cloaker_app.cache.layer import CacheLayer
from cloaker_app.cache.strategies import InMemoryCache, NullCache
from cloaker_app.enums import RedirectMethod, UrlStatus
from cloaker_app.schemas.campaign import CampaignRecord
from cloaker_app.schemas.url import URLRecord


def sample_url(url_id=1):
    return URLRecord(
        id=url_id,
        campaign_id=3,
        name="promo",
        target_url="https://promo.example.com/",
        clicks=2,
        click_limit=10,
        original_click_limit=10,
        status=UrlStatus.ACTIVE,
    )


class TestSnapshotTTL:
    """Snapshots are served for ttl seconds of the injected clock"""

    def test_hit_within_ttl_and_miss_after(self, clock):
        layer = CacheLayer(InMemoryCache(clock=clock), ttl=5)

        async def scenario():
            await layer.put_url(sample_url())
            clock.advance(4.9)
            hit = await layer.get_url(1)
            clock.advance(0.2)
            miss = await layer.get_url(1)
            return hit, miss

        hit, miss = asyncio.run(scenario())
        assert hit == sample_url()
        assert miss is None

    def test_zero_ttl_never_serves(self, clock):
        layer = CacheLayer(InMemoryCache(clock=clock), ttl=0)

        async def scenario():
            await layer.put_url(sample_url())
            return await layer.get_url(1)

        assert asyncio.run(scenario()) is None

    def test_null_cache_never_serves(self):
        layer = CacheLayer(NullCache(), ttl=60)

        async def scenario():
            await layer.put_url(sample_url())
            return await layer.get_url(1)

        assert asyncio.run(scenario()) is None

    def test_invalidating_campaign_drops_path(self, clock):
        layer = CacheLayer(InMemoryCache(clock=clock), ttl=60)
        campaign = CampaignRecord(id=3, name="C", redirect_method=RedirectMethod.DIRECT, custom_path="sale")

        async def scenario():
            await layer.put_campaign(campaign)
            cached = await layer.get_campaign_id_for_path("sale")
            await layer.invalidate_campaign(3)
            return cached, await layer.get_campaign_id_for_path("sale"), await layer.get_campaign(3)

        assert asyncio.run(scenario()) == (3, None, None)

    def test_moved_path_forgets_old_one(self, clock):
        layer = CacheLayer(InMemoryCache(clock=clock), ttl=60)

        async def scenario():
            await layer.put_path("old", 3)
            await layer.put_path("new", 3)
            return await layer.get_campaign_id_for_path("old"), await layer.get_campaign_id_for_path("new")

        assert asyncio.run(scenario()) == (None, 3)


class TestPendingClicks:
    """Accumulator bookkeeping around a flush"""

    def test_clicks_during_flush_wait_for_next_one(self):
        layer = CacheLayer(NullCache())
        layer.add_pending(1, 3)

        batch = layer.begin_flush(1)
        layer.add_pending(1)

        assert batch == 3
        assert layer.pending(1) == 1
        assert layer.uncommitted(1) == 4

        layer.commit_flush(1, batch)
        assert layer.uncommitted(1) == 1
        assert layer.pending_ids() == [1]

    def test_aborted_flush_returns_clicks(self):
        layer = CacheLayer(NullCache())
        layer.add_pending(1, 5)

        batch = layer.begin_flush(1)
        layer.abort_flush(1, batch)

        assert layer.pending(1) == 5
        assert layer.uncommitted(1) == 5

    def test_empty_flush(self):
        layer = CacheLayer(NullCache())
        assert layer.begin_flush(9) == 0
        assert layer.pending_ids() == []

    def test_discard(self):
        layer = CacheLayer(NullCache())
        layer.add_pending(2, 4)
        layer.begin_flush(2)
        layer.add_pending(2, 1)

        assert layer.discard(2) == 5
        assert layer.uncommitted(2) == 0
