import asyncio
from decimal import Decimal

import pytest

from cloaker_app.enums import RedirectMethod, UrlStatus
from cloaker_app.schemas.campaign import CampaignCreate
from cloaker_app.schemas.url import URLCreate
from cloaker_app.services.exceptions import NotFoundError


async def seed_url(store, clicks=0, click_limit=1000, name="promo"):
    campaign = await store.create_campaign({
        "name": "Clicks",
        "redirect_method": RedirectMethod.DIRECT,
        "multiplier": Decimal("1"),
    })
    url = await store.create_url({
        "campaign_id": campaign.id,
        "name": name,
        "target_url": "https://landing.example.com/",
        "clicks": clicks,
        "click_limit": click_limit,
        "original_click_limit": click_limit,
        "status": UrlStatus.ACTIVE,
    })
    return campaign, url


class TestIncrementClicks:
    """Counting clicks into the pending accumulator"""

    def test_increment_returns_live_count(self, container):
        async def scenario():
            campaign, url = await seed_url(container.store, clicks=4)
            first = await container.clicks.increment_clicks(url.id)
            second = await container.clicks.increment_clicks(url.id)
            stored = await container.store.get_url(url.id)
            return first, second, stored

        first, second, stored = asyncio.run(scenario())
        assert first.clicks == 5
        assert second.clicks == 6
        # Nothing written yet
        assert stored.clicks == 4

    def test_unknown_url(self, container):
        with pytest.raises(NotFoundError):
            asyncio.run(container.clicks.increment_clicks(999))

    def test_concurrent_increments_are_all_persisted(self, container):
        async def scenario():
            campaign, url = await seed_url(container.store)
            await asyncio.gather(*(container.clicks.increment_clicks(url.id) for _ in range(25)))
            await container.background.drain()
            await container.clicks.flush_pending_click_updates()
            await container.background.drain()
            return await container.store.get_url(url.id)

        assert asyncio.run(scenario()).clicks == 25

    def test_batch_threshold_triggers_flush(self, container):
        async def scenario():
            campaign, url = await seed_url(container.store)
            for _ in range(container.clicks.batch_threshold):
                await container.clicks.increment_clicks(url.id)
            await container.background.drain()
            return url, await container.store.get_url(url.id)

        url, stored = asyncio.run(scenario())
        assert stored.clicks == container.clicks.batch_threshold
        assert container.cache.uncommitted(url.id) == 0


class TestCompletion:
    """Reaching the click limit"""

    def test_last_click_completes_and_detaches(self, container):
        async def scenario():
            campaign, url = await seed_url(container.store, clicks=9, click_limit=10)
            snapshot = await container.clicks.increment_clicks(url.id)
            visible = await container.catalog.get_campaign_urls(campaign.id)
            await container.background.drain()

            await container.clicks.flush_pending_click_updates()
            await container.background.drain()
            stored = await container.store.get_url(url.id)
            remaining = await container.store.list_campaign_urls(campaign.id)
            return snapshot, visible, stored, remaining

        snapshot, visible, stored, remaining = asyncio.run(scenario())
        assert snapshot.status == UrlStatus.COMPLETED
        assert snapshot.clicks == 10
        assert not any(u.is_active for u in visible)
        assert stored.status == UrlStatus.COMPLETED
        assert stored.clicks == 10
        assert stored.campaign_id is None
        assert remaining == []

    def test_completion_reaches_original_record(self, container):
        async def flow():
            campaign = await container.campaigns.create_campaign(CampaignCreate(name="Quota"))
            url = await container.urls.create_url(
                campaign.id, URLCreate(name="offer", target_url="https://offer.example.com/", click_limit=2)
            )
            await container.clicks.increment_clicks(url.id)
            await container.clicks.increment_clicks(url.id)
            await container.background.drain()
            return await container.store.get_original_by_name("offer")

        assert asyncio.run(flow()).status == UrlStatus.COMPLETED


class TestFlush:
    """Writing pending clicks to the store"""

    def test_failed_write_keeps_clicks_pending(self, container, monkeypatch):
        async def failing_add_clicks(url_id, count):
            raise RuntimeError("database unavailable")

        async def scenario():
            campaign, url = await seed_url(container.store)
            for _ in range(3):
                await container.clicks.increment_clicks(url.id)

            monkeypatch.setattr(container.store, "add_clicks", failing_add_clicks)
            flushed = await container.clicks.flush_pending_click_updates()
            pending_after_failure = container.cache.pending(url.id)

            monkeypatch.undo()
            await container.clicks.flush_pending_click_updates()
            await container.background.drain()
            return url, flushed, pending_after_failure, await container.store.get_url(url.id)

        url, flushed, pending_after_failure, stored = asyncio.run(scenario())
        assert flushed == 0
        assert pending_after_failure == 3
        assert stored.clicks == 3
        assert container.cache.uncommitted(url.id) == 0

    def test_flush_of_deleted_url_drops_clicks(self, container):
        async def scenario():
            campaign, url = await seed_url(container.store)
            await container.clicks.increment_clicks(url.id)
            await container.store.delete_url(url.id)
            written = await container.clicks.flush_url(url.id)
            await container.background.drain()
            return url, written

        url, written = asyncio.run(scenario())
        assert written is False
        assert container.cache.uncommitted(url.id) == 0

    def test_flush_without_pending_clicks(self, container):
        assert asyncio.run(container.clicks.flush_pending_click_updates()) == 0
