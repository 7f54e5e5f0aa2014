import asyncio
from decimal import Decimal

import pytest

from cloaker_app.enums import UrlStatus
from cloaker_app.schemas.blacklist import BlacklistCreate
from cloaker_app.schemas.campaign import CampaignCreate
from cloaker_app.schemas.url import URLCreate
from cloaker_app.services.blacklist import blacklisted_name
from cloaker_app.services.creation_pipeline import FinalBlacklistStep, URLDraft
from cloaker_app.services.exceptions import NotFoundError


def payload(name="X", target="https://offer.example.com/", click_limit=100, status=None):
    return URLCreate(name=name, target_url=target, click_limit=click_limit, status=status)


class TestDuplicateNames:

    def test_second_and_third_copies_are_rejected(self, container):
        async def scenario():
            campaign = await container.campaigns.create_campaign(CampaignCreate(name="Dupes"))
            created = [await container.urls.create_url(campaign.id, payload()) for _ in range(3)]
            first = await container.store.get_url(created[0].id)
            return first, created

        first, created = asyncio.run(scenario())
        assert first.status == UrlStatus.ACTIVE
        assert first.name == "X"
        assert [u.status for u in created[1:]] == [UrlStatus.REJECTED, UrlStatus.REJECTED]
        assert created[1].name == "X"
        assert created[2].name == "X #2"

    def test_suffix_continues_after_highest_used(self, container):
        async def scenario():
            campaign = await container.campaigns.create_campaign(CampaignCreate(name="Suffix"))
            return [(await container.urls.create_url(campaign.id, payload())).name for _ in range(5)]

        assert asyncio.run(scenario()) == ["X", "X", "X #2", "X #3", "X #4"]

    def test_name_held_only_by_rejected_urls_is_free(self, container):
        async def scenario():
            campaign = await container.campaigns.create_campaign(CampaignCreate(name="Free"))
            first = await container.urls.create_url(campaign.id, payload(status=UrlStatus.REJECTED))
            second = await container.urls.create_url(campaign.id, payload())
            return first, second

        first, second = asyncio.run(scenario())
        assert first.status == UrlStatus.REJECTED
        assert second.status == UrlStatus.ACTIVE
        assert second.name == "X"


class TestBlacklistOnCreate:

    def test_blacklisted_target_is_rejected_even_if_active_requested(self, container):
        async def scenario():
            await container.guard.create_entry(BlacklistCreate(name="Spam", target_url="https://bad.example.com/"))
            campaign = await container.campaigns.create_campaign(CampaignCreate(name="Guarded"))
            return await container.urls.create_url(
                campaign.id, payload(name="deal", target="https://bad.example.com/", status=UrlStatus.ACTIVE)
            )

        url = asyncio.run(scenario())
        assert url.status == UrlStatus.REJECTED
        assert url.name == "Blacklisted{Spam}(deal)"

    def test_match_ignores_surrounding_whitespace(self, container):
        async def scenario():
            await container.guard.create_entry(BlacklistCreate(name="Spam", target_url="  https://bad.example.com/ "))
            return await container.urls.create_url(None, payload(target=" https://bad.example.com/"))

        assert asyncio.run(scenario()).status == UrlStatus.REJECTED

    def test_similar_target_is_not_blacklisted(self, container):
        async def scenario():
            await container.guard.create_entry(BlacklistCreate(name="Spam", target_url="https://bad.example.com/"))
            return await container.urls.create_url(None, payload(target="https://bad.example.com/other"))

        assert asyncio.run(scenario()).status == UrlStatus.ACTIVE

    def test_marker_is_applied_once(self):
        marked = blacklisted_name("deal", "Spam")
        assert blacklisted_name(marked, "FinalCheck") == marked

    def test_final_check_marks_unmarked_draft(self, container):
        async def scenario():
            await container.guard.create_entry(BlacklistCreate(name="Spam", target_url="https://bad.example.com/"))
            draft = URLDraft(name="late", target_url="https://bad.example.com/", original_click_limit=5, click_limit=5)
            await FinalBlacklistStep(container.guard).apply(draft)
            return draft

        draft = asyncio.run(scenario())
        assert draft.status == UrlStatus.REJECTED
        assert draft.name == "Blacklisted{FinalCheck}(late)"


class TestMasterRecordOnCreate:

    def test_first_url_creates_master_record(self, container):
        async def scenario():
            campaign = await container.campaigns.create_campaign(CampaignCreate(name="Master", multiplier=Decimal("1.5")))
            url = await container.urls.create_url(campaign.id, payload(name="promo", click_limit=5))
            return url, await container.store.get_original_by_name("promo")

        url, record = asyncio.run(scenario())
        assert record.original_click_limit == 5
        assert record.status == UrlStatus.ACTIVE
        assert url.original_click_limit == 5
        assert url.click_limit == 8

    def test_existing_master_quota_wins(self, container):
        async def scenario():
            await container.store.create_original({
                "name": "promo",
                "target_url": "https://promo.example.com/",
                "original_click_limit": 70,
                "status": UrlStatus.ACTIVE,
            })
            campaign = await container.campaigns.create_campaign(CampaignCreate(name="Wins", multiplier=Decimal("2")))
            return await container.urls.create_url(campaign.id, payload(name="promo", click_limit=5))

        url = asyncio.run(scenario())
        assert url.original_click_limit == 70
        assert url.click_limit == 140

    def test_standalone_url_uses_multiplier_one(self, container):
        url = asyncio.run(container.urls.create_url(None, payload(name="solo", click_limit=12)))
        assert url.campaign_id is None
        assert url.click_limit == 12

    def test_unknown_campaign(self, container):
        with pytest.raises(NotFoundError):
            asyncio.run(container.urls.create_url(77, payload()))
