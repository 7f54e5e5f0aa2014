from typing import List

from fastapi import APIRouter, Depends, status

from cloaker_app.dependencies import get_campaign_service, get_url_service
from cloaker_app.schemas.campaign import (
    CampaignCreate,
    CampaignRecord,
    CampaignUpdate,
    CampaignWithUrls,
    ClickSummary,
)
from cloaker_app.schemas.url import URLCreate, URLRecord
from cloaker_app.services.campaign_service import CampaignService
from cloaker_app.services.url_service import URLService

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


@router.get("", response_model=List[CampaignWithUrls])
async def list_campaigns(campaign_service: CampaignService = Depends(get_campaign_service)):
    return await campaign_service.list_campaigns()


@router.post("", response_model=CampaignRecord, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    payload: CampaignCreate,
    campaign_service: CampaignService = Depends(get_campaign_service)
):
    return await campaign_service.create_campaign(payload)


@router.get("/path/{custom_path}", response_model=CampaignWithUrls)
async def get_campaign_by_path(
    custom_path: str,
    campaign_service: CampaignService = Depends(get_campaign_service)
):
    return await campaign_service.get_campaign_by_path(custom_path)


@router.get("/{campaign_id}", response_model=CampaignWithUrls)
async def get_campaign(
    campaign_id: int,
    campaign_service: CampaignService = Depends(get_campaign_service)
):
    return await campaign_service.get_campaign(campaign_id)


@router.put("/{campaign_id}", response_model=CampaignRecord)
async def update_campaign(
    campaign_id: int,
    payload: CampaignUpdate,
    campaign_service: CampaignService = Depends(get_campaign_service)
):
    """Changing the multiplier rescales click limits of active and paused URLs."""
    return await campaign_service.update_campaign(campaign_id, payload)


@router.delete("/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_campaign(
    campaign_id: int,
    campaign_service: CampaignService = Depends(get_campaign_service)
):
    """Soft-deletes the campaign's URLs, then removes the campaign."""
    await campaign_service.delete_campaign(campaign_id)


@router.get("/{campaign_id}/urls", response_model=List[URLRecord])
async def list_campaign_urls(
    campaign_id: int,
    campaign_service: CampaignService = Depends(get_campaign_service)
):
    campaign = await campaign_service.get_campaign(campaign_id)
    return campaign.urls


@router.post("/{campaign_id}/urls", response_model=URLRecord, status_code=status.HTTP_201_CREATED)
async def create_campaign_url(
    campaign_id: int,
    payload: URLCreate,
    url_service: URLService = Depends(get_url_service)
):
    """
    Add a URL to a campaign.

    Always 201: a blacklisted target or a taken name yields a rejected URL,
    not an error.
    """
    return await url_service.create_url(campaign_id, payload)


@router.get("/{campaign_id}/clicks", response_model=ClickSummary)
async def get_campaign_clicks(
    campaign_id: int,
    campaign_service: CampaignService = Depends(get_campaign_service)
):
    return await campaign_service.click_summary(campaign_id)
