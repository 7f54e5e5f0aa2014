from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from cloaker_app.dependencies import get_original_record_service
from cloaker_app.enums import UrlStatus
from cloaker_app.schemas.original_url import (
    OriginalURLCreate,
    OriginalURLPage,
    OriginalURLRecord,
    OriginalURLUpdate,
    SyncResult,
)
from cloaker_app.services.original_record_service import OriginalRecordService
from .params import parse_status_filter

router = APIRouter(prefix="/api/original-url-records", tags=["original-url-records"])


@router.get("", response_model=OriginalURLPage)
async def list_original_records(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    search: Optional[str] = None,
    status_filter: str = Query("active", alias="status"),
    campaign_id: Optional[int] = Query(None, alias="campaignId"),
    service: OriginalRecordService = Depends(get_original_record_service)
):
    """Master records, active ones unless status says otherwise (status=all for every one)."""
    return await service.list_records(
        page=page,
        limit=limit,
        search=search,
        status=parse_status_filter(status_filter),
        campaign_id=campaign_id,
    )


@router.post("", response_model=OriginalURLRecord, status_code=status.HTTP_201_CREATED)
async def create_original_record(
    payload: OriginalURLCreate,
    service: OriginalRecordService = Depends(get_original_record_service)
):
    return await service.create_record(payload)


@router.get("/{record_id}", response_model=OriginalURLRecord)
async def get_original_record(
    record_id: int,
    service: OriginalRecordService = Depends(get_original_record_service)
):
    return await service.get_record(record_id)


@router.put("/{record_id}", response_model=OriginalURLRecord)
async def update_original_record(
    record_id: int,
    payload: OriginalURLUpdate,
    service: OriginalRecordService = Depends(get_original_record_service)
):
    """
    Edit a master record and push it to every URL with its name.

    Sending originalClickLimit (even unchanged) pauses the record and those URLs.
    """
    return await service.update_record(record_id, payload)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_original_record(
    record_id: int,
    service: OriginalRecordService = Depends(get_original_record_service)
):
    await service.delete_record(record_id)


@router.post("/{record_id}/sync", response_model=SyncResult)
async def sync_original_record(
    record_id: int,
    service: OriginalRecordService = Depends(get_original_record_service)
):
    """Re-push quota and status to the matching URLs."""
    return await service.sync_record(record_id)


@router.post("/{record_id}/pause", response_model=OriginalURLRecord)
async def pause_original_record(
    record_id: int,
    service: OriginalRecordService = Depends(get_original_record_service)
):
    return await service.set_status(record_id, UrlStatus.PAUSED)


@router.post("/{record_id}/resume", response_model=OriginalURLRecord)
async def resume_original_record(
    record_id: int,
    service: OriginalRecordService = Depends(get_original_record_service)
):
    return await service.set_status(record_id, UrlStatus.ACTIVE)
