from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from cloaker_app.dependencies import get_url_service
from cloaker_app.schemas.url import BulkResult, BulkURLAction, URLPage, URLRecord, URLUpdate
from cloaker_app.services.url_service import URLService
from .params import parse_status_filter

router = APIRouter(prefix="/api/urls", tags=["urls"])


@router.get("", response_model=URLPage)
async def list_urls(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    url_service: URLService = Depends(get_url_service)
):
    """Paginated URLs across campaigns. status=all (or none) disables the filter."""
    return await url_service.list_urls(
        page=page, limit=limit, search=search, status=parse_status_filter(status_filter)
    )


@router.post("/bulk", response_model=BulkResult)
async def bulk_update_urls(
    payload: BulkURLAction,
    url_service: URLService = Depends(get_url_service)
):
    return await url_service.bulk_update(payload)


@router.get("/{url_id}", response_model=URLRecord)
async def get_url(
    url_id: int,
    url_service: URLService = Depends(get_url_service)
):
    return await url_service.get_url(url_id)


@router.put("/{url_id}", response_model=URLRecord)
async def update_url(
    url_id: int,
    payload: URLUpdate,
    url_service: URLService = Depends(get_url_service)
):
    """Edit a URL. clickLimit is rejected with 403, quotas change via originalClickLimit."""
    return await url_service.update_url(url_id, payload)


@router.delete("/{url_id}", response_model=URLRecord)
async def delete_url(
    url_id: int,
    url_service: URLService = Depends(get_url_service)
):
    """Soft delete (status -> deleted)."""
    return await url_service.delete_url(url_id)


@router.delete("/{url_id}/permanent", status_code=status.HTTP_204_NO_CONTENT)
async def permanently_delete_url(
    url_id: int,
    url_service: URLService = Depends(get_url_service)
):
    await url_service.permanently_delete_url(url_id)
