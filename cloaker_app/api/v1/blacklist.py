from typing import List

from fastapi import APIRouter, Depends, status

from cloaker_app.dependencies import get_blacklist_guard
from cloaker_app.schemas.blacklist import BlacklistCreate, BlacklistRecord, BlacklistUpdate
from cloaker_app.services.blacklist import BlacklistGuard

router = APIRouter(prefix="/api/blacklisted-urls", tags=["blacklist"])


@router.get("", response_model=List[BlacklistRecord])
async def list_blacklisted_urls(guard: BlacklistGuard = Depends(get_blacklist_guard)):
    return await guard.list_entries()


@router.post("", response_model=BlacklistRecord, status_code=status.HTTP_201_CREATED)
async def create_blacklisted_url(
    payload: BlacklistCreate,
    guard: BlacklistGuard = Depends(get_blacklist_guard)
):
    return await guard.create_entry(payload)


@router.get("/{entry_id}", response_model=BlacklistRecord)
async def get_blacklisted_url(entry_id: int, guard: BlacklistGuard = Depends(get_blacklist_guard)):
    return await guard.get_entry(entry_id)


@router.put("/{entry_id}", response_model=BlacklistRecord)
async def update_blacklisted_url(
    entry_id: int,
    payload: BlacklistUpdate,
    guard: BlacklistGuard = Depends(get_blacklist_guard)
):
    return await guard.update_entry(entry_id, payload)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blacklisted_url(entry_id: int, guard: BlacklistGuard = Depends(get_blacklist_guard)):
    await guard.delete_entry(entry_id)
