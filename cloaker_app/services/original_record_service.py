import logging
from typing import Any, Dict, Optional

from cloaker_app.enums import UrlStatus
from cloaker_app.schemas.original_url import (
    OriginalURLCreate,
    OriginalURLPage,
    OriginalURLRecord,
    OriginalURLUpdate,
    SyncResult,
)
from cloaker_app.schemas.url import Pagination
from cloaker_app.storage.strategies import StoreStrategy
from .exceptions import NotFoundError, ValidationError
from .status_sync import StatusSynchronizer

logger = logging.getLogger(__name__)


class OriginalRecordService:
    """Master record management. Edits fan out through the StatusSynchronizer."""

    def __init__(self, store: StoreStrategy, synchronizer: StatusSynchronizer):
        self.store = store
        self.synchronizer = synchronizer

    async def list_records(
        self,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
        status: Optional[UrlStatus] = UrlStatus.ACTIVE,
        campaign_id: Optional[int] = None,
    ) -> OriginalURLPage:
        """
        A page of master records, newest first.

        Args:
            status: filter, None for every status
            campaign_id: only records whose name is used by a URL of that campaign
        """
        names = None
        if campaign_id is not None:
            names = {url.name for url in await self.store.list_campaign_urls(campaign_id)}

        records, total = await self.store.list_originals(
            page=page, limit=limit, search=search, status=status, names=names
        )
        return OriginalURLPage(
            records=records,
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=(total + limit - 1) // limit),
        )

    async def get_record(self, record_id: int) -> OriginalURLRecord:
        record = await self.store.get_original(record_id)
        if record is None:
            raise NotFoundError(f"Original URL record {record_id} not found")
        return record

    async def create_record(self, payload: OriginalURLCreate) -> OriginalURLRecord:
        if await self.store.get_original_by_name(payload.name) is not None:
            raise ValidationError(f"An original record named {payload.name!r} already exists")
        record = await self.store.create_original(payload.model_dump())
        logger.info("Created original record %s (%s)", record.id, record.name)
        return record

    async def update_record(self, record_id: int, payload: OriginalURLUpdate) -> OriginalURLRecord:
        changes: Dict[str, Any] = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        if "name" in changes:
            holder = await self.store.get_original_by_name(changes["name"])
            if holder is not None and holder.id != record_id:
                raise ValidationError(f"An original record named {changes['name']!r} already exists")
        return await self.synchronizer.update_original_record(record_id, changes)

    async def delete_record(self, record_id: int) -> None:
        if not await self.store.delete_original(record_id):
            raise NotFoundError(f"Original URL record {record_id} not found")

    async def sync_record(self, record_id: int) -> SyncResult:
        updated = await self.synchronizer.sync_original_to_urls(record_id)
        return SyncResult(success=True, updated_count=updated)

    async def set_status(self, record_id: int, status: UrlStatus) -> OriginalURLRecord:
        """Pause or resume a master record together with every URL carrying its name."""
        return await self.synchronizer.update_original_record(record_id, {"status": status})
