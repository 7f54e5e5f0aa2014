import logging
from typing import Any, Dict, List, Optional, Set

from cloaker_app.cache.layer import CacheLayer
from cloaker_app.enums import BulkAction, UrlStatus
from cloaker_app.schemas.url import BulkResult, BulkURLAction, Pagination, URLCreate, URLPage, URLRecord, URLUpdate
from cloaker_app.storage.strategies import StoreStrategy
from .blacklist import BlacklistGuard
from .catalog import CatalogService
from .creation_pipeline import CreationPipeline, URLDraft
from .exceptions import NotFoundError, RestrictedOperationError, ValidationError
from .quota import scaled_click_limit
from .status_sync import StatusSynchronizer

logger = logging.getLogger(__name__)

BULK_STATUS = {
    BulkAction.ACTIVATE: UrlStatus.ACTIVE,
    BulkAction.PAUSE: UrlStatus.PAUSED,
    BulkAction.DELETE: UrlStatus.DELETED,
}


class URLService:
    """
    URL lifecycle: creation through the pipeline, edits, soft and
    permanent deletion, bulk actions and listings.

    Every status change is copied to the URL's master record; quota
    changes go the other way, through the master record.
    """

    def __init__(
        self,
        store: StoreStrategy,
        cache: CacheLayer,
        catalog: CatalogService,
        synchronizer: StatusSynchronizer,
        guard: BlacklistGuard,
        pipeline: CreationPipeline,
    ):
        self.store = store
        self.cache = cache
        self.catalog = catalog
        self.synchronizer = synchronizer
        self.guard = guard
        self.pipeline = pipeline

    async def create_url(self, campaign_id: Optional[int], payload: URLCreate) -> URLRecord:
        """
        Create a URL, in a campaign or standalone.

        If a master record with this name exists its quota wins over the
        requested one. Blacklisted targets and taken names still produce
        a URL, just a rejected one.
        """
        multiplier = 1
        if campaign_id is not None:
            campaign = await self.catalog.get_campaign(campaign_id, force_refresh=True)
            if campaign is None:
                raise NotFoundError(f"Campaign {campaign_id} not found")
            multiplier = campaign.multiplier

        master = await self.store.get_original_by_name(payload.name)
        original_click_limit = master.original_click_limit if master else payload.click_limit

        draft = URLDraft(
            name=payload.name,
            target_url=payload.target_url,
            original_click_limit=original_click_limit,
            click_limit=scaled_click_limit(original_click_limit, multiplier),
            status=payload.status or UrlStatus.ACTIVE,
            campaign_id=campaign_id,
        )
        draft = await self.pipeline.run(draft)

        url = await self.store.create_url(draft.as_row())
        if campaign_id is not None:
            await self.cache.invalidate_campaign(campaign_id)
        logger.info("Created URL %s (%s) with status %s", url.id, url.name, url.status.value)
        return url

    async def get_url(self, url_id: int) -> URLRecord:
        url = await self.catalog.get_live_url(url_id)
        if url is None:
            raise NotFoundError(f"URL {url_id} not found")
        return url

    async def list_urls(
        self,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
        status: Optional[UrlStatus] = None,
    ) -> URLPage:
        urls, total = await self.store.list_urls(page=page, limit=limit, search=search, status=status)
        return URLPage(
            urls=[self.catalog.with_pending(url) for url in urls],
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=(total + limit - 1) // limit),
        )

    async def update_url(self, url_id: int, payload: URLUpdate) -> URLRecord:
        sent = payload.model_dump(exclude_unset=True)
        if sent.get("click_limit") is not None:
            raise RestrictedOperationError(
                "Click limits can't be edited directly, update originalClickLimit instead"
            )
        # null only means something for campaign_id (detach)
        changes: Dict[str, Any] = {
            k: v for k, v in sent.items()
            if k != "click_limit" and (v is not None or k == "campaign_id")
        }

        current = await self.store.get_url(url_id)
        if current is None:
            raise NotFoundError(f"URL {url_id} not found")

        await self._guard_activation(current, changes)
        await self._guard_name(current, changes)

        quota = changes.pop("original_click_limit", None)
        if quota is not None:
            await self._set_master_quota(current, quota)
        if changes:
            await self.store.update_url(url_id, changes)

        url = self.catalog.with_pending(await self.store.get_url(url_id))
        if url.status == UrlStatus.ACTIVE and url.clicks >= url.click_limit:
            completed = await self.synchronizer.complete_url(url_id)
            url = self.catalog.with_pending(completed)
        elif "status" in changes and url.status != current.status:
            await self.synchronizer.propagate_url_status(url.name, url.status)

        await self._invalidate(url_id, {current.campaign_id, url.campaign_id})
        return url

    async def _guard_activation(self, current: URLRecord, changes: Dict[str, Any]) -> None:
        """Turn an activation of a blacklisted target into a rejection."""
        status = changes.get("status", current.status)
        if status != UrlStatus.ACTIVE:
            return
        if "status" not in changes and "target_url" not in changes:
            return
        target = changes.get("target_url", current.target_url)
        entry = await self.guard.match(target)
        if entry is not None:
            logger.info("URL %s can't be activated, target blacklisted by %r", current.id, entry.name)
            changes["status"] = UrlStatus.REJECTED

    async def _guard_name(self, current: URLRecord, changes: Dict[str, Any]) -> None:
        """A live URL can't take a name another live URL already holds."""
        name = changes.get("name", current.name)
        status = changes.get("status", current.status)
        if status == UrlStatus.REJECTED:
            return
        if name == current.name and current.status != UrlStatus.REJECTED:
            return
        for other in await self.store.find_urls_by_name(name):
            if other.id != current.id and other.status != UrlStatus.REJECTED:
                raise ValidationError(f"Name {name!r} is already used by URL {other.id}")

    async def _set_master_quota(self, current: URLRecord, original_click_limit: int) -> None:
        """
        Route a quota edit through the master record (created if missing),
        which pauses it and re-syncs every URL with this name.
        """
        master = await self.store.get_original_by_name(current.name)
        if master is None:
            master = await self.store.create_original({
                "name": current.name,
                "target_url": current.target_url,
                "original_click_limit": original_click_limit,
                "status": current.status,
            })
        await self.synchronizer.update_original_record(master.id, {"original_click_limit": original_click_limit})

    async def delete_url(self, url_id: int) -> URLRecord:
        """Soft delete: the row stays with status deleted."""
        current = await self.store.get_url(url_id)
        if current is None:
            raise NotFoundError(f"URL {url_id} not found")

        url = await self.store.update_url(url_id, {"status": UrlStatus.DELETED})
        await self.synchronizer.propagate_url_status(url.name, UrlStatus.DELETED)
        await self._invalidate(url_id, {current.campaign_id})
        return url

    async def permanently_delete_url(self, url_id: int) -> None:
        """Remove the row. Unflushed clicks are dropped, recorded analytics stay."""
        current = await self.store.get_url(url_id)
        if current is None:
            raise NotFoundError(f"URL {url_id} not found")

        self.cache.discard(url_id)
        await self.store.delete_url(url_id)
        await self._invalidate(url_id, {current.campaign_id})
        logger.info("Permanently deleted URL %s (%s)", url_id, current.name)

    async def bulk_update(self, payload: BulkURLAction) -> BulkResult:
        """
        Apply one action to many URLs. Unknown ids are ignored.

        activate skips blacklisted targets; if that leaves nothing to do
        the call is a no-op and reports success=False.
        """
        action = payload.action
        urls: List[URLRecord] = await self.store.get_urls(payload.target_ids)

        if action == BulkAction.ACTIVATE:
            urls = await self.guard.filter_activation(urls)
            if not urls:
                return BulkResult(success=False, action=action, affected=0)

        campaigns: Set[Optional[int]] = set()
        synced_names: Set[str] = set()
        for url in urls:
            if action == BulkAction.PERMANENT_DELETE:
                self.cache.discard(url.id)
                await self.store.delete_url(url.id)
            else:
                status = BULK_STATUS[action]
                await self.store.update_url(url.id, {"status": status})
                if url.name not in synced_names:
                    synced_names.add(url.name)
                    await self.synchronizer.propagate_url_status(url.name, status)
            await self.cache.invalidate_url(url.id)
            campaigns.add(url.campaign_id)

        for campaign_id in campaigns - {None}:
            await self.cache.invalidate_campaign(campaign_id)

        logger.info("Bulk %s applied to %d URL(s)", action.value, len(urls))
        return BulkResult(success=True, action=action, affected=len(urls))

    async def _invalidate(self, url_id: int, campaign_ids: Set[Optional[int]]) -> None:
        await self.cache.invalidate_url(url_id)
        for campaign_id in campaign_ids - {None}:
            await self.cache.invalidate_campaign(campaign_id)
