"""
Persistent store strategies using Strategy Pattern.

- SQLAlchemyStore: relational store (SQLite, PostgreSQL, ...)
- InMemoryStore: dict-backed store for tests and local runs

Every method returns pydantic snapshots, never ORM rows, so callers can
cache and pass them around after the session is closed.

URL writes have two paths. The normal one (update_url) refuses to touch
original_click_limit: quotas are owned by the Original URL Record and only
the status synchronizer may push them down, by passing privileged=True.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, case, func, null, or_, update

from cloaker_app.enums import UrlStatus
from cloaker_app.models import BlacklistedURL, Campaign, ClickRecord, OriginalURL, URL
from cloaker_app.queue.models import ClickEvent
from cloaker_app.schemas.blacklist import BlacklistRecord
from cloaker_app.schemas.campaign import CampaignRecord
from cloaker_app.schemas.original_url import OriginalURLRecord
from cloaker_app.schemas.url import URLRecord

logger = logging.getLogger(__name__)

ClickResult = Tuple[URLRecord, URLRecord]


def _plain(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Enum members to their stored values."""
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in changes.items()}


def _status_values(statuses: Optional[Iterable[UrlStatus]]) -> Optional[List[str]]:
    if statuses is None:
        return None
    return [UrlStatus(s).value for s in statuses]


def _strip_protected(url_id: int, changes: Dict[str, Any], current: int) -> Dict[str, Any]:
    """Drop an original_click_limit change coming through the normal write path."""
    if "original_click_limit" not in changes:
        return changes
    changes = dict(changes)
    requested = changes.pop("original_click_limit")
    if requested != current:
        logger.warning(
            "Blocked change of original click limit for URL %s (%s -> %s) outside of sync",
            url_id, current, requested,
        )
    return changes


class StoreStrategy(ABC):
    """
    Abstract base class for the persistent store.

    All methods are async; the SQL implementation runs sync sessions
    inside them, like the rest of the service layer.
    """

    # Campaigns
    @abstractmethod
    async def get_campaign(self, campaign_id: int) -> Optional[CampaignRecord]:
        pass

    @abstractmethod
    async def get_campaign_by_path(self, path: str) -> Optional[CampaignRecord]:
        pass

    @abstractmethod
    async def list_campaigns(self) -> List[CampaignRecord]:
        pass

    @abstractmethod
    async def create_campaign(self, data: Dict[str, Any]) -> CampaignRecord:
        pass

    @abstractmethod
    async def update_campaign(self, campaign_id: int, changes: Dict[str, Any]) -> Optional[CampaignRecord]:
        pass

    @abstractmethod
    async def delete_campaign(self, campaign_id: int) -> bool:
        """Remove the campaign row and clear campaign_id on its URLs."""
        pass

    # URLs
    @abstractmethod
    async def get_url(self, url_id: int) -> Optional[URLRecord]:
        pass

    @abstractmethod
    async def get_urls(self, url_ids: Iterable[int]) -> List[URLRecord]:
        pass

    @abstractmethod
    async def list_campaign_urls(
        self,
        campaign_id: int,
        statuses: Optional[Iterable[UrlStatus]] = None,
        exclude_statuses: Optional[Iterable[UrlStatus]] = None,
    ) -> List[URLRecord]:
        """URLs of a campaign, newest first."""
        pass

    @abstractmethod
    async def list_urls(
        self,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
        status: Optional[UrlStatus] = None,
    ) -> Tuple[List[URLRecord], int]:
        """A page of URLs (newest first) and the total match count."""
        pass

    @abstractmethod
    async def find_urls_by_name(self, name: str) -> List[URLRecord]:
        """Exact, case-sensitive name match."""
        pass

    @abstractmethod
    async def find_url_names_with_prefix(self, prefix: str) -> List[str]:
        pass

    @abstractmethod
    async def create_url(self, data: Dict[str, Any]) -> URLRecord:
        pass

    @abstractmethod
    async def update_url(
        self,
        url_id: int,
        changes: Dict[str, Any],
        privileged: bool = False,
    ) -> Optional[URLRecord]:
        """
        Apply changes to a URL.

        Without privileged=True an original_click_limit change is dropped
        (and logged); everything else is applied.
        """
        pass

    @abstractmethod
    async def delete_url(self, url_id: int) -> bool:
        """Permanently remove the row. Click analytics are kept."""
        pass

    @abstractmethod
    async def add_clicks(self, url_id: int, count: int) -> Optional[ClickResult]:
        """
        Atomically add count to the URL's clicks.

        In the same write, a URL reaching its limit becomes completed and
        is detached from its campaign (deleted URLs keep their status).

        Returns:
            (before, after) snapshots, or None if the URL doesn't exist
        """
        pass

    # Original URL Records
    @abstractmethod
    async def get_original(self, record_id: int) -> Optional[OriginalURLRecord]:
        pass

    @abstractmethod
    async def get_original_by_name(self, name: str) -> Optional[OriginalURLRecord]:
        pass

    @abstractmethod
    async def list_originals(
        self,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
        status: Optional[UrlStatus] = None,
        names: Optional[Iterable[str]] = None,
    ) -> Tuple[List[OriginalURLRecord], int]:
        pass

    @abstractmethod
    async def create_original(self, data: Dict[str, Any]) -> OriginalURLRecord:
        pass

    @abstractmethod
    async def update_original(self, record_id: int, changes: Dict[str, Any]) -> Optional[OriginalURLRecord]:
        pass

    @abstractmethod
    async def delete_original(self, record_id: int) -> bool:
        pass

    # Blacklist
    @abstractmethod
    async def list_blacklist(self) -> List[BlacklistRecord]:
        pass

    @abstractmethod
    async def get_blacklist(self, entry_id: int) -> Optional[BlacklistRecord]:
        pass

    @abstractmethod
    async def find_blacklisted(self, target_url: str) -> Optional[BlacklistRecord]:
        """First entry whose trimmed target equals the trimmed argument."""
        pass

    @abstractmethod
    async def create_blacklist(self, data: Dict[str, Any]) -> BlacklistRecord:
        pass

    @abstractmethod
    async def update_blacklist(self, entry_id: int, changes: Dict[str, Any]) -> Optional[BlacklistRecord]:
        pass

    @abstractmethod
    async def delete_blacklist(self, entry_id: int) -> bool:
        pass

    # Click analytics
    @abstractmethod
    async def record_clicks(self, events: List[ClickEvent]) -> int:
        """Store click events in batch; returns how many rows were written."""
        pass

    @abstractmethod
    async def click_counts(self, campaign_id: int) -> Dict[int, int]:
        """Recorded clicks per URL id for a campaign."""
        pass


class SQLAlchemyStore(StoreStrategy):
    """
    Relational store over a SQLAlchemy session factory.

    One short-lived session per call; reads return snapshots so nothing
    depends on the session after it's closed.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    @contextmanager
    def _session(self):
        db = self.session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # Campaigns

    async def get_campaign(self, campaign_id: int) -> Optional[CampaignRecord]:
        with self._session() as db:
            row = db.get(Campaign, campaign_id)
            return CampaignRecord.model_validate(row) if row else None

    async def get_campaign_by_path(self, path: str) -> Optional[CampaignRecord]:
        with self._session() as db:
            row = db.query(Campaign).filter(Campaign.custom_path == path).first()
            return CampaignRecord.model_validate(row) if row else None

    async def list_campaigns(self) -> List[CampaignRecord]:
        with self._session() as db:
            rows = db.query(Campaign).order_by(Campaign.created_at.desc(), Campaign.id.desc()).all()
            return [CampaignRecord.model_validate(r) for r in rows]

    async def create_campaign(self, data: Dict[str, Any]) -> CampaignRecord:
        with self._session() as db:
            row = Campaign(**_plain(data))
            db.add(row)
            db.commit()
            db.refresh(row)
            return CampaignRecord.model_validate(row)

    async def update_campaign(self, campaign_id: int, changes: Dict[str, Any]) -> Optional[CampaignRecord]:
        with self._session() as db:
            row = db.get(Campaign, campaign_id)
            if row is None:
                return None
            for key, value in _plain(changes).items():
                setattr(row, key, value)
            db.commit()
            db.refresh(row)
            return CampaignRecord.model_validate(row)

    async def delete_campaign(self, campaign_id: int) -> bool:
        with self._session() as db:
            row = db.get(Campaign, campaign_id)
            if row is None:
                return False
            # SQLite doesn't enforce ON DELETE SET NULL unless asked to
            db.query(URL).filter(URL.campaign_id == campaign_id).update(
                {URL.campaign_id: None}, synchronize_session=False
            )
            db.delete(row)
            db.commit()
            return True

    # URLs

    async def get_url(self, url_id: int) -> Optional[URLRecord]:
        with self._session() as db:
            row = db.get(URL, url_id)
            return URLRecord.model_validate(row) if row else None

    async def get_urls(self, url_ids: Iterable[int]) -> List[URLRecord]:
        ids = list(url_ids)
        if not ids:
            return []
        with self._session() as db:
            rows = db.query(URL).filter(URL.id.in_(ids)).order_by(URL.id).all()
            return [URLRecord.model_validate(r) for r in rows]

    async def list_campaign_urls(self, campaign_id, statuses=None, exclude_statuses=None) -> List[URLRecord]:
        with self._session() as db:
            query = db.query(URL).filter(URL.campaign_id == campaign_id)
            include = _status_values(statuses)
            exclude = _status_values(exclude_statuses)
            if include is not None:
                query = query.filter(URL.status.in_(include))
            if exclude:
                query = query.filter(URL.status.notin_(exclude))
            rows = query.order_by(URL.created_at.desc(), URL.id.desc()).all()
            return [URLRecord.model_validate(r) for r in rows]

    async def list_urls(self, page=1, limit=50, search=None, status=None) -> Tuple[List[URLRecord], int]:
        with self._session() as db:
            query = db.query(URL)
            if search:
                pattern = f"%{search}%"
                query = query.filter(or_(URL.name.ilike(pattern), URL.target_url.ilike(pattern)))
            if status is not None:
                query = query.filter(URL.status == UrlStatus(status).value)
            total = query.count()
            rows = (
                query.order_by(URL.created_at.desc(), URL.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return [URLRecord.model_validate(r) for r in rows], total

    async def find_urls_by_name(self, name: str) -> List[URLRecord]:
        with self._session() as db:
            rows = db.query(URL).filter(URL.name == name).order_by(URL.id).all()
            return [URLRecord.model_validate(r) for r in rows]

    async def find_url_names_with_prefix(self, prefix: str) -> List[str]:
        with self._session() as db:
            # LIKE is case-insensitive on SQLite, so re-check in Python
            rows = db.query(URL.name).filter(URL.name.startswith(prefix, autoescape=True)).all()
            return [name for (name,) in rows if name.startswith(prefix)]

    async def create_url(self, data: Dict[str, Any]) -> URLRecord:
        with self._session() as db:
            row = URL(**_plain(data))
            db.add(row)
            db.commit()
            db.refresh(row)
            return URLRecord.model_validate(row)

    async def update_url(self, url_id: int, changes: Dict[str, Any], privileged: bool = False) -> Optional[URLRecord]:
        with self._session() as db:
            row = db.get(URL, url_id)
            if row is None:
                return None
            if not privileged:
                changes = _strip_protected(url_id, changes, row.original_click_limit)
            for key, value in _plain(changes).items():
                setattr(row, key, value)
            db.commit()
            db.refresh(row)
            return URLRecord.model_validate(row)

    async def delete_url(self, url_id: int) -> bool:
        with self._session() as db:
            deleted = db.query(URL).filter(URL.id == url_id).delete(synchronize_session=False)
            db.commit()
            return bool(deleted)

    async def add_clicks(self, url_id: int, count: int) -> Optional[ClickResult]:
        with self._session() as db:
            row = db.get(URL, url_id)
            if row is None:
                return None
            before = URLRecord.model_validate(row)

            completes = and_(
                URL.clicks + count >= URL.click_limit,
                URL.status != UrlStatus.DELETED.value,
            )
            stmt = (
                update(URL)
                .where(URL.id == url_id)
                .values(
                    clicks=URL.clicks + count,
                    status=case((completes, UrlStatus.COMPLETED.value), else_=URL.status),
                    campaign_id=case((completes, null()), else_=URL.campaign_id),
                )
                .execution_options(synchronize_session=False)
            )
            db.execute(stmt)
            db.commit()
            db.refresh(row)
            return before, URLRecord.model_validate(row)

    # Original URL Records

    async def get_original(self, record_id: int) -> Optional[OriginalURLRecord]:
        with self._session() as db:
            row = db.get(OriginalURL, record_id)
            return OriginalURLRecord.model_validate(row) if row else None

    async def get_original_by_name(self, name: str) -> Optional[OriginalURLRecord]:
        with self._session() as db:
            row = db.query(OriginalURL).filter(OriginalURL.name == name).first()
            return OriginalURLRecord.model_validate(row) if row else None

    async def list_originals(self, page=1, limit=50, search=None, status=None, names=None):
        with self._session() as db:
            query = db.query(OriginalURL)
            if names is not None:
                names = list(names)
                if not names:
                    return [], 0
                query = query.filter(OriginalURL.name.in_(names))
            if search:
                pattern = f"%{search}%"
                query = query.filter(or_(OriginalURL.name.ilike(pattern), OriginalURL.target_url.ilike(pattern)))
            if status is not None:
                query = query.filter(OriginalURL.status == UrlStatus(status).value)
            total = query.count()
            rows = (
                query.order_by(OriginalURL.created_at.desc(), OriginalURL.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return [OriginalURLRecord.model_validate(r) for r in rows], total

    async def create_original(self, data: Dict[str, Any]) -> OriginalURLRecord:
        with self._session() as db:
            row = OriginalURL(**_plain(data))
            db.add(row)
            db.commit()
            db.refresh(row)
            return OriginalURLRecord.model_validate(row)

    async def update_original(self, record_id: int, changes: Dict[str, Any]) -> Optional[OriginalURLRecord]:
        with self._session() as db:
            row = db.get(OriginalURL, record_id)
            if row is None:
                return None
            for key, value in _plain(changes).items():
                setattr(row, key, value)
            # Always bump the timestamp, even when no column value changed
            row.updated_at = datetime.now(timezone.utc)
            db.commit()
            db.refresh(row)
            return OriginalURLRecord.model_validate(row)

    async def delete_original(self, record_id: int) -> bool:
        with self._session() as db:
            deleted = db.query(OriginalURL).filter(OriginalURL.id == record_id).delete(synchronize_session=False)
            db.commit()
            return bool(deleted)

    # Blacklist

    async def list_blacklist(self) -> List[BlacklistRecord]:
        with self._session() as db:
            rows = db.query(BlacklistedURL).order_by(BlacklistedURL.created_at.desc(), BlacklistedURL.id.desc()).all()
            return [BlacklistRecord.model_validate(r) for r in rows]

    async def get_blacklist(self, entry_id: int) -> Optional[BlacklistRecord]:
        with self._session() as db:
            row = db.get(BlacklistedURL, entry_id)
            return BlacklistRecord.model_validate(row) if row else None

    async def find_blacklisted(self, target_url: str) -> Optional[BlacklistRecord]:
        with self._session() as db:
            row = (
                db.query(BlacklistedURL)
                .filter(func.trim(BlacklistedURL.target_url) == target_url.strip())
                .order_by(BlacklistedURL.id)
                .first()
            )
            return BlacklistRecord.model_validate(row) if row else None

    async def create_blacklist(self, data: Dict[str, Any]) -> BlacklistRecord:
        with self._session() as db:
            row = BlacklistedURL(**data)
            db.add(row)
            db.commit()
            db.refresh(row)
            return BlacklistRecord.model_validate(row)

    async def update_blacklist(self, entry_id: int, changes: Dict[str, Any]) -> Optional[BlacklistRecord]:
        with self._session() as db:
            row = db.get(BlacklistedURL, entry_id)
            if row is None:
                return None
            for key, value in changes.items():
                setattr(row, key, value)
            db.commit()
            db.refresh(row)
            return BlacklistRecord.model_validate(row)

    async def delete_blacklist(self, entry_id: int) -> bool:
        with self._session() as db:
            deleted = db.query(BlacklistedURL).filter(BlacklistedURL.id == entry_id).delete(synchronize_session=False)
            db.commit()
            return bool(deleted)

    # Click analytics

    async def record_clicks(self, events: List[ClickEvent]) -> int:
        if not events:
            return 0
        with self._session() as db:
            db.add_all([
                ClickRecord(
                    campaign_id=e.campaign_id,
                    url_id=e.url_id,
                    redirect_method=e.redirect_method,
                    ip_address=e.ip_address,
                    user_agent=e.user_agent,
                    referer=e.referer,
                    timestamp=e.timestamp,
                )
                for e in events
            ])
            db.commit()
            return len(events)

    async def click_counts(self, campaign_id: int) -> Dict[int, int]:
        with self._session() as db:
            rows = (
                db.query(ClickRecord.url_id, func.count(ClickRecord.id))
                .filter(ClickRecord.campaign_id == campaign_id)
                .group_by(ClickRecord.url_id)
                .all()
            )
            return {url_id: count for url_id, count in rows}


class InMemoryStore(StoreStrategy):
    """
    Dict-backed store.

    Each method runs to completion without awaiting, so every call is
    atomic with respect to other coroutines on the loop.
    """

    def __init__(self):
        self._campaigns: Dict[int, CampaignRecord] = {}
        self._urls: Dict[int, URLRecord] = {}
        self._originals: Dict[int, OriginalURLRecord] = {}
        self._blacklist: Dict[int, BlacklistRecord] = {}
        self._clicks: List[ClickEvent] = []
        self._ids: Dict[str, int] = {}

    def _next_id(self, table: str) -> int:
        self._ids[table] = self._ids.get(table, 0) + 1
        return self._ids[table]

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _new(self, table: str, model, data: Dict[str, Any]):
        now = self._now()
        return model.model_validate({**data, "id": self._next_id(table), "created_at": now, "updated_at": now})

    def _changed(self, record, changes: Dict[str, Any]):
        return type(record).model_validate({**record.model_dump(), **changes, "updated_at": self._now()})

    @staticmethod
    def _newest_first(records):
        return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)

    @staticmethod
    def _page(records, page: int, limit: int):
        start = (page - 1) * limit
        return records[start:start + limit], len(records)

    # Campaigns

    async def get_campaign(self, campaign_id):
        return self._campaigns.get(campaign_id)

    async def get_campaign_by_path(self, path):
        return next((c for c in self._campaigns.values() if c.custom_path == path), None)

    async def list_campaigns(self):
        return self._newest_first(self._campaigns.values())

    async def create_campaign(self, data):
        record = self._new("campaigns", CampaignRecord, data)
        self._campaigns[record.id] = record
        return record

    async def update_campaign(self, campaign_id, changes):
        record = self._campaigns.get(campaign_id)
        if record is None:
            return None
        record = self._changed(record, changes)
        self._campaigns[campaign_id] = record
        return record

    async def delete_campaign(self, campaign_id):
        if self._campaigns.pop(campaign_id, None) is None:
            return False
        for url in list(self._urls.values()):
            if url.campaign_id == campaign_id:
                self._urls[url.id] = url.model_copy(update={"campaign_id": None})
        return True

    # URLs

    async def get_url(self, url_id):
        return self._urls.get(url_id)

    async def get_urls(self, url_ids):
        return [self._urls[i] for i in sorted(set(url_ids)) if i in self._urls]

    async def list_campaign_urls(self, campaign_id, statuses=None, exclude_statuses=None):
        include = _status_values(statuses)
        exclude = _status_values(exclude_statuses) or []
        urls = [
            u for u in self._urls.values()
            if u.campaign_id == campaign_id
            and (include is None or u.status.value in include)
            and u.status.value not in exclude
        ]
        return self._newest_first(urls)

    async def list_urls(self, page=1, limit=50, search=None, status=None):
        urls = list(self._urls.values())
        if search:
            needle = search.lower()
            urls = [u for u in urls if needle in u.name.lower() or needle in u.target_url.lower()]
        if status is not None:
            urls = [u for u in urls if u.status == UrlStatus(status)]
        return self._page(self._newest_first(urls), page, limit)

    async def find_urls_by_name(self, name):
        return [u for u in sorted(self._urls.values(), key=lambda u: u.id) if u.name == name]

    async def find_url_names_with_prefix(self, prefix):
        return [u.name for u in self._urls.values() if u.name.startswith(prefix)]

    async def create_url(self, data):
        record = self._new("urls", URLRecord, {"clicks": 0, **data})
        self._urls[record.id] = record
        return record

    async def update_url(self, url_id, changes, privileged=False):
        record = self._urls.get(url_id)
        if record is None:
            return None
        if not privileged:
            changes = _strip_protected(url_id, changes, record.original_click_limit)
        record = self._changed(record, changes)
        self._urls[url_id] = record
        return record

    async def delete_url(self, url_id):
        return self._urls.pop(url_id, None) is not None

    async def add_clicks(self, url_id, count):
        before = self._urls.get(url_id)
        if before is None:
            return None
        changes: Dict[str, Any] = {"clicks": before.clicks + count}
        if before.clicks + count >= before.click_limit and before.status != UrlStatus.DELETED:
            changes.update(status=UrlStatus.COMPLETED, campaign_id=None)
        after = self._changed(before, changes)
        self._urls[url_id] = after
        return before, after

    # Original URL Records

    async def get_original(self, record_id):
        return self._originals.get(record_id)

    async def get_original_by_name(self, name):
        return next((o for o in self._originals.values() if o.name == name), None)

    async def list_originals(self, page=1, limit=50, search=None, status=None, names=None):
        records = list(self._originals.values())
        if names is not None:
            wanted = set(names)
            records = [o for o in records if o.name in wanted]
        if search:
            needle = search.lower()
            records = [o for o in records if needle in o.name.lower() or needle in o.target_url.lower()]
        if status is not None:
            records = [o for o in records if o.status == UrlStatus(status)]
        return self._page(self._newest_first(records), page, limit)

    async def create_original(self, data):
        record = self._new("originals", OriginalURLRecord, data)
        self._originals[record.id] = record
        return record

    async def update_original(self, record_id, changes):
        record = self._originals.get(record_id)
        if record is None:
            return None
        record = self._changed(record, changes)
        self._originals[record_id] = record
        return record

    async def delete_original(self, record_id):
        return self._originals.pop(record_id, None) is not None

    # Blacklist

    async def list_blacklist(self):
        return self._newest_first(self._blacklist.values())

    async def get_blacklist(self, entry_id):
        return self._blacklist.get(entry_id)

    async def find_blacklisted(self, target_url):
        target = target_url.strip()
        ordered = sorted(self._blacklist.values(), key=lambda b: b.id)
        return next((b for b in ordered if b.target_url.strip() == target), None)

    async def create_blacklist(self, data):
        record = self._new("blacklist", BlacklistRecord, data)
        self._blacklist[record.id] = record
        return record

    async def update_blacklist(self, entry_id, changes):
        record = self._blacklist.get(entry_id)
        if record is None:
            return None
        record = self._changed(record, changes)
        self._blacklist[entry_id] = record
        return record

    async def delete_blacklist(self, entry_id):
        return self._blacklist.pop(entry_id, None) is not None

    # Click analytics

    async def record_clicks(self, events):
        self._clicks.extend(e.model_copy() for e in events)
        return len(events)

    async def click_counts(self, campaign_id):
        counts: Dict[int, int] = {}
        for event in self._clicks:
            if event.campaign_id == campaign_id:
                counts[event.url_id] = counts.get(event.url_id, 0) + 1
        return counts
