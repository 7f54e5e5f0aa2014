"""
Blacklist Guard.

A URL whose target matches a blacklist entry (exact match after trimming)
is never active. Matches are not errors: the URL is kept, rejected, and on
creation renamed with a Blacklisted{<entry>}(<name>) marker.
"""

import logging
from typing import Any, Dict, List, Optional

from cloaker_app.schemas.blacklist import BlacklistCreate, BlacklistRecord, BlacklistUpdate
from cloaker_app.schemas.url import URLRecord
from cloaker_app.storage.strategies import StoreStrategy
from .exceptions import NotFoundError

logger = logging.getLogger(__name__)

BLACKLIST_MARKER = "Blacklisted{"


def blacklisted_name(name: str, entry_name: str) -> str:
    """Prefix a URL name with the blacklist marker unless it already has one."""
    if name.startswith(BLACKLIST_MARKER):
        return name
    return f"{BLACKLIST_MARKER}{entry_name}}}({name})"


class BlacklistGuard:

    def __init__(self, store: StoreStrategy):
        self.store = store

    async def match(self, target_url: str) -> Optional[BlacklistRecord]:
        return await self.store.find_blacklisted(target_url)

    async def filter_activation(self, urls: List[URLRecord]) -> List[URLRecord]:
        """Drop URLs that may not be activated because their target is blacklisted."""
        allowed = []
        for url in urls:
            entry = await self.match(url.target_url)
            if entry is not None:
                logger.info("Skipping activation of URL %s: target blacklisted by %r", url.id, entry.name)
                continue
            allowed.append(url)
        return allowed

    # Entry management

    async def list_entries(self) -> List[BlacklistRecord]:
        return await self.store.list_blacklist()

    async def get_entry(self, entry_id: int) -> BlacklistRecord:
        entry = await self.store.get_blacklist(entry_id)
        if entry is None:
            raise NotFoundError(f"Blacklist entry {entry_id} not found")
        return entry

    async def create_entry(self, payload: BlacklistCreate) -> BlacklistRecord:
        entry = await self.store.create_blacklist({
            "name": payload.name.strip(),
            "target_url": payload.target_url.strip(),
        })
        logger.info("Blacklisted %s as %r", entry.target_url, entry.name)
        return entry

    async def update_entry(self, entry_id: int, payload: BlacklistUpdate) -> BlacklistRecord:
        changes: Dict[str, Any] = {k: v.strip() for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        entry = await self.store.update_blacklist(entry_id, changes)
        if entry is None:
            raise NotFoundError(f"Blacklist entry {entry_id} not found")
        return entry

    async def delete_entry(self, entry_id: int) -> None:
        if not await self.store.delete_blacklist(entry_id):
            raise NotFoundError(f"Blacklist entry {entry_id} not found")
