"""
URL creation pipeline.

Every new URL, whatever its source (operator, mail ingestion), is shaped
by the same ordered steps before it is written:

1. BlacklistStep       rejected + marker name on a blacklisted target
2. OriginalRecordStep  creates the master record for a new name
3. DuplicateNameStep   rejects a name already held by a live URL
4. FinalBlacklistStep  second blacklist check on the finished draft

Each step edits the draft in place and can be tested on its own.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from cloaker_app.enums import UrlStatus
from cloaker_app.storage.strategies import StoreStrategy
from .blacklist import BlacklistGuard, blacklisted_name

logger = logging.getLogger(__name__)

FINAL_CHECK_ENTRY = "FinalCheck"


@dataclass
class URLDraft:
    name: str
    target_url: str
    original_click_limit: int
    click_limit: int
    status: UrlStatus = UrlStatus.ACTIVE
    campaign_id: Optional[int] = None

    def as_row(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "target_url": self.target_url,
            "original_click_limit": self.original_click_limit,
            "click_limit": self.click_limit,
            "status": self.status,
            "campaign_id": self.campaign_id,
            "clicks": 0,
        }


class CreationStep(ABC):

    @abstractmethod
    async def apply(self, draft: URLDraft) -> None:
        pass


class BlacklistStep(CreationStep):

    def __init__(self, guard: BlacklistGuard):
        self.guard = guard

    async def apply(self, draft: URLDraft) -> None:
        entry = await self.guard.match(draft.target_url)
        if entry is None:
            return
        logger.info("New URL %r targets blacklisted %s, creating it rejected", draft.name, draft.target_url)
        draft.status = UrlStatus.REJECTED
        draft.name = blacklisted_name(draft.name, entry.name)


class OriginalRecordStep(CreationStep):
    """The first URL with a given name also creates its master record."""

    def __init__(self, store: StoreStrategy):
        self.store = store

    async def apply(self, draft: URLDraft) -> None:
        if await self.store.get_original_by_name(draft.name) is not None:
            return
        record = await self.store.create_original({
            "name": draft.name,
            "target_url": draft.target_url,
            "original_click_limit": draft.original_click_limit,
            "status": draft.status,
        })
        logger.info("Created original record %s for %r", record.id, draft.name)


class DuplicateNameStep(CreationStep):
    """
    A name held by a non-rejected URL can't be reused.

    The second URL with a name is rejected and keeps the name; from the
    third on the name also gets a " #N" suffix, N one past the highest
    suffix in use (starting at 2).
    """

    def __init__(self, store: StoreStrategy):
        self.store = store

    async def apply(self, draft: URLDraft) -> None:
        existing = await self.store.find_urls_by_name(draft.name)
        if not any(url.status != UrlStatus.REJECTED for url in existing):
            return

        draft.status = UrlStatus.REJECTED
        if len(existing) == 1:
            logger.info("Duplicate name %r, creating it rejected", draft.name)
            return

        prefix = f"{draft.name} #"
        suffix = re.compile(re.escape(prefix) + r"(\d+)$")
        used = [
            int(match.group(1))
            for match in (suffix.match(name) for name in await self.store.find_url_names_with_prefix(prefix))
            if match
        ]
        draft.name = f"{prefix}{max(used, default=1) + 1}"
        logger.info("Duplicate name, creating it rejected as %r", draft.name)


class FinalBlacklistStep(CreationStep):

    def __init__(self, guard: BlacklistGuard):
        self.guard = guard

    async def apply(self, draft: URLDraft) -> None:
        entry = await self.guard.match(draft.target_url)
        if entry is None:
            return
        if draft.status != UrlStatus.REJECTED:
            logger.warning("Final check caught blacklisted target for %r", draft.name)
        draft.status = UrlStatus.REJECTED
        draft.name = blacklisted_name(draft.name, FINAL_CHECK_ENTRY)


class CreationPipeline:

    def __init__(self, steps: List[CreationStep]):
        self.steps = steps

    @classmethod
    def default(cls, store: StoreStrategy, guard: BlacklistGuard) -> "CreationPipeline":
        return cls([
            BlacklistStep(guard),
            OriginalRecordStep(store),
            DuplicateNameStep(store),
            FinalBlacklistStep(guard),
        ])

    async def run(self, draft: URLDraft) -> URLDraft:
        for step in self.steps:
            await step.apply(draft)
        return draft
