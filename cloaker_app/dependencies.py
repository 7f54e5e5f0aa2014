"""
Service wiring and FastAPI dependencies.

ServiceContainer builds every component once per application from
Settings; main.py stores it on app.state and the get_* functions below
hand its parts to the routes. Tests build their own container with an
in-memory store, a fake clock and a seeded random generator.
"""

import random
import time
from typing import Callable, Optional

from fastapi import Depends, Request

from cloaker_app.cache.factory import CacheBackend, CacheFactory
from cloaker_app.cache.layer import CacheLayer
from cloaker_app.cache.strategies import CacheStrategy
from cloaker_app.config import Settings
from cloaker_app.hit_processor.click_worker import ClickWorker
from cloaker_app.queue.factory import QueueBackend, QueueFactory
from cloaker_app.queue.strategies import QueueStrategy
from cloaker_app.services.background import BackgroundRunner
from cloaker_app.services.blacklist import BlacklistGuard
from cloaker_app.services.campaign_service import CampaignService
from cloaker_app.services.catalog import CatalogService
from cloaker_app.services.click_accounting import ClickAccountingEngine
from cloaker_app.services.creation_pipeline import CreationPipeline
from cloaker_app.services.distribution import WeightedDistributionEngine
from cloaker_app.services.original_record_service import OriginalRecordService
from cloaker_app.services.redirect_dispatcher import RedirectDispatcher
from cloaker_app.services.status_sync import StatusSynchronizer
from cloaker_app.services.url_service import URLService
from cloaker_app.storage.factory import StoreBackend, StoreFactory
from cloaker_app.storage.strategies import StoreStrategy


class ServiceContainer:
    """
    Explicit context object holding one instance of every component.

    Any infrastructure piece can be passed in; what isn't passed is built
    from settings through the factories.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[StoreStrategy] = None,
        cache_backend: Optional[CacheStrategy] = None,
        queue: Optional[QueueStrategy] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self.store = store or StoreFactory.create(StoreBackend(settings.store_backend), settings)
        backend = cache_backend or CacheFactory.create(CacheBackend(settings.cache_backend), settings, clock)
        self.cache = CacheLayer(backend, ttl=settings.cache_ttl)
        self.queue = queue or QueueFactory.create(QueueBackend(settings.queue_backend), settings)
        self.background = BackgroundRunner()

        self.synchronizer = StatusSynchronizer(self.store, self.cache)
        self.catalog = CatalogService(self.store, self.cache, self.synchronizer, self.background)
        self.guard = BlacklistGuard(self.store)
        self.distribution = WeightedDistributionEngine(self.catalog, self.cache, rng)
        self.clicks = ClickAccountingEngine(
            self.store,
            self.cache,
            self.synchronizer,
            self.background,
            batch_threshold=settings.click_batch_threshold,
        )
        self.pipeline = CreationPipeline.default(self.store, self.guard)

        self.urls = URLService(self.store, self.cache, self.catalog, self.synchronizer, self.guard, self.pipeline)
        self.campaigns = CampaignService(self.store, self.cache, self.catalog)
        self.originals = OriginalRecordService(self.store, self.synchronizer)
        self.dispatcher = RedirectDispatcher(
            self.catalog,
            self.distribution,
            self.clicks,
            self.queue,
            settings.queue_name,
            self.background,
        )
        self.worker = ClickWorker(
            self.queue,
            self.store,
            self.clicks,
            queue_name=settings.queue_name,
            batch_size=settings.queue_batch_size,
            interval=settings.click_flush_interval,
        )

    async def shutdown(self) -> None:
        """Stop the worker and push every pending click and event to the store."""
        self.worker.stop()
        await self.background.drain()
        await self.worker.process_events()
        await self.clicks.flush_pending_click_updates()
        await self.background.drain()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_url_service(container: ServiceContainer = Depends(get_container)) -> URLService:
    return container.urls


def get_campaign_service(container: ServiceContainer = Depends(get_container)) -> CampaignService:
    return container.campaigns


def get_original_record_service(container: ServiceContainer = Depends(get_container)) -> OriginalRecordService:
    return container.originals


def get_blacklist_guard(container: ServiceContainer = Depends(get_container)) -> BlacklistGuard:
    return container.guard


def get_dispatcher(container: ServiceContainer = Depends(get_container)) -> RedirectDispatcher:
    return container.dispatcher
