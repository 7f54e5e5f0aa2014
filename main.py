import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cloaker_app.api.v1 import blacklist, campaigns, original_records, redirect, urls
from cloaker_app.config import Settings, get_settings
from cloaker_app.dependencies import ServiceContainer
from cloaker_app.logger import setup_logging
from cloaker_app.services.exceptions import CloakerError

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    A prepared container can be passed in (tests do); otherwise one is
    built from settings when the app starts.
    """
    settings = settings or (container.settings if container else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        app.state.container = container or ServiceContainer(settings)
        worker = app.state.container.worker
        worker_task = asyncio.create_task(worker.start())
        logger.info("%s %s started (%s)", settings.app_name, settings.app_version, settings.environment)

        yield

        worker.stop()
        worker_task.cancel()
        with suppress(asyncio.CancelledError):
            await worker_task
        await app.state.container.shutdown()
        logger.info("%s stopped", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Campaign link cloaker with weighted redirects and click quotas",
        debug=settings.debug,
        lifespan=lifespan,
    )

    @app.exception_handler(CloakerError)
    async def cloaker_error_handler(_: Request, exc: CloakerError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError):
        details = [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
            for error in exc.errors()
        ]
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": details})

    @app.get("/")
    def read_root():
        """Root endpoint with API information"""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "docs": "/docs",
            "redoc": "/redoc"
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "environment": settings.environment}

    ######## Include routers
    app.include_router(campaigns.router)
    app.include_router(urls.router)
    app.include_router(original_records.router)
    app.include_router(blacklist.router)
    app.include_router(redirect.router)

    return app


app = create_app()
