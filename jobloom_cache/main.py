"""
FastAPI application entry point for the Jobloom cache service.

Wires together the named cache registry, the background prune scheduler,
CORS middleware and the cache admin routes.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jobloom_cache.config import Settings, get_settings
from jobloom_cache.registry import CacheRegistry
from jobloom_cache.routes.cache import router as cache_router
from jobloom_cache.scheduler import PruneScheduler

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration to use; ``get_settings()`` when omitted.

    Returns:
        FastAPI: Configured application.  Caches and the scheduler are
        created by the lifespan, not here.
    """
    settings = settings or get_settings()

    logging.basicConfig(level=settings.log_level, format=_LOG_FORMAT)

    # -----------------------------------------------------------------------
    # Lifespan — manages startup and shutdown of long-lived resources
    # -----------------------------------------------------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Startup sequence:
          1. Build the CacheRegistry from settings and store on ``app.state``.
          2. Create the PruneScheduler and store on ``app.state``.
          3. Start the scheduler.

        Shutdown sequence:
          1. Stop the scheduler.
          2. Cancel pending stale-while-revalidate refreshes and clear caches.
        """
        logger.info("Starting Jobloom cache service …")

        caches = CacheRegistry(settings)
        app.state.caches = caches

        scheduler = PruneScheduler(caches, settings.cache_prune_interval)
        app.state.scheduler = scheduler

        await scheduler.start()

        logger.info("Jobloom cache service ready — caches: %s", ", ".join(caches.names()))

        yield

        logger.info("Shutting down Jobloom cache service …")

        await scheduler.stop()
        await caches.aclose()

        logger.info("Jobloom cache service shutdown complete")

    app = FastAPI(
        title="Jobloom Cache",
        description="In-process API response cache with admin endpoints",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(cache_router, prefix="/api/cache", tags=["cache"])

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Return service liveness status."""
        return {"status": "ok", "service": "jobloom-cache"}

    return app
