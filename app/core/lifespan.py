"""Application lifespan: startup and shutdown.

Single place for startup/shutdown wiring. Used by main.py; no business
logic here. The cache service owns its Redis client, SQL engine, and
reaper task, so shutdown is a single call.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.core.config import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup: build CacheService from settings and connect it (Redis if
    configured, durable table, reaper). A service already placed on
    app.state.cache (tests) is used as is. Shutdown: cache shutdown.
    """
    settings = get_settings()

    # ---- Startup ----
    cache = getattr(app.state, "cache", None)
    if cache is None:
        from app.infrastructure.cache.service import CacheService

        cache = CacheService.from_settings(settings)
        await cache.connect()
        app.state.cache = cache
    logger.info(
        "%s started (fast tier: %s, durable fallback: %s)",
        settings.app_name,
        "enabled" if cache.cache.fast_tier_enabled else "disabled",
        "enabled" if cache.cache.durable_enabled else "disabled",
    )

    yield

    # ---- Shutdown ----
    if getattr(app.state, "cache", None) is not None:
        await app.state.cache.shutdown()
        app.state.cache = None
        logger.info("Cache disconnected")
