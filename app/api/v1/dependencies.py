"""Presentation-layer dependency injection.

The CacheService is built once in the lifespan and stored on app.state;
routes depend on get_cache_service, not on infrastructure directly.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from app.domain.exceptions import CacheNotConfiguredException
from app.infrastructure.cache.service import CacheService


def get_cache_service(request: Request) -> CacheService:
    """Return the app's CacheService; 503 (SERVICE_UNAVAILABLE) when none is wired."""
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        raise CacheNotConfiguredException()
    return cache


CacheServiceDep = Annotated[CacheService, Depends(get_cache_service)]
