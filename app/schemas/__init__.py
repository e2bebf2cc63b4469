"""Pydantic request/response schemas for the API."""

from app.schemas.cache import (
    CacheClearResponse,
    CacheDeleteResponse,
    CachePurgeResponse,
    CacheReconnectResponse,
    CacheStatsResponse,
)
from app.schemas.health import CacheHealthResponse, HealthResponse

__all__ = [
    "CacheClearResponse",
    "CacheDeleteResponse",
    "CacheHealthResponse",
    "CachePurgeResponse",
    "CacheReconnectResponse",
    "CacheStatsResponse",
    "HealthResponse",
]
