"""Cache operations API schemas."""

from typing import Any

from pydantic import BaseModel, Field


class CacheDeleteResponse(BaseModel):
    """Response for DELETE /cache/entries/{key}."""

    key: str
    deleted: bool = Field(..., description="True if any active tier removed the key")


class CacheClearResponse(BaseModel):
    """Response for POST /cache/clear."""

    pattern: str
    cleared: int = Field(..., ge=0, description="Number of entries removed")


class CacheReconnectResponse(BaseModel):
    """Response for POST /cache/reconnect."""

    fast_tier_enabled: bool


class CachePurgeResponse(BaseModel):
    """Response for POST /cache/purge (one reclamation pass)."""

    removed: int = Field(..., ge=0)


class CacheStatsResponse(BaseModel):
    """Response for GET /cache/stats. Sections are best effort."""

    fast_tier: dict[str, Any]
    durable: dict[str, Any]
    config: dict[str, Any]
    requests: dict[str, Any] | None = None
    reaper: dict[str, Any] | None = None
