"""Health check API schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health (liveness)."""

    status: str = Field(default="ok", description="Service status")


class TierHealthReport(BaseModel):
    """Probe result for one cache tier."""

    configured: bool
    enabled: bool
    connected: bool | None = None
    available: bool | None = None
    error: str | None = None


class CacheHealthTiers(BaseModel):
    fast: TierHealthReport
    durable: TierHealthReport


class CacheHealthResponse(BaseModel):
    """Response for GET /cache/health (503 when status is unhealthy)."""

    status: str = Field(..., description="healthy or unhealthy")
    tiers: CacheHealthTiers
    timestamp: str
