"""Cache operations API: health, stats, invalidation, reconnect, and purge."""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from app.api.v1.dependencies import CacheServiceDep
from app.schemas.cache import (
    CacheClearResponse,
    CacheDeleteResponse,
    CachePurgeResponse,
    CacheReconnectResponse,
    CacheStatsResponse,
)
from app.schemas.health import CacheHealthResponse

router = APIRouter()


@router.get(
    "/health",
    response_model=CacheHealthResponse,
    responses={503: {"description": "No cache tier responded", "model": CacheHealthResponse}},
)
async def cache_health(cache: CacheServiceDep) -> CacheHealthResponse | JSONResponse:
    """Probe both tiers. 200 if at least one responds, else 503.

    A failed fast-tier probe disables the fast tier; call /cache/reconnect
    once Redis is back.
    """
    report = await cache.health_check()
    if report["status"] != "healthy":
        return JSONResponse(status_code=503, content=report)
    return CacheHealthResponse.model_validate(report)


@router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats(cache: CacheServiceDep) -> CacheStatsResponse:
    """Tier metrics, engine config, wrapper counters, and reaper state."""
    return CacheStatsResponse.model_validate(await cache.get_stats())


@router.delete("/entries/{key}", response_model=CacheDeleteResponse)
async def delete_entry(key: str, cache: CacheServiceDep) -> CacheDeleteResponse:
    """Delete one key (full key, prefix included) from every active tier."""
    deleted = await cache.delete(key)
    return CacheDeleteResponse(key=key, deleted=deleted)


@router.post("/clear", response_model=CacheClearResponse)
async def clear_pattern(
    cache: CacheServiceDep,
    pattern: str = Query(..., min_length=1, description="Glob matched after the key prefix"),
) -> CacheClearResponse:
    """Invalidate fast-tier keys matching prefix+pattern.

    Durable-only deployments purge expired rows instead.
    """
    cleared = await cache.clear_pattern(pattern)
    return CacheClearResponse(pattern=pattern, cleared=cleared)


@router.post("/reconnect", response_model=CacheReconnectResponse)
async def reconnect(cache: CacheServiceDep) -> CacheReconnectResponse:
    """Ping the fast tier and re-enable it on success."""
    return CacheReconnectResponse(fast_tier_enabled=await cache.reconnect())


@router.post("/purge", response_model=CachePurgeResponse)
async def purge_expired(cache: CacheServiceDep) -> CachePurgeResponse:
    """Run one reclamation pass over the durable store now."""
    return CachePurgeResponse(removed=await cache.purge_expired())
