"""Cache health check and stats aggregation.

Both reports are best effort: each tier is probed independently, and a
probe failure becomes a sub-status in the report rather than an exception.
"""

from __future__ import annotations

import logging
from typing import Any

from app.infrastructure.cache.cache_aside import CacheAside
from app.infrastructure.cache.engine import TieredCache

logger = logging.getLogger(__name__)


def parse_redis_info(info: str) -> dict[str, str]:
    """Parse Redis INFO text ("key:value" lines) into a dict.

    Section headers ("# Memory") and blank lines are skipped. Values keep
    everything after the first colon.
    """
    parsed: dict[str, str] = {}
    for line in info.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or ":" not in line:
            continue
        name, value = line.split(":", 1)
        parsed[name.strip()] = value.strip()
    return parsed


class CacheDiagnostics:
    """Health and stats across the fast tier, the durable store, and the wrapper."""

    def __init__(self, cache: TieredCache, aside: CacheAside | None = None) -> None:
        self._cache = cache
        self._aside = aside

    async def health_check(self) -> dict[str, Any]:
        """Probe both tiers; healthy iff at least one of them responds.

        A failed fast-tier ping disables the fast tier (same transition as a
        failed operation). A successful ping does not re-enable it; use the
        explicit reconnect for that.
        """
        cache = self._cache
        fast: dict[str, Any] = {
            "configured": cache.fast_tier is not None,
            "enabled": cache.fast_tier_enabled,
            "connected": False,
        }
        if cache.fast_tier is not None:
            try:
                fast["connected"] = bool(await cache.fast_tier.ping())
            except Exception as e:
                fast["error"] = str(e)
                cache.health.on_tier_error(e)
            fast["enabled"] = cache.fast_tier_enabled

        durable: dict[str, Any] = {
            "configured": cache.durable is not None,
            "enabled": cache.durable_enabled,
            "available": False,
        }
        if cache.durable is not None:
            try:
                durable["available"] = bool(await cache.durable.ping())
            except Exception as e:
                durable["error"] = str(e)
                logger.warning("Durable cache health probe failed: %s", e)

        healthy = fast["connected"] or durable["available"]
        return {
            "status": "healthy" if healthy else "unhealthy",
            "tiers": {"fast": fast, "durable": durable},
            "timestamp": cache.clock().isoformat(),
        }

    async def get_stats(self) -> dict[str, Any]:
        """Aggregate tier metrics, engine config, and wrapper counters."""
        cache = self._cache
        fast: dict[str, Any] = {
            "configured": cache.fast_tier is not None,
            "enabled": cache.fast_tier_enabled,
            "health": cache.health.snapshot(),
        }
        if cache.fast_tier is not None and cache.fast_tier_enabled:
            try:
                fast["key_count"] = await cache.fast_tier.key_count()
                fast["memory"] = parse_redis_info(await cache.fast_tier.info("memory"))
            except Exception as e:
                fast["error"] = str(e)
                logger.warning("Error getting fast tier stats: %s", e)

        durable: dict[str, Any] = {
            "configured": cache.durable is not None,
            "enabled": cache.durable_enabled,
            "type": "database",
        }
        if cache.durable is not None:
            try:
                durable.update(await cache.durable.stats(cache.clock()))
            except Exception as e:
                durable["error"] = str(e)
                logger.warning("Error getting durable cache stats: %s", e)

        stats: dict[str, Any] = {
            "fast_tier": fast,
            "durable": durable,
            "config": cache.config(),
        }
        if self._aside is not None:
            stats["requests"] = self._aside.get_stats()
        return stats
