"""Cache service: the single handle route handlers and startup code use.

Wires the fast tier, the durable store, the tiered engine, the cache-aside
wrapper, diagnostics, and the expired-row reaper. Call connect() at startup
and shutdown() on exit (see app.core.lifespan).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from functools import wraps
from typing import Any

from app.core.config import Settings, get_settings
from app.core.constants import DURABLE_ENDPOINT_GENERIC
from app.infrastructure.cache.cache_aside import CacheAside, Producer
from app.infrastructure.cache.cache_protocol import (
    DurableStoreProtocol,
    FastTierProtocol,
)
from app.infrastructure.cache.diagnostics import CacheDiagnostics
from app.infrastructure.cache.engine import TieredCache
from app.infrastructure.cache.reclamation import ExpiredEntryReaper
from app.infrastructure.cache.redis_cache import RedisFastTier
from app.infrastructure.cache.results import ResolveResult
from app.infrastructure.cache.strategies import (
    DEFAULT_STRATEGY,
    DEFAULT_STRATEGY_TABLE,
    CacheStrategy,
    StrategyTable,
    resolve_strategy,
    smart_cache_ttl,
)

logger = logging.getLogger(__name__)


class CacheService:
    """Facade over TieredCache + CacheAside + diagnostics + reaper.

    Args:
        cache: Configured tiered engine.
        single_flight: Coalesce concurrent misses on the same key.
        cleanup_interval_seconds: Reaper interval for expired durable rows.
        strategies: Path-prefix strategy table (first match wins).
        default_strategy: Strategy for unmatched paths.
        max_cacheable_bytes: Size threshold for smart_cache_ttl.
    """

    def __init__(
        self,
        cache: TieredCache,
        *,
        single_flight: bool = True,
        cleanup_interval_seconds: float = 30 * 60,
        strategies: StrategyTable = DEFAULT_STRATEGY_TABLE,
        default_strategy: CacheStrategy = DEFAULT_STRATEGY,
        max_cacheable_bytes: int = 1024 * 1024,
    ) -> None:
        self.cache = cache
        self.aside = CacheAside(cache, single_flight=single_flight)
        self.diagnostics = CacheDiagnostics(cache, self.aside)
        self.reaper = ExpiredEntryReaper(cache, cleanup_interval_seconds)
        self.strategies = strategies
        self.default_strategy = default_strategy
        self.max_cacheable_bytes = max_cacheable_bytes
        # True when from_settings built the SQL store on the process-wide engine.
        self.owns_database = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        fast_tier: FastTierProtocol | None = None,
        durable: DurableStoreProtocol | None = None,
    ) -> CacheService:
        """Build from settings. Without REDIS_HOST the fast tier is left out.

        fast_tier/durable override the adapters built from settings (tests, DI).
        """
        settings = settings or get_settings()
        if fast_tier is None and settings.fast_tier_configured:
            fast_tier = RedisFastTier.from_settings(settings)
        owns_database = False
        if durable is None and settings.cache_fallback_to_db:
            from app.infrastructure.persistence.database import get_session_factory
            from app.infrastructure.persistence.repositories import SqlCacheStore

            durable = SqlCacheStore(get_session_factory())
            owns_database = True
        engine = TieredCache(
            fast_tier,
            durable,
            default_ttl=settings.cache_default_ttl,
            key_prefix=settings.cache_prefix,
            fallback_to_durable=settings.cache_fallback_to_db,
        )
        service = cls(
            engine,
            single_flight=settings.cache_single_flight,
            cleanup_interval_seconds=settings.cache_cleanup_interval_seconds,
            max_cacheable_bytes=settings.cache_max_cacheable_bytes,
        )
        service.owns_database = owns_database
        return service

    # ---- Lifecycle ----

    async def connect(self, *, start_reaper: bool = True) -> None:
        """Connect the fast tier (if any), create the durable table, start the reaper.

        A fast tier that cannot be reached leaves the service durable-only.
        """
        fast = self.cache.fast_tier
        if fast is None:
            logger.info("Redis not configured, using database-only caching")
        else:
            connect = getattr(fast, "connect", None)
            connected = await connect() if connect is not None else True
            if connected and await self.cache.reconnect():
                logger.info("Redis cache service initialized successfully")
            else:
                logger.warning("Redis connection failed, falling back to database caching")

        if self.owns_database:
            from app.infrastructure.persistence.database import create_tables

            try:
                await create_tables()
            except Exception:
                logger.exception("Could not create durable cache table")

        if start_reaper and self.cache.durable_enabled:
            self.reaper.start()

    async def reconnect(self) -> bool:
        """Explicit reconnect event for the fast tier. Returns whether it is enabled."""
        return await self.cache.reconnect()

    async def shutdown(self) -> None:
        """Stop the reaper and close connections. Never raises."""
        try:
            await self.reaper.stop()
            fast = self.cache.fast_tier
            if fast is not None:
                self.cache.mark_disconnected()
                await fast.close()
            if self.owns_database:
                from app.infrastructure.persistence.database import dispose_engine

                await dispose_engine()
            logger.info("Cache service shutdown complete")
        except Exception:
            logger.exception("Error during cache service shutdown")

    # ---- Keys and strategies ----

    def derive_key(self, endpoint: str, params: Mapping[str, Any] | None = None) -> str:
        return self.cache.derive_key(endpoint, params)

    def endpoint_key(
        self,
        method: str,
        path: str,
        query: Mapping[str, Any] | None = None,
        body: Any = None,
        extra: Mapping[str, Any] | None = None,
    ) -> str:
        return self.cache.endpoint_key(method, path, query, body, extra)

    def strategy_for(self, path: str) -> CacheStrategy:
        return resolve_strategy(path, self.strategies, self.default_strategy)

    def smart_ttl(self, path: str, payload: Any, frequency: int = 1) -> int | None:
        return smart_cache_ttl(
            path,
            payload,
            frequency,
            self.max_cacheable_bytes,
            self.strategies,
            self.default_strategy,
        )

    # ---- Cache operations ----

    async def resolve(
        self,
        key: str,
        ttl: int | None,
        producer: Producer,
        *,
        endpoint: str = DURABLE_ENDPOINT_GENERIC,
    ) -> ResolveResult:
        return await self.aside.resolve(key, ttl, producer, endpoint=endpoint)

    async def get(self, key: str) -> Any | None:
        return await self.cache.get(key)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        return await self.cache.set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        return await self.cache.delete(key)

    async def clear_pattern(self, pattern: str) -> int:
        return await self.cache.clear_pattern(pattern)

    async def purge_expired(self) -> int:
        return await self.reaper.run_once()

    async def health_check(self) -> dict[str, Any]:
        return await self.diagnostics.health_check()

    async def get_stats(self) -> dict[str, Any]:
        stats = await self.diagnostics.get_stats()
        stats["reaper"] = {
            "running": self.reaper.running,
            "interval_seconds": self.reaper.interval_seconds,
            "runs": self.reaper.runs,
            "last_removed": self.reaper.last_removed,
        }
        return stats


def _resolve_cache(
    args: tuple[Any, ...], kwargs: dict[str, Any]
) -> tuple[CacheService | None, tuple[Any, ...], dict[str, Any]]:
    """Resolve CacheService and args/kwargs for the wrapped function.

    Resolution order: keyword "cache", then args[0] if CacheService, then
    args[0].cache. The CacheService is removed from the returned args/kwargs
    (the function still receives it) so it never becomes part of the key.
    """
    if isinstance(kwargs.get("cache"), CacheService):
        call_kwargs = {k: v for k, v in kwargs.items() if k != "cache"}
        return kwargs["cache"], args, call_kwargs
    if args:
        first = args[0]
        if isinstance(first, CacheService):
            return first, args[1:], kwargs
        cache_attr = getattr(first, "cache", None)
        if isinstance(cache_attr, CacheService):
            return cache_attr, args[1:], kwargs
    return None, args, kwargs


def cached(
    endpoint: str,
    ttl: int | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator serving an async function's result through CacheService.resolve.

    The wrapped function must receive a CacheService as keyword "cache"
    (recommended), as its first argument, or via first_arg.cache. Without
    one the function is simply called.

    Args:
        endpoint: Logical endpoint id; also the path used for strategy lookup
            when ttl is None (e.g. "/odoo/sales").
        ttl: Seconds to cache; None resolves it from the strategy table.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            service, key_args, key_kwargs = _resolve_cache(args, kwargs)
            if service is None:
                return await func(*args, **kwargs)
            params: dict[str, Any] = dict(key_kwargs)
            if key_args:
                params["args"] = list(key_args)
            key = service.derive_key(endpoint, params)
            effective_ttl = ttl if ttl is not None else service.strategy_for(endpoint).ttl_seconds
            result = await service.resolve(
                key, effective_ttl, lambda: func(*args, **kwargs), endpoint=endpoint
            )
            return result.value

        return wrapper

    return decorator
