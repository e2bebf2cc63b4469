"""Fetch-or-populate (cache-aside) wrapper used by every cached endpoint.

resolve(key, ttl, producer):
  1. lookup(key); any non-absent value (including [] or 0) is a hit.
  2. On miss, call producer once and time it.
  3. Store non-None results; a failed store does not affect the result.
  4. If the lookup itself blows up, call producer directly (degraded).

Producer exceptions always propagate unchanged: when the source fails,
callers must see that failure, not an empty value. With single_flight on,
concurrent misses on one key share a single producer call.
"""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from app.core.constants import DURABLE_ENDPOINT_GENERIC
from app.infrastructure.cache.coalescer import RequestCoalescer
from app.infrastructure.cache.engine import TieredCache
from app.infrastructure.cache.results import Origin, ResolveResult

logger = logging.getLogger(__name__)

Producer = Callable[[], Awaitable[Any] | Any]


async def _call_producer(producer: Producer) -> Any:
    """Call producer; await the result when it is a coroutine/awaitable."""
    result = producer()
    if inspect.isawaitable(result):
        result = await result
    return result


class CacheAside:
    """Cache-aside orchestration on top of a TieredCache."""

    def __init__(self, cache: TieredCache, *, single_flight: bool = True) -> None:
        self._cache = cache
        self._coalescer = RequestCoalescer() if single_flight else None
        self._stats = {
            "hits": 0,
            "misses": 0,
            "producer_calls": 0,
            "coalesced": 0,
            "degraded": 0,
            "store_failures": 0,
        }

    @property
    def single_flight(self) -> bool:
        return self._coalescer is not None

    async def resolve(
        self,
        key: str,
        ttl: int | None,
        producer: Producer,
        *,
        endpoint: str = DURABLE_ENDPOINT_GENERIC,
    ) -> ResolveResult:
        """Return the cached value for key, or produce, store, and return it.

        Args:
            key: Cache key (see TieredCache.derive_key).
            ttl: Seconds to keep a fresh value; None uses the engine default.
            producer: Zero-arg callable (sync or async) computing the value.
            endpoint: Label stored with durable rows.

        Raises:
            Any exception raised by producer.
        """
        try:
            lookup = await self._cache.lookup(key)
        except Exception:
            logger.exception("Cache wrapper error for key %s; fetching directly", key)
            self._stats["degraded"] += 1
            start = time.perf_counter()
            value = await self._produce(producer)
            return ResolveResult(
                value=value,
                origin=Origin.FRESH,
                fetch_duration_ms=(time.perf_counter() - start) * 1000,
                degraded=True,
            )

        if lookup.hit:
            self._stats["hits"] += 1
            logger.debug("Cache HIT for key: %s (%s)", key, lookup.tier)
            return ResolveResult(value=lookup.value, origin=Origin.CACHE)

        self._stats["misses"] += 1
        if lookup.degraded:
            self._stats["degraded"] += 1
        logger.debug("Cache MISS for key: %s, fetching fresh data", key)

        async def fetch() -> tuple[Any, float, bool]:
            return await self._fetch_and_store(key, ttl, producer, endpoint)

        if self._coalescer is not None:
            (value, duration_ms, stored), shared = await self._coalescer.run(key, fetch)
            if shared:
                self._stats["coalesced"] += 1
        else:
            (value, duration_ms, stored), shared = await fetch(), False

        return ResolveResult(
            value=value,
            origin=Origin.FRESH,
            fetch_duration_ms=duration_ms,
            degraded=lookup.degraded,
            stored=stored,
            coalesced=shared,
        )

    async def _produce(self, producer: Producer) -> Any:
        self._stats["producer_calls"] += 1
        return await _call_producer(producer)

    async def _fetch_and_store(
        self,
        key: str,
        ttl: int | None,
        producer: Producer,
        endpoint: str,
    ) -> tuple[Any, float, bool]:
        start = time.perf_counter()
        value = await self._produce(producer)
        duration_ms = (time.perf_counter() - start) * 1000

        stored = False
        if value is not None:
            try:
                stored = bool((await self._cache.set_result(key, value, ttl, endpoint)).value)
            except Exception:
                logger.exception("Cache store failed for key %s", key)
            if stored:
                logger.debug("Cached data for key: %s (fetch time: %.1fms)", key, duration_ms)
            else:
                self._stats["store_failures"] += 1
        return value, duration_ms, stored

    def get_stats(self) -> dict[str, Any]:
        """Hit/miss counters and hit rate for this process."""
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / total * 100) if total else 0.0
        stats: dict[str, Any] = {
            **self._stats,
            "hit_rate_percent": round(hit_rate, 1),
            "single_flight": self.single_flight,
        }
        if self._coalescer is not None:
            stats["coalescer"] = self._coalescer.get_stats()
        return stats
