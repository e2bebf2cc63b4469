"""Tiered cache engine: fast tier (Redis) in front of a durable store (SQL).

Read order: fast tier if enabled; on miss or error, the durable store if
fallback is enabled (expired rows are never returned). Writes go to the fast
tier when enabled, else to the durable store. Any fast-tier error flips the
engine's TierHealth to DISABLED for the rest of the process (or until an
explicit reconnect), so a dead Redis costs one failed call, not one per
request.

Cache failures never propagate: the _*_result methods return TierResult /
CacheLookup objects carrying the error, and the public get/set/delete/
clear_pattern collapse them to None / False / 0.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from app.core.constants import DURABLE_ENDPOINT_GENERIC, TIER_DURABLE, TIER_FAST
from app.domain.exceptions import (
    CacheError,
    DurableUnavailableError,
    SerializationError,
    TierUnavailableError,
)
from app.infrastructure.cache.cache_protocol import (
    DurableStoreProtocol,
    FastTierProtocol,
)
from app.infrastructure.cache.keys import derive_key, endpoint_key
from app.infrastructure.cache.results import CacheLookup, TierResult
from app.infrastructure.cache.tier_health import TierHealth, TierState
from app.shared.utils.datetime import ensure_utc, expires_after, utc_now

logger = logging.getLogger(__name__)


def _as_cache_error(exc: Exception, tier: str, key: str | None) -> CacheError:
    """Normalize anything an adapter raised into a CacheError for the tier."""
    if isinstance(exc, CacheError):
        return exc
    if tier == TIER_FAST:
        return TierUnavailableError(f"{type(exc).__name__}: {exc}", key=key)
    return DurableUnavailableError(f"{type(exc).__name__}: {exc}", key=key)


class TieredCache:
    """Get/set/delete/clear across the fast tier and the durable store.

    Args:
        fast_tier: Redis adapter, or None to run durable-only.
        durable: Durable store adapter, or None (fallback then has nowhere to go).
        default_ttl: TTL in seconds used when set() gets ttl=None.
        key_prefix: Namespace prefix for derived keys and pattern clears.
        fallback_to_durable: Whether the durable store is used at all.
        clock: Returns the current UTC datetime; injectable for tests.
        fast_tier_enabled: Initial tier state (normally set by connect()).
    """

    def __init__(
        self,
        fast_tier: FastTierProtocol | None = None,
        durable: DurableStoreProtocol | None = None,
        *,
        default_ttl: int = 3600,
        key_prefix: str = "proxy_server:",
        fallback_to_durable: bool = True,
        clock: Callable[[], datetime] = utc_now,
        fast_tier_enabled: bool = False,
    ) -> None:
        self.fast_tier = fast_tier
        self.durable = durable
        self.default_ttl = default_ttl
        self.key_prefix = key_prefix
        self.fallback_to_durable = fallback_to_durable
        self.clock = clock
        self.health = TierHealth(
            TierState.ENABLED
            if fast_tier is not None and fast_tier_enabled
            else TierState.DISABLED
        )

    # ---- State ----

    @property
    def fast_tier_enabled(self) -> bool:
        return self.fast_tier is not None and self.health.is_enabled

    @property
    def durable_enabled(self) -> bool:
        return self.fallback_to_durable and self.durable is not None

    def _active_fast(self) -> FastTierProtocol | None:
        return self.fast_tier if self.health.is_enabled else None

    def _active_durable(self) -> DurableStoreProtocol | None:
        return self.durable if self.fallback_to_durable else None

    def config(self) -> dict[str, Any]:
        return {
            "default_ttl": self.default_ttl,
            "key_prefix": self.key_prefix,
            "fallback_to_durable": self.fallback_to_durable,
        }

    async def reconnect(self) -> bool:
        """Explicit reconnect event: ping the fast tier and enable it on success."""
        if self.fast_tier is None:
            return False
        try:
            ok = await self.fast_tier.ping()
        except Exception as e:
            self.health.on_tier_error(e)
            return False
        if ok:
            self.health.on_reconnect()
        else:
            self.health.on_tier_error("ping returned a falsy reply")
        return self.health.is_enabled

    def mark_disconnected(self) -> None:
        self.health.on_disconnect()

    # ---- Keys ----

    def derive_key(self, endpoint: str, params: Mapping[str, Any] | None = None) -> str:
        """Derive a namespaced key (see keys.derive_key)."""
        return derive_key(endpoint, params, prefix=self.key_prefix)

    def endpoint_key(
        self,
        method: str,
        path: str,
        query: Mapping[str, Any] | None = None,
        body: Any = None,
        extra: Mapping[str, Any] | None = None,
    ) -> str:
        """Derive a namespaced key for an HTTP-shaped request."""
        return endpoint_key(method, path, query, body, extra, prefix=self.key_prefix)

    # ---- Serialization ----

    @staticmethod
    def _encode(key: str, value: Any, tier: str) -> str:
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Value is not JSON-serializable: {e}", tier, key) from e

    @staticmethod
    def _decode(key: str, raw: str, tier: str) -> Any:
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Corrupt cached payload: {e}", tier, key) from e

    def _fast_failed(self, exc: Exception, key: str | None) -> CacheError:
        error = _as_cache_error(exc, TIER_FAST, key)
        if isinstance(error, TierUnavailableError):
            self.health.on_tier_error(error)
        else:
            logger.warning("Fast tier %s for key %s", error.error_code, key)
        return error

    def _durable_failed(self, exc: Exception, key: str | None) -> CacheError:
        error = _as_cache_error(exc, TIER_DURABLE, key)
        logger.warning("Durable cache %s for key %s: %s", error.error_code, key, error.message)
        return error

    # ---- Tier operations (result style) ----

    async def _fast_get(self, fast: FastTierProtocol, key: str) -> TierResult:
        try:
            raw = await fast.get(key)
            if raw is None:
                return TierResult(TIER_FAST)
            return TierResult(TIER_FAST, value=self._decode(key, raw, TIER_FAST))
        except Exception as e:
            return TierResult(TIER_FAST, error=self._fast_failed(e, key))

    async def _durable_get(self, durable: DurableStoreProtocol, key: str) -> TierResult:
        try:
            record = await durable.get_by_key(key)
            if record is None:
                return TierResult(TIER_DURABLE)
            expires_at = ensure_utc(record.expires_at)
            if expires_at is not None and expires_at <= self.clock():
                logger.debug("Cache EXPIRED (durable): %s", key)
                return TierResult(TIER_DURABLE)
            return TierResult(TIER_DURABLE, value=self._decode(key, record.value, TIER_DURABLE))
        except Exception as e:
            return TierResult(TIER_DURABLE, error=self._durable_failed(e, key))

    async def _drop_durable_copy(self, key: str) -> None:
        # A fast-tier write supersedes any row left from an outage; lookup
        # falls through to durable on a fast miss and would serve it.
        if not self.durable_enabled:
            return
        try:
            await self.durable.delete_by_key(key)
        except Exception as e:
            self._durable_failed(e, key)

    async def lookup(self, key: str) -> CacheLookup:
        """Read key across tiers, reporting which tiers were tried and what failed."""
        lookup = CacheLookup()
        fast = self._active_fast()
        if fast is not None:
            lookup.attempted.append(TIER_FAST)
            result = await self._fast_get(fast, key)
            if result.ok and result.value is not None:
                lookup.hit, lookup.value, lookup.tier = True, result.value, TIER_FAST
                logger.debug("Cache HIT (fast): %s", key)
                return lookup
            if result.error is not None:
                lookup.errors.append(result.error)
        durable = self._active_durable()
        if durable is not None:
            lookup.attempted.append(TIER_DURABLE)
            result = await self._durable_get(durable, key)
            if result.ok and result.value is not None:
                lookup.hit, lookup.value, lookup.tier = True, result.value, TIER_DURABLE
                logger.debug("Cache HIT (durable): %s", key)
                return lookup
            if result.error is not None:
                lookup.errors.append(result.error)
        logger.debug("Cache MISS: %s", key)
        return lookup

    async def set_result(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
        endpoint: str = DURABLE_ENDPOINT_GENERIC,
    ) -> TierResult:
        """Write key to the active tier. ttl <= 0 stores an already-expired entry."""
        ttl_seconds = self.default_ttl if ttl is None else ttl
        fast = self._active_fast()
        if fast is not None:
            try:
                payload = self._encode(key, value, TIER_FAST)
                if ttl_seconds > 0:
                    await fast.set_with_ttl(key, payload, ttl_seconds)
                else:
                    await fast.delete(key)
                logger.debug("Cache SET (fast): %s (TTL: %ss)", key, ttl_seconds)
            except Exception as e:
                error = self._fast_failed(e, key)
                if isinstance(error, SerializationError) or not self.durable_enabled:
                    return TierResult(TIER_FAST, value=False, error=error)
            else:
                await self._drop_durable_copy(key)
                return TierResult(TIER_FAST, value=True)
        durable = self._active_durable()
        if durable is None:
            return TierResult(TIER_DURABLE, value=False)
        try:
            payload = self._encode(key, value, TIER_DURABLE)
            await durable.upsert(key, payload, expires_after(self.clock(), ttl_seconds), endpoint)
            logger.debug("Cache SET (durable): %s (TTL: %ss)", key, ttl_seconds)
            return TierResult(TIER_DURABLE, value=True)
        except Exception as e:
            return TierResult(TIER_DURABLE, value=False, error=self._durable_failed(e, key))

    async def delete_result(self, key: str) -> list[TierResult]:
        """Delete key from every active tier so no tier can resurrect it."""
        results: list[TierResult] = []
        fast = self._active_fast()
        if fast is not None:
            try:
                await fast.delete(key)
                results.append(TierResult(TIER_FAST, value=True))
            except Exception as e:
                results.append(TierResult(TIER_FAST, value=False, error=self._fast_failed(e, key)))
        durable = self._active_durable()
        if durable is not None:
            try:
                removed = await durable.delete_by_key(key)
                results.append(TierResult(TIER_DURABLE, value=removed))
            except Exception as e:
                results.append(
                    TierResult(TIER_DURABLE, value=False, error=self._durable_failed(e, key))
                )
        return results

    async def clear_pattern_result(self, pattern: str) -> TierResult:
        """Clear keys matching prefix+pattern on the fast tier.

        With only the durable fallback active this degrades to purging
        expired rows: the durable store has no pattern index.
        """
        fast = self._active_fast()
        if fast is not None:
            try:
                keys = await fast.keys_matching(f"{self.key_prefix}{pattern}")
                removed = await fast.delete_many(keys)
                if removed:
                    logger.info("Cache INVALIDATE: %s (%s keys)", pattern, removed)
                return TierResult(TIER_FAST, value=removed)
            except Exception as e:
                error = self._fast_failed(e, None)
                if not self.durable_enabled:
                    return TierResult(TIER_FAST, value=0, error=error)
        if self.durable_enabled:
            return await self.purge_expired_result()
        return TierResult(TIER_DURABLE, value=0)

    async def purge_expired_result(self) -> TierResult:
        """Delete expired durable rows (no-op without a durable store)."""
        if self.durable is None:
            return TierResult(TIER_DURABLE, value=0)
        try:
            removed = await self.durable.purge_expired(self.clock())
            if removed:
                logger.info("Cleared %s expired cache entries", removed)
            return TierResult(TIER_DURABLE, value=removed)
        except Exception as e:
            return TierResult(TIER_DURABLE, value=0, error=self._durable_failed(e, None))

    # ---- Public API (never raises) ----

    async def get(self, key: str) -> Any | None:
        """Return the cached value or None."""
        return (await self.lookup(key)).value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store value; return whether the write tier accepted it."""
        return bool((await self.set_result(key, value, ttl)).value)

    async def delete(self, key: str) -> bool:
        """Remove key; True if any active tier acknowledged the delete."""
        return any(r.ok and r.value for r in await self.delete_result(key))

    async def clear_pattern(self, pattern: str) -> int:
        """Remove keys matching pattern (durable fallback: expired rows). Returns count."""
        return int((await self.clear_pattern_result(pattern)).value or 0)

    async def purge_expired(self) -> int:
        return int((await self.purge_expired_result()).value or 0)
