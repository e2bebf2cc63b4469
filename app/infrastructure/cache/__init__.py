"""Cache: tiered engine (Redis fast tier + SQL durable store) and cache-aside.

Route handlers use CacheService (service.py); key format is in keys.py and
per-path TTLs in strategies.py.
"""

from app.infrastructure.cache.cache_aside import CacheAside
from app.infrastructure.cache.cache_protocol import (
    DurableRecord,
    DurableStoreProtocol,
    FastTierProtocol,
)
from app.infrastructure.cache.coalescer import RequestCoalescer
from app.infrastructure.cache.diagnostics import CacheDiagnostics, parse_redis_info
from app.infrastructure.cache.engine import TieredCache
from app.infrastructure.cache.keys import canonical_json, derive_key, endpoint_key
from app.infrastructure.cache.reclamation import ExpiredEntryReaper
from app.infrastructure.cache.redis_cache import RedisFastTier
from app.infrastructure.cache.results import CacheLookup, Origin, ResolveResult, TierResult
from app.infrastructure.cache.service import CacheService, cached
from app.infrastructure.cache.strategies import (
    DEFAULT_STRATEGY,
    DEFAULT_STRATEGY_TABLE,
    CacheStrategy,
    Priority,
    resolve_strategy,
    smart_cache_ttl,
)
from app.infrastructure.cache.tier_health import TierHealth, TierState

__all__ = [
    "DEFAULT_STRATEGY",
    "DEFAULT_STRATEGY_TABLE",
    "CacheAside",
    "CacheDiagnostics",
    "CacheLookup",
    "CacheService",
    "CacheStrategy",
    "DurableRecord",
    "DurableStoreProtocol",
    "ExpiredEntryReaper",
    "FastTierProtocol",
    "Origin",
    "Priority",
    "RedisFastTier",
    "RequestCoalescer",
    "ResolveResult",
    "TierHealth",
    "TierResult",
    "TierState",
    "TieredCache",
    "cached",
    "canonical_json",
    "derive_key",
    "endpoint_key",
    "parse_redis_info",
    "resolve_strategy",
    "smart_cache_ttl",
]
