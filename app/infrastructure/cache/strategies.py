"""Path-prefix cache strategies (TTL + priority per endpoint family).

Resolution is first match in table declaration order, where a match means
path.startswith(prefix). Order the table most-specific first: "/" matches
everything, so it belongs last. Unmatched paths get DEFAULT_STRATEGY.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from app.infrastructure.cache.keys import canonical_json


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True, slots=True)
class CacheStrategy:
    """TTL and priority applied to one endpoint family."""

    ttl_seconds: int
    priority: Priority = Priority.MEDIUM

    def to_dict(self) -> dict[str, Any]:
        return {"ttl": self.ttl_seconds, "priority": self.priority.value}


StrategyTable = Sequence[tuple[str, CacheStrategy]]

DEFAULT_STRATEGY = CacheStrategy(ttl_seconds=300, priority=Priority.MEDIUM)  # 5 minutes

DEFAULT_STRATEGY_TABLE: tuple[tuple[str, CacheStrategy], ...] = (
    # Clinic dashboards (TopCare)
    ("/api/", CacheStrategy(1800, Priority.MEDIUM)),
    # Property rental dashboards
    ("/erbil-avenue/", CacheStrategy(1800, Priority.MEDIUM)),
    # Odoo XML-RPC proxies: 3 hours
    ("/odoo/", CacheStrategy(10800, Priority.HIGH)),
    # Monthly/quarterly extraction
    ("/extract/", CacheStrategy(10800, Priority.LOW)),
    # Root/health
    ("/", CacheStrategy(60, Priority.LOW)),
)

# Payloads at or above this size are cached only when requested repeatedly
DEFAULT_MAX_CACHEABLE_BYTES = 1024 * 1024


def resolve_strategy(
    path: str,
    table: StrategyTable = DEFAULT_STRATEGY_TABLE,
    default: CacheStrategy = DEFAULT_STRATEGY,
) -> CacheStrategy:
    """Return the first strategy whose prefix matches path, else default."""
    for prefix, strategy in table:
        if path.startswith(prefix):
            return strategy
    return default


def smart_cache_ttl(
    path: str,
    payload: Any,
    frequency: int = 1,
    max_bytes: int = DEFAULT_MAX_CACHEABLE_BYTES,
    table: StrategyTable = DEFAULT_STRATEGY_TABLE,
    default: CacheStrategy = DEFAULT_STRATEGY,
) -> int | None:
    """TTL to cache payload with, or None when it should not be cached.

    A payload is worth caching when it is requested more than once or when
    its JSON encoding is under max_bytes.
    """
    size = len(canonical_json(payload).encode("utf-8"))
    if frequency <= 1 and size >= max_bytes:
        return None
    return resolve_strategy(path, table, default).ttl_seconds
