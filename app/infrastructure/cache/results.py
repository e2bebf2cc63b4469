"""Internal result types for cache operations.

Tier calls return these instead of raising, so callers and tests can see
which failure mode occurred. The public engine API collapses them to
None / False / 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.domain.exceptions import CacheError


@dataclass(frozen=True, slots=True)
class TierResult:
    """Outcome of a single tier operation."""

    tier: str
    value: Any = None
    error: CacheError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class CacheLookup:
    """Outcome of a read across both tiers.

    hit is True only when some tier returned a live, decodable value; a
    cached empty list or 0 is a hit. degraded is True when no tier could
    answer cleanly (all attempted tiers failed, or none was active).
    """

    hit: bool = False
    value: Any = None
    tier: str | None = None
    attempted: list[str] = field(default_factory=list)
    errors: list[CacheError] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        if self.hit:
            return False
        return len(self.errors) >= len(self.attempted)


class Origin(str, Enum):
    """Where a resolved value came from."""

    CACHE = "cache"
    FRESH = "fresh"


@dataclass(frozen=True, slots=True)
class ResolveResult:
    """Return value of the fetch-or-populate wrapper."""

    value: Any
    origin: Origin
    fetch_duration_ms: float | None = None
    degraded: bool = False
    stored: bool = False
    coalesced: bool = False

    @property
    def from_cache(self) -> bool:
        return self.origin is Origin.CACHE

    def to_dict(self) -> dict[str, Any]:
        """Metadata for API responses (value excluded)."""
        data: dict[str, Any] = {
            "origin": self.origin.value,
            "degraded": self.degraded,
        }
        if self.fetch_duration_ms is not None:
            data["fetch_duration_ms"] = round(self.fetch_duration_ms, 2)
        if self.coalesced:
            data["coalesced"] = True
        return data
