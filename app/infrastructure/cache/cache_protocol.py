"""Protocols for the two cache tiers (DIP).

The engine talks to the fast tier (Redis) and the durable store (SQL) only
through these. Values crossing either boundary are already-serialized JSON
text; tiers never interpret them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class DurableRecord:
    """A row read back from the durable store. expires_at None means no expiry."""

    key: str
    value: str
    expires_at: datetime | None


class FastTierProtocol(Protocol):
    """TTL-native remote key/value cache. Raises TierUnavailableError on failure."""

    async def ping(self) -> bool:
        """Return True if the server answers."""
        ...

    async def get(self, key: str) -> str | None:
        """Return raw value or None on miss."""
        ...

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value with native expiry."""
        ...

    async def delete(self, key: str) -> int:
        """Remove key; return number of keys removed."""
        ...

    async def keys_matching(self, pattern: str) -> list[str]:
        """Return keys matching a glob pattern."""
        ...

    async def delete_many(self, keys: list[str]) -> int:
        """Remove keys; return number removed."""
        ...

    async def info(self, section: str | None = None) -> str:
        """Return INFO text blob."""
        ...

    async def key_count(self) -> int:
        """Return number of keys in the logical database."""
        ...

    async def close(self) -> None:
        """Release the connection."""
        ...


class DurableStoreProtocol(Protocol):
    """Persistent key/value store with an expiry column.

    Raises DurableUnavailableError on query failure.
    """

    async def get_by_key(self, key: str) -> DurableRecord | None:
        """Return the row for key (expired or not) or None."""
        ...

    async def upsert(
        self, key: str, value: str, expires_at: datetime, endpoint: str = "generic"
    ) -> None:
        """Insert or overwrite the row for key."""
        ...

    async def delete_by_key(self, key: str) -> bool:
        """Remove the row for key; return True if one existed."""
        ...

    async def purge_expired(self, now: datetime) -> int:
        """Delete rows with expires_at <= now; return count removed."""
        ...

    async def stats(self, now: datetime) -> dict[str, Any]:
        """Return row counts and related metrics."""
        ...

    async def ping(self) -> bool:
        """Run a trivial query; return True on success."""
        ...
