"""Durable cache store (SQL). Implements DurableStoreProtocol.

One short session per operation, taken from a shared async_sessionmaker, so
the store is safe to share across concurrent requests. Every SQL or driver
error is raised as DurableUnavailableError; the cache engine absorbs it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import case, delete, func, or_, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.constants import DURABLE_ENDPOINT_GENERIC
from app.domain.exceptions import DurableUnavailableError
from app.infrastructure.cache.cache_protocol import DurableRecord
from app.infrastructure.persistence.models.api_cache import ApiCacheEntry
from app.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class SqlCacheStore:
    """api_cache table access: point lookup, upsert, delete, sweep, stats."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(
        self, operation: str, key: str | None = None, *, write: bool = False
    ) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                if write:
                    async with session.begin():
                        yield session
                else:
                    yield session
        except (SQLAlchemyError, OSError) as e:
            raise DurableUnavailableError(
                f"Durable cache {operation} failed: {e}", key=key
            ) from e

    async def get_by_key(self, key: str) -> DurableRecord | None:
        """Return the row for key whether or not it has expired (caller checks)."""
        async with self._session("get", key) as session:
            result = await session.execute(
                select(ApiCacheEntry.data, ApiCacheEntry.expires_at).where(
                    ApiCacheEntry.cache_key == key
                )
            )
            row = result.one_or_none()
        if row is None:
            return None
        return DurableRecord(key=key, value=row.data, expires_at=row.expires_at)

    async def upsert(
        self,
        key: str,
        value: str,
        expires_at: datetime,
        endpoint: str = DURABLE_ENDPOINT_GENERIC,
    ) -> None:
        """Insert or overwrite the row for key (last write wins)."""
        try:
            await self._upsert_once(key, value, expires_at, endpoint)
        except DurableUnavailableError as e:
            # A concurrent insert of the same new key won the race: overwrite it.
            if not isinstance(e.__cause__, IntegrityError):
                raise
            await self._upsert_once(key, value, expires_at, endpoint)

    async def _upsert_once(
        self, key: str, value: str, expires_at: datetime, endpoint: str
    ) -> None:
        async with self._session("upsert", key, write=True) as session:
            result = await session.execute(
                select(ApiCacheEntry).where(ApiCacheEntry.cache_key == key)
            )
            entry = result.scalar_one_or_none()
            if entry is None:
                session.add(
                    ApiCacheEntry(
                        endpoint=endpoint,
                        cache_key=key,
                        data=value,
                        expires_at=expires_at,
                    )
                )
            else:
                entry.endpoint = endpoint
                entry.data = value
                entry.expires_at = expires_at

    async def delete_by_key(self, key: str) -> bool:
        async with self._session("delete", key, write=True) as session:
            result = await session.execute(
                delete(ApiCacheEntry).where(ApiCacheEntry.cache_key == key)
            )
            removed = bool(result.rowcount)
        return removed

    async def purge_expired(self, now: datetime) -> int:
        """Delete rows whose expires_at is at or before now."""
        async with self._session("purge", write=True) as session:
            result = await session.execute(
                delete(ApiCacheEntry).where(
                    ApiCacheEntry.expires_at.is_not(None),
                    ApiCacheEntry.expires_at <= now,
                )
            )
            count = result.rowcount or 0
        if count:
            logger.info("Durable cache purge removed %s expired row(s)", count)
        return count

    async def stats(self, now: datetime) -> dict[str, Any]:
        """Row counts: total, active (not expired), expired, and active ratio."""
        live = or_(ApiCacheEntry.expires_at.is_(None), ApiCacheEntry.expires_at > now)
        async with self._session("stats") as session:
            result = await session.execute(
                select(
                    func.count(ApiCacheEntry.id),
                    func.coalesce(func.sum(case((live, 1), else_=0)), 0),
                )
            )
            total, active = result.one()
        total, active = int(total or 0), int(active or 0)
        return {
            "total_entries": total,
            "active_entries": active,
            "expired_entries": total - active,
            "active_ratio_percent": round(active / total * 100, 2) if total else 0.0,
        }

    async def ping(self) -> bool:
        async with self._session("ping") as session:
            await session.execute(text("SELECT 1"))
        return True
