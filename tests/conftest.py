"""Pytest configuration and fixtures for the proxy cache.

In-memory fakes stand in for the Redis client and the durable store so
engine/wrapper tests need no servers. Durable-store integration tests use
an in-memory aiosqlite database. HTTP tests use app.main:app with a
CacheService placed on app.state (lifespan is not run by ASGITransport).
"""

import fnmatch
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient

from app.domain.exceptions import DurableUnavailableError
from app.infrastructure.cache.cache_protocol import DurableRecord
from app.infrastructure.cache.engine import TieredCache
from app.infrastructure.cache.redis_cache import RedisFastTier
from app.infrastructure.cache.service import CacheService
from app.infrastructure.persistence.database import (
    build_engine,
    build_session_factory,
    create_tables,
)
from app.infrastructure.persistence.repositories import SqlCacheStore
from app.main import app


class FakeClock:
    """Settable clock for the engine (advance() simulates time passing)."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeRedis:
    """Subset of redis.asyncio.Redis used by RedisFastTier (decode_responses=True).

    Set broken=True to make every call raise redis.ConnectionError. TTLs are
    recorded but not enforced.
    """

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.broken = False
        self.calls: list[str] = []
        self.closed = False

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if self.broken:
            raise redis.ConnectionError("Connection refused")

    async def ping(self) -> bool:
        self._check("ping")
        return True

    async def get(self, key: str) -> str | None:
        self._check("get")
        return self.data.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._check("setex")
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        self._check("delete")
        return sum(1 for k in keys if self.data.pop(k, None) is not None)

    async def unlink(self, *keys: str) -> int:
        self._check("unlink")
        return sum(1 for k in keys if self.data.pop(k, None) is not None)

    async def scan_iter(self, match: str | None = None):
        self._check("scan")
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def info(self, section: str | None = None) -> dict[str, Any]:
        self._check("info")
        return {"used_memory": 1024, "used_memory_human": "1.00K"}

    async def dbsize(self) -> int:
        self._check("dbsize")
        return len(self.data)

    async def aclose(self) -> None:
        self.closed = True


class FakeDurableStore:
    """In-memory DurableStoreProtocol. Set broken=True to fail every call."""

    def __init__(self) -> None:
        self.rows: dict[str, DurableRecord] = {}
        self.endpoints: dict[str, str] = {}
        self.broken = False

    def _check(self, key: str | None = None) -> None:
        if self.broken:
            raise DurableUnavailableError("database is locked", key=key)

    async def get_by_key(self, key: str) -> DurableRecord | None:
        self._check(key)
        return self.rows.get(key)

    async def upsert(
        self, key: str, value: str, expires_at: datetime, endpoint: str = "generic"
    ) -> None:
        self._check(key)
        self.rows[key] = DurableRecord(key=key, value=value, expires_at=expires_at)
        self.endpoints[key] = endpoint

    async def delete_by_key(self, key: str) -> bool:
        self._check(key)
        return self.rows.pop(key, None) is not None

    async def purge_expired(self, now: datetime) -> int:
        self._check()
        expired = [
            k for k, r in self.rows.items() if r.expires_at is not None and r.expires_at <= now
        ]
        for k in expired:
            del self.rows[k]
        return len(expired)

    async def stats(self, now: datetime) -> dict[str, Any]:
        self._check()
        total = len(self.rows)
        active = sum(1 for r in self.rows.values() if r.expires_at is None or r.expires_at > now)
        return {"total_entries": total, "active_entries": active, "expired_entries": total - active}

    async def ping(self) -> bool:
        self._check()
        return True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fast_tier(fake_redis: FakeRedis) -> RedisFastTier:
    """RedisFastTier over the in-memory fake client."""
    return RedisFastTier(fake_redis)


@pytest.fixture
def durable_store() -> FakeDurableStore:
    return FakeDurableStore()


@pytest.fixture
def tiered_cache(
    fast_tier: RedisFastTier, durable_store: FakeDurableStore, clock: FakeClock
) -> TieredCache:
    """Both tiers active, fast tier enabled, fake clock."""
    return TieredCache(
        fast_tier,
        durable_store,
        default_ttl=3600,
        key_prefix="test:",
        clock=clock,
        fast_tier_enabled=True,
    )


@pytest.fixture
def durable_only_cache(durable_store: FakeDurableStore, clock: FakeClock) -> TieredCache:
    """No fast tier configured; durable store only."""
    return TieredCache(None, durable_store, key_prefix="test:", clock=clock)


@pytest.fixture
def cache_service(tiered_cache: TieredCache) -> CacheService:
    return CacheService(tiered_cache, cleanup_interval_seconds=60)


@pytest.fixture
async def sql_store():
    """SqlCacheStore on a fresh in-memory SQLite database (dropped after the test)."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(bind=engine)
    yield SqlCacheStore(build_session_factory(engine))
    await engine.dispose()


@pytest.fixture
async def client(cache_service: CacheService) -> AsyncClient:
    """Async HTTP client against the FastAPI app (ASGI) with a fake-backed cache."""
    app.state.cache = cache_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.cache = None


@pytest.fixture
async def client_without_cache() -> AsyncClient:
    """Async HTTP client against the app with no CacheService wired."""
    app.state.cache = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
