"""Redis adapter for the fast cache tier.

Thin async wrapper over redis.asyncio implementing FastTierProtocol. Every
Redis failure is raised as TierUnavailableError; the engine decides what to
do with it (disable the tier, fall back). No automatic reconnect here:
reconnection is an explicit event driven by the cache service.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import redis.asyncio as redis

from app.core.config import Settings
from app.core.constants import CLEAR_PATTERN_CHUNK_SIZE
from app.domain.exceptions import TierUnavailableError

logger = logging.getLogger(__name__)


class RedisFastTier:
    """Async Redis client wrapper with TTL-native writes.

    Pass redis_client for testing or DI; otherwise connect() builds one from
    the connection parameters.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        *,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: str | None = None,
        socket_timeout: float = 5.0,
    ) -> None:
        self.redis = redis_client
        self.host = host
        self.port = port
        self.db = db
        self._password = password
        self._socket_timeout = socket_timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> RedisFastTier:
        """Build an unconnected adapter from REDIS_* settings."""
        return cls(
            host=settings.redis_host or "localhost",
            port=settings.redis_port,
            db=settings.redis_db,
            password=(
                settings.redis_password.get_secret_value()
                if settings.redis_password
                else None
            ),
            socket_timeout=settings.redis_socket_timeout,
        )

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}/{self.db}"

    async def connect(self) -> bool:
        """Create the client if needed and ping it. Returns True when usable."""
        if self.redis is None:
            self.redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self._password,
                decode_responses=True,
                socket_connect_timeout=self._socket_timeout,
                socket_timeout=self._socket_timeout,
                socket_keepalive=True,
            )
        try:
            await self.redis.ping()
        except (redis.RedisError, OSError) as e:
            logger.warning("Redis connection failed (%s): %s", self.address, e)
            return False
        logger.info("Redis cache connected: %s", self.address)
        return True

    async def close(self) -> None:
        """Close the client. Errors on close are logged, not raised."""
        if self.redis is None:
            return
        try:
            await self.redis.aclose()
            logger.info("Redis cache disconnected")
        except (redis.RedisError, OSError) as e:
            logger.warning("Error while closing Redis client: %s", e)
        finally:
            self.redis = None

    @contextmanager
    def _errors(self, operation: str, key: str | None = None) -> Iterator[None]:
        """Translate Redis/socket errors into TierUnavailableError."""
        try:
            yield
        except (redis.RedisError, OSError) as e:
            raise TierUnavailableError(f"Redis {operation} failed: {e}", key=key) from e

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise TierUnavailableError("Redis client is not connected")
        return self.redis

    async def ping(self) -> bool:
        client = self._client()
        with self._errors("ping"):
            return bool(await client.ping())

    async def get(self, key: str) -> str | None:
        client = self._client()
        with self._errors("get", key):
            return await client.get(key)

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        client = self._client()
        with self._errors("setex", key):
            await client.setex(key, ttl_seconds, value)

    async def delete(self, key: str) -> int:
        client = self._client()
        with self._errors("delete", key):
            return int(await client.delete(key) or 0)

    async def keys_matching(self, pattern: str) -> list[str]:
        """Collect keys via SCAN (non-blocking, unlike KEYS)."""
        client = self._client()
        with self._errors("scan"):
            return [key async for key in client.scan_iter(match=pattern)]

    async def delete_many(self, keys: list[str]) -> int:
        """UNLINK keys in chunks; returns number removed."""
        if not keys:
            return 0
        client = self._client()
        deleted = 0
        with self._errors("unlink"):
            for start in range(0, len(keys), CLEAR_PATTERN_CHUNK_SIZE):
                chunk = keys[start : start + CLEAR_PATTERN_CHUNK_SIZE]
                deleted += int(await client.unlink(*chunk) or 0)
        return deleted

    async def info(self, section: str | None = None) -> str:
        """Return the raw INFO text (redis-py parses it; we re-render lines)."""
        client = self._client()
        with self._errors("info"):
            parsed = await client.info(section) if section else await client.info()
        return "\n".join(f"{name}:{value}" for name, value in parsed.items())

    async def key_count(self) -> int:
        client = self._client()
        with self._errors("dbsize"):
            return int(await client.dbsize())
