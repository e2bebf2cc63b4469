"""Persistence: async engine, session factory, and Base for SQLAlchemy ORM.

Engine and session factory are created lazily on first use (_ensure_engine)
so import does not trigger Settings validation. The durable cache keeps a
reference to the session factory and opens one short session per operation.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Set by _ensure_engine() on first use; avoids get_settings() at import time.
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with driver-appropriate pool settings.

    In-memory SQLite needs a single shared connection (StaticPool), otherwise
    every pooled connection would see its own empty database.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url.endswith("://"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(pool_pre_ping=True, pool_size=10, max_overflow=20, pool_recycle=3600)
    return create_async_engine(database_url, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def _ensure_engine() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create engine and AsyncSessionLocal on first use."""
    global engine, AsyncSessionLocal
    if engine is None or AsyncSessionLocal is None:
        settings = get_settings()
        engine = build_engine(settings.database_url, echo=settings.database_echo)
        AsyncSessionLocal = build_session_factory(engine)
    return engine, AsyncSessionLocal


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory (created on first call)."""
    return _ensure_engine()[1]


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create tables that do not exist yet (CREATE TABLE IF NOT EXISTS semantics)."""
    import app.infrastructure.persistence.models  # noqa: F401  (register models)

    target = bind if bind is not None else _ensure_engine()[0]
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Dispose the process-wide engine (shutdown)."""
    global engine, AsyncSessionLocal
    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")
    engine = None
    AsyncSessionLocal = None
