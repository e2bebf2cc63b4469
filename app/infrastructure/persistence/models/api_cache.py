"""Durable cache row: one live entry per cache_key (set overwrites)."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.infrastructure.persistence.database import Base
from app.infrastructure.persistence.models.mixins import IntegerIdMixin, TimestampMixin


class ApiCacheEntry(IntegerIdMixin, TimestampMixin, Base):
    """Serialized response for a cache key. Expired rows stay until swept but are never served."""

    __tablename__ = "api_cache"

    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    cache_key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
