"""Persistence models: ORM entities and mixins."""

from app.infrastructure.persistence.models.api_cache import ApiCacheEntry
from app.infrastructure.persistence.models.mixins import IntegerIdMixin, TimestampMixin

__all__ = ["ApiCacheEntry", "IntegerIdMixin", "TimestampMixin"]
