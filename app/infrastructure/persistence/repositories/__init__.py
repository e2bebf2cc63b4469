"""Repositories: SQL-backed stores used by the infrastructure layer."""

from app.infrastructure.persistence.repositories.cache_entry_repo import SqlCacheStore

__all__ = ["SqlCacheStore"]
