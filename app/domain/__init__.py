"""Domain layer: exceptions shared by the cache and presentation layers.

No dependencies on infrastructure or presentation.
"""

from app.domain.exceptions import (
    CacheError,
    CacheNotConfiguredException,
    DurableUnavailableError,
    ProxyCacheException,
    SerializationError,
    TierUnavailableError,
    ValidationException,
)

__all__ = [
    "CacheError",
    "CacheNotConfiguredException",
    "DurableUnavailableError",
    "ProxyCacheException",
    "SerializationError",
    "TierUnavailableError",
    "ValidationException",
]
