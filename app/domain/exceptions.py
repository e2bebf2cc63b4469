"""Domain exceptions for the proxy cache.

Cache-tier errors (TierUnavailableError, SerializationError,
DurableUnavailableError) are raised by tier adapters and absorbed at the
cache engine boundary; they never reach route handlers. Presentation layer
maps the remaining ones to HTTP responses in exception handlers.
"""

from typing import Any

from app.core.constants import TIER_DURABLE, TIER_FAST


class ProxyCacheException(Exception):
    """Base exception for all application errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. key, tier).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON error responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class CacheError(ProxyCacheException):
    """Failure inside a cache tier. Never propagated to cache callers."""

    def __init__(
        self,
        message: str,
        tier: str,
        error_code: str | None = None,
        key: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"tier": tier}
        if key is not None:
            details["key"] = key
        self.tier = tier
        self.key = key
        super().__init__(message, error_code, details)


class TierUnavailableError(CacheError):
    """Fast-tier connection or protocol error. Disables the fast tier."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message, TIER_FAST, "TIER_UNAVAILABLE", key)


class SerializationError(CacheError):
    """Cached payload could not be encoded or decoded as JSON."""

    def __init__(self, message: str, tier: str, key: str | None = None) -> None:
        super().__init__(message, tier, "SERIALIZATION_ERROR", key)


class DurableUnavailableError(CacheError):
    """Durable-store query failed (read treated as miss, write as failed)."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message, TIER_DURABLE, "DURABLE_UNAVAILABLE", key)


class CacheNotConfiguredException(ProxyCacheException):
    """Raised when an operational endpoint needs the cache but none is wired."""

    def __init__(self) -> None:
        super().__init__(
            message="The cache service is not configured for this application.",
            error_code="SERVICE_UNAVAILABLE",
        )


class ValidationException(ProxyCacheException):
    """Raised when input validation fails (e.g. empty endpoint id)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)
