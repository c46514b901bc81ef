"""
Base Exception Class

This module contains ONLY the base exception class that all other exceptions inherit from.
All specialized exceptions are in their respective themed modules.
"""

from typing import Any


class TrustCacheError(Exception):
    """
    Base exception for all trust cache errors.

    Attributes:
        message: Error message
        cache_key: Cache key involved (if any)
        details: Additional error details (dict)

    Example:
        raise TierOperationError(
            "Redis GET failed",
            cache_key="analysis:aHR0cHM6Ly9h",
            details={"tier": "redis", "error": "timeout"}
        )
    """

    def __init__(
        self, message: str, cache_key: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.cache_key = cache_key
        self.details = (details or {}).copy()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/API responses.

        Returns:
            Dict with error_type, message, cache_key, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "cache_key": self.cache_key,
            "details": self.details,
        }

    def with_context(self, **context) -> "TrustCacheError":
        """
        Add additional context to the error details.

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        details_str = f", details={self.details}" if self.details else ""
        key_str = f", cache_key='{self.cache_key}'" if self.cache_key else ""
        return f"{self.__class__.__name__}(message='{self.message}'{key_str}{details_str})"

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        message: str | None = None,
        cache_key: str | None = None,
        **details
    ) -> "TrustCacheError":
        """
        Wrap a third-party exception with additional context.

        Example:
            >>> try:
            ...     await redis.get(key)
            ... except redis.ConnectionError as e:
            ...     raise TierOperationError.from_exception(e, cache_key=key, tier="redis")
        """
        error_message = message or str(exc)
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **details
        }
        return cls(error_message, cache_key=cache_key, details=error_details)


class ConfigurationError(TrustCacheError):
    """Raised when configuration or a cache policy is invalid."""
    pass
