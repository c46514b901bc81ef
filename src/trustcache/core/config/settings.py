#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
trust analysis cache. All configuration is centralized here to ensure
consistency across modules.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- IDE autocomplete for all settings
- Easy testing with override mechanisms
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trustcache.core.config.constants import (
    ANALYSIS_CACHE_TTL,
    CHALLENGE_CACHE_TTL,
    EXPIRY_SWEEP_INTERVAL,
    FAST_CACHE_MAX_SIZE,
    REDIS_CONNECT_TIMEOUT,
    REDIS_MAX_ATTEMPTS,
    REDIS_RETRY_MAX_DELAY,
    REDIS_SOCKET_TIMEOUT,
    TIER_OPERATION_TIMEOUT,
    TIER_UNAVAILABLE_COOLDOWN,
)


class RedisSettings(BaseSettings):
    """
    Redis configuration for the distributed cache tier.

    The connection is opened lazily on the first real operation.
    Connect timeout and per-request retries are bounded.
    """

    REDIS_URL: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(
        default=REDIS_SOCKET_TIMEOUT, description="Per-command socket timeout in seconds"
    )
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(
        default=REDIS_CONNECT_TIMEOUT, description="Connection timeout in seconds"
    )
    REDIS_MAX_ATTEMPTS: int = Field(default=REDIS_MAX_ATTEMPTS, description="Attempts per request")
    REDIS_RETRY_MAX_DELAY: float = Field(
        default=REDIS_RETRY_MAX_DELAY, description="Backoff cap between attempts in seconds"
    )
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class DatabaseSettings(BaseSettings):
    """
    Persistent tier configuration.

    Any SQLAlchemy URL works; SQLite is the default for local development.
    """

    DATABASE_URL: str = Field(default="sqlite:///./trust_cache.db", description="SQLAlchemy database URL")
    DATABASE_ECHO: bool = Field(default=False, description="Log every SQL statement")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Caching configuration for the multi-tier caching strategy.

    Analysis results are expensive (one LLM call per article) and stable,
    so they live for 24 hours. Challenges are regenerated hourly.
    """

    ENABLE_CACHING: bool = Field(default=True, description="Master switch for all cache tiers")
    CACHE_ANALYSIS_TTL: int = Field(default=ANALYSIS_CACHE_TTL, description="Analysis TTL (24 hours)")
    CACHE_CHALLENGE_TTL: int = Field(default=CHALLENGE_CACHE_TTL, description="Challenge TTL (1 hour)")
    CACHE_FAST_MAX_SIZE: int = Field(default=FAST_CACHE_MAX_SIZE, description="Fast tier max entries")
    CACHE_SWEEP_INTERVAL: int = Field(
        default=EXPIRY_SWEEP_INTERVAL, description="Expired entry sweep interval in seconds"
    )
    CACHE_TIER_TIMEOUT: float = Field(
        default=TIER_OPERATION_TIMEOUT, description="Upper bound for a single tier operation"
    )
    CACHE_UNAVAILABLE_COOLDOWN: float = Field(
        default=TIER_UNAVAILABLE_COOLDOWN, description="Seconds a failed backend is skipped"
    )
    ENABLE_DISTRIBUTED_TIER: bool = Field(default=True, description="Use Redis tier")
    ENABLE_PERSISTENT_TIER: bool = Field(default=True, description="Use database tier")

    @field_validator("CACHE_ANALYSIS_TTL", "CACHE_CHALLENGE_TTL", "CACHE_FAST_MAX_SIZE")
    @classmethod
    def validate_positive(cls, v):
        """TTLs and sizes must be positive."""
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """General application settings."""

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Trust Analysis Cache", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        from trustcache.core.config.settings import get_settings

        settings = get_settings()
        redis_url = settings.redis.REDIS_URL
        analysis_ttl = settings.cache.CACHE_ANALYSIS_TTL
    """

    # Redis settings
    REDIS_URL: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(
        default=REDIS_SOCKET_TIMEOUT, description="Per-command socket timeout in seconds"
    )
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(
        default=REDIS_CONNECT_TIMEOUT, description="Connection timeout in seconds"
    )
    REDIS_MAX_ATTEMPTS: int = Field(default=REDIS_MAX_ATTEMPTS, description="Attempts per request")
    REDIS_RETRY_MAX_DELAY: float = Field(
        default=REDIS_RETRY_MAX_DELAY, description="Backoff cap between attempts in seconds"
    )
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    # Database settings
    DATABASE_URL: str = Field(default="sqlite:///./trust_cache.db", description="SQLAlchemy database URL")
    DATABASE_ECHO: bool = Field(default=False, description="Log every SQL statement")

    # Cache settings
    ENABLE_CACHING: bool = Field(default=True, description="Master switch for all cache tiers")
    CACHE_ANALYSIS_TTL: int = Field(default=ANALYSIS_CACHE_TTL, description="Analysis TTL (24 hours)")
    CACHE_CHALLENGE_TTL: int = Field(default=CHALLENGE_CACHE_TTL, description="Challenge TTL (1 hour)")
    CACHE_FAST_MAX_SIZE: int = Field(default=FAST_CACHE_MAX_SIZE, description="Fast tier max entries")
    CACHE_SWEEP_INTERVAL: int = Field(
        default=EXPIRY_SWEEP_INTERVAL, description="Expired entry sweep interval in seconds"
    )
    CACHE_TIER_TIMEOUT: float = Field(
        default=TIER_OPERATION_TIMEOUT, description="Upper bound for a single tier operation"
    )
    CACHE_UNAVAILABLE_COOLDOWN: float = Field(
        default=TIER_UNAVAILABLE_COOLDOWN, description="Seconds a failed backend is skipped"
    )
    ENABLE_DISTRIBUTED_TIER: bool = Field(default=True, description="Use Redis tier")
    ENABLE_PERSISTENT_TIER: bool = Field(default=True, description="Use database tier")

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Trust Analysis Cache", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    # Nested configuration objects
    @property
    def redis(self) -> 'RedisSettings':
        """Get Redis settings."""
        return RedisSettings(
            REDIS_URL=self.REDIS_URL,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_MAX_ATTEMPTS=self.REDIS_MAX_ATTEMPTS,
            REDIS_RETRY_MAX_DELAY=self.REDIS_RETRY_MAX_DELAY,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
        )

    @property
    def database(self) -> 'DatabaseSettings':
        """Get database settings."""
        return DatabaseSettings(
            DATABASE_URL=self.DATABASE_URL,
            DATABASE_ECHO=self.DATABASE_ECHO,
        )

    @property
    def cache(self) -> 'CacheSettings':
        """Get cache settings."""
        return CacheSettings(
            ENABLE_CACHING=self.ENABLE_CACHING,
            CACHE_ANALYSIS_TTL=self.CACHE_ANALYSIS_TTL,
            CACHE_CHALLENGE_TTL=self.CACHE_CHALLENGE_TTL,
            CACHE_FAST_MAX_SIZE=self.CACHE_FAST_MAX_SIZE,
            CACHE_SWEEP_INTERVAL=self.CACHE_SWEEP_INTERVAL,
            CACHE_TIER_TIMEOUT=self.CACHE_TIER_TIMEOUT,
            CACHE_UNAVAILABLE_COOLDOWN=self.CACHE_UNAVAILABLE_COOLDOWN,
            ENABLE_DISTRIBUTED_TIER=self.ENABLE_DISTRIBUTED_TIER,
            ENABLE_PERSISTENT_TIER=self.ENABLE_PERSISTENT_TIER,
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(
            LOG_LEVEL=self.LOG_LEVEL,
            LOG_FORMAT=self.LOG_FORMAT,
        )

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
