"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, and default values.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from trustcache.core.config.settings import (
    CacheSettings,
    Settings,
    get_settings,
    reload_settings,
)


@pytest.mark.unit
class TestSettingsInitialization:
    """Test Settings class initialization and validation."""

    def test_settings_has_required_attribute_groups(self):
        settings = Settings()

        assert hasattr(settings, "app")
        assert hasattr(settings, "cache")
        assert hasattr(settings, "redis")
        assert hasattr(settings, "database")
        assert hasattr(settings, "logging")

    def test_cache_settings_defaults(self):
        """Analysis lives a day, challenges an hour, sweep every five minutes."""
        settings = Settings()

        assert settings.cache.CACHE_ANALYSIS_TTL == 86400
        assert settings.cache.CACHE_CHALLENGE_TTL == 3600
        assert settings.cache.CACHE_SWEEP_INTERVAL == 300
        assert settings.cache.CACHE_FAST_MAX_SIZE > 0
        assert settings.cache.ENABLE_CACHING is True

    def test_redis_settings_defaults(self):
        settings = Settings()

        assert settings.redis.REDIS_URL.startswith("redis://")
        assert settings.redis.REDIS_SOCKET_CONNECT_TIMEOUT == 1.0
        assert settings.redis.REDIS_SOCKET_TIMEOUT == 1.0
        assert settings.redis.REDIS_MAX_ATTEMPTS == 3
        assert settings.redis.REDIS_RETRY_MAX_DELAY == 0.5

    def test_database_settings_default_to_sqlite(self):
        settings = Settings()

        assert settings.database.DATABASE_URL.startswith("sqlite")
        assert settings.database.DATABASE_ECHO is False


@pytest.mark.unit
class TestSettingsLoading:
    """Test settings loading from environment variables."""

    def test_settings_load_from_env_vars(self):
        env_vars = {
            "APP_NAME": "TestApp",
            "ENVIRONMENT": "staging",
            "REDIS_URL": "redis://cache.internal:6380/2",
            "DATABASE_URL": "postgresql+psycopg://u:p@db/trust",
            "CACHE_ANALYSIS_TTL": "600",
            "ENABLE_PERSISTENT_TIER": "false",
        }

        with patch.dict(os.environ, env_vars):
            settings = Settings()

            assert settings.app.APP_NAME == "TestApp"
            assert settings.app.ENVIRONMENT == "staging"
            assert settings.redis.REDIS_URL == "redis://cache.internal:6380/2"
            assert settings.database.DATABASE_URL == "postgresql+psycopg://u:p@db/trust"
            assert settings.cache.CACHE_ANALYSIS_TTL == 600
            assert settings.cache.ENABLE_PERSISTENT_TIER is False

    def test_invalid_env_values_raise(self):
        with patch.dict(os.environ, {"CACHE_FAST_MAX_SIZE": "not_a_number"}):
            with pytest.raises(ValidationError):
                Settings()

    def test_log_level_is_normalized(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "debug"}):
            assert Settings().logging.LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "VERBOSE"}):
            with pytest.raises(ValidationError):
                Settings()

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ValidationError):
            CacheSettings(CACHE_ANALYSIS_TTL=0)


@pytest.mark.unit
class TestGetSettingsFunction:
    """Test the get_settings() function."""

    def test_get_settings_is_singleton(self):
        assert get_settings() is get_settings()

    def test_reload_settings_picks_up_env(self):
        try:
            with patch.dict(os.environ, {"APP_NAME": "Reloaded"}):
                assert reload_settings().app.APP_NAME == "Reloaded"
                assert get_settings().app.APP_NAME == "Reloaded"
        finally:
            reload_settings()
