"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import fnmatch
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from trustcache.core.config.constants import CacheNamespace
from trustcache.core.resilience import TierHealthGate
from trustcache.infrastructure.cache.distributed_tier import DistributedTier
from trustcache.infrastructure.cache.fast_tier import FastTier
from trustcache.infrastructure.cache.orchestrator import (
    CacheOrchestrator,
    CachePolicy,
    TierDescriptor,
)
from trustcache.infrastructure.cache.persistent_tier import PersistentTier

# ============================================================================
# Clocks
# ============================================================================


class FakeClock:
    """Controllable UTC clock; ``monotonic`` advances with it."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        self._start = self.now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)

    def monotonic(self) -> float:
        return (self.now - self._start).total_seconds()


@pytest.fixture
def fake_clock():
    return FakeClock()


# ============================================================================
# Mock Configuration Fixtures
# ============================================================================


@pytest.fixture
def mock_settings():
    """
    Mock application settings for testing.

    Returns a MagicMock with common settings attributes.
    """
    from trustcache.core.config.settings import Settings

    settings = MagicMock(spec=Settings)

    settings.cache.ENABLE_CACHING = True
    settings.cache.CACHE_ANALYSIS_TTL = 86400
    settings.cache.CACHE_CHALLENGE_TTL = 3600
    settings.cache.CACHE_FAST_MAX_SIZE = 100
    settings.cache.CACHE_SWEEP_INTERVAL = 300
    settings.cache.CACHE_TIER_TIMEOUT = 1.0
    settings.cache.CACHE_UNAVAILABLE_COOLDOWN = 30.0
    settings.cache.ENABLE_DISTRIBUTED_TIER = False
    settings.cache.ENABLE_PERSISTENT_TIER = False

    settings.app.ENVIRONMENT = "development"
    settings.app.APP_VERSION = "1.0.0-test"
    settings.app.APP_NAME = "Trust Cache Test"

    return settings


@pytest.fixture(scope="session")
def use_real_redis():
    """Check if real Redis should be used for integration tests."""
    return os.getenv("USE_REAL_REDIS", "0").lower() in ("1", "true", "yes")


# ============================================================================
# Backend Fixtures
# ============================================================================


class InMemoryRedis:
    """
    In-memory stand-in for RedisClient.

    Mimics the subset of commands the distributed tier uses. Expiry follows
    the injected clock so TTL tests don't sleep.
    """

    def __init__(self, clock):
        self._clock = clock
        self.data: dict[str, str] = {}
        self.expires: dict[str, datetime] = {}
        self.connected = False
        self.used_memory_human = "1.5M"

    def _purge(self, key):
        expires_at = self.expires.get(key)
        if expires_at is not None and expires_at <= self._clock():
            self.data.pop(key, None)
            self.expires.pop(key, None)

    async def ensure_connected(self):
        self.connected = True

    async def disconnect(self):
        self.connected = False

    def is_ready(self):
        return self.connected

    async def get(self, key):
        self.connected = True
        self._purge(key)
        return self.data.get(key)

    async def set(self, key, value, ttl=None, keepttl=False):
        self.connected = True
        self._purge(key)
        if keepttl:
            if key not in self.data:
                return False
            self.data[key] = value
            return True
        self.data[key] = value
        if ttl:
            self.expires[key] = self._clock() + timedelta(seconds=ttl)
        else:
            self.expires.pop(key, None)
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expires.pop(key, None)
        return removed

    async def incr(self, key):
        value = int(self.data.get(key) or 0) + 1
        self.data[key] = str(value)
        return value

    async def ttl(self, key):
        self._purge(key)
        if key not in self.data:
            return -2
        if key not in self.expires:
            return -1
        return int((self.expires[key] - self._clock()).total_seconds())

    async def dbsize(self):
        for key in list(self.data):
            self._purge(key)
        return len(self.data)

    async def info(self, section):
        return {"used_memory_human": self.used_memory_human}

    async def delete_matching(self, pattern):
        return await self.delete(*[key for key in self.data if fnmatch.fnmatchcase(key, pattern)])

    async def health_check(self):
        return {"status": "healthy", "connected": self.connected, "type": "in_memory"}


@pytest.fixture
def in_memory_redis_client(fake_clock):
    return InMemoryRedis(fake_clock)


@pytest.fixture
def sqlite_engine():
    """Private in-memory SQLite database shared across worker threads."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


# ============================================================================
# Tier Fixtures
# ============================================================================


@pytest.fixture
def fast_tier(fake_clock):
    return FastTier(max_size=100, clock=fake_clock)


@pytest.fixture
def distributed_tier(in_memory_redis_client, fake_clock):
    return DistributedTier(
        client=in_memory_redis_client,
        gate=TierHealthGate("redis", cooldown=30.0, monotonic=fake_clock.monotonic),
        clock=fake_clock,
    )


@pytest.fixture
def persistent_tier(sqlite_engine, fake_clock):
    return PersistentTier(
        engine=sqlite_engine,
        gate=TierHealthGate("database", cooldown=30.0, monotonic=fake_clock.monotonic),
        clock=fake_clock,
    )


@pytest.fixture
def analysis_policy():
    return CachePolicy(namespace=CacheNamespace.ANALYSIS, default_ttl=86400)


@pytest.fixture
def challenge_policy():
    return CachePolicy(namespace=CacheNamespace.CHALLENGE, default_ttl=3600)


@pytest.fixture
async def orchestrator(fast_tier, distributed_tier, persistent_tier, fake_clock):
    """Three real tiers over in-memory backends."""
    orchestrator = CacheOrchestrator(
        [
            TierDescriptor(fast_tier, priority=0, timeout=1.0),
            TierDescriptor(distributed_tier, priority=1, timeout=1.0),
            TierDescriptor(persistent_tier, priority=2, timeout=1.0),
        ],
        clock=fake_clock,
    )
    yield orchestrator
    await orchestrator.drain()
