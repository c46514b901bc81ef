"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the trust analysis cache.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for tier and namespace identifiers
- Easy to update and track changes
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Cache processing stages used as the ``stage`` field of log events.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    TIER_PROBE = "2.0_TIER_PROBE"
    BACKFILL = "2.5_BACKFILL"
    COMPUTATION = "3.0_COMPUTATION"
    WRITE_THROUGH = "4.0_WRITE_THROUGH"
    INVALIDATION = "5.0_INVALIDATION"
    CLEANUP = "6.0_CLEANUP"

    WARMUP = "W_WARMUP"
    SWEEP = "S_EXPIRY_SWEEP"
    SINGLE_FLIGHT = "SF_SINGLE_FLIGHT"
    REDIS = "REDIS"
    DATABASE = "DB"


# ============================================================================
# Cache Tiers
# ============================================================================


class CacheTier(str, Enum):
    """
    Cache tiers, named the way they are reported as ``cache_source``.

    FAST: Process-local in-memory LRU (< 1ms)
    DISTRIBUTED: Redis shared across instances (1-5ms)
    PERSISTENT: Relational database (5-20ms)
    """

    FAST = "fast"
    DISTRIBUTED = "redis"
    PERSISTENT = "database"


# Lower is probed first
TIER_PRIORITY: dict[CacheTier, int] = {
    CacheTier.FAST: 0,
    CacheTier.DISTRIBUTED: 1,
    CacheTier.PERSISTENT: 2,
}


# ============================================================================
# Logical Cache Namespaces
# ============================================================================


class CacheNamespace(str, Enum):
    """
    Logical caches sharing the same physical backends.

    The namespace is the key prefix, so two logical caches never collide
    even when they share one Redis database or one table.
    """

    ANALYSIS = "analysis"
    CHALLENGE = "challenge"


# ============================================================================
# Key Derivation
# ============================================================================

# Encoded natural keys longer than this are replaced by a SHA-256 digest
MAX_ENCODED_KEY_LENGTH = 400
HASHED_KEY_MARKER = "h"

# ============================================================================
# TTLs (seconds)
# ============================================================================

ANALYSIS_CACHE_TTL = 24 * 60 * 60
CHALLENGE_CACHE_TTL = 60 * 60

# ============================================================================
# Fast Tier
# ============================================================================

FAST_CACHE_MAX_SIZE = 1000
EXPIRY_SWEEP_INTERVAL = 5 * 60

# ============================================================================
# Timeouts and Retry
# ============================================================================

# Connect and command retries must finish inside TIER_OPERATION_TIMEOUT,
# otherwise the orchestrator cancels them before the tier can fail over
REDIS_CONNECT_TIMEOUT = 1.0
REDIS_SOCKET_TIMEOUT = 1.0
REDIS_MAX_ATTEMPTS = 3
REDIS_RETRY_STEP = 0.05
REDIS_RETRY_MAX_DELAY = 0.5
TIER_UNAVAILABLE_COOLDOWN = 30.0
TIER_OPERATION_TIMEOUT = 5.0

# ============================================================================
# Redis Keys
# ============================================================================

REDIS_KEY_STATS_HIT = "stats:cache:hit"
REDIS_KEY_STATS_MISS = "stats:cache:miss"
REDIS_KEY_STATS_SET = "stats:cache:set"

# ============================================================================
# Telemetry Defaults
# ============================================================================

DEFAULT_MEMORY_USAGE = "0 MB"
