"""
Core Module

Configuration, logging, exceptions, models and interfaces shared by every
cache tier.
"""

from trustcache.core.config import get_settings
from trustcache.core.exceptions import (
    CacheError,
    ComputationFailedError,
    ConfigurationError,
    MalformedCacheRecordError,
    TierOperationError,
    TierUnavailableError,
    TrustCacheError,
)
from trustcache.core.interfaces import NullTierStore, TierStore
from trustcache.core.logging import get_logger, setup_logging
from trustcache.core.models import CacheEntry, CacheResult

__all__ = [
    "get_settings",
    "get_logger",
    "setup_logging",
    "TrustCacheError",
    "ConfigurationError",
    "CacheError",
    "TierUnavailableError",
    "TierOperationError",
    "MalformedCacheRecordError",
    "ComputationFailedError",
    "TierStore",
    "NullTierStore",
    "CacheEntry",
    "CacheResult",
]
