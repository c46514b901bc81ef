"""
trustcache - multi-tier analysis cache with stampede control.

Usage:
    from trustcache import CachePolicy, init_cache

    orchestrator = await init_cache()
    result = await orchestrator.get_or_compute(url, analyze, CachePolicy.analysis())
"""

from trustcache.application.services import TrustCacheService
from trustcache.core import (
    CacheEntry,
    CacheResult,
    ComputationFailedError,
    TrustCacheError,
    get_settings,
    setup_logging,
)
from trustcache.infrastructure.cache import (
    CacheOrchestrator,
    CachePolicy,
    TierDescriptor,
    close_cache,
    get_cache_orchestrator,
    init_cache,
)

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "CacheEntry",
    "CacheResult",
    "CacheOrchestrator",
    "CachePolicy",
    "TierDescriptor",
    "TrustCacheService",
    "TrustCacheError",
    "ComputationFailedError",
    "get_settings",
    "setup_logging",
    "init_cache",
    "get_cache_orchestrator",
    "close_cache",
]
