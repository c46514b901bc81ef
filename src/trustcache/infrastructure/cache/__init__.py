"""
Multi-tier cache.

Tiers (fastest first):
- FastTier: process-local LRU
- DistributedTier: Redis
- PersistentTier: SQL database

CacheOrchestrator composes them with read-through back-fill, write-through
and single-flight computation.
"""

from trustcache.infrastructure.cache.distributed_tier import DistributedTier
from trustcache.infrastructure.cache.fast_tier import FastTier
from trustcache.infrastructure.cache.lifecycle import (
    ExpirySweeper,
    build_cache,
    close_cache,
    get_cache_orchestrator,
    init_cache,
)
from trustcache.infrastructure.cache.orchestrator import (
    CacheOrchestrator,
    CachePolicy,
    TierDescriptor,
)
from trustcache.infrastructure.cache.persistent_tier import PersistentTier
from trustcache.infrastructure.cache.redis_client import RedisClient
from trustcache.infrastructure.cache.single_flight import SingleFlightGuard
from trustcache.infrastructure.cache.stats import StatsCollector

__all__ = [
    "FastTier",
    "DistributedTier",
    "PersistentTier",
    "RedisClient",
    "SingleFlightGuard",
    "StatsCollector",
    "CacheOrchestrator",
    "CachePolicy",
    "TierDescriptor",
    "ExpirySweeper",
    "build_cache",
    "init_cache",
    "get_cache_orchestrator",
    "close_cache",
]
