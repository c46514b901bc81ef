"""
Fast Tier - In-process LRU cache

Per-process, in-memory storage with an explicit expiry per entry. It is not
shared across workers; the distributed tier covers that.

Implementation Details:
- OrderedDict for O(1) access and LRU ordering
- asyncio.Lock around every mutation
- Expiry checked lazily on get, plus ``purge_expired`` for the sweeper
- Entries are held in serialized form, so callers never share a mutable
  payload with the cache
"""

import asyncio
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any

from trustcache.core.config.constants import FAST_CACHE_MAX_SIZE, CacheTier, Stage
from trustcache.core.exceptions import MalformedCacheRecordError
from trustcache.core.logging.logger import get_logger, log_stage
from trustcache.core.models import CacheEntry, Clock, utcnow

logger = get_logger(__name__)


class FastTier:
    """
    In-memory LRU tier with per-entry TTL.

    Eviction: when full, the least recently used entry is dropped.
    TTL semantics are unaffected by eviction: an expired entry is never
    returned, whether or not it has been evicted yet.
    """

    def __init__(
        self,
        max_size: int = FAST_CACHE_MAX_SIZE,
        clock: Clock = utcnow,
        name: str = CacheTier.FAST.value,
    ):
        """
        Initialize LRU cache.

        Args:
            max_size: Maximum number of entries to store
            clock: Source of the current UTC time
            name: Tier name reported as cache_source
        """
        self.name = name
        self._max_size = max_size
        self._clock = clock
        self._cache: OrderedDict[str, tuple[datetime, str]] = OrderedDict()
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def is_available(self) -> bool:
        return True

    async def get(self, key: str) -> CacheEntry | None:
        """
        Get a live entry and bump its hit count.

        Expired entries are removed on access.
        """
        async with self._lock:
            item = self._cache.get(key)
            if item is None:
                self._misses += 1
                return None

            expires_at, raw = item
            if expires_at <= self._clock():
                del self._cache[key]
                self._misses += 1
                return None

            try:
                entry = CacheEntry.from_json(raw, cache_key=key).with_hit()
            except MalformedCacheRecordError as e:
                del self._cache[key]
                self._misses += 1
                logger.warning("Dropping malformed fast tier record", cache_key=key, error=e.message)
                return None

            self._cache[key] = (expires_at, entry.to_json())
            self._cache.move_to_end(key)
            self._hits += 1
            return entry

    async def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        """
        Store an entry, evicting the LRU item when at capacity.
        """
        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        try:
            raw = entry.model_copy(update={"expires_at": expires_at}).to_json()
        except (TypeError, ValueError) as e:
            logger.warning("Fast tier could not serialize entry", cache_key=key, error=str(e))
            return

        async with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            self._cache[key] = (expires_at, raw)

            while len(self._cache) > self._max_size:
                self._cache.popitem(last=False)
                self._evictions += 1

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._cache.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()

    async def purge_expired(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        async with self._lock:
            expired = [key for key, (expires_at, _) in self._cache.items() if expires_at <= now]
            for key in expired:
                del self._cache[key]

        if expired:
            log_stage(logger, Stage.SWEEP, "Fast tier expired entries purged", removed=len(expired))
        return len(expired)

    def get_size(self) -> int:
        """Get current number of entries."""
        return len(self._cache)

    def get_max_size(self) -> int:
        """Get maximum capacity."""
        return self._max_size

    def get_keys(self) -> list[str]:
        """Keys in LRU order (oldest first, newest last)."""
        return list(self._cache.keys())

    async def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "tier": self.name,
            "size": self.get_size(),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }
