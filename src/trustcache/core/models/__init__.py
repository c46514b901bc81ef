from trustcache.core.models.cache_entry import (
    CacheEntry,
    CacheResult,
    Clock,
    ensure_utc,
    utcnow,
)

__all__ = ["CacheEntry", "CacheResult", "Clock", "ensure_utc", "utcnow"]
