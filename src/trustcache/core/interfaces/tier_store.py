"""
Tier Store Protocol

This module defines the capability every cache tier implements, plus the
canonical no-op tier used wherever a backend is absent or disabled.

Architectural Decision: Protocol-based abstraction
- The orchestrator never special-cases backend identity
- Tests substitute in-memory doubles without inheritance
- Runtime checking with @runtime_checkable

Contract:
- ``is_available`` is synchronous and never raises
- ``get``/``set``/``delete``/``clear`` fail soft: backend errors are logged
  and reported as a miss or a no-op, never raised to the caller
- Tiers with a health gate may also expose ``report_failure(error)``; the
  orchestrator calls it when an operation exceeds the tier timeout, so a
  hanging backend is skipped for the cooldown like a failing one
"""

from typing import Any, Protocol, runtime_checkable

from trustcache.core.models import CacheEntry


@runtime_checkable
class TierStore(Protocol):
    """
    Protocol for one tier of the cache hierarchy.

    Implementations:
    - FastTier: process-local LRU with explicit expiry
    - DistributedTier: Redis with native TTL
    - PersistentTier: relational database with an expiry column
    - NullTierStore: does nothing, always unavailable
    """

    name: str

    def is_available(self) -> bool:
        """
        Cheap health predicate. Must never block or raise.

        Returns:
            bool: True if the tier should be probed
        """
        ...

    async def get(self, key: str) -> CacheEntry | None:
        """
        Get a live entry.

        Returns:
            CacheEntry or None on miss, expiry or backend error
        """
        ...

    async def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        """
        Store an entry for ``ttl_seconds``. Best effort.
        """
        ...

    async def delete(self, key: str) -> None:
        """Delete one key. Best effort."""
        ...

    async def clear(self) -> None:
        """Delete every cache entry held by this tier. Best effort."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """
        Report backend health.

        Returns:
            Dict with at least a ``status`` field
        """
        ...


class NullTierStore:
    """
    Tier that stores nothing.

    Stands in for a disabled or unconfigured backend so the orchestrator
    can treat every tier uniformly.
    """

    def __init__(self, name: str = "null"):
        self.name = name

    def is_available(self) -> bool:
        return False

    async def get(self, key: str) -> CacheEntry | None:
        return None

    async def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None

    async def clear(self) -> None:
        return None

    async def health_check(self) -> dict[str, Any]:
        return {"status": "disabled", "tier": self.name}
