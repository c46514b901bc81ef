"""
Core Interfaces Module

Abstract interfaces for the cache tiers, enabling dependency injection,
testability and loose coupling.

Usage:
------
```python
from trustcache.core.interfaces import TierStore

async def probe(tier: TierStore, key: str):
    if tier.is_available():
        return await tier.get(key)
    return None
```
"""

from trustcache.core.interfaces.tier_store import NullTierStore, TierStore

__all__ = [
    "TierStore",
    "NullTierStore",
]
