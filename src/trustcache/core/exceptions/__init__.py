"""
Exception Module

Structured exception hierarchy for the trust analysis cache.

Module Structure:
-----------------
- **base.py**: TrustCacheError base class + ConfigurationError
- **cache.py**: Tier and computation exceptions

Usage:
------
```python
from trustcache.core.exceptions import TierOperationError, ComputationFailedError
```
"""

from trustcache.core.exceptions.base import ConfigurationError, TrustCacheError
from trustcache.core.exceptions.cache import (
    CacheError,
    ComputationFailedError,
    MalformedCacheRecordError,
    TierOperationError,
    TierUnavailableError,
)

__all__ = [
    # Base
    "TrustCacheError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "TierUnavailableError",
    "TierOperationError",
    "MalformedCacheRecordError",
    "ComputationFailedError",
]
