"""
Cache-Related Exceptions

Everything except ComputationFailedError is recovered at the tier boundary:
tier stores catch these, log a warning and behave as a miss or no-op.
"""

from trustcache.core.exceptions.base import TrustCacheError


class CacheError(TrustCacheError):
    """Base exception for cache-related errors."""
    pass


class TierUnavailableError(CacheError):
    """
    Raised when a tier backend is unreachable or not ready.

    Common causes:
    - Redis server is down or refusing connections
    - Database file locked or server unreachable
    - Backend inside its post-failure cooldown window
    """
    pass


class TierOperationError(CacheError):
    """
    Raised when a get/set/delete fails after the tier was deemed available.

    Common causes:
    - Transient network blip
    - Operation timeout
    - Constraint or driver error in the database
    """
    pass


class MalformedCacheRecordError(CacheError):
    """
    Raised when stored data cannot be decoded into a cache entry.

    Protects against schema drift between deployments.
    """
    pass


class ComputationFailedError(TrustCacheError):
    """
    Raised when a compute function produced no usable result.

    ``None`` is reserved for "absent" in every tier, so a compute function
    returning it is reported as a failure instead of being cached.
    """
    pass
