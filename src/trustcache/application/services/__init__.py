"""
Application Services Package

Use-case level entry points built on the cache orchestrator.
"""

from trustcache.application.services.trust_cache_service import TrustCacheService

__all__ = ["TrustCacheService"]
