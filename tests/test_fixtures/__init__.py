"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .cache_factory import CacheTestFactory, CountingCompute, HangingRedisClient, RecordingTier

__all__ = ["CacheTestFactory", "CountingCompute", "HangingRedisClient", "RecordingTier"]
