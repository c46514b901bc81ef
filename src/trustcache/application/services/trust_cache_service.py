"""
Trust Cache Service

Two logical caches over one tier stack:

- analysis:  article URL -> credibility analysis, 24h
- challenge: "<type>:<difficulty>:<topic>" -> generated challenge, 1h

The analysis and challenge generators are expensive model calls, so both
go through get_or_compute and share its single-flight protection.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from trustcache.core.config.settings import CacheSettings, get_settings
from trustcache.core.models import CacheResult
from trustcache.infrastructure.cache.orchestrator import CacheOrchestrator, CachePolicy

logger = structlog.get_logger(__name__)

DEFAULT_CHALLENGE_TOPIC = "default"


def challenge_key(challenge_type: str, difficulty: str, topic: str | None = None) -> str:
    """Natural key for a generated challenge."""
    return f"{challenge_type}:{difficulty}:{topic or DEFAULT_CHALLENGE_TOPIC}"


class TrustCacheService:
    """
    Caching facade used by request handlers.

    Stateless apart from the injected orchestrator and policies.
    """

    def __init__(self, orchestrator: CacheOrchestrator, settings: CacheSettings | None = None):
        settings = settings or get_settings().cache
        self._orchestrator = orchestrator
        self.analysis_policy = CachePolicy.analysis(settings)
        self.challenge_policy = CachePolicy.challenge(settings)
        logger.info("trust_cache_service_initialized")

    async def get_or_analyze(
        self, url: str, analyze_fn: Callable[[str], Awaitable[Any]]
    ) -> CacheResult:
        """
        Cached analysis for ``url``; runs ``analyze_fn(url)`` on a miss.

        Returns:
            CacheResult (``cached`` tells the caller whether it was reused)
        """
        result = await self._orchestrator.get_or_compute(url, analyze_fn, self.analysis_policy)
        logger.info(
            "analysis_served",
            cached=result.cached,
            cache_source=result.cache_source,
        )
        return result

    async def get_or_generate_challenge(
        self,
        challenge_type: str,
        difficulty: str,
        topic: str | None,
        generate_fn: Callable[[str], Awaitable[Any]],
    ) -> CacheResult:
        natural_key = challenge_key(challenge_type, difficulty, topic)
        result = await self._orchestrator.get_or_compute(
            natural_key, generate_fn, self.challenge_policy
        )
        logger.info(
            "challenge_served",
            challenge_type=challenge_type,
            difficulty=difficulty,
            cached=result.cached,
            cache_source=result.cache_source,
        )
        return result

    async def invalidate_analysis(self, url: str) -> None:
        await self._orchestrator.invalidate(url, self.analysis_policy)
        logger.info("analysis_invalidated")

    async def stats(self) -> dict[str, Any]:
        """Same shape as the cache stats endpoint: hits, misses, hitRate, totalKeys, memoryUsage."""
        return await self._orchestrator.get_cache_stats()
