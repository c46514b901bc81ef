"""
Distributed Tier - Redis

Shared across every worker and instance. Redis enforces TTL natively
(``SET EX``); the stored record also carries ``expiresAt`` so a record that
outlived its logical expiry is still treated as a miss.

Failure handling:
    Every backend error is caught here, logged at warning level and reported
    as a miss or a no-op. A failure opens the tier's health gate, so for the
    cooldown window ``is_available`` is False and the orchestrator skips the
    tier entirely instead of paying a timeout on every lookup.

Backend telemetry:
    ``stats:cache:hit``, ``stats:cache:miss`` and ``stats:cache:set`` are
    INCRed on Redis so counts survive restarts and aggregate across instances.
"""

from collections.abc import Awaitable, Callable, Iterable
from datetime import timedelta
from typing import Any, TypeVar

from trustcache.core.config.constants import (
    DEFAULT_MEMORY_USAGE,
    REDIS_KEY_STATS_HIT,
    REDIS_KEY_STATS_MISS,
    REDIS_KEY_STATS_SET,
    CacheNamespace,
    CacheTier,
    Stage,
)
from trustcache.core.exceptions import MalformedCacheRecordError
from trustcache.core.logging.logger import get_logger, log_stage
from trustcache.core.models import CacheEntry, Clock, utcnow
from trustcache.core.resilience import TierHealthGate
from trustcache.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

T = TypeVar("T")


class DistributedTier:
    """
    Redis-backed tier.

    Args:
        client: Redis client (created from settings when omitted)
        gate: Availability gate (created with the default cooldown when omitted)
        clock: Source of the current UTC time
        namespaces: Key namespaces removed by ``clear``
    """

    def __init__(
        self,
        client: RedisClient | None = None,
        gate: TierHealthGate | None = None,
        clock: Clock = utcnow,
        namespaces: Iterable[CacheNamespace | str] = tuple(CacheNamespace),
        name: str = CacheTier.DISTRIBUTED.value,
    ):
        self.name = name
        self._client = client or RedisClient()
        self._gate = gate or TierHealthGate(name)
        self._clock = clock
        self._namespaces = [getattr(ns, "value", ns) for ns in namespaces]

    def is_available(self) -> bool:
        return self._gate.allows_request()

    def report_failure(self, error: BaseException | str) -> None:
        """Open the gate for a failure observed by the caller, such as a timeout."""
        self._gate.record_failure(error)

    async def _guarded(
        self, operation: str, call: Callable[[], Awaitable[T]], default: T, key: str | None = None
    ) -> T:
        """Run one backend call, converting any backend error into ``default``."""
        try:
            result = await call()
        except Exception as e:
            self._gate.record_failure(e)
            log_stage(
                logger,
                Stage.REDIS,
                f"Redis {operation} failed, treating as miss",
                level="warning",
                cache_key=key,
                error=getattr(e, "message", str(e)),
            )
            return default
        self._gate.record_success()
        return result

    async def connect(self) -> bool:
        """
        Connect eagerly (startup). Lookups connect lazily anyway.

        Returns:
            True if Redis is reachable
        """
        async def _connect() -> bool:
            await self._client.ensure_connected()
            return True

        return await self._guarded("CONNECT", _connect, False)

    async def disconnect(self) -> None:
        await self._client.disconnect()

    async def _count(self, counter_key: str) -> None:
        await self._guarded("INCR", lambda: self._client.incr(counter_key), None, key=counter_key)

    async def get(self, key: str) -> CacheEntry | None:
        if not self.is_available():
            return None

        raw = await self._guarded("GET", lambda: self._client.get(key), None, key=key)
        if raw is None:
            if self.is_available():
                await self._count(REDIS_KEY_STATS_MISS)
            return None

        try:
            entry = CacheEntry.from_json(raw, cache_key=key)
        except MalformedCacheRecordError as e:
            logger.warning("Dropping malformed Redis record", cache_key=key, error=e.message)
            await self._guarded("DEL", lambda: self._client.delete(key), 0, key=key)
            await self._count(REDIS_KEY_STATS_MISS)
            return None

        if entry.is_expired(self._clock()):
            await self._count(REDIS_KEY_STATS_MISS)
            return None

        entry = entry.with_hit()
        # Best effort: concurrent hits may lose an increment
        await self._guarded(
            "SET KEEPTTL",
            lambda: self._client.set(key, entry.to_json(), keepttl=True),
            False,
            key=key,
        )
        await self._count(REDIS_KEY_STATS_HIT)
        return entry

    async def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        if not self.is_available():
            return

        stored = entry.model_copy(
            update={"expires_at": self._clock() + timedelta(seconds=ttl_seconds)}
        )
        try:
            raw = stored.to_json()
        except (TypeError, ValueError) as e:
            logger.warning("Redis tier could not serialize entry", cache_key=key, error=str(e))
            return

        written = await self._guarded(
            "SET", lambda: self._client.set(key, raw, ttl=ttl_seconds), False, key=key
        )
        if written:
            await self._count(REDIS_KEY_STATS_SET)

    async def delete(self, key: str) -> None:
        if not self.is_available():
            return
        await self._guarded("DEL", lambda: self._client.delete(key), 0, key=key)

    async def clear(self) -> None:
        """Delete every key in the cache namespaces. Other keys are untouched."""
        if not self.is_available():
            return

        removed = 0
        for namespace in self._namespaces:
            removed += await self._guarded(
                "SCAN/DEL",
                lambda ns=namespace: self._client.delete_matching(f"{ns}:*"),
                0,
            )
        log_stage(logger, Stage.CLEANUP, "Redis cache namespaces cleared", removed=removed)

    async def backend_stats(self) -> dict[str, Any]:
        """
        Backend-reported usage.

        Returns:
            Dict with ``total_keys``, ``memory_usage`` and the shared
            hit/miss/set counters; defaults when Redis is unavailable
        """
        stats: dict[str, Any] = {
            "total_keys": 0,
            "memory_usage": DEFAULT_MEMORY_USAGE,
            "hits": 0,
            "misses": 0,
            "sets": 0,
        }
        if not self.is_available():
            return stats

        stats["total_keys"] = int(await self._guarded("DBSIZE", self._client.dbsize, 0) or 0)
        info = await self._guarded("INFO", lambda: self._client.info("memory"), {})
        stats["memory_usage"] = (info or {}).get("used_memory_human", DEFAULT_MEMORY_USAGE)

        for field, counter_key in (
            ("hits", REDIS_KEY_STATS_HIT),
            ("misses", REDIS_KEY_STATS_MISS),
            ("sets", REDIS_KEY_STATS_SET),
        ):
            value = await self._guarded(
                "GET", lambda k=counter_key: self._client.get(k), None, key=counter_key
            )
            stats[field] = int(value) if value else 0
        return stats

    async def health_check(self) -> dict[str, Any]:
        gate = self._gate.snapshot()
        if not self.is_available():
            return {"status": "unavailable", "tier": self.name, "gate": gate}

        if not self._client.is_ready() and not await self.connect():
            return {"status": "unavailable", "tier": self.name, "gate": self._gate.snapshot()}

        health = await self._client.health_check()
        health["tier"] = self.name
        health["gate"] = gate
        return health
