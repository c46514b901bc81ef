"""
Cache Orchestrator - read-through, write-through across ordered tiers

Architecture:
    CacheOrchestrator (Public API)
        ├── TierDescriptor[] (ordered by priority, fastest first)
        ├── SingleFlightGuard (one computation per key at a time)
        └── StatsCollector (process-local counters)

Lookup Algorithm (get_or_compute):
1. Derive the cache key from the natural key and the policy namespace
2. Probe available tiers strictly in priority order, each bounded by its
   own timeout; a timeout or error counts as a miss for that tier
3. On a hit, back-fill every faster tier that missed (fire-and-forget) and
   return immediately
4. On a full miss, compute under the single-flight guard; the leader writes
   the result to every available tier concurrently before followers resume

Performance:
- Fast tier hit: < 1ms
- Redis hit: 1-5ms
- Database hit: 5-20ms
- Miss: cost of compute_fn plus the slowest tier write
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from trustcache.core.config.constants import (
    DEFAULT_MEMORY_USAGE,
    TIER_OPERATION_TIMEOUT,
    CacheNamespace,
    Stage,
)
from trustcache.core.config.settings import CacheSettings, get_settings
from trustcache.core.exceptions import ComputationFailedError, ConfigurationError
from trustcache.core.interfaces import TierStore
from trustcache.core.logging.logger import get_logger, log_stage
from trustcache.core.models import CacheEntry, CacheResult, Clock, utcnow
from trustcache.infrastructure.cache import key_deriver
from trustcache.infrastructure.cache.single_flight import SingleFlightGuard
from trustcache.infrastructure.cache.stats import StatsCollector

logger = get_logger(__name__)

ComputeFn = Callable[[str], Awaitable[Any] | Any]


@dataclass
class TierDescriptor:
    """A tier store with its position in the probe order and its timeout."""

    store: TierStore
    priority: int
    timeout: float = TIER_OPERATION_TIMEOUT

    @property
    def name(self) -> str:
        return self.store.name


@dataclass(frozen=True)
class CachePolicy:
    """
    Namespace and per-tier TTLs for one logical cache.

    Tiers missing from ``ttls`` use ``default_ttl``.
    """

    namespace: CacheNamespace | str
    default_ttl: int
    ttls: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        for tier, ttl in {"default": self.default_ttl, **self.ttls}.items():
            if not isinstance(ttl, int) or ttl <= 0:
                raise ConfigurationError(
                    f"TTL for tier '{tier}' must be a positive integer",
                    details={"namespace": str(self.namespace), "ttl": ttl},
                )

    def ttl_for(self, tier_name: str) -> int:
        return self.ttls.get(tier_name, self.default_ttl)

    @classmethod
    def analysis(cls, settings: CacheSettings | None = None) -> "CachePolicy":
        """24 hours on every tier by default."""
        settings = settings or get_settings().cache
        return cls(namespace=CacheNamespace.ANALYSIS, default_ttl=settings.CACHE_ANALYSIS_TTL)

    @classmethod
    def challenge(cls, settings: CacheSettings | None = None) -> "CachePolicy":
        """1 hour on every tier by default."""
        settings = settings or get_settings().cache
        return cls(namespace=CacheNamespace.CHALLENGE, default_ttl=settings.CACHE_CHALLENGE_TTL)


class CacheOrchestrator:
    """
    Multi-tier cache with stampede control.

    Usage:
        orchestrator = CacheOrchestrator([
            TierDescriptor(FastTier(), priority=0),
            TierDescriptor(DistributedTier(), priority=1),
            TierDescriptor(PersistentTier(), priority=2),
        ])

        result = await orchestrator.get_or_compute(
            "https://a.example/1", analyze, CachePolicy.analysis()
        )
        result.payload, result.cache_source
    """

    def __init__(
        self,
        tiers: Iterable[TierDescriptor],
        single_flight: SingleFlightGuard | None = None,
        stats: StatsCollector | None = None,
        clock: Clock = utcnow,
        enabled: bool = True,
    ):
        self._tiers = sorted(tiers, key=lambda descriptor: descriptor.priority)
        names = [descriptor.name for descriptor in self._tiers]
        if len(set(names)) != len(names):
            raise ConfigurationError("Tier names must be unique", details={"tiers": names})

        self._single_flight = single_flight or SingleFlightGuard()
        self._stats = stats or StatsCollector()
        self._clock = clock
        self._enabled = enabled
        self._background: set[asyncio.Task] = set()

        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Cache orchestrator initialized",
            tiers=names,
            caching_enabled=enabled,
        )

    @property
    def tiers(self) -> list[TierDescriptor]:
        return list(self._tiers)

    @property
    def single_flight(self) -> SingleFlightGuard:
        return self._single_flight

    def pending_background_tasks(self) -> int:
        return len(self._background)

    # -------------------------------------------------------------------------
    # Tier access (bounded, never raises)
    # -------------------------------------------------------------------------

    def _report_failure(self, descriptor: TierDescriptor, error: BaseException | str) -> None:
        report = getattr(descriptor.store, "report_failure", None)
        if report is not None:
            report(error)

    async def _tier_get(self, descriptor: TierDescriptor, key: str) -> CacheEntry | None:
        try:
            return await asyncio.wait_for(descriptor.store.get(key), descriptor.timeout)
        except asyncio.TimeoutError:
            self._report_failure(descriptor, f"get timed out after {descriptor.timeout}s")
            log_stage(
                logger,
                Stage.TIER_PROBE,
                "Tier probe timed out",
                level="warning",
                tier=descriptor.name,
                cache_key=key[:32],
                timeout=descriptor.timeout,
            )
        except Exception as e:
            self._report_failure(descriptor, e)
            log_stage(
                logger,
                Stage.TIER_PROBE,
                "Tier probe failed",
                level="warning",
                tier=descriptor.name,
                cache_key=key[:32],
                error=str(e),
            )
        return None

    async def _tier_set(
        self, descriptor: TierDescriptor, key: str, entry: CacheEntry, ttl: int
    ) -> bool:
        try:
            await asyncio.wait_for(descriptor.store.set(key, entry, ttl), descriptor.timeout)
        except asyncio.TimeoutError:
            self._report_failure(descriptor, f"set timed out after {descriptor.timeout}s")
            logger.warning("Tier write timed out", tier=descriptor.name, cache_key=key[:32])
            return False
        except Exception as e:
            self._report_failure(descriptor, e)
            logger.warning("Tier write failed", tier=descriptor.name, cache_key=key[:32], error=str(e))
            return False
        self._stats.record_tier_set(descriptor.name)
        return True

    async def _tier_delete(self, descriptor: TierDescriptor, key: str) -> None:
        try:
            await asyncio.wait_for(descriptor.store.delete(key), descriptor.timeout)
        except asyncio.TimeoutError:
            self._report_failure(descriptor, f"delete timed out after {descriptor.timeout}s")
            logger.warning("Tier delete timed out", tier=descriptor.name, cache_key=key[:32])
        except Exception as e:
            self._report_failure(descriptor, e)
            logger.warning("Tier delete failed", tier=descriptor.name, cache_key=key[:32], error=str(e))

    async def _probe(self, key: str) -> tuple[CacheEntry | None, TierDescriptor | None, list[TierDescriptor]]:
        """
        Probe tiers fastest first.

        Returns:
            (entry, tier that served it, available tiers that missed before it)
        """
        missed: list[TierDescriptor] = []
        for descriptor in self._tiers:
            if not descriptor.store.is_available():
                continue

            entry = await self._tier_get(descriptor, key)
            if entry is not None:
                self._stats.record_tier_hit(descriptor.name)
                log_stage(
                    logger,
                    Stage.TIER_PROBE,
                    "Cache hit",
                    level="debug",
                    tier=descriptor.name,
                    cache_key=key[:32],
                )
                return entry, descriptor, missed

            self._stats.record_tier_miss(descriptor.name)
            missed.append(descriptor)

        return None, None, missed

    async def _write_tiers(
        self,
        key: str,
        entry: CacheEntry,
        targets: list[TierDescriptor],
        policy: CachePolicy,
        stage: Stage,
    ) -> int:
        """Write ``entry`` to every available target concurrently; returns successes."""
        available = [descriptor for descriptor in targets if descriptor.store.is_available()]
        if not available:
            return 0

        results = await asyncio.gather(
            *(
                self._tier_set(descriptor, key, entry, policy.ttl_for(descriptor.name))
                for descriptor in available
            ),
            return_exceptions=True,
        )
        written = sum(1 for result in results if result is True)
        log_stage(
            logger,
            stage,
            "Tiers written",
            level="debug",
            cache_key=key[:32],
            written=written,
            targets=[descriptor.name for descriptor in available],
        )
        return written

    def _schedule_backfill(
        self, key: str, entry: CacheEntry, targets: list[TierDescriptor], policy: CachePolicy
    ) -> None:
        if not targets:
            return
        task = asyncio.create_task(self._write_tiers(key, entry, targets, policy, Stage.BACKFILL))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _lookup(self, key: str, policy: CachePolicy) -> CacheResult | None:
        entry, source, missed = await self._probe(key)
        if entry is None:
            return None

        self._schedule_backfill(key, entry, missed, policy)
        return CacheResult(payload=entry.payload, cached=True, cache_source=source.name, cache_key=key)

    async def _compute(self, natural_key: str, key: str, compute_fn: ComputeFn) -> Any:
        log_stage(logger, Stage.COMPUTATION, "Computing uncached value", cache_key=key[:32])
        value = compute_fn(natural_key)
        if inspect.isawaitable(value):
            value = await value

        if value is None:
            raise ComputationFailedError(
                "Compute function returned no result",
                cache_key=key,
                details={"natural_key": natural_key},
            )
        return value

    def _new_entry(self, natural_key: str, key: str, payload: Any, policy: CachePolicy) -> CacheEntry:
        _, encoded = key_deriver.split(key)
        return CacheEntry.create(
            url=natural_key,
            url_hash=encoded,
            payload=payload,
            ttl_seconds=policy.default_ttl,
            now=self._clock(),
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def get_or_compute(
        self, natural_key: str, compute_fn: ComputeFn, policy: CachePolicy
    ) -> CacheResult:
        """
        Return the cached payload for ``natural_key`` or compute it.

        Args:
            natural_key: Identifier the result belongs to (e.g. article URL)
            compute_fn: Async (or sync) callable taking the natural key and
                producing the payload
            policy: Namespace and TTLs

        Returns:
            CacheResult with ``cache_source`` set to the serving tier,
            or None when freshly computed

        Raises:
            ComputationFailedError: If compute_fn returned None
            Exception: Anything compute_fn raised, unchanged
        """
        key = key_deriver.derive(natural_key, policy.namespace)

        if self._enabled:
            result = await self._lookup(key, policy)
            if result is not None:
                self._stats.record_request(hit=True)
                return result

        self._stats.record_request(hit=False)

        async def leader() -> Any:
            payload = await self._compute(natural_key, key, compute_fn)
            if self._enabled:
                entry = self._new_entry(natural_key, key, payload, policy)
                await self._write_tiers(key, entry, self._tiers, policy, Stage.WRITE_THROUGH)
            return payload

        payload = await self._single_flight.run(key, leader)
        return CacheResult(payload=payload, cached=False, cache_source=None, cache_key=key)

    async def get(self, natural_key: str, policy: CachePolicy) -> CacheResult | None:
        """Lookup without computing. Back-fills faster tiers on a hit."""
        if not self._enabled:
            return None

        key = key_deriver.derive(natural_key, policy.namespace)
        result = await self._lookup(key, policy)
        self._stats.record_request(hit=result is not None)
        return result

    async def put(self, natural_key: str, payload: Any, policy: CachePolicy) -> int:
        """
        Write ``payload`` to every available tier.

        Returns:
            Number of tiers written

        Raises:
            ValueError: If payload is None
        """
        if payload is None:
            raise ValueError("payload must not be None")
        if not self._enabled:
            return 0

        key = key_deriver.derive(natural_key, policy.namespace)
        entry = self._new_entry(natural_key, key, payload, policy)
        return await self._write_tiers(key, entry, self._tiers, policy, Stage.WRITE_THROUGH)

    async def invalidate(self, natural_key: str, policy: CachePolicy) -> None:
        """Delete the entry from every tier."""
        key = key_deriver.derive(natural_key, policy.namespace)
        await asyncio.gather(
            *(self._tier_delete(descriptor, key) for descriptor in self._tiers if descriptor.store.is_available()),
            return_exceptions=True,
        )
        log_stage(logger, Stage.INVALIDATION, "Cache invalidated", cache_key=key[:32])

    async def clear(self) -> None:
        """Clear every tier."""
        for descriptor in self._tiers:
            try:
                await descriptor.store.clear()
            except Exception as e:
                logger.warning("Tier clear failed", tier=descriptor.name, error=str(e))
        log_stage(logger, Stage.CLEANUP, "All cache tiers cleared")

    async def warm(self, natural_keys: Iterable[str], policy: CachePolicy) -> int:
        """
        Copy entries found in slower tiers into the faster tiers that lack them.

        Never overwrites or removes an entry already present in a faster tier.

        Returns:
            Number of keys propagated to at least one faster tier
        """
        if not self._enabled:
            return 0

        warmed = 0
        for natural_key in natural_keys:
            key = key_deriver.derive(natural_key, policy.namespace)
            entry, _, missed = await self._probe(key)
            if entry is None or not missed:
                continue
            if await self._write_tiers(key, entry, missed, policy, Stage.WARMUP):
                warmed += 1

        if warmed:
            log_stage(logger, Stage.WARMUP, "Cache warming complete", warmed_items=warmed)
        return warmed

    async def purge_expired(self) -> dict[str, int]:
        """Sweep every tier that supports bulk expiry."""
        removed: dict[str, int] = {}
        for descriptor in self._tiers:
            purge = getattr(descriptor.store, "purge_expired", None)
            if purge is None or not descriptor.store.is_available():
                continue
            try:
                removed[descriptor.name] = await purge()
            except Exception as e:
                logger.warning("Expiry sweep failed", tier=descriptor.name, error=str(e))
        return removed

    async def drain(self) -> None:
        """Wait for pending back-fill tasks."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    async def _backend_stats(self) -> dict[str, Any]:
        for descriptor in self._tiers:
            backend_stats = getattr(descriptor.store, "backend_stats", None)
            if backend_stats is None:
                continue
            try:
                return await asyncio.wait_for(backend_stats(), descriptor.timeout)
            except Exception as e:
                logger.warning("Backend stats unavailable", tier=descriptor.name, error=str(e))
        return {"total_keys": 0, "memory_usage": DEFAULT_MEMORY_USAGE}

    async def get_cache_stats(self) -> dict[str, Any]:
        """
        Telemetry snapshot.

        ``hits``/``misses``/``hitRate`` are this process's request counters;
        ``totalKeys``/``memoryUsage`` are reported by Redis.
        """
        snapshot = self._stats.snapshot()
        backend = await self._backend_stats()
        return {
            "hits": snapshot["hits"],
            "misses": snapshot["misses"],
            "hitRate": snapshot["hit_rate"],
            "totalKeys": backend.get("total_keys", 0),
            "memoryUsage": backend.get("memory_usage", DEFAULT_MEMORY_USAGE),
        }

    def stats(self) -> dict[str, Any]:
        """Detailed process-local counters."""
        return {
            **self._stats.snapshot(),
            "in_flight": self._single_flight.in_flight_count(),
            "pending_backfills": len(self._background),
            "caching_enabled": self._enabled,
        }

    async def health_check(self) -> dict[str, Any]:
        """
        Per-tier health.

        Overall status is ``degraded`` when any configured tier is not
        healthy; disabled tiers do not count.
        """
        health: dict[str, Any] = {"status": "healthy", "caching_enabled": self._enabled, "tiers": {}}

        for descriptor in self._tiers:
            try:
                tier_health = await asyncio.wait_for(descriptor.store.health_check(), descriptor.timeout)
            except Exception as e:
                tier_health = {"status": "error", "error": str(e)}

            tier_health["available"] = descriptor.store.is_available()
            health["tiers"][descriptor.name] = tier_health
            if tier_health.get("status") not in ("healthy", "disabled"):
                health["status"] = "degraded"

        return health
