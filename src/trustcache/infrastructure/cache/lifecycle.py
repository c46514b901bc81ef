"""
Cache Lifecycle

Builds the tier stack from settings, runs the periodic expiry sweeper and
owns the process-wide orchestrator instance.

Usage:
    orchestrator = await init_cache()
    ...
    await close_cache()

Components that need a cache should accept a CacheOrchestrator argument;
``get_cache_orchestrator`` is for application wiring only.
"""

import asyncio
from typing import Any

from trustcache.core.config.constants import TIER_PRIORITY, CacheTier, Stage
from trustcache.core.config.settings import Settings, get_settings
from trustcache.core.interfaces import NullTierStore
from trustcache.core.logging.logger import get_logger, log_stage
from trustcache.core.models import Clock, utcnow
from trustcache.core.resilience import TierHealthGate
from trustcache.infrastructure.cache.distributed_tier import DistributedTier
from trustcache.infrastructure.cache.fast_tier import FastTier
from trustcache.infrastructure.cache.orchestrator import CacheOrchestrator, TierDescriptor
from trustcache.infrastructure.cache.persistent_tier import PersistentTier
from trustcache.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)


def build_cache(settings: Settings | None = None, clock: Clock = utcnow) -> CacheOrchestrator:
    """
    Build an orchestrator with the tiers enabled in settings.

    Disabled backends are replaced by NullTierStore. Nothing connects here.
    """
    settings = settings or get_settings()
    cache_settings = settings.cache
    timeout = cache_settings.CACHE_TIER_TIMEOUT
    cooldown = cache_settings.CACHE_UNAVAILABLE_COOLDOWN

    fast = FastTier(max_size=cache_settings.CACHE_FAST_MAX_SIZE, clock=clock)

    if cache_settings.ENABLE_DISTRIBUTED_TIER:
        distributed = DistributedTier(
            client=RedisClient(settings.redis),
            gate=TierHealthGate(CacheTier.DISTRIBUTED.value, cooldown=cooldown),
            clock=clock,
        )
    else:
        distributed = NullTierStore(CacheTier.DISTRIBUTED.value)

    if cache_settings.ENABLE_PERSISTENT_TIER:
        persistent = PersistentTier(
            settings=settings.database,
            gate=TierHealthGate(CacheTier.PERSISTENT.value, cooldown=cooldown),
            clock=clock,
        )
    else:
        persistent = NullTierStore(CacheTier.PERSISTENT.value)

    return CacheOrchestrator(
        [
            TierDescriptor(fast, TIER_PRIORITY[CacheTier.FAST], timeout),
            TierDescriptor(distributed, TIER_PRIORITY[CacheTier.DISTRIBUTED], timeout),
            TierDescriptor(persistent, TIER_PRIORITY[CacheTier.PERSISTENT], timeout),
        ],
        clock=clock,
        enabled=cache_settings.ENABLE_CACHING,
    )


async def connect_tiers(orchestrator: CacheOrchestrator) -> dict[str, bool]:
    """Connect every tier that supports it. Failures leave the tier gated, not fatal."""
    connected: dict[str, bool] = {}
    for descriptor in orchestrator.tiers:
        connect = getattr(descriptor.store, "connect", None)
        if connect is not None:
            connected[descriptor.name] = await connect()
    return connected


async def disconnect_tiers(orchestrator: CacheOrchestrator) -> None:
    for descriptor in orchestrator.tiers:
        disconnect = getattr(descriptor.store, "disconnect", None)
        if disconnect is None:
            continue
        try:
            await disconnect()
        except Exception as e:
            logger.warning("Tier disconnect failed", tier=descriptor.name, error=str(e))


class ExpirySweeper:
    """Periodically removes expired entries from tiers without native TTL."""

    def __init__(self, orchestrator: CacheOrchestrator, interval: float):
        self._orchestrator = orchestrator
        self._interval = interval
        self._task: asyncio.Task | None = None

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running():
            return
        self._task = asyncio.create_task(self._run(), name="cache-expiry-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def sweep_once(self) -> dict[str, Any]:
        removed = await self._orchestrator.purge_expired()
        log_stage(logger, Stage.SWEEP, "Expiry sweep complete", level="debug", removed=removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep_once()
            except Exception as e:
                logger.warning("Expiry sweep failed", stage=Stage.SWEEP.value, error=str(e))


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_orchestrator: CacheOrchestrator | None = None
_sweeper: ExpirySweeper | None = None


def get_cache_orchestrator() -> CacheOrchestrator:
    """
    Get the process-wide orchestrator, building it on first use.

    Backends still connect lazily when built this way.
    """
    global _orchestrator

    if _orchestrator is None:
        _orchestrator = build_cache()

    return _orchestrator


async def init_cache(settings: Settings | None = None) -> CacheOrchestrator:
    """
    Build, connect and start sweeping.

    Returns:
        CacheOrchestrator: Initialized orchestrator
    """
    global _orchestrator, _sweeper

    settings = settings or get_settings()
    if _orchestrator is None:
        _orchestrator = build_cache(settings)

    connected = await connect_tiers(_orchestrator)

    if _sweeper is None:
        _sweeper = ExpirySweeper(_orchestrator, settings.cache.CACHE_SWEEP_INTERVAL)
        _sweeper.start()

    log_stage(logger, Stage.INITIALIZATION, "Cache initialized", connected=connected)
    return _orchestrator


async def close_cache() -> None:
    """Stop the sweeper, drain back-fills and disconnect backends."""
    global _orchestrator, _sweeper

    if _sweeper is not None:
        await _sweeper.stop()
        _sweeper = None

    if _orchestrator is not None:
        await _orchestrator.drain()
        await disconnect_tiers(_orchestrator)
        _orchestrator = None

    log_stage(logger, Stage.CLEANUP, "Cache shutdown")
