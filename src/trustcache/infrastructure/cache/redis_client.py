"""
Redis Client with Lazy Connection and Bounded Retry

Architecture:
    RedisClient (Public API)
        ├── ConnectionManager (Lazy connection lifecycle)
        ├── OperationExecutor (Command execution with retry and error mapping)
        └── HealthMonitor (Health checks and backend info)

Connection policy:
    - Connect lazily on the first real operation, exactly once per process
    - Connect timeout 10s
    - Per-request retry: 3 attempts, linearly increasing backoff capped at 2s
"""

import asyncio
import time
from typing import Any

import redis.asyncio as redis
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from trustcache.core.config.constants import REDIS_RETRY_STEP, Stage
from trustcache.core.config.settings import RedisSettings, get_settings
from trustcache.core.exceptions import TierOperationError, TierUnavailableError
from trustcache.core.logging.logger import get_logger

logger = get_logger(__name__)


def build_retry(max_attempts: int, max_delay: float):
    """
    Retry decorator for transient Redis failures.

    Only connection and timeout errors are retried; command errors
    (wrong type, out of memory) fail immediately.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_incrementing(start=REDIS_RETRY_STEP, increment=REDIS_RETRY_STEP, max=max_delay),
        retry=retry_if_exception_type((ConnectionError, TimeoutError)),
        before_sleep=lambda retry_state: logger.info(
            "Redis retry",
            stage=Stage.REDIS.value,
            attempt=retry_state.attempt_number,
            delay=round(retry_state.idle_for, 3),
        ),
        reraise=True,
    )


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    The pool is created on the first ``connect`` call and verified with a
    ping. Reconnection after a dropped socket is handled by the redis-py
    pool itself; this class only tracks whether the initial handshake
    succeeded.
    """

    def __init__(self, settings: RedisSettings):
        self._settings = settings
        self._client: redis.Redis | None = None
        self._is_connected = False
        self._connect = build_retry(
            settings.REDIS_MAX_ATTEMPTS, settings.REDIS_RETRY_MAX_DELAY
        )(self._connect_once)

    async def _connect_once(self) -> redis.Redis:
        client = redis.Redis.from_url(
            self._settings.REDIS_URL,
            password=self._settings.REDIS_PASSWORD,
            max_connections=self._settings.REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=self._settings.REDIS_SOCKET_CONNECT_TIMEOUT,
            socket_timeout=self._settings.REDIS_SOCKET_TIMEOUT,
            health_check_interval=self._settings.REDIS_HEALTH_CHECK_INTERVAL,
            decode_responses=True,
        )
        try:
            await client.ping()
        except RedisError:
            await client.aclose()
            raise
        return client

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis.

        Returns:
            redis.Redis: Connected Redis client

        Raises:
            TierUnavailableError: If every connection attempt fails
        """
        if self._is_connected and self._client:
            return self._client

        try:
            self._client = await self._connect()
        except RedisError as e:
            logger.warning("Failed to connect to Redis", stage=Stage.REDIS.value, error=str(e))
            raise TierUnavailableError.from_exception(
                e, message=f"Failed to connect to Redis: {e}", tier="redis"
            )

        self._is_connected = True
        logger.info(
            "Redis connected",
            stage=Stage.REDIS.value,
            max_connections=self._settings.REDIS_MAX_CONNECTIONS,
        )
        return self._client

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()

        self._client = None
        self._is_connected = False
        logger.info("Redis disconnected", stage=Stage.REDIS.value)

    def get_client(self) -> redis.Redis | None:
        return self._client

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with retry and consistent error handling.

    Error Handling Strategy:
    - Retry connection/timeout errors (bounded)
    - Map any RedisError to TierOperationError with the key in details
    """

    def __init__(self, redis_client: redis.Redis, settings: RedisSettings):
        self._redis = redis_client
        self._execute = build_retry(
            settings.REDIS_MAX_ATTEMPTS, settings.REDIS_RETRY_MAX_DELAY
        )(self._execute_once)

    async def _execute_once(self, command: str, *args, **kwargs) -> Any:
        return await getattr(self._redis, command)(*args, **kwargs)

    async def _command(self, command: str, *args, **kwargs) -> Any:
        try:
            return await self._execute(command, *args, **kwargs)
        except RedisError as e:
            logger.warning(
                f"Redis {command.upper()} failed",
                stage=Stage.REDIS.value,
                args=args[:1],
                error=str(e),
            )
            raise TierOperationError.from_exception(
                e,
                message=f"Redis {command.upper()} failed: {e}",
                cache_key=str(args[0]) if args else None,
                tier="redis",
            )

    async def get(self, key: str) -> str | None:
        return await self._command("get", key)

    async def set(
        self, key: str, value: str, ttl: int | None = None, keepttl: bool = False
    ) -> bool:
        """
        SET with either a fresh TTL (EX) or the key's remaining TTL (KEEPTTL).
        """
        if keepttl:
            result = await self._command("set", key, value, keepttl=True, xx=True)
        else:
            result = await self._command("set", key, value, ex=ttl)
        return result is not None

    async def delete(self, *keys: str) -> int:
        return await self._command("delete", *keys)

    async def incr(self, key: str) -> int:
        return await self._command("incr", key)

    async def dbsize(self) -> int:
        return await self._command("dbsize")

    async def info(self, section: str) -> dict[str, Any]:
        return await self._command("info", section)

    async def delete_matching(self, pattern: str, batch_size: int = 500) -> int:
        """
        Delete every key matching ``pattern`` using SCAN (never KEYS/FLUSHDB).

        Returns:
            Number of keys deleted
        """
        deleted = 0
        batch: list[str] = []
        try:
            async for key in self._redis.scan_iter(match=pattern, count=batch_size):
                batch.append(key)
                if len(batch) >= batch_size:
                    deleted += await self._redis.delete(*batch)
                    batch.clear()
            if batch:
                deleted += await self._redis.delete(*batch)
        except RedisError as e:
            logger.warning("Redis SCAN/DEL failed", stage=Stage.REDIS.value, pattern=pattern, error=str(e))
            raise TierOperationError.from_exception(
                e, message=f"Redis pattern delete failed: {e}", pattern=pattern, tier="redis"
            )
        return deleted


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """Health checks and backend-reported usage figures."""

    def __init__(self, connection_manager: ConnectionManager):
        self._conn_mgr = connection_manager

    async def health_check(self) -> dict[str, Any]:
        health = {
            "status": "healthy",
            "connected": self._conn_mgr.is_connected(),
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.get_client()
        if not client:
            health["status"] = "unhealthy"
            health["error"] = "Client not initialized"
            return health

        try:
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except RedisError as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Async Redis client used by the distributed tier.

    Usage:
        client = RedisClient()
        await client.ensure_connected()
        await client.set("key", "value", ttl=3600)
        value = await client.get("key")
        await client.disconnect()
    """

    def __init__(self, settings: RedisSettings | None = None):
        self._settings = settings or get_settings().redis
        self._conn_mgr = ConnectionManager(self._settings)
        self._executor: OperationExecutor | None = None
        self._health_monitor = HealthMonitor(self._conn_mgr)
        self._connect_lock = asyncio.Lock()

    async def connect(self) -> None:
        """
        Establish the connection.

        Raises:
            TierUnavailableError: If connection fails
        """
        client = await self._conn_mgr.connect()
        self._executor = OperationExecutor(client, self._settings)

    async def ensure_connected(self) -> None:
        """Connect once; concurrent callers share the same attempt."""
        if self._executor is not None:
            return
        async with self._connect_lock:
            if self._executor is None:
                await self.connect()

    async def disconnect(self) -> None:
        await self._conn_mgr.disconnect()
        self._executor = None

    def is_ready(self) -> bool:
        return self._executor is not None and self._conn_mgr.is_connected()

    async def _ready_executor(self) -> OperationExecutor:
        await self.ensure_connected()
        return self._executor

    # -------------------------------------------------------------------------
    # Delegate to OperationExecutor
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await (await self._ready_executor()).get(key)

    async def set(
        self, key: str, value: str, ttl: int | None = None, keepttl: bool = False
    ) -> bool:
        return await (await self._ready_executor()).set(key, value, ttl, keepttl)

    async def delete(self, *keys: str) -> int:
        return await (await self._ready_executor()).delete(*keys)

    async def incr(self, key: str) -> int:
        return await (await self._ready_executor()).incr(key)

    async def dbsize(self) -> int:
        return await (await self._ready_executor()).dbsize()

    async def info(self, section: str) -> dict[str, Any]:
        return await (await self._ready_executor()).info(section)

    async def delete_matching(self, pattern: str) -> int:
        return await (await self._ready_executor()).delete_matching(pattern)

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()
