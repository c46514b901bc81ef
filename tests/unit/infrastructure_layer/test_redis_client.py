"""
Unit Tests for RedisClient

The redis-py client is replaced by AsyncMock; these tests cover lazy
connection, bounded retry and error mapping.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError, ResponseError, TimeoutError

from trustcache.core.config.settings import RedisSettings
from trustcache.core.exceptions import TierOperationError, TierUnavailableError
from trustcache.infrastructure.cache.redis_client import OperationExecutor, RedisClient

FROM_URL = "trustcache.infrastructure.cache.redis_client.redis.Redis.from_url"


@pytest.fixture
def redis_settings():
    return RedisSettings(REDIS_URL="redis://localhost:6379/0", REDIS_MAX_ATTEMPTS=3, REDIS_RETRY_MAX_DELAY=0.1)


@pytest.fixture
def raw_redis():
    client = AsyncMock()
    client.ping = AsyncMock(return_value=True)
    return client


@pytest.mark.unit
class TestOperationExecutor:
    @pytest.mark.asyncio
    async def test_set_with_ttl_uses_ex(self, raw_redis, redis_settings):
        executor = OperationExecutor(raw_redis, redis_settings)

        await executor.set("k", "v", ttl=60)

        raw_redis.set.assert_awaited_once_with("k", "v", ex=60)

    @pytest.mark.asyncio
    async def test_set_keepttl(self, raw_redis, redis_settings):
        executor = OperationExecutor(raw_redis, redis_settings)

        await executor.set("k", "v", keepttl=True)

        raw_redis.set.assert_awaited_once_with("k", "v", keepttl=True, xx=True)

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, raw_redis, redis_settings):
        raw_redis.get = AsyncMock(side_effect=[ConnectionError("reset"), TimeoutError("slow"), "value"])
        executor = OperationExecutor(raw_redis, redis_settings)

        assert await executor.get("k") == "value"
        assert raw_redis.get.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, raw_redis, redis_settings):
        raw_redis.get = AsyncMock(side_effect=ConnectionError("down"))
        executor = OperationExecutor(raw_redis, redis_settings)

        with pytest.raises(TierOperationError) as exc_info:
            await executor.get("analysis:k")

        assert raw_redis.get.await_count == 3
        assert exc_info.value.cache_key == "analysis:k"
        assert exc_info.value.details["original_error"] == "ConnectionError"

    @pytest.mark.asyncio
    async def test_command_errors_are_not_retried(self, raw_redis, redis_settings):
        raw_redis.incr = AsyncMock(side_effect=ResponseError("WRONGTYPE"))
        executor = OperationExecutor(raw_redis, redis_settings)

        with pytest.raises(TierOperationError):
            await executor.incr("k")

        assert raw_redis.incr.await_count == 1

    @pytest.mark.asyncio
    async def test_delete_matching_batches_scan_results(self, raw_redis, redis_settings):
        async def scan_iter(match, count):
            for key in ("analysis:a", "analysis:b", "analysis:c"):
                yield key

        raw_redis.scan_iter = scan_iter
        raw_redis.delete = AsyncMock(side_effect=lambda *keys: len(keys))
        executor = OperationExecutor(raw_redis, redis_settings)

        removed = await executor.delete_matching("analysis:*", batch_size=2)

        assert removed == 3
        assert raw_redis.delete.await_count == 2


@pytest.mark.unit
class TestRedisClientConnection:
    @pytest.mark.asyncio
    async def test_connects_lazily_once(self, raw_redis, redis_settings):
        raw_redis.get = AsyncMock(return_value=None)
        with patch(FROM_URL, return_value=raw_redis) as from_url:
            client = RedisClient(redis_settings)
            assert not client.is_ready()

            await asyncio.gather(client.get("a"), client.get("b"))

        from_url.assert_called_once()
        assert client.is_ready()

    @pytest.mark.asyncio
    async def test_connect_timeout_is_configured(self, raw_redis, redis_settings):
        with patch(FROM_URL, return_value=raw_redis) as from_url:
            await RedisClient(redis_settings).connect()

        assert from_url.call_args.kwargs["socket_connect_timeout"] == 10
        assert from_url.call_args.kwargs["decode_responses"] is True

    @pytest.mark.asyncio
    async def test_unreachable_server_raises_unavailable(self, raw_redis, redis_settings):
        raw_redis.ping = AsyncMock(side_effect=ConnectionError("refused"))
        with patch(FROM_URL, return_value=raw_redis):
            client = RedisClient(redis_settings)

            with pytest.raises(TierUnavailableError):
                await client.ensure_connected()

        assert raw_redis.ping.await_count == 3
        assert raw_redis.aclose.await_count == 3
        assert not client.is_ready()

    @pytest.mark.asyncio
    async def test_disconnect(self, raw_redis, redis_settings):
        with patch(FROM_URL, return_value=raw_redis):
            client = RedisClient(redis_settings)
            await client.connect()
            await client.disconnect()

        raw_redis.aclose.assert_awaited_once()
        assert not client.is_ready()

    @pytest.mark.asyncio
    async def test_health_check_before_connect(self, redis_settings):
        health = await RedisClient(redis_settings).health_check()

        assert health["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_health_check_reports_latency(self, raw_redis, redis_settings):
        with patch(FROM_URL, return_value=raw_redis):
            client = RedisClient(redis_settings)
            await client.connect()

            health = await client.health_check()

        assert health["status"] == "healthy"
        assert health["ping_latency_ms"] is not None
