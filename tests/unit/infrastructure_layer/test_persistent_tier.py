"""
Unit Tests for PersistentTier (SQLAlchemy)

Runs against a private in-memory SQLite database.
"""

from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from tests.test_fixtures import CacheTestFactory
from trustcache.infrastructure.cache.persistent_tier import CachedRecord, extract_domain


def fetch_row(engine, key):
    with Session(engine) as session:
        return session.scalar(select(CachedRecord).where(CachedRecord.cache_key == key))


@pytest.mark.unit
class TestPersistentTier:
    @pytest.mark.asyncio
    async def test_set_then_get(self, persistent_tier, fake_clock):
        await persistent_tier.set(
            "analysis:a", CacheTestFactory.entry("https://news.example/1", now=fake_clock()), 3600
        )

        entry = await persistent_tier.get("analysis:a")

        assert entry.payload == {"score": 0.5}
        assert entry.url == "https://news.example/1"
        assert entry.expires_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_row_columns(self, persistent_tier, sqlite_engine, fake_clock):
        await persistent_tier.set(
            "analysis:a", CacheTestFactory.entry("https://news.example/1", now=fake_clock()), 3600
        )

        row = fetch_row(sqlite_engine, "analysis:a")

        assert row.domain == "news.example"
        assert row.url_hash == "encoded"
        assert row.hit_count == 0
        assert row.last_accessed_at is None

    @pytest.mark.asyncio
    async def test_hits_increment_count_and_touch_row(self, persistent_tier, sqlite_engine, fake_clock):
        await persistent_tier.set("k", CacheTestFactory.entry(now=fake_clock()), 3600)

        await persistent_tier.get("k")
        fake_clock.advance(10)
        entry = await persistent_tier.get("k")

        row = fetch_row(sqlite_engine, "k")
        assert entry.hit_count == 2
        assert row.hit_count == 2
        assert row.last_accessed_at is not None

    @pytest.mark.asyncio
    async def test_expired_row_is_deleted_on_read(self, persistent_tier, sqlite_engine, fake_clock):
        await persistent_tier.set("k", CacheTestFactory.entry(now=fake_clock()), 60)

        fake_clock.advance(60)

        assert await persistent_tier.get("k") is None
        assert fetch_row(sqlite_engine, "k") is None

    @pytest.mark.asyncio
    async def test_set_overwrites(self, persistent_tier, fake_clock):
        await persistent_tier.set("k", CacheTestFactory.entry(payload={"v": 1}, now=fake_clock()), 60)
        await persistent_tier.set("k", CacheTestFactory.entry(payload={"v": 2}, now=fake_clock()), 60)

        assert (await persistent_tier.get("k")).payload == {"v": 2}

    @pytest.mark.asyncio
    async def test_purge_expired(self, persistent_tier, fake_clock):
        entry = CacheTestFactory.entry(now=fake_clock())
        await persistent_tier.set("short", entry, 10)
        await persistent_tier.set("long", entry, 1000)

        fake_clock.advance(100)

        assert await persistent_tier.purge_expired() == 1
        assert await persistent_tier.get("long") is not None

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, persistent_tier, fake_clock):
        entry = CacheTestFactory.entry(now=fake_clock())
        await persistent_tier.set("a", entry, 60)
        await persistent_tier.set("b", entry, 60)

        await persistent_tier.delete("a")
        assert await persistent_tier.get("a") is None

        await persistent_tier.clear()
        assert await persistent_tier.get("b") is None

    @pytest.mark.asyncio
    async def test_malformed_payload_is_dropped(self, persistent_tier, sqlite_engine, fake_clock):
        await persistent_tier.set("k", CacheTestFactory.entry(now=fake_clock()), 60)
        with Session(sqlite_engine) as session:
            session.get(CachedRecord, "k").payload = "{broken"
            session.commit()

        assert await persistent_tier.get("k") is None
        assert fetch_row(sqlite_engine, "k") is None

    @pytest.mark.asyncio
    async def test_database_error_is_a_miss_and_gates_tier(self, persistent_tier):
        error = OperationalError("SELECT", {}, Exception("database is locked"))
        with patch.object(persistent_tier, "_get_sync", side_effect=error):
            assert await persistent_tier.get("k") is None

        assert not persistent_tier.is_available()
        assert (await persistent_tier.health_check())["status"] == "unavailable"

    @pytest.mark.asyncio
    async def test_non_database_error_is_a_miss_and_gates_tier(self, persistent_tier):
        with patch.object(persistent_tier, "_get_sync", side_effect=RuntimeError("driver crashed")):
            assert await persistent_tier.get("k") is None

        assert not persistent_tier.is_available()

    @pytest.mark.asyncio
    async def test_health_check(self, persistent_tier, fake_clock):
        await persistent_tier.set("k", CacheTestFactory.entry(now=fake_clock()), 60)

        health = await persistent_tier.health_check()

        assert health["status"] == "healthy"
        assert health["rows"] == 1
        assert health["dialect"] == "sqlite"


@pytest.mark.unit
@pytest.mark.parametrize(
    ("url", "domain"),
    [
        ("https://news.example/a", "news.example"),
        ("http://Sub.Example.org:8080/x", "sub.example.org"),
        ("quiz:easy:default", None),
    ],
)
def test_extract_domain(url, domain):
    assert extract_domain(url) == domain
