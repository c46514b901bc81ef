"""
Persistent Tier - relational database via SQLAlchemy ORM

The slowest and most durable tier. One row per cache key; expiry is an
``expires_at`` column filter rather than a native TTL, so expired rows are
deleted lazily on access and in bulk by ``purge_expired``.

SQLAlchemy sessions are blocking, so every operation runs in a worker thread
via ``asyncio.to_thread``. Datetimes are stored as naive UTC; the model layer
re-attaches the timezone on the way out.
"""

import asyncio
import threading
from collections.abc import Callable
from contextlib import nullcontext
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar
from urllib.parse import urlparse

import orjson
from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    func,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from trustcache.core.config.constants import CacheTier, Stage
from trustcache.core.config.settings import DatabaseSettings, get_settings
from trustcache.core.exceptions import MalformedCacheRecordError
from trustcache.core.logging.logger import get_logger, log_stage
from trustcache.core.models import CacheEntry, Clock, ensure_utc, utcnow
from trustcache.core.resilience import TierHealthGate

logger = get_logger(__name__)

T = TypeVar("T")

Base = declarative_base()


class CachedRecord(Base):
    """One cache entry as a database row."""

    __tablename__ = "analysis_cache"

    cache_key = Column(String(512), primary_key=True)
    url = Column(Text, nullable=False)
    url_hash = Column(String(512), nullable=False)
    domain = Column(String(255), nullable=True, index=True)
    payload = Column(Text, nullable=False)  # orjson-encoded payload
    cached_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    hit_count = Column(Integer, nullable=False, default=0)
    last_accessed_at = Column(DateTime, nullable=True)

    def to_entry(self) -> CacheEntry:
        try:
            payload = orjson.loads(self.payload)
        except orjson.JSONDecodeError as e:
            raise MalformedCacheRecordError.from_exception(
                e, message="Stored payload is not valid JSON", cache_key=self.cache_key
            )
        return CacheEntry(
            url=self.url,
            url_hash=self.url_hash,
            payload=payload,
            cached_at=ensure_utc(self.cached_at),
            expires_at=ensure_utc(self.expires_at),
            hit_count=self.hit_count or 0,
        )


def to_db_time(value: datetime) -> datetime:
    """Normalize to naive UTC for storage."""
    return ensure_utc(value).astimezone(timezone.utc).replace(tzinfo=None)


def extract_domain(url: str) -> str | None:
    """Hostname of ``url``, or None when the natural key is not a URL."""
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def create_cache_engine(settings: DatabaseSettings) -> Engine:
    """Build the engine; SQLite gets a single shared connection."""
    if settings.DATABASE_URL.startswith("sqlite"):
        return create_engine(
            settings.DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=settings.DATABASE_ECHO,
        )
    return create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO, pool_pre_ping=True)


class PersistentTier:
    """
    Database-backed tier.

    Args:
        engine: SQLAlchemy engine (built from settings when omitted)
        gate: Availability gate
        clock: Source of the current UTC time
    """

    def __init__(
        self,
        engine: Engine | None = None,
        settings: DatabaseSettings | None = None,
        gate: TierHealthGate | None = None,
        clock: Clock = utcnow,
        name: str = CacheTier.PERSISTENT.value,
    ):
        self.name = name
        self._settings = settings or get_settings().database
        self._engine = engine or create_cache_engine(self._settings)
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self._engine
        )
        self._gate = gate or TierHealthGate(name)
        self._clock = clock
        self._initialized = False
        self._init_lock = threading.RLock()
        # SQLite shares one connection between worker threads
        self._db_lock = (
            threading.RLock() if self._engine.dialect.name == "sqlite" else nullcontext()
        )
        self._hits = 0
        self._misses = 0

    def is_available(self) -> bool:
        return self._gate.allows_request()

    def report_failure(self, error: BaseException | str) -> None:
        self._gate.record_failure(error)

    # =========================================================================
    # Blocking operations (run in worker threads)
    # =========================================================================

    def _initialize(self) -> None:
        with self._init_lock:
            if self._initialized:
                return
            Base.metadata.create_all(bind=self._engine)
            self._initialized = True
            log_stage(logger, Stage.DATABASE, "Persistent tier initialized", dialect=self._engine.dialect.name)

    def _session(self) -> Session:
        self._initialize()
        return self._session_factory()

    def _get_sync(self, key: str, now: datetime) -> CachedRecord | None:
        with self._db_lock, self._session() as session:
            record = session.get(CachedRecord, key)
            if record is None:
                return None

            if record.expires_at <= to_db_time(now):
                session.delete(record)
                session.commit()
                return None

            session.execute(
                update(CachedRecord)
                .where(CachedRecord.cache_key == key)
                .values(hit_count=CachedRecord.hit_count + 1, last_accessed_at=to_db_time(now))
            )
            session.commit()
            session.refresh(record)
            session.expunge(record)
            return record

    def _set_sync(self, key: str, entry: CacheEntry, payload: str, expires_at: datetime) -> None:
        with self._db_lock, self._session() as session:
            session.merge(
                CachedRecord(
                    cache_key=key,
                    url=entry.url,
                    url_hash=entry.url_hash,
                    domain=extract_domain(entry.url),
                    payload=payload,
                    cached_at=to_db_time(entry.cached_at),
                    expires_at=to_db_time(expires_at),
                    hit_count=entry.hit_count,
                    last_accessed_at=None,
                )
            )
            session.commit()

    def _delete_sync(self, key: str) -> int:
        with self._db_lock, self._session() as session:
            result = session.execute(delete(CachedRecord).where(CachedRecord.cache_key == key))
            session.commit()
            return result.rowcount

    def _clear_sync(self) -> int:
        with self._db_lock, self._session() as session:
            result = session.execute(delete(CachedRecord))
            session.commit()
            return result.rowcount

    def _purge_expired_sync(self, now: datetime) -> int:
        with self._db_lock, self._session() as session:
            result = session.execute(
                delete(CachedRecord).where(CachedRecord.expires_at <= to_db_time(now))
            )
            session.commit()
            return result.rowcount

    def _count_sync(self) -> int:
        with self._db_lock, self._session() as session:
            return session.scalar(select(func.count()).select_from(CachedRecord)) or 0

    # =========================================================================
    # Async API
    # =========================================================================

    async def _run(self, operation: str, fn: Callable[..., T], *args, default: T, key: str | None = None) -> T:
        """Run ``fn`` in a worker thread; any backend error becomes ``default``."""
        try:
            result = await asyncio.to_thread(fn, *args)
        except Exception as e:
            self._gate.record_failure(e)
            log_stage(
                logger,
                Stage.DATABASE,
                f"Database {operation} failed, treating as miss",
                level="warning",
                cache_key=key,
                error=str(e),
            )
            return default
        self._gate.record_success()
        return result

    async def connect(self) -> bool:
        """Create the schema eagerly. Returns True if the database is reachable."""
        return await self._run("INITIALIZE", lambda: self._initialize() or True, default=False)

    async def disconnect(self) -> None:
        await asyncio.to_thread(self._engine.dispose)
        self._initialized = False

    async def get(self, key: str) -> CacheEntry | None:
        if not self.is_available():
            return None

        record = await self._run("SELECT", self._get_sync, key, self._clock(), default=None, key=key)
        if record is None:
            self._misses += 1
            return None

        try:
            entry = record.to_entry()
        except MalformedCacheRecordError as e:
            logger.warning("Dropping malformed database record", cache_key=key, error=e.message)
            await self.delete(key)
            self._misses += 1
            return None

        self._hits += 1
        return entry

    async def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        if not self.is_available():
            return

        try:
            payload = orjson.dumps(entry.payload).decode("utf-8")
        except TypeError as e:
            logger.warning("Database tier could not serialize payload", cache_key=key, error=str(e))
            return

        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        await self._run("UPSERT", self._set_sync, key, entry, payload, expires_at, default=None, key=key)

    async def delete(self, key: str) -> None:
        if not self.is_available():
            return
        await self._run("DELETE", self._delete_sync, key, default=0, key=key)

    async def clear(self) -> None:
        if not self.is_available():
            return
        removed = await self._run("DELETE ALL", self._clear_sync, default=0)
        log_stage(logger, Stage.CLEANUP, "Database cache cleared", removed=removed)

    async def purge_expired(self) -> int:
        """
        Delete every expired row.

        Returns:
            Number of rows removed
        """
        if not self.is_available():
            return 0
        removed = await self._run("PURGE", self._purge_expired_sync, self._clock(), default=0)
        if removed:
            log_stage(logger, Stage.SWEEP, "Database expired entries purged", removed=removed)
        return removed

    async def health_check(self) -> dict[str, Any]:
        gate = self._gate.snapshot()
        if not self.is_available():
            return {"status": "unavailable", "tier": self.name, "gate": gate}

        rows = await self._run("COUNT", self._count_sync, default=None)
        if rows is None:
            return {"status": "unhealthy", "tier": self.name, "gate": self._gate.snapshot()}

        return {
            "status": "healthy",
            "tier": self.name,
            "dialect": self._engine.dialect.name,
            "rows": rows,
            "hits": self._hits,
            "misses": self._misses,
            "gate": gate,
        }
