"""
Cache Entry Model

The record every tier stores for one cache key. Redis values and database
payloads share one JSON wire format:

    {
        "url": "https://a.example/1",
        "urlHash": "aHR0cHM6Ly9hLmV4YW1wbGUvMQ",
        "payload": {...},
        "cachedAt": "2025-01-01T00:00:00Z",
        "expiresAt": "2025-01-02T00:00:00Z",
        "hitCount": 0
    }

Records written by older deployments carry ``analysis`` instead of
``payload``; both are accepted on read.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import orjson
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from trustcache.core.exceptions import MalformedCacheRecordError

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CacheEntry(BaseModel):
    """
    One cached payload with its lifecycle metadata.

    Each tier holds its own copy; entries are never shared between tiers.
    """

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., description="Natural key the entry was derived from")
    url_hash: str = Field(..., alias="urlHash", description="Encoded natural key")
    payload: Any = Field(
        ...,
        validation_alias=AliasChoices("payload", "analysis"),
        description="Cached result (JSON-compatible)",
    )
    cached_at: datetime = Field(..., alias="cachedAt")
    expires_at: datetime = Field(..., alias="expiresAt")
    hit_count: int = Field(default=0, ge=0, alias="hitCount")

    @classmethod
    def create(
        cls,
        url: str,
        url_hash: str,
        payload: Any,
        ttl_seconds: int,
        now: datetime | None = None,
    ) -> "CacheEntry":
        """Build a fresh entry expiring ``ttl_seconds`` from ``now``."""
        now = now or utcnow()
        return cls(
            url=url,
            url_hash=url_hash,
            payload=payload,
            cached_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
            hit_count=0,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """True once ``expires_at`` is reached."""
        return ensure_utc(self.expires_at) <= (now or utcnow())

    def remaining_ttl(self, now: datetime | None = None) -> int:
        """Whole seconds left before expiry (0 when already expired)."""
        remaining = (ensure_utc(self.expires_at) - (now or utcnow())).total_seconds()
        return max(int(remaining), 0)

    def with_hit(self) -> "CacheEntry":
        """Copy with ``hit_count`` incremented."""
        return self.model_copy(update={"hit_count": self.hit_count + 1})

    def to_json(self) -> str:
        """Serialize to the wire format."""
        return orjson.dumps(self.model_dump(mode="json", by_alias=True)).decode("utf-8")

    @classmethod
    def from_json(cls, raw: str | bytes, cache_key: str | None = None) -> "CacheEntry":
        """
        Parse the wire format.

        Raises:
            MalformedCacheRecordError: If the data is not a valid entry
        """
        try:
            entry = cls.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError, TypeError) as e:
            raise MalformedCacheRecordError.from_exception(
                e, message="Stored cache record could not be decoded", cache_key=cache_key
            )
        return entry.model_copy(
            update={
                "cached_at": ensure_utc(entry.cached_at),
                "expires_at": ensure_utc(entry.expires_at),
            }
        )


class CacheResult(BaseModel):
    """
    Value returned by the orchestrator, tagged for telemetry.

    ``cache_source`` is the tier name that served the payload,
    or None when it was freshly computed.
    """

    payload: Any
    cached: bool
    cache_source: str | None = None
    cache_key: str
