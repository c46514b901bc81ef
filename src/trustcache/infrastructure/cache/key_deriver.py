"""
Cache Key Derivation

Maps a natural identifier (usually an article URL) to the canonical key used
by every tier:

    analysis:aHR0cHM6Ly9hLmV4YW1wbGUvMQ          reversible form
    analysis:h:9f86d081884c7d659a2feaa0c55ad015...  long natural keys

URL-safe base64 without padding keeps keys free of ``/``, ``+``, ``=`` and
whitespace, so the same string is valid as a Redis key, a SQL primary key and
a dict key. The namespace prefix keeps logical caches apart on shared
backends.
"""

import base64
import binascii
import hashlib

from trustcache.core.config.constants import (
    HASHED_KEY_MARKER,
    MAX_ENCODED_KEY_LENGTH,
    CacheNamespace,
)


def encode_natural_key(natural_key: str) -> str:
    """
    Encode a natural key into its URL-safe identifier.

    Returns the base64 form, or ``h:<sha256>`` when that form is too long.
    """
    encoded = base64.urlsafe_b64encode(natural_key.encode("utf-8")).decode("ascii").rstrip("=")
    if len(encoded) <= MAX_ENCODED_KEY_LENGTH:
        return encoded
    digest = hashlib.sha256(natural_key.encode("utf-8")).hexdigest()
    return f"{HASHED_KEY_MARKER}:{digest}"


def derive(natural_key: str, namespace: CacheNamespace | str = CacheNamespace.ANALYSIS) -> str:
    """
    Derive the cache key for ``natural_key`` in ``namespace``.

    Deterministic across calls and processes.

    Args:
        natural_key: Caller-meaningful identifier, e.g. a URL
        namespace: Logical cache the key belongs to

    Returns:
        Cache key such as ``analysis:aHR0cHM6Ly9h...``

    Raises:
        ValueError: If the natural key is empty
    """
    if not isinstance(natural_key, str) or not natural_key:
        raise ValueError("natural_key must be a non-empty string")

    namespace_value = getattr(namespace, "value", namespace)
    return f"{namespace_value}:{encode_natural_key(natural_key)}"


def split(cache_key: str) -> tuple[str, str]:
    """Split a cache key into ``(namespace, encoded part)``."""
    namespace, _, encoded = cache_key.partition(":")
    return namespace, encoded


def decode(cache_key: str) -> str | None:
    """
    Recover the natural key from a reversible cache key.

    Returns:
        The natural key, or None for hashed keys and malformed input
    """
    _, encoded = split(cache_key)
    if not encoded or encoded.startswith(f"{HASHED_KEY_MARKER}:"):
        return None

    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
