"""
Cache Statistics

Process-local counters. Every instance keeps its own; the distributed tier
additionally maintains shared counters in Redis for fleet-wide numbers.
"""

from collections import defaultdict
from typing import Any


def hit_rate(hits: int, misses: int) -> float:
    """Hit rate as a percentage rounded to 2 decimals (0 with no observations)."""
    total = hits + misses
    if total == 0:
        return 0
    return round(hits / total * 100, 2)


class StatsCollector:
    """
    Tracks cache performance counters.

    Metrics Tracked:
    - Per tier: hits, misses, sets
    - Per request: hits (any tier served it), misses (computed)

    Counters only ever increase.
    """

    def __init__(self):
        self._tiers: dict[str, dict[str, int]] = defaultdict(
            lambda: {"hits": 0, "misses": 0, "sets": 0}
        )
        self._hits = 0
        self._misses = 0

    def record_tier_hit(self, tier: str) -> None:
        self._tiers[tier]["hits"] += 1

    def record_tier_miss(self, tier: str) -> None:
        self._tiers[tier]["misses"] += 1

    def record_tier_set(self, tier: str) -> None:
        self._tiers[tier]["sets"] += 1

    def record_request(self, hit: bool) -> None:
        if hit:
            self._hits += 1
        else:
            self._misses += 1

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    def snapshot(self) -> dict[str, Any]:
        """
        Get a copy of all counters.

        Returns:
            Dict with request-level counters, ``hit_rate`` and a ``tiers``
            mapping of per-tier counters and hit rates
        """
        return {
            "hits": self._hits,
            "misses": self._misses,
            "total_requests": self._hits + self._misses,
            "hit_rate": hit_rate(self._hits, self._misses),
            "tiers": {
                name: {**counters, "hit_rate": hit_rate(counters["hits"], counters["misses"])}
                for name, counters in self._tiers.items()
            },
        }
