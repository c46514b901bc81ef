"""
Tier Availability Gate

A small, process-local circuit breaker that decides whether a backend tier
is worth probing. Unlike a request-level breaker it never blocks: the check
is a pair of attribute reads, so ``TierStore.is_available`` can call it on
every lookup.

States:
    CLOSED     backend healthy, every operation allowed
    OPEN       backend failed, operations skipped until the cooldown passes
    HALF_OPEN  cooldown passed, operations resume; the first recorded
               success closes the gate, the first failure re-opens it for
               another cooldown
"""

import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from trustcache.core.config.constants import TIER_UNAVAILABLE_COOLDOWN
from trustcache.core.logging.logger import get_logger

logger = get_logger(__name__)


class GateState(str, Enum):
    """Enumeration of possible availability gate states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class TierHealthGate:
    """Tracks whether one tier backend is currently usable."""

    def __init__(
        self,
        tier_name: str,
        cooldown: float = TIER_UNAVAILABLE_COOLDOWN,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._tier_name = tier_name
        self._cooldown = cooldown
        self._monotonic = monotonic
        self._opened_at: float | None = None
        self._last_error: str | None = None
        self._failures = 0

    @property
    def state(self) -> GateState:
        if self._opened_at is None:
            return GateState.CLOSED
        if self._monotonic() - self._opened_at >= self._cooldown:
            return GateState.HALF_OPEN
        return GateState.OPEN

    def allows_request(self) -> bool:
        """True unless the gate is open and still cooling down."""
        return self.state != GateState.OPEN

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.info("Tier recovered", tier=self._tier_name, failures=self._failures)
        self._opened_at = None
        self._last_error = None
        self._failures = 0

    def record_failure(self, error: BaseException | str) -> None:
        was_closed = self._opened_at is None
        self._opened_at = self._monotonic()
        self._last_error = str(error)
        self._failures += 1
        if was_closed:
            logger.warning(
                "Tier marked unavailable",
                tier=self._tier_name,
                error=self._last_error,
                cooldown_seconds=self._cooldown,
            )

    def snapshot(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "consecutive_failures": self._failures,
            "last_error": self._last_error,
        }
