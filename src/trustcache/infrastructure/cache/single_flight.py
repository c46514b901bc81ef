"""
Single-Flight Guard

Coalesces concurrent computations for the same cache key: the first caller
(the leader) starts the computation as a task owned by the guard, every
caller arriving while it is in flight (a follower) awaits the same task.

Invariants:
- The registry check and insert happen without an ``await`` in between, so
  on one event loop two callers can never both become leader
- Every caller, the leader included, awaits ``asyncio.shield(task)``: a
  cancelled caller never cancels the shared computation, and the remaining
  callers still receive its result or its error
- Failures are delivered to every current waiter and never cached; the record
  is removed when the task finishes so the next call computes again
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from trustcache.core.config.constants import Stage
from trustcache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class InFlightComputation(Generic[T]):
    task: asyncio.Future
    waiters: int = 0


class SingleFlightGuard:
    """Per-key in-flight computation registry."""

    def __init__(self) -> None:
        self._in_flight: dict[str, InFlightComputation[Any]] = {}

    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def run(self, key: str, compute_fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``compute_fn`` at most once per in-flight window for ``key``.

        The computation keeps running if the caller that started it is
        cancelled.

        Returns:
            The computation's result, for the leader and every follower

        Raises:
            Whatever ``compute_fn`` raised, to the leader and every follower
        """
        computation = self._in_flight.get(key)
        if computation is not None and not computation.task.done():
            computation.waiters += 1
            log_stage(
                logger,
                Stage.SINGLE_FLIGHT,
                "Joining in-flight computation",
                level="debug",
                cache_key=key,
                waiters=computation.waiters,
            )
            return await asyncio.shield(computation.task)

        computation = InFlightComputation(task=asyncio.ensure_future(compute_fn()))
        self._in_flight[key] = computation
        computation.task.add_done_callback(lambda _: self._resolve(key, computation))
        return await asyncio.shield(computation.task)

    def _resolve(self, key: str, computation: InFlightComputation[Any]) -> None:
        if self._in_flight.get(key) is computation:
            del self._in_flight[key]

        task = computation.task
        if task.cancelled():
            return
        # Retrieve it so a failure nobody awaited does not warn at GC
        if task.exception() is not None:
            return
        if computation.waiters:
            log_stage(
                logger,
                Stage.SINGLE_FLIGHT,
                "Computation shared with followers",
                cache_key=key,
                followers=computation.waiters,
            )
