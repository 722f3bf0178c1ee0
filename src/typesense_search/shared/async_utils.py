"""
Async Utilities for search fan-out.

Python 3.12+ features used:
- asyncio.TaskGroup for structured concurrency (3.11+)
- Type parameter syntax for generic functions

Provides:
- Settled fan-out: dispatch a batch of independent requests, join when all
  of them have finished (succeeded or failed)
- Circuit breaker for the transport
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any

from .exceptions import CircuitOpenError

logger = logging.getLogger(__name__)


# =============================================================================
# Parallel Execution with TaskGroup (Python 3.11+)
# =============================================================================


async def gather_with_errors[T](
    *coros: Awaitable[T],
    return_exceptions: bool = False,
) -> list[T | Exception]:
    """
    Execute coroutines concurrently using TaskGroup.

    Results are returned in the order the coroutines were given, never in
    completion order, so callers can map result ``i`` back to request ``i``.

    Args:
        *coros: Coroutines to execute
        return_exceptions: If True, a failed coroutine yields its exception in
            its slot and the others keep running (join, not race). If False,
            the first failure cancels the rest and is raised inside an
            ExceptionGroup.

    Returns:
        List of results (or exceptions if return_exceptions=True)

    Example:
        primary, facets = await gather_with_errors(
            client.search("products", primary_params),
            client.search("products", facet_params),
            return_exceptions=True,
        )
    """
    results: list[T | Exception] = [None] * len(coros)  # type: ignore[list-item]

    if return_exceptions:

        async def safe_run(coro: Awaitable[T], index: int) -> None:
            try:
                results[index] = await coro
            except Exception as e:
                results[index] = e

        async with asyncio.TaskGroup() as tg:
            for i, coro in enumerate(coros):
                tg.create_task(safe_run(coro, i))
    else:
        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(coro) for coro in coros]  # type: ignore[arg-type]
        results = [task.result() for task in tasks]

    return results


# =============================================================================
# Circuit Breaker Pattern
# =============================================================================


@dataclass
class CircuitBreaker:
    """
    Circuit breaker for fault tolerance.

    States:
    - CLOSED: Normal operation
    - OPEN: Failing, reject requests immediately
    - HALF_OPEN: Testing if service recovered

    Example:
        breaker = CircuitBreaker(failure_threshold=5)

        async with breaker:
            response = await http_client.get(url)
    """

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3

    _failure_count: int = field(init=False, default=0)
    _last_failure_time: float | None = field(init=False, default=None)
    _state: str = field(init=False, default="closed")
    _half_open_calls: int = field(init=False, default=0)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (rejecting requests)."""
        if self._state == "open":
            if self._last_failure_time:
                if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                    return False  # Move to half-open
            return True
        return False

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock:
            if self.is_open:
                raise CircuitOpenError()

            if self._state == "open":
                self._state = "half_open"
                self._half_open_calls = 0

            if self._state == "half_open":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise CircuitOpenError("circuit breaker is half-open (max calls reached)")
                self._half_open_calls += 1

        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        async with self._lock:
            if exc_val is not None:
                self._failure_count += 1
                self._last_failure_time = time.monotonic()

                if self._failure_count >= self.failure_threshold:
                    self._state = "open"
                    logger.warning(f"Circuit breaker opened after {self._failure_count} failures")
            else:
                if self._state == "half_open":
                    self._state = "closed"
                    self._failure_count = 0
                    logger.info("Circuit breaker closed (recovered)")
                elif self._state == "closed":
                    self._failure_count = max(0, self._failure_count - 1)
