"""
Async utilities shared by the source adapters and the orchestrator.

Provides:
- Circuit breaker guarding each remote source
- Per-call timeout that raises a classified SourceTimeoutError
- Invocation of optional sync-or-async callbacks
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .exceptions import RateLimitError, SourceTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


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
    - HALF_OPEN: Probing whether the source recovered

    Example:
        breaker = CircuitBreaker(failure_threshold=5)

        async with breaker:
            result = await client.get(url)
    """

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3
    name: str = "source"

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
        if self._state != "open":
            return False
        if self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                return False
        return True

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock:
            if self.is_open:
                raise RateLimitError(
                    f"{self.name}: circuit breaker is open",
                    retry_after=self.recovery_timeout,
                )

            if self._state == "open":
                self._state = "half_open"
                self._half_open_calls = 0

            if self._state == "half_open":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise RateLimitError(
                        f"{self.name}: circuit breaker is half-open (max calls reached)",
                        retry_after=self.recovery_timeout / 2,
                    )
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
                if self._failure_count >= self.failure_threshold and self._state != "open":
                    self._state = "open"
                    logger.warning(f"{self.name}: circuit breaker opened after {self._failure_count} failures")
            elif self._state == "half_open":
                self._state = "closed"
                self._failure_count = 0
                logger.info(f"{self.name}: circuit breaker closed (recovered)")
            else:
                self._failure_count = max(0, self._failure_count - 1)


# =============================================================================
# Utility Functions
# =============================================================================


async def run_with_timeout(coro: Awaitable[T], timeout: float, *, source: str) -> T:
    """
    Await ``coro`` for at most ``timeout`` seconds.

    Raises:
        SourceTimeoutError: The coroutine did not finish in time. The
            underlying task is cancelled by ``asyncio.wait_for``.
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        raise SourceTimeoutError(source, timeout) from e


async def invoke_callback(callback: Callable[..., Any] | None, *args: Any) -> None:
    """
    Call an optional consumer callback, awaiting it when it is async.

    A failing callback is logged and never propagates into the search.
    """
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        name = getattr(callback, "__name__", repr(callback))
        logger.exception(f"Search callback {name} raised; ignoring")


__all__ = ["CircuitBreaker", "invoke_callback", "run_with_timeout"]
