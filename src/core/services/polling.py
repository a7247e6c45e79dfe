"""Bounded polling and the migration-wide deadline.

Every suspend point of a migration goes through `Deadline.sleep`, so a caller
can abort the whole run (`Deadline.cancel()` or expiry), not just the current
wait.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, TypeVar

from core.errors import MigrationAborted, PollTimeoutError, RetryableIndexingDelay

T = TypeVar("T")


class Deadline:
    """Absolute deadline on the monotonic clock plus a cancellation flag."""

    def __init__(self, seconds: float | None = None, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds
        self._cancelled = asyncio.Event()
        self.reason: str | None = None

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self.reason = reason
        self._cancelled.set()

    def check(self) -> None:
        """Raise `MigrationAborted` if cancelled or expired."""

        if self.cancelled:
            raise MigrationAborted(f"migration aborted: {self.reason}")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise MigrationAborted("migration deadline exceeded")

    async def sleep(self, seconds: float) -> None:
        """Cooperative delay that wakes early and raises on cancel/expiry."""

        self.check()
        if seconds <= 0:
            return
        remaining = self.remaining()
        wait = seconds if remaining is None else min(seconds, remaining)
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=wait)
        except asyncio.TimeoutError:
            pass
        self.check()


async def poll_until(
    attempt: Callable[[], Awaitable[T]],
    *,
    interval: float,
    max_attempts: int,
    deadline: Deadline | None = None,
    retry_on: tuple[type[BaseException], ...] = (RetryableIndexingDelay,),
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """Call `attempt` until it returns, at most `max_attempts` times.

    Only exceptions in `retry_on` are retried; anything else propagates on the
    first occurrence. Exhaustion raises `PollTimeoutError` chained to the last
    retryable error.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    deadline = deadline or Deadline.unbounded()

    last: BaseException | None = None
    for number in range(1, max_attempts + 1):
        deadline.check()
        try:
            return await attempt()
        except retry_on as exc:
            last = exc
            if on_retry:
                on_retry(number, exc)
            if number == max_attempts:
                break
            await deadline.sleep(interval)

    raise PollTimeoutError(
        f"gave up after {max_attempts} attempts: {last}",
        attempts=max_attempts,
    ) from last
