import asyncio

import pytest

from core.errors import IndexLookupError, MigrationAborted, PollTimeoutError, RetryableIndexingDelay
from core.services.polling import Deadline, poll_until


class Flaky:
    def __init__(self, failures: int, result: str = "ok") -> None:
        self.failures = failures
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise RetryableIndexingDelay(f"not yet ({self.calls})")
        return self.result


def test_succeeds_on_last_allowed_attempt() -> None:
    attempt = Flaky(failures=4)
    retries: list[int] = []

    result = asyncio.run(
        poll_until(attempt, interval=0, max_attempts=5, on_retry=lambda n, exc: retries.append(n))
    )

    assert result == "ok"
    assert attempt.calls == 5
    assert retries == [1, 2, 3, 4]


def test_exhaustion_makes_exactly_max_attempts() -> None:
    attempt = Flaky(failures=100)

    with pytest.raises(PollTimeoutError) as excinfo:
        asyncio.run(poll_until(attempt, interval=0, max_attempts=3))

    assert attempt.calls == 3
    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.__cause__, RetryableIndexingDelay)


def test_non_retryable_error_propagates_immediately() -> None:
    calls = 0

    async def attempt() -> str:
        nonlocal calls
        calls += 1
        raise IndexLookupError("malformed payload")

    with pytest.raises(IndexLookupError):
        asyncio.run(poll_until(attempt, interval=0, max_attempts=10))
    assert calls == 1


def test_rejects_non_positive_budget() -> None:
    with pytest.raises(ValueError):
        asyncio.run(poll_until(Flaky(0), interval=0, max_attempts=0))


def test_cancel_wakes_a_pending_wait() -> None:
    async def run() -> None:
        deadline = Deadline(None)
        attempt = Flaky(failures=100)

        async def cancel_soon() -> None:
            await asyncio.sleep(0.01)
            deadline.cancel("operator interrupt")

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(MigrationAborted, match="operator interrupt"):
            await poll_until(attempt, interval=30, max_attempts=5, deadline=deadline)
        await canceller
        assert attempt.calls == 1

    asyncio.run(run())


def test_expired_deadline_aborts_before_next_attempt() -> None:
    now = [100.0]
    deadline = Deadline(5, clock=lambda: now[0])
    assert deadline.remaining() == 5
    deadline.check()

    now[0] = 106.0
    assert deadline.remaining() == 0
    with pytest.raises(MigrationAborted, match="deadline"):
        deadline.check()
