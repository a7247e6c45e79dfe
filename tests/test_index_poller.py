import asyncio

import pytest

from core.errors import IndexingTimeoutError, IndexLookupError, RetryableIndexingDelay
from core.services.index_poller import resolve_registry_id

ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


class StubIndex:
    def __init__(self, lag: int, registry_id: str = "0.0.5001") -> None:
        self.lag = lag
        self.registry_id = registry_id
        self.lookups = 0

    async def lookup_by_native_address(self, address: str) -> str:
        self.lookups += 1
        if self.lookups <= self.lag:
            raise RetryableIndexingDelay(f"{address} not indexed yet")
        return self.registry_id


class BrokenIndex:
    def __init__(self) -> None:
        self.lookups = 0

    async def lookup_by_native_address(self, address: str) -> str:
        self.lookups += 1
        raise IndexLookupError("mirror node HTTP 500")


def test_resolves_once_indexed() -> None:
    index = StubIndex(lag=3)
    result = asyncio.run(resolve_registry_id(index, ADDRESS, max_attempts=5, interval=0))
    assert result == "0.0.5001"
    assert index.lookups == 4


def test_times_out_after_exactly_max_attempts() -> None:
    index = StubIndex(lag=50)
    with pytest.raises(IndexingTimeoutError) as excinfo:
        asyncio.run(resolve_registry_id(index, ADDRESS, max_attempts=10, interval=0))
    assert index.lookups == 10
    assert excinfo.value.attempts == 10


def test_malformed_address_fails_without_lookup() -> None:
    index = StubIndex(lag=0)
    with pytest.raises(IndexLookupError):
        asyncio.run(resolve_registry_id(index, "0x1234", max_attempts=10, interval=0))
    assert index.lookups == 0


def test_permanent_failure_is_not_retried() -> None:
    index = BrokenIndex()
    with pytest.raises(IndexLookupError):
        asyncio.run(resolve_registry_id(index, ADDRESS, max_attempts=10, interval=0))
    assert index.lookups == 1
