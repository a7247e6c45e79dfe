"""Resolve a contract's registry id through the eventually-consistent index.

"Not indexed yet" is retried within the budget; every other failure
(malformed address, transport, unexpected payload) is permanent and raised
on the first attempt.
"""

from __future__ import annotations

from typing import Callable

from core.domain.identifiers import is_evm_address
from core.errors import IndexingTimeoutError, IndexLookupError, PollTimeoutError, RetryableIndexingDelay
from core.interfaces.services import IndexQueryService
from core.services.polling import Deadline, poll_until


async def resolve_registry_id(
    index: IndexQueryService,
    native_address: str,
    *,
    max_attempts: int,
    interval: float,
    deadline: Deadline | None = None,
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> str:
    if not is_evm_address(native_address):
        raise IndexLookupError(f"malformed contract address: {native_address!r}")

    async def lookup() -> str:
        return await index.lookup_by_native_address(native_address)

    try:
        return await poll_until(
            lookup,
            interval=interval,
            max_attempts=max_attempts,
            deadline=deadline,
            retry_on=(RetryableIndexingDelay,),
            on_retry=on_retry,
        )
    except PollTimeoutError as exc:
        raise IndexingTimeoutError(
            f"{native_address} not indexed after {exc.attempts} attempts",
            attempts=exc.attempts,
        ) from exc
