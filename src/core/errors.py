"""Error taxonomy for the supply-key migration.

Only `RetryableIndexingDelay` is recovered locally (bounded retry in the
index poller). Every other `MigrationError` aborts the run; the orchestrator
attaches the failing stage and the full step trail before surfacing it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from core.domain.models import StepRecord
    from core.domain.response_codes import Verdict


class KeyshiftError(Exception):
    """Base class for every error raised by this project."""


class ConfigurationError(KeyshiftError):
    """Required settings are missing or invalid (pre-flight, fatal)."""

    def __init__(self, message: str, *, missing: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.missing = tuple(missing)


class MigrationError(KeyshiftError):
    """Failure that aborts a migration run."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.stage: str | None = None
        self.trail: tuple[StepRecord, ...] = ()

    def attach(self, *, stage: str, trail: Sequence[StepRecord]) -> None:
        self.stage = stage
        self.trail = tuple(trail)


class AuthorityError(MigrationError):
    """The ledger rejected a privileged operation."""

    def __init__(self, message: str, *, verdict: Verdict | None = None) -> None:
        super().__init__(message)
        self.verdict = verdict

    @property
    def status(self) -> int | None:
        return self.verdict.code if self.verdict else None


class SubmissionError(MigrationError):
    """The request never reached consensus (transport/network). Retryable by the caller."""


class InvalidKeySpecError(MigrationError, ValueError):
    """A key-slot update request does not carry exactly one key variant."""


class RetryableIndexingDelay(MigrationError):
    """The index has not caught up with the ledger yet."""


class PollTimeoutError(MigrationError):
    """A bounded poll exhausted its attempts."""

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class IndexingTimeoutError(PollTimeoutError):
    """The registry identifier did not become resolvable within the retry budget."""


class IndexLookupError(MigrationError):
    """Permanent index failure (malformed address, transport, unexpected payload)."""


class EventNotObservedError(MigrationError):
    """The transaction confirmed but the expected confirming event is absent."""

    def __init__(self, message: str, *, event_name: str) -> None:
        super().__init__(message)
        self.event_name = event_name


class ContractResponseFailure(MigrationError):
    """A response code was observed and it is not the success code."""

    def __init__(self, message: str, *, verdict: Verdict) -> None:
        super().__init__(message)
        self.verdict = verdict

    @property
    def category(self) -> str:
        return self.verdict.category


class MigrationAborted(MigrationError):
    """The migration deadline expired or the caller cancelled the run."""
