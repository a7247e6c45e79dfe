"""Supply-key migration orchestration.

This module sequences the ledger, contract and index services into the
end-to-end workflow and owns the audit trail. The CLI delegates everything
here and only renders hooks, which keeps side-effects (printing, progress)
out of the core logic and makes the workflow reusable from tests or other
entry-points.

Two workflows share one state machine:

- `run_initial` (operator key → contract):
  Init → TokenEstablished → ContractDeployed → RegistryResolved →
  AuthorityRotated → MintVerified → Done
- `run_rotation` (contract → contract): same, without RegistryResolved,
  because the new key references the contract's EVM address.

Any `MigrationError` ends the run in `Failed(stage, cause)`; the only retries
are the index lookups inside RegistryResolved. A confirmed rotation is never
rolled back.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Sequence

from core.config import AppSettings
from core.domain.events import RESPONSE_CODE, TOKEN_MINT_COMPLETE
from core.domain.models import (
    BytecodeRef,
    CapabilityKeySpec,
    ContractInstance,
    KeySlot,
    MigrationFailure,
    MigrationReport,
    MigrationStage,
    MigrationSummary,
    OperationReceipt,
    StepOutcome,
    StepRecord,
    TokenRecord,
    TokenSpec,
)
from core.domain.response_codes import interpret
from core.errors import ContractResponseFailure, EventNotObservedError, MigrationError
from core.interfaces.services import AuditSink, IndexQueryService
from core.services.authority_executor import AuthorityTransactionExecutor
from core.services.contract_driver import MINT_TOKENS, UPDATE_TOKEN_KEYS, ContractDriver
from core.services.index_poller import resolve_registry_id
from core.services.polling import Deadline


@dataclass
class MigrationOptions:
    """Tunables of a run."""

    mint_amount: int = 5000
    gas_limit: int = 1_000_000
    index_max_attempts: int = 10
    index_poll_interval: float = 1.0
    settle_delay: float = 5.0
    key_slot: KeySlot = KeySlot.SUPPLY

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "MigrationOptions":
        return cls(
            mint_amount=settings.mint_amount,
            gas_limit=settings.gas_limit,
            index_max_attempts=settings.index_max_attempts,
            index_poll_interval=settings.index_poll_interval_seconds,
            settle_delay=settings.settle_delay_seconds,
        )


@dataclass
class MigrationHooks:
    """Optional callbacks for UI layers (progress, trail rendering)."""

    step_started: Callable[[MigrationStage], None] | None = None
    step_finished: Callable[[StepRecord], None] | None = None


@dataclass
class _StepContext:
    detail: str = ""


@dataclass
class _Run:
    workflow: str
    hooks: MigrationHooks
    sinks: Sequence[AuditSink]
    trail: list[StepRecord] = field(default_factory=list)
    summary: MigrationSummary = field(default_factory=MigrationSummary)

    def record(self, entry: StepRecord) -> None:
        self.trail.append(entry)
        for sink in self.sinks:
            sink.record(entry)
        if self.hooks.step_finished:
            self.hooks.step_finished(entry)

    @asynccontextmanager
    async def step(self, stage: MigrationStage, deadline: Deadline) -> AsyncIterator[_StepContext]:
        if self.hooks.step_started:
            self.hooks.step_started(stage)
        ctx = _StepContext()
        try:
            deadline.check()
            yield ctx
        except MigrationError as exc:
            self.record(_fatal(stage, exc))
            exc.attach(stage=stage.value, trail=())
            raise
        except Exception as exc:
            self.record(_fatal(stage, exc))
            raise
        self.record(StepRecord(step=stage, outcome=StepOutcome.SUCCESS, detail=ctx.detail))

    def retry_recorder(self, stage: MigrationStage, max_attempts: int) -> Callable[[int, BaseException], None]:
        def on_retry(number: int, exc: BaseException) -> None:
            self.record(
                StepRecord(
                    step=stage,
                    outcome=StepOutcome.RETRYABLE_FAILURE,
                    detail=f"attempt {number}/{max_attempts}: {exc}",
                    error_type=type(exc).__name__,
                )
            )

        return on_retry

    def done(self) -> MigrationReport:
        return MigrationReport(
            workflow=self.workflow,
            state=MigrationStage.DONE,
            trail=list(self.trail),
            summary=self.summary,
        )

    def failed(self, exc: MigrationError) -> MigrationReport:
        stage = MigrationStage(exc.stage) if exc.stage else MigrationStage.INIT
        exc.attach(stage=stage.value, trail=self.trail)
        verdict = getattr(exc, "verdict", None)
        return MigrationReport(
            workflow=self.workflow,
            state=MigrationStage.FAILED,
            trail=list(self.trail),
            summary=self.summary,
            failure=MigrationFailure(
                stage=stage,
                error_type=type(exc).__name__,
                message=str(exc),
                category=verdict.category if verdict else None,
                status=verdict.code if verdict else None,
            ),
            error=exc,
        )


def _fatal(stage: MigrationStage, exc: BaseException) -> StepRecord:
    return StepRecord(
        step=stage,
        outcome=StepOutcome.FATAL_FAILURE,
        detail=str(exc),
        error_type=type(exc).__name__,
    )


def require_success(status: int, action: str) -> None:
    verdict = interpret(status)
    if not verdict.ok:
        raise ContractResponseFailure(f"{action} failed: {verdict}", verdict=verdict)


def confirm_event(receipt: OperationReceipt, event_name: str, action: str) -> int:
    """Check the transaction status, then the response code carried by `event_name`."""

    require_success(receipt.status, f"{action} (transaction)")
    event = receipt.find_event(event_name)
    if event is None:
        raise EventNotObservedError(
            f"{action} confirmed but no {event_name} event was observed",
            event_name=event_name,
        )
    code = event.args.get("responseCode")
    if code is None and event.args:
        code = next(iter(event.args.values()))
    if not isinstance(code, int):
        raise EventNotObservedError(
            f"{action}: {event_name} event carries no response code",
            event_name=event_name,
        )
    require_success(code, action)
    return code


class MigrationOrchestrator:
    def __init__(
        self,
        *,
        executor: AuthorityTransactionExecutor,
        driver: ContractDriver,
        index: IndexQueryService,
        options: MigrationOptions | None = None,
        hooks: MigrationHooks | None = None,
        sinks: Sequence[AuditSink] = (),
    ) -> None:
        self._executor = executor
        self._driver = driver
        self._index = index
        self._options = options or MigrationOptions()
        self._hooks = hooks or MigrationHooks()
        self._sinks = tuple(sinks)

    async def run_initial(
        self,
        spec: TokenSpec,
        artifact: BytecodeRef,
        *,
        deadline: Deadline | None = None,
    ) -> MigrationReport:
        """Create a token, hand its supply key to a fresh contract and mint through it."""

        deadline = deadline or Deadline.unbounded()
        opts = self._options
        run = _Run(workflow="migrate", hooks=self._hooks, sinks=self._sinks)

        try:
            async with run.step(MigrationStage.TOKEN_ESTABLISHED, deadline) as step:
                token = await self._executor.create_token(spec)
                self._record_initial(run, token)
                step.detail = f"token {token.token_id} supply={token.total_supply}"

            async with run.step(MigrationStage.CONTRACT_DEPLOYED, deadline) as step:
                instance = await self._driver.deploy(artifact)
                run.summary.contract_address = instance.native_address
                step.detail = f"contract {instance.native_address}"

            async with run.step(MigrationStage.REGISTRY_RESOLVED, deadline) as step:
                registry_id = await resolve_registry_id(
                    self._index,
                    instance.native_address,
                    max_attempts=opts.index_max_attempts,
                    interval=opts.index_poll_interval,
                    deadline=deadline,
                    on_retry=run.retry_recorder(MigrationStage.REGISTRY_RESOLVED, opts.index_max_attempts),
                )
                instance = instance.model_copy(update={"registry_id": registry_id})
                run.summary.contract_registry_id = registry_id
                step.detail = f"registry id {registry_id}"

            async with run.step(MigrationStage.AUTHORITY_ROTATED, deadline) as step:
                new_authority = CapabilityKeySpec(contract_id=registry_id)
                receipt = await self._executor.update_supply_key(token.token_id, new_authority)
                require_success(receipt.status, "supply key update")
                step.detail = f"supply key -> {new_authority.describe()}"

            await self._mint_and_finish(run, token, instance, deadline)
        except MigrationError as exc:
            await self._record_final_after_failure(run)
            return run.failed(exc)
        return run.done()

    async def run_rotation(
        self,
        *,
        token_id: str,
        prior_contract_address: str,
        artifact: BytecodeRef,
        deadline: Deadline | None = None,
    ) -> MigrationReport:
        """Move the supply key from an existing capability contract to a new one."""

        deadline = deadline or Deadline.unbounded()
        opts = self._options
        run = _Run(workflow="rotate", hooks=self._hooks, sinks=self._sinks)

        try:
            async with run.step(MigrationStage.TOKEN_ESTABLISHED, deadline) as step:
                token = await self._executor.query_token(token_id)
                self._record_initial(run, token)
                step.detail = f"token {token.token_id} supply={token.total_supply}"

            async with run.step(MigrationStage.CONTRACT_DEPLOYED, deadline) as step:
                instance = await self._driver.deploy(artifact)
                run.summary.contract_address = instance.native_address
                step.detail = f"contract {instance.native_address}"

            async with run.step(MigrationStage.AUTHORITY_ROTATED, deadline) as step:
                prior = self._driver.attach(prior_contract_address)
                new_authority = CapabilityKeySpec(ecdsa_secp256k1=instance.native_address)
                receipt = await self._driver.invoke(
                    prior,
                    UPDATE_TOKEN_KEYS,
                    [token.evm_address, [[int(opts.key_slot), new_authority.to_abi_tuple()]]],
                    gas_limit=opts.gas_limit,
                )
                confirm_event(receipt, RESPONSE_CODE, "key update")
                step.detail = f"supply key -> {new_authority.describe()}"

            await self._mint_and_finish(run, token, instance, deadline)
        except MigrationError as exc:
            await self._record_final_after_failure(run)
            return run.failed(exc)
        return run.done()

    async def _mint_and_finish(
        self,
        run: _Run,
        token: TokenRecord,
        instance: ContractInstance,
        deadline: Deadline,
    ) -> None:
        opts = self._options

        async with run.step(MigrationStage.MINT_VERIFIED, deadline) as step:
            await deadline.sleep(opts.settle_delay)
            receipt = await self._driver.invoke(
                instance,
                MINT_TOKENS,
                [token.evm_address, opts.mint_amount],
                gas_limit=opts.gas_limit,
            )
            confirm_event(receipt, TOKEN_MINT_COMPLETE, "mint")
            step.detail = f"minted {opts.mint_amount}"

        async with run.step(MigrationStage.DONE, deadline) as step:
            final = await self._executor.query_token(token.token_id)
            self._record_final(run, final)
            step.detail = f"supply {run.summary.initial_supply} -> {final.total_supply}"

    async def _record_final_after_failure(self, run: _Run) -> None:
        """Best-effort snapshot of the token after a failure. The failure cause stays the reported one."""

        if run.summary.token_id is None or run.summary.final_supply is not None:
            return
        try:
            final = await self._executor.query_token(run.summary.token_id)
        except (MigrationError, OSError):
            return
        self._record_final(run, final)

    @staticmethod
    def _record_final(run: _Run, token: TokenRecord) -> None:
        run.summary.final_supply = token.total_supply
        run.summary.final_supply_key = token.supply_key.describe()

    @staticmethod
    def _record_initial(run: _Run, token: TokenRecord) -> None:
        run.summary.token_id = token.token_id
        run.summary.token_address = token.evm_address
        run.summary.initial_supply = token.total_supply
        run.summary.initial_supply_key = token.supply_key.describe()
