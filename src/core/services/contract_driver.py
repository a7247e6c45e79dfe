"""Deploy the capability contract and invoke its methods.

`invoke` decodes the receipt's logs against the contract's event schema.
Receipts are heterogeneous (the token service and other contracts log too),
so entries that do not match are dropped silently. Locating the confirming
event is the caller's job.
"""

from __future__ import annotations

from typing import Any, Sequence

from core.domain.events import DEFAULT_EVENTS, EventSchema
from core.domain.models import BytecodeRef, ContractInstance, OperationReceipt
from core.errors import SubmissionError
from core.interfaces.services import ContractExecutionService

UPDATE_TOKEN_KEYS = "updateTokenKeysPublic"
MINT_TOKENS = "mintTokens"


class ContractDriver:
    def __init__(
        self,
        *,
        contracts: ContractExecutionService,
        schema: EventSchema | None = None,
        deploy_gas_limit: int = 4_000_000,
    ) -> None:
        self._contracts = contracts
        self._schema = schema or EventSchema(DEFAULT_EVENTS)
        self._deploy_gas_limit = deploy_gas_limit

    @classmethod
    def for_artifact(cls, *, contracts: ContractExecutionService, artifact: BytecodeRef) -> "ContractDriver":
        """Driver whose event schema comes from the artifact ABI, when it has one."""

        schema = EventSchema.from_abi(artifact.abi) if artifact.abi else None
        if schema is not None and not schema.names():
            schema = None
        return cls(contracts=contracts, schema=schema)

    @property
    def schema(self) -> EventSchema:
        return self._schema

    async def deploy(self, bytecode_ref: BytecodeRef) -> ContractInstance:
        try:
            address = await self._contracts.deploy_contract(bytecode_ref.bytecode, gas_limit=self._deploy_gas_limit)
        except OSError as exc:
            raise SubmissionError(f"deploy of {bytecode_ref.contract_name} never reached the network: {exc}") from exc
        return ContractInstance(native_address=address, bytecode_version=bytecode_ref.version)

    def attach(self, native_address: str) -> ContractInstance:
        """Instance for an already-deployed contract."""

        return ContractInstance(native_address=native_address)

    async def invoke(
        self,
        instance: ContractInstance,
        method: str,
        args: Sequence[Any],
        *,
        gas_limit: int,
    ) -> OperationReceipt:
        try:
            receipt = await self._contracts.call_contract(
                instance.native_address,
                method,
                list(args),
                gas_limit=gas_limit,
            )
        except OSError as exc:
            raise SubmissionError(f"{method} on {instance.native_address} never reached the network: {exc}") from exc
        return OperationReceipt(
            status=receipt.status,
            events=tuple(self._schema.decode_logs(receipt.logs)),
            transaction_id=receipt.transaction_id,
        )
