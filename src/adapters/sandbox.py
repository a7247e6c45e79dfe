"""Red sandbox en memoria.

Implementa a la vez `LedgerAuthorityService`, `ContractExecutionService` e
`IndexQueryService` con las reglas que importan para la migración:

- verifica las firmas del operador (cryptography) y exige la admin key en
  create/update;
- el contrato de capacidades solo puede rotar/mintear si es la supply key
  vigente del token;
- los receipts llevan logs ABI reales, incluidos logs ajenos (Transfer del
  token) que el driver debe ignorar;
- el índice tarda `index_lag` consultas en ver un contrato nuevo.

Sirve para `--network sandbox` (dry-run completo sin red) y para tests.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Sequence

from adapters.signing import verify_signature
from core.domain.events import (
    DEFAULT_EVENTS,
    RESPONSE_CODE,
    TOKEN_MINT_COMPLETE,
    EventDefinition,
    EventInput,
    RawLog,
)
from core.domain.identifiers import (
    ZERO_ADDRESS,
    EntityId,
    is_entity_id,
    keccak256,
    to_checksum_address,
    to_evm_address,
)
from core.domain.models import BytecodeRef, CapabilityKeySpec, KeySlot, TokenRecord
from core.domain.response_codes import SUCCESS, interpret
from core.domain.transactions import (
    ContractCallReceipt,
    LedgerReceipt,
    SignedTransaction,
    TransactionKind,
)
from core.errors import AuthorityError, RetryableIndexingDelay
from core.services.contract_driver import MINT_TOKENS, UPDATE_TOKEN_KEYS

INVALID_SIGNATURE = 7
DUPLICATE_TRANSACTION = 11
NOT_SUPPORTED = 13
INVALID_CONTRACT_ID = 16
RECEIPT_NOT_FOUND = 18
INSUFFICIENT_GAS = 30
CONTRACT_REVERT_EXECUTED = 33
INVALID_TOKEN_ID = 167
INVALID_TOKEN_MINT_AMOUNT = 182
INVALID_SUPPLY_KEY = 189

_MIN_GAS = 25_000

_TRANSFER = EventDefinition(
    name="Transfer",
    inputs=(
        EventInput(name="from", type="address", indexed=True),
        EventInput(name="to", type="address", indexed=True),
        EventInput(name="value", type="uint256"),
    ),
)

SANDBOX_ARTIFACT = BytecodeRef(contract_name="KeyManager", bytecode="0x6080604052")


@dataclass
class _Token:
    token_id: str
    name: str
    symbol: str
    decimals: int
    total_supply: int
    treasury: str
    admin_key: CapabilityKeySpec
    supply_key: CapabilityKeySpec

    def snapshot(self) -> TokenRecord:
        return TokenRecord(
            token_id=self.token_id,
            name=self.name,
            symbol=self.symbol,
            decimals=self.decimals,
            total_supply=self.total_supply,
            treasury_account=self.treasury,
            admin_key=self.admin_key,
            supply_key=self.supply_key,
        )


@dataclass
class _Contract:
    address: str
    registry_id: str
    pending_lookups: int


@dataclass
class SandboxNetwork:
    operator_id: str = "0.0.1001"
    index_lag: int = 2
    first_entity_num: int = 5000
    foreign_logs: bool = True

    calls: list[tuple[str, str]] = field(default_factory=list)
    index_lookups: int = 0
    _tokens: dict[str, _Token] = field(default_factory=dict)
    _contracts: dict[str, _Contract] = field(default_factory=dict)
    _receipts: dict[str, LedgerReceipt] = field(default_factory=dict)
    _overrides: dict[str, list[int]] = field(default_factory=dict)
    _next_num: int = 0

    def __post_init__(self) -> None:
        self._next_num = self.first_entity_num
        self._events = {event.name: event for event in DEFAULT_EVENTS}

    def inject_status(self, operation: str, status: int) -> None:
        """Fuerza el status de la próxima `operation` (kind de transacción o método de contrato)."""

        self._overrides.setdefault(operation, []).append(status)

    def add_token(
        self,
        *,
        supply_key: CapabilityKeySpec,
        total_supply: int = 0,
        admin_key: CapabilityKeySpec | None = None,
    ) -> str:
        """Crea un token directamente en el estado (setup de escenarios)."""

        token_id = self._allocate()
        self._tokens[token_id] = _Token(
            token_id=token_id,
            name="Sandbox Token",
            symbol="SBX",
            decimals=8,
            total_supply=total_supply,
            treasury=self.operator_id,
            admin_key=admin_key or CapabilityKeySpec(),
            supply_key=supply_key,
        )
        return token_id

    async def seed_capability_token(self, *, total_supply: int = 1_000_000) -> tuple[str, str]:
        """Token cuya supply key ya es un contrato desplegado (punto de partida de `rotate`)."""

        address = await self.deploy_contract(SANDBOX_ARTIFACT.bytecode, gas_limit=_MIN_GAS)
        contract = self._contracts[address.lower()]
        contract.pending_lookups = 0
        token_id = self.add_token(
            supply_key=CapabilityKeySpec(contract_id=contract.registry_id),
            total_supply=total_supply,
        )
        return token_id, address

    # Ledger Authority Service

    async def submit(self, transaction: SignedTransaction) -> str:
        await asyncio.sleep(0)
        transaction_id = transaction.transaction_id
        if transaction_id in self._receipts:
            raise AuthorityError(
                f"precheck rejected {transaction_id}",
                verdict=interpret(DUPLICATE_TRANSACTION),
            )
        status, token_id = self._apply(transaction)
        self._receipts[transaction_id] = LedgerReceipt(
            transaction_id=transaction_id,
            status=status,
            token_id=token_id,
        )
        return transaction_id

    async def get_receipt(self, transaction_id: str) -> LedgerReceipt:
        await asyncio.sleep(0)
        receipt = self._receipts.get(transaction_id)
        if receipt is None:
            raise AuthorityError(f"no receipt for {transaction_id}", verdict=interpret(RECEIPT_NOT_FOUND))
        return receipt

    async def query_token_info(self, token_id: str) -> TokenRecord:
        await asyncio.sleep(0)
        token = self._tokens.get(token_id)
        if token is None:
            raise AuthorityError(f"unknown token {token_id}", verdict=interpret(INVALID_TOKEN_ID))
        return token.snapshot()

    # Contract Execution Service

    async def deploy_contract(self, bytecode: str, *, gas_limit: int) -> str:
        await asyncio.sleep(0)
        registry_id = self._allocate()
        digest = keccak256(f"{self.operator_id}:{registry_id}:{bytecode}".encode("utf-8"))
        address = to_checksum_address(digest[-20:].hex())
        self._contracts[address.lower()] = _Contract(
            address=address,
            registry_id=registry_id,
            pending_lookups=self.index_lag,
        )
        return address

    async def call_contract(
        self,
        address: str,
        method: str,
        args: Sequence[Any],
        *,
        gas_limit: int,
    ) -> ContractCallReceipt:
        await asyncio.sleep(0)
        self.calls.append((address, method))
        transaction_id = f"{self.operator_id}@call-{len(self.calls)}"

        contract = self._contracts.get(address.lower())
        if contract is None:
            return ContractCallReceipt(transaction_id=transaction_id, status=INVALID_CONTRACT_ID)
        if gas_limit < _MIN_GAS:
            return ContractCallReceipt(transaction_id=transaction_id, status=INSUFFICIENT_GAS)

        if method not in (UPDATE_TOKEN_KEYS, MINT_TOKENS):
            return ContractCallReceipt(transaction_id=transaction_id, status=CONTRACT_REVERT_EXECUTED)

        override = self._pop_override(method)
        if override is not None:
            code, logs = override, []
        elif method == UPDATE_TOKEN_KEYS:
            code, logs = self._update_token_keys(contract, args)
        else:
            code, logs = self._mint(contract, args)
        event = RESPONSE_CODE if method == UPDATE_TOKEN_KEYS else TOKEN_MINT_COMPLETE
        logs.append(self._events[event].encode(address=contract.address, values=[code], log_index=len(logs)))
        return ContractCallReceipt(transaction_id=transaction_id, status=SUCCESS, logs=tuple(logs), gas_used=_MIN_GAS)

    # Index Query Service

    async def lookup_by_native_address(self, address: str) -> str:
        await asyncio.sleep(0)
        self.index_lookups += 1
        contract = self._contracts.get(address.lower())
        if contract is None or contract.pending_lookups > 0:
            if contract is not None:
                contract.pending_lookups -= 1
            raise RetryableIndexingDelay(f"contract {address} not indexed yet")
        return contract.registry_id

    # internals

    def _allocate(self) -> str:
        num = self._next_num
        self._next_num += 1
        return str(EntityId(num=num))

    def _pop_override(self, operation: str) -> int | None:
        queue = self._overrides.get(operation)
        return queue.pop(0) if queue else None

    def _apply(self, transaction: SignedTransaction) -> tuple[int, str | None]:
        body = transaction.body
        override = self._pop_override(body.kind.value)
        if override is not None:
            return override, None

        valid = [pair for pair in transaction.signatures if verify_signature(pair, transaction.frozen.body_bytes)]
        if len(valid) != len(transaction.signatures) or not valid:
            return INVALID_SIGNATURE, None
        signed_keys = {pair.public_key.lower() for pair in valid}

        if body.kind is TransactionKind.TOKEN_CREATE:
            payload = body.payload
            admin_key = CapabilityKeySpec.model_validate(payload.get("admin_key") or {})
            if admin_key.value and admin_key.value.lower() not in signed_keys:
                return INVALID_SIGNATURE, None
            token_id = self._allocate()
            self._tokens[token_id] = _Token(
                token_id=token_id,
                name=payload["name"],
                symbol=payload["symbol"],
                decimals=int(payload["decimals"]),
                total_supply=int(payload["initial_supply"]),
                treasury=payload["treasury_account"],
                admin_key=admin_key,
                supply_key=CapabilityKeySpec.model_validate(payload.get("supply_key") or {}),
            )
            return SUCCESS, token_id

        if body.kind is TransactionKind.TOKEN_UPDATE:
            token = self._tokens.get(body.payload.get("token_id", ""))
            if token is None:
                return INVALID_TOKEN_ID, None
            if not token.admin_key.value or token.admin_key.value.lower() not in signed_keys:
                return INVALID_SIGNATURE, None
            token.supply_key = CapabilityKeySpec.model_validate(body.payload["supply_key"])
            return SUCCESS, None

        return NOT_SUPPORTED, None

    def _token_at(self, address: object) -> _Token | None:
        if not isinstance(address, str):
            return None
        for token in self._tokens.values():
            if to_evm_address(token.token_id).lower() == address.lower():
                return token
        return None

    def _update_token_keys(self, contract: _Contract, args: Sequence[Any]) -> tuple[int, list[RawLog]]:
        token = self._token_at(args[0] if args else None)
        if token is None:
            return INVALID_TOKEN_ID, []
        if not _refers_to(token.supply_key, contract):
            return INVALID_SIGNATURE, []
        for slot, key_tuple in args[1]:
            if int(slot) != KeySlot.SUPPLY:
                return NOT_SUPPORTED, []
            try:
                token.supply_key = _key_from_abi(key_tuple)
            except ValueError:
                return INVALID_SUPPLY_KEY, []
        return SUCCESS, []

    def _mint(self, contract: _Contract, args: Sequence[Any]) -> tuple[int, list[RawLog]]:
        token = self._token_at(args[0] if args else None)
        if token is None:
            return INVALID_TOKEN_ID, []
        if not _refers_to(token.supply_key, contract):
            return INVALID_SIGNATURE, []
        amount = int(args[1])
        if amount <= 0:
            return INVALID_TOKEN_MINT_AMOUNT, []
        token.total_supply += amount
        logs: list[RawLog] = []
        if self.foreign_logs:
            logs.append(
                _TRANSFER.encode(
                    address=to_evm_address(token.token_id),
                    values=[ZERO_ADDRESS, to_evm_address(token.treasury), amount],
                )
            )
        return SUCCESS, logs


def _refers_to(key: CapabilityKeySpec, contract: _Contract) -> bool:
    value = key.value
    if not value or key.authority_kind == "inherited":
        return False
    value = value.strip()
    if is_entity_id(value):
        return value == contract.registry_id
    candidates = {contract.address.lower(), to_evm_address(contract.registry_id).lower()}
    return value.lower() in candidates


def _key_from_abi(key_tuple: Sequence[Any]) -> CapabilityKeySpec:
    inherit, contract_id, ed25519, ecdsa, delegatable = key_tuple

    def address_or_none(value: str) -> str | None:
        return None if not value or value.lower() == ZERO_ADDRESS else value

    def bytes_or_none(value: str) -> str | None:
        return None if not value or value == "0x" else value

    return CapabilityKeySpec(
        inherit_account_key=bool(inherit),
        contract_id=address_or_none(contract_id),
        ed25519=bytes_or_none(ed25519),
        ecdsa_secp256k1=bytes_or_none(ecdsa),
        delegatable_contract_id=address_or_none(delegatable),
    )
