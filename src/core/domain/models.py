"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta en el borde (identificadores, key specs) sin acoplar el
  Core a SDKs ni a HTTP.
- Los snapshots que el orquestador pasa de un paso al siguiente son inmutables
  (`frozen=True`): nadie muta el estado de otro componente.

Nota:
- Estos modelos describen *qué* es el estado de la migración, no *cómo* se
  obtiene de la red.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum, IntEnum
from hashlib import sha256
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.domain.events import EventRecord
from core.domain.identifiers import ZERO_ADDRESS, to_evm_address


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeySlot(IntEnum):
    """Key-slot index understood by the capability contract."""

    ADMIN = 0
    KYC = 1
    FREEZE = 2
    WIPE = 3
    SUPPLY = 4
    FEE = 5
    PAUSE = 6


class CapabilityKeySpec(BaseModel):
    """Valor de una key-slot: a lo sumo una variante activa por request.

    Variantes: `inherit_account_key`, `contract_id`, `ed25519`,
    `ecdsa_secp256k1`, `delegatable_contract_id`, o ninguna (unset).
    """

    model_config = ConfigDict(frozen=True)

    inherit_account_key: bool = False
    contract_id: str | None = Field(
        default=None,
        description="Contrato como key: registry id (shard.realm.num) o dirección EVM.",
    )
    ed25519: str | None = Field(default=None, description="Clave pública Ed25519 (hex).")
    ecdsa_secp256k1: str | None = Field(
        default=None,
        description="Clave pública ECDSA o, vía contrato, la dirección EVM que la representa.",
    )
    delegatable_contract_id: str | None = None

    @model_validator(mode="after")
    def _at_most_one_variant(self) -> "CapabilityKeySpec":
        if len(self.active_variants()) > 1:
            raise ValueError(f"at most one key variant may be set, got {self.active_variants()}")
        return self

    def active_variants(self) -> list[str]:
        active: list[str] = []
        if self.inherit_account_key:
            active.append("inherit_account_key")
        for name in ("contract_id", "ed25519", "ecdsa_secp256k1", "delegatable_contract_id"):
            if getattr(self, name):
                active.append(name)
        return active

    @property
    def kind(self) -> str:
        active = self.active_variants()
        return active[0] if active else "unset"

    @property
    def value(self) -> str | None:
        if self.kind in ("unset", "inherit_account_key"):
            return None
        return getattr(self, self.kind)

    @property
    def authority_kind(self) -> str:
        """`keypair`, `contract`, `inherited` o `unset`."""

        if self.kind in ("ed25519", "ecdsa_secp256k1"):
            return "keypair"
        if self.kind in ("contract_id", "delegatable_contract_id"):
            return "contract"
        if self.kind == "inherit_account_key":
            return "inherited"
        return "unset"

    def to_abi_tuple(self) -> list[Any]:
        """Orden del struct on-chain: (inherit, contractId, ed25519, ECDSA_secp256k1, delegatableContractId)."""

        return [
            self.inherit_account_key,
            to_evm_address(self.contract_id) if self.contract_id else ZERO_ADDRESS,
            _hex(self.ed25519),
            _hex(self.ecdsa_secp256k1),
            to_evm_address(self.delegatable_contract_id) if self.delegatable_contract_id else ZERO_ADDRESS,
        ]

    def describe(self) -> str:
        return self.kind if self.value is None else f"{self.kind}:{self.value}"


def _hex(value: str | None) -> str:
    if not value:
        return "0x"
    return value if value.startswith("0x") else "0x" + value


class TokenSpec(BaseModel):
    """Parámetros de creación de un token fungible de supply infinito."""

    name: str = Field(default="Test Token", min_length=1, max_length=100)
    symbol: str = Field(default="TST", min_length=1, max_length=100)
    decimals: int = Field(default=8, ge=0, le=18)
    initial_supply: int = Field(default=1_000_000, ge=0)
    treasury_account: str = Field(..., description="Cuenta tesorera (shard.realm.num).")


class TokenRecord(BaseModel):
    """Snapshot inmutable del token tal como lo reporta el ledger."""

    model_config = ConfigDict(frozen=True)

    token_id: str
    name: str = ""
    symbol: str = ""
    decimals: int = 0
    total_supply: int = Field(..., ge=0)
    treasury_account: str
    admin_key: CapabilityKeySpec = Field(default_factory=CapabilityKeySpec)
    supply_key: CapabilityKeySpec = Field(default_factory=CapabilityKeySpec)

    @property
    def evm_address(self) -> str:
        return to_evm_address(self.token_id)


class BytecodeRef(BaseModel):
    """Referencia al contrato ya compilado (artefacto de compilación)."""

    model_config = ConfigDict(frozen=True)

    contract_name: str = "KeyManager"
    bytecode: str = "0x"
    abi: tuple[dict[str, Any], ...] = ()

    @property
    def version(self) -> str:
        return sha256(self.bytecode.removeprefix("0x").encode("ascii")).hexdigest()[:12]


class ContractInstance(BaseModel):
    """Contrato desplegado. `registry_id` queda en None hasta que el índice lo resuelve."""

    model_config = ConfigDict(frozen=True)

    native_address: str
    registry_id: str | None = None
    bytecode_version: str = ""


class OperationReceipt(BaseModel):
    """Resultado inmutable de una operación: status ordinal + eventos decodificados."""

    model_config = ConfigDict(frozen=True)

    status: int
    events: tuple[EventRecord, ...] = ()
    transaction_id: str | None = None

    def find_event(self, name: str) -> EventRecord | None:
        for event in self.events:
            if event.name == name:
                return event
        return None


class MigrationStage(str, Enum):
    INIT = "Init"
    TOKEN_ESTABLISHED = "TokenEstablished"
    CONTRACT_DEPLOYED = "ContractDeployed"
    REGISTRY_RESOLVED = "RegistryResolved"
    AUTHORITY_ROTATED = "AuthorityRotated"
    MINT_VERIFIED = "MintVerified"
    DONE = "Done"
    FAILED = "Failed"


class StepOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable-failure"
    FATAL_FAILURE = "fatal-failure"


class StepRecord(BaseModel):
    """Una entrada del audit trail (append-only)."""

    model_config = ConfigDict(frozen=True)

    step: MigrationStage
    outcome: StepOutcome
    timestamp: datetime = Field(default_factory=utcnow)
    detail: str = ""
    error_type: str | None = None


class MigrationSummary(BaseModel):
    """Resumen final (solo observacional)."""

    token_id: str | None = None
    token_address: str | None = None
    contract_address: str | None = None
    contract_registry_id: str | None = None
    initial_supply: int | None = None
    final_supply: int | None = None
    initial_supply_key: str | None = None
    final_supply_key: str | None = None


class MigrationFailure(BaseModel):
    stage: MigrationStage
    error_type: str
    message: str
    category: str | None = None
    status: int | None = None


class MigrationReport(BaseModel):
    """Resultado de una ejecución del workflow."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    workflow: str
    state: MigrationStage
    trail: list[StepRecord] = Field(default_factory=list)
    summary: MigrationSummary = Field(default_factory=MigrationSummary)
    failure: MigrationFailure | None = None
    error: Exception | None = Field(default=None, exclude=True)

    @property
    def succeeded(self) -> bool:
        return self.state is MigrationStage.DONE
