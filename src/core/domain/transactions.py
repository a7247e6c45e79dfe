"""Privileged ledger transactions: body → frozen bytes → signed envelope.

Freezing fixes every field (transaction id, valid start, fee) and renders the
canonical bytes that signatures cover. After freezing nothing can change
without invalidating the signatures, which is what the ledger verifies.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from core.domain.events import RawLog

if TYPE_CHECKING:
    from core.interfaces.services import Signer


class TransactionKind(str, Enum):
    TOKEN_CREATE = "token_create"
    TOKEN_UPDATE = "token_update"


class TransactionBody(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: TransactionKind
    payer_account: str
    valid_start: datetime
    max_fee_tinybars: int = Field(default=2_000_000_000, ge=0)
    memo: str = Field(default="", max_length=100)
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def transaction_id(self) -> str:
        ts = self.valid_start.timestamp()
        seconds = int(ts)
        nanos = int(round((ts - seconds) * 1_000_000_000))
        return f"{self.payer_account}@{seconds}.{nanos:09d}"

    def freeze(self) -> "FrozenTransaction":
        body_bytes = json.dumps(
            self.model_dump(mode="json"),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
        ).encode("utf-8")
        return FrozenTransaction(body=self, body_bytes=body_bytes)


class FrozenTransaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    body: TransactionBody
    body_bytes: bytes

    @property
    def transaction_id(self) -> str:
        return self.body.transaction_id

    def sign_with(self, *signers: Signer) -> "SignedTransaction":
        return SignedTransaction(frozen=self, signatures=tuple(s.sign(self.body_bytes) for s in signers))


class SignaturePair(BaseModel):
    model_config = ConfigDict(frozen=True)

    public_key: str = Field(..., description="Clave pública (hex, DER/raw según el esquema).")
    scheme: str = Field(..., description="'ecdsa_secp256k1' o 'ed25519'.")
    signature: str = Field(..., description="Firma (hex).")


class SignedTransaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    frozen: FrozenTransaction
    signatures: tuple[SignaturePair, ...] = ()

    @property
    def transaction_id(self) -> str:
        return self.frozen.transaction_id

    @property
    def body(self) -> TransactionBody:
        return self.frozen.body


class LedgerReceipt(BaseModel):
    """Receipt de consenso de una transacción privilegiada."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    status: int
    token_id: str | None = None


class ContractCallReceipt(BaseModel):
    """Receipt de ejecución de contrato: status + logs sin decodificar."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    status: int
    logs: tuple[RawLog, ...] = ()
    gas_used: int = 0
