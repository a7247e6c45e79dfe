"""Contratos de los servicios externos.

Por qué Protocol:
- Contrato estructural (duck typing) sin herencia rígida: el sandbox, el
  adaptador de mirror node y cualquier provider de SDK son intercambiables.
- Los componentes del Core reciben estas dependencias en el constructor;
  no hay cliente global ni credenciales leídas del entorno.

Reglas de diseño:
- Todo lo que hace I/O es asíncrono.
- Los adaptadores traducen sus excepciones a `core.errors`
  (`SubmissionError`, `AuthorityError`, `RetryableIndexingDelay`,
  `IndexLookupError`).
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from core.domain.models import StepRecord, TokenRecord
from core.domain.transactions import (
    ContractCallReceipt,
    LedgerReceipt,
    SignaturePair,
    SignedTransaction,
)


@runtime_checkable
class Signer(Protocol):
    """Credencial del operador."""

    @property
    def public_key(self) -> str: ...

    @property
    def scheme(self) -> str:
        """Nombre de la variante de key: `ecdsa_secp256k1` o `ed25519`."""

        ...

    def sign(self, message: bytes) -> SignaturePair: ...


@runtime_checkable
class LedgerAuthorityService(Protocol):
    """Token registry + consenso (consistencia fuerte)."""

    async def submit(self, transaction: SignedTransaction) -> str:
        """Envía la transacción y devuelve su transaction id.

        Raises `AuthorityError` si el nodo la rechaza en precheck y
        `SubmissionError` si no llega a la red.
        """

        ...

    async def get_receipt(self, transaction_id: str) -> LedgerReceipt:
        """Espera el receipt de consenso."""

        ...

    async def query_token_info(self, token_id: str) -> TokenRecord: ...


@runtime_checkable
class ContractExecutionService(Protocol):
    """Despliegue y ejecución de contratos."""

    async def deploy_contract(self, bytecode: str, *, gas_limit: int) -> str:
        """Despliega y devuelve la dirección EVM nativa."""

        ...

    async def call_contract(
        self,
        address: str,
        method: str,
        args: Sequence[Any],
        *,
        gas_limit: int,
    ) -> ContractCallReceipt: ...


@runtime_checkable
class IndexQueryService(Protocol):
    """Réplica de lectura con consistencia eventual."""

    async def lookup_by_native_address(self, address: str) -> str:
        """Devuelve el registry id (shard.realm.num).

        Raises `RetryableIndexingDelay` mientras la entidad no esté indexada;
        cualquier otra excepción es permanente.
        """

        ...


@runtime_checkable
class AuditSink(Protocol):
    """Destino opcional del audit trail (p.ej. persistencia)."""

    def record(self, step: StepRecord) -> None: ...
