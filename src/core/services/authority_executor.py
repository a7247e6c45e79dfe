"""Privileged ledger operations: create token, update supply key.

Both follow the same protocol: build the body, freeze it, sign with the
operator credential, submit, await the consensus receipt. A confirmed
receipt is irreversible, so nothing here retries after submission.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

from core.domain.models import CapabilityKeySpec, OperationReceipt, TokenRecord, TokenSpec
from core.domain.response_codes import interpret
from core.domain.transactions import LedgerReceipt, TransactionBody, TransactionKind
from core.errors import AuthorityError, InvalidKeySpecError, SubmissionError
from core.interfaces.services import LedgerAuthorityService, Signer


class AuthorityTransactionExecutor:
    """Signs and submits operator transactions against the ledger."""

    def __init__(
        self,
        *,
        ledger: LedgerAuthorityService,
        signer: Signer,
        operator_id: str,
        max_fee_tinybars: int = 2_000_000_000,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ledger = ledger
        self._signer = signer
        self._operator_id = operator_id
        self._max_fee = max_fee_tinybars
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_valid_start: datetime | None = None

    @property
    def operator_key(self) -> CapabilityKeySpec:
        return CapabilityKeySpec(**{self._signer.scheme: self._signer.public_key})

    async def create_token(self, spec: TokenSpec) -> TokenRecord:
        """Create an infinite-supply fungible token with the operator as admin and supply key."""

        operator_key = self.operator_key
        payload = {
            **spec.model_dump(mode="json"),
            "supply_type": "infinite",
            "admin_key": operator_key.model_dump(mode="json"),
            "supply_key": operator_key.model_dump(mode="json"),
        }
        receipt = await self._execute(TransactionKind.TOKEN_CREATE, payload)
        verdict = interpret(receipt.status)
        if not verdict.ok:
            raise AuthorityError(f"token creation rejected: {verdict}", verdict=verdict)
        if not receipt.token_id:
            raise AuthorityError("token creation receipt carries no token id", verdict=verdict)
        return await self._ledger.query_token_info(receipt.token_id)

    async def update_supply_key(self, token_id: str, new_authority: CapabilityKeySpec) -> OperationReceipt:
        """Point the token's supply key at `new_authority`.

        Returns the receipt as-is; the caller interprets its status.
        """

        if len(new_authority.active_variants()) != 1:
            raise InvalidKeySpecError(
                f"supply key update needs exactly one key variant, got {new_authority.kind!r}"
            )
        payload = {
            "token_id": token_id,
            "supply_key": new_authority.model_dump(mode="json"),
        }
        receipt = await self._execute(TransactionKind.TOKEN_UPDATE, payload)
        return OperationReceipt(status=receipt.status, transaction_id=receipt.transaction_id)

    async def query_token(self, token_id: str) -> TokenRecord:
        return await self._ledger.query_token_info(token_id)

    async def _execute(self, kind: TransactionKind, payload: dict) -> LedgerReceipt:
        body = TransactionBody(
            kind=kind,
            payer_account=self._operator_id,
            valid_start=self._next_valid_start(),
            max_fee_tinybars=self._max_fee,
            payload=payload,
        )
        frozen = body.freeze()
        signed = frozen.sign_with(self._signer)
        try:
            transaction_id = await self._ledger.submit(signed)
        except OSError as exc:
            raise SubmissionError(f"{kind.value} {signed.transaction_id} never reached the network: {exc}") from exc
        return await self._ledger.get_receipt(transaction_id)

    def _next_valid_start(self) -> datetime:
        # The transaction id is payer@valid_start, so it must be strictly increasing.
        start = self._clock()
        if self._last_valid_start is not None and start <= self._last_valid_start:
            start = self._last_valid_start + timedelta(microseconds=1)
        self._last_valid_start = start
        return start
