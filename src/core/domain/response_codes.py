"""Ledger response codes.

Ledger and contract operations report an ordinal status. `SUCCESS` (22) is
the only code that means the operation took effect; everything else is a
failure with a coarse category used in reports and error messages.
New codes are added to `_CODES` only.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

SUCCESS = 22
UNRECOGNIZED = "unrecognized"

_CODES: dict[int, tuple[str, str]] = {
    0: ("OK", "precheck"),
    1: ("INVALID_TRANSACTION", "transaction"),
    2: ("PAYER_ACCOUNT_NOT_FOUND", "account"),
    3: ("INVALID_NODE_ACCOUNT", "transaction"),
    4: ("TRANSACTION_EXPIRED", "transaction"),
    5: ("INVALID_TRANSACTION_START", "transaction"),
    6: ("INVALID_TRANSACTION_DURATION", "transaction"),
    7: ("INVALID_SIGNATURE", "signature"),
    8: ("MEMO_TOO_LONG", "transaction"),
    9: ("INSUFFICIENT_TX_FEE", "fees"),
    10: ("INSUFFICIENT_PAYER_BALANCE", "fees"),
    11: ("DUPLICATE_TRANSACTION", "transaction"),
    12: ("BUSY", "network"),
    13: ("NOT_SUPPORTED", "transaction"),
    14: ("INVALID_FILE_ID", "entity"),
    15: ("INVALID_ACCOUNT_ID", "account"),
    16: ("INVALID_CONTRACT_ID", "contract"),
    17: ("INVALID_TRANSACTION_ID", "transaction"),
    18: ("RECEIPT_NOT_FOUND", "network"),
    19: ("RECORD_NOT_FOUND", "network"),
    20: ("INVALID_SOLIDITY_ID", "contract"),
    21: ("UNKNOWN", "network"),
    SUCCESS: ("SUCCESS", "success"),
    23: ("FAIL_INVALID", "ledger"),
    24: ("FAIL_FEE", "fees"),
    25: ("FAIL_BALANCE", "fees"),
    26: ("KEY_REQUIRED", "signature"),
    27: ("BAD_ENCODING", "transaction"),
    28: ("INSUFFICIENT_ACCOUNT_BALANCE", "fees"),
    29: ("INVALID_SOLIDITY_ADDRESS", "contract"),
    30: ("INSUFFICIENT_GAS", "contract"),
    31: ("CONTRACT_SIZE_LIMIT_EXCEEDED", "contract"),
    32: ("LOCAL_CALL_MODIFICATION_EXCEPTION", "contract"),
    33: ("CONTRACT_REVERT_EXECUTED", "contract"),
    34: ("CONTRACT_EXECUTION_EXCEPTION", "contract"),
    167: ("INVALID_TOKEN_ID", "token"),
    169: ("INVALID_TOKEN_INITIAL_SUPPLY", "token"),
    170: ("INVALID_TREASURY_ACCOUNT_FOR_TOKEN", "token"),
    178: ("INSUFFICIENT_TOKEN_BALANCE", "token"),
    179: ("TOKEN_WAS_DELETED", "token"),
    180: ("TOKEN_HAS_NO_SUPPLY_KEY", "token"),
    182: ("INVALID_TOKEN_MINT_AMOUNT", "token"),
    189: ("INVALID_SUPPLY_KEY", "token"),
    193: ("TOKEN_IS_IMMUTABLE", "token"),
}


class Verdict(BaseModel):
    """Interpreted response code."""

    model_config = ConfigDict(frozen=True)

    code: int
    ok: bool
    name: str = Field(..., description="Symbolic name, or UNRECOGNIZED_<code>.")
    category: str

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


def interpret(code: int) -> Verdict:
    """Map a numeric status code to a verdict. Never raises."""

    code = int(code)
    known = _CODES.get(code)
    if known is None:
        return Verdict(code=code, ok=False, name=f"UNRECOGNIZED_{code}", category=UNRECOGNIZED)
    name, category = known
    return Verdict(code=code, ok=code == SUCCESS, name=name, category=category)
