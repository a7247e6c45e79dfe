"""Ledger identifiers and their EVM (solidity) address form.

Ledger entities are addressed as `shard.realm.num`. Contracts and tokens
also have a 20-byte EVM address: shard (4 bytes), realm (8 bytes) and
num (8 bytes) concatenated, or an arbitrary address for contracts created
through the EVM, which is why a contract's registry id must be looked up.
"""

from __future__ import annotations

import re

from Crypto.Hash import keccak
from pydantic import BaseModel, ConfigDict, Field

ZERO_ADDRESS = "0x" + "0" * 40

_ENTITY_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
_ADDRESS_RE = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")


def keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


class EntityId(BaseModel):
    """`shard.realm.num` identifier (account, token or contract)."""

    model_config = ConfigDict(frozen=True)

    shard: int = Field(default=0, ge=0, lt=2**32)
    realm: int = Field(default=0, ge=0, lt=2**64)
    num: int = Field(..., ge=0, lt=2**64)

    @classmethod
    def parse(cls, value: str) -> "EntityId":
        match = _ENTITY_RE.match(value.strip())
        if not match:
            raise ValueError(f"not a shard.realm.num identifier: {value!r}")
        shard, realm, num = (int(part) for part in match.groups())
        return cls(shard=shard, realm=realm, num=num)

    def to_solidity_address(self) -> str:
        """Hex address without prefix, as the ledger SDKs render it."""

        return f"{self.shard:08x}{self.realm:016x}{self.num:016x}"

    def to_evm_address(self) -> str:
        return to_checksum_address(self.to_solidity_address())

    def __str__(self) -> str:
        return f"{self.shard}.{self.realm}.{self.num}"


def is_entity_id(value: str) -> bool:
    return bool(_ENTITY_RE.match(value.strip()))


def is_evm_address(value: str) -> bool:
    return bool(_ADDRESS_RE.match(value.strip()))


def to_checksum_address(value: str) -> str:
    """EIP-55 checksummed `0x` address. Accepts short hex by left padding."""

    raw = value.strip().lower().removeprefix("0x")
    if not raw or len(raw) > 40 or not all(ch in "0123456789abcdef" for ch in raw):
        raise ValueError(f"not an EVM address: {value!r}")
    raw = raw.rjust(40, "0")
    digest = keccak256(raw.encode("ascii")).hex()
    out = [ch.upper() if ch.isalpha() and int(digest[i], 16) >= 8 else ch for i, ch in enumerate(raw)]
    return "0x" + "".join(out)


def to_evm_address(value: str) -> str:
    """Normalize either identifier form to a checksummed EVM address."""

    if is_entity_id(value):
        return EntityId.parse(value).to_evm_address()
    return to_checksum_address(value)
