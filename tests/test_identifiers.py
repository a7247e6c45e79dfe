import pytest
from pydantic import ValidationError

from core.domain.identifiers import ZERO_ADDRESS, EntityId, to_checksum_address, to_evm_address
from core.domain.models import CapabilityKeySpec, TokenRecord


def test_entity_id_to_solidity_address() -> None:
    entity = EntityId.parse("0.0.1234")
    assert str(entity) == "0.0.1234"
    assert entity.to_solidity_address() == "00000000000000000000000000000000000004d2"
    assert EntityId.parse("1.2.3").to_solidity_address() == "0000000100000000000000020000000000000003"


def test_entity_id_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        EntityId.parse("0.0")
    with pytest.raises(ValueError):
        EntityId.parse("0x1234")


def test_checksum_address_matches_eip55_vector() -> None:
    expected = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
    assert to_checksum_address(expected.lower()) == expected
    assert to_checksum_address(expected.upper().replace("0X", "0x")) == expected


def test_to_evm_address_accepts_both_forms() -> None:
    long_zero = to_evm_address("0.0.1234")
    assert long_zero.lower() == "0x00000000000000000000000000000000000004d2"
    assert to_evm_address(long_zero.lower()) == long_zero
    with pytest.raises(ValueError):
        to_evm_address("not-an-address")


def test_key_spec_allows_at_most_one_variant() -> None:
    with pytest.raises(ValidationError):
        CapabilityKeySpec(contract_id="0.0.5", ecdsa_secp256k1="02" + "ab" * 32)
    with pytest.raises(ValidationError):
        CapabilityKeySpec(inherit_account_key=True, ed25519="ab" * 32)


def test_key_spec_kinds() -> None:
    assert CapabilityKeySpec().kind == "unset"
    assert CapabilityKeySpec().authority_kind == "unset"
    assert CapabilityKeySpec(contract_id="0.0.5").authority_kind == "contract"
    assert CapabilityKeySpec(ed25519="ab" * 32).authority_kind == "keypair"
    assert CapabilityKeySpec(inherit_account_key=True).authority_kind == "inherited"
    assert CapabilityKeySpec(contract_id="0.0.5").describe() == "contract_id:0.0.5"


def test_key_spec_abi_tuple_order() -> None:
    address = to_checksum_address("0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed")
    spec = CapabilityKeySpec(ecdsa_secp256k1=address)
    assert spec.to_abi_tuple() == [False, ZERO_ADDRESS, "0x", address, ZERO_ADDRESS]

    by_contract = CapabilityKeySpec(contract_id="0.0.1234").to_abi_tuple()
    assert by_contract[1].lower() == "0x00000000000000000000000000000000000004d2"


def test_token_record_evm_address() -> None:
    record = TokenRecord(token_id="0.0.1234", total_supply=10, treasury_account="0.0.2")
    assert record.evm_address.lower().endswith("04d2")
