import pytest

from adapters.signing import ECDSA, ED25519, OperatorSigner, verify_signature
from core.config import KeyType
from core.errors import ConfigurationError

KEY = "0x" + "11" * 32


def test_ecdsa_signature_verifies_and_binds_the_message() -> None:
    signer = OperatorSigner.from_string(KEY)
    pair = signer.sign(b"frozen body")

    assert signer.scheme == ECDSA
    assert len(signer.public_key) == 66
    assert signer.public_key[:2] in ("02", "03")
    assert verify_signature(pair, b"frozen body")
    assert not verify_signature(pair, b"frozen body, edited")


def test_ed25519_signature_verifies() -> None:
    signer = OperatorSigner.from_string(KEY, KeyType.ED25519)
    pair = signer.sign(b"frozen body")

    assert signer.scheme == ED25519
    assert len(signer.public_key) == 64
    assert verify_signature(pair, b"frozen body")
    assert not verify_signature(pair.model_copy(update={"signature": "00" * 64}), b"frozen body")


def test_signature_from_another_key_is_rejected() -> None:
    pair = OperatorSigner.from_string(KEY).sign(b"body")
    other = OperatorSigner.from_string("0x" + "22" * 32)
    forged = pair.model_copy(update={"public_key": other.public_key})
    assert not verify_signature(forged, b"body")


@pytest.mark.parametrize("value", ["not-hex", "0x1234", "0x" + "00" * 32])
def test_invalid_keys_are_configuration_errors(value: str) -> None:
    with pytest.raises(ConfigurationError):
        OperatorSigner.from_string(value)
