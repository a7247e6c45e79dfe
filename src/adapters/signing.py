"""Credencial del operador (cryptography).

Soporta las dos familias de clave del ledger:
- ECDSA secp256k1: firma sobre Keccak-256 del cuerpo congelado, r||s en hex,
  clave pública comprimida.
- Ed25519: firma directa del cuerpo, clave pública raw.

Acepta la clave privada como hex raw (32 bytes, con o sin `0x`) o DER en hex.
"""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, utils

from core.config import KeyType
from core.domain.identifiers import keccak256
from core.domain.transactions import SignaturePair
from core.errors import ConfigurationError

ECDSA = "ecdsa_secp256k1"
ED25519 = "ed25519"

_ECDSA_PREHASHED = ec.ECDSA(utils.Prehashed(hashes.SHA256()))


class OperatorSigner:
    """Implementa `Signer` para una clave privada del operador."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey | ed25519.Ed25519PrivateKey) -> None:
        self._key = private_key
        if isinstance(private_key, ed25519.Ed25519PrivateKey):
            self._scheme = ED25519
            public = private_key.public_key().public_bytes(
                serialization.Encoding.Raw, serialization.PublicFormat.Raw
            )
        else:
            if not isinstance(private_key.curve, ec.SECP256K1):
                raise ConfigurationError("operator ECDSA key must be on secp256k1")
            self._scheme = ECDSA
            public = private_key.public_key().public_bytes(
                serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint
            )
        self._public_key = public.hex()

    @classmethod
    def from_string(cls, value: str, key_type: KeyType = KeyType.ECDSA) -> "OperatorSigner":
        raw_hex = value.strip().removeprefix("0x")
        try:
            raw = bytes.fromhex(raw_hex)
        except ValueError as exc:
            raise ConfigurationError("operator key is not valid hex") from exc

        if len(raw) == 32:
            if key_type is KeyType.ED25519:
                return cls(ed25519.Ed25519PrivateKey.from_private_bytes(raw))
            try:
                return cls(ec.derive_private_key(int.from_bytes(raw, "big"), ec.SECP256K1()))
            except ValueError as exc:
                raise ConfigurationError("operator key is not a valid secp256k1 scalar") from exc

        try:
            key = serialization.load_der_private_key(raw, password=None)
        except ValueError as exc:
            raise ConfigurationError("operator key is neither raw 32-byte hex nor DER") from exc
        if not isinstance(key, (ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey)):
            raise ConfigurationError(f"unsupported operator key type: {type(key).__name__}")
        return cls(key)

    @property
    def public_key(self) -> str:
        return self._public_key

    @property
    def scheme(self) -> str:
        return self._scheme

    def sign(self, message: bytes) -> SignaturePair:
        if isinstance(self._key, ed25519.Ed25519PrivateKey):
            signature = self._key.sign(message)
        else:
            der = self._key.sign(keccak256(message), _ECDSA_PREHASHED)
            r, s = utils.decode_dss_signature(der)
            signature = r.to_bytes(32, "big") + s.to_bytes(32, "big")
        return SignaturePair(public_key=self._public_key, scheme=self._scheme, signature=signature.hex())


def verify_signature(pair: SignaturePair, message: bytes) -> bool:
    """True si `pair` es una firma válida de `message`."""

    try:
        public = bytes.fromhex(pair.public_key)
        signature = bytes.fromhex(pair.signature)
        if pair.scheme == ED25519:
            ed25519.Ed25519PublicKey.from_public_bytes(public).verify(signature, message)
            return True
        if pair.scheme == ECDSA:
            if len(signature) != 64:
                return False
            key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), public)
            der = utils.encode_dss_signature(
                int.from_bytes(signature[:32], "big"),
                int.from_bytes(signature[32:], "big"),
            )
            key.verify(der, keccak256(message), _ECDSA_PREHASHED)
            return True
    except (InvalidSignature, ValueError):
        return False
    return False
