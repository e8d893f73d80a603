"""Secondary signing identities (delegate / escrow authority).

Key format:
  address: hex of the raw 32-byte Ed25519 public key
  secret:  Base64 of seed(32) || public key(32), the exportable form kept in the store
  signature: raw 64-byte Ed25519 signature

The private key never leaves this object except through export_secret(),
which only the store persistence path calls.
"""

import base64
import binascii

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

_SEED_LEN = 32
_PUBLIC_LEN = 32


def _public_bytes(key: Ed25519PrivateKey) -> bytes:
    return key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)


class SigningIdentity:
    """Opaque signing capability: exposes `address` and `sign(payload)`, hides key bytes."""

    __slots__ = ("_key", "_address")

    def __init__(self, key: Ed25519PrivateKey) -> None:
        self._key = key
        self._address = _public_bytes(key).hex()

    @classmethod
    def generate(cls) -> "SigningIdentity":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_secret(cls, secret: str) -> "SigningIdentity":
        """Rebuild from the Base64 export. Raises ValueError on malformed or mismatched material."""
        try:
            raw = base64.b64decode(secret.encode("utf-8"), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("Secret is not valid Base64") from exc
        if len(raw) != _SEED_LEN + _PUBLIC_LEN:
            raise ValueError(f"Secret must be {_SEED_LEN + _PUBLIC_LEN} bytes, got {len(raw)}")
        key = Ed25519PrivateKey.from_private_bytes(raw[:_SEED_LEN])
        if _public_bytes(key) != raw[_SEED_LEN:]:
            raise ValueError("Secret public half does not match its seed")
        return cls(key)

    @property
    def address(self) -> str:
        return self._address

    def sign(self, payload: bytes) -> bytes:
        return self._key.sign(payload)

    def export_secret(self) -> str:
        seed = self._key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
        return base64.b64encode(seed + _public_bytes(self._key)).decode("utf-8")

    def __repr__(self) -> str:
        return f"SigningIdentity(address={self._address[:8]}…)"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SigningIdentity) and other._address == self._address

    def __hash__(self) -> int:
        return hash(self._address)


def verify_signature(address: str, payload: bytes, signature: bytes) -> bool:
    """Check that `signature` is `address`'s Ed25519 signature over `payload`."""
    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(address))
        public_key.verify(signature, payload)
        return True
    except (InvalidSignature, ValueError):
        return False
