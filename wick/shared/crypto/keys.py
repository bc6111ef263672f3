from __future__ import annotations
import binascii
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from wick.shared.errors import ConfigurationError

SEED_SIZE = 32
EXPANDED_KEY_SIZE = 64


def decode_private_key(private_key_hex: str) -> bytes:
    """
    Decode a cryptosign private key to its 32-byte seed.

    Accepts either the bare seed or the 64-byte expanded form, whose first
    32 bytes are the seed.
    """
    try:
        raw = binascii.unhexlify(private_key_hex.strip())
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"invalid private key: not a hex string ({e})") from e

    if len(raw) == SEED_SIZE:
        return raw
    if len(raw) == EXPANDED_KEY_SIZE:
        return raw[:SEED_SIZE]
    raise ConfigurationError(
        f"invalid private key length: got {len(raw)} bytes, "
        f"cryptosign private key must be {SEED_SIZE} or {EXPANDED_KEY_SIZE} bytes"
    )


@dataclass(frozen=True)
class Ed25519Keypair:
    seed: bytes
    public_key: bytes

    def public_hex(self) -> str:
        return self.public_key.hex()

    def sign(self, data: bytes) -> bytes:
        return Ed25519PrivateKey.from_private_bytes(self.seed).sign(data)

    @classmethod
    def from_seed(cls, seed: bytes) -> "Ed25519Keypair":
        key = Ed25519PrivateKey.from_private_bytes(seed)
        public_key = key.public_key().public_bytes(
            serialization.Encoding.Raw,
            serialization.PublicFormat.Raw,
        )
        return cls(seed=seed, public_key=public_key)

    @classmethod
    def from_hex(cls, private_key_hex: str) -> "Ed25519Keypair":
        return cls.from_seed(decode_private_key(private_key_hex))

    def __repr__(self) -> str:
        return f"Ed25519Keypair(public_key={self.public_hex()!r})"
