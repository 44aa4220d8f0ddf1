"""
Signers
========

The vault never holds the wallet key. Anything that can turn a 32-byte
digest into a fixed-width signature and verify it satisfies the Signer
protocol: a browser wallet bridge, an HSM, or the local Ed25519Signer used
by the devnet and tests. Verification belongs to the signer because only it
knows its curve.

Addresses are derived from raw public keys: "0x" + last 20 bytes of
SHA-256(public key).
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from ..errors import AuthenticationFailure

logger = logging.getLogger(__name__)

ED25519_SIGNATURE_SIZE = 64


class Signer(Protocol):
    """External signing capability."""

    key_id: int
    signature_size: int

    @property
    def public_key(self) -> bytes:
        ...

    @property
    def address(self) -> str:
        ...

    async def sign(self, digest: bytes) -> bytes:
        ...

    def verify(self, digest: bytes, signature: bytes) -> None:
        """Raise AuthenticationFailure unless signature is this signer's over digest."""
        ...


def address_from_public_key(public_key: bytes) -> str:
    """Wallet address of a raw public key."""
    return "0x" + hashlib.sha256(public_key).digest()[-20:].hex()


def verify_signature(public_key: bytes, message: bytes, signature: bytes) -> None:
    """Raise AuthenticationFailure unless signature is valid for message."""
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
    except InvalidSignature:
        raise AuthenticationFailure("Signature does not verify for signer key") from None
    except ValueError as e:
        raise AuthenticationFailure(f"Invalid public key: {e}") from e


def verify_signer_address(public_key: bytes, expected_address: str) -> None:
    """Raise AuthenticationFailure unless public_key maps to expected_address."""
    actual = address_from_public_key(public_key)
    if not hmac.compare_digest(actual.encode("ascii"), expected_address.lower().encode("utf-8")):
        raise AuthenticationFailure(
            f"Signer address {actual} does not match expected {expected_address.lower()}"
        )


class Ed25519Signer:
    """Local Ed25519 signer."""

    signature_size = ED25519_SIGNATURE_SIZE

    def __init__(self, private_key: Ed25519PrivateKey, key_id: int = 0) -> None:
        if not 0 <= key_id <= 255:
            raise ValueError(f"key_id must fit in one byte, got {key_id}")
        self._private_key = private_key
        self.key_id = key_id
        self._public_key = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @classmethod
    def generate(cls, key_id: int = 0) -> Ed25519Signer:
        return cls(Ed25519PrivateKey.generate(), key_id=key_id)

    @classmethod
    def from_private_bytes(cls, seed: bytes, key_id: int = 0) -> Ed25519Signer:
        if len(seed) != 32:
            raise ValueError("Ed25519 private key must be 32 bytes")
        return cls(Ed25519PrivateKey.from_private_bytes(seed), key_id=key_id)

    @classmethod
    def from_hex(cls, seed_hex: str, key_id: int = 0) -> Ed25519Signer:
        return cls.from_private_bytes(bytes.fromhex(seed_hex.removeprefix("0x")), key_id=key_id)

    def private_bytes(self) -> bytes:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

    @property
    def public_key(self) -> bytes:
        return self._public_key

    @property
    def address(self) -> str:
        return address_from_public_key(self._public_key)

    async def sign(self, digest: bytes) -> bytes:
        return self._private_key.sign(digest)

    def verify(self, digest: bytes, signature: bytes) -> None:
        verify_signature(self._public_key, digest, signature)

    def __repr__(self) -> str:
        return f"Ed25519Signer(address={self.address}, key_id={self.key_id})"
