"""
Key Derivation
===============

Key hierarchy for the vault:

Per Agent:
- Agent private key: never leaves the agent, never stored by the vault

Per Record (token id):
- Memory key: HKDF-SHA256(agent key, salt="pentagon-ainft-<token id>")
- Used for AEAD (AES-256-GCM)

Per Owner/Agent pair:
- Shared key: P-256 ECDH, lets an agent share a record key with its owner

Keys are re-derived on demand and dropped when the call returns.
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

KEY_SIZE = 32  # 256 bits for AES-256
SALT_SIZE = 16

MIN_SECRET_SIZE = 16
MAX_SECRET_SIZE = 64

KEY_NAMESPACE = b"pentagon-ainft-"
MEMORY_KEY_INFO = b"ainft-memory-encryption"


# =============================================================================
# Key Derivation
# =============================================================================

def derive_key(
    secret: bytes,
    info: bytes,
    salt: Optional[bytes] = None,
    length: int = KEY_SIZE,
) -> bytes:
    """
    Derive a key using HKDF.

    Args:
        secret: Input key material
        info: Context info (e.g., "ainft-memory-encryption")
        salt: Optional salt
        length: Output length

    Returns:
        Derived key bytes
    """
    if salt is None:
        salt = b"\x00" * SALT_SIZE

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        info=info,
    )
    return hkdf.derive(secret)


def derive_memory_key(secret: bytes, context_id: str) -> bytes:
    """
    Derive the memory encryption key for one record.

    Deterministic in (secret, context_id); a different token id yields an
    unrelated key, so one leaked record key exposes nothing else.
    """
    if not isinstance(secret, (bytes, bytearray)):
        raise ValueError("secret must be bytes")
    if not secret:
        raise ValueError("secret must not be empty")
    if not MIN_SECRET_SIZE <= len(secret) <= MAX_SECRET_SIZE:
        raise ValueError(
            f"secret must be {MIN_SECRET_SIZE}-{MAX_SECRET_SIZE} bytes, got {len(secret)}"
        )

    salt = KEY_NAMESPACE + context_id.encode("utf-8")
    return derive_key(bytes(secret), MEMORY_KEY_INFO, salt=salt)


def derive_shared_key(private_key: bytes, peer_public_key: bytes) -> bytes:
    """
    Derive a P-256 ECDH shared secret.

    Used when an agent shares access with its owner: both sides compute the
    same 32 bytes from their own scalar and the other's public point.

    Args:
        private_key: 32-byte big-endian scalar
        peer_public_key: SEC1 encoded point (compressed or uncompressed)
    """
    if len(private_key) != 32:
        raise ValueError("private_key must be a 32-byte P-256 scalar")

    curve = ec.SECP256R1()
    try:
        own = ec.derive_private_key(int.from_bytes(private_key, "big"), curve)
        peer = ec.EllipticCurvePublicKey.from_encoded_point(curve, peer_public_key)
    except ValueError as e:
        raise ValueError(f"Invalid P-256 key material: {e}") from e

    return own.exchange(ec.ECDH(), peer)


def public_point(private_key: bytes, compressed: bool = False) -> bytes:
    """SEC1 encoded P-256 public point for a raw scalar."""
    own = ec.derive_private_key(int.from_bytes(private_key, "big"), ec.SECP256R1())
    fmt = (
        serialization.PublicFormat.CompressedPoint
        if compressed
        else serialization.PublicFormat.UncompressedPoint
    )
    return own.public_key().public_bytes(serialization.Encoding.X962, fmt)
