"""
Memory Cipher
==============

AES-256-GCM encryption of memory content.

Each call draws a fresh 96-bit nonce. The plaintext hash is computed
separately from the cipher so parties that cannot decrypt can still check
that two blobs hold the same memory.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import IntegrityFailure
from .keys import KEY_SIZE

logger = logging.getLogger(__name__)

NONCE_SIZE = 12  # 96 bits for AES-GCM


@dataclass(frozen=True)
class EncryptedBlob:
    """Result of encrypting one memory."""
    ciphertext: bytes
    nonce: bytes
    hash: str  # hex SHA-256 of the plaintext


# =============================================================================
# AEAD Operations (AES-256-GCM)
# =============================================================================

def aead_encrypt(
    key: bytes,
    plaintext: bytes,
    associated_data: Optional[bytes] = None,
) -> Tuple[bytes, bytes]:
    """
    Encrypt with AES-256-GCM.

    Returns (nonce, ciphertext).
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes")

    nonce = secrets.token_bytes(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, associated_data)
    return nonce, ciphertext


def aead_decrypt(
    key: bytes,
    nonce: bytes,
    ciphertext: bytes,
    associated_data: Optional[bytes] = None,
) -> bytes:
    """
    Decrypt with AES-256-GCM.

    Raises IntegrityFailure if the tag does not verify.
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes")
    if len(nonce) != NONCE_SIZE:
        raise IntegrityFailure(f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")

    try:
        return AESGCM(key).decrypt(nonce, ciphertext, associated_data)
    except InvalidTag as e:
        raise IntegrityFailure("Authentication tag mismatch: ciphertext rejected") from e


# =============================================================================
# Memory Encryption
# =============================================================================

def memory_hash(content: str) -> str:
    """Hex SHA-256 of the UTF-8 encoded memory content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def encrypt_memory(plaintext: str, key: bytes) -> EncryptedBlob:
    """Encrypt memory content and hash the plaintext."""
    data = plaintext.encode("utf-8")
    nonce, ciphertext = aead_encrypt(key, data)
    logger.debug("Encrypted memory (%d bytes plaintext)", len(data))
    return EncryptedBlob(ciphertext=ciphertext, nonce=nonce, hash=memory_hash(plaintext))


def decrypt_memory(ciphertext: bytes, nonce: bytes, key: bytes) -> str:
    """Decrypt memory content. Raises IntegrityFailure on tamper or wrong key."""
    plaintext = aead_decrypt(key, nonce, ciphertext)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise IntegrityFailure("Decrypted memory is not valid UTF-8") from e


def verify_memory_hash(content: str, expected_hash: str) -> bool:
    """Exact match against the lowercase hex digest; other casings are rejected."""
    return hmac.compare_digest(memory_hash(content).encode("ascii"), expected_hash.encode("utf-8"))


# =============================================================================
# Transport Encoding
# =============================================================================

def to_b64(data: bytes) -> str:
    """Encode bytes to base64."""
    return base64.b64encode(data).decode("ascii")


def from_b64(text: str) -> bytes:
    """Decode base64 to bytes. Rejects non-alphabet characters."""
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64: {e}") from e
