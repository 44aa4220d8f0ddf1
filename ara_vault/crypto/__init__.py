"""
Ara Vault Crypto
=================

Client-side cryptographic operations.

Key Hierarchy:
- Agent private key: input key material (never stored)
- Memory key: AES-256 key derived per token id via HKDF
- Shared key: P-256 ECDH for owner/agent sharing

All encryption happens on the client. The ledger only sees ciphertext.
"""

from .keys import (
    KEY_SIZE,
    derive_key,
    derive_memory_key,
    derive_shared_key,
    public_point,
)
from .cipher import (
    NONCE_SIZE,
    EncryptedBlob,
    aead_encrypt,
    aead_decrypt,
    encrypt_memory,
    decrypt_memory,
    memory_hash,
    verify_memory_hash,
    to_b64,
    from_b64,
)

__all__ = [
    "KEY_SIZE",
    "NONCE_SIZE",
    "EncryptedBlob",
    "derive_key",
    "derive_memory_key",
    "derive_shared_key",
    "public_point",
    "aead_encrypt",
    "aead_decrypt",
    "encrypt_memory",
    "decrypt_memory",
    "memory_hash",
    "verify_memory_hash",
    "to_b64",
    "from_b64",
]
