"""
Ara Vault - Encrypted Agent Memory
===================================

Client-encrypted, versioned memory records for AI agents, written to a
ledger as signed state transitions.

Architecture:
- Crypto: HKDF key derivation, AES-256-GCM with an independent content hash
- Storage: Versioned records with an expected-version precondition
- Ledger: Canonical signable bytes, external Signer, broadcast
- API: Identity gateway client and a FastAPI devnet

The ledger NEVER sees plaintext memory.

Usage:
    from ara_vault import Ed25519Signer, IdentityGateway, MemoryVaultClient, VaultConfig
    from ara_vault import establish_session

    config = VaultConfig.from_env()
    signer = Ed25519Signer.generate()
    session = await establish_session(IdentityGateway(config.network.gateway_url), signer)

    client = MemoryVaultClient.for_ledger(config, session)
    await client.store_memory(session, "42", session.address, "hello", agent_key)
    memory = await client.retrieve_memory(session, "42", agent_key)
"""

__version__ = "0.1.0"

from .errors import (
    VaultError,
    AuthenticationFailure,
    IntegrityFailure,
    NotInitializedError,
    NetworkFailure,
    VersionConflict,
    UnknownSchemeError,
    TransitionStateError,
)
from .config import VaultConfig, NetworkConfig, HttpConfig
from .crypto import derive_memory_key, encrypt_memory, decrypt_memory, EncryptedBlob
from .storage import (
    EncryptedRecord,
    SQLiteRecordBackend,
    VersionedRecordStore,
    StorageScheme,
    StorageURI,
    format_storage_uri,
    parse_storage_uri,
)
from .ledger import Ed25519Signer, Signer, TransactionSigner, PendingStateChange
from .api import IdentityGateway, create_app
from .session import Session, establish_session
from .client import MemoryVaultClient, StorageResult, RetrievalResult

__all__ = [
    # Errors
    "VaultError",
    "AuthenticationFailure",
    "IntegrityFailure",
    "NotInitializedError",
    "NetworkFailure",
    "VersionConflict",
    "UnknownSchemeError",
    "TransitionStateError",
    # Config
    "VaultConfig",
    "NetworkConfig",
    "HttpConfig",
    # Crypto
    "derive_memory_key",
    "encrypt_memory",
    "decrypt_memory",
    "EncryptedBlob",
    # Storage
    "EncryptedRecord",
    "SQLiteRecordBackend",
    "VersionedRecordStore",
    "StorageScheme",
    "StorageURI",
    "format_storage_uri",
    "parse_storage_uri",
    # Ledger
    "Ed25519Signer",
    "Signer",
    "TransactionSigner",
    "PendingStateChange",
    # API
    "IdentityGateway",
    "create_app",
    # Session & client
    "Session",
    "establish_session",
    "MemoryVaultClient",
    "StorageResult",
    "RetrievalResult",
]
