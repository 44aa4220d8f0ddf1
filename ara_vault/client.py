"""
Memory Vault Client
====================

High-level flows for agents storing encrypted memory:

Store:    derive key -> encrypt -> put next version (signed + broadcast)
Retrieve: fetch latest -> derive key -> decrypt -> verify hash

The agent private key is passed into each call and dropped when it returns.
Nothing here caches keys.

Usage:
    gateway = IdentityGateway(config.network.gateway_url)
    session = await establish_session(gateway, signer)
    client = MemoryVaultClient.for_ledger(config, session)

    result = await client.store_memory(session, "42", session.address, "hello", agent_key)
    memory = await client.retrieve_memory(session, "42", agent_key)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

from .api.gateway import IdentityGateway, StorageQuota
from .config import VaultConfig
from .crypto.cipher import decrypt_memory, encrypt_memory, verify_memory_hash
from .crypto.keys import derive_memory_key
from .errors import IntegrityFailure, NotInitializedError
from .http import HttpCollaborator
from .ledger.backend import LedgerRecordBackend
from .ledger.broadcast import BroadcastEndpoint
from .ledger.transition import TransactionSigner
from .session import Session, require_session
from .storage.records import EncryptedRecord
from .storage.uri import StorageScheme, format_storage_uri
from .storage.versioned_store import VersionedRecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageResult:
    document_id: str
    transition_hash: Optional[str]
    storage_uri: str
    version: int


@dataclass(frozen=True)
class RetrievalResult:
    content: str
    memory_hash: str
    version: int
    timestamp: int


class MemoryVaultClient:
    """Encrypt, version and store agent memories."""

    def __init__(
        self,
        store: VersionedRecordStore,
        gateway: Optional[IdentityGateway] = None,
    ) -> None:
        self.store = store
        self.gateway = gateway

    @classmethod
    def for_ledger(
        cls,
        config: VaultConfig,
        session: Session,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> MemoryVaultClient:
        """Client whose writes are signed by the session's signer and broadcast."""
        session = require_session(session)
        timeout = config.http.timeout_seconds
        base_url = config.network.broadcast_url

        endpoint = BroadcastEndpoint(base_url, client=http_client, timeout=timeout)
        reader = HttpCollaborator(base_url, client=endpoint.client, timeout=timeout)
        backend = LedgerRecordBackend(
            reader=reader,
            tx_signer=TransactionSigner(session.signer, endpoint),
            data_contract_id=config.network.data_contract_id,
            identity_id=session.identity_id,
        )
        gateway = IdentityGateway(config.network.gateway_url, client=endpoint.client, timeout=timeout)
        return cls(VersionedRecordStore(backend, config.network.document_type), gateway)

    # =========================================================================
    # Memory Operations
    # =========================================================================

    async def store_memory(
        self,
        session: Session,
        token_id: str,
        agent_wallet: str,
        content: str,
        private_key: bytes,
    ) -> StorageResult:
        """Encrypt content and store it as the next version for token_id."""
        require_session(session)

        key = derive_memory_key(private_key, token_id)
        blob = encrypt_memory(content, key)
        draft = EncryptedRecord.from_blob(token_id, agent_wallet, blob)

        stored = await self.store.put(draft)
        return StorageResult(
            document_id=stored.document_id,
            transition_hash=stored.transition_hash,
            storage_uri=format_storage_uri(StorageScheme.DASH, stored.document_id),
            version=stored.version,
        )

    async def update_memory(
        self,
        session: Session,
        token_id: str,
        agent_wallet: str,
        content: str,
        private_key: bytes,
    ) -> StorageResult:
        """Store a new version; versioning is handled by store_memory."""
        return await self.store_memory(session, token_id, agent_wallet, content, private_key)

    async def retrieve_memory(
        self,
        session: Session,
        token_id: str,
        private_key: bytes,
    ) -> Optional[RetrievalResult]:
        """Decrypt the latest version for token_id, or None if nothing is stored."""
        require_session(session)

        record = await self.store.get_latest(token_id)
        if record is None:
            return None

        key = derive_memory_key(private_key, token_id)
        content = decrypt_memory(record.ciphertext, record.nonce, key)

        if not verify_memory_hash(content, record.integrity_hash):
            raise IntegrityFailure(
                f"Memory hash verification failed for token {token_id} version {record.version}"
            )

        return RetrievalResult(
            content=content,
            memory_hash=record.integrity_hash,
            version=record.version,
            timestamp=record.timestamp,
        )

    async def list_memories(self, session: Session, agent_wallet: str) -> List[EncryptedRecord]:
        """All stored versions owned by agent_wallet (still encrypted)."""
        require_session(session)
        return await self.store.list_by_owner(agent_wallet)

    async def memory_history(self, session: Session, token_id: str) -> List[EncryptedRecord]:
        """Version chain for token_id (still encrypted)."""
        require_session(session)
        return await self.store.history(token_id)

    async def get_quota(self, address: str) -> StorageQuota:
        if self.gateway is None:
            raise NotInitializedError("No identity gateway configured")
        return await self.gateway.get_quota(address)

    async def close(self, session: Optional[Session] = None) -> Optional[Session]:
        """Close HTTP resources; returns the closed session if one was given."""
        if self.gateway is not None:
            await self.gateway.aclose()
        backend = self.store.backend
        if isinstance(backend, LedgerRecordBackend):
            await backend.reader.aclose()
            if backend.tx_signer.endpoint is not None:
                await backend.tx_signer.endpoint.aclose()
        return session.close() if session is not None else None
