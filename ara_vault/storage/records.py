"""
Encrypted Records
==================

One EncryptedRecord is one version of one agent memory. Records are never
mutated: every update produces a new instance with version + 1, forming an
append-only version chain per token id.

Document layout (what the ledger stores):

    tokenId          AINFT token id
    agentWallet      lower-cased owner address
    encryptedMemory  base64 AES-GCM ciphertext
    memoryHash       hex SHA-256 of the plaintext
    encryptionNonce  base64 96-bit nonce
    version          1, 2, 3, ...
    timestamp        Unix milliseconds
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict

from ..crypto.cipher import EncryptedBlob, from_b64, to_b64
from ..errors import IntegrityFailure


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class EncryptedRecord:
    """A single versioned, encrypted memory blob."""
    resource_id: str
    owner_address: str
    ciphertext: bytes
    nonce: bytes
    integrity_hash: str
    version: int = 1
    timestamp: int = field(default_factory=now_ms)

    def __post_init__(self) -> None:
        object.__setattr__(self, "owner_address", self.owner_address.lower())
        if self.version < 1:
            raise ValueError(f"version must be >= 1, got {self.version}")

    @classmethod
    def from_blob(
        cls,
        resource_id: str,
        owner_address: str,
        blob: EncryptedBlob,
    ) -> EncryptedRecord:
        """Build an unversioned draft from a freshly encrypted blob."""
        return cls(
            resource_id=resource_id,
            owner_address=owner_address,
            ciphertext=blob.ciphertext,
            nonce=blob.nonce,
            integrity_hash=blob.hash,
        )

    def with_version(self, version: int) -> EncryptedRecord:
        return replace(self, version=version)

    @property
    def size_bytes(self) -> int:
        return len(self.ciphertext)

    def to_document(self) -> Dict[str, Any]:
        return {
            "tokenId": self.resource_id,
            "agentWallet": self.owner_address,
            "encryptedMemory": to_b64(self.ciphertext),
            "memoryHash": self.integrity_hash,
            "encryptionNonce": to_b64(self.nonce),
            "version": self.version,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> EncryptedRecord:
        try:
            return cls(
                resource_id=str(data["tokenId"]),
                owner_address=str(data["agentWallet"]),
                ciphertext=from_b64(data["encryptedMemory"]),
                nonce=from_b64(data["encryptionNonce"]),
                integrity_hash=str(data["memoryHash"]),
                version=int(data["version"]),
                timestamp=int(data["timestamp"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise IntegrityFailure(f"Malformed storage document: {e}") from e
