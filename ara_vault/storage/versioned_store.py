"""
Versioned Record Store
=======================

Read-modify-write over encrypted records keyed by token id.

Version chain invariant: the first record for a token id is version 1 and
each later record is exactly previous + 1. Every write carries the version it
was computed from; a backend that has moved on rejects it with
VersionConflict instead of silently losing an update.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..config import DEFAULT_DOCUMENT_TYPE
from ..errors import VersionConflict
from .backend import RecordBackend, RecordQuery
from .records import EncryptedRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredRecord:
    """A record accepted by the backend, with where it ended up."""
    record: EncryptedRecord
    document_id: str
    transition_hash: Optional[str] = None

    @property
    def version(self) -> int:
        return self.record.version


class VersionedRecordStore:
    """Monotonic version chains on top of a RecordBackend."""

    def __init__(
        self,
        backend: RecordBackend,
        document_type: str = DEFAULT_DOCUMENT_TYPE,
    ) -> None:
        self.backend = backend
        self.document_type = document_type

    async def get_latest(self, resource_id: str) -> Optional[EncryptedRecord]:
        """Highest version for resource_id, or None."""
        documents = await self.backend.query(
            self.document_type,
            RecordQuery(
                where=[["tokenId", "==", resource_id]],
                order_by=[["version", "desc"]],
                limit=1,
            ),
        )
        if not documents:
            return None
        return EncryptedRecord.from_document(documents[0])

    async def put(self, record: EncryptedRecord) -> StoredRecord:
        """
        Append record as the next version of its token id.

        The incoming version is ignored; the latest version is re-read right
        before writing. One VersionConflict triggers one re-read and retry.
        """
        latest = await self.get_latest(record.resource_id)
        expected = latest.version if latest else 0
        try:
            return await self.put_if_version(expected, record)
        except VersionConflict as e:
            logger.warning(
                f"Version conflict on token {record.resource_id} "
                f"(expected {e.expected_version}, found {e.actual_version}), retrying once"
            )

        latest = await self.get_latest(record.resource_id)
        expected = latest.version if latest else 0
        return await self.put_if_version(expected, record)

    async def put_if_version(self, expected_version: int, record: EncryptedRecord) -> StoredRecord:
        """
        Write record as version expected_version + 1.

        expected_version == 0 means no version may exist yet.
        """
        if expected_version < 0:
            raise ValueError(f"expected_version must be >= 0, got {expected_version}")

        versioned = record.with_version(expected_version + 1)
        document = versioned.to_document()

        if expected_version == 0:
            receipt = await self.backend.create(self.document_type, document)
        else:
            receipt = await self.backend.replace(self.document_type, document, expected_version)

        logger.info(
            f"Stored token {versioned.resource_id} version {versioned.version} "
            f"({versioned.size_bytes} bytes)"
        )
        return StoredRecord(
            record=versioned,
            document_id=receipt.document_id,
            transition_hash=receipt.transition_hash,
        )

    async def list_by_owner(self, owner_address: str) -> List[EncryptedRecord]:
        """Every record version owned by owner_address."""
        documents = await self.backend.query(
            self.document_type,
            RecordQuery(where=[["agentWallet", "==", owner_address.lower()]]),
        )
        return [EncryptedRecord.from_document(d) for d in documents]

    async def history(self, resource_id: str) -> List[EncryptedRecord]:
        """Full version chain for resource_id, oldest first."""
        documents = await self.backend.query(
            self.document_type,
            RecordQuery(
                where=[["tokenId", "==", resource_id]],
                order_by=[["version", "asc"]],
            ),
        )
        return [EncryptedRecord.from_document(d) for d in documents]
