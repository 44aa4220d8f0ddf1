"""
Ledger Record Backend
======================

RecordBackend whose writes are signed state transitions.

Reads go to the platform document query endpoint. Each create/replace is
wrapped in a PendingStateChange, signed by the wallet holder's Signer and
broadcast; the ledger enforces the expected-version precondition carried in
the payload.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..errors import NetworkFailure, VersionConflict
from ..http import HttpCollaborator
from ..storage.backend import RecordQuery, WriteReceipt, document_id
from .transition import PendingStateChange, TransactionSigner, TransitionKind

logger = logging.getLogger(__name__)

QUERY_PATH = "/platform/documents/query"


class LedgerRecordBackend:
    """Documents read over HTTP, written as signed transitions."""

    def __init__(
        self,
        reader: HttpCollaborator,
        tx_signer: TransactionSigner,
        data_contract_id: str,
        identity_id: Optional[str] = None,
    ) -> None:
        self.reader = reader
        self.tx_signer = tx_signer
        self.data_contract_id = data_contract_id
        self.identity_id = identity_id

    async def query(self, document_type: str, query: RecordQuery) -> List[Dict[str, Any]]:
        body = {"documentType": document_type, **query.to_dict()}
        data = await self.reader.json("POST", QUERY_PATH, json=body)
        if not isinstance(data, dict) or not isinstance(data.get("documents"), list):
            raise NetworkFailure("Document query returned an unexpected body", diagnostic=str(data))
        return data["documents"]

    async def create(self, document_type: str, document: Dict[str, Any]) -> WriteReceipt:
        return await self._submit(TransitionKind.CREATE, document_type, document, 0)

    async def replace(
        self,
        document_type: str,
        document: Dict[str, Any],
        expected_version: int,
    ) -> WriteReceipt:
        return await self._submit(TransitionKind.REPLACE, document_type, document, expected_version)

    def build_change(
        self,
        kind: TransitionKind,
        document_type: str,
        document: Dict[str, Any],
        expected_version: int,
    ) -> PendingStateChange:
        return PendingStateChange(
            kind=kind,
            payload={
                "dataContractId": self.data_contract_id,
                "documentType": document_type,
                "document": document,
                "expectedVersion": expected_version,
            },
            identity_id=self.identity_id,
        )

    async def _submit(
        self,
        kind: TransitionKind,
        document_type: str,
        document: Dict[str, Any],
        expected_version: int,
    ) -> WriteReceipt:
        change = self.build_change(kind, document_type, document, expected_version)
        token_id = str(document["tokenId"])

        try:
            reference = await self.tx_signer.sign_and_broadcast(change)
        except VersionConflict as e:
            raise VersionConflict(
                f"Ledger rejected {kind.name.lower()} of token {token_id} at version {expected_version}",
                resource_id=token_id,
                expected_version=expected_version,
                diagnostic=e.diagnostic,
            ) from e

        return WriteReceipt(
            document_id=document_id(document_type, token_id, int(document["version"])),
            transition_hash=reference,
        )
