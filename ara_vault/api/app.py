"""
Ara Vault Devnet
=================

FastAPI application standing in for the identity gateway and the ledger
during development and tests.

Endpoints:
- /identity/link                      - Link a wallet address to an identity
- /storage/quota/{address}            - Remaining storage credits
- /platform/broadcastStateTransition  - Verify and apply a signed transition
- /platform/documents/query           - Filtered document query
- /api/health                         - Health check

The devnet stores ciphertext it cannot decrypt, exactly like the real ledger.
"""

from __future__ import annotations

import hashlib
import json
import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from ..errors import AuthenticationFailure, VersionConflict
from ..ledger.signer import ED25519_SIGNATURE_SIZE, verify_signature, verify_signer_address
from ..ledger.transition import TransitionKind, canonical_json, double_sha256, split_signed_payload
from ..session import identity_link_message
from ..storage.backend import RecordQuery, SQLiteRecordBackend
from .gateway import IdentityLinkRequest

logger = logging.getLogger(__name__)

DEFAULT_CREDITS = 100


# =============================================================================
# Pydantic Models (for FastAPI validation)
# =============================================================================

class DocumentQueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_type: str = Field(alias="documentType")
    where: List[List[Any]] = Field(default_factory=list)
    order_by: List[List[str]] = Field(default_factory=list, alias="orderBy")
    limit: Optional[int] = None


@dataclass
class LinkedIdentity:
    identity_id: str
    address: str
    public_key: bytes
    credits: int
    max_credits: int


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    db_path: Optional[Path] = None,
    initial_credits: int = DEFAULT_CREDITS,
) -> FastAPI:
    """
    Create the devnet application.

    Args:
        db_path: SQLite file for documents and token ownership (in-memory if None)
        initial_credits: Credits granted to each newly linked identity
    """
    app = FastAPI(
        title="Ara Vault Devnet",
        description="Local identity gateway and ledger for encrypted agent memory",
        version="0.1.0",
    )

    backend = SQLiteRecordBackend(db_path or ":memory:")
    identities: Dict[str, LinkedIdentity] = {}
    by_address: Dict[str, str] = {}

    app.state.backend = backend
    app.state.identities = identities

    # =========================================================================
    # Identity Gateway
    # =========================================================================

    @app.post("/identity/link")
    async def link_identity(request: IdentityLinkRequest):
        """Verify the link signature and register the signer's key."""
        address = request.eth_address.lower()
        try:
            public_key = bytes.fromhex(request.public_key)
            signature = bytes.fromhex(request.eth_signature)
        except ValueError:
            raise HTTPException(status_code=400, detail="publicKey and ethSignature must be hex")

        try:
            verify_signer_address(public_key, address)
            verify_signature(public_key, identity_link_message(address).encode("utf-8"), signature)
        except AuthenticationFailure as e:
            logger.warning(f"Rejected identity link for {address}: {e}")
            raise HTTPException(status_code=401, detail=str(e))

        identity_id = by_address.get(address)
        if identity_id is None:
            identity_id = hashlib.sha256(b"identity|" + public_key).hexdigest()[:40]
            identities[identity_id] = LinkedIdentity(
                identity_id=identity_id,
                address=address,
                public_key=public_key,
                credits=initial_credits,
                max_credits=initial_credits,
            )
            by_address[address] = identity_id
            logger.info(f"Linked {address} to new identity {identity_id}")

        return {
            "identityId": identity_id,
            "recoveryCredential": secrets.token_hex(16),
            "credits": identities[identity_id].credits,
        }

    @app.get("/storage/quota/{address}")
    async def get_quota(address: str):
        identity_id = by_address.get(address.lower())
        if identity_id is None:
            raise HTTPException(status_code=404, detail=f"No identity linked to {address}")
        identity = identities[identity_id]
        return {"credits": identity.credits, "maxCredits": identity.max_credits}

    # =========================================================================
    # Ledger
    # =========================================================================

    @app.post("/platform/broadcastStateTransition")
    async def broadcast_state_transition(request: Request):
        """
        Verify a signed transition and apply its document write.

        The signature is checked against every linked key; the devnet has
        few identities so the scan stays cheap.
        """
        body = await request.body()
        try:
            signable, key_id, signature = split_signed_payload(body, ED25519_SIGNATURE_SIZE)
            transition = json.loads(signable.decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            raise HTTPException(status_code=400, detail=f"Malformed transition: {e}")

        try:
            if canonical_json(transition) != signable:
                raise ValueError("signable bytes are not canonical")
            kind = TransitionKind(transition["kind"])
            payload = transition["payload"]
            document_type = payload["documentType"]
            document = payload["document"]
            expected_version = int(payload["expectedVersion"])
            if not isinstance(document, dict):
                raise TypeError("document must be an object")
        except (KeyError, TypeError, ValueError) as e:
            raise HTTPException(status_code=400, detail=f"Malformed transition: {e}")

        signer = _find_signer(identities, double_sha256(signable), signature)
        if signer is None:
            raise HTTPException(status_code=401, detail="Signature does not match any linked identity")
        if key_id != 0:
            raise HTTPException(status_code=401, detail=f"Unknown key id {key_id}")

        if signer.credits <= 0:
            raise HTTPException(status_code=402, detail="Insufficient storage credits")
        if (kind is TransitionKind.CREATE) != (expected_version == 0):
            raise HTTPException(status_code=400, detail="create requires expectedVersion 0")

        try:
            if kind is TransitionKind.CREATE:
                await backend.create(document_type, document, owner_id=signer.identity_id)
            else:
                await backend.replace(
                    document_type, document, expected_version, owner_id=signer.identity_id
                )
        except PermissionError as e:
            raise HTTPException(status_code=403, detail=str(e))
        except VersionConflict as e:
            raise HTTPException(status_code=409, detail=str(e))
        except (KeyError, TypeError, ValueError) as e:
            raise HTTPException(status_code=400, detail=f"Invalid document: {e}")

        signer.credits -= 1

        transition_hash = double_sha256(body).hex()
        logger.info(
            f"Applied {kind.name.lower()} token={document.get('tokenId')} "
            f"version={document.get('version')} transition={transition_hash[:16]}"
        )
        return {"transitionHash": transition_hash}

    @app.post("/platform/documents/query")
    async def query_documents(request: DocumentQueryRequest):
        query = RecordQuery(where=request.where, order_by=request.order_by, limit=request.limit)
        try:
            documents = await backend.query(request.document_type, query)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"documents": documents}

    # =========================================================================
    # Health & Info
    # =========================================================================

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "identities": len(identities),
            **backend.get_stats(),
        }

    return app


def _find_signer(
    identities: Dict[str, LinkedIdentity],
    digest: bytes,
    signature: bytes,
) -> Optional[LinkedIdentity]:
    for identity in identities.values():
        try:
            verify_signature(identity.public_key, digest, signature)
        except AuthenticationFailure:
            continue
        return identity
    return None


# =============================================================================
# CLI
# =============================================================================

def serve(host: str = "127.0.0.1", port: int = 8000, db_path: Optional[Path] = None) -> None:
    """Run the devnet server."""
    import uvicorn

    app = create_app(db_path=db_path)
    uvicorn.run(app, host=host, port=port)
