"""
State Transitions
==================

Turns an authorized write into a broadcast-ready, verifiably signed payload:

1. Build a PendingStateChange (kind, protocol version, payload)
2. Extract signable bytes: canonical JSON, excluding signature, key id and
   the owning identity's bookkeeping
3. Digest = double-SHA256(signable bytes)
4. External Signer signs the digest
5. Attach: signable bytes + key id (1 byte) + signature (fixed width)
6. Broadcast to the ledger endpoint

Lifecycle of one change:

    BUILT -> SIGNABLE_EXTRACTED -> SIGNED -> ATTACHED -> BROADCAST -> CONFIRMED
                                                                   \\-> REJECTED

Transitions are strictly sequential. A change cannot be re-signed once
attached; call rebuild() to start over from BUILT.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Tuple

from ..errors import AuthenticationFailure, TransitionStateError
from .signer import Signer

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = 1


# =============================================================================
# Canonical Encoding
# =============================================================================

def _coerce_json_types(obj: Any) -> Any:
    """Coerce Python objects into strict JSON types.

    - bytes become standard base64 strings
    - floats are rejected (use integers or strings)
    """
    if obj is None or isinstance(obj, (str, bool, int)):
        return obj
    if isinstance(obj, float):
        raise ValueError("Floats are not allowed in canonical encoding. Use strings or integers.")
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, (list, tuple)):
        return [_coerce_json_types(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): _coerce_json_types(v) for k, v in obj.items()}
    if isinstance(obj, Enum):
        return _coerce_json_types(obj.value)
    raise ValueError(f"Cannot canonicalize {type(obj).__name__}")


def canonical_json(obj: Any) -> bytes:
    """Deterministic JSON bytes: sorted keys, no whitespace, UTF-8."""
    clean = _coerce_json_types(obj)
    return json.dumps(
        clean,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def double_sha256(data: bytes) -> bytes:
    """SHA-256 applied twice, as the ledger hashes transitions."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


# =============================================================================
# Signature Packaging
# =============================================================================

def attach_signature(signable_bytes: bytes, signature: bytes, key_id: int) -> bytes:
    """
    Append key id and signature to the signable bytes.

    Layout: [signable bytes][key id: 1 byte][signature]
    """
    if not 0 <= key_id <= 255:
        raise ValueError(f"key_id must fit in one byte, got {key_id}")
    if not signature:
        raise ValueError("signature must not be empty")
    return bytes(signable_bytes) + bytes([key_id]) + bytes(signature)


def split_signed_payload(payload: bytes, signature_size: int) -> Tuple[bytes, int, bytes]:
    """Inverse of attach_signature for a known signature width."""
    if signature_size < 1 or len(payload) < signature_size + 2:
        raise ValueError("payload too short for a signed transition")
    cut = len(payload) - signature_size - 1
    return payload[:cut], payload[cut], payload[cut + 1:]


# =============================================================================
# Pending State Change
# =============================================================================

class TransitionKind(IntEnum):
    """Document batch operation."""
    CREATE = 1
    REPLACE = 2


class TransitionState(Enum):
    BUILT = "built"
    SIGNABLE_EXTRACTED = "signable_extracted"
    SIGNED = "signed"
    ATTACHED = "attached"
    BROADCAST = "broadcast"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


ALLOWED_TRANSITIONS = {
    TransitionState.BUILT: {TransitionState.SIGNABLE_EXTRACTED},
    TransitionState.SIGNABLE_EXTRACTED: {TransitionState.SIGNED, TransitionState.REJECTED},
    TransitionState.SIGNED: {TransitionState.ATTACHED},
    TransitionState.ATTACHED: {TransitionState.BROADCAST},
    TransitionState.BROADCAST: {TransitionState.CONFIRMED, TransitionState.REJECTED},
    TransitionState.CONFIRMED: set(),
    TransitionState.REJECTED: set(),
}


@dataclass
class PendingStateChange:
    """One authorized mutation on its way to the ledger."""
    kind: TransitionKind
    payload: Dict[str, Any]
    protocol_version: int = PROTOCOL_VERSION
    identity_id: Optional[str] = None  # owner bookkeeping, not signed
    signature: Optional[bytes] = None
    signer_key_id: Optional[int] = None
    state: TransitionState = TransitionState.BUILT
    transition_hash: Optional[str] = None
    _signable: Optional[bytes] = field(default=None, repr=False)

    def signable_bytes(self) -> bytes:
        """Canonical bytes over {kind, protocolVersion, payload} only."""
        return canonical_json({
            "kind": int(self.kind),
            "protocolVersion": self.protocol_version,
            "payload": self.payload,
        })

    def digest(self) -> bytes:
        return double_sha256(self.signable_bytes())

    def advance(self, target: TransitionState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise TransitionStateError(
                f"Cannot move transition from {self.state.value} to {target.value}"
            )
        self.state = target

    def rebuild(self) -> PendingStateChange:
        """Fresh BUILT copy with the same content and no signature."""
        return PendingStateChange(
            kind=self.kind,
            payload=self.payload,
            protocol_version=self.protocol_version,
            identity_id=self.identity_id,
        )


# =============================================================================
# Transaction Signer
# =============================================================================

class TransactionSigner:
    """
    Drives a PendingStateChange through signing and broadcast.

    Owns construction and packaging only; the signature itself comes from
    the injected Signer and delivery from the injected BroadcastEndpoint.
    """

    def __init__(self, signer: Signer, endpoint: Optional[Any] = None) -> None:
        self.signer = signer
        self.endpoint = endpoint

    def extract(self, change: PendingStateChange) -> bytes:
        change.advance(TransitionState.SIGNABLE_EXTRACTED)
        change._signable = change.signable_bytes()
        return change._signable

    async def sign(self, change: PendingStateChange) -> bytes:
        if change.state is not TransitionState.SIGNABLE_EXTRACTED or change._signable is None:
            raise TransitionStateError(
                f"Cannot sign transition in state {change.state.value}"
            )

        digest = double_sha256(change._signable)
        signature = await self.signer.sign(digest)

        try:
            if len(signature) != self.signer.signature_size:
                raise AuthenticationFailure(
                    f"Signature is {len(signature)} bytes, expected {self.signer.signature_size}"
                )
            self.signer.verify(digest, signature)
        except AuthenticationFailure:
            change.advance(TransitionState.REJECTED)
            logger.error(f"Signer {self.signer.address} produced an invalid signature")
            raise

        change.signature = signature
        change.signer_key_id = self.signer.key_id
        change.advance(TransitionState.SIGNED)
        return signature

    def attach(self, change: PendingStateChange) -> bytes:
        if change.state is not TransitionState.SIGNED:
            raise TransitionStateError(
                f"Cannot attach signature to transition in state {change.state.value}"
            )
        payload = attach_signature(change._signable, change.signature, change.signer_key_id)
        change.advance(TransitionState.ATTACHED)
        return payload

    async def broadcast(self, change: PendingStateChange, payload: bytes) -> str:
        """Forward payload to the endpoint; failures are re-raised unchanged."""
        if self.endpoint is None:
            raise TransitionStateError("No broadcast endpoint configured")

        change.advance(TransitionState.BROADCAST)
        try:
            reference = await self.endpoint.broadcast(payload)
        except Exception:
            change.advance(TransitionState.REJECTED)
            raise

        change.transition_hash = reference
        change.advance(TransitionState.CONFIRMED)
        logger.info(f"Transition {reference} confirmed ({len(payload)} bytes)")
        return reference

    async def sign_and_broadcast(self, change: PendingStateChange) -> str:
        """Full pipeline from BUILT to CONFIRMED."""
        self.extract(change)
        await self.sign(change)
        payload = self.attach(change)
        return await self.broadcast(change, payload)
