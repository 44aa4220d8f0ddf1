"""
Ara Vault Ledger
=================

Signing and broadcast pipeline for authorized writes.

The wallet key never reaches the vault: transitions are serialized and
double-hashed here, signed by an injected Signer, packaged, and broadcast.
"""

from .signer import (
    Signer,
    Ed25519Signer,
    address_from_public_key,
    verify_signature,
    verify_signer_address,
)
from .transition import (
    PROTOCOL_VERSION,
    PendingStateChange,
    TransactionSigner,
    TransitionKind,
    TransitionState,
    attach_signature,
    canonical_json,
    double_sha256,
    split_signed_payload,
)
from .broadcast import BroadcastEndpoint
from .backend import LedgerRecordBackend

__all__ = [
    "Signer",
    "Ed25519Signer",
    "address_from_public_key",
    "verify_signature",
    "verify_signer_address",
    "PROTOCOL_VERSION",
    "PendingStateChange",
    "TransactionSigner",
    "TransitionKind",
    "TransitionState",
    "attach_signature",
    "canonical_json",
    "double_sha256",
    "split_signed_payload",
    "BroadcastEndpoint",
    "LedgerRecordBackend",
]
