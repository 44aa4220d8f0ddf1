"""
Wrapper Flow
=============

Backend-assisted storage: the wallet holder signs a short authorization
message instead of a full transition, and a backend holding its own identity
writes the document on their behalf after checking that authorization.

1. Client encrypts memory, computes blob hash
2. Wallet signs the authorization message
3. Backend verifies signature, signer address, expiry and nonce freshness
4. Backend writes the record
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from ..errors import AuthenticationFailure
from ..ledger.signer import verify_signature, verify_signer_address


@dataclass(frozen=True)
class StorageAuthorization:
    """What the wallet holder approves."""
    blob_hash: str
    identity_id: str
    token_id: str
    nonce: int
    expiry: int  # Unix milliseconds

    def message(self) -> str:
        return (
            f"Authorize peg.gg storage: blobHash={self.blob_hash}, "
            f"identity={self.identity_id}, AINFT={self.token_id}, "
            f"nonce={self.nonce}, expiry={self.expiry}"
        )


class NonceRegistry:
    """Remembers used authorization nonces until they expire."""

    def __init__(self) -> None:
        self._nonces: Dict[str, int] = {}
        self._lock = threading.Lock()

    def check_and_register(self, signer: str, nonce: int, expiry: int, now_ms: int) -> bool:
        """Register nonce; False if already used by this signer."""
        key = f"{signer}:{nonce}"
        with self._lock:
            self._nonces = {k: exp for k, exp in self._nonces.items() if exp > now_ms}
            if key in self._nonces:
                return False
            self._nonces[key] = expiry
            return True

    def size(self) -> int:
        with self._lock:
            return len(self._nonces)


def verify_authorization(
    auth: StorageAuthorization,
    signature: bytes,
    public_key: bytes,
    expected_address: str,
    registry: Optional[NonceRegistry] = None,
    now_ms: Optional[int] = None,
) -> None:
    """Raise AuthenticationFailure unless auth was signed by expected_address and is fresh."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)

    verify_signer_address(public_key, expected_address)
    verify_signature(public_key, auth.message().encode("utf-8"), signature)

    if auth.expiry <= now_ms:
        raise AuthenticationFailure(f"Authorization for token {auth.token_id} expired")
    if registry is not None and not registry.check_and_register(
        expected_address.lower(), auth.nonce, auth.expiry, now_ms
    ):
        raise AuthenticationFailure(f"Authorization nonce {auth.nonce} already used")
