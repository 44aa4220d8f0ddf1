"""
Vault Errors
=============

Every failure surfaced by the vault carries a ``kind``, a human readable
message, and an optional raw diagnostic (usually an HTTP response body) so the
caller can decide whether to retry.

- AuthenticationFailure: signature does not belong to the expected signer
- IntegrityFailure: ciphertext or hash verification failed
- NotInitializedError: no established session
- NetworkFailure: a collaborator was unreachable or answered non-2xx
- VersionConflict: expected-version precondition rejected by the backend
- UnknownSchemeError: malformed or unsupported storage URI
- TransitionStateError: state transition used out of order
"""

from __future__ import annotations

from typing import Optional


class VaultError(Exception):
    """Base exception for vault errors."""

    kind = "vault_error"

    def __init__(self, message: str, diagnostic: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        if self.diagnostic:
            return f"{self.message} ({self.diagnostic})"
        return self.message


class AuthenticationFailure(VaultError):
    """Signature does not verify for the expected signer. Never retried."""

    kind = "authentication_failure"


class IntegrityFailure(VaultError):
    """Record failed decryption or hash verification. Treat as tampered."""

    kind = "integrity_failure"


class NotInitializedError(VaultError):
    """Operation invoked without an established session."""

    kind = "not_initialized"


class NetworkFailure(VaultError):
    """Collaborator call failed at transport level or returned non-success."""

    kind = "network_failure"

    def __init__(
        self,
        message: str,
        diagnostic: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, diagnostic)
        self.status_code = status_code


class VersionConflict(VaultError):
    """Backend rejected a write whose assumed prior version is stale."""

    kind = "version_conflict"

    def __init__(
        self,
        message: str,
        resource_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        diagnostic: Optional[str] = None,
    ) -> None:
        super().__init__(message, diagnostic)
        self.resource_id = resource_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class UnknownSchemeError(VaultError, ValueError):
    """Storage URI is malformed or uses an unsupported scheme."""

    kind = "unknown_scheme"


class TransitionStateError(VaultError):
    """State transition advanced out of order."""

    kind = "transition_state"
