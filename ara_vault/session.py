"""
Sessions
=========

A Session is the proof that the wallet holder linked their address to a
ledger identity. It is produced once by establish_session and passed to every
vault operation; there is no hidden "initialized" flag.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Optional

from .api.gateway import IdentityGateway
from .errors import NotInitializedError
from .ledger.signer import Signer

logger = logging.getLogger(__name__)


def identity_link_message(address: str) -> str:
    return f"Link Dash Identity to {address} for Pentagon AINFT storage on peg.gg"


@dataclass(frozen=True)
class Session:
    """An established identity link."""
    address: str
    identity_id: str
    recovery_credential: str = field(repr=False)
    credits: int
    signer: Signer = field(repr=False)
    established_at: float = field(default_factory=time.time)
    closed: bool = False

    def close(self) -> Session:
        return replace(self, closed=True)


async def establish_session(gateway: IdentityGateway, signer: Signer) -> Session:
    """Sign the link message and register the identity with the gateway."""
    message = identity_link_message(signer.address)
    signature = await signer.sign(message.encode("utf-8"))
    link = await gateway.link_identity(signer.address, signature, signer.public_key)
    return Session(
        address=signer.address,
        identity_id=link.identity_id,
        recovery_credential=link.recovery_credential,
        credits=link.credits,
        signer=signer,
    )


def require_session(session: Optional[Session]) -> Session:
    """Raise NotInitializedError unless session is established and open."""
    if session is None:
        raise NotInitializedError("No session. Call establish_session() first.")
    if session.closed:
        raise NotInitializedError(f"Session for {session.address} is closed.")
    return session
