"""
Broadcast Endpoint
===================

Thin client for the ledger's public transition endpoint. Accepts the fully
signed transition bytes and returns the transition reference.
"""

from __future__ import annotations

import logging

from ..errors import NetworkFailure
from ..http import HttpCollaborator

logger = logging.getLogger(__name__)

BROADCAST_PATH = "/platform/broadcastStateTransition"


class BroadcastEndpoint(HttpCollaborator):
    """POSTs signed transitions as application/octet-stream."""

    conflict_status = 409

    async def broadcast(self, payload: bytes) -> str:
        data = await self.json(
            "POST",
            BROADCAST_PATH,
            content=payload,
            headers={"Content-Type": "application/octet-stream"},
        )
        reference = data.get("transitionHash") if isinstance(data, dict) else None
        if not reference:
            raise NetworkFailure("Broadcast response has no transitionHash", diagnostic=str(data))
        logger.debug(f"Broadcast accepted: {reference}")
        return reference
