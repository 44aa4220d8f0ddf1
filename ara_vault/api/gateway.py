"""
Identity Gateway Client
========================

Maps an external wallet address to a ledger identity and storage quota.

Endpoints:
- POST /identity/link          {ethAddress, ethSignature, publicKey}
- GET  /storage/quota/{address}
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import NetworkFailure
from ..http import HttpCollaborator

logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models
# =============================================================================

class IdentityLinkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    eth_address: str = Field(alias="ethAddress")
    eth_signature: str = Field(alias="ethSignature")  # hex
    public_key: str = Field(alias="publicKey")  # hex


class IdentityLink(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    identity_id: str = Field(alias="identityId")
    recovery_credential: str = Field(alias="recoveryCredential")
    credits: int = 0


class StorageQuota(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    credits: int
    max_credits: int = Field(alias="maxCredits")


# =============================================================================
# Gateway
# =============================================================================

class IdentityGateway(HttpCollaborator):
    """HTTP client for the identity gateway."""

    async def link_identity(
        self,
        eth_address: str,
        eth_signature: bytes,
        public_key: bytes,
    ) -> IdentityLink:
        request = IdentityLinkRequest(
            eth_address=eth_address,
            eth_signature=eth_signature.hex(),
            public_key=public_key.hex(),
        )
        data = await self.json("POST", "/identity/link", json=request.model_dump(by_alias=True))
        link = self._parse(IdentityLink, data, "identity link")
        logger.info(f"Linked {eth_address} to identity {link.identity_id} ({link.credits} credits)")
        return link

    async def get_quota(self, address: str) -> StorageQuota:
        data = await self.json("GET", f"/storage/quota/{address}")
        return self._parse(StorageQuota, data, "storage quota")

    @staticmethod
    def _parse(model, data, what: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise NetworkFailure(f"Gateway returned an invalid {what} body", diagnostic=str(data)) from e
