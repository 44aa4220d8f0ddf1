"""
Ara Vault API
==============

Identity gateway client, wrapper-flow authorization and the FastAPI devnet.
"""

from .gateway import IdentityGateway, IdentityLink, IdentityLinkRequest, StorageQuota
from .wrapper import NonceRegistry, StorageAuthorization, verify_authorization
from .app import create_app, serve

__all__ = [
    # Gateway
    "IdentityGateway",
    "IdentityLink",
    "IdentityLinkRequest",
    "StorageQuota",
    # Wrapper
    "NonceRegistry",
    "StorageAuthorization",
    "verify_authorization",
    # Devnet
    "create_app",
    "serve",
]
