"""
Ara Vault Test Configuration
=============================

Shared fixtures: a local signer, an agent secret, an in-memory record backend
and the FastAPI devnet reached through httpx's ASGI transport.
"""

import logging

import httpx
import pytest
import pytest_asyncio

from ara_vault.api.app import create_app
from ara_vault.config import NetworkConfig, VaultConfig
from ara_vault.ledger.signer import Ed25519Signer
from ara_vault.storage.backend import SQLiteRecordBackend
from ara_vault.storage.versioned_store import VersionedRecordStore

logger = logging.getLogger(__name__)

DEVNET_URL = "http://devnet"


# =============================================================================
# Keys
# =============================================================================

@pytest.fixture
def signer():
    """Deterministic wallet signer."""
    return Ed25519Signer.from_private_bytes(bytes(range(32)))


@pytest.fixture
def other_signer():
    return Ed25519Signer.from_private_bytes(bytes(range(100, 132)))


@pytest.fixture
def agent_key():
    """32-byte agent secret used as key material."""
    return bytes(range(32, 64))


# =============================================================================
# Storage
# =============================================================================

@pytest.fixture
def backend():
    backend = SQLiteRecordBackend()
    yield backend
    backend.close()


@pytest.fixture
def store(backend):
    return VersionedRecordStore(backend)


# =============================================================================
# Devnet
# =============================================================================

@pytest.fixture
def devnet_app():
    return create_app()


@pytest_asyncio.fixture
async def devnet_client(devnet_app):
    """httpx client wired straight into the devnet app."""
    transport = httpx.ASGITransport(app=devnet_app)
    async with httpx.AsyncClient(transport=transport, base_url=DEVNET_URL) as client:
        yield client


@pytest.fixture
def devnet_config():
    return VaultConfig(
        network=NetworkConfig(
            network="devnet",
            gateway_url=DEVNET_URL,
            dapi_addresses=[DEVNET_URL],
            data_contract_id="devnet-contract",
        ),
    )
