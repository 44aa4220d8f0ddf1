"""
Vault Configuration

Central configuration for the vault client, devnet server and CLI.
Supports environment variables, config files (JSON or YAML), and runtime overrides.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

DEFAULT_DOCUMENT_TYPE = "ainftStorage.storage"

GATEWAY_URLS = {
    "testnet": "https://testnet-api.peg.gg",
    "mainnet": "https://api.peg.gg",
}

DAPI_ENDPOINTS = {
    "testnet": [
        "https://seed-1.testnet.networks.dash.org:1443",
        "https://seed-2.testnet.networks.dash.org:1443",
        "https://seed-3.testnet.networks.dash.org:1443",
    ],
    "mainnet": [
        "https://seed-1.mainnet.networks.dash.org:1443",
        "https://seed-2.mainnet.networks.dash.org:1443",
        "https://seed-3.mainnet.networks.dash.org:1443",
    ],
}

CONTRACT_IDS = {
    "testnet": "TBD_TESTNET_CONTRACT_ID",
    "mainnet": "TBD_MAINNET_CONTRACT_ID",
}


@dataclass
class NetworkConfig:
    """Which ledger network and gateway to talk to."""
    network: str = "testnet"
    gateway_url: str = GATEWAY_URLS["testnet"]
    dapi_addresses: List[str] = field(default_factory=lambda: list(DAPI_ENDPOINTS["testnet"]))
    data_contract_id: str = CONTRACT_IDS["testnet"]
    document_type: str = DEFAULT_DOCUMENT_TYPE

    @property
    def broadcast_url(self) -> str:
        return self.dapi_addresses[0] if self.dapi_addresses else self.gateway_url


@dataclass
class HttpConfig:
    """HTTP client settings."""
    timeout_seconds: float = 30.0


@dataclass
class VaultConfig:
    """Top-level vault configuration."""
    network: NetworkConfig = field(default_factory=NetworkConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    db_path: Path = field(default_factory=lambda: Path("data/vault.sqlite"))

    # Runtime
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def for_network(cls, network: str = "testnet") -> "VaultConfig":
        """Default configuration for testnet or mainnet."""
        if network not in GATEWAY_URLS:
            raise ValueError(f"Unknown network: {network}")
        return cls(
            network=NetworkConfig(
                network=network,
                gateway_url=GATEWAY_URLS[network],
                dapi_addresses=list(DAPI_ENDPOINTS[network]),
                data_contract_id=CONTRACT_IDS[network],
            ),
        )

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Load configuration from environment variables."""
        config = cls.for_network(os.getenv("ARA_VAULT_NETWORK", "testnet"))

        if gateway := os.getenv("ARA_VAULT_GATEWAY_URL"):
            config.network.gateway_url = gateway
        if dapi := os.getenv("ARA_VAULT_DAPI_ADDRESSES"):
            config.network.dapi_addresses = [a.strip() for a in dapi.split(",") if a.strip()]
        if contract := os.getenv("ARA_VAULT_CONTRACT_ID"):
            config.network.data_contract_id = contract
        if timeout := os.getenv("ARA_VAULT_TIMEOUT"):
            config.http.timeout_seconds = float(timeout)
        if db := os.getenv("ARA_VAULT_DB"):
            config.db_path = Path(db)

        config.debug = os.getenv("ARA_VAULT_DEBUG", "").lower() in ("1", "true", "yes")
        config.log_level = os.getenv("ARA_VAULT_LOG_LEVEL", "INFO")

        return config

    @classmethod
    def from_file(cls, path: Path) -> "VaultConfig":
        """Load configuration from a JSON or YAML file."""
        if not path.exists():
            return cls()

        text = path.read_text()
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)

        config = cls.for_network(data.get("network", {}).get("network", "testnet"))

        for k, v in data.get("network", {}).items():
            setattr(config.network, k, v)

        for k, v in data.get("http", {}).items():
            setattr(config.http, k, v)

        if "db_path" in data:
            config.db_path = Path(data["db_path"])

        config.debug = data.get("debug", False)
        config.log_level = data.get("log_level", "INFO")

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "network": {
                "network": self.network.network,
                "gateway_url": self.network.gateway_url,
                "dapi_addresses": list(self.network.dapi_addresses),
                "data_contract_id": self.network.data_contract_id,
                "document_type": self.network.document_type,
            },
            "http": {
                "timeout_seconds": self.http.timeout_seconds,
            },
            "db_path": str(self.db_path),
            "debug": self.debug,
            "log_level": self.log_level,
        }


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for CLI and server entry points."""
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
