"""
Tests for vault configuration and the command line entry point.
"""

import json
from pathlib import Path

import pytest
import yaml

from ara_vault.cli import main
from ara_vault.config import DEFAULT_DOCUMENT_TYPE, GATEWAY_URLS, VaultConfig
from ara_vault.ledger import Ed25519Signer


class TestVaultConfig:

    def test_defaults_are_testnet(self):
        config = VaultConfig()
        assert config.network.network == "testnet"
        assert config.network.gateway_url == GATEWAY_URLS["testnet"]
        assert config.network.document_type == DEFAULT_DOCUMENT_TYPE
        assert config.http.timeout_seconds == 30.0

    def test_for_network_mainnet(self):
        config = VaultConfig.for_network("mainnet")
        assert config.network.gateway_url == "https://api.peg.gg"
        assert config.network.broadcast_url == config.network.dapi_addresses[0]
        assert all(":1443" in address for address in config.network.dapi_addresses)

    def test_unknown_network(self):
        with pytest.raises(ValueError):
            VaultConfig.for_network("regtest")

    def test_broadcast_url_falls_back_to_gateway(self):
        config = VaultConfig()
        config.network.dapi_addresses = []
        assert config.network.broadcast_url == config.network.gateway_url

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ARA_VAULT_NETWORK", "mainnet")
        monkeypatch.setenv("ARA_VAULT_GATEWAY_URL", "http://localhost:9000")
        monkeypatch.setenv("ARA_VAULT_DAPI_ADDRESSES", "http://a:1, http://b:2 ,")
        monkeypatch.setenv("ARA_VAULT_CONTRACT_ID", "contract-9")
        monkeypatch.setenv("ARA_VAULT_TIMEOUT", "2.5")
        monkeypatch.setenv("ARA_VAULT_DEBUG", "true")
        monkeypatch.setenv("ARA_VAULT_LOG_LEVEL", "DEBUG")

        config = VaultConfig.from_env()

        assert config.network.network == "mainnet"
        assert config.network.gateway_url == "http://localhost:9000"
        assert config.network.dapi_addresses == ["http://a:1", "http://b:2"]
        assert config.network.data_contract_id == "contract-9"
        assert config.http.timeout_seconds == 2.5
        assert config.debug is True
        assert config.log_level == "DEBUG"

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "vault.yaml"
        path.write_text(yaml.safe_dump({
            "network": {"network": "mainnet", "data_contract_id": "contract-y"},
            "http": {"timeout_seconds": 5},
            "db_path": "/tmp/vault.sqlite",
            "log_level": "WARNING",
        }))

        config = VaultConfig.from_file(path)

        assert config.network.gateway_url == GATEWAY_URLS["mainnet"]
        assert config.network.data_contract_id == "contract-y"
        assert config.http.timeout_seconds == 5
        assert config.db_path == Path("/tmp/vault.sqlite")
        assert config.log_level == "WARNING"

    def test_json_round_trip(self, tmp_path):
        original = VaultConfig.for_network("mainnet")
        original.network.gateway_url = "http://gw"
        original.debug = True

        path = tmp_path / "vault.json"
        path.write_text(json.dumps(original.to_dict()))

        assert VaultConfig.from_file(path).to_dict() == original.to_dict()

    def test_missing_file_gives_defaults(self, tmp_path):
        assert VaultConfig.from_file(tmp_path / "absent.json").to_dict() == VaultConfig().to_dict()


class TestCLI:

    def test_uri(self, capsys):
        assert main(["uri", "ipfs://QmHash"]) == 0
        assert json.loads(capsys.readouterr().out) == {"scheme": "ipfs", "id": "QmHash"}

    def test_bad_uri(self, capsys):
        assert main(["uri", "ftp://nope"]) == 2
        assert "Unknown storage URI scheme" in capsys.readouterr().err

    def test_keygen(self, capsys):
        assert main(["keygen"]) == 0
        lines = dict(line.split("=", 1) for line in capsys.readouterr().out.strip().splitlines())

        signer = Ed25519Signer.from_hex(lines["ARA_VAULT_SIGNER_KEY"])
        assert signer.address == lines["address"]

    def test_store_requires_keys(self, monkeypatch):
        monkeypatch.delenv("ARA_VAULT_SIGNER_KEY", raising=False)
        with pytest.raises(SystemExit):
            main(["--url", "http://127.0.0.1:1", "store", "42", "hello"])
