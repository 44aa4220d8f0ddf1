#!/usr/bin/env python3
"""
Ara Vault CLI

Usage:
    ara-vault serve --port 8000              # Run the local devnet
    ara-vault keygen                         # New signer key and address
    ara-vault uri dash://abc123              # Parse a storage URI
    ara-vault store 42 "remember this"       # Encrypt and store a memory
    ara-vault retrieve 42                    # Decrypt the latest version
    ara-vault history 42                     # List stored versions

store/retrieve/history read the signer key from ARA_VAULT_SIGNER_KEY and the
agent secret from ARA_VAULT_AGENT_KEY (both hex). Network settings come from
the ARA_VAULT_* environment variables or --config.
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from .config import VaultConfig, configure_logging
from .errors import VaultError
from .ledger.signer import Ed25519Signer
from .storage.uri import parse_storage_uri


def _load_config(args) -> VaultConfig:
    config = VaultConfig.from_file(args.config) if args.config else VaultConfig.from_env()
    if args.url:
        config.network.gateway_url = args.url
        config.network.dapi_addresses = [args.url]
    return config


def _require_env(name: str) -> bytes:
    value = os.getenv(name)
    if not value:
        raise SystemExit(f"{name} is not set")
    try:
        return bytes.fromhex(value.removeprefix("0x"))
    except ValueError:
        raise SystemExit(f"{name} must be hex")


async def _run_vault_command(args, config: VaultConfig, signer, agent_key: bytes) -> int:
    from .api.gateway import IdentityGateway
    from .client import MemoryVaultClient
    from .session import establish_session

    async with IdentityGateway(config.network.gateway_url, timeout=config.http.timeout_seconds) as gateway:
        session = await establish_session(gateway, signer)

    client = MemoryVaultClient.for_ledger(config, session)
    try:
        if args.command == "store":
            result = await client.store_memory(
                session, args.token_id, args.wallet or session.address, args.content, agent_key
            )
            print(json.dumps({
                "storageUri": result.storage_uri,
                "version": result.version,
                "transitionHash": result.transition_hash,
            }, indent=2))
        elif args.command == "retrieve":
            memory = await client.retrieve_memory(session, args.token_id, agent_key)
            if memory is None:
                print(f"No memory stored for token {args.token_id}")
                return 1
            print(f"[v{memory.version}] {memory.content}")
        elif args.command == "history":
            for record in await client.memory_history(session, args.token_id):
                print(f"v{record.version}  {record.timestamp}  {record.integrity_hash[:16]}  "
                      f"{record.size_bytes} bytes")
    finally:
        await client.close(session)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="ara-vault",
        description="Ara Vault - encrypted, versioned agent memory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="JSON or YAML config file")
    parser.add_argument("--url", help="Use one URL for gateway and ledger (e.g. a local devnet)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the local devnet server")
    serve.add_argument("--host", default="127.0.0.1", help="Host to bind")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind")
    serve.add_argument("--db", type=Path, default=None, help="SQLite file (default: in-memory)")

    sub.add_parser("keygen", help="Generate a signer key")

    uri = sub.add_parser("uri", help="Parse a storage URI")
    uri.add_argument("uri")

    store = sub.add_parser("store", help="Encrypt and store a memory")
    store.add_argument("token_id")
    store.add_argument("content")
    store.add_argument("--wallet", default=None, help="Agent wallet (default: signer address)")

    retrieve = sub.add_parser("retrieve", help="Decrypt the latest memory")
    retrieve.add_argument("token_id")

    history = sub.add_parser("history", help="List stored versions")
    history.add_argument("token_id")

    args = parser.parse_args(argv)
    config = _load_config(args)
    configure_logging(args.log_level or config.log_level)

    if args.command == "serve":
        from .api.app import serve as serve_devnet
        serve_devnet(host=args.host, port=args.port, db_path=args.db)
        return 0

    if args.command == "keygen":
        signer = Ed25519Signer.generate()
        print(f"ARA_VAULT_SIGNER_KEY={signer.private_bytes().hex()}")
        print(f"address={signer.address}")
        return 0

    if args.command == "uri":
        try:
            parsed = parse_storage_uri(args.uri)
        except VaultError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        print(json.dumps({"scheme": parsed.scheme.value, "id": parsed.id}))
        return 0

    try:
        signer = Ed25519Signer.from_private_bytes(_require_env("ARA_VAULT_SIGNER_KEY"))
    except ValueError as e:
        raise SystemExit(f"ARA_VAULT_SIGNER_KEY: {e}")
    agent_key = _require_env("ARA_VAULT_AGENT_KEY")

    try:
        return asyncio.run(_run_vault_command(args, config, signer, agent_key))
    except VaultError as e:
        print(f"Error ({e.kind}): {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
