# Copyright (c) 2025 The Salvium Guardian developers
# Distributed under the MIT software license

"""
Salvium Guardian CLI - server entry point and manual intervention tool.

Usage:
  salvium-guardian serve                    - Run the guardian HTTP server
  salvium-guardian status                   - Show running guardian health
  salvium-guardian bounties                 - List all bounties
  salvium-guardian bounty <id>              - Show bounty details
  salvium-guardian sign-refund <id>         - Restore bounty wallet for manual refund
  salvium-guardian export-bounty-seed <id>  - Export bounty wallet seed

The read commands work on the data file directly, so they also work while
the server is down.
"""

import argparse
import json
import logging
import sys

import httpx

from .config import Config
from .logs import setup_logging
from .store import BountyStore
from .wallet_rpc import RPCError, WalletRPCClient

log = logging.getLogger("guardian.cli")


def load_records(config: Config) -> dict:
    return BountyStore(config.bounty_file).load()


def rpc_client(config: Config) -> WalletRPCClient:
    return WalletRPCClient(
        config.wallet_rpc_url,
        user=config.wallet_rpc_user,
        password=config.wallet_rpc_password,
        timeout=config.rpc_timeout,
    )


def cmd_serve(config: Config) -> int:
    import uvicorn

    from .service import GuardianService
    from .server import create_app
    from .wallet_rpc import WalletRPCEngine

    engine = WalletRPCEngine(rpc_client(config), password=config.wallet_password,
                             language=config.wallet_language)
    service = GuardianService(engine, BountyStore(config.bounty_file),
                              pending_ttl=config.pending_ttl,
                              sweep_interval=config.sweep_interval)
    log.info(f"Salvium Guardian on {config.host}:{config.port} ({config.network})")
    log.info(f"Data: {config.bounty_file}, wallet RPC: {config.wallet_rpc_url}")
    uvicorn.run(create_app(service), host=config.host, port=config.port,
                log_config=None)
    return 0


def cmd_status(config: Config, url: str) -> int:
    try:
        resp = httpx.get(f"{url.rstrip('/')}/health", timeout=10)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        print(f"Guardian not reachable at {url}: {e}", file=sys.stderr)
        return 1

    health = resp.json()
    print("=== Guardian Status ===")
    print(f"Initialized:        {health.get('initialized')}")
    print(f"Pending escrows:    {health.get('pending_escrows')}")
    print(f"Completed bounties: {health.get('completed_bounties')}")
    return 0


def cmd_bounties(config: Config) -> int:
    records = load_records(config)
    if not records:
        print("No bounties registered.")
        return 0

    print("=== Bounties ===\n")
    for escrow_id, rec in records.items():
        print(f"ID: {escrow_id}")
        print(f"  Deadline Block: {rec.deadline_block}")
        print(f"  Address: {rec.multisig_address or 'pending'}")
        print(f"  Ready: {rec.is_ready}")
        print(f"  Created: {rec.created_at}")
        print("")
    return 0


def cmd_bounty(config: Config, escrow_id: str) -> int:
    rec = load_records(config).get(escrow_id)
    if rec is None:
        print(f"Bounty {escrow_id} not found.", file=sys.stderr)
        return 1

    print("=== Bounty Details ===\n")
    print(json.dumps(rec.summary(), indent=2))
    return 0


def cmd_export_bounty_seed(config: Config, escrow_id: str) -> int:
    rec = load_records(config).get(escrow_id)
    if rec is None:
        print(f"Bounty {escrow_id} not found.", file=sys.stderr)
        return 1

    print(f"=== Bounty {escrow_id} Seed ===")
    print("")
    print("WARNING: Keep this secret! Anyone with this seed can restore")
    print("the guardian's share of the escrow wallet.")
    print("")
    print(rec.recovery_seed)
    return 0


def cmd_sign_refund(config: Config, escrow_id: str) -> int:
    """
    Manual refund: restore the bounty wallet from its seed on the wallet RPC
    daemon so an operator can sign. The deadline is NOT checked here.
    """
    rec = load_records(config).get(escrow_id)
    if rec is None:
        print(f"Bounty {escrow_id} not found.", file=sys.stderr)
        return 1
    if not rec.is_ready:
        print("Bounty multisig not fully set up.", file=sys.stderr)
        return 1

    filename = f"recovery-{escrow_id}"
    print(f"Restoring bounty wallet as {filename}...")
    try:
        restored = rpc_client(config).call("restore_deterministic_wallet", {
            "filename": filename,
            "seed": rec.recovery_seed,
            "password": config.wallet_password,
            "language": config.wallet_language,
            "restore_height": 0,
        })
    except RPCError as e:
        print(f"Failed to restore wallet: {e.message}", file=sys.stderr)
        return 1

    print("Wallet restored.")
    print(f"Address: {restored.get('address') or rec.multisig_address}")
    print("")
    print("To complete manual signing:")
    print("1. Get the unsigned transaction from the bounty server")
    print(f"2. Open wallet {filename} and call sign_multisig with the tx data")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Salvium Guardian - bounty escrow 3rd party")
    parser.add_argument("--data-dir", help="Directory holding bounties.json (env DATA_DIR)")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Log level (env LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Run the guardian HTTP server")
    serve_parser.add_argument("--host", help="Bind address (env HOST)")
    serve_parser.add_argument("--port", type=int, help="HTTP port (env PORT)")
    serve_parser.add_argument("--wallet-rpc-url", help="Wallet RPC endpoint (env WALLET_RPC_URL)")

    status_parser = subparsers.add_parser("status", help="Show running guardian health")
    status_parser.add_argument("--url", default="http://localhost:3012",
                               help="Guardian base URL")

    subparsers.add_parser("bounties", help="List all bounties")

    bounty_parser = subparsers.add_parser("bounty", help="Show bounty details")
    bounty_parser.add_argument("bounty_id")

    refund_parser = subparsers.add_parser("sign-refund",
                                          help="Restore a bounty wallet for manual refund signing")
    refund_parser.add_argument("bounty_id")
    refund_parser.add_argument("--wallet-rpc-url", help="Wallet RPC endpoint (env WALLET_RPC_URL)")

    seed_parser = subparsers.add_parser("export-bounty-seed", help="Export bounty wallet seed")
    seed_parser.add_argument("bounty_id")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = Config.from_env()
    if args.data_dir:
        config.data_dir = args.data_dir
    if args.log_level:
        config.log_level = args.log_level

    if args.command == "serve":
        if args.host:
            config.host = args.host
        if args.port:
            config.port = args.port
        if args.wallet_rpc_url:
            config.wallet_rpc_url = args.wallet_rpc_url
        setup_logging(config.log_level)
        return cmd_serve(config)
    if args.command == "status":
        return cmd_status(config, args.url)
    if args.command == "bounties":
        return cmd_bounties(config)
    if args.command == "bounty":
        return cmd_bounty(config, args.bounty_id)
    if args.command == "sign-refund":
        if args.wallet_rpc_url:
            config.wallet_rpc_url = args.wallet_rpc_url
        return cmd_sign_refund(config, args.bounty_id)
    if args.command == "export-bounty-seed":
        return cmd_export_bounty_seed(config, args.bounty_id)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
