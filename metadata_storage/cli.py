"""
Metadata Storage - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for storing and retrieving metadata.

- Provides argparse-based CLI
- Loads configuration from environment, then CLI flags
- Runs the web API (serve)

============================================================
USAGE
============================================================
solana-metadata store --content "hello"
solana-metadata store --file data.json --type json
solana-metadata retrieve <ACCOUNT_ADDRESS>
solana-metadata --dry-run store --content "offline test"
solana-metadata serve --port 8080

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from aiohttp import web

from chain_client import (
    LAMPORTS_PER_SOL,
    BaseChainClient,
    ChainClientError,
    Cluster,
    ConfigurationError,
    InMemoryChainClient,
    create_client,
)
from metadata_storage.api import create_storage_app
from metadata_storage.config import StorageConfig
from metadata_storage.errors import (
    MetadataStorageError,
    ValidationError,
    WalletUnavailableError,
    map_error,
)
from metadata_storage.logging_config import setup_logging
from metadata_storage.models import MetadataFormData
from metadata_storage.service import MetadataStorageService
from metadata_storage.session import StorageSession, format_content
from metadata_storage.validation import parse_content_type, validate_address
from wallet import KeypairWallet, WalletAdapter, WalletError, discover_wallet
from wallet.keypair_wallet import ApprovalCallback


logger = logging.getLogger(__name__)


DRY_RUN_FUNDING_LAMPORTS = 10 * LAMPORTS_PER_SOL

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="solana-metadata",
        description="Store and retrieve small metadata records on Solana",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  store     - Create a storage account and write the payload as a memo
  retrieve  - Recover a payload from its storage account address
  wallet    - Show the wallet address and balance
  airdrop   - Request devnet/testnet SOL for the wallet
  serve     - Run the HTTP API

Examples:
  %(prog)s store --content "hello world"
  %(prog)s store --file meta.json --type json --repair-attempts 2
  %(prog)s retrieve 9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin
  %(prog)s --dry-run store --content "offline"
        """
    )

    # --------------------------------------------------------
    # Network Options
    # --------------------------------------------------------
    network_group = parser.add_argument_group("Network Options")

    network_group.add_argument(
        "--cluster",
        type=str,
        choices=[c.value for c in Cluster],
        help="Target cluster (default: $SOLANA_CLUSTER or devnet)",
    )

    network_group.add_argument(
        "--rpc-url",
        type=str,
        metavar="URL",
        help="RPC endpoint (default: cluster default)",
    )

    network_group.add_argument(
        "--dry-run",
        action="store_true",
        help="Use an in-memory ledger instead of a cluster",
    )

    # --------------------------------------------------------
    # Wallet Options
    # --------------------------------------------------------
    wallet_group = parser.add_argument_group("Wallet Options")

    wallet_group.add_argument(
        "--keypair",
        type=str,
        metavar="PATH",
        help="Keypair file (default: $SOLANA_KEYPAIR_PATH or ~/.config/solana/id.json)",
    )

    wallet_group.add_argument(
        "--require-approval",
        action="store_true",
        help="Ask before connecting the wallet and before each signature",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Logging format (default: $LOG_FORMAT or text)",
    )

    parser.add_argument(
        "--output",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Result output format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    # --------------------------------------------------------
    # Commands
    # --------------------------------------------------------
    commands = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    store = commands.add_parser("store", help="Store a payload")
    source = store.add_mutually_exclusive_group(required=True)
    source.add_argument("--content", type=str, help="Payload text")
    source.add_argument("--file", type=str, metavar="PATH", help="Read payload from a file")
    store.add_argument(
        "--type",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Content type (default: text)",
    )
    store.add_argument(
        "--repair-attempts",
        type=int,
        default=1,
        metavar="N",
        help="Memo retries after a half-finished store (default: 1)",
    )
    store.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Do not ask for approval even with --require-approval",
    )

    retrieve = commands.add_parser("retrieve", help="Retrieve a payload")
    retrieve.add_argument("address", type=str, help="Storage account address")
    retrieve.add_argument(
        "--history-limit",
        type=int,
        metavar="N",
        help="Signatures per history page (default: 20)",
    )
    retrieve.add_argument(
        "--max-pages",
        type=int,
        metavar="N",
        help="History pages to scan (default: 1)",
    )

    commands.add_parser("wallet", help="Show wallet address and balance")

    airdrop = commands.add_parser("airdrop", help="Request SOL on devnet/testnet")
    airdrop.add_argument(
        "--sol",
        type=float,
        default=1.0,
        help="Amount in SOL (default: 1)",
    )

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Bind address")
    serve.add_argument("--port", type=int, default=8080, help="Port (default: 8080)")
    serve.add_argument(
        "--repair-attempts",
        type=int,
        default=0,
        metavar="N",
        help="Memo retries after a half-finished store (default: 0)",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Returns:
        List of validation errors
    """
    errors = []

    if getattr(args, "repair_attempts", 0) < 0:
        errors.append("--repair-attempts must not be negative")

    if args.command == "retrieve":
        if args.history_limit is not None and not 1 <= args.history_limit <= 1000:
            errors.append("--history-limit must be between 1 and 1000")
        if args.max_pages is not None and args.max_pages < 1:
            errors.append("--max-pages must be at least 1")

    if args.command == "airdrop" and args.sol <= 0:
        errors.append("--sol must be positive")

    if args.command == "serve" and not 0 < args.port < 65536:
        errors.append("--port must be between 1 and 65535")

    return errors


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> StorageConfig:
    """
    Environment configuration, overridden by CLI flags.

    Raises:
        ConfigurationError: If a value is invalid
    """
    config = StorageConfig.from_env()

    if args.cluster:
        config.network.cluster = Cluster(args.cluster)
    if args.rpc_url:
        config.network.rpc_url = args.rpc_url
    if args.keypair:
        config.wallet.keypair_path = args.keypair
    if args.require_approval:
        config.wallet.require_approval = True
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format
    config.dry_run = args.dry_run

    if args.command == "retrieve":
        if args.history_limit is not None:
            config.retrieval.history_limit = args.history_limit
        if args.max_pages is not None:
            config.retrieval.history_max_pages = args.max_pages

    config.validate()
    return config


def prompt_approval(action: str, detail: str) -> bool:
    """Ask on the terminal; anything but y/yes declines."""
    answer = input(f"Approve wallet {action} ({detail})? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


async def _approve_in_thread(action: str, detail: str) -> bool:
    return await asyncio.to_thread(prompt_approval, action, detail)


def approval_callback(args: argparse.Namespace, config: StorageConfig) -> Optional[ApprovalCallback]:
    if not config.wallet.require_approval or getattr(args, "yes", False):
        return None
    return _approve_in_thread


async def build_components(
    config: StorageConfig,
    approve: Optional[ApprovalCallback] = None,
) -> tuple[BaseChainClient, Optional[WalletAdapter]]:
    """
    Create the chain client and discover the wallet.

    In dry-run mode the wallet falls back to an ephemeral keypair,
    is connected up front and funded on the in-memory ledger.
    """
    client = create_client(config.network.to_client_config(config.dry_run))
    wallet = discover_wallet(config.wallet.keypair_path, approve)

    if config.dry_run:
        if wallet is None:
            wallet = KeypairWallet.ephemeral(approve)
            logger.info("Dry run: using an ephemeral wallet")
        payer = await wallet.connect()
        if isinstance(client, InMemoryChainClient):
            client.fund(str(payer), DRY_RUN_FUNDING_LAMPORTS)

    return client, wallet


async def connect(wallet: Optional[WalletAdapter]) -> WalletAdapter:
    if wallet is None:
        raise WalletUnavailableError("Wallet not found. Configure a keypair file.")
    await wallet.connect()
    return wallet


# ============================================================
# OUTPUT
# ============================================================

def emit(args: argparse.Namespace, data: dict, lines: List[str]) -> None:
    if args.output == "json":
        print(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        print("\n".join(lines))


# ============================================================
# COMMANDS
# ============================================================

def read_content(args: argparse.Namespace) -> str:
    if args.content is not None:
        return args.content
    try:
        return Path(args.file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ValidationError(f"Cannot read {args.file} as UTF-8 text", e)


async def cmd_store(args: argparse.Namespace, config: StorageConfig) -> int:
    form = MetadataFormData(
        content=read_content(args),
        content_type=parse_content_type(args.type),
    )
    client, wallet = await build_components(config, approval_callback(args, config))
    async with client:
        await connect(wallet)
        service = MetadataStorageService(client, wallet, config)
        result = await service.store_with_repair(form, args.repair_attempts)

    emit(args, result.to_dict(), [
        "Metadata stored successfully!",
        f"  Account:     {result.account_address}",
        f"  Transaction: {result.transaction_signature}",
        f"  Memo:        {result.memo_signature}",
    ])
    return EXIT_OK


async def cmd_retrieve(args: argparse.Namespace, config: StorageConfig) -> int:
    address = str(validate_address(args.address))
    client = create_client(config.network.to_client_config(config.dry_run))
    async with client:
        service = MetadataStorageService(client, None, config)
        record = await service.retrieve(address)

    emit(args, record.to_dict(), [
        "Metadata retrieved successfully!",
        f"  Account:     {record.account_address}",
        f"  Transaction: {record.transaction_signature}",
        f"  Timestamp:   {record.timestamp.isoformat()}",
        "  Content:",
        format_content(record.content),
    ])
    return EXIT_OK


async def cmd_wallet(args: argparse.Namespace, config: StorageConfig) -> int:
    client, wallet = await build_components(config, approval_callback(args, config))
    async with client:
        wallet = await connect(wallet)
        address = str(wallet.public_key)
        lamports = await client.get_balance(address)

    emit(args, {
        "address": address,
        "lamports": lamports,
        "cluster": config.network.cluster.value,
    }, [
        f"Address: {address}",
        f"Balance: {lamports / LAMPORTS_PER_SOL:.9f} SOL ({config.network.cluster.value})",
    ])
    return EXIT_OK


async def cmd_airdrop(args: argparse.Namespace, config: StorageConfig) -> int:
    lamports = int(args.sol * LAMPORTS_PER_SOL)
    client, wallet = await build_components(config, approval_callback(args, config))
    async with client:
        wallet = await connect(wallet)
        address = str(wallet.public_key)
        signature = await client.request_airdrop(address, lamports)
        await client.confirm_transaction(signature)
        balance = await client.get_balance(address)

    emit(args, {"address": address, "signature": signature, "lamports": balance}, [
        f"Airdropped {args.sol} SOL to {address}",
        f"  Signature: {signature}",
        f"  Balance:   {balance / LAMPORTS_PER_SOL:.9f} SOL",
    ])
    return EXIT_OK


def cmd_serve(args: argparse.Namespace, config: StorageConfig) -> int:
    async def app_factory() -> web.Application:
        client, wallet = await build_components(config)
        service = MetadataStorageService(client, wallet, config)
        session = StorageSession(service, repair_attempts=args.repair_attempts)
        session.restore_wallet()
        return create_storage_app(session)

    logger.info(f"Serving metadata storage API on http://{args.host}:{args.port}")
    web.run_app(app_factory(), host=args.host, port=args.port, print=None)
    return EXIT_OK


COMMANDS = {
    "store": cmd_store,
    "retrieve": cmd_retrieve,
    "wallet": cmd_wallet,
    "airdrop": cmd_airdrop,
}


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace, config: StorageConfig) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    try:
        return await COMMANDS[args.command](args, config)
    except MetadataStorageError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        logger.debug(f"{e.__class__.__name__}: {e.to_dict()}")
        return EXIT_FAILED
    except (ChainClientError, WalletError) as e:
        error = map_error(e, args.command)
        print(f"Error: {error.message}", file=sys.stderr)
        return EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return EXIT_USAGE

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(config.log_level, config.log_format, stream=sys.stderr)

    if args.command == "store" and args.file is not None and not Path(args.file).is_file():
        print(f"Error: file not found: {args.file}", file=sys.stderr)
        return EXIT_USAGE

    try:
        if args.command == "serve":
            return cmd_serve(args, config)
        return asyncio.run(async_main(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
