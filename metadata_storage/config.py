"""
Metadata Storage - Configuration.

============================================================
PURPOSE
============================================================
All configuration for storing and retrieving metadata.

Values come from dataclass defaults, overridden by environment
variables (a `.env` file is honoured) via StorageConfig.from_env().

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from chain_client import MEMO_PROGRAM_V2_ID, ClientConfig, Cluster, Commitment, ConfigurationError


# ============================================================
# NETWORK CONFIGURATION
# ============================================================

@dataclass
class NetworkConfig:
    """
    Cluster connection configuration.
    """

    cluster: Cluster = Cluster.DEVNET
    """Target cluster."""

    rpc_url: Optional[str] = None
    """RPC endpoint (None = cluster default)."""

    commitment: Commitment = Commitment.CONFIRMED
    """Commitment used for queries and confirmation waits."""

    request_timeout_seconds: float = 30.0
    """Timeout for a single RPC request."""

    confirm_timeout_seconds: float = 60.0
    """How long to wait for a transaction to confirm."""

    confirm_poll_interval_seconds: float = 0.5
    """Interval between signature status polls."""

    max_retries: int = 2
    """Attempts per request when the transport fails (at least one; RPC errors are never retried)."""

    def to_client_config(self, dry_run: bool = False) -> ClientConfig:
        return ClientConfig(
            cluster=self.cluster,
            rpc_url=self.rpc_url,
            commitment=self.commitment,
            request_timeout_seconds=self.request_timeout_seconds,
            confirm_timeout_seconds=self.confirm_timeout_seconds,
            confirm_poll_interval_seconds=self.confirm_poll_interval_seconds,
            max_retries=self.max_retries,
            dry_run=dry_run,
        )


# ============================================================
# RETRIEVAL CONFIGURATION
# ============================================================

@dataclass
class RetrievalConfig:
    """
    History scan configuration.
    """

    history_limit: int = 20
    """Signatures fetched per page."""

    history_max_pages: int = 1
    """Pages scanned before falling back to raw account data."""

    verify_record_address: bool = True
    """Skip records that embed a different account address."""


# ============================================================
# MEMO CONFIGURATION
# ============================================================

RECORD_FORMATS = ("framed", "legacy")


@dataclass
class MemoConfig:
    """
    Memo record configuration.
    """

    program_id: str = MEMO_PROGRAM_V2_ID
    """Memo program that receives the record."""

    record_format: str = "framed"
    """Record format written by store: framed or legacy."""

    reference_storage_account: bool = True
    """List the storage account on the memo instruction as a signer."""


# ============================================================
# WALLET CONFIGURATION
# ============================================================

@dataclass
class WalletConfig:
    """
    Wallet configuration.
    """

    keypair_path: Optional[str] = None
    """Keypair file (None = $SOLANA_KEYPAIR_PATH or ~/.config/solana/id.json)."""

    require_approval: bool = False
    """Ask before connecting and before each signature."""


# ============================================================
# MASTER CONFIGURATION
# ============================================================

@dataclass
class StorageConfig:
    """
    Master configuration for metadata storage.
    """

    network: NetworkConfig = field(default_factory=NetworkConfig)
    """Network configuration."""

    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    """Retrieval configuration."""

    memo: MemoConfig = field(default_factory=MemoConfig)
    """Memo configuration."""

    wallet: WalletConfig = field(default_factory=WalletConfig)
    """Wallet configuration."""

    dry_run: bool = False
    """Use the in-memory ledger instead of a cluster."""

    log_level: str = "INFO"
    """Root log level."""

    log_format: str = "text"
    """Log format: text or json."""

    def validate(self) -> None:
        """
        Check values that the dataclass types cannot express.

        Raises:
            ConfigurationError: On the first invalid value
        """
        if self.retrieval.history_limit < 1 or self.retrieval.history_limit > 1000:
            raise ConfigurationError(
                message=f"history_limit must be between 1 and 1000, got {self.retrieval.history_limit}",
                config_key="METADATA_HISTORY_LIMIT",
            )
        if self.retrieval.history_max_pages < 1:
            raise ConfigurationError(
                message=f"history_max_pages must be at least 1, got {self.retrieval.history_max_pages}",
                config_key="METADATA_HISTORY_MAX_PAGES",
            )
        if self.memo.record_format not in RECORD_FORMATS:
            raise ConfigurationError(
                message=f"record_format must be one of {', '.join(RECORD_FORMATS)}, got {self.memo.record_format}",
                config_key="METADATA_RECORD_FORMAT",
            )
        if self.log_format not in ("text", "json"):
            raise ConfigurationError(
                message=f"log_format must be text or json, got {self.log_format}",
                config_key="LOG_FORMAT",
            )

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """
        Create config from environment variables.

        Reads a `.env` file from the working directory (or a parent) first.
        """
        load_dotenv(find_dotenv(usecwd=True))

        try:
            network = NetworkConfig(
                cluster=Cluster(os.getenv("SOLANA_CLUSTER", Cluster.DEVNET.value)),
                rpc_url=os.getenv("SOLANA_RPC_URL") or None,
                commitment=Commitment(os.getenv("SOLANA_COMMITMENT", Commitment.CONFIRMED.value)),
            )
            retrieval = RetrievalConfig(
                history_limit=int(os.getenv("METADATA_HISTORY_LIMIT", "20")),
                history_max_pages=int(os.getenv("METADATA_HISTORY_MAX_PAGES", "1")),
            )
        except ValueError as e:
            raise ConfigurationError(
                message=f"Invalid configuration value: {e}",
                original_error=e,
            )

        config = cls(
            network=network,
            retrieval=retrieval,
            memo=MemoConfig(
                program_id=os.getenv("MEMO_PROGRAM_ID", MEMO_PROGRAM_V2_ID),
                record_format=os.getenv("METADATA_RECORD_FORMAT", "framed"),
            ),
            wallet=WalletConfig(
                keypair_path=os.getenv("SOLANA_KEYPAIR_PATH") or None,
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
        )
        config.validate()
        return config

    @classmethod
    def for_testing(cls) -> "StorageConfig":
        """Get configuration for testing."""
        return cls(
            network=NetworkConfig(
                cluster=Cluster.LOCALNET,
                confirm_timeout_seconds=5.0,
                confirm_poll_interval_seconds=0.01,
                max_retries=0,
            ),
            dry_run=True,
            log_level="DEBUG",
        )
