"""
Chain Client Data Models - Normalized RPC results.

RPC responses are converted into these dataclasses at the client boundary
so callers never handle raw JSON-RPC payloads.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ClientStatus(Enum):
    """Health status of a chain client."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class Commitment(Enum):
    """Cluster confirmation levels, weakest first."""
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

    @property
    def rank(self) -> int:
        return list(Commitment).index(self)

    def is_satisfied_by(self, status: Optional[str]) -> bool:
        """Check whether a reported confirmationStatus meets this level."""
        if status is None:
            return False
        try:
            reported = Commitment(status)
        except ValueError:
            return False
        return reported.rank >= self.rank


class Cluster(Enum):
    """Known Solana clusters."""
    DEVNET = "devnet"
    TESTNET = "testnet"
    MAINNET_BETA = "mainnet-beta"
    LOCALNET = "localnet"

    @property
    def default_rpc_url(self) -> str:
        return CLUSTER_URLS[self]

    @property
    def supports_airdrop(self) -> bool:
        return self is not Cluster.MAINNET_BETA


CLUSTER_URLS = {
    Cluster.DEVNET: "https://api.devnet.solana.com",
    Cluster.TESTNET: "https://api.testnet.solana.com",
    Cluster.MAINNET_BETA: "https://api.mainnet-beta.solana.com",
    Cluster.LOCALNET: "http://127.0.0.1:8899",
}

LAMPORTS_PER_SOL = 1_000_000_000

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
MEMO_PROGRAM_V1_ID = "Memo1UhkJRfHyvLMcVucJwxXeuD728EqVDDwQDxFMNo"
MEMO_PROGRAM_V2_ID = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"


def block_time_to_datetime(block_time: Optional[int]) -> Optional[datetime]:
    """Convert a unix block time to an aware UTC datetime."""
    if block_time is None:
        return None
    return datetime.fromtimestamp(block_time, tz=timezone.utc)


@dataclass(frozen=True)
class BlockhashInfo:
    """Result of getLatestBlockhash."""
    blockhash: str
    last_valid_block_height: int


@dataclass(frozen=True)
class AccountInfo:
    """Normalized getAccountInfo value."""
    lamports: int
    owner: str
    data: bytes
    executable: bool = False
    rent_epoch: Optional[int] = None

    @property
    def space(self) -> int:
        return len(self.data)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "lamports": self.lamports,
            "owner": self.owner,
            "space": self.space,
            "executable": self.executable,
            "rent_epoch": self.rent_epoch,
        }


@dataclass(frozen=True)
class SignatureInfo:
    """One entry of getSignaturesForAddress."""
    signature: str
    slot: int
    block_time: Optional[int] = None
    err: Optional[Any] = None
    memo: Optional[str] = None
    confirmation_status: Optional[str] = None

    @property
    def timestamp(self) -> Optional[datetime]:
        return block_time_to_datetime(self.block_time)

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "SignatureInfo":
        """Create from an RPC result entry."""
        return cls(
            signature=data["signature"],
            slot=data.get("slot", 0),
            block_time=data.get("blockTime"),
            err=data.get("err"),
            memo=data.get("memo"),
            confirmation_status=data.get("confirmationStatus"),
        )


@dataclass(frozen=True)
class SignatureStatus:
    """One entry of getSignatureStatuses."""
    slot: int
    confirmations: Optional[int] = None
    err: Optional[Any] = None
    confirmation_status: Optional[str] = None

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "SignatureStatus":
        """Create from an RPC result entry."""
        return cls(
            slot=data.get("slot", 0),
            confirmations=data.get("confirmations"),
            err=data.get("err"),
            confirmation_status=data.get("confirmationStatus"),
        )


@dataclass(frozen=True)
class TransactionRecord:
    """The parts of getTransaction the storage layer reads."""
    signature: str
    slot: int
    block_time: Optional[int] = None
    log_messages: list[str] = field(default_factory=list)
    err: Optional[Any] = None

    @property
    def timestamp(self) -> Optional[datetime]:
        return block_time_to_datetime(self.block_time)

    @classmethod
    def from_rpc(cls, signature: str, data: dict[str, Any]) -> "TransactionRecord":
        """Create from a getTransaction result."""
        meta = data.get("meta") or {}
        return cls(
            signature=signature,
            slot=data.get("slot", 0),
            block_time=data.get("blockTime"),
            log_messages=list(meta.get("logMessages") or []),
            err=meta.get("err"),
        )


@dataclass
class ClientHealth:
    """Health status of a chain client."""
    status: ClientStatus
    last_check: datetime
    latency_ms: Optional[float] = None
    error_count: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    consecutive_failures: int = 0
    requests_total: int = 0

    def is_healthy(self) -> bool:
        return self.status == ClientStatus.HEALTHY

    def is_usable(self) -> bool:
        return self.status in (ClientStatus.HEALTHY, ClientStatus.DEGRADED)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "latency_ms": self.latency_ms,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "consecutive_failures": self.consecutive_failures,
            "requests_total": self.requests_total,
        }
