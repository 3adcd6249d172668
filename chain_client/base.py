"""
Base Chain Client - Abstract interface for the Solana network handle.

All clients MUST:
- Return normalized models, never raw JSON-RPC payloads
- Raise ChainClientError subclasses on failure
- Track their own health
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from chain_client.exceptions import (
    ChainClientError,
    ConfirmationTimeoutError,
    RateLimitError,
    TransactionFailedError,
)
from chain_client.models import (
    AccountInfo,
    BlockhashInfo,
    ClientHealth,
    ClientStatus,
    Commitment,
    SignatureInfo,
    SignatureStatus,
    TransactionRecord,
)


logger = logging.getLogger(__name__)


class BaseChainClient(ABC):
    """
    Abstract base class for chain clients.

    Each client must implement the RPC primitives below. Confirmation
    polling, health tracking and lifecycle are shared.
    """

    DEFAULT_CONFIRM_TIMEOUT = 60.0
    DEFAULT_POLL_INTERVAL = 0.5
    DEGRADED_THRESHOLD = 3
    UNAVAILABLE_THRESHOLD = 5

    def __init__(
        self,
        commitment: Commitment = Commitment.CONFIRMED,
        confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._commitment = commitment
        self._confirm_timeout = confirm_timeout
        self._poll_interval = poll_interval

        self._health = ClientHealth(
            status=ClientStatus.UNKNOWN,
            last_check=datetime.now(timezone.utc),
        )

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this client."""
        pass

    @property
    def commitment(self) -> Commitment:
        return self._commitment

    # ─────────────────────────────────────────────────────────────
    # RPC primitives
    # ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_minimum_balance_for_rent_exemption(
        self,
        space: int,
        commitment: Optional[Commitment] = None,
    ) -> int:
        """Lamports needed to make an account of `space` bytes rent exempt."""
        pass

    @abstractmethod
    async def get_latest_blockhash(
        self,
        commitment: Optional[Commitment] = None,
    ) -> BlockhashInfo:
        """Fetch a recent blockhash for the transaction validity window."""
        pass

    @abstractmethod
    async def send_raw_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
    ) -> str:
        """
        Submit a signed, serialized transaction.

        Returns:
            The transaction signature (base-58)
        """
        pass

    @abstractmethod
    async def get_signature_statuses(
        self,
        signatures: list[str],
    ) -> list[Optional[SignatureStatus]]:
        """Fetch the status of each signature, None where unknown."""
        pass

    @abstractmethod
    async def get_account_info(
        self,
        address: str,
        commitment: Optional[Commitment] = None,
    ) -> Optional[AccountInfo]:
        """Fetch account info, None if the account does not exist."""
        pass

    @abstractmethod
    async def get_signatures_for_address(
        self,
        address: str,
        limit: int = 20,
        before: Optional[str] = None,
    ) -> list[SignatureInfo]:
        """Fetch signatures referencing `address`, newest first."""
        pass

    @abstractmethod
    async def get_transaction(
        self,
        signature: str,
    ) -> Optional[TransactionRecord]:
        """Fetch a confirmed transaction, None if unknown."""
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Balance of `address` in lamports."""
        pass

    @abstractmethod
    async def request_airdrop(self, address: str, lamports: int) -> str:
        """Request test-network lamports for `address`."""
        pass

    @abstractmethod
    async def health_check(self) -> ClientHealth:
        """Check node connectivity and health."""
        pass

    # ─────────────────────────────────────────────────────────────
    # Confirmation
    # ─────────────────────────────────────────────────────────────

    async def confirm_transaction(
        self,
        signature: str,
        commitment: Optional[Commitment] = None,
        timeout: Optional[float] = None,
    ) -> SignatureStatus:
        """
        Wait until `signature` reaches `commitment`.

        Args:
            signature: Transaction signature to watch
            commitment: Required level (defaults to the client's)
            timeout: Seconds to wait (defaults to the client's)

        Returns:
            The final SignatureStatus

        Raises:
            TransactionFailedError: If the transaction landed with an error
            ConfirmationTimeoutError: If the level was not reached in time
        """
        commitment = commitment or self._commitment
        timeout = self._confirm_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout

        while True:
            statuses = await self.get_signature_statuses([signature])
            status = statuses[0] if statuses else None

            if status is not None:
                if status.err is not None:
                    raise TransactionFailedError(
                        message=f"Transaction {signature} failed: {status.err}",
                        signature=signature,
                        transaction_error=status.err,
                    )
                if commitment.is_satisfied_by(status.confirmation_status):
                    logger.debug(
                        f"[{self.name}] {signature} reached {status.confirmation_status}"
                    )
                    return status

            if time.monotonic() >= deadline:
                raise ConfirmationTimeoutError(
                    message=(
                        f"Transaction {signature} was not {commitment.value} "
                        f"within {timeout:.1f}s"
                    ),
                    signature=signature,
                    timeout_seconds=timeout,
                    commitment=commitment.value,
                )

            await asyncio.sleep(self._poll_interval)

    # ─────────────────────────────────────────────────────────────
    # Health & Error Tracking
    # ─────────────────────────────────────────────────────────────

    def _on_success(self, latency_ms: Optional[float] = None) -> None:
        """Handle successful request."""
        self._health.requests_total += 1
        self._health.consecutive_failures = 0
        self._health.last_check = datetime.now(timezone.utc)
        if latency_ms is not None:
            self._health.latency_ms = latency_ms

        if self._health.status != ClientStatus.HEALTHY:
            self._health.status = ClientStatus.HEALTHY
            logger.info(f"[{self.name}] Recovered to HEALTHY status")

    def _on_error(self, error: ChainClientError) -> None:
        """Handle request error."""
        self._health.requests_total += 1
        self._health.error_count += 1
        self._health.consecutive_failures += 1
        self._health.last_error = str(error)
        self._health.last_error_time = datetime.now(timezone.utc)

        if isinstance(error, RateLimitError):
            self._health.status = ClientStatus.RATE_LIMITED
        elif self._health.consecutive_failures >= self.UNAVAILABLE_THRESHOLD:
            if self._health.status != ClientStatus.UNAVAILABLE:
                self._health.status = ClientStatus.UNAVAILABLE
                logger.error(f"[{self.name}] Marked UNAVAILABLE")
        elif self._health.consecutive_failures >= self.DEGRADED_THRESHOLD:
            if self._health.status != ClientStatus.DEGRADED:
                self._health.status = ClientStatus.DEGRADED
                logger.warning(f"[{self.name}] Marked DEGRADED")

    def get_health(self) -> ClientHealth:
        """Get current health status."""
        return self._health

    def is_usable(self) -> bool:
        """Check if client can be used."""
        return self._health.status in (
            ClientStatus.HEALTHY,
            ClientStatus.DEGRADED,
            ClientStatus.UNKNOWN,
        )

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        return None

    async def __aenter__(self) -> "BaseChainClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, status={self._health.status.value})>"
