"""
Wallet - Signer Capability Base.

============================================================
PURPOSE
============================================================
Abstract interface for the wallet that pays for and signs
storage transactions.

DESIGN PRINCIPLES:
- Passed explicitly to whoever needs it, never looked up globally
- Explicit state: CONNECTED / DISCONNECTED / DENIED
- Fully testable with an in-process keypair

============================================================
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .exceptions import WalletNotConnectedError


logger = logging.getLogger(__name__)


class WalletState(Enum):
    """Connection state of a wallet."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    DENIED = "denied"


class WalletAdapter(ABC):
    """
    Abstract signer capability.

    Implementations hold (or reach) the payer's signing authority.
    """

    def __init__(self) -> None:
        self._state = WalletState.DISCONNECTED

    @property
    @abstractmethod
    def name(self) -> str:
        """Wallet identifier."""
        pass

    @property
    def state(self) -> WalletState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state == WalletState.CONNECTED

    @property
    @abstractmethod
    def public_key(self) -> Optional[Pubkey]:
        """Payer address while connected, None otherwise."""
        pass

    @abstractmethod
    async def connect(self) -> Pubkey:
        """
        Connect the wallet.

        Returns:
            The payer's public key

        Raises:
            WalletRejectedError: If the user declines
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect the wallet."""
        pass

    @abstractmethod
    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        """
        Sign a transaction as fee payer.

        May suspend on user approval. Returns a signed copy.

        Raises:
            WalletNotConnectedError: If not connected
            WalletRejectedError: If the user declines
        """
        pass

    async def sign_all_transactions(
        self,
        transactions: list[Transaction],
    ) -> list[Transaction]:
        """Sign several transactions, one approval each."""
        return [await self.sign_transaction(tx) for tx in transactions]

    def require_public_key(self) -> Pubkey:
        """Public key of a connected wallet, or raise."""
        public_key = self.public_key
        if not self.connected or public_key is None:
            raise WalletNotConnectedError(
                "Please connect your wallet first",
                wallet_name=self.name,
            )
        return public_key

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(state={self._state.value}, public_key={self.public_key})>"
