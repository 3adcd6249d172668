"""
Keypair-file wallet.

Reads the JSON array format written by `solana-keygen`. An optional
approval callback stands in for the confirmation prompt of a browser
wallet: it sees each connection and transaction and may decline.
"""

import inspect
import json
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from .base import WalletAdapter, WalletState
from .exceptions import (
    KeypairLoadError,
    WalletError,
    WalletNotConnectedError,
    WalletNotFoundError,
    WalletRejectedError,
)


logger = logging.getLogger(__name__)


DEFAULT_KEYPAIR_PATH = "~/.config/solana/id.json"
KEYPAIR_PATH_ENV = "SOLANA_KEYPAIR_PATH"

# Approval callback: (action, detail) -> bool, sync or async
ApprovalCallback = Callable[[str, str], Union[bool, Awaitable[bool]]]


def load_keypair(path: Union[str, Path]) -> Keypair:
    """Load a solana-keygen JSON keypair file."""
    path = Path(path).expanduser()
    try:
        with path.open("r", encoding="utf-8") as f:
            secret = json.load(f)
        return Keypair.from_bytes(bytes(secret))
    except FileNotFoundError as e:
        raise KeypairLoadError(f"Keypair file not found: {path}", str(path), e)
    except (OSError, ValueError, TypeError) as e:
        raise KeypairLoadError(f"Invalid keypair file {path}: {e}", str(path), e)


def save_keypair(keypair: Keypair, path: Union[str, Path]) -> Path:
    """Write a keypair in solana-keygen JSON format."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(list(bytes(keypair)), f)
    os.chmod(path, 0o600)
    return path


class KeypairWallet(WalletAdapter):
    """Wallet backed by an in-process keypair."""

    def __init__(
        self,
        keypair: Keypair,
        approve: Optional[ApprovalCallback] = None,
        source: Optional[str] = None,
    ):
        super().__init__()
        self._keypair = keypair
        self._approve = approve
        self._source = source

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        approve: Optional[ApprovalCallback] = None,
    ) -> "KeypairWallet":
        return cls(load_keypair(path), approve=approve, source=str(path))

    @classmethod
    def ephemeral(cls, approve: Optional[ApprovalCallback] = None) -> "KeypairWallet":
        """Fresh throwaway keypair, for dry runs."""
        return cls(Keypair(), approve=approve, source="ephemeral")

    @property
    def name(self) -> str:
        return "keypair"

    @property
    def source(self) -> Optional[str]:
        return self._source

    @property
    def public_key(self) -> Optional[Pubkey]:
        if not self.connected:
            return None
        return self._keypair.pubkey()

    async def connect(self) -> Pubkey:
        if self.connected:
            return self._keypair.pubkey()

        if not await self._ask("connect", str(self._keypair.pubkey())):
            self._state = WalletState.DENIED
            raise WalletRejectedError("User rejected the connection request", self.name)

        self._state = WalletState.CONNECTED
        logger.info(f"Wallet connected: {self._keypair.pubkey()}")
        return self._keypair.pubkey()

    async def disconnect(self) -> None:
        self._state = WalletState.DISCONNECTED
        logger.info("Wallet disconnected")

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        if not self.connected:
            raise WalletNotConnectedError("Wallet is not connected", self.name)

        message = transaction.message
        detail = (
            f"{len(message.instructions)} instruction(s), "
            f"fee payer {message.account_keys[0]}"
        )
        if not await self._ask("sign", detail):
            raise WalletRejectedError("User rejected the request.", self.name)

        signed = Transaction.from_bytes(bytes(transaction))
        try:
            signed.partial_sign([self._keypair], message.recent_blockhash)
        except Exception as e:
            # solders raises SignerError when the keypair is not a required signer
            raise WalletError(f"Wallet cannot sign this transaction: {e}", self.name, e)
        return signed

    async def _ask(self, action: str, detail: str) -> bool:
        if self._approve is None:
            return True
        answer = self._approve(action, detail)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)


def discover_wallet(
    keypair_path: Optional[str] = None,
    approve: Optional[ApprovalCallback] = None,
) -> Optional[KeypairWallet]:
    """
    Find the wallet available in this environment.

    Looks at the explicit path, then $SOLANA_KEYPAIR_PATH, then the
    solana CLI default. Returns None when no keypair file exists.

    Raises:
        KeypairLoadError: If a keypair file exists but is unreadable
    """
    path = Path(
        keypair_path or os.environ.get(KEYPAIR_PATH_ENV) or DEFAULT_KEYPAIR_PATH
    ).expanduser()

    if not path.exists():
        logger.info(f"No keypair file at {path}")
        return None

    return KeypairWallet.from_file(path, approve=approve)


def require_wallet(
    keypair_path: Optional[str] = None,
    approve: Optional[ApprovalCallback] = None,
) -> KeypairWallet:
    """discover_wallet(), raising WalletNotFoundError when absent."""
    wallet = discover_wallet(keypair_path, approve)
    if wallet is None:
        raise WalletNotFoundError(
            "Wallet not found. Configure a keypair file (SOLANA_KEYPAIR_PATH).",
            wallet_name="keypair",
        )
    return wallet
