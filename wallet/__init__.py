"""
Wallet Package - Signer capability for storage transactions.

Quick Start:
    from wallet import discover_wallet

    wallet = discover_wallet()          # None if no keypair file
    if wallet is not None:
        payer = await wallet.connect()
        signed = await wallet.sign_transaction(tx)
"""

from wallet.base import WalletAdapter, WalletState
from wallet.exceptions import (
    KeypairLoadError,
    WalletError,
    WalletNotConnectedError,
    WalletNotFoundError,
    WalletRejectedError,
)
from wallet.keypair_wallet import (
    DEFAULT_KEYPAIR_PATH,
    KeypairWallet,
    discover_wallet,
    load_keypair,
    require_wallet,
    save_keypair,
)


__all__ = [
    "WalletAdapter",
    "WalletState",
    "KeypairWallet",
    "discover_wallet",
    "require_wallet",
    "load_keypair",
    "save_keypair",
    "DEFAULT_KEYPAIR_PATH",
    "WalletError",
    "WalletNotFoundError",
    "KeypairLoadError",
    "WalletNotConnectedError",
    "WalletRejectedError",
]
