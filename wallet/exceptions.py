"""
Wallet Exceptions - Failures of the signer capability.
"""

from typing import Any, Optional


class WalletError(Exception):
    """Base exception for wallet errors."""

    def __init__(
        self,
        message: str,
        wallet_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.wallet_name = wallet_name
        self.original_error = original_error
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "wallet_name": self.wallet_name,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
        }

    def __str__(self) -> str:
        return self.message


class WalletNotFoundError(WalletError):
    """No wallet is available in this environment."""


class KeypairLoadError(WalletNotFoundError):
    """A keypair file exists but could not be read."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, "keypair", original_error, {"path": path})
        self.path = path


class WalletNotConnectedError(WalletError):
    """Operation needs a connected wallet."""


class WalletRejectedError(WalletError):
    """The user declined a connection or signing request."""
