"""
Metadata Storage - Error Taxonomy.

============================================================
PURPOSE
============================================================
Classification of store/retrieve failures.

ERROR CATEGORIES:
1. Input Validation - Empty content, malformed JSON, bad address
2. Capability Missing - No wallet, or wallet not connected
3. Capability Denied - User rejected a connection or signature
4. Network - RPC failures, failed or unconfirmed transactions
5. Not Found - Account, history, or record absent
6. Partial Write - Account created, memo not written

Client and wallet exceptions are translated by map_error() at the
service boundary, so callers only handle MetadataStorageError.

============================================================
"""

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from chain_client.exceptions import (
    ChainClientError,
    ConfirmationTimeoutError,
    RateLimitError,
    TransactionFailedError,
)
from wallet.exceptions import (
    WalletError,
    WalletNotConnectedError,
    WalletNotFoundError,
    WalletRejectedError,
)

if TYPE_CHECKING:
    from metadata_storage.models import PartialStore


# ============================================================
# ERROR CATEGORIES
# ============================================================

class ErrorCategory(Enum):
    """Error category classification."""

    INPUT_VALIDATION = "INPUT_VALIDATION"
    """Rejected before any network call."""

    CAPABILITY_MISSING = "CAPABILITY_MISSING"
    """Wallet absent or not connected."""

    CAPABILITY_DENIED = "CAPABILITY_DENIED"
    """User declined in the wallet."""

    NETWORK = "NETWORK"
    """RPC or transaction failure."""

    NOT_FOUND = "NOT_FOUND"
    """Nothing stored at the address."""

    PARTIAL_WRITE = "PARTIAL_WRITE"
    """Account exists but the memo write failed."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class MetadataStorageError(Exception):
    """Base exception for metadata storage errors."""

    category: ErrorCategory = ErrorCategory.NETWORK

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
        }

    def __str__(self) -> str:
        return self.message


# ============================================================
# INPUT VALIDATION
# ============================================================

class ValidationError(MetadataStorageError):
    """Form input rejected."""

    category = ErrorCategory.INPUT_VALIDATION


class EmptyContentError(ValidationError):
    pass


class InvalidJsonError(ValidationError):
    pass


class InvalidAddressError(ValidationError):
    pass


# ============================================================
# CAPABILITY
# ============================================================

class WalletUnavailableError(MetadataStorageError):
    """No wallet, or the wallet is not connected."""

    category = ErrorCategory.CAPABILITY_MISSING


class SigningRejectedError(MetadataStorageError):
    """User declined a connection or signing request."""

    category = ErrorCategory.CAPABILITY_DENIED


# ============================================================
# NETWORK
# ============================================================

class NetworkError(MetadataStorageError):
    """RPC, submission or confirmation failure."""

    category = ErrorCategory.NETWORK


# ============================================================
# NOT FOUND
# ============================================================

class NotFoundError(MetadataStorageError):
    category = ErrorCategory.NOT_FOUND


class AccountNotFoundError(NotFoundError):
    """No account exists at the address."""


class NoTransactionsError(NotFoundError):
    """The account has no transaction history."""


class MetadataNotFoundError(NotFoundError):
    """Neither history nor account data yielded a record."""


# ============================================================
# PARTIAL WRITE
# ============================================================

class PartialStoreError(MetadataStorageError):
    """
    Account creation confirmed but the memo write failed.

    Carries everything repair() needs to finish the write.
    """

    category = ErrorCategory.PARTIAL_WRITE

    def __init__(
        self,
        message: str,
        partial: "PartialStore",
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            message,
            original_error,
            {
                "account_address": partial.account_address,
                "creation_signature": partial.creation_signature,
            },
        )
        self.partial = partial


# ============================================================
# MAPPING
# ============================================================

def map_error(error: Exception, action: str = "request") -> MetadataStorageError:
    """
    Translate a client or wallet failure into the storage taxonomy.

    Args:
        error: Exception raised by chain_client or wallet
        action: Short description for the message ("store", "retrieve")

    Returns:
        MetadataStorageError subclass (the error itself if already mapped)
    """
    if isinstance(error, MetadataStorageError):
        return error

    if isinstance(error, WalletRejectedError):
        return SigningRejectedError(error.message, error)
    if isinstance(error, (WalletNotFoundError, WalletNotConnectedError)):
        return WalletUnavailableError(error.message, error)
    if isinstance(error, WalletError):
        return WalletUnavailableError(f"Wallet error: {error.message}", error)

    if isinstance(error, TransactionFailedError):
        return NetworkError(
            f"Failed to {action}: transaction {error.signature} failed ({error.transaction_error})",
            error,
            {"signature": error.signature},
        )
    if isinstance(error, ConfirmationTimeoutError):
        return NetworkError(
            f"Failed to {action}: {error.message}",
            error,
            {"signature": error.signature},
        )
    if isinstance(error, RateLimitError):
        return NetworkError(f"Failed to {action}: RPC rate limit exceeded", error)
    if isinstance(error, ChainClientError):
        return NetworkError(f"Failed to {action}: {error.message}", error)

    return NetworkError(f"Failed to {action}: {error}", error)
