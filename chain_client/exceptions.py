"""
Chain Client Exceptions - Custom exception hierarchy.

Every failure talking to the RPC node surfaces as a ChainClientError
subclass carrying the endpoint and RPC method that produced it.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class ChainClientError(Exception):
    """Base exception for all chain client errors."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        method: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint
        self.method = method
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "endpoint": self.endpoint,
            "method": self.method,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.method:
            parts.append(f"[method={self.method}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class RpcRequestError(ChainClientError):
    """HTTP or JSON-RPC level failure."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        method: Optional[str] = None,
        status_code: Optional[int] = None,
        rpc_code: Optional[int] = None,
        response_body: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, endpoint, method, original_error, context)
        self.status_code = status_code
        self.rpc_code = rpc_code
        self.response_body = response_body

    def is_transport_error(self) -> bool:
        """True for connection failures and 5xx responses."""
        if self.rpc_code is not None:
            return False
        return self.status_code is None or self.status_code >= 500

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "rpc_code": self.rpc_code,
            "response_body": self.response_body,
        })
        return data


class RateLimitError(ChainClientError):
    """Rate limit exceeded (HTTP 429)."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        method: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, endpoint, method, original_error, context)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["retry_after_seconds"] = self.retry_after_seconds
        return data


class TransactionFailedError(ChainClientError):
    """Transaction landed but the runtime reported an error."""

    def __init__(
        self,
        message: str,
        signature: Optional[str] = None,
        transaction_error: Optional[Any] = None,
        endpoint: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, endpoint, "getSignatureStatuses", None, context)
        self.signature = signature
        self.transaction_error = transaction_error

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "signature": self.signature,
            "transaction_error": str(self.transaction_error) if self.transaction_error else None,
        })
        return data


class ConfirmationTimeoutError(ChainClientError):
    """Transaction did not reach the requested commitment in time."""

    def __init__(
        self,
        message: str,
        signature: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        commitment: Optional[str] = None,
        endpoint: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, endpoint, "getSignatureStatuses", None, context)
        self.signature = signature
        self.timeout_seconds = timeout_seconds
        self.commitment = commitment

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "signature": self.signature,
            "timeout_seconds": self.timeout_seconds,
            "commitment": self.commitment,
        })
        return data


class ConfigurationError(ChainClientError):
    """Invalid client configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, None, None, original_error, context)
        self.config_key = config_key

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data
