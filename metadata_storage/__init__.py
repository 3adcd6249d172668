"""
Metadata Storage Package - Small records on Solana.

A payload is stored by creating a fresh account sized for it and
writing a memo that names the account and carries the payload. It
is recovered by scanning the account's recent transactions.

Quick Start:
    from chain_client import ClientConfig, create_client
    from metadata_storage import MetadataFormData, MetadataStorageService
    from wallet import require_wallet

    async def store_and_read(text: str):
        wallet = require_wallet()
        await wallet.connect()
        async with create_client(ClientConfig()) as client:
            service = MetadataStorageService(client, wallet)
            result = await service.store(MetadataFormData(text))
            record = await service.retrieve(result.account_address)
            return record.content
"""

from metadata_storage.codec import decode_record, encode_record, find_record, unwrap_memo_log
from metadata_storage.config import (
    MemoConfig,
    NetworkConfig,
    RetrievalConfig,
    StorageConfig,
    WalletConfig,
)
from metadata_storage.errors import (
    AccountNotFoundError,
    EmptyContentError,
    ErrorCategory,
    InvalidAddressError,
    InvalidJsonError,
    MetadataNotFoundError,
    MetadataStorageError,
    NetworkError,
    NoTransactionsError,
    NotFoundError,
    PartialStoreError,
    SigningRejectedError,
    ValidationError,
    WalletUnavailableError,
    map_error,
)
from metadata_storage.models import (
    ContentType,
    MemoRecord,
    MessageKind,
    MetadataFormData,
    PartialStore,
    RecordFormat,
    StatusMessage,
    StorageResult,
    StoredMetadata,
)
from metadata_storage.retrieve import retrieve_metadata
from metadata_storage.service import MetadataStorageService
from metadata_storage.session import SessionBusyError, StorageSession
from metadata_storage.store import store_metadata


__version__ = "1.0.0"

__all__ = [
    # Service
    "MetadataStorageService",
    "StorageSession",
    "SessionBusyError",
    "store_metadata",
    "retrieve_metadata",

    # Codec
    "encode_record",
    "decode_record",
    "find_record",
    "unwrap_memo_log",

    # Config
    "StorageConfig",
    "NetworkConfig",
    "RetrievalConfig",
    "MemoConfig",
    "WalletConfig",

    # Models
    "ContentType",
    "MessageKind",
    "RecordFormat",
    "MetadataFormData",
    "StorageResult",
    "StoredMetadata",
    "MemoRecord",
    "StatusMessage",
    "PartialStore",

    # Errors
    "ErrorCategory",
    "MetadataStorageError",
    "ValidationError",
    "EmptyContentError",
    "InvalidJsonError",
    "InvalidAddressError",
    "WalletUnavailableError",
    "SigningRejectedError",
    "NetworkError",
    "NotFoundError",
    "AccountNotFoundError",
    "NoTransactionsError",
    "MetadataNotFoundError",
    "PartialStoreError",
    "map_error",
]
