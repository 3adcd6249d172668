"""
Metadata Storage - Data Models.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from solders.keypair import Keypair


class ContentType(Enum):
    """How the payload is interpreted by the form."""
    TEXT = "text"
    JSON = "json"


class MessageKind(Enum):
    SUCCESS = "success"
    ERROR = "error"


class RecordFormat(Enum):
    """Embedded memo record layouts."""
    LEGACY = "legacy"
    FRAMED = "framed"


@dataclass(frozen=True)
class MetadataFormData:
    """User input for a store request."""
    content: str
    content_type: ContentType = ContentType.TEXT


@dataclass(frozen=True)
class StorageResult:
    """Outcome of a successful store."""
    account_address: str
    transaction_signature: str
    memo_signature: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_address": self.account_address,
            "transaction_signature": self.transaction_signature,
            "memo_signature": self.memo_signature,
            "content": self.content,
        }


@dataclass(frozen=True)
class StoredMetadata:
    """
    A recovered (or just-stored) record.

    `transaction_signature` is the memo transaction on a log match,
    or the newest signature on the raw-data fallback.
    """
    content: str
    account_address: str
    transaction_signature: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "account_address": self.account_address,
            "transaction_signature": self.transaction_signature,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class MemoRecord:
    """Decoded embedded record."""
    account_address: str
    content: str
    format: RecordFormat


@dataclass(frozen=True)
class StatusMessage:
    """Banner shown to the user."""
    kind: MessageKind
    text: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind.value, "text": self.text}


@dataclass(frozen=True)
class PartialStore:
    """
    State of a store whose account was created but whose memo was not
    confirmed. The keypair is kept so the memo can still be co-signed.
    """
    account_address: str
    account_keypair: Keypair
    creation_signature: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        # secret key is never serialized
        return {
            "account_address": self.account_address,
            "creation_signature": self.creation_signature,
            "content": self.content,
        }
