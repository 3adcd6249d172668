"""
Pydantic Schemas for the Metadata Storage API.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from metadata_storage.models import ContentType, MetadataFormData


# =============================================================
# ENUMS
# =============================================================

class ContentTypeEnum(str, Enum):
    TEXT = "text"
    JSON = "json"


class MessageTypeEnum(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


# =============================================================
# REQUESTS
# =============================================================

class StoreRequest(BaseModel):
    """Body of POST /metadata."""
    content: str = Field(..., description="Payload text or JSON document")
    type: ContentTypeEnum = Field(ContentTypeEnum.TEXT, description="How to validate content")

    def to_form(self) -> MetadataFormData:
        return MetadataFormData(content=self.content, content_type=ContentType(self.type.value))


# =============================================================
# RESPONSES
# =============================================================

class StorageResultResponse(BaseModel):
    account_address: str
    transaction_signature: str
    memo_signature: str
    content: str


class StoredMetadataResponse(BaseModel):
    content: str
    account_address: str
    transaction_signature: str
    timestamp: datetime
    formatted_content: Optional[str] = None


class StatusMessageResponse(BaseModel):
    type: MessageTypeEnum
    text: str


class SessionStateResponse(BaseModel):
    """Snapshot of the session, as rendered by GET /state."""
    wallet_connected: bool
    public_key: Optional[str] = None
    loading: bool = False
    message: Optional[StatusMessageResponse] = None
    stored_metadata: Optional[StoredMetadataResponse] = None
