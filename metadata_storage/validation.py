"""
Metadata Storage - Input Validation.

============================================================
PURPOSE
============================================================
Checks user input before any network call.

VALIDATION STEPS:
1. Content must be non-empty after stripping whitespace
2. JSON content must parse
3. Account addresses must be valid base58 public keys

All failures raise ValidationError subclasses.

============================================================
"""

import json
import logging
from typing import Union

from solders.pubkey import Pubkey

from metadata_storage.errors import EmptyContentError, InvalidAddressError, InvalidJsonError, ValidationError
from metadata_storage.models import ContentType, MetadataFormData


logger = logging.getLogger(__name__)


def parse_content_type(value: Union[str, ContentType]) -> ContentType:
    """Accept "text"/"json" (any case) or a ContentType."""
    if isinstance(value, ContentType):
        return value
    try:
        return ContentType(value.strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unknown content type: {value!r} (expected text or json)",
            context={"content_type": value},
        )


def validate_form(form: MetadataFormData) -> MetadataFormData:
    """
    Validate a store request.

    Args:
        form: Raw form input

    Returns:
        Form with content stripped of surrounding whitespace

    Raises:
        EmptyContentError: If content is blank
        InvalidJsonError: If content_type is JSON and content does not parse
    """
    content = form.content.strip()
    if not content:
        raise EmptyContentError("Please enter some content")

    if form.content_type == ContentType.JSON:
        try:
            json.loads(content)
        except json.JSONDecodeError as e:
            logger.debug(f"Rejected JSON content: {e}")
            raise InvalidJsonError("Invalid JSON format", e, {"position": e.pos})

    return MetadataFormData(content=content, content_type=form.content_type)


def validate_address(address: str) -> Pubkey:
    """
    Parse a base58 account address.

    Raises:
        InvalidAddressError: If the address is blank or malformed
    """
    address = address.strip()
    if not address:
        raise InvalidAddressError("Please enter an account address")
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid account address: {address}", e, {"address": address})
