"""
Metadata Storage - Session State.

============================================================
PURPOSE
============================================================
Presentation state for one user of the storage service:
wallet connection, loading flag, status banner and the last
stored or retrieved record.

Failures never escape as exceptions from store/retrieve; they
become an error banner. The only exception raised is
SessionBusyError, when a request arrives while another is
still loading.

============================================================
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from metadata_storage.errors import MetadataStorageError, WalletUnavailableError, map_error
from metadata_storage.models import (
    MessageKind,
    MetadataFormData,
    StatusMessage,
    StorageResult,
    StoredMetadata,
)
from metadata_storage.service import MetadataStorageService
from wallet import WalletError


logger = logging.getLogger(__name__)


MSG_WALLET_CONNECTED = "Wallet connected successfully!"
MSG_WALLET_DISCONNECTED = "Wallet disconnected successfully!"
MSG_WALLET_NOT_FOUND = "Wallet not found. Configure a keypair file."
MSG_CONNECT_FAILED = "Failed to connect wallet"
MSG_DISCONNECT_FAILED = "Failed to disconnect wallet"
MSG_CONNECT_FIRST = "Please connect your wallet first"
MSG_RETRIEVED = "Metadata retrieved successfully!"


class SessionBusyError(RuntimeError):
    """A store or retrieve is already in progress."""


def format_content(content: str) -> str:
    """Pretty-print JSON content; other text is returned as is."""
    try:
        return json.dumps(json.loads(content), indent=2, ensure_ascii=False)
    except ValueError:
        return content


class StorageSession:
    """
    UI state over a MetadataStorageService.
    """

    def __init__(
        self,
        service: MetadataStorageService,
        repair_attempts: int = 0,
    ):
        """
        Initialize session.

        Args:
            service: Storage service (its wallet is the session's wallet)
            repair_attempts: Repairs to run after a half-finished store
        """
        self._service = service
        self._repair_attempts = repair_attempts

        self.wallet_connected = False
        self.public_key: Optional[str] = None
        self.stored_metadata: Optional[StoredMetadata] = None
        self.message: Optional[StatusMessage] = None
        self.loading = False
        self.last_error: Optional[MetadataStorageError] = None

    @property
    def service(self) -> MetadataStorageService:
        return self._service

    # --------------------------------------------------------
    # WALLET
    # --------------------------------------------------------

    def restore_wallet(self) -> bool:
        """Adopt a wallet that is already connected."""
        wallet = self._service.wallet
        if wallet is not None and wallet.connected:
            self.wallet_connected = True
            self.public_key = str(wallet.public_key)
        return self.wallet_connected

    async def connect_wallet(self) -> bool:
        wallet = self._service.wallet
        if wallet is None:
            self._fail(WalletUnavailableError(MSG_WALLET_NOT_FOUND))
            return False

        try:
            public_key = await wallet.connect()
        except WalletError as e:
            logger.error(f"Error connecting wallet: {e}")
            self._fail(map_error(e, "connect wallet"), e.message or MSG_CONNECT_FAILED)
            return False

        self.wallet_connected = True
        self.public_key = str(public_key)
        self._success(MSG_WALLET_CONNECTED)
        return True

    async def disconnect_wallet(self) -> bool:
        wallet = self._service.wallet
        try:
            if wallet is not None:
                await wallet.disconnect()
        except WalletError as e:
            logger.error(f"Error disconnecting wallet: {e}")
            self._fail(map_error(e, "disconnect wallet"), MSG_DISCONNECT_FAILED)
            return False

        self.wallet_connected = False
        self.public_key = None
        self._success(MSG_WALLET_DISCONNECTED)
        return True

    # --------------------------------------------------------
    # STORE / RETRIEVE
    # --------------------------------------------------------

    async def store(self, form: MetadataFormData) -> Optional[StorageResult]:
        """
        Store a payload and record the outcome in the session.

        Returns:
            StorageResult on success, None on failure (see `message`)

        Raises:
            SessionBusyError: If a request is already in progress
        """
        if not self.public_key:
            self._fail(WalletUnavailableError(MSG_CONNECT_FIRST))
            return None

        self._begin()
        try:
            if self._repair_attempts > 0:
                result = await self._service.store_with_repair(form, self._repair_attempts)
            else:
                result = await self._service.store(form)
        except MetadataStorageError as e:
            logger.error(f"Error storing metadata: {e}")
            self._fail(e)
            return None
        finally:
            self.loading = False

        self.stored_metadata = StoredMetadata(
            content=result.content,
            account_address=result.account_address,
            transaction_signature=result.transaction_signature,
            timestamp=datetime.now(timezone.utc),
        )
        self._success(
            f"Metadata stored successfully! Account: {result.account_address}. "
            f"Memo: {result.memo_signature}"
        )
        return result

    async def retrieve(self, account_address: str) -> Optional[StoredMetadata]:
        """
        Retrieve a record and make it the session's last result.

        Raises:
            SessionBusyError: If a request is already in progress
        """
        self._begin()
        try:
            record = await self._service.retrieve(account_address)
        except MetadataStorageError as e:
            logger.error(f"Error retrieving metadata: {e}")
            self._fail(e)
            return None
        finally:
            self.loading = False

        self.stored_metadata = record
        self._success(MSG_RETRIEVED)
        return record

    def dismiss_message(self) -> None:
        self.message = None

    # --------------------------------------------------------
    # STATE
    # --------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Session state for rendering."""
        stored = None
        if self.stored_metadata is not None:
            stored = self.stored_metadata.to_dict()
            stored["formatted_content"] = format_content(self.stored_metadata.content)

        return {
            "wallet_connected": self.wallet_connected,
            "public_key": self.public_key,
            "loading": self.loading,
            "message": self.message.to_dict() if self.message else None,
            "stored_metadata": stored,
        }

    def _begin(self) -> None:
        if self.loading:
            raise SessionBusyError("A request is already in progress")
        self.loading = True
        self.message = None

    def _success(self, text: str) -> None:
        self.last_error = None
        self.message = StatusMessage(MessageKind.SUCCESS, text)

    def _fail(self, error: MetadataStorageError, text: Optional[str] = None) -> None:
        self.last_error = error
        self.message = StatusMessage(MessageKind.ERROR, text or error.message)
