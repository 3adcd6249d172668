"""
Metadata Storage - Storage Service.

============================================================
PURPOSE
============================================================
Entry point for storing and retrieving metadata.

Wraps the Store and Retrieve procedures with input validation,
the wallet precondition, error mapping, statistics, and the
repair routine for half-finished stores.

============================================================
STORE WORKFLOW
============================================================
1. Validate form (empty content, JSON)     - no network
2. Require a connected wallet              - no network
3. Create account, confirm
4. Write memo record, confirm
5. On memo failure: PartialStoreError -> repair()

============================================================
"""

import logging
from typing import Any, Optional

from chain_client import BaseChainClient, ChainClientError
from metadata_storage.config import StorageConfig
from metadata_storage.errors import (
    AccountNotFoundError,
    MetadataStorageError,
    PartialStoreError,
    WalletUnavailableError,
    map_error,
)
from metadata_storage.models import MetadataFormData, PartialStore, StorageResult, StoredMetadata
from metadata_storage.retrieve import retrieve_metadata, scan_history
from metadata_storage.store import store_metadata, verify_account, write_memo
from metadata_storage.validation import validate_form
from wallet import WalletAdapter, WalletError


logger = logging.getLogger(__name__)


# ============================================================
# STORAGE SERVICE
# ============================================================

class MetadataStorageService:
    """
    Metadata storage service.

    Holds the network handle and the signer capability; keeps no
    record state between calls.
    """

    def __init__(
        self,
        client: BaseChainClient,
        wallet: Optional[WalletAdapter] = None,
        config: Optional[StorageConfig] = None,
    ):
        """
        Initialize service.

        Args:
            client: Network handle
            wallet: Signer capability (None = no wallet in this environment)
            config: Storage configuration
        """
        self._client = client
        self._wallet = wallet
        self._config = config or StorageConfig()

        self._stats = {
            "stores": 0,
            "stores_failed": 0,
            "partial_stores": 0,
            "repairs": 0,
            "retrieves": 0,
            "retrieves_failed": 0,
        }

    @property
    def client(self) -> BaseChainClient:
        return self._client

    @property
    def wallet(self) -> Optional[WalletAdapter]:
        return self._wallet

    @property
    def config(self) -> StorageConfig:
        return self._config

    # --------------------------------------------------------
    # STORE
    # --------------------------------------------------------

    def _require_wallet(self) -> WalletAdapter:
        if self._wallet is None or not self._wallet.connected:
            raise WalletUnavailableError("Please connect your wallet first")
        return self._wallet

    async def store(self, form: MetadataFormData) -> StorageResult:
        """
        Validate and store a payload.

        Raises:
            ValidationError: Bad input (no network call)
            WalletUnavailableError: No connected wallet (no network call)
            SigningRejectedError: User declined
            NetworkError: Account creation failed
            PartialStoreError: Account created, memo not written
        """
        form = validate_form(form)
        wallet = self._require_wallet()

        logger.info(
            f"Storing {form.content_type.value} metadata "
            f"({len(form.content.encode('utf-8'))} bytes)"
        )
        try:
            result = await store_metadata(self._client, wallet, form.content, self._config)
        except PartialStoreError:
            self._stats["partial_stores"] += 1
            raise
        except MetadataStorageError:
            self._stats["stores_failed"] += 1
            raise

        self._stats["stores"] += 1
        logger.info(f"Stored metadata in account {result.account_address}")
        return result

    async def repair(self, partial: PartialStore) -> StorageResult:
        """
        Finish a half-finished store.

        If the account's history already holds the record (the memo
        landed after all), it is returned; otherwise only the memo step
        is submitted again.

        Raises:
            AccountNotFoundError: The storage account does not exist
            PartialStoreError: The memo could not be written
        """
        wallet = self._require_wallet()
        address = partial.account_address
        logger.info(f"Repairing partial store for {address}")

        try:
            account = await self._client.get_account_info(address, self._config.network.commitment)
            if account is None:
                raise AccountNotFoundError(
                    f"Storage account {address} does not exist; nothing to repair",
                    context={"address": address},
                )
            scan = await scan_history(self._client, address, self._config)
        except ChainClientError as e:
            raise PartialStoreError(
                f"Could not inspect account {address}: {e}",
                partial,
                map_error(e, "repair"),
            )

        if scan.found and scan.record.content == partial.content:
            logger.info(f"Memo record already present in {scan.record_signature.signature}")
            self._stats["repairs"] += 1
            return StorageResult(
                account_address=address,
                transaction_signature=partial.creation_signature,
                memo_signature=scan.record_signature.signature,
                content=partial.content,
            )

        try:
            memo_signature = await write_memo(self._client, wallet, partial, self._config)
        except (ChainClientError, WalletError, MetadataStorageError) as e:
            mapped = map_error(e, "write memo")
            raise PartialStoreError(
                f"Account {address} is still missing its metadata memo: {mapped.message}",
                partial,
                mapped,
            )

        await verify_account(self._client, address)
        self._stats["repairs"] += 1
        logger.info(f"Repaired {address}: memo {memo_signature}")
        return StorageResult(
            account_address=address,
            transaction_signature=partial.creation_signature,
            memo_signature=memo_signature,
            content=partial.content,
        )

    async def store_with_repair(
        self,
        form: MetadataFormData,
        attempts: int = 1,
    ) -> StorageResult:
        """
        Store, then run repair up to `attempts` times on a partial store.

        Raises:
            PartialStoreError: If every repair attempt failed
        """
        try:
            return await self.store(form)
        except PartialStoreError as e:
            error = e

        for attempt in range(1, attempts + 1):
            logger.warning(
                f"Repair attempt {attempt}/{attempts} for {error.partial.account_address}"
            )
            try:
                return await self.repair(error.partial)
            except PartialStoreError as e:
                error = e

        raise error

    # --------------------------------------------------------
    # RETRIEVE
    # --------------------------------------------------------

    async def retrieve(self, account_address: str) -> StoredMetadata:
        """
        Retrieve the payload stored under an address.

        Raises:
            InvalidAddressError: Malformed address (no network call)
            NotFoundError: Account, history or record absent
            NetworkError: RPC failure
        """
        try:
            record = await retrieve_metadata(self._client, account_address, self._config)
        except MetadataStorageError:
            self._stats["retrieves_failed"] += 1
            raise

        self._stats["retrieves"] += 1
        return record

    # --------------------------------------------------------
    # STATUS
    # --------------------------------------------------------

    async def health(self) -> dict[str, Any]:
        """Service and chain client health."""
        client_health = await self._client.health_check()
        return {
            "status": "healthy" if client_health.is_usable() else "degraded",
            "client": self._client.name,
            "chain": client_health.to_dict(),
            "wallet": self._wallet.state.value if self._wallet else "not_found",
            "dry_run": self._config.dry_run,
        }

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)
