"""
Metadata Storage - Retrieve Procedure.

============================================================
PURPOSE
============================================================
Recover a payload from its storage account address.

STEPS:
1. Parse the address (no network call on failure)
2. Fetch account info (must exist)
3. Page through the account's signatures, newest first
4. Fetch each transaction and decode memo records from its logs
5. First matching record wins
6. Otherwise fall back to the raw account data

The scan is bounded: history_limit signatures per page,
history_max_pages pages.

============================================================
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from chain_client import AccountInfo, BaseChainClient, ChainClientError, SignatureInfo
from metadata_storage.codec import find_record
from metadata_storage.config import StorageConfig
from metadata_storage.errors import (
    AccountNotFoundError,
    MetadataNotFoundError,
    NoTransactionsError,
    map_error,
)
from metadata_storage.models import MemoRecord, StoredMetadata
from metadata_storage.validation import validate_address


logger = logging.getLogger(__name__)


@dataclass
class HistoryScan:
    """Outcome of scanning an account's signature history."""

    record: Optional[MemoRecord] = None
    """First matching record, if any."""

    record_signature: Optional[SignatureInfo] = None
    """Signature of the transaction carrying the record."""

    record_time: Optional[datetime] = None
    """Block time of that transaction."""

    newest: Optional[SignatureInfo] = None
    """Most recent signature seen (None = no history)."""

    signatures_scanned: int = 0
    """Transactions inspected."""

    @property
    def found(self) -> bool:
        return self.record is not None


async def scan_history(
    client: BaseChainClient,
    address: str,
    config: Optional[StorageConfig] = None,
) -> HistoryScan:
    """
    Scan an account's recent transactions for a memo record.

    Transactions that fail to load are logged and skipped.
    Failed transactions are ignored.

    Raises:
        ChainClientError: If a signature page cannot be fetched
    """
    config = config or StorageConfig()
    limit = config.retrieval.history_limit
    expected = address if config.retrieval.verify_record_address else None

    scan = HistoryScan()
    before: Optional[str] = None

    for page_number in range(config.retrieval.history_max_pages):
        page = await client.get_signatures_for_address(address, limit=limit, before=before)
        logger.debug(f"[retrieve] Page {page_number + 1}: {len(page)} signatures for {address}")
        if not page:
            break
        if scan.newest is None:
            scan.newest = page[0]

        for info in page:
            scan.signatures_scanned += 1
            try:
                transaction = await client.get_transaction(info.signature)
            except ChainClientError as e:
                logger.warning(f"[retrieve] Error processing transaction {info.signature}: {e}")
                continue

            if transaction is None:
                continue
            if transaction.err is not None:
                logger.debug(f"[retrieve] Skipping failed transaction {info.signature}")
                continue

            record = find_record(transaction.log_messages, expected)
            if record is not None:
                scan.record = record
                scan.record_signature = info
                scan.record_time = info.timestamp or transaction.timestamp
                return scan

        if len(page) < limit:
            break
        before = page[-1].signature

    return scan


def decode_account_data(account: AccountInfo) -> str:
    """Raw account data as text, with trailing zero padding removed."""
    return account.data.rstrip(b"\x00").decode("utf-8", errors="replace")


async def retrieve_metadata(
    client: BaseChainClient,
    account_address: str,
    config: Optional[StorageConfig] = None,
) -> StoredMetadata:
    """
    Retrieve the payload stored under `account_address`.

    Raises:
        InvalidAddressError: Malformed address (no network call)
        AccountNotFoundError: No account at the address
        NoTransactionsError: The account has no history
        MetadataNotFoundError: No record and no account data
        NetworkError: RPC failure
    """
    config = config or StorageConfig()
    address = str(validate_address(account_address))

    try:
        account = await client.get_account_info(address, config.network.commitment)
        if account is None:
            raise AccountNotFoundError("Account not found", context={"address": address})

        scan = await scan_history(client, address, config)
    except ChainClientError as e:
        raise map_error(e, "retrieve metadata")

    if scan.newest is None:
        raise NoTransactionsError(
            "No transactions found for this account",
            context={"address": address},
        )

    if scan.found:
        logger.info(
            f"[retrieve] Found {scan.record.format.value} record for {address} "
            f"in {scan.record_signature.signature}"
        )
        return StoredMetadata(
            content=scan.record.content,
            account_address=address,
            transaction_signature=scan.record_signature.signature,
            timestamp=scan.record_time or datetime.now(timezone.utc),
        )

    logger.warning(
        f"[retrieve] No memo record in {scan.signatures_scanned} transactions for {address}, "
        f"falling back to account data ({account.space} bytes)"
    )
    if account.space == 0:
        raise MetadataNotFoundError(
            "No metadata found in account or associated transactions",
            context={"address": address, "signatures_scanned": scan.signatures_scanned},
        )

    return StoredMetadata(
        content=decode_account_data(account),
        account_address=address,
        transaction_signature=scan.newest.signature,
        timestamp=scan.newest.timestamp or datetime.now(timezone.utc),
    )
