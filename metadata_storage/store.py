"""
Metadata Storage - Store Procedure.

============================================================
PURPOSE
============================================================
Persist a payload with two chained transactions:

1. create_account: a fresh account whose space equals the
   payload's UTF-8 length (funded rent-exempt by the payer)
2. memo: a record naming the new account and carrying the
   payload, written to the memo program's log output

The second transaction is only built after the first is
confirmed. If it then fails, PartialStoreError carries the
account keypair so repair can finish the write.

============================================================
"""

import logging
from typing import Optional

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM, CreateAccountParams, create_account
from solders.transaction import Transaction

from chain_client import BaseChainClient, ChainClientError
from metadata_storage.codec import encode_record
from metadata_storage.config import StorageConfig
from metadata_storage.errors import MetadataStorageError, PartialStoreError, map_error
from metadata_storage.models import PartialStore, RecordFormat, StorageResult
from wallet import WalletAdapter, WalletError


logger = logging.getLogger(__name__)


# ============================================================
# TRANSACTION BUILDING
# ============================================================

def build_create_account_transaction(
    payer: Pubkey,
    new_account: Pubkey,
    lamports: int,
    space: int,
    blockhash: str,
) -> Transaction:
    """Unsigned transaction creating a system-owned account."""
    instruction = create_account(CreateAccountParams(
        from_pubkey=payer,
        to_pubkey=new_account,
        lamports=lamports,
        space=space,
        owner=SYSTEM_PROGRAM,
    ))
    message = Message.new_with_blockhash([instruction], payer, Hash.from_string(blockhash))
    return Transaction.new_unsigned(message)


def build_memo_transaction(
    payer: Pubkey,
    storage_account: Pubkey,
    memo_text: str,
    blockhash: str,
    program_id: str,
    reference_storage_account: bool = True,
) -> Transaction:
    """
    Unsigned transaction carrying one memo instruction.

    With reference_storage_account the storage account is a read-only
    signer of the instruction, which puts the transaction in that
    account's signature history.
    """
    accounts = [AccountMeta(payer, is_signer=True, is_writable=False)]
    if reference_storage_account:
        accounts.append(AccountMeta(storage_account, is_signer=True, is_writable=False))

    instruction = Instruction(
        Pubkey.from_string(program_id),
        memo_text.encode("utf-8"),
        accounts,
    )
    message = Message.new_with_blockhash([instruction], payer, Hash.from_string(blockhash))
    return Transaction.new_unsigned(message)


# ============================================================
# SUBMISSION
# ============================================================

async def sign_and_send(
    client: BaseChainClient,
    wallet: WalletAdapter,
    transaction: Transaction,
    co_signers: list[Keypair],
    config: StorageConfig,
) -> str:
    """
    Wallet signs, co-signers sign, submit, wait for confirmation.

    Returns:
        Transaction signature
    """
    signed = await wallet.sign_transaction(transaction)
    if co_signers:
        signed.partial_sign(co_signers, signed.message.recent_blockhash)

    signature = await client.send_raw_transaction(bytes(signed))
    logger.debug(f"[store] Sent {signature}, waiting for {config.network.commitment.value}")
    await client.confirm_transaction(signature, config.network.commitment)
    return signature


async def write_memo(
    client: BaseChainClient,
    wallet: WalletAdapter,
    partial: PartialStore,
    config: StorageConfig,
) -> str:
    """
    Submit and confirm the memo transaction for a created account.

    Returns:
        Memo transaction signature
    """
    payer = wallet.require_public_key()
    reference = config.memo.reference_storage_account

    latest = await client.get_latest_blockhash(config.network.commitment)
    memo_text = encode_record(
        partial.account_address,
        partial.content,
        RecordFormat(config.memo.record_format),
    )
    transaction = build_memo_transaction(
        payer=payer,
        storage_account=partial.account_keypair.pubkey(),
        memo_text=memo_text,
        blockhash=latest.blockhash,
        program_id=config.memo.program_id,
        reference_storage_account=reference,
    )

    co_signers = [partial.account_keypair] if reference else []
    return await sign_and_send(client, wallet, transaction, co_signers, config)


async def verify_account(client: BaseChainClient, address: str) -> None:
    """Log the created account's state. Failures are logged, not raised."""
    try:
        info = await client.get_account_info(address)
    except ChainClientError as e:
        logger.warning(f"[store] Could not verify account {address}: {e}")
        return

    if info is None:
        logger.warning(f"[store] Account {address} not visible yet")
        return
    logger.info(
        f"[store] Account created successfully with rent: {info.lamports} lamports, "
        f"data length: {info.space}"
    )


# ============================================================
# STORE
# ============================================================

async def store_metadata(
    client: BaseChainClient,
    wallet: WalletAdapter,
    content: str,
    config: Optional[StorageConfig] = None,
) -> StorageResult:
    """
    Store `content` on chain.

    Args:
        client: Network handle
        wallet: Connected signer capability (pays fees and rent)
        content: Payload text, already validated
        config: Storage configuration

    Returns:
        StorageResult with the new account address and both signatures

    Raises:
        WalletUnavailableError: If the wallet is not connected
        SigningRejectedError: If the user declines the first signature
        NetworkError: If account creation fails
        PartialStoreError: If the account was created but the memo was not
    """
    config = config or StorageConfig()

    try:
        payer = wallet.require_public_key()
        space = len(content.encode("utf-8"))

        rent = await client.get_minimum_balance_for_rent_exemption(space, config.network.commitment)
        logger.info(f"[store] Rent exemption for {space} bytes: {rent} lamports")

        latest = await client.get_latest_blockhash(config.network.commitment)
        logger.debug(f"[store] Blockhash: {latest.blockhash}")

        account_keypair = Keypair()
        account_address = str(account_keypair.pubkey())
        logger.info(f"[store] New storage account: {account_address}")

        transaction = build_create_account_transaction(
            payer=payer,
            new_account=account_keypair.pubkey(),
            lamports=rent,
            space=space,
            blockhash=latest.blockhash,
        )
        creation_signature = await sign_and_send(
            client, wallet, transaction, [account_keypair], config
        )
        logger.info(f"[store] Account creation confirmed: {creation_signature}")

    except (ChainClientError, WalletError, MetadataStorageError) as e:
        raise map_error(e, "store metadata")

    partial = PartialStore(
        account_address=account_address,
        account_keypair=account_keypair,
        creation_signature=creation_signature,
        content=content,
    )

    try:
        memo_signature = await write_memo(client, wallet, partial, config)
    except (ChainClientError, WalletError, MetadataStorageError) as e:
        mapped = map_error(e, "write memo")
        logger.error(
            f"[store] Account {account_address} created but memo write failed: {mapped.message}"
        )
        raise PartialStoreError(
            f"Account {account_address} was created but the metadata memo was not written: "
            f"{mapped.message}",
            partial,
            mapped,
        )
    logger.info(f"[store] Memo transaction confirmed: {memo_signature}")

    await verify_account(client, account_address)

    return StorageResult(
        account_address=account_address,
        transaction_signature=creation_signature,
        memo_signature=memo_signature,
        content=content,
    )
