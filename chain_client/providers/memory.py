"""
Chain Client - In-Memory Ledger.

============================================================
PURPOSE
============================================================
Simulated Solana cluster for tests and dry runs.

FEATURES:
- Decodes and executes real wire transactions
  (system create_account / transfer, SPL memo)
- Signature, blockhash and balance checks
- Memo program log output in the on-chain format
- Call recording for request-count assertions
- Configurable latency and error injection

============================================================
"""

import asyncio
import logging
import random
import struct
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from chain_client.base import BaseChainClient
from chain_client.exceptions import RpcRequestError
from chain_client.models import (
    LAMPORTS_PER_SOL,
    MEMO_PROGRAM_V1_ID,
    MEMO_PROGRAM_V2_ID,
    SYSTEM_PROGRAM_ID,
    AccountInfo,
    BlockhashInfo,
    ClientHealth,
    ClientStatus,
    Commitment,
    SignatureInfo,
    SignatureStatus,
    TransactionRecord,
)


logger = logging.getLogger(__name__)


SYSTEM_PROGRAM = SYSTEM_PROGRAM_ID
MEMO_PROGRAM_V1 = MEMO_PROGRAM_V1_ID
MEMO_PROGRAM_V2 = MEMO_PROGRAM_V2_ID

_CREATE_ACCOUNT = 0
_TRANSFER = 2


# ============================================================
# LEDGER CONFIGURATION
# ============================================================

@dataclass
class MemoryLedgerConfig:
    """Configuration for the in-memory ledger."""

    # Latency simulation
    min_latency_ms: float = 0.0
    """Minimum simulated latency."""

    max_latency_ms: float = 0.0
    """Maximum simulated latency."""

    # Economics
    lamports_per_signature: int = 5000
    """Fee charged per required signature."""

    rent_lamports_per_byte_year: int = 3480
    """Rent rate."""

    rent_exemption_threshold_years: int = 2
    """Years of rent needed for exemption."""

    account_storage_overhead: int = 128
    """Bytes of metadata charged on every account."""

    airdrop_lamports_limit: int = 5 * LAMPORTS_PER_SOL
    """Largest single airdrop."""

    # Clock
    genesis_block_time: int = 1_700_000_000
    """Block time of slot 0."""

    # Error injection (1-based call numbers)
    fail_send_on: set[int] = field(default_factory=set)
    """sendTransaction calls that fail with a transport error."""

    fail_transaction_fetch: set[str] = field(default_factory=set)
    """Signatures whose getTransaction call fails."""

    omit_block_time: bool = False
    """Report blockTime as null, as some nodes do for old slots."""


@dataclass
class LedgerAccount:
    """Account state held by the ledger."""

    lamports: int
    owner: str = SYSTEM_PROGRAM
    data: bytes = b""


@dataclass
class LedgerTransaction:
    """Executed transaction."""

    signature: str
    slot: int
    block_time: Optional[int]
    log_messages: list[str]
    err: Optional[Any] = None


def rust_debug_quote(text: str) -> str:
    """Quote a string the way Rust's `{:?}` formats a str."""
    out = ['"']
    for ch in text:
        if ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\0":
            out.append("\\0")
        elif not ch.isprintable():
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


# ============================================================
# IN-MEMORY CHAIN CLIENT
# ============================================================

class InMemoryChainClient(BaseChainClient):
    """
    In-memory chain client.

    Simulates the parts of a cluster the storage flow touches:
    - Rent and fees
    - Account creation and transfers
    - Memo logs
    - Per-address signature history
    """

    def __init__(
        self,
        config: Optional[MemoryLedgerConfig] = None,
        commitment: Commitment = Commitment.CONFIRMED,
    ):
        super().__init__(commitment, confirm_timeout=5.0, poll_interval=0.01)
        self._config = config or MemoryLedgerConfig()

        # State
        self._accounts: dict[str, LedgerAccount] = {}
        self._transactions: dict[str, LedgerTransaction] = {}
        self._history: dict[str, list[str]] = {}
        self._blockhashes: set[str] = set()
        self._slot = 0

        # Call recording
        self.calls: list[str] = []
        self._send_count = 0

    @property
    def name(self) -> str:
        return "memory"

    # --------------------------------------------------------
    # TEST HELPERS
    # --------------------------------------------------------

    def fund(self, address: str, lamports: int) -> None:
        """Credit lamports, creating a system account if needed."""
        account = self._accounts.setdefault(address, LedgerAccount(lamports=0))
        account.lamports += lamports

    def set_account(self, address: str, data: bytes, lamports: Optional[int] = None) -> None:
        """Create or replace an account directly."""
        self._accounts[address] = LedgerAccount(
            lamports=lamports if lamports is not None else self.rent_exempt_minimum(len(data)),
            data=data,
        )

    def record_transaction(
        self,
        addresses: list[str],
        log_messages: list[str],
        err: Optional[Any] = None,
    ) -> str:
        """Append a transaction to the history of `addresses`."""
        signature = str(Signature.new_unique())
        self._commit(signature, addresses, log_messages, err)
        return signature

    def account(self, address: str) -> Optional[LedgerAccount]:
        return self._accounts.get(address)

    def call_count(self, method: Optional[str] = None) -> int:
        """Number of recorded calls, optionally for one method."""
        if method is None:
            return len(self.calls)
        return sum(1 for c in self.calls if c == method)

    def rent_exempt_minimum(self, space: int) -> int:
        return (
            (self._config.account_storage_overhead + space)
            * self._config.rent_lamports_per_byte_year
            * self._config.rent_exemption_threshold_years
        )

    # --------------------------------------------------------
    # RPC METHODS
    # --------------------------------------------------------

    async def get_minimum_balance_for_rent_exemption(
        self,
        space: int,
        commitment: Optional[Commitment] = None,
    ) -> int:
        await self._enter("getMinimumBalanceForRentExemption")
        return self.rent_exempt_minimum(space)

    async def get_latest_blockhash(
        self,
        commitment: Optional[Commitment] = None,
    ) -> BlockhashInfo:
        await self._enter("getLatestBlockhash")
        blockhash = str(Hash.new_unique())
        self._blockhashes.add(blockhash)
        return BlockhashInfo(blockhash=blockhash, last_valid_block_height=self._slot + 150)

    async def send_raw_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
    ) -> str:
        await self._enter("sendTransaction")
        self._send_count += 1

        if self._send_count in self._config.fail_send_on:
            error = RpcRequestError(
                message="Connection error: simulated network failure",
                endpoint="memory://",
                method="sendTransaction",
            )
            self._on_error(error)
            raise error

        try:
            tx = Transaction.from_bytes(raw_transaction)
        except ValueError as e:
            raise self._rpc_error("failed to deserialize transaction", -32602, e)

        message = tx.message
        keys = [str(k) for k in message.account_keys]
        required = message.header.num_required_signatures

        for index in range(required):
            if tx.signatures[index] == Signature.default():
                raise self._rpc_error(
                    f"Transaction signature verification failure: missing signature for {keys[index]}",
                    -32003,
                )
        verified = tx.verify_with_results()
        for index in range(required):
            if not verified[index]:
                raise self._rpc_error(
                    f"Transaction signature verification failure: invalid signature for {keys[index]}",
                    -32003,
                )

        if str(message.recent_blockhash) not in self._blockhashes:
            raise self._rpc_error(
                "Transaction simulation failed: Blockhash not found", -32002
            )

        signature = str(tx.signatures[0])
        if signature in self._transactions:
            raise self._rpc_error(
                "Transaction simulation failed: This transaction has already been processed",
                -32002,
            )

        fee = self._config.lamports_per_signature * required
        payer = self._accounts.get(keys[0])
        if payer is None or payer.lamports < fee:
            raise self._rpc_error(
                "Transaction simulation failed: Attempt to debit an account but found no record of a prior credit.",
                -32002,
            )

        # Execute on copies so a failing instruction leaves no trace
        staged = {k: LedgerAccount(a.lamports, a.owner, a.data) for k, a in self._accounts.items()}
        staged[keys[0]].lamports -= fee
        logs: list[str] = []

        for ix in message.instructions:
            program = keys[ix.program_id_index]
            accounts = [keys[i] for i in ix.accounts]
            signers = [keys[i] for i in ix.accounts if i < required]
            data = bytes(ix.data)

            logs.append(f"Program {program} invoke [1]")
            if program == SYSTEM_PROGRAM:
                self._execute_system(staged, accounts, data)
            elif program in (MEMO_PROGRAM_V1, MEMO_PROGRAM_V2):
                logs.extend(self._execute_memo(program, accounts, signers, data))
            else:
                raise self._rpc_error(
                    f"Transaction simulation failed: Attempt to load a program that does not exist: {program}",
                    -32002,
                )
            logs.append(f"Program {program} success")

        self._accounts = staged
        self._commit(signature, keys, logs)
        logger.debug(f"[{self.name}] Executed {signature} ({len(message.instructions)} instructions)")
        return signature

    async def get_signature_statuses(
        self,
        signatures: list[str],
    ) -> list[Optional[SignatureStatus]]:
        await self._enter("getSignatureStatuses")
        statuses: list[Optional[SignatureStatus]] = []
        for signature in signatures:
            tx = self._transactions.get(signature)
            if tx is None:
                statuses.append(None)
                continue
            statuses.append(SignatureStatus(
                slot=tx.slot,
                confirmations=None,
                err=tx.err,
                confirmation_status="finalized",
            ))
        return statuses

    async def get_account_info(
        self,
        address: str,
        commitment: Optional[Commitment] = None,
    ) -> Optional[AccountInfo]:
        await self._enter("getAccountInfo")
        account = self._accounts.get(address)
        if account is None:
            return None
        return AccountInfo(
            lamports=account.lamports,
            owner=account.owner,
            data=account.data,
        )

    async def get_signatures_for_address(
        self,
        address: str,
        limit: int = 20,
        before: Optional[str] = None,
    ) -> list[SignatureInfo]:
        await self._enter("getSignaturesForAddress")
        newest_first = list(reversed(self._history.get(address, [])))

        if before is not None:
            if before not in newest_first:
                return []
            newest_first = newest_first[newest_first.index(before) + 1:]

        result = []
        for signature in newest_first[:limit]:
            tx = self._transactions[signature]
            result.append(SignatureInfo(
                signature=signature,
                slot=tx.slot,
                block_time=tx.block_time,
                err=tx.err,
                confirmation_status="finalized",
            ))
        return result

    async def get_transaction(
        self,
        signature: str,
    ) -> Optional[TransactionRecord]:
        await self._enter("getTransaction")
        if signature in self._config.fail_transaction_fetch:
            raise self._rpc_error(f"simulated failure fetching {signature}", -32004)

        tx = self._transactions.get(signature)
        if tx is None:
            return None
        return TransactionRecord(
            signature=tx.signature,
            slot=tx.slot,
            block_time=tx.block_time,
            log_messages=list(tx.log_messages),
            err=tx.err,
        )

    async def get_balance(self, address: str) -> int:
        await self._enter("getBalance")
        account = self._accounts.get(address)
        return account.lamports if account else 0

    async def request_airdrop(self, address: str, lamports: int) -> str:
        await self._enter("requestAirdrop")
        if lamports > self._config.airdrop_lamports_limit:
            raise self._rpc_error("airdrop request exceeds limit", -32600)
        self.fund(address, lamports)
        return self.record_transaction(
            [address, SYSTEM_PROGRAM],
            [f"Program {SYSTEM_PROGRAM} invoke [1]", f"Program {SYSTEM_PROGRAM} success"],
        )

    async def health_check(self) -> ClientHealth:
        self._health.status = ClientStatus.HEALTHY
        self._health.last_check = datetime.now(timezone.utc)
        self._health.latency_ms = 0.0
        return self._health

    # --------------------------------------------------------
    # PROGRAM EXECUTION
    # --------------------------------------------------------

    def _execute_system(
        self,
        staged: dict[str, LedgerAccount],
        accounts: list[str],
        data: bytes,
    ) -> None:
        if len(data) < 4:
            raise self._rpc_error("Transaction simulation failed: invalid instruction data", -32002)
        (instruction,) = struct.unpack_from("<I", data, 0)

        if instruction == _CREATE_ACCOUNT:
            lamports, space = struct.unpack_from("<QQ", data, 4)
            owner = str(Pubkey.from_bytes(data[20:52]))
            source, new_account = accounts[0], accounts[1]

            existing = staged.get(new_account)
            if existing is not None and (existing.lamports > 0 or existing.data):
                raise self._rpc_error(
                    f"Transaction simulation failed: Create Account: account Address {{ address: {new_account} }} already in use",
                    -32002,
                )
            if staged[source].lamports < lamports:
                raise self._rpc_error(
                    "Transaction simulation failed: Error processing Instruction 0: custom program error: 0x1",
                    -32002,
                )
            if lamports < self.rent_exempt_minimum(space):
                raise self._rpc_error(
                    "Transaction simulation failed: Transaction results in an account with insufficient funds for rent",
                    -32002,
                )

            staged[source].lamports -= lamports
            staged[new_account] = LedgerAccount(
                lamports=lamports,
                owner=owner,
                data=bytes(space),
            )

        elif instruction == _TRANSFER:
            (lamports,) = struct.unpack_from("<Q", data, 4)
            source, destination = accounts[0], accounts[1]
            if staged[source].lamports < lamports:
                raise self._rpc_error(
                    "Transaction simulation failed: Error processing Instruction 0: custom program error: 0x1",
                    -32002,
                )
            staged[source].lamports -= lamports
            staged.setdefault(destination, LedgerAccount(lamports=0)).lamports += lamports

        else:
            raise self._rpc_error(
                f"Transaction simulation failed: unsupported system instruction {instruction}",
                -32002,
            )

    def _execute_memo(
        self,
        program: str,
        accounts: list[str],
        signers: list[str],
        data: bytes,
    ) -> list[str]:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            raise self._rpc_error("Transaction simulation failed: Memo is not valid UTF-8", -32002)

        logs: list[str] = []
        if program == MEMO_PROGRAM_V2:
            for account in accounts:
                if account not in signers:
                    raise self._rpc_error(
                        "Transaction simulation failed: Error processing Instruction 0: missing required signature for instruction",
                        -32002,
                    )
                logs.append(f"Program log: Signed by {account}")

        logs.append(f"Program log: Memo (len {len(data)}): {rust_debug_quote(text)}")
        return logs

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    def _commit(
        self,
        signature: str,
        addresses: list[str],
        log_messages: list[str],
        err: Optional[Any] = None,
    ) -> None:
        self._slot += 1
        block_time = None if self._config.omit_block_time else self._config.genesis_block_time + self._slot
        self._transactions[signature] = LedgerTransaction(
            signature=signature,
            slot=self._slot,
            block_time=block_time,
            log_messages=log_messages,
            err=err,
        )
        for address in dict.fromkeys(addresses):
            self._history.setdefault(address, []).append(signature)

    async def _enter(self, method: str) -> None:
        self.calls.append(method)
        if self._config.max_latency_ms > 0:
            latency = random.uniform(self._config.min_latency_ms, self._config.max_latency_ms)
            await asyncio.sleep(latency / 1000)
        else:
            await asyncio.sleep(0)
        self._on_success()

    def _rpc_error(
        self,
        message: str,
        code: int,
        original_error: Optional[Exception] = None,
    ) -> RpcRequestError:
        return RpcRequestError(
            message=message,
            endpoint="memory://",
            method=self.calls[-1] if self.calls else None,
            rpc_code=code,
            original_error=original_error,
        )

    def reset(self) -> None:
        """Drop all ledger state."""
        self._accounts.clear()
        self._transactions.clear()
        self._history.clear()
        self._blockhashes.clear()
        self._slot = 0
        self.calls.clear()
        self._send_count = 0
