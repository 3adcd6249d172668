"""
Chain Client Package - Network handle for a Solana cluster.

Provides the RPC primitives the storage layer needs and nothing else:
rent queries, blockhashes, submission, confirmation, account info and
transaction history.

Quick Start:
    from chain_client import ClientConfig, Cluster, create_client

    async def show_history(address: str):
        async with create_client(ClientConfig(cluster=Cluster.DEVNET)) as client:
            for info in await client.get_signatures_for_address(address, limit=5):
                print(info.signature, info.timestamp)

Clients:
- SolanaRpcClient: JSON-RPC over aiohttp
- InMemoryChainClient: simulated ledger for tests and dry runs

Adding New Clients:
    class NewClient(BaseChainClient):
        @property
        def name(self) -> str:
            return "new_client"
        ...

    ClientFactory.register("new_client", lambda config: NewClient())
"""

from chain_client.base import BaseChainClient
from chain_client.exceptions import (
    ChainClientError,
    ConfigurationError,
    ConfirmationTimeoutError,
    RateLimitError,
    RpcRequestError,
    TransactionFailedError,
)
from chain_client.factory import ClientConfig, ClientFactory, create_client
from chain_client.models import (
    LAMPORTS_PER_SOL,
    MEMO_PROGRAM_V1_ID,
    MEMO_PROGRAM_V2_ID,
    SYSTEM_PROGRAM_ID,
    AccountInfo,
    BlockhashInfo,
    ClientHealth,
    ClientStatus,
    Cluster,
    Commitment,
    SignatureInfo,
    SignatureStatus,
    TransactionRecord,
)
from chain_client.providers import InMemoryChainClient, MemoryLedgerConfig, SolanaRpcClient


__version__ = "1.0.0"

__all__ = [
    # Base
    "BaseChainClient",

    # Models
    "AccountInfo",
    "BlockhashInfo",
    "ClientHealth",
    "ClientStatus",
    "Cluster",
    "Commitment",
    "SignatureInfo",
    "SignatureStatus",
    "TransactionRecord",
    "LAMPORTS_PER_SOL",
    "SYSTEM_PROGRAM_ID",
    "MEMO_PROGRAM_V1_ID",
    "MEMO_PROGRAM_V2_ID",

    # Exceptions
    "ChainClientError",
    "RpcRequestError",
    "RateLimitError",
    "TransactionFailedError",
    "ConfirmationTimeoutError",
    "ConfigurationError",

    # Providers
    "SolanaRpcClient",
    "InMemoryChainClient",
    "MemoryLedgerConfig",

    # Factory
    "ClientConfig",
    "ClientFactory",
    "create_client",
]
