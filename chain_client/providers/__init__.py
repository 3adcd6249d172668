"""Chain client implementations."""

from chain_client.providers.memory import InMemoryChainClient, MemoryLedgerConfig
from chain_client.providers.solana_rpc import SolanaRpcClient

__all__ = ["InMemoryChainClient", "MemoryLedgerConfig", "SolanaRpcClient"]
