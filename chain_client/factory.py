"""
Chain Client Factory.

============================================================
PURPOSE
============================================================
Factory for creating chain client instances.

FEATURES:
- Centralized client creation
- Configuration injection
- Client registry for extension

============================================================
USAGE
============================================================
```python
# Devnet RPC client
client = ClientFactory.create("solana_rpc")

# Explicit config
config = ClientConfig(cluster=Cluster.LOCALNET, commitment=Commitment.FINALIZED)
client = ClientFactory.create("solana_rpc", config=config)

# Offline ledger
client = create_client(ClientConfig(dry_run=True))
```

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .base import BaseChainClient
from .models import Cluster, Commitment
from .providers import InMemoryChainClient, SolanaRpcClient


logger = logging.getLogger(__name__)


# ============================================================
# CLIENT CONFIGURATION
# ============================================================

@dataclass
class ClientConfig:
    """
    Configuration for a chain client.
    """

    cluster: Cluster = Cluster.DEVNET
    rpc_url: Optional[str] = None  # None = cluster default
    commitment: Commitment = Commitment.CONFIRMED

    # Connection
    request_timeout_seconds: float = 30.0
    confirm_timeout_seconds: float = 60.0
    confirm_poll_interval_seconds: float = 0.5
    max_retries: int = 2  # attempts per request, including the first

    dry_run: bool = False


# ============================================================
# CLIENT FACTORY
# ============================================================

class ClientFactory:
    """
    Factory for creating chain clients.
    """

    _creators: Dict[str, Callable[[ClientConfig], BaseChainClient]] = {}

    @classmethod
    def register(
        cls,
        kind: str,
        creator: Callable[[ClientConfig], BaseChainClient],
    ) -> None:
        """
        Register a client creator.

        Args:
            kind: Client identifier
            creator: Callable building a client from a ClientConfig
        """
        cls._creators[kind.lower()] = creator
        logger.debug(f"Registered chain client: {kind}")

    @classmethod
    def create(
        cls,
        kind: str,
        config: Optional[ClientConfig] = None,
    ) -> BaseChainClient:
        """
        Create a client.

        Raises:
            ValueError: If kind is not registered
        """
        creator = cls._creators.get(kind.lower())
        if creator is None:
            raise ValueError(
                f"Unsupported chain client: {kind}. "
                f"Supported: {', '.join(cls.list_supported())}"
            )
        return creator(config or ClientConfig())

    @classmethod
    def list_supported(cls) -> list[str]:
        return sorted(cls._creators)


def _create_rpc_client(config: ClientConfig) -> BaseChainClient:
    return SolanaRpcClient(
        rpc_url=config.rpc_url,
        cluster=config.cluster,
        commitment=config.commitment,
        timeout=config.request_timeout_seconds,
        confirm_timeout=config.confirm_timeout_seconds,
        poll_interval=config.confirm_poll_interval_seconds,
        max_retries=config.max_retries,
    )


def _create_memory_client(config: ClientConfig) -> BaseChainClient:
    return InMemoryChainClient(commitment=config.commitment)


ClientFactory.register("solana_rpc", _create_rpc_client)
ClientFactory.register("memory", _create_memory_client)


def create_client(config: Optional[ClientConfig] = None) -> BaseChainClient:
    """
    Convenience function: memory ledger for dry runs, RPC client otherwise.
    """
    config = config or ClientConfig()
    kind = "memory" if config.dry_run else "solana_rpc"
    logger.info(
        f"Creating {kind} chain client "
        f"(cluster={config.cluster.value}, commitment={config.commitment.value})"
    )
    return ClientFactory.create(kind, config)
