"""
Solana JSON-RPC Client - aiohttp transport for a Solana RPC node.

Speaks JSON-RPC 2.0 over HTTP POST. Public endpoints:
- devnet:       https://api.devnet.solana.com
- testnet:      https://api.testnet.solana.com
- mainnet-beta: https://api.mainnet-beta.solana.com

Public endpoints are rate limited (HTTP 429). Transport failures are
retried a bounded number of times; JSON-RPC errors are returned to the
caller immediately.
"""

import asyncio
import base64
import itertools
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from chain_client.base import BaseChainClient
from chain_client.exceptions import (
    ChainClientError,
    ConfigurationError,
    RateLimitError,
    RpcRequestError,
)
from chain_client.models import (
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


logger = logging.getLogger(__name__)


class SolanaRpcClient(BaseChainClient):
    """
    Solana RPC node client.

    Owns its aiohttp session unless one is injected; use as an async
    context manager or call close() when done.
    """

    DEFAULT_TIMEOUT = 30.0
    MAX_RETRIES = 2
    RETRY_BACKOFF_BASE = 1.5

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        cluster: Cluster = Cluster.DEVNET,
        commitment: Commitment = Commitment.CONFIRMED,
        timeout: float = DEFAULT_TIMEOUT,
        confirm_timeout: float = BaseChainClient.DEFAULT_CONFIRM_TIMEOUT,
        poll_interval: float = BaseChainClient.DEFAULT_POLL_INTERVAL,
        max_retries: int = MAX_RETRIES,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(commitment, confirm_timeout, poll_interval)
        self._rpc_url = rpc_url or cluster.default_rpc_url
        if not self._rpc_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                message=f"RPC URL must be http(s): {self._rpc_url}",
                config_key="rpc_url",
            )
        self._cluster = cluster
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._session = session
        self._owns_session = session is None
        self._request_ids = itertools.count(1)

    @property
    def name(self) -> str:
        """Unique identifier."""
        return "solana_rpc"

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    @property
    def cluster(self) -> Cluster:
        return self._cluster

    # ─────────────────────────────────────────────────────────────
    # RPC methods
    # ─────────────────────────────────────────────────────────────

    async def get_minimum_balance_for_rent_exemption(
        self,
        space: int,
        commitment: Optional[Commitment] = None,
    ) -> int:
        """getMinimumBalanceForRentExemption."""
        result = await self._call(
            "getMinimumBalanceForRentExemption",
            [space, self._commitment_config(commitment)],
        )
        return int(result)

    async def get_latest_blockhash(
        self,
        commitment: Optional[Commitment] = None,
    ) -> BlockhashInfo:
        """getLatestBlockhash."""
        result = await self._call(
            "getLatestBlockhash",
            [self._commitment_config(commitment)],
        )
        value = result["value"]
        return BlockhashInfo(
            blockhash=value["blockhash"],
            last_valid_block_height=value["lastValidBlockHeight"],
        )

    async def send_raw_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
    ) -> str:
        """sendTransaction with a base64 wire transaction."""
        encoded = base64.b64encode(raw_transaction).decode("ascii")
        return await self._call(
            "sendTransaction",
            [
                encoded,
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": self._commitment.value,
                },
            ],
        )

    async def get_signature_statuses(
        self,
        signatures: list[str],
    ) -> list[Optional[SignatureStatus]]:
        """getSignatureStatuses."""
        result = await self._call(
            "getSignatureStatuses",
            [signatures, {"searchTransactionHistory": False}],
        )
        return [
            SignatureStatus.from_rpc(entry) if entry else None
            for entry in result["value"]
        ]

    async def get_account_info(
        self,
        address: str,
        commitment: Optional[Commitment] = None,
    ) -> Optional[AccountInfo]:
        """getAccountInfo with base64 data encoding."""
        config = self._commitment_config(commitment)
        config["encoding"] = "base64"
        result = await self._call("getAccountInfo", [address, config])

        value = result.get("value")
        if value is None:
            return None

        raw_data = value.get("data") or ["", "base64"]
        return AccountInfo(
            lamports=value["lamports"],
            owner=value["owner"],
            data=base64.b64decode(raw_data[0]),
            executable=value.get("executable", False),
            rent_epoch=value.get("rentEpoch"),
        )

    async def get_signatures_for_address(
        self,
        address: str,
        limit: int = 20,
        before: Optional[str] = None,
    ) -> list[SignatureInfo]:
        """getSignaturesForAddress, newest first."""
        config: dict[str, Any] = {
            "limit": limit,
            "commitment": self._commitment.value,
        }
        if before:
            config["before"] = before

        result = await self._call("getSignaturesForAddress", [address, config])
        return [SignatureInfo.from_rpc(entry) for entry in result]

    async def get_transaction(
        self,
        signature: str,
    ) -> Optional[TransactionRecord]:
        """getTransaction (json encoding, v0 transactions allowed)."""
        result = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": self._commitment.value,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is None:
            return None
        return TransactionRecord.from_rpc(signature, result)

    async def get_balance(self, address: str) -> int:
        """getBalance."""
        result = await self._call(
            "getBalance",
            [address, self._commitment_config(None)],
        )
        return int(result["value"])

    async def request_airdrop(self, address: str, lamports: int) -> str:
        """requestAirdrop (devnet/testnet/localnet only)."""
        if not self._cluster.supports_airdrop:
            raise ConfigurationError(
                message=f"Airdrops are not available on {self._cluster.value}",
                config_key="cluster",
            )
        return await self._call(
            "requestAirdrop",
            [address, lamports, self._commitment_config(None)],
        )

    async def health_check(self) -> ClientHealth:
        """Check node health via getHealth."""
        start_time = time.time()
        try:
            await self._call("getHealth", [])
            latency_ms = (time.time() - start_time) * 1000

            self._health.status = ClientStatus.HEALTHY
            self._health.last_check = datetime.now(timezone.utc)
            self._health.latency_ms = latency_ms

            logger.debug(f"[{self.name}] Health check OK, latency={latency_ms:.1f}ms")

        except ChainClientError as e:
            latency_ms = (time.time() - start_time) * 1000

            self._health.status = ClientStatus.UNAVAILABLE
            self._health.last_check = datetime.now(timezone.utc)
            self._health.latency_ms = latency_ms
            self._health.last_error = str(e)
            self._health.last_error_time = datetime.now(timezone.utc)

            logger.warning(f"[{self.name}] Health check FAILED: {e}")

        return self._health

    # ─────────────────────────────────────────────────────────────
    # JSON-RPC transport
    # ─────────────────────────────────────────────────────────────

    def _commitment_config(self, commitment: Optional[Commitment]) -> dict[str, Any]:
        return {"commitment": (commitment or self._commitment).value}

    async def _call(self, method: str, params: list[Any]) -> Any:
        """Call an RPC method with limited retries on transport failures."""
        last_error: Optional[ChainClientError] = None

        for attempt in range(self._max_retries):
            try:
                result = await self._make_request(method, params)
                return result

            except RateLimitError as e:
                # Don't retry on rate limit - surface immediately
                self._on_error(e)
                raise

            except RpcRequestError as e:
                self._on_error(e)
                if not e.is_transport_error():
                    raise

                last_error = e
                if attempt + 1 < self._max_retries:
                    wait_time = self.RETRY_BACKOFF_BASE ** attempt
                    logger.warning(
                        f"[{self.name}] {method} retry {attempt + 1}/{self._max_retries} "
                        f"in {wait_time:.1f}s: {e}"
                    )
                    await asyncio.sleep(wait_time)

        raise RpcRequestError(
            message=f"{method} failed after {self._max_retries} attempts",
            endpoint=self._rpc_url,
            method=method,
            original_error=last_error,
        )

    async def _make_request(self, method: str, params: list[Any]) -> Any:
        """POST one JSON-RPC request and unwrap its result."""
        session = await self._get_session()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }

        start_time = time.time()
        try:
            async with session.post(self._rpc_url, json=payload) as response:
                latency_ms = (time.time() - start_time) * 1000

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        message="Rate limit exceeded",
                        endpoint=self._rpc_url,
                        method=method,
                        retry_after_seconds=int(retry_after) if retry_after else 10,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise RpcRequestError(
                        message=f"HTTP {response.status}",
                        endpoint=self._rpc_url,
                        method=method,
                        status_code=response.status,
                        response_body=body[:500],
                    )

                body = await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise RpcRequestError(
                message=f"Connection error: {e}",
                endpoint=self._rpc_url,
                method=method,
                original_error=e,
            )
        except asyncio.TimeoutError as e:
            raise RpcRequestError(
                message=f"Request timed out after {self._timeout:.1f}s",
                endpoint=self._rpc_url,
                method=method,
                original_error=e,
            )

        error = body.get("error")
        if error:
            raise RpcRequestError(
                message=error.get("message", "RPC error"),
                endpoint=self._rpc_url,
                method=method,
                rpc_code=error.get("code"),
                response_body=str(error.get("data"))[:500] if error.get("data") else None,
                context={"data": error.get("data")},
            )

        self._on_success(latency_ms)
        return body.get("result")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={
                    "Accept": "application/json",
                    "User-Agent": "SolanaMetadataStorage/1.0",
                },
            )
            self._owns_session = True
        return self._session

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
