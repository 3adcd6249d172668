"""
Solana RPC Client Tests.

============================================================
PURPOSE
============================================================
Tests for the aiohttp JSON-RPC client against a fake node served
by aiohttp's test server.

TEST CATEGORIES:
- Result parsing
- Error mapping (HTTP, rate limit, JSON-RPC errors)
- Retries
- Confirmation polling
- Health

============================================================
"""

import base64
from unittest.mock import AsyncMock, patch

import pytest
from aiohttp import test_utils, web

from chain_client import (
    Cluster,
    ClientStatus,
    ConfigurationError,
    ConfirmationTimeoutError,
    RateLimitError,
    RpcRequestError,
    SolanaRpcClient,
    TransactionFailedError,
)


# ============================================================
# FAKE NODE
# ============================================================

class FakeNode:
    """JSON-RPC endpoint with scripted responses per method."""

    def __init__(self):
        self.requests: list[dict] = []
        self.results: dict[str, list] = {}

    def script(self, method: str, *responses) -> None:
        """Queue responses; each is a result, a web.Response, or an error dict."""
        self.results.setdefault(method, []).extend(responses)

    def methods(self) -> list[str]:
        return [r["method"] for r in self.requests]

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.requests.append(body)

        queue = self.results.get(body["method"], [])
        response = queue.pop(0) if len(queue) > 1 else (queue[0] if queue else None)

        if isinstance(response, web.Response):
            return response
        if isinstance(response, dict) and "__error__" in response:
            return web.json_response({
                "jsonrpc": "2.0",
                "id": body["id"],
                "error": response["__error__"],
            })
        return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": response})


async def start_node(node: FakeNode) -> test_utils.TestServer:
    app = web.Application()
    app.router.add_post("/", node.handle)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


def rpc_client(server: test_utils.TestServer, **kwargs) -> SolanaRpcClient:
    kwargs.setdefault("cluster", Cluster.LOCALNET)
    kwargs.setdefault("poll_interval", 0.01)
    return SolanaRpcClient(rpc_url=str(server.make_url("/")), **kwargs)


ADDRESS = "4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T"


# ============================================================
# RESULT PARSING TESTS
# ============================================================

class TestResultParsing:
    """Tests for normalizing RPC results."""

    @pytest.mark.asyncio
    async def test_get_account_info_decodes_base64(self):
        """Test account data is decoded from base64."""
        node = FakeNode()
        node.script("getAccountInfo", {
            "context": {"slot": 1},
            "value": {
                "lamports": 1461600,
                "owner": "11111111111111111111111111111111",
                "data": [base64.b64encode(b"hello").decode(), "base64"],
                "executable": False,
                "rentEpoch": 361,
            },
        })
        server = await start_node(node)
        try:
            async with rpc_client(server) as client:
                info = await client.get_account_info(ADDRESS)
        finally:
            await server.close()

        assert info.data == b"hello"
        assert info.space == 5
        assert info.lamports == 1461600
        assert info.rent_epoch == 361
        params = node.requests[0]["params"]
        assert params[0] == ADDRESS
        assert params[1]["encoding"] == "base64"
        assert params[1]["commitment"] == "confirmed"

    @pytest.mark.asyncio
    async def test_get_account_info_missing(self):
        """Test a null value means the account does not exist."""
        node = FakeNode()
        node.script("getAccountInfo", {"context": {"slot": 1}, "value": None})
        server = await start_node(node)
        try:
            async with rpc_client(server) as client:
                assert await client.get_account_info(ADDRESS) is None
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_signatures_for_address_with_cursor(self):
        """Test the before cursor and limit are sent and entries parsed."""
        node = FakeNode()
        node.script("getSignaturesForAddress", [
            {"signature": "sigB", "slot": 9, "blockTime": 1700000009, "err": None,
             "memo": "[4] METADATA:x", "confirmationStatus": "finalized"},
        ])
        server = await start_node(node)
        try:
            async with rpc_client(server) as client:
                entries = await client.get_signatures_for_address(ADDRESS, limit=5, before="sigA")
        finally:
            await server.close()

        assert entries[0].signature == "sigB"
        assert entries[0].timestamp.year == 2023
        assert entries[0].memo == "[4] METADATA:x"
        config = node.requests[0]["params"][1]
        assert config == {"limit": 5, "commitment": "confirmed", "before": "sigA"}

    @pytest.mark.asyncio
    async def test_get_transaction_reads_logs(self):
        """Test log messages and errors come from meta."""
        node = FakeNode()
        node.script("getTransaction", {
            "slot": 42,
            "blockTime": 1700000042,
            "meta": {"err": None, "logMessages": ["Program log: Memo (len 1): \"x\""]},
            "transaction": {},
        })
        server = await start_node(node)
        try:
            async with rpc_client(server) as client:
                record = await client.get_transaction("sig")
        finally:
            await server.close()

        assert record.slot == 42
        assert record.log_messages == ['Program log: Memo (len 1): "x"']
        assert record.err is None
        assert node.requests[0]["params"][1]["maxSupportedTransactionVersion"] == 0

    @pytest.mark.asyncio
    async def test_send_raw_transaction_base64(self):
        """Test the wire transaction is sent base64-encoded."""
        node = FakeNode()
        node.script("sendTransaction", "5sig")
        server = await start_node(node)
        try:
            async with rpc_client(server) as client:
                signature = await client.send_raw_transaction(b"\x01\x02")
        finally:
            await server.close()

        assert signature == "5sig"
        params = node.requests[0]["params"]
        assert params[0] == base64.b64encode(b"\x01\x02").decode()
        assert params[1]["encoding"] == "base64"


# ============================================================
# ERROR MAPPING TESTS
# ============================================================

class TestErrorMapping:
    """Tests for HTTP and JSON-RPC failures."""

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        """Test HTTP 429 raises RateLimitError without retrying."""
        node = FakeNode()
        node.script("getBalance", web.Response(status=429, headers={"Retry-After": "3"}))
        server = await start_node(node)
        try:
            async with rpc_client(server, max_retries=3) as client:
                with pytest.raises(RateLimitError) as exc_info:
                    await client.get_balance(ADDRESS)
                assert client.get_health().status == ClientStatus.RATE_LIMITED
        finally:
            await server.close()

        assert exc_info.value.retry_after_seconds == 3
        assert node.methods() == ["getBalance"]

    @pytest.mark.asyncio
    async def test_client_error_status_not_retried(self):
        """Test a 4xx response is raised immediately."""
        node = FakeNode()
        node.script("getBalance", web.Response(status=403, text="forbidden"))
        server = await start_node(node)
        try:
            async with rpc_client(server, max_retries=3) as client:
                with pytest.raises(RpcRequestError) as exc_info:
                    await client.get_balance(ADDRESS)
        finally:
            await server.close()

        assert exc_info.value.status_code == 403
        assert exc_info.value.response_body == "forbidden"
        assert len(node.requests) == 1

    @pytest.mark.asyncio
    async def test_json_rpc_error(self):
        """Test a JSON-RPC error object carries its code."""
        node = FakeNode()
        node.script("sendTransaction", {"__error__": {
            "code": -32002,
            "message": "Transaction simulation failed: Blockhash not found",
            "data": {"logs": []},
        }})
        server = await start_node(node)
        try:
            async with rpc_client(server, max_retries=3) as client:
                with pytest.raises(RpcRequestError, match="Blockhash not found") as exc_info:
                    await client.send_raw_transaction(b"\x00")
        finally:
            await server.close()

        assert exc_info.value.rpc_code == -32002
        assert not exc_info.value.is_transport_error()
        assert len(node.requests) == 1

    def test_non_http_url_rejected(self):
        """Test the RPC URL must be http(s)."""
        with pytest.raises(ConfigurationError):
            SolanaRpcClient(rpc_url="ws://127.0.0.1:8900")

    @pytest.mark.asyncio
    async def test_airdrop_refused_on_mainnet(self):
        """Test airdrops are refused before any request on mainnet."""
        client = SolanaRpcClient(cluster=Cluster.MAINNET_BETA)
        with patch.object(client, "_make_request", new=AsyncMock()) as request:
            with pytest.raises(ConfigurationError):
                await client.request_airdrop(ADDRESS, 1)

        request.assert_not_called()
        await client.close()


# ============================================================
# RETRY TESTS
# ============================================================

class TestRetries:
    """Tests for transport retries."""

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        """Test a 5xx response is retried and the next success returned."""
        node = FakeNode()
        node.script(
            "getBalance",
            web.Response(status=503, text="unavailable"),
            {"context": {"slot": 1}, "value": 7},
        )
        server = await start_node(node)
        try:
            async with rpc_client(server, max_retries=2) as client:
                assert await client.get_balance(ADDRESS) == 7
        finally:
            await server.close()

        assert node.methods() == ["getBalance", "getBalance"]

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        """Test the final error reports the attempt count."""
        client = SolanaRpcClient(cluster=Cluster.LOCALNET, max_retries=3)
        transport_error = RpcRequestError(message="Connection error: refused", method="getBalance")

        with patch.object(client, "_make_request", new=AsyncMock(side_effect=transport_error)) as request:
            with patch("chain_client.providers.solana_rpc.asyncio.sleep", new=AsyncMock()):
                with pytest.raises(RpcRequestError, match="failed after 3 attempts") as exc_info:
                    await client.get_balance(ADDRESS)

        assert request.await_count == 3
        assert exc_info.value.original_error is transport_error
        await client.close()

    @pytest.mark.asyncio
    async def test_zero_retries_means_one_attempt(self):
        """Test max_retries below one still makes a single attempt."""
        client = SolanaRpcClient(cluster=Cluster.LOCALNET, max_retries=0)
        transport_error = RpcRequestError(message="Connection error: refused")

        with patch.object(client, "_make_request", new=AsyncMock(side_effect=transport_error)) as request:
            with pytest.raises(RpcRequestError):
                await client.get_balance(ADDRESS)

        assert request.await_count == 1
        await client.close()


# ============================================================
# CONFIRMATION TESTS
# ============================================================

class TestConfirmation:
    """Tests for confirmation polling."""

    @pytest.mark.asyncio
    async def test_polls_until_commitment(self):
        """Test polling continues until the level is reached."""
        node = FakeNode()
        node.script(
            "getSignatureStatuses",
            {"context": {"slot": 1}, "value": [None]},
            {"context": {"slot": 2}, "value": [{"slot": 2, "err": None, "confirmationStatus": "processed"}]},
            {"context": {"slot": 3}, "value": [{"slot": 2, "err": None, "confirmationStatus": "confirmed"}]},
        )
        server = await start_node(node)
        try:
            async with rpc_client(server) as client:
                status = await client.confirm_transaction("sig", timeout=5)
        finally:
            await server.close()

        assert status.confirmation_status == "confirmed"
        assert node.methods().count("getSignatureStatuses") == 3

    @pytest.mark.asyncio
    async def test_failed_transaction(self):
        """Test a landed error raises TransactionFailedError."""
        node = FakeNode()
        node.script("getSignatureStatuses", {"context": {"slot": 1}, "value": [
            {"slot": 1, "err": {"InstructionError": [0, {"Custom": 1}]}, "confirmationStatus": "confirmed"},
        ]})
        server = await start_node(node)
        try:
            async with rpc_client(server) as client:
                with pytest.raises(TransactionFailedError) as exc_info:
                    await client.confirm_transaction("sig")
        finally:
            await server.close()

        assert exc_info.value.signature == "sig"

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test an unseen signature times out."""
        node = FakeNode()
        node.script("getSignatureStatuses", {"context": {"slot": 1}, "value": [None]})
        server = await start_node(node)
        try:
            async with rpc_client(server) as client:
                with pytest.raises(ConfirmationTimeoutError) as exc_info:
                    await client.confirm_transaction("sig", timeout=0.05)
        finally:
            await server.close()

        assert exc_info.value.timeout_seconds == 0.05


# ============================================================
# HEALTH TESTS
# ============================================================

class TestHealth:
    """Tests for health checks."""

    @pytest.mark.asyncio
    async def test_healthy(self):
        """Test getHealth success marks the client healthy."""
        node = FakeNode()
        node.script("getHealth", "ok")
        server = await start_node(node)
        try:
            async with rpc_client(server) as client:
                health = await client.health_check()
        finally:
            await server.close()

        assert health.is_healthy()
        assert health.latency_ms is not None

    @pytest.mark.asyncio
    async def test_unavailable_does_not_raise(self):
        """Test an RPC error marks the client unavailable."""
        node = FakeNode()
        node.script("getHealth", {"__error__": {"code": -32005, "message": "Node is behind"}})
        server = await start_node(node)
        try:
            async with rpc_client(server) as client:
                health = await client.health_check()
        finally:
            await server.close()

        assert health.status == ClientStatus.UNAVAILABLE
        assert "Node is behind" in health.last_error
