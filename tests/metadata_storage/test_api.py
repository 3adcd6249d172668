"""
Metadata Storage API Tests.

============================================================
PURPOSE
============================================================
Tests for the HTTP API over a storage session, using aiohttp's
test client against the in-memory ledger.

TEST CATEGORIES:
- Status endpoints
- Wallet endpoints
- Metadata endpoints and error statuses

============================================================
"""

import pytest
from aiohttp import test_utils
from solders.keypair import Keypair

from chain_client import LAMPORTS_PER_SOL, InMemoryChainClient
from metadata_storage.api import create_storage_app
from metadata_storage.config import StorageConfig
from metadata_storage.service import MetadataStorageService
from metadata_storage.session import StorageSession
from wallet import KeypairWallet


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def client():
    return InMemoryChainClient()


@pytest.fixture
def session(client):
    keypair = Keypair()
    client.fund(str(keypair.pubkey()), 10 * LAMPORTS_PER_SOL)
    service = MetadataStorageService(client, KeypairWallet(keypair), StorageConfig.for_testing())
    return StorageSession(service)


def api_client(session: StorageSession) -> test_utils.TestClient:
    app = create_storage_app(session, close_client=False)
    return test_utils.TestClient(test_utils.TestServer(app))


# ============================================================
# STATUS ENDPOINT TESTS
# ============================================================

class TestStatusEndpoints:
    """Tests for /health and /state."""

    @pytest.mark.asyncio
    async def test_health(self, session):
        """Test GET /health."""
        async with api_client(session) as http:
            response = await http.get("/health")
            body = await response.json()

        assert response.status == 200
        assert body["status"] == "ok"
        assert body["data"]["client"] == "memory"
        assert body["data"]["wallet"] == "disconnected"

    @pytest.mark.asyncio
    async def test_initial_state(self, session):
        """Test GET /state before any action."""
        async with api_client(session) as http:
            response = await http.get("/state")
            body = await response.json()

        assert response.status == 200
        assert body["data"]["wallet_connected"] is False
        assert body["data"]["message"] is None


# ============================================================
# WALLET ENDPOINT TESTS
# ============================================================

class TestWalletEndpoints:
    """Tests for /wallet/*."""

    @pytest.mark.asyncio
    async def test_connect_disconnect(self, session):
        """Test connecting and disconnecting."""
        async with api_client(session) as http:
            connected = await http.post("/wallet/connect")
            connected_body = await connected.json()
            disconnected = await http.post("/wallet/disconnect")
            disconnected_body = await disconnected.json()

        assert connected.status == 200
        assert connected_body["data"]["public_key"] == connected_body["state"]["public_key"]
        assert connected_body["state"]["wallet_connected"] is True
        assert connected_body["state"]["message"]["type"] == "success"
        assert disconnected.status == 200
        assert disconnected_body["state"]["wallet_connected"] is False

    @pytest.mark.asyncio
    async def test_connect_without_wallet(self, client):
        """Test connecting with no wallet is 401."""
        session = StorageSession(MetadataStorageService(client, None, StorageConfig.for_testing()))

        async with api_client(session) as http:
            response = await http.post("/wallet/connect")
            body = await response.json()

        assert response.status == 401
        assert body["status"] == "error"
        assert body["category"] == "CAPABILITY_MISSING"

    @pytest.mark.asyncio
    async def test_connect_rejected(self, client):
        """Test a declined connection is 403."""
        wallet = KeypairWallet(Keypair(), approve=lambda action, detail: False)
        session = StorageSession(MetadataStorageService(client, wallet, StorageConfig.for_testing()))

        async with api_client(session) as http:
            response = await http.post("/wallet/connect")
            body = await response.json()

        assert response.status == 403
        assert body["category"] == "CAPABILITY_DENIED"


# ============================================================
# METADATA ENDPOINT TESTS
# ============================================================

class TestMetadataEndpoints:
    """Tests for /metadata."""

    @pytest.mark.asyncio
    async def test_store_and_retrieve(self, session):
        """Test POST then GET returns the payload."""
        async with api_client(session) as http:
            await http.post("/wallet/connect")
            stored = await http.post("/metadata", json={"content": '{"k": "v"}', "type": "json"})
            stored_body = await stored.json()
            address = stored_body["data"]["account_address"]

            fetched = await http.get(f"/metadata/{address}")
            fetched_body = await fetched.json()

        assert stored.status == 201
        assert stored_body["status"] == "ok"
        assert stored_body["data"]["content"] == '{"k": "v"}'
        assert stored_body["state"]["message"]["text"].startswith("Metadata stored successfully!")
        assert fetched.status == 200
        assert fetched_body["data"]["content"] == '{"k": "v"}'
        assert fetched_body["data"]["formatted_content"] == '{\n  "k": "v"\n}'
        assert fetched_body["data"]["transaction_signature"] == stored_body["data"]["memo_signature"]

    @pytest.mark.asyncio
    async def test_store_without_connection(self, session, client):
        """Test storing before connecting is 401 and sends nothing."""
        async with api_client(session) as http:
            response = await http.post("/metadata", json={"content": "hello"})
            body = await response.json()

        assert response.status == 401
        assert body["error"] == "Please connect your wallet first"
        assert client.call_count("sendTransaction") == 0

    @pytest.mark.asyncio
    async def test_store_invalid_json_content(self, session):
        """Test malformed JSON content is 400."""
        async with api_client(session) as http:
            await http.post("/wallet/connect")
            response = await http.post("/metadata", json={"content": "{", "type": "json"})
            body = await response.json()

        assert response.status == 400
        assert body["error"] == "Invalid JSON format"
        assert body["category"] == "INPUT_VALIDATION"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        "not json at all",
        '{"type": "text"}',
        '{"content": "x", "type": "xml"}',
    ])
    async def test_store_bad_body(self, session, payload):
        """Test unparseable or invalid request bodies are 400."""
        async with api_client(session) as http:
            response = await http.post(
                "/metadata",
                data=payload,
                headers={"Content-Type": "application/json"},
            )
            body = await response.json()

        assert response.status == 400
        assert body["error"].startswith("Invalid request body")

    @pytest.mark.asyncio
    async def test_retrieve_invalid_address(self, session, client):
        """Test a malformed address is 400 with no RPC call."""
        async with api_client(session) as http:
            response = await http.get("/metadata/not-an-address")
            body = await response.json()

        assert response.status == 400
        assert body["error"].startswith("Invalid account address")
        assert client.call_count() == 0

    @pytest.mark.asyncio
    async def test_retrieve_missing_account(self, session):
        """Test an unknown account is 404."""
        async with api_client(session) as http:
            response = await http.get(f"/metadata/{Keypair().pubkey()}")
            body = await response.json()

        assert response.status == 404
        assert body["error"] == "Account not found"
        assert body["category"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_busy_session(self, session):
        """Test a request during another is 409."""
        session.loading = True

        async with api_client(session) as http:
            response = await http.get(f"/metadata/{Keypair().pubkey()}")

        assert response.status == 409

    @pytest.mark.asyncio
    async def test_dismiss_message(self, session):
        """Test DELETE /message clears the banner."""
        async with api_client(session) as http:
            await http.post("/wallet/connect")
            response = await http.delete("/message")
            body = await response.json()

        assert response.status == 200
        assert body["data"]["message"] is None
        assert body["data"]["wallet_connected"] is True
