"""
Metadata Storage API Endpoints.

============================================================
PURPOSE
============================================================
HTTP API over a StorageSession: the actions of the storage page
(wallet connect/disconnect, store, retrieve, dismiss banner) and
its rendered state.

RESPONSES:
- Success: {"status": "ok", "data": ..., "state": ...}
- Failure: {"status": "error", "error": ..., "category": ...}

============================================================
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from aiohttp import web
from pydantic import ValidationError as SchemaValidationError

from metadata_storage.errors import ErrorCategory, MetadataStorageError
from metadata_storage.schemas import (
    SessionStateResponse,
    StorageResultResponse,
    StoredMetadataResponse,
    StoreRequest,
)
from metadata_storage.session import SessionBusyError, StorageSession, format_content


logger = logging.getLogger(__name__)


STATUS_BY_CATEGORY = {
    ErrorCategory.INPUT_VALIDATION: 400,
    ErrorCategory.CAPABILITY_MISSING: 401,
    ErrorCategory.CAPABILITY_DENIED: 403,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.NETWORK: 502,
    ErrorCategory.PARTIAL_WRITE: 502,
}


# ============================================================
# JSON ENCODER
# ============================================================

class StorageEncoder(json.JSONEncoder):
    """JSON encoder for storage responses."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if hasattr(obj, 'value'):  # Enums
            return obj.value
        return super().default(obj)


def json_response(data: Any, status: int = 200) -> web.Response:
    """Create JSON response."""
    return web.Response(
        text=json.dumps(data, cls=StorageEncoder, indent=2),
        status=status,
        content_type="application/json",
    )


def error_response(
    message: str,
    category: Optional[ErrorCategory],
    status: Optional[int] = None,
) -> web.Response:
    if status is None:
        status = STATUS_BY_CATEGORY.get(category, 500)
    return json_response({
        "status": "error",
        "error": message,
        "category": category.value if category else None,
    }, status=status)


# ============================================================
# API HANDLERS
# ============================================================

class StorageAPI:
    """
    HTTP API for one storage session.
    """

    def __init__(self, session: StorageSession):
        """Initialize API."""
        self._session = session

    def _state(self) -> dict[str, Any]:
        return SessionStateResponse.model_validate(self._session.snapshot()).model_dump(mode="json")

    def _failure(self) -> web.Response:
        error = self._session.last_error
        message = self._session.message.text if self._session.message else "Request failed"
        if error is None:
            return error_response(message, None, status=500)
        return error_response(message, error.category)

    # --------------------------------------------------------
    # STATUS ENDPOINTS
    # --------------------------------------------------------

    async def get_health(self, request: web.Request) -> web.Response:
        """
        GET /health

        Service and chain client health.
        """
        try:
            health = await self._session.service.health()
            return json_response({"status": "ok", "data": health})
        except Exception as e:
            logger.error(f"Error getting health: {e}")
            return json_response({
                "status": "error",
                "error": str(e),
            }, status=500)

    async def get_state(self, request: web.Request) -> web.Response:
        """
        GET /state

        Current session state.
        """
        return json_response({"status": "ok", "data": self._state()})

    async def dismiss_message(self, request: web.Request) -> web.Response:
        """
        DELETE /message

        Clear the status banner.
        """
        self._session.dismiss_message()
        return json_response({"status": "ok", "data": self._state()})

    # --------------------------------------------------------
    # WALLET ENDPOINTS
    # --------------------------------------------------------

    async def connect_wallet(self, request: web.Request) -> web.Response:
        """
        POST /wallet/connect
        """
        if not await self._session.connect_wallet():
            return self._failure()
        return json_response({
            "status": "ok",
            "data": {"public_key": self._session.public_key},
            "state": self._state(),
        })

    async def disconnect_wallet(self, request: web.Request) -> web.Response:
        """
        POST /wallet/disconnect
        """
        if not await self._session.disconnect_wallet():
            return self._failure()
        return json_response({"status": "ok", "data": None, "state": self._state()})

    # --------------------------------------------------------
    # METADATA ENDPOINTS
    # --------------------------------------------------------

    async def store_metadata(self, request: web.Request) -> web.Response:
        """
        POST /metadata

        Body: {"content": "...", "type": "text" | "json"}
        """
        try:
            body = await request.json()
            store_request = StoreRequest.model_validate(body)
        except (json.JSONDecodeError, SchemaValidationError) as e:
            return error_response(f"Invalid request body: {e}", ErrorCategory.INPUT_VALIDATION)

        try:
            result = await self._session.store(store_request.to_form())
        except SessionBusyError as e:
            return error_response(str(e), None, status=409)

        if result is None:
            return self._failure()
        return json_response({
            "status": "ok",
            "data": StorageResultResponse.model_validate(result.to_dict()).model_dump(mode="json"),
            "state": self._state(),
        }, status=201)

    async def retrieve_metadata(self, request: web.Request) -> web.Response:
        """
        GET /metadata/{address}
        """
        address = request.match_info["address"]
        try:
            record = await self._session.retrieve(address)
        except SessionBusyError as e:
            return error_response(str(e), None, status=409)

        if record is None:
            return self._failure()

        data = record.to_dict()
        data["formatted_content"] = format_content(record.content)
        return json_response({
            "status": "ok",
            "data": StoredMetadataResponse.model_validate(data).model_dump(mode="json"),
            "state": self._state(),
        })


# ============================================================
# APPLICATION
# ============================================================

def create_storage_app(
    session: StorageSession,
    close_client: bool = True,
) -> web.Application:
    """
    Create the web application for a session.

    Args:
        session: Storage session to expose
        close_client: Close the chain client when the app shuts down
    """
    api = StorageAPI(session)
    app = web.Application()

    app.router.add_get("/health", api.get_health)
    app.router.add_get("/state", api.get_state)
    app.router.add_post("/wallet/connect", api.connect_wallet)
    app.router.add_post("/wallet/disconnect", api.disconnect_wallet)
    app.router.add_post("/metadata", api.store_metadata)
    app.router.add_get("/metadata/{address}", api.retrieve_metadata)
    app.router.add_delete("/message", api.dismiss_message)

    if close_client:
        async def _close_client(app: web.Application) -> None:
            await session.service.client.close()
            logger.info("Chain client closed")

        app.on_cleanup.append(_close_client)

    return app
