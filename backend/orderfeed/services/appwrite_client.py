"""
Appwrite client for order documents and realtime events.

Features:
- REST document reads (list with query filters, get by id)
- Realtime change feed over WebSocket with heartbeat and reconnect
- Request metrics per operation
"""
import asyncio
import inspect
import json
import logging
from typing import Any, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

import httpx
from websockets.asyncio.client import connect

from orderfeed.core.config import settings
from orderfeed.core.exceptions import BackendException, OrderNotFoundException
from orderfeed.core.metrics import track_external_request
from orderfeed.services.realtime.backend import (
    OrderBackend,
    Query,
    RawEventHandler,
    Unsubscribe,
)

logger = logging.getLogger(__name__)


class AppwriteBackend(OrderBackend):
    """
    Order backend backed by an Appwrite project.

    Reads go through the REST API with a server key. Each realtime
    subscription holds its own WebSocket connection, reconnecting after a
    fixed delay when the connection drops.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        project_id: Optional[str] = None,
        api_key: Optional[str] = None,
        reconnect_delay: Optional[float] = None,
        heartbeat_interval: Optional[float] = None,
    ):
        self.endpoint = (endpoint or settings.APPWRITE_ENDPOINT).rstrip("/")
        self.project_id = project_id if project_id is not None else settings.APPWRITE_PROJECT_ID
        self.api_key = api_key if api_key is not None else settings.APPWRITE_API_KEY
        self.reconnect_delay = reconnect_delay or settings.REALTIME_RECONNECT_SECONDS
        self.heartbeat_interval = heartbeat_interval or settings.REALTIME_HEARTBEAT_SECONDS
        self.timeout = httpx.Timeout(
            settings.APPWRITE_TIMEOUT_SECONDS,
            connect=settings.APPWRITE_CONNECT_TIMEOUT_SECONDS,
        )
        self._listeners: set[asyncio.Task] = set()

    @property
    def headers(self) -> dict:
        headers = {
            "Content-Type": "application/json",
            "X-Appwrite-Project": self.project_id,
        }
        if self.api_key:
            headers["X-Appwrite-Key"] = self.api_key
        return headers

    # ------------------------------------------------------------------
    # REST
    # ------------------------------------------------------------------

    async def _request(
        self,
        path: str,
        params: Optional[dict] = None,
        operation: str = "request",
    ) -> dict:
        """
        GET an Appwrite REST resource.

        Raises:
            BackendException: On network failure or an error response
        """
        url = f"{self.endpoint}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
                response = await client.get(url, params=params)
        except httpx.RequestError as e:
            raise BackendException(f"Appwrite {operation} network error: {e}")

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise BackendException(
                body.get("message") or f"Appwrite {operation} failed",
                status_code=response.status_code,
                backend_type=body.get("type"),
            )

        return response.json()

    @track_external_request("appwrite", "list_documents")
    async def list_documents(
        self,
        database_id: str,
        collection_id: str,
        queries: list[str],
    ) -> list[dict]:
        data = await self._request(
            f"/databases/{database_id}/collections/{collection_id}/documents",
            params={"queries[]": queries} if queries else None,
            operation="list_documents",
        )
        return data.get("documents", [])

    @track_external_request("appwrite", "get_document")
    async def get_document(
        self,
        database_id: str,
        collection_id: str,
        document_id: str,
    ) -> dict:
        try:
            return await self._request(
                f"/databases/{database_id}/collections/{collection_id}/documents/{document_id}",
                operation="get_document",
            )
        except BackendException as e:
            if e.backend_status == 404:
                raise OrderNotFoundException(document_id)
            raise

    async def health_check(self) -> bool:
        """Check that the orders collection is readable."""
        try:
            await self.list_documents(
                settings.APPWRITE_DATABASE_ID,
                settings.APPWRITE_ORDERS_COLLECTION_ID,
                [Query.limit(1)],
            )
            return True
        except BackendException as e:
            logger.warning(f"Appwrite health check failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------

    def realtime_url(self, channels: list[str]) -> str:
        """wss://host/v1/realtime?project=...&channels[]=..."""
        parts = urlsplit(self.endpoint)
        scheme = "wss" if parts.scheme == "https" else "ws"
        query = urlencode(
            [("project", self.project_id)] + [("channels[]", c) for c in channels]
        )
        return urlunsplit((scheme, parts.netloc, f"{parts.path}/realtime", query, ""))

    def subscribe(self, channels: list[str], handler: RawEventHandler) -> Unsubscribe:
        task = asyncio.create_task(self._listen(channels, handler), name="appwrite-realtime")
        self._listeners.add(task)
        task.add_done_callback(self._listeners.discard)

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def _listen(self, channels: list[str], handler: RawEventHandler) -> None:
        url = self.realtime_url(channels)

        while True:
            try:
                async with connect(url) as websocket:
                    heartbeat = asyncio.create_task(self._heartbeat(websocket))
                    try:
                        async for raw in websocket:
                            await self._dispatch(raw, handler)
                    finally:
                        heartbeat.cancel()
                logger.info("Appwrite realtime connection closed")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Appwrite realtime connection error: {e}")

            logger.info(f"Reconnecting to Appwrite realtime in {self.reconnect_delay}s...")
            await asyncio.sleep(self.reconnect_delay)

    async def _dispatch(self, raw: Any, handler: RawEventHandler) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring non-JSON realtime frame")
            return

        msg_type = message.get("type")
        data = message.get("data") or {}

        if msg_type == "event":
            result = handler({"events": data.get("events"), "payload": data.get("payload")})
            if inspect.isawaitable(result):
                await result
        elif msg_type == "connected":
            logger.info(f"Appwrite realtime connected: {data.get('channels')}")
        elif msg_type == "error":
            logger.warning(f"Appwrite realtime error {data.get('code')}: {data.get('message')}")

    async def _heartbeat(self, websocket) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            await websocket.send(json.dumps({"type": "ping"}))

    async def close(self) -> None:
        """Cancel every realtime listener."""
        for task in list(self._listeners):
            task.cancel()
        await asyncio.gather(*self._listeners, return_exceptions=True)
        self._listeners.clear()
