"""
Pytest configuration and fixtures.
"""
import asyncio
import copy
import json
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from orderfeed.core.exceptions import OrderNotFoundException
from orderfeed.main import create_app
from orderfeed.models.order import ORDER_ID
from orderfeed.services.realtime.backend import (
    OrderBackend,
    RawEventHandler,
    Unsubscribe,
    collection_channel,
    document_channel,
)
from orderfeed.services.realtime.connection_manager import ChannelConnectionManager
from orderfeed.services.realtime.service import RealtimeService


DATABASE_ID = "test-db"
COLLECTION_ID = "orders"


class FakeOrderBackend(OrderBackend):
    """
    In-memory order collection.

    Understands the equal / limit query strings, hands out
    deep copies so snapshots never alias the stored documents, and pushes
    events to realtime handlers on demand.
    """

    def __init__(self, orders: Optional[list[dict]] = None):
        self.orders: dict[str, dict] = {}
        for order in orders or []:
            self.add(order)
        self.handlers: list[tuple[list[str], RawEventHandler]] = []
        self.list_calls: list[list[str]] = []
        self.get_calls: list[str] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.healthy = True

    # -- data helpers --

    def add(self, order: dict) -> None:
        self.orders[order[ORDER_ID]] = copy.deepcopy(order)

    def update(self, order_id: str, **fields) -> dict:
        updated = {**self.orders[order_id], **fields}
        self.orders[order_id] = updated
        return copy.deepcopy(updated)

    def remove(self, order_id: str) -> dict:
        return self.orders.pop(order_id)

    # -- OrderBackend --

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def list_documents(self, database_id, collection_id, queries):
        self.list_calls.append(list(queries))
        await self._wait()

        matches = list(self.orders.values())
        limit = None
        for raw in queries:
            query = json.loads(raw)
            method = query["method"]
            if method == "limit":
                limit = query["values"][0]
            elif method == "equal":
                attr, values = query["attribute"], query["values"]
                matches = [o for o in matches if o.get(attr) in values]
        if limit is not None:
            matches = matches[:limit]
        return copy.deepcopy(matches)

    async def get_document(self, database_id, collection_id, document_id):
        self.get_calls.append(document_id)
        await self._wait()
        if document_id not in self.orders:
            raise OrderNotFoundException(document_id)
        return copy.deepcopy(self.orders[document_id])

    def subscribe(self, channels, handler) -> Unsubscribe:
        entry = (list(channels), handler)
        self.handlers.append(entry)

        def unsubscribe() -> None:
            if entry in self.handlers:
                self.handlers.remove(entry)

        return unsubscribe

    async def health_check(self) -> bool:
        return self.healthy

    # -- realtime --

    async def push(self, action: str, order: dict) -> None:
        """Emit a ``create`` / ``update`` / ``delete`` event for ``order``."""
        doc_channel = document_channel(DATABASE_ID, COLLECTION_ID, order[ORDER_ID])
        envelope = {
            "events": [
                f"{doc_channel}.{action}",
                f"databases.*.collections.*.documents.*.{action}",
            ],
            "payload": copy.deepcopy(order),
        }
        for channels, handler in list(self.handlers):
            if collection_channel(DATABASE_ID, COLLECTION_ID) in channels or doc_channel in channels:
                await handler(envelope)


def make_order(
    order_id: str,
    status: str = "pending",
    customer_id: str = "C1",
    restaurant_id: str = "R1",
    driver_id: Optional[str] = None,
    **extra,
) -> dict:
    """Build an order document."""
    order = {
        "$id": order_id,
        "customerId": customer_id,
        "restaurantId": restaurant_id,
        "status": status,
        "total": 42.5,
        "deliveryAddress": "12 Main St",
    }
    if driver_id is not None:
        order["deliveryAgentId"] = driver_id
    order.update(extra)
    return order


class Recorder:
    """Callback that remembers every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def summary(self) -> list[tuple[str, str]]:
        return [(e.type.value, e.order["$id"]) for e in self.events]


async def poll(service: RealtimeService, channel_id: str) -> None:
    """Run one polling cycle for an active channel right away."""
    await service._subscriptions[channel_id].transport.poll_once()


# Sample data fixtures
@pytest.fixture
def backend() -> FakeOrderBackend:
    """Empty in-memory backend."""
    return FakeOrderBackend()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def sample_orders() -> list[dict]:
    """A few orders across two restaurants and two customers."""
    return [
        make_order("O1", status="pending", customer_id="C1", restaurant_id="R1"),
        make_order("O2", status="preparing", customer_id="C2", restaurant_id="R1"),
        make_order("O3", status="ready", customer_id="C1", restaurant_id="R2"),
        make_order("O4", status="picked_up", customer_id="C2", restaurant_id="R2", driver_id="D1"),
    ]


@pytest.fixture
def native_service(backend: FakeOrderBackend) -> RealtimeService:
    """Service using the push transport."""
    return RealtimeService(
        backend,
        use_native=True,
        database_id=DATABASE_ID,
        collection_id=COLLECTION_ID,
    )


@pytest_asyncio.fixture(scope="function")
async def polling_service(backend: FakeOrderBackend) -> AsyncGenerator[RealtimeService, None]:
    """Service using the polling fallback with a period long enough to drive cycles by hand."""
    service = RealtimeService(
        backend,
        use_native=False,
        database_id=DATABASE_ID,
        collection_id=COLLECTION_ID,
        list_interval=3600,
        order_interval=3600,
    )
    yield service
    service.unsubscribe_all()


@pytest.fixture
def app(backend: FakeOrderBackend):
    """Application wired to the in-memory backend, without running the lifespan."""
    application = create_app(backend=backend)
    application.state.realtime_service = RealtimeService(
        backend,
        use_native=True,
        database_id=DATABASE_ID,
        collection_id=COLLECTION_ID,
    )
    application.state.connection_manager = ChannelConnectionManager(max_connections_per_channel=2)
    return application


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the test application."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.state.realtime_service.unsubscribe_all()
