"""
Tests for the push transport adapter.
"""
import pytest

from orderfeed.services.realtime.backend import collection_channel, document_channel
from orderfeed.services.realtime.events import ChangeType
from orderfeed.services.realtime.native import NativeSubscriber
from orderfeed.services.realtime.routing import Channel

from conftest import COLLECTION_ID, DATABASE_ID, make_order


def _subscriber(kind: str, key: str, backend, delivered: list) -> NativeSubscriber:
    async def deliver(event):
        delivered.append(event)

    return NativeSubscriber(
        Channel.parse(kind, key),
        backend,
        deliver,
        database_id=DATABASE_ID,
        collection_id=COLLECTION_ID,
    )


class TestBackendChannels:
    """Tests for backend channel selection."""

    def test_list_kinds_use_collection_channel(self, backend):
        for kind in ("restaurant", "customer", "driver"):
            subscriber = _subscriber(kind, "K", backend, [])
            assert subscriber.backend_channels == [
                "databases.test-db.collections.orders.documents"
            ]

    def test_order_uses_document_channel(self, backend):
        subscriber = _subscriber("order", "O1", backend, [])
        assert subscriber.backend_channels == [
            "databases.test-db.collections.orders.documents.O1"
        ]

    def test_channel_helpers(self):
        assert collection_channel("db", "col") == "databases.db.collections.col.documents"
        assert document_channel("db", "col", "x") == "databases.db.collections.col.documents.x"


class TestNativeSubscriber:
    """Tests for envelope handling."""

    @pytest.mark.asyncio
    async def test_start_registers_with_backend(self, backend):
        subscriber = _subscriber("restaurant", "R1", backend, [])
        subscriber.start()

        assert len(backend.handlers) == 1
        assert backend.handlers[0][0] == subscriber.backend_channels

    @pytest.mark.asyncio
    async def test_events_are_classified_and_forwarded(self, backend):
        delivered = []
        subscriber = _subscriber("restaurant", "R1", backend, delivered)
        subscriber.start()

        order = make_order("O1")
        await backend.push("create", order)
        await backend.push("update", {**order, "status": "accepted"})
        await backend.push("delete", order)

        assert [e.type for e in delivered] == [
            ChangeType.CREATE,
            ChangeType.UPDATE,
            ChangeType.DELETE,
        ]
        assert delivered[1].order["status"] == "accepted"
        assert subscriber.received == 3

    @pytest.mark.asyncio
    async def test_malformed_events_are_updates(self, backend):
        delivered = []
        subscriber = _subscriber("restaurant", "R1", backend, delivered)

        await subscriber.handle({"events": None, "payload": make_order("O1")})

        assert delivered[0].type == ChangeType.UPDATE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "envelope",
        [None, "text", {"events": ["x.create"]}, {"events": ["x.create"], "payload": "O1"}],
    )
    async def test_envelopes_without_payload_are_dropped(self, backend, envelope):
        delivered = []
        subscriber = _subscriber("restaurant", "R1", backend, delivered)

        await subscriber.handle(envelope)

        assert delivered == []
        assert subscriber.received == 0

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, backend):
        delivered = []
        subscriber = _subscriber("restaurant", "R1", backend, delivered)
        subscriber.start()

        subscriber.stop()
        subscriber.stop()
        await backend.push("create", make_order("O1"))

        assert backend.handlers == []
        assert delivered == []
        assert subscriber.closed is True

    @pytest.mark.asyncio
    async def test_handle_after_stop_is_ignored(self, backend):
        """An envelope already in flight when stop() ran is dropped."""
        delivered = []
        subscriber = _subscriber("restaurant", "R1", backend, delivered)
        subscriber.start()
        subscriber.stop()

        await subscriber.handle({"events": ["x.create"], "payload": make_order("O1")})

        assert delivered == []
