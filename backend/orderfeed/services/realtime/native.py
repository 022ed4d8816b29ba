"""
Push transport adapter.

Binds a channel to the backend's change feed and turns raw
``{events, payload}`` envelopes into ChangeEvents. No buffering: each
envelope is handled before the transport reads the next one.
"""
import logging
from typing import Any, Awaitable, Callable, Optional

from orderfeed.services.realtime.backend import (
    OrderBackend,
    Unsubscribe,
    collection_channel,
    document_channel,
)
from orderfeed.services.realtime.events import ChangeEvent, classify_events
from orderfeed.services.realtime.routing import Channel, SubscriptionKind

logger = logging.getLogger(__name__)


class NativeSubscriber:
    """Realtime subscription for one channel."""

    def __init__(
        self,
        channel: Channel,
        backend: OrderBackend,
        deliver: Callable[[ChangeEvent], Awaitable[None]],
        database_id: str,
        collection_id: str,
    ):
        self.channel = channel
        self.backend = backend
        self.deliver = deliver
        self.database_id = database_id
        self.collection_id = collection_id

        self._unsubscribe: Optional[Unsubscribe] = None
        self._closed = False
        self.received = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def backend_channels(self) -> list[str]:
        if self.channel.kind == SubscriptionKind.ORDER:
            return [document_channel(self.database_id, self.collection_id, self.channel.key)]
        return [collection_channel(self.database_id, self.collection_id)]

    def start(self) -> None:
        self._unsubscribe = self.backend.subscribe(self.backend_channels, self.handle)

    def stop(self) -> None:
        self._closed = True
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            unsubscribe()

    async def handle(self, response: Any) -> None:
        """Classify one raw envelope and pass it on."""
        if self._closed:
            return

        if not isinstance(response, dict):
            logger.debug(f"Ignoring malformed realtime envelope on {self.channel.id}")
            return

        payload = response.get("payload")
        if not isinstance(payload, dict):
            logger.debug(f"Ignoring realtime envelope without payload on {self.channel.id}")
            return

        self.received += 1
        event = ChangeEvent(type=classify_events(response.get("events")), order=payload)
        await self.deliver(event)
