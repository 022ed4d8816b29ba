"""
Realtime order subscriptions.

Entry point for everything that wants to follow orders as they change:
restaurant dashboards, driver delivery lists, customer order history and
single-order tracking. One instance is created per process (see
``orderfeed.main``) and owns every channel's transport and snapshot.

Channel rules:
- one active subscription per channel id (``<kind>-<key>``); subscribing
  again while active returns a handle to the existing subscription
- the transport (push or polling) is chosen once, at subscribe time
- unsubscribing removes the callback registration before the transport is
  torn down, so nothing is delivered afterwards
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from orderfeed.core.config import settings
from orderfeed.core.logging import channel_id_var
from orderfeed.core.metrics import (
    REALTIME_CALLBACK_ERRORS,
    REALTIME_EVENTS_TOTAL,
    REALTIME_SUBSCRIPTIONS_ACTIVE,
)
from orderfeed.core.sentry import capture_exception
from orderfeed.models.order import ORDER_ID, StatusInfo, get_status_info
from orderfeed.services.realtime.backend import OrderBackend, Unsubscribe
from orderfeed.services.realtime.events import ChangeEvent, ChangeType, EventCallback
from orderfeed.services.realtime.native import NativeSubscriber
from orderfeed.services.realtime.poller import Poller, create_poller
from orderfeed.services.realtime.routing import Channel, SubscriptionKind, route_event
from orderfeed.services.realtime.snapshot import NO_SNAPSHOT, SnapshotStore

logger = logging.getLogger(__name__)

NATIVE = "native"
POLLING = "polling"


@dataclass(eq=False)
class Subscription:
    """Registry entry for one active channel."""

    channel: Channel
    callback: EventCallback
    transport_name: str
    transport: Union[NativeSubscriber, Poller, None] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    delivered: int = 0
    closed: bool = False


class RealtimeService:
    """
    Role-scoped order subscriptions over push or polling transport.

    Not thread-safe: all calls must come from the event loop that owns the
    instance.
    """

    def __init__(
        self,
        backend: OrderBackend,
        use_native: Optional[bool] = None,
        database_id: Optional[str] = None,
        collection_id: Optional[str] = None,
        list_interval: Optional[float] = None,
        order_interval: Optional[float] = None,
    ):
        self.backend = backend
        self.use_native = settings.use_native_realtime if use_native is None else use_native
        self.database_id = database_id or settings.APPWRITE_DATABASE_ID
        self.collection_id = collection_id or settings.APPWRITE_ORDERS_COLLECTION_ID
        self.list_interval = list_interval or settings.POLL_INTERVAL_LIST_SECONDS
        self.order_interval = order_interval or settings.POLL_INTERVAL_ORDER_SECONDS

        self.snapshots = SnapshotStore()
        self._subscriptions: dict[str, Subscription] = {}

        if not self.use_native:
            logger.warning("Realtime push transport disabled, using polling fallback")

    # ------------------------------------------------------------------
    # Subscribe
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        kind: Union[SubscriptionKind, str],
        key: str,
        callback: EventCallback,
    ) -> Unsubscribe:
        """
        Subscribe ``callback`` to a role-scoped channel.

        Args:
            kind: restaurant, driver, customer or order
            key: id of the restaurant / driver / customer / order
            callback: Plain or coroutine function receiving ChangeEvents

        Returns:
            Zero-argument function that ends the subscription

        Raises:
            InvalidSubscriptionException: Unknown kind or empty key
        """
        channel = Channel.parse(getattr(kind, "value", kind), key)

        existing = self._subscriptions.get(channel.id)
        if existing is not None:
            logger.info(f"Already subscribed to {channel.id}")
            return self._handle_for(existing)

        subscription = Subscription(
            channel=channel,
            callback=callback,
            transport_name=NATIVE if self.use_native else POLLING,
        )
        # Registered before the first fetch so concurrent callers see it
        self._subscriptions[channel.id] = subscription
        REALTIME_SUBSCRIPTIONS_ACTIVE.labels(
            kind=channel.kind.value, transport=subscription.transport_name
        ).inc()

        async def deliver(event: ChangeEvent) -> None:
            await self._deliver(subscription, event)

        try:
            if self.use_native:
                native = NativeSubscriber(
                    channel,
                    self.backend,
                    deliver,
                    database_id=self.database_id,
                    collection_id=self.collection_id,
                )
                subscription.transport = native
                native.start()
                logger.info(f"Subscribed to {channel.id}")
            else:
                poller = create_poller(
                    channel,
                    backend=self.backend,
                    snapshots=self.snapshots,
                    deliver=deliver,
                    interval=self._interval_for(channel),
                    database_id=self.database_id,
                    collection_id=self.collection_id,
                    limit=self._limit_for(channel),
                )
                subscription.transport = poller
                logger.info(f"Polling {channel.id} every {poller.interval}s (fallback)")
                await poller.start()
        except asyncio.CancelledError:
            logger.info(f"Subscribe to {channel.id} cancelled during first fetch")
            self._release(subscription)
            raise
        except Exception:
            logger.exception(f"Failed to start transport for {channel.id}")
            self._release(subscription)
            raise

        return self._handle_for(subscription)

    async def subscribe_to_restaurant_orders(
        self, restaurant_id: str, callback: EventCallback
    ) -> Unsubscribe:
        """Orders placed with a restaurant."""
        return await self.subscribe(SubscriptionKind.RESTAURANT, restaurant_id, callback)

    async def subscribe_to_driver_deliveries(
        self, driver_id: str, callback: EventCallback
    ) -> Unsubscribe:
        """Orders assigned to a driver plus orders available for pickup."""
        return await self.subscribe(SubscriptionKind.DRIVER, driver_id, callback)

    async def subscribe_to_customer_orders(
        self, customer_id: str, callback: EventCallback
    ) -> Unsubscribe:
        """Orders placed by a customer."""
        return await self.subscribe(SubscriptionKind.CUSTOMER, customer_id, callback)

    async def subscribe_to_order(self, order_id: str, callback: EventCallback) -> Unsubscribe:
        """A single order, for live tracking."""
        return await self.subscribe(SubscriptionKind.ORDER, order_id, callback)

    # ------------------------------------------------------------------
    # Unsubscribe
    # ------------------------------------------------------------------

    def unsubscribe(self, channel_id: str) -> bool:
        """
        End the subscription for ``channel_id``.

        Returns:
            True if a subscription was active
        """
        subscription = self._subscriptions.get(channel_id)
        if subscription is None:
            return False
        self._release(subscription)
        logger.info(f"Unsubscribed from {channel_id}")
        return True

    def unsubscribe_all(self) -> int:
        """Tear down every channel (logout, shutdown)."""
        logger.info("Unsubscribing from all channels...")
        count = 0
        for channel_id in list(self._subscriptions):
            if self.unsubscribe(channel_id):
                count += 1
        self.snapshots.clear()
        return count

    def _handle_for(self, subscription: Subscription) -> Unsubscribe:
        """Unsubscribe function bound to one registry entry."""

        def unsubscribe() -> None:
            if self._subscriptions.get(subscription.channel.id) is subscription:
                self.unsubscribe(subscription.channel.id)

        return unsubscribe

    def _release(self, subscription: Subscription) -> None:
        channel_id = subscription.channel.id
        if self._subscriptions.get(channel_id) is subscription:
            del self._subscriptions[channel_id]
        if subscription.closed:
            return

        subscription.closed = True
        if subscription.transport is not None:
            subscription.transport.stop()
        self.snapshots.discard(channel_id)
        REALTIME_SUBSCRIPTIONS_ACTIVE.labels(
            kind=subscription.channel.kind.value, transport=subscription.transport_name
        ).dec()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _deliver(self, subscription: Subscription, event: ChangeEvent) -> None:
        if subscription.closed:
            return

        routed = route_event(subscription.channel, event)
        if routed is None:
            return

        channel = subscription.channel
        token = channel_id_var.set(channel.id)
        try:
            logger.debug(f"[{channel.id}] Order {routed.type.value}: {routed.order.get(ORDER_ID)}")
            result = subscription.callback(routed)
            if inspect.isawaitable(result):
                await result
            subscription.delivered += 1
            REALTIME_EVENTS_TOTAL.labels(kind=channel.kind.value, event_type=routed.type.value).inc()
        except Exception as e:
            REALTIME_CALLBACK_ERRORS.labels(kind=channel.kind.value).inc()
            logger.exception(f"Subscriber callback failed on {channel.id}: {e}")
            capture_exception(
                e,
                extra={"order_id": routed.order.get(ORDER_ID)},
                tags={"channel": channel.id, "transport": subscription.transport_name},
            )
        finally:
            channel_id_var.reset(token)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_status_info(self, status: Optional[str]) -> StatusInfo:
        """Display label, color and icon for an order status."""
        return get_status_info(status)

    def is_subscribed(self, channel_id: str) -> bool:
        return channel_id in self._subscriptions

    def current_events(self, channel_id: str) -> list[ChangeEvent]:
        """
        Replay the channel's last polled state as create events.

        Lets a late joiner on an already active channel catch up. Empty for
        push channels and before the first successful poll.
        """
        subscription = self._subscriptions.get(channel_id)
        if subscription is None:
            return []

        snapshot = self.snapshots.get(channel_id)
        if snapshot is NO_SNAPSHOT:
            return []
        orders = snapshot if isinstance(snapshot, list) else [snapshot]

        events = []
        for order in orders:
            routed = route_event(subscription.channel, ChangeEvent(type=ChangeType.CREATE, order=order))
            if routed is not None:
                events.append(routed)
        return events

    def active_channels(self) -> list[dict]:
        """Describe every active subscription."""
        return [
            {
                "channel_id": sub.channel.id,
                "kind": sub.channel.kind.value,
                "key": sub.channel.key,
                "transport": sub.transport_name,
                "created_at": sub.created_at,
                "events_delivered": sub.delivered,
            }
            for sub in self._subscriptions.values()
        ]

    def get_metrics(self) -> dict:
        """Get service metrics."""
        by_transport = {NATIVE: 0, POLLING: 0}
        for sub in self._subscriptions.values():
            by_transport[sub.transport_name] += 1
        return {
            "subscriptions": len(self._subscriptions),
            "native_subscriptions": by_transport[NATIVE],
            "polling_subscriptions": by_transport[POLLING],
            "snapshots": len(self.snapshots),
            "events_delivered": sum(s.delivered for s in self._subscriptions.values()),
            "use_native": self.use_native,
        }

    def _interval_for(self, channel: Channel) -> float:
        return self.list_interval if channel.is_list else self.order_interval

    def _limit_for(self, channel: Channel) -> int:
        if channel.kind == SubscriptionKind.RESTAURANT:
            return settings.POLL_LIMIT_RESTAURANT
        if channel.kind == SubscriptionKind.CUSTOMER:
            return settings.POLL_LIMIT_CUSTOMER
        return settings.POLL_LIMIT_DRIVER
