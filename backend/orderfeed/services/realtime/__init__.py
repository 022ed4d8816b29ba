"""
Realtime sub-package.

Contains the live order feed:
- Change events and per-role routing
- Push transport adapter and polling fallback with snapshot diffing
- Subscription registry (RealtimeService)
- WebSocket fan-out for connected clients
"""

from orderfeed.services.realtime.backend import (
    OrderBackend,
    Query,
    collection_channel,
    document_channel,
)
from orderfeed.services.realtime.connection_manager import ChannelConnectionManager
from orderfeed.services.realtime.events import ChangeEvent, ChangeType, classify_events
from orderfeed.services.realtime.native import NativeSubscriber
from orderfeed.services.realtime.poller import (
    CustomerOrdersPoller,
    DriverDeliveriesPoller,
    OrderPoller,
    Poller,
    RestaurantOrdersPoller,
    create_poller,
)
from orderfeed.services.realtime.routing import Channel, SubscriptionKind, route_event
from orderfeed.services.realtime.service import RealtimeService, Subscription
from orderfeed.services.realtime.snapshot import (
    NO_SNAPSHOT,
    SnapshotStore,
    diff_order,
    diff_orders,
)

__all__ = [
    # Events
    "ChangeEvent",
    "ChangeType",
    "classify_events",
    # Routing
    "Channel",
    "SubscriptionKind",
    "route_event",
    # Backend contract
    "OrderBackend",
    "Query",
    "collection_channel",
    "document_channel",
    # Transports
    "NativeSubscriber",
    "Poller",
    "RestaurantOrdersPoller",
    "CustomerOrdersPoller",
    "DriverDeliveriesPoller",
    "OrderPoller",
    "create_poller",
    "NO_SNAPSHOT",
    "SnapshotStore",
    "diff_order",
    "diff_orders",
    # Service
    "RealtimeService",
    "Subscription",
    # WebSocket
    "ChannelConnectionManager",
]
