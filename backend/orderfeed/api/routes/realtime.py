"""
Realtime routes for live order updates.

Features:
- WebSocket channel per role (restaurant, driver, customer, single order)
- Status display lookup for order screens
- Introspection and teardown of active subscriptions
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from orderfeed.api.deps import get_connection_manager, get_realtime_service
from orderfeed.core.exceptions import InvalidSubscriptionException
from orderfeed.schemas.realtime import (
    StatusInfoResponse,
    SubscriptionInfo,
    SubscriptionListResponse,
    TeardownResponse,
)
from orderfeed.services.realtime.connection_manager import ChannelConnectionManager
from orderfeed.services.realtime.events import ChangeEvent
from orderfeed.services.realtime.routing import Channel
from orderfeed.services.realtime.service import RealtimeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["Realtime"])


# ============================================================
# WebSocket Endpoint
# ============================================================


@router.websocket("/ws/{kind}/{key}")
async def realtime_websocket(
    websocket: WebSocket,
    kind: str,
    key: str,
    service: RealtimeService = Depends(get_realtime_service),
    manager: ChannelConnectionManager = Depends(get_connection_manager),
):
    """
    Follow a realtime channel.

    Message types (client -> server):
    - ping: Keep-alive

    Message types (server -> client):
    - subscribed: Channel is active
    - order_event: {event: create|update|delete, order, isAvailable?}
    - pong: Response to ping
    """
    try:
        channel = Channel.parse(kind, key)
    except InvalidSubscriptionException as e:
        logger.info(f"Rejected realtime subscription: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    if not manager.can_accept(channel.id):
        logger.warning(f"Too many connections on {channel.id}")
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    await websocket.accept()
    manager.connect(websocket, channel.id)
    await websocket.send_json({"type": "subscribed", "channel": channel.id})
    logger.info(f"WebSocket connected to {channel.id}")

    async def forward(event: ChangeEvent) -> None:
        await manager.broadcast(event.to_message(), channel.id)

    unsubscribe = None
    try:
        joined_active = service.is_subscribed(channel.id)
        unsubscribe = await service.subscribe(channel.kind, channel.key, forward)

        # Late joiners get the current order set the first socket already saw
        if joined_active:
            for event in service.current_events(channel.id):
                await websocket.send_json(event.to_message())

        while True:
            data = await websocket.receive_json()
            msg_type = data.get("type") if isinstance(data, dict) else None

            if msg_type == "ping":
                await websocket.send_json({"type": "pong", "ts": datetime.utcnow().isoformat()})
            else:
                logger.debug(f"Unknown message type: {msg_type}")

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected from {channel.id}")
    except Exception as e:
        logger.error(f"WebSocket error on {channel.id}: {e}")
    finally:
        remaining = manager.disconnect(websocket, channel.id)
        if remaining == 0 and unsubscribe is not None:
            unsubscribe()


# ============================================================
# REST Endpoints
# ============================================================


@router.get("/status/{order_status}", response_model=StatusInfoResponse)
async def get_status_info(
    order_status: str,
    service: RealtimeService = Depends(get_realtime_service),
):
    """
    Display label, color and icon for an order status.

    Unknown statuses get the descriptor of ``pending``.
    """
    info = service.get_status_info(order_status)
    return StatusInfoResponse(status=order_status, **info.to_dict())


@router.get("/subscriptions", response_model=SubscriptionListResponse)
async def list_subscriptions(
    service: RealtimeService = Depends(get_realtime_service),
    manager: ChannelConnectionManager = Depends(get_connection_manager),
):
    """List active realtime channels."""
    counts = manager.connection_counts()
    items = [
        SubscriptionInfo(**channel, connections=counts.get(channel["channel_id"], 0))
        for channel in service.active_channels()
    ]
    return SubscriptionListResponse(items=items, total=len(items), use_native=service.use_native)


@router.delete("/subscriptions", response_model=TeardownResponse)
async def unsubscribe_all(
    service: RealtimeService = Depends(get_realtime_service),
):
    """Stop every realtime channel."""
    count = service.unsubscribe_all()
    return TeardownResponse(unsubscribed=count)
