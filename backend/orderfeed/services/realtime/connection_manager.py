"""
WebSocket fan-out for realtime channels.

Several clients may follow the same channel (two tablets in one restaurant).
The realtime service keeps a single subscription per channel; this manager
holds the sockets attached to it and broadcasts each event to all of them.
"""

import logging
from typing import Dict, List

from fastapi import WebSocket

from orderfeed.core.metrics import WS_CONNECTIONS_ACTIVE

logger = logging.getLogger(__name__)


class ChannelConnectionManager:
    """
    Manages WebSocket connections per realtime channel.
    """

    def __init__(self, max_connections_per_channel: int = 20):
        # connections: dict[channel_id, list[WebSocket]]
        self.connections: Dict[str, List[WebSocket]] = {}
        self.max_connections_per_channel = max_connections_per_channel

    def can_accept(self, channel_id: str) -> bool:
        return len(self.connections.get(channel_id, [])) < self.max_connections_per_channel

    def connect(self, websocket: WebSocket, channel_id: str) -> None:
        """Attach an accepted socket to a channel."""
        if channel_id not in self.connections:
            self.connections[channel_id] = []
        if websocket not in self.connections[channel_id]:
            self.connections[channel_id].append(websocket)
            WS_CONNECTIONS_ACTIVE.inc()

    def disconnect(self, websocket: WebSocket, channel_id: str) -> int:
        """
        Detach a socket.

        Returns:
            Number of sockets still attached to the channel
        """
        sockets = self.connections.get(channel_id)
        if sockets is None:
            return 0
        if websocket in sockets:
            sockets.remove(websocket)
            WS_CONNECTIONS_ACTIVE.dec()
        if not sockets:
            del self.connections[channel_id]
            return 0
        return len(sockets)

    async def broadcast(self, message: dict, channel_id: str) -> None:
        """Send a message to every socket attached to a channel."""
        for connection in list(self.connections.get(channel_id, [])):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.debug(f"WebSocket send failed (channel={channel_id}): {e}")

    def connection_counts(self) -> Dict[str, int]:
        return {channel_id: len(sockets) for channel_id, sockets in self.connections.items()}
