"""
Shared route dependencies.

The realtime service and connection manager are created once in the
application lifespan and stored on ``app.state``.
"""
from starlette.requests import HTTPConnection

from orderfeed.services.realtime.connection_manager import ChannelConnectionManager
from orderfeed.services.realtime.service import RealtimeService


def get_realtime_service(connection: HTTPConnection) -> RealtimeService:
    return connection.app.state.realtime_service


def get_connection_manager(connection: HTTPConnection) -> ChannelConnectionManager:
    return connection.app.state.connection_manager
