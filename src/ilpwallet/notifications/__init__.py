"""
Push notification transport.
"""

from ilpwallet.notifications.channel import (
    ChannelEvent,
    ChannelFactory,
    NotificationChannel,
    WebSocketChannel,
    to_websocket_url,
)

__all__ = [
    "ChannelEvent",
    "ChannelFactory",
    "NotificationChannel",
    "WebSocketChannel",
    "to_websocket_url",
]
