"""Transport layer for the Sprut.hub bridge.

This package contains all socket IO and frame routing.

Components:
- ws: WebSocket connection helper
- ws_client: WebSocket message iteration
- connection: Long-lived connection with reconnects and response dispatch
"""

from .connection import SprutConnection
from .ws import connect_websocket
from .ws_client import SprutWsClient, SprutWsMessage, SprutWsMessageType

__all__ = [
    "SprutConnection",
    "SprutWsClient",
    "SprutWsMessage",
    "SprutWsMessageType",
    "connect_websocket",
]
