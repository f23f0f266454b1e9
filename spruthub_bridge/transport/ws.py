"""WebSocket helpers for the Sprut.hub transport."""

from __future__ import annotations

import asyncio

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    SprutConnectionError,
    SprutHandshakeError,
    SprutTimeout,
)


async def connect_websocket(
    url: str,
    *,
    ping_interval: float | None = 20,
    timeout: float = 15.0,
) -> ClientConnection:
    """Open the hub JSON-RPC socket.

    The hub serves its API on one endpoint (``ws://<hub>:7777/spruthub`` on
    a local network) and answers with unbounded frames: a full
    ``accessory.list`` with services and characteristics easily exceeds the
    default 1 MiB limit, so the size cap is lifted.

    Args:
        url: Full ``ws://`` or ``wss://`` URL of the hub
        ping_interval: Keepalive ping interval, None disables pings
        timeout: Seconds allowed for TCP connect plus the opening handshake

    Raises:
        SprutTimeout: If the handshake does not finish within ``timeout``
        SprutHandshakeError: If the URL is invalid or the upgrade is refused
        SprutConnectionError: If the hub cannot be reached
    """
    try:
        return await asyncio.wait_for(
            connect(
                url,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise SprutTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise SprutHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise SprutConnectionError("WebSocket connection failed") from err
