"""WebSocket client wrapper for the Sprut.hub transport."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed

from ..errors import SprutClientError, SprutConnectionLost, SprutNotConnected
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class SprutWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class SprutWsMessage:
    """Normalized WebSocket message payload."""

    type: SprutWsMessageType
    data: str | None = None


class SprutWsClient:
    """Wrapper around the websockets library for one hub socket."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    async def connect(
        self,
        url: str,
        *,
        ping_interval: float | None = 20,
        timeout: float = 15.0,
    ) -> None:
        """Connect to the hub websocket."""
        self._ws = await connect_websocket(
            url,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            await self._ws.close()

    async def send_json(self, payload: dict[str, Any]) -> None:
        """Send a JSON payload as a text frame."""
        if self._ws is None:
            raise SprutNotConnected("WebSocket is not connected")
        try:
            await self._ws.send(json.dumps(payload))
        except ConnectionClosed as err:
            raise SprutConnectionLost("WebSocket closed while sending") from err

    def __aiter__(self) -> AsyncIterator[SprutWsMessage]:
        if self._ws is None:
            raise SprutNotConnected("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[SprutWsMessage]:
        if self._ws is None:
            raise SprutNotConnected("WebSocket is not connected")

        try:
            async for msg in self._ws:
                normalized = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosed:
            yield SprutWsMessage(type=SprutWsMessageType.CLOSED)
        except Exception:
            yield SprutWsMessage(type=SprutWsMessageType.ERROR)
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield SprutWsMessage(type=SprutWsMessageType.CLOSED)

    @staticmethod
    def _normalize_message(msg: Any) -> SprutWsMessage | None:
        """Normalize raw frames; the hub speaks text only, binary is skipped."""
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return None
        if isinstance(msg, str):
            return SprutWsMessage(SprutWsMessageType.TEXT, msg)
        return SprutWsMessage(SprutWsMessageType.TEXT, str(msg))

    @staticmethod
    def decode_json(message: SprutWsMessage) -> dict[str, Any]:
        """Decode a TEXT message payload into a JSON object."""
        if message.type is not SprutWsMessageType.TEXT:
            raise SprutClientError("Only TEXT messages can be decoded")
        if not isinstance(message.data, str):
            raise SprutClientError("Message data is not a string")
        result = json.loads(message.data)
        if not isinstance(result, dict):
            raise SprutClientError("Message is not a JSON object")
        return result
