"""Long-lived hub connection: socket lifecycle, reconnects and frame dispatch."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..config import DEFAULT_RECONNECT_DELAY
from ..errors import (
    SprutClientError,
    SprutConnectionError,
    SprutConnectionLost,
    SprutHandshakeError,
    SprutNotConnected,
    SprutTimeout,
)
from ..pending import PendingCallRegistry
from ..protocol import response_id
from ..state import SessionState
from .ws_client import SprutWsClient, SprutWsMessage, SprutWsMessageType

_LOGGER = logging.getLogger(__name__)


class SprutConnection:
    """Own the single hub socket and route responses to pending calls.

    Every disconnect (or failed connect) schedules exactly one new attempt
    after a fixed delay, so reconnection continues until ``close``. Calls
    outstanding when the socket drops are failed with ``SprutConnectionLost``.
    """

    def __init__(
        self,
        url: str,
        state: SessionState,
        pending: PendingCallRegistry,
        *,
        name: str = "",
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        ping_interval: float | None = 20,
        connect_timeout: float = 15.0,
    ) -> None:
        self.url = url
        self._state = state
        self._pending = pending
        self._name = name
        self._reconnect_delay = reconnect_delay
        self._ping_interval = ping_interval
        self._connect_timeout = connect_timeout

        self._ws: SprutWsClient | None = None
        self._listen_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._attempts = 0
        self._shutdown_requested = False

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and self._state.is_open

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def connect(self) -> bool:
        """Open a fresh socket, replacing any previous one.

        Returns:
            True if the socket is open, False if an attempt was scheduled
        """
        if self._shutdown_requested:
            _LOGGER.debug("[%s] Connection aborted: shutdown requested", self._name)
            return False

        self._state.mark_connecting()
        self._attempts += 1
        _LOGGER.info(
            "[%s] Connecting to %s (attempt #%d)", self._name, self.url, self._attempts
        )

        if self._ws is not None:
            await self._discard_socket()
            self._fail_pending("Connection replaced")

        ws_client = SprutWsClient()
        try:
            await ws_client.connect(
                self.url,
                ping_interval=self._ping_interval,
                timeout=self._connect_timeout,
            )
        except SprutTimeout:
            _LOGGER.warning("[%s] Connection timeout - hub unreachable", self._name)
            self._handle_connection_failure()
            return False
        except SprutConnectionError as err:
            _LOGGER.warning("[%s] Connection failed: %s", self._name, err)
            self._handle_connection_failure()
            return False
        except SprutHandshakeError as err:
            _LOGGER.error("[%s] WebSocket handshake failed: %s", self._name, err)
            self._handle_connection_failure()
            return False

        if self._shutdown_requested:
            await ws_client.close()
            return False

        self._ws = ws_client
        self._attempts = 0
        self._listen_task = asyncio.create_task(self._listen(ws_client))
        self._state.mark_open()
        _LOGGER.info("[%s] Sprut.hub connected", self._name)
        return True

    async def send(self, envelope: dict[str, Any]) -> None:
        """Serialize and write ``envelope`` to the open socket.

        Raises:
            SprutNotConnected: If the socket is not open
            SprutConnectionLost: If the socket closed during the write
        """
        ws = self._ws
        if ws is None or not self._state.is_open:
            _LOGGER.error("[%s] WebSocket is not open. Cannot send message.", self._name)
            raise SprutNotConnected("WebSocket is not open")
        await ws.send_json(envelope)

    async def close(self) -> None:
        """Stop reconnecting and close the socket."""
        _LOGGER.info("[%s] Closing connection", self._name)
        self._shutdown_requested = True

        if self._reconnect_task:
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
            self._reconnect_task = None

        await self._discard_socket()

        if self._listen_task:
            self._listen_task.cancel()
            try:
                await self._listen_task
            except asyncio.CancelledError:
                pass
            self._listen_task = None

        self._state.mark_closed()
        self._fail_pending("Connection closed")

    # -------------------------------------------------------------------------
    # Internal: Reconnect
    # -------------------------------------------------------------------------

    def _handle_connection_failure(self) -> None:
        """Mark the connection closed and schedule one reconnect attempt."""
        self._state.mark_closed()
        if self._shutdown_requested:
            return
        task = self._reconnect_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            return

        _LOGGER.info(
            "[%s] Sprut.hub connection closed, reconnecting in %.1fs",
            self._name,
            self._reconnect_delay,
        )
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after_delay(self._reconnect_delay)
        )

    async def _reconnect_after_delay(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Reconnect cancelled", self._name)
            raise
        _LOGGER.info("[%s] Attempting to reconnect...", self._name)
        await self.connect()

    async def _discard_socket(self) -> None:
        if self._ws is None:
            return
        ws, self._ws = self._ws, None
        try:
            await asyncio.wait_for(ws.close(), timeout=2.0)
        except TimeoutError:
            _LOGGER.warning("[%s] Previous WebSocket close timed out", self._name)

    def _fail_pending(self, reason: str) -> None:
        failed = self._pending.fail_all(SprutConnectionLost(reason))
        if failed:
            _LOGGER.warning(
                "[%s] %s with %d calls outstanding", self._name, reason, failed
            )

    # -------------------------------------------------------------------------
    # Internal: Message Listener
    # -------------------------------------------------------------------------

    async def _listen(self, ws_client: SprutWsClient) -> None:
        """Dispatch inbound frames until the socket closes."""
        message_count = 0
        try:
            async for msg in ws_client:
                message_count += 1

                if msg.type == SprutWsMessageType.TEXT:
                    self._dispatch(msg)

                elif msg.type == SprutWsMessageType.CLOSED:
                    _LOGGER.info("[%s] WebSocket closed by hub", self._name)
                    break

                elif msg.type == SprutWsMessageType.ERROR:
                    _LOGGER.error("[%s] WebSocket error", self._name)
                    break

        except asyncio.CancelledError:
            _LOGGER.debug(
                "[%s] Listener cancelled (%d messages)", self._name, message_count
            )
            raise
        finally:
            # A newer socket may already have replaced this one
            if self._ws is ws_client:
                self._ws = None
                self._state.mark_closed()
                self._fail_pending("Connection lost")
                if not self._shutdown_requested:
                    self._handle_connection_failure()

    def _dispatch(self, msg: SprutWsMessage) -> None:
        try:
            frame = SprutWsClient.decode_json(msg)
        except (ValueError, SprutClientError) as err:
            _LOGGER.warning("[%s] Invalid message: %s", self._name, err)
            return

        call_id = response_id(frame)
        if call_id is None:
            _LOGGER.debug("[%s] Unsolicited frame dropped: %s", self._name, frame)
            return

        _LOGGER.debug("[%s] Received message: %s", self._name, frame)
        self._pending.resolve(call_id, frame)
