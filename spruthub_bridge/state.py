"""Connection and token state owned by a Sprut.hub session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

_LOGGER = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of the hub WebSocket."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class SessionState:
    """Connection state and session token, changed only through named methods.

    The transport calls ``mark_connecting``/``mark_open``/``mark_closed``; the
    session calls ``set_token``/``clear_token``. Readiness waiters block on an
    event that is set while the connection is open.
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._connection = ConnectionState.CLOSED
        self._token: str | None = None
        self._open_event = asyncio.Event()
        self._listeners: list[Callable[[ConnectionState], None]] = []

    @property
    def connection(self) -> ConnectionState:
        return self._connection

    @property
    def is_open(self) -> bool:
        return self._connection is ConnectionState.OPEN

    @property
    def token(self) -> str | None:
        return self._token

    def on_state_changed(self, callback: Callable[[ConnectionState], None]) -> None:
        """Register callback for connection state changes."""
        self._listeners.append(callback)

    def mark_connecting(self) -> None:
        self._transition(ConnectionState.CONNECTING)

    def mark_open(self) -> None:
        self._transition(ConnectionState.OPEN)

    def mark_closed(self) -> None:
        self._transition(ConnectionState.CLOSED)

    def set_token(self, token: str) -> None:
        self._token = token

    def clear_token(self) -> None:
        self._token = None

    async def wait_open(self) -> None:
        """Return once the connection is open."""
        while not self.is_open:
            await self._open_event.wait()

    def _transition(self, state: ConnectionState) -> None:
        if self._connection is state:
            return
        _LOGGER.debug("[%s] State: %s → %s", self._name, self._connection.value, state.value)
        self._connection = state
        if state is ConnectionState.OPEN:
            self._open_event.set()
        else:
            self._open_event.clear()

        for callback in list(self._listeners):
            try:
                callback(state)
            except Exception as err:
                _LOGGER.exception(
                    "[%s] Connection state callback error: %s", self._name, err
                )
