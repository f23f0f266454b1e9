"""High-level session client for Sprut.hub.

This module provides the API the HTTP bridge uses to talk to the hub. It
handles:
- Correlation IDs and request/response multiplexing over one socket
- Lazy authentication and transparent re-authentication on token expiry
- Command validation and result normalization
- Read-only listing methods

Usage:
    session = SprutSession(SprutConfig.from_env())
    await session.start()
    await session.connected()
    result = await session.execute(
        "update",
        {"accessoryId": 167, "serviceId": 13, "characteristicId": 15, "value": True},
    )
    await session.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from .auth import AuthResult, SprutAuthSession
from .config import SprutConfig
from .errors import (
    SprutClientError,
    SprutCommandNotAllowed,
    SprutNotConnected,
    SprutTimeout,
)
from .pending import PendingCallRegistry
from .protocol import (
    COMMAND_BUILDERS,
    as_list,
    build_envelope,
    build_method_params,
    controllable_devices,
    is_invalid_token,
    normalize_method_result,
    normalize_result,
)
from .state import ConnectionState, SessionState
from .transport.connection import SprutConnection

_LOGGER = logging.getLogger(__name__)

DEFAULT_ACCESSORY_EXPAND = "services,characteristics"
DEFAULT_SCENARIO_EXPAND = "data"


class SprutSession:
    """Session client multiplexing hub calls over one WebSocket."""

    def __init__(
        self,
        config: SprutConfig,
        *,
        ping_interval: float | None = 20,
        connect_timeout: float = 15.0,
    ) -> None:
        """Initialize session.

        Args:
            config: Validated hub settings
            ping_interval: Keepalive ping interval (seconds), None disables
            connect_timeout: Timeout for each connection attempt (seconds)
        """
        self.config = config
        self._name = config.serial

        self._state = SessionState(self._name)
        self._pending = PendingCallRegistry(
            default_timeout=config.call_timeout, name=self._name
        )
        self._connection = SprutConnection(
            config.ws_url,
            self._state,
            self._pending,
            name=self._name,
            reconnect_delay=config.reconnect_delay,
            ping_interval=ping_interval,
            connect_timeout=connect_timeout,
        )
        self._auth = SprutAuthSession(self._call_once, name=self._name)
        self._auth_task: asyncio.Task[AuthResult] | None = None
        self._last_id = 0

    async def __aenter__(self) -> SprutSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    async def start(self) -> bool:
        """Open the hub connection; failures are retried in the background.

        Returns:
            True if the first attempt connected
        """
        return await self._connection.connect()

    async def connected(self, timeout: float | None = None) -> None:
        """Wait until the connection is open.

        Raises:
            SprutTimeout: If ``timeout`` elapses first
        """
        try:
            await asyncio.wait_for(self._state.wait_open(), timeout=timeout)
        except TimeoutError as err:
            raise SprutTimeout("Timed out waiting for hub connection") from err

    async def close(self) -> None:
        """Close the session and fail outstanding calls."""
        await self._connection.close()

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected

    @property
    def connection_state(self) -> ConnectionState:
        return self._state.connection

    @property
    def token(self) -> str | None:
        return self._state.token

    @property
    def pending_calls(self) -> int:
        return len(self._pending)

    def on_connection_state_changed(
        self, callback: Callable[[ConnectionState], None]
    ) -> None:
        """Register callback for connection state changes."""
        self._state.on_state_changed(callback)

    # -------------------------------------------------------------------------
    # Public API: Calls
    # -------------------------------------------------------------------------

    async def call(
        self, params: dict[str, Any], *, timeout: float | None = None
    ) -> dict[str, Any]:
        """Send ``params`` and return the raw response envelope.

        A response rejecting the token triggers one re-authentication and a
        single retry of the original call. The retry's response is returned
        as-is.
        """
        used_token = self._state.token
        response = await self._call_once(params, timeout=timeout)
        if not is_invalid_token(response):
            return response

        _LOGGER.info(
            "[%s] Token rejected for call id=%s, re-authenticating",
            self._name,
            response.get("id"),
        )
        current = self._state.token
        # Another caller may already have refreshed the token
        if current is None or current == used_token:
            self._state.clear_token()
            await self.authenticate()
        return await self._call_once(params, timeout=timeout)

    async def authenticate(self) -> AuthResult:
        """Run the account handshake, joining one already in flight."""
        if self._auth_task is None:
            task = asyncio.create_task(self._run_authentication())
            task.add_done_callback(self._auth_task_done)
            self._auth_task = task
        return await asyncio.shield(self._auth_task)

    async def execute(self, command: str, args: Mapping[str, Any]) -> dict[str, Any]:
        """Run an allow-listed command and normalize its result.

        Returns:
            ``{"isSuccess", "code", "message"}``; hub errors are returned,
            not raised

        Raises:
            SprutCommandNotAllowed: If ``command`` is not allow-listed
            SprutInvalidArguments: If ``args`` fail validation
            SprutNotConnected: If the connection is not open
        """
        if command not in self.config.allowed_commands:
            raise SprutCommandNotAllowed(command)

        params = COMMAND_BUILDERS[command](args)

        if not self.is_connected:
            raise SprutNotConnected("Not connected")

        await self._ensure_token()

        try:
            response = await self.call(params)
        except SprutClientError as err:
            _LOGGER.error("[%s] Error executing command %s: %s", self._name, command, err)
            raise

        _LOGGER.info("[%s] Command %s executed: %s", self._name, command, response)
        return normalize_result(response)

    async def call_method(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Call a dotted hub method (``hub.list``) and normalize the result.

        Returns:
            ``{"isSuccess", "code", "message"}`` plus ``data`` on success
        """
        request = build_method_params(method, params)
        await self._ensure_token()
        response = await self.call(request)
        _LOGGER.debug("[%s] %s returned: %s", self._name, method, response)
        return normalize_method_result(method, response)

    # -------------------------------------------------------------------------
    # Public API: Read-only methods
    # -------------------------------------------------------------------------

    async def version(self) -> dict[str, Any]:
        return await self.call_method("server.version")

    async def list_hubs(self) -> dict[str, Any]:
        return await self.call_method("hub.list")

    async def list_accessories(
        self, expand: str = DEFAULT_ACCESSORY_EXPAND
    ) -> dict[str, Any]:
        return await self.call_method("accessory.list", {"expand": expand})

    async def list_rooms(self) -> dict[str, Any]:
        return await self.call_method("room.list")

    async def get_scenario(
        self, index: str, expand: str = DEFAULT_SCENARIO_EXPAND
    ) -> dict[str, Any]:
        return await self.call_method(
            "scenario.get", {"index": str(index), "expand": expand}
        )

    async def system_info(self) -> dict[str, Any]:
        """Collect hubs, accessories and rooms in one snapshot.

        Listings that fail are reported in ``errors`` instead of aborting the
        whole snapshot.
        """
        listings = (
            ("hubs", "hub.list", None),
            ("accessories", "accessory.list", {"expand": DEFAULT_ACCESSORY_EXPAND}),
            ("rooms", "room.list", None),
        )
        results = await asyncio.gather(
            *(self.call_method(method, params) for _, method, params in listings),
            return_exceptions=True,
        )

        info: dict[str, Any] = {
            "hubs": [],
            "accessories": [],
            "rooms": [],
            "controllableDevices": [],
            "errors": [],
        }
        for (key, method, _), result in zip(listings, results, strict=True):
            if isinstance(result, SprutClientError):
                info["errors"].append(f"{method}: {result}")
            elif isinstance(result, BaseException):
                raise result
            elif not result["isSuccess"]:
                info["errors"].append(f"{method}: {result.get('message')}")
            else:
                info[key] = as_list(result.get("data"), key)

        info["controllableDevices"] = controllable_devices(info["accessories"])
        return info

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _next_id(self) -> int:
        self._last_id += 1
        return self._last_id

    async def _call_once(
        self, params: dict[str, Any], *, timeout: float | None = None
    ) -> dict[str, Any]:
        """Send one request and await its response, without retries."""
        call_id = self._next_id()
        envelope = build_envelope(
            params=params,
            call_id=call_id,
            serial=self.config.serial,
            token=self._state.token,
        )

        future = self._pending.add(call_id, timeout)
        try:
            await self._connection.send(envelope)
            _LOGGER.debug("[%s] Sent call id=%d", self._name, call_id)
            return await future
        finally:
            self._pending.remove(call_id)

    async def _ensure_token(self) -> None:
        if self._state.token is None:
            await self.authenticate()

    async def _run_authentication(self) -> AuthResult:
        _LOGGER.debug("[%s] Starting authentication", self._name)
        result = await self._auth.authenticate(self.config.login, self.config.password)
        self._state.set_token(result.token)
        return result

    def _auth_task_done(self, task: asyncio.Task[AuthResult]) -> None:
        if self._auth_task is task:
            self._auth_task = None
        if not task.cancelled() and task.exception() is not None:
            _LOGGER.warning(
                "[%s] Authentication failed: %s", self._name, task.exception()
            )
