"""Client error types for Sprut.hub bridge interactions."""

from __future__ import annotations


class SprutClientError(Exception):
    """Base error for Sprut.hub client failures."""


class SprutConfigurationError(SprutClientError):
    """A required configuration value is missing or invalid."""


class SprutTransportError(SprutClientError):
    """The WebSocket transport could not carry a message."""


class SprutNotConnected(SprutTransportError):
    """Operation attempted while the WebSocket is not open."""


class SprutConnectionError(SprutTransportError):
    """Network connection to the hub failed."""


class SprutHandshakeError(SprutTransportError):
    """WebSocket handshake failed."""


class SprutConnectionLost(SprutTransportError):
    """The socket closed while calls were outstanding."""


class SprutTimeout(SprutClientError):
    """Timeout while communicating with the hub."""


class SprutProtocolError(SprutClientError):
    """The hub answered with an unexpected response shape."""


class SprutAuthenticationError(SprutClientError):
    """The hub rejected the configured credentials."""


class SprutCommandNotAllowed(SprutClientError):
    """Command is not in the configured allow-list."""

    def __init__(self, command: str) -> None:
        super().__init__(f"Command not allowed: {command}")
        self.command = command


class SprutInvalidArguments(SprutClientError):
    """Command arguments failed validation."""
