"""HTTP-to-WebSocket bridge for the Sprut.hub home-automation hub."""

__version__ = "1.0.4"

from .auth import AuthResult, AuthState, SprutAuthSession
from .config import ServerConfig, SprutConfig
from .errors import (
    SprutAuthenticationError,
    SprutClientError,
    SprutCommandNotAllowed,
    SprutConfigurationError,
    SprutConnectionError,
    SprutConnectionLost,
    SprutHandshakeError,
    SprutInvalidArguments,
    SprutNotConnected,
    SprutProtocolError,
    SprutTimeout,
    SprutTransportError,
)
from .pending import PendingCallRegistry
from .protocol import INVALID_TOKEN_CODE, build_envelope, normalize_result
from .session import SprutSession
from .state import ConnectionState, SessionState
from .transport import SprutConnection, SprutWsClient, SprutWsMessage, SprutWsMessageType

__all__ = [
    "INVALID_TOKEN_CODE",
    "AuthResult",
    "AuthState",
    "ConnectionState",
    "PendingCallRegistry",
    "ServerConfig",
    "SessionState",
    "SprutAuthSession",
    "SprutAuthenticationError",
    "SprutClientError",
    "SprutCommandNotAllowed",
    "SprutConfig",
    "SprutConfigurationError",
    "SprutConnection",
    "SprutConnectionError",
    "SprutConnectionLost",
    "SprutHandshakeError",
    "SprutInvalidArguments",
    "SprutNotConnected",
    "SprutProtocolError",
    "SprutSession",
    "SprutTimeout",
    "SprutTransportError",
    "SprutWsClient",
    "SprutWsMessage",
    "SprutWsMessageType",
    "__version__",
    "build_envelope",
    "normalize_result",
]
