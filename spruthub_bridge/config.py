"""Configuration for the Sprut.hub bridge.

Values are read from the environment by the entrypoint, after it loads the
per-environment dotenv file. Required values are validated on construction
so a misconfigured bridge fails before it opens a socket.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .errors import SprutConfigurationError
from .protocol import COMMAND_BUILDERS

DEFAULT_CALL_TIMEOUT = 30.0
DEFAULT_RECONNECT_DELAY = 5.0
DEFAULT_ALLOWED_COMMANDS: frozenset[str] = frozenset({"update"})


def _parse_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as err:
        raise SprutConfigurationError(f"{key} must be a number, got {raw!r}") from err
    if value <= 0:
        raise SprutConfigurationError(f"{key} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class SprutConfig:
    """Connection settings for a Sprut.hub session.

    Attributes:
        ws_url: Hub WebSocket URL (e.g. ``ws://192.168.1.5:7777/spruthub``)
        login: Account login identifier
        password: Account password
        serial: Hub serial number, sent with every frame
        allowed_commands: Command names ``execute`` accepts
        call_timeout: Seconds to wait for a response before failing a call
        reconnect_delay: Fixed delay between reconnect attempts (seconds)
    """

    ws_url: str
    login: str
    password: str = field(repr=False)
    serial: str
    allowed_commands: frozenset[str] = DEFAULT_ALLOWED_COMMANDS
    call_timeout: float = DEFAULT_CALL_TIMEOUT
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY

    def __post_init__(self) -> None:
        missing = [
            name
            for name in ("ws_url", "login", "password", "serial")
            if not getattr(self, name)
        ]
        if missing:
            raise SprutConfigurationError(
                "wsUrl, sprutLogin, sprutPassword, serial must be set "
                f"(missing: {', '.join(missing)})"
            )

        unknown = sorted(set(self.allowed_commands) - set(COMMAND_BUILDERS))
        if unknown:
            raise SprutConfigurationError(
                f"Allowed commands have no handler: {', '.join(unknown)}"
            )

        if self.call_timeout <= 0 or self.reconnect_delay <= 0:
            raise SprutConfigurationError(
                "call_timeout and reconnect_delay must be positive"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SprutConfig:
        """Build a config from ``WS_URL``, ``SPRUT_LOGIN`` and friends."""
        env = os.environ if environ is None else environ

        allowed_raw = env.get("SPRUT_ALLOWED_COMMANDS")
        if allowed_raw:
            allowed = frozenset(
                part.strip() for part in allowed_raw.split(",") if part.strip()
            )
        else:
            allowed = DEFAULT_ALLOWED_COMMANDS

        return cls(
            ws_url=env.get("WS_URL", ""),
            login=env.get("SPRUT_LOGIN") or env.get("SPRUT_EMAIL", ""),
            password=env.get("SPRUT_PASSWORD", ""),
            serial=env.get("SPRUT_SERIAL", ""),
            allowed_commands=allowed,
            call_timeout=_parse_float(env, "SPRUT_CALL_TIMEOUT", DEFAULT_CALL_TIMEOUT),
            reconnect_delay=_parse_float(
                env, "SPRUT_RECONNECT_DELAY", DEFAULT_RECONNECT_DELAY
            ),
        )


@dataclass(frozen=True)
class ServerConfig:
    """HTTP listener settings for the bridge entrypoint."""

    host: str = "localhost"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        env = os.environ if environ is None else environ
        port_raw = env.get("LISTENING_PORT", "3000")
        try:
            port = int(port_raw)
        except ValueError as err:
            raise SprutConfigurationError(
                f"LISTENING_PORT must be an integer, got {port_raw!r}"
            ) from err
        log_level = env.get("LOG_LEVEL", "INFO").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise SprutConfigurationError(f"LOG_LEVEL is not a log level: {log_level!r}")
        return cls(
            host=env.get("LISTENING_HOST", "localhost"),
            port=port,
            log_level=log_level,
        )


def load_env_file(directory: str | os.PathLike[str] = ".") -> Path:
    """Load ``.env.<NODE_ENV>`` from ``directory`` into ``os.environ``.

    ``NODE_ENV`` defaults to ``development``. Values from the file override
    the process environment; a missing file is ignored.
    """
    node_env = os.environ.get("NODE_ENV") or "development"
    path = Path(directory) / f".env.{node_env}"
    load_dotenv(dotenv_path=path, override=True)
    return path
