"""Run the Sprut.hub HTTP bridge: ``python -m spruthub_bridge``."""

from __future__ import annotations

import logging
import sys

from aiohttp import web

from .app import build_app
from .config import ServerConfig, SprutConfig, load_env_file
from .errors import SprutConfigurationError
from .session import SprutSession

_LOGGER = logging.getLogger(__name__)


def main() -> int:
    load_env_file()

    try:
        server_config = ServerConfig.from_env()
        logging.basicConfig(
            level=server_config.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        config = SprutConfig.from_env()
    except SprutConfigurationError as err:
        _LOGGER.error("Invalid configuration: %s", err)
        return 1

    app = build_app(SprutSession(config))
    web.run_app(app, host=server_config.host, port=server_config.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
