"""HTTP front end translating REST requests into hub calls."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from .errors import (
    SprutClientError,
    SprutCommandNotAllowed,
    SprutInvalidArguments,
    SprutTimeout,
    SprutTransportError,
)
from .session import DEFAULT_ACCESSORY_EXPAND, DEFAULT_SCENARIO_EXPAND, SprutSession

_LOGGER = logging.getLogger(__name__)

SESSION_KEY = web.AppKey("sprut_session", SprutSession)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _reply(method: str, result: dict[str, Any]) -> web.Response:
    if result.get("isSuccess"):
        return web.json_response({"result": result})
    _LOGGER.error("Sprut-client call for %s failed: %s", method, result)
    return _error(500, result.get("message") or "An error occurred in sprut-client")


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Map client errors onto HTTP status codes."""
    try:
        return await handler(request)
    except SprutInvalidArguments as err:
        return _error(400, str(err))
    except SprutCommandNotAllowed as err:
        return _error(403, str(err))
    except SprutTimeout as err:
        _LOGGER.warning("Hub call for %s timed out: %s", request.path, err)
        return _error(504, str(err))
    except SprutTransportError as err:
        _LOGGER.warning("Hub unavailable for %s: %s", request.path, err)
        return _error(503, str(err))
    except SprutClientError as err:
        _LOGGER.error("Error in handler for %s: %s", request.path, err)
        return _error(500, "An error occurred while processing your request.")


async def handle_version(request: web.Request) -> web.Response:
    session = request.app[SESSION_KEY]
    return _reply("server.version", await session.version())


async def handle_hubs(request: web.Request) -> web.Response:
    session = request.app[SESSION_KEY]
    return _reply("hub.list", await session.list_hubs())


async def handle_accessories(request: web.Request) -> web.Response:
    session = request.app[SESSION_KEY]
    expand = request.query.get("expand", DEFAULT_ACCESSORY_EXPAND)
    return _reply("accessory.list", await session.list_accessories(expand=expand))


async def handle_rooms(request: web.Request) -> web.Response:
    session = request.app[SESSION_KEY]
    return _reply("room.list", await session.list_rooms())


async def handle_scenario(request: web.Request) -> web.Response:
    session = request.app[SESSION_KEY]
    index = request.match_info["index"]
    expand = request.query.get("expand", DEFAULT_SCENARIO_EXPAND)
    return _reply("scenario.get", await session.get_scenario(index, expand=expand))


async def handle_system_info(request: web.Request) -> web.Response:
    session = request.app[SESSION_KEY]
    return web.json_response(await session.system_info())


async def handle_update(request: web.Request) -> web.Response:
    """Update one characteristic.

    Body: ``{accessoryId, serviceId, characteristicId, control: {value}}``.
    """
    session = request.app[SESSION_KEY]
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return _error(400, "Request body must be valid JSON")
    if not isinstance(body, dict):
        return _error(400, "Request body must be a JSON object")

    control = body.get("control")
    if not isinstance(control, dict):
        return _error(400, "body must have required property 'control'")

    args = {
        "accessoryId": body.get("accessoryId"),
        "serviceId": body.get("serviceId"),
        "characteristicId": body.get("characteristicId"),
        "value": control.get("value"),
    }
    result = await session.execute("update", args)
    if not result.get("isSuccess"):
        return _reply("characteristic.update", result)
    return web.json_response({**args, "result": result})


async def _start_session(app: web.Application) -> None:
    await app[SESSION_KEY].start()


async def _close_session(app: web.Application) -> None:
    await app[SESSION_KEY].close()


def build_app(session: SprutSession, *, manage_session: bool = True) -> web.Application:
    """Build the bridge application around ``session``.

    Args:
        session: Hub session the routes call into
        manage_session: Start the session on startup and close it on cleanup
    """
    app = web.Application(middlewares=[error_middleware])
    app[SESSION_KEY] = session

    app.router.add_get("/server/version", handle_version)
    app.router.add_get("/hubs", handle_hubs)
    app.router.add_get("/accessories", handle_accessories)
    app.router.add_get("/rooms", handle_rooms)
    app.router.add_get("/scenarios/{index}", handle_scenario)
    app.router.add_get("/system/info", handle_system_info)
    app.router.add_post("/update", handle_update)

    if manage_session:
        app.on_startup.append(_start_session)
        app.on_cleanup.append(_close_session)
    return app
