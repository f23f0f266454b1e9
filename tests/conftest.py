"""Pytest configuration and fixtures for spruthub_bridge tests."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from spruthub_bridge import SprutConfig, SprutSession
from spruthub_bridge.protocol import INVALID_TOKEN_CODE, get_nested

# Rule outcomes other than a frame (or list of frames)
NO_REPLY = object()
CLOSE = object()

Rule = tuple[Callable[[dict[str, Any]], bool], Callable[[dict[str, Any]], Any]]

ACCESSORIES: list[dict[str, Any]] = [
    {
        "id": 167,
        "name": "Living Room Light",
        "manufacturer": "Philips",
        "model": "Hue Bulb",
        "online": True,
        "roomId": 1,
        "services": [
            {
                "sId": 13,
                "name": "Lightbulb Service",
                "type": "public.hap.service.lightbulb",
                "characteristics": [
                    {
                        "cId": 15,
                        "control": {
                            "name": "On",
                            "type": "public.hap.characteristic.on",
                            "value": False,
                            "write": True,
                            "read": True,
                            "events": True,
                        },
                    },
                    {
                        "cId": 16,
                        "control": {
                            "name": "Name",
                            "type": "public.hap.characteristic.name",
                            "value": "Light",
                            "write": False,
                            "read": True,
                        },
                    },
                ],
            }
        ],
    }
]

SERVER_VERSION: dict[str, Any] = {
    "revision": 11847,
    "branch": "release",
    "version": "1.9.10",
    "manufacturer": "Sprut.hub",
    "serial": "DDDDDDDDDDDDDDDD",
}


class MockHub:
    """In-process Sprut.hub speaking the JSON-RPC dialect over WebSocket.

    Responses come from a rule list; rules added with ``on`` take precedence
    over the defaults. A rule's response callable returns a frame, a list of
    frames, ``NO_REPLY`` or ``CLOSE``.
    """

    def __init__(self) -> None:
        self.port = 0
        self.token = "testToken"
        self.received: list[dict[str, Any]] = []
        self.connections: set[ServerConnection] = set()
        self.connection_count = 0
        self._rules: list[Rule] = []

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}"

    def on(
        self,
        match: Callable[[dict[str, Any]], bool],
        response: Callable[[dict[str, Any]], Any],
    ) -> None:
        self._rules.insert(0, (match, response))

    def frames(self, *path: str) -> list[dict[str, Any]]:
        """Received frames whose params contain ``path``."""
        return [
            msg
            for msg in self.received
            if get_nested(msg.get("params"), path) is not None
        ]

    @property
    def login_count(self) -> int:
        return len(self.frames("account", "login"))

    async def drop_clients(self) -> None:
        for connection in list(self.connections):
            await connection.close()

    async def handler(self, connection: ServerConnection) -> None:
        self.connections.add(connection)
        self.connection_count += 1
        try:
            async for raw in connection:
                message = json.loads(raw)
                self.received.append(message)
                reply = self.respond(message)
                if reply is NO_REPLY:
                    continue
                if reply is CLOSE:
                    await connection.close()
                    return
                for frame in reply if isinstance(reply, list) else [reply]:
                    await connection.send(json.dumps(frame))
        except ConnectionClosed:
            pass
        finally:
            self.connections.discard(connection)

    def respond(self, message: dict[str, Any]) -> Any:
        for match, response in [*self._rules, *self._default_rules()]:
            if match(message):
                return response(message)
        return {
            "id": message["id"],
            "error": {"code": -1, "message": "No matching rule for message"},
        }

    def _default_rules(self) -> list[Rule]:
        def params(message: dict[str, Any], *path: str) -> Any:
            return get_nested(message.get("params"), path)

        return [
            (
                lambda m: params(m, "account", "login", "login") == "testLogin",
                lambda m: {
                    "id": m["id"],
                    "result": {
                        "account": {
                            "login": {
                                "question": {
                                    "delay": 0,
                                    "type": "QUESTION_TYPE_PASSWORD",
                                }
                            }
                        }
                    },
                },
            ),
            (
                lambda m: params(m, "account", "answer", "data") == "testPassword",
                lambda m: {
                    "id": m["id"],
                    "result": {
                        "account": {
                            "answer": {
                                "status": "ACCOUNT_RESPONSE_SUCCESS",
                                "message": "Успешная авторизация",
                                "token": self.token,
                            }
                        }
                    },
                },
            ),
            (
                lambda m: params(m, "account", "answer") is not None,
                lambda m: {
                    "id": m["id"],
                    "result": {
                        "account": {
                            "answer": {
                                "status": "ACCOUNT_RESPONSE_FAILED",
                                "message": "Wrong password",
                            }
                        }
                    },
                },
            ),
            # Everything below requires the current token
            (
                lambda m: m.get("token") != self.token,
                lambda m: {
                    "id": m["id"],
                    "error": {"code": INVALID_TOKEN_CODE, "message": "Token is not valid"},
                },
            ),
            (
                lambda m: params(m, "characteristic", "update", "aId") == 167,
                lambda m: {"id": m["id"], "result": {"characteristic": {"update": {}}}},
            ),
            (
                lambda m: params(m, "characteristic", "update", "aId") == 500,
                lambda m: {"id": m["id"], "error": {"code": 1, "message": "x"}},
            ),
            (
                lambda m: params(m, "server", "version") is not None,
                lambda m: {
                    "id": m["id"],
                    "result": {"server": {"version": SERVER_VERSION}},
                },
            ),
            (
                lambda m: params(m, "hub", "list") is not None,
                lambda m: {
                    "id": m["id"],
                    "result": {
                        "hub": {
                            "list": {
                                "hubs": [
                                    {"id": "hub-001", "name": "Main Hub", "online": True}
                                ]
                            }
                        }
                    },
                },
            ),
            (
                lambda m: params(m, "accessory", "list") is not None,
                lambda m: {
                    "id": m["id"],
                    "result": {"accessory": {"list": {"accessories": ACCESSORIES}}},
                },
            ),
            (
                lambda m: params(m, "room", "list") is not None,
                lambda m: {
                    "id": m["id"],
                    "result": {
                        "isSuccess": True,
                        "code": 0,
                        "message": "Success",
                        "data": [
                            {"id": 1, "name": "Living Room", "visible": True},
                            {"id": 2, "name": "Kitchen", "visible": True},
                        ],
                    },
                },
            ),
            (
                lambda m: params(m, "scenario", "get") is not None,
                lambda m: {
                    "id": m["id"],
                    "result": {
                        "scenario": {
                            "get": {
                                "index": params(m, "scenario", "get", "index"),
                                "type": "BLOCK",
                                "active": True,
                                "name": "",
                            }
                        }
                    },
                },
            ),
        ]


@pytest.fixture
async def hub() -> AsyncIterator[MockHub]:
    """Run a mock hub on an ephemeral port."""
    mock = MockHub()
    async with serve(mock.handler, "127.0.0.1", 0) as server:
        mock.port = next(iter(server.sockets)).getsockname()[1]
        yield mock


@pytest.fixture
def config(hub: MockHub) -> SprutConfig:
    return SprutConfig(
        ws_url=hub.url,
        login="testLogin",
        password="testPassword",
        serial="testSerial",
        call_timeout=2.0,
        reconnect_delay=0.1,
    )


@pytest.fixture
async def session(config: SprutConfig) -> AsyncIterator[SprutSession]:
    """Connected session against the mock hub."""
    sprut = SprutSession(config, ping_interval=None, connect_timeout=2.0)
    await sprut.start()
    await sprut.connected(timeout=2.0)
    yield sprut
    await sprut.close()
