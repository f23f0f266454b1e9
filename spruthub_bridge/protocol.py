"""Protocol helpers for Sprut.hub JSON-RPC frames.

This module builds outbound envelopes and method parameters, and normalizes
inbound envelopes into the ``{isSuccess, code, message}`` result shape used by
the bridge.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Final

from .errors import SprutInvalidArguments, SprutProtocolError

JSONRPC_VERSION: Final = "2.0"

# Hub error code for an invalid or expired session token.
INVALID_TOKEN_CODE: Final = -666003

QUESTION_TYPE_PASSWORD: Final = "QUESTION_TYPE_PASSWORD"
ACCOUNT_RESPONSE_SUCCESS: Final = "ACCOUNT_RESPONSE_SUCCESS"

SUCCESS_CODE: Final = 0
SUCCESS_MESSAGE: Final = "Success"

KNOWN_METHODS: Final = frozenset(
    {
        "server.version",
        "hub.list",
        "accessory.list",
        "room.list",
        "scenario.get",
        "characteristic.update",
    }
)


def build_envelope(
    *,
    params: dict[str, Any],
    call_id: int,
    serial: str,
    token: str | None = None,
) -> dict[str, Any]:
    """Build an outbound JSON-RPC envelope.

    Args:
        params: Method-specific parameter object.
        call_id: Correlation ID assigned by the session.
        serial: Hub serial number.
        token: Session token; omitted from the frame when not held.

    Returns:
        Envelope dict ready for JSON serialization.
    """
    envelope: dict[str, Any] = {
        "jsonrpc": JSONRPC_VERSION,
        "params": params,
        "id": call_id,
    }
    if token:
        envelope["token"] = token
    envelope["serial"] = serial
    return envelope


def get_nested(data: Any, path: Sequence[str], default: Any = None) -> Any:
    """Walk ``path`` through nested mappings, returning ``default`` on a miss."""
    current = data
    for key in path:
        if not isinstance(current, Mapping) or key not in current:
            return default
        current = current[key]
    return current


def response_id(frame: Mapping[str, Any]) -> int | None:
    """Return the correlation ID of an inbound frame, or None for events."""
    if "event" in frame:
        return None
    call_id = frame.get("id")
    # bool is an int subclass and never a valid correlation ID
    if isinstance(call_id, bool) or not isinstance(call_id, int):
        return None
    return call_id


def error_code(response: Mapping[str, Any]) -> int | None:
    """Return ``error.code`` when the response carries a structured error."""
    error = response.get("error")
    if isinstance(error, Mapping):
        code = error.get("code")
        if isinstance(code, int):
            return code
    return None


def is_invalid_token(response: Mapping[str, Any]) -> bool:
    """Return True when the hub rejected the session token."""
    return error_code(response) == INVALID_TOKEN_CODE


# -----------------------------------------------------------------------------
# Account handshake
# -----------------------------------------------------------------------------


def build_login_params(login: str) -> dict[str, Any]:
    """First step of the account handshake."""
    return {"account": {"login": {"login": login}}}


def build_answer_params(password: str) -> dict[str, Any]:
    """Second step of the account handshake: answer the password question."""
    return {"account": {"answer": {"data": password}}}


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------


def _require_id(args: Mapping[str, Any], key: str) -> int:
    value = args.get(key)
    if value is None:
        raise SprutInvalidArguments(
            "accessoryId, serviceId, characteristicId must be set"
        )
    if isinstance(value, bool) or not isinstance(value, int):
        raise SprutInvalidArguments(
            f"{key} must be integer, got {type(value).__name__}"
        )
    return value


def build_update_params(args: Mapping[str, Any]) -> dict[str, Any]:
    """Build ``characteristic.update`` params from command arguments.

    Raises:
        SprutInvalidArguments: If an identifier is missing or ``value`` is not
            a bool.
    """
    accessory_id = _require_id(args, "accessoryId")
    service_id = _require_id(args, "serviceId")
    characteristic_id = _require_id(args, "characteristicId")

    value = args.get("value")
    if not isinstance(value, bool):
        raise SprutInvalidArguments("value must be set")

    return {
        "characteristic": {
            "update": {
                "aId": accessory_id,
                "sId": service_id,
                "cId": characteristic_id,
                "value": {"boolValue": value},
            }
        }
    }


COMMAND_BUILDERS: Final[
    Mapping[str, Callable[[Mapping[str, Any]], dict[str, Any]]]
] = {
    "update": build_update_params,
}


def build_method_params(
    method: str, params: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Nest ``params`` under a dotted method name.

    ``build_method_params("hub.list")`` gives ``{"hub": {"list": {}}}``.
    """
    if method not in KNOWN_METHODS:
        raise SprutInvalidArguments(f"Unknown method: {method}")
    category, action = method.split(".", 1)
    return {category: {action: dict(params or {})}}


# -----------------------------------------------------------------------------
# Result normalization
# -----------------------------------------------------------------------------


def normalize_result(response: Mapping[str, Any]) -> dict[str, Any]:
    """Map an inbound envelope to ``{isSuccess, code, message}``.

    Raises:
        SprutProtocolError: If the envelope carries neither result nor error.
    """
    error = response.get("error")
    if error is not None:
        if isinstance(error, Mapping):
            return {"isSuccess": False, **error}
        # Some hub builds answer with a bare error string
        return {"isSuccess": False, "code": -1, "message": str(error)}

    if response.get("result") is not None:
        return {
            "isSuccess": True,
            "code": SUCCESS_CODE,
            "message": SUCCESS_MESSAGE,
        }

    raise SprutProtocolError(
        f"Response {response.get('id')} carries neither result nor error"
    )


def extract_method_data(method: str, result: Any) -> Any:
    """Extract the payload of ``method`` from a ``result`` object.

    The hub nests answers the same way as requests
    (``result.server.version``). Responses already flattened to
    ``result.data`` are passed through.
    """
    category, action = method.split(".", 1)
    nested = get_nested(result, (category, action))
    if nested is not None:
        return nested
    if isinstance(result, Mapping) and "data" in result:
        return result["data"]
    return result


def normalize_method_result(method: str, response: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize a method response and attach its ``data`` payload."""
    normalized = normalize_result(response)
    if normalized["isSuccess"]:
        normalized["data"] = extract_method_data(method, response["result"])
    return normalized


def as_list(data: Any, key: str) -> list[Any]:
    """Return listing ``data`` as a list, unwrapping ``{key: [...]}``."""
    if isinstance(data, list):
        return data
    if isinstance(data, Mapping) and isinstance(data.get(key), list):
        return data[key]
    return []


def controllable_devices(accessories: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Flatten writable characteristics of ``accessories`` into update targets."""
    devices: list[dict[str, Any]] = []
    for accessory in accessories:
        for service in accessory.get("services") or ():
            for characteristic in service.get("characteristics") or ():
                control = characteristic.get("control") or {}
                if not control.get("write"):
                    continue
                devices.append(
                    {
                        "accessoryId": accessory.get("id"),
                        "accessoryName": accessory.get("name"),
                        "serviceId": service.get("sId"),
                        "serviceName": service.get("name"),
                        "serviceType": service.get("type"),
                        "characteristicId": characteristic.get("cId"),
                        "characteristicName": control.get("name"),
                        "characteristicType": control.get("type"),
                        "currentValue": control.get("value"),
                        "writable": bool(control.get("write")),
                        "readable": bool(control.get("read")),
                        "hasEvents": bool(control.get("events")),
                    }
                )
    return devices
