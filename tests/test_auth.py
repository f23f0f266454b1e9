"""Tests for the account handshake."""

from __future__ import annotations

from unittest.mock import AsyncMock, call

import pytest

from spruthub_bridge.auth import AuthResult, AuthState, SprutAuthSession
from spruthub_bridge.errors import (
    SprutAuthenticationError,
    SprutConnectionLost,
    SprutProtocolError,
)

LOGIN_OK = {
    "id": 1,
    "result": {
        "account": {"login": {"question": {"delay": 0, "type": "QUESTION_TYPE_PASSWORD"}}}
    },
}

ANSWER_OK = {
    "id": 2,
    "result": {
        "account": {
            "answer": {"status": "ACCOUNT_RESPONSE_SUCCESS", "token": "testToken"}
        }
    },
}


@pytest.fixture
def call_fn() -> AsyncMock:
    return AsyncMock()


async def test_authenticate_success(call_fn):
    """Login then answer yields the token."""
    call_fn.side_effect = [LOGIN_OK, ANSWER_OK]
    auth = SprutAuthSession(call_fn)

    result = await auth.authenticate("testLogin", "testPassword")

    assert result == AuthResult(token="testToken")
    assert auth.state is AuthState.AUTHENTICATED
    assert call_fn.await_args_list == [
        call({"account": {"login": {"login": "testLogin"}}}),
        call({"account": {"answer": {"data": "testPassword"}}}),
    ]


async def test_unexpected_question_aborts(call_fn):
    """A non-password question stops the handshake."""
    call_fn.side_effect = [
        {
            "id": 1,
            "result": {"account": {"login": {"question": {"type": "QUESTION_TYPE_EMAIL"}}}},
        }
    ]
    auth = SprutAuthSession(call_fn)

    with pytest.raises(SprutProtocolError, match="Expected password question type"):
        await auth.authenticate("testLogin", "testPassword")

    assert call_fn.await_count == 1
    assert auth.state is AuthState.UNAUTHENTICATED


async def test_error_response_to_login(call_fn):
    """An error reply to login is a protocol error."""
    call_fn.side_effect = [{"id": 1, "error": {"code": 5, "message": "Unknown account"}}]
    auth = SprutAuthSession(call_fn)

    with pytest.raises(SprutProtocolError):
        await auth.authenticate("nobody", "testPassword")


async def test_rejected_password(call_fn):
    """A rejected password raises an authentication error."""
    call_fn.side_effect = [
        LOGIN_OK,
        {
            "id": 2,
            "result": {"account": {"answer": {"status": "ACCOUNT_RESPONSE_FAILED"}}},
        },
    ]
    auth = SprutAuthSession(call_fn)

    with pytest.raises(SprutAuthenticationError, match="Authentication failed"):
        await auth.authenticate("testLogin", "wrong")

    assert auth.state is AuthState.UNAUTHENTICATED


async def test_success_without_token(call_fn):
    """Success without a token is a protocol error."""
    call_fn.side_effect = [
        LOGIN_OK,
        {"id": 2, "result": {"account": {"answer": {"status": "ACCOUNT_RESPONSE_SUCCESS"}}}},
    ]
    auth = SprutAuthSession(call_fn)

    with pytest.raises(SprutProtocolError, match="no token"):
        await auth.authenticate("testLogin", "testPassword")


async def test_transport_error_propagates(call_fn):
    """Transport errors propagate and reset the state."""
    call_fn.side_effect = [LOGIN_OK, SprutConnectionLost("Connection lost")]
    auth = SprutAuthSession(call_fn)

    with pytest.raises(SprutConnectionLost):
        await auth.authenticate("testLogin", "testPassword")

    assert auth.state is AuthState.UNAUTHENTICATED


async def test_awaiting_password_state_between_steps(call_fn):
    """State moves to awaiting password between steps."""
    auth = SprutAuthSession(call_fn)
    seen: list[AuthState] = []

    async def record(params):
        seen.append(auth.state)
        return LOGIN_OK if "login" in params["account"] else ANSWER_OK

    call_fn.side_effect = record
    await auth.authenticate("testLogin", "testPassword")

    assert seen == [AuthState.UNAUTHENTICATED, AuthState.AWAITING_PASSWORD_CHALLENGE]
