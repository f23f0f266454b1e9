"""Account login handshake for Sprut.hub sessions."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import SprutAuthenticationError, SprutProtocolError
from .protocol import (
    ACCOUNT_RESPONSE_SUCCESS,
    QUESTION_TYPE_PASSWORD,
    build_answer_params,
    build_login_params,
    get_nested,
)

_LOGGER = logging.getLogger(__name__)

CallFn = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class AuthState(Enum):
    """Progress through the login/password challenge."""

    UNAUTHENTICATED = "unauthenticated"
    AWAITING_PASSWORD_CHALLENGE = "awaiting_password_challenge"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful handshake."""

    token: str


class SprutAuthSession:
    """Run the two round-trip account handshake over a call function.

    ``call`` must send a single request and return the raw response envelope
    without any re-authentication of its own.
    """

    def __init__(self, call: CallFn, *, name: str = "") -> None:
        self._call = call
        self._name = name
        self._state = AuthState.UNAUTHENTICATED

    @property
    def state(self) -> AuthState:
        return self._state

    async def authenticate(self, login: str, password: str) -> AuthResult:
        """Log in and answer the password question.

        Raises:
            SprutProtocolError: If the hub does not ask for a password, or
                answers success without a token
            SprutAuthenticationError: If the hub rejects the password
        """
        self._state = AuthState.UNAUTHENTICATED
        try:
            result = await self._run(login, password)
        except BaseException:
            self._state = AuthState.UNAUTHENTICATED
            raise
        self._state = AuthState.AUTHENTICATED
        _LOGGER.info("[%s] Authenticated as %s", self._name, login)
        return result

    async def _run(self, login: str, password: str) -> AuthResult:
        login_response = await self._call(build_login_params(login))
        question = get_nested(
            login_response, ("result", "account", "login", "question", "type")
        )
        if question != QUESTION_TYPE_PASSWORD:
            _LOGGER.error(
                "[%s] Unexpected login question %r: %s",
                self._name,
                question,
                login_response,
            )
            raise SprutProtocolError("Expected password question type")

        self._state = AuthState.AWAITING_PASSWORD_CHALLENGE

        answer_response = await self._call(build_answer_params(password))
        answer = get_nested(answer_response, ("result", "account", "answer"))
        if not isinstance(answer, Mapping):
            answer = {}
        if answer.get("status") != ACCOUNT_RESPONSE_SUCCESS:
            _LOGGER.error(
                "[%s] Password rejected: %s", self._name, answer.get("message")
            )
            raise SprutAuthenticationError("Authentication failed")

        token = answer.get("token")
        if not isinstance(token, str) or not token:
            raise SprutProtocolError("Authentication response carries no token")
        return AuthResult(token=token)
