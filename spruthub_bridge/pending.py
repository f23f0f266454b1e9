"""Registry of outstanding hub calls keyed by correlation ID."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from .config import DEFAULT_CALL_TIMEOUT
from .errors import SprutTimeout

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _PendingCall:
    """Track an outstanding call awaiting its response frame."""

    call_id: int
    future: asyncio.Future[dict[str, Any]]
    deadline: float
    timer: asyncio.TimerHandle


class PendingCallRegistry:
    """Map correlation IDs to the futures awaiting their responses.

    Every registered call is settled exactly once: by its response frame, by
    its deadline expiring (``SprutTimeout``), or by ``fail_all`` when the
    connection goes away. ``remove`` discards an entry without settling it,
    for callers that already stopped waiting.

    Only touched from the event loop thread.
    """

    def __init__(
        self, *, default_timeout: float = DEFAULT_CALL_TIMEOUT, name: str = ""
    ) -> None:
        self._default_timeout = default_timeout
        self._name = name
        self._calls: dict[int, _PendingCall] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._calls

    @property
    def pending_ids(self) -> Iterator[int]:
        return iter(list(self._calls))

    def add(
        self, call_id: int, timeout: float | None = None
    ) -> asyncio.Future[dict[str, Any]]:
        """Register ``call_id`` and return the future its response resolves.

        Raises:
            ValueError: If ``call_id`` is already pending.
        """
        if call_id in self._calls:
            raise ValueError(f"Call {call_id} is already pending")

        loop = asyncio.get_running_loop()
        timeout = self._default_timeout if timeout is None else timeout
        future: asyncio.Future[dict[str, Any]] = loop.create_future()
        timer = loop.call_later(timeout, self._expire, call_id, timeout)
        self._calls[call_id] = _PendingCall(
            call_id=call_id,
            future=future,
            deadline=loop.time() + timeout,
            timer=timer,
        )
        return future

    def resolve(self, call_id: int, payload: dict[str, Any]) -> bool:
        """Deliver ``payload`` to the call waiting on ``call_id``.

        Returns:
            True if a pending call was resolved, False for unknown IDs
        """
        pending = self._calls.pop(call_id, None)
        if pending is None:
            _LOGGER.debug(
                "[%s] No pending call for response id=%s, dropping", self._name, call_id
            )
            return False

        pending.timer.cancel()
        if pending.future.done():
            # Caller gave up (cancelled) before the response arrived
            return False
        pending.future.set_result(payload)
        return True

    def remove(self, call_id: int) -> None:
        """Discard ``call_id`` and cancel its timer. Idempotent."""
        pending = self._calls.pop(call_id, None)
        if pending is not None:
            pending.timer.cancel()

    def fail_all(self, exc: BaseException) -> int:
        """Fail every pending call with ``exc`` and clear the registry.

        Returns:
            Number of calls that were failed
        """
        calls = list(self._calls.values())
        self._calls.clear()

        failed = 0
        for pending in calls:
            pending.timer.cancel()
            if not pending.future.done():
                pending.future.set_exception(exc)
                failed += 1
        return failed

    def _expire(self, call_id: int, timeout: float) -> None:
        pending = self._calls.pop(call_id, None)
        if pending is None or pending.future.done():
            return
        _LOGGER.warning(
            "[%s] Call id=%d timed out after %.1fs", self._name, call_id, timeout
        )
        pending.future.set_exception(
            SprutTimeout(f"Call {call_id} timed out after {timeout}s")
        )
