"""Session lifecycle"""

import functools
from enum import Enum

from .exceptions import NotOpenError, SessionStateError


class SessionState(Enum):
    UNOPENED = "UNOPENED"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class ConnectionStateMachine:
    """Tracks UNOPENED -> OPEN -> CLOSED. CLOSED is terminal."""

    def __init__(self):
        self._state = SessionState.UNOPENED

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is SessionState.OPEN

    @property
    def is_closed(self) -> bool:
        return self._state is SessionState.CLOSED

    def require_open(self) -> None:
        if self._state is not SessionState.OPEN:
            raise NotOpenError()

    def require_openable(self) -> None:
        if self._state is SessionState.OPEN:
            raise SessionStateError("Session is already open")
        if self._state is SessionState.CLOSED:
            raise SessionStateError("Session is closed and cannot be reopened; build a new Session")

    def mark_open(self) -> None:
        self.require_openable()
        self._state = SessionState.OPEN

    def mark_closed(self) -> None:
        self._state = SessionState.CLOSED

    def __repr__(self) -> str:
        return f"ConnectionStateMachine({self._state.value})"


def requires_open(method):
    """Fail with NotOpenError before the wrapped coroutine does anything else.

    The owning object must expose its state machine as ``_state``.
    """

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        self._state.require_open()
        return await method(self, *args, **kwargs)

    return wrapper
