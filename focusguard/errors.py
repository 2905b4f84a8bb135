"""Exception types shared by the data and service layers."""

from __future__ import annotations


class FocusGuardError(RuntimeError):
    """Base class for every error raised by FocusGuard."""


class ValidationError(FocusGuardError):
    """Bad input or an invalid state transition. Raised before any write."""


class PersistenceError(FocusGuardError):
    """A database call failed."""


class NotFoundError(FocusGuardError):
    """The requested session does not exist."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Focus session {session_id!r} not found.")
        self.session_id = session_id
