"""Session custody errors."""

from __future__ import annotations


class SessionError(Exception):
    """Base exception for server-side session operations."""

    pass


class SessionPersistenceError(SessionError):
    """Raised when the session database cannot complete an operation.

    Surfaced to HTTP clients as a 5xx response.
    """

    pass


class SessionNotFoundError(SessionError):
    """Raised when a session id does not resolve to a live session.

    Unknown and expired ids raise the same error.
    """

    pass
