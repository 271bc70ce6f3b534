"""Session lifecycle as seen by request handlers.

Composes the session store with the audit recorder: opening a session
records a login, closing one records a logout.
"""

from __future__ import annotations

import logging

from ocra.auth.client.models.tokens import TokenSet, UserProfile
from ocra.sessions.audit import AuditRecorder
from ocra.sessions.errors import SessionPersistenceError
from ocra.sessions.models import AuditEventType
from ocra.sessions.store import ResolvedSession, SessionStore

logger = logging.getLogger(__name__)


class SessionService:
    def __init__(self, store: SessionStore, audit: AuditRecorder) -> None:
        self.store = store
        self.audit = audit

    def open_session(
        self,
        profile: UserProfile,
        tokens: TokenSet,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        """Create a session and record the login.

        A persistence failure is recorded as a failed login and re-raised.

        Raises:
            SessionPersistenceError: If the session cannot be stored
        """
        try:
            session_id = self.store.create(profile, tokens)
        except SessionPersistenceError as e:
            self.audit.record(
                AuditEventType.LOGIN,
                profile.sub,
                success=False,
                user_agent=user_agent,
                ip_address=ip_address,
                error_message=str(e),
            )
            raise

        self.audit.record(
            AuditEventType.LOGIN,
            profile.sub,
            success=True,
            user_agent=user_agent,
            ip_address=ip_address,
            session_id=session_id,
        )
        logger.info(f"User {profile.sub} logged in")
        return session_id

    def current(self, session_id: str | None) -> ResolvedSession | None:
        return self.store.resolve(session_id)

    def close_session(
        self,
        session_id: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> bool:
        """Delete a session and record the logout.

        Idempotent: closing an absent session removes nothing and records
        nothing.

        Returns True if a session was removed.
        """
        user_sub = self.store.owner_sub(session_id)
        removed = self.store.delete(session_id)

        if removed and user_sub is not None:
            self.audit.record(
                AuditEventType.LOGOUT,
                user_sub,
                success=True,
                user_agent=user_agent,
                ip_address=ip_address,
                session_id=session_id,
            )
            logger.info(f"User {user_sub} logged out")
        return removed

    def sweep_expired(self) -> int:
        return self.store.sweep_expired()
