"""Server-side session store and resolver.

The store is the only source of truth for whether a caller is
authenticated. Every mutation is a single statement or a single
transaction against the database, so concurrent requests never observe
a half-applied change.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from ocra.auth.client.models.tokens import TokenSet, UserProfile
from ocra.sessions.errors import SessionNotFoundError, SessionPersistenceError
from ocra.sessions.models import SessionRecord, User
from ocra.shared.time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 3600


def generate_session_id() -> str:
    """Generate an opaque, unguessable session identifier (256 bits)."""
    return secrets.token_urlsafe(32)


@dataclass(frozen=True)
class ResolvedSession:
    """A live session together with its owning user."""

    session_id: str
    user: User
    record: SessionRecord

    @property
    def expires_at(self) -> datetime:
        return ensure_utc(self.record.expires_at)

    @property
    def id_token(self) -> str | None:
        return self.record.id_token


class SessionStore:
    """Creates, resolves and removes server-side sessions."""

    def __init__(
        self,
        engine: Engine,
        default_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._engine = engine
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock

    # ================================
    # Creation
    # ================================

    def create(
        self,
        profile: UserProfile,
        tokens: TokenSet,
        *,
        expires_at: datetime | None = None,
    ) -> str:
        """Upsert the user by subject and create a session for them.

        The session expires ``tokens.expires_in`` seconds from now, or after
        the default TTL when the provider did not say.

        Returns:
            The new opaque session id

        Raises:
            SessionPersistenceError: If the database write fails
        """
        now = self._clock()
        if expires_at is None:
            ttl = tokens.expires_in
            if ttl is None:
                ttl = self.default_ttl_seconds
            try:
                expires_at = now + timedelta(seconds=ttl)
            except OverflowError as e:
                raise SessionPersistenceError(
                    f"Session lifetime of {ttl}s is out of range for {profile.sub}"
                ) from e
        # SQLite drops tzinfo, so only UTC wall-clock time may reach the column
        expires_at = ensure_utc(expires_at)

        session_id = generate_session_id()

        # One retry covers a concurrent first login inserting the same sub
        for attempt in range(2):
            try:
                self._persist(session_id, profile, tokens, expires_at, now)
                break
            except IntegrityError as e:
                if attempt == 0:
                    logger.debug(
                        f"Concurrent insert for user {profile.sub}, retrying as update"
                    )
                    continue
                raise SessionPersistenceError(
                    f"Failed to create session for {profile.sub}: {e}"
                ) from e
            except SQLAlchemyError as e:
                logger.error(f"Failed to create session for {profile.sub}: {e}")
                raise SessionPersistenceError(
                    f"Failed to create session for {profile.sub}: {e}"
                ) from e

        logger.debug(f"Created session {session_id[:8]} for user {profile.sub}")
        return session_id

    def _persist(
        self,
        session_id: str,
        profile: UserProfile,
        tokens: TokenSet,
        expires_at: datetime,
        now: datetime,
    ) -> None:
        with Session(self._engine) as db:
            try:
                user = db.exec(select(User).where(User.sub == profile.sub)).first()
                if user is None:
                    user = User(sub=profile.sub, created_at=now)

                user.email = profile.email
                user.name = profile.name
                user.username = profile.login_name
                user.given_name = profile.given_name
                user.family_name = profile.family_name
                user.updated_at = now
                db.add(user)
                db.flush()

                db.add(
                    SessionRecord(
                        id=session_id,
                        user_id=user.id,
                        access_token=tokens.access_token,
                        refresh_token=tokens.refresh_token,
                        id_token=tokens.id_token,
                        token_type=tokens.token_type,
                        expires_at=expires_at,
                        created_at=now,
                    )
                )
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise

    # ================================
    # Resolution
    # ================================

    def resolve(self, session_id: str | None) -> ResolvedSession | None:
        """Return the live session for an id.

        Returns None for unknown and expired ids alike.

        Raises:
            SessionPersistenceError: If the database cannot be read
        """
        if not session_id:
            return None

        statement = (
            select(SessionRecord, User)
            .join(User, SessionRecord.user_id == User.id)
            .where(SessionRecord.id == session_id)
            .where(SessionRecord.expires_at > self._clock())
        )
        try:
            with Session(self._engine) as db:
                row = db.exec(statement).first()
        except SQLAlchemyError as e:
            raise SessionPersistenceError(f"Failed to resolve session: {e}") from e

        if row is None:
            return None
        record, user = row
        return ResolvedSession(session_id=record.id, user=user, record=record)

    def get(self, session_id: str | None) -> ResolvedSession:
        """Like ``resolve`` but raises when there is no live session.

        Raises:
            SessionNotFoundError: If the session is unknown or expired
        """
        resolved = self.resolve(session_id)
        if resolved is None:
            raise SessionNotFoundError("Session not found or expired")
        return resolved

    def owner_sub(self, session_id: str) -> str | None:
        """Subject of the user owning a session row, expired or not."""
        statement = (
            select(User.sub)
            .join(SessionRecord, SessionRecord.user_id == User.id)
            .where(SessionRecord.id == session_id)
        )
        try:
            with Session(self._engine) as db:
                return db.exec(statement).first()
        except SQLAlchemyError as e:
            raise SessionPersistenceError(f"Failed to look up session: {e}") from e

    # ================================
    # Removal
    # ================================

    def delete(self, session_id: str) -> bool:
        """Delete a session. Deleting an absent session is not an error.

        Returns True if a row was removed.
        """
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    delete(SessionRecord).where(SessionRecord.id == session_id)
                )
                removed = result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete session {session_id[:8]}: {e}")
            raise SessionPersistenceError(f"Failed to delete session: {e}") from e

        if removed:
            logger.debug(f"Deleted session {session_id[:8]}")
        return removed

    def sweep_expired(self) -> int:
        """Remove every session whose expiry has passed.

        Runs as one DELETE so it never races a concurrent resolve.

        Returns the number of sessions removed.
        """
        now = self._clock()
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    delete(SessionRecord).where(SessionRecord.expires_at <= now)
                )
                removed_count = result.rowcount
        except SQLAlchemyError as e:
            raise SessionPersistenceError(f"Failed to sweep sessions: {e}") from e

        if removed_count:
            logger.info(f"Swept {removed_count} expired sessions")
        return removed_count
