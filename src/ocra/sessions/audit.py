"""Append-only login/logout audit trail.

Recording is best-effort: a failed write is reported through the logger
and never reaches the login or logout that triggered it.
"""

from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from ocra.sessions.errors import SessionPersistenceError
from ocra.sessions.models import AuditEvent, AuditEventType
from ocra.shared.time_utils import utc_now

logger = logging.getLogger(__name__)

MAX_AUDIT_LIMIT = 100


def clamp_limit(limit: int | None, default: int) -> int:
    """Clamp a requested page size to 1..MAX_AUDIT_LIMIT."""
    if limit is None:
        return default
    return max(1, min(MAX_AUDIT_LIMIT, limit))


class AuditRecorder:
    """Writes and reads audit events."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._callbacks: list[Callable[[AuditEvent], None]] = []

    def on_record(self, callback: Callable[[AuditEvent], None]) -> None:
        """Register a callback invoked after each successful write."""
        self._callbacks.append(callback)

    def record(
        self,
        event_type: AuditEventType,
        user_sub: str,
        *,
        success: bool,
        user_agent: str | None = None,
        ip_address: str | None = None,
        session_id: str | None = None,
        error_message: str | None = None,
        entity_type: str = "session",
    ) -> None:
        """Append an audit event. Never raises."""
        event = AuditEvent(
            user_sub=user_sub,
            event_type=event_type.value,
            entity_type=entity_type,
            success=success,
            user_agent=user_agent,
            ip_address=ip_address,
            session_id=session_id,
            error_message=error_message,
            created_at=utc_now(),
        )
        try:
            with Session(self._engine, expire_on_commit=False) as db:
                db.add(event)
                db.commit()
        except Exception as e:
            logger.critical(
                f"Failed to record {event_type.value} audit event for {user_sub}: {e}"
            )
            return

        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Audit callback failed: {e}")

    # ================================
    # Queries
    # ================================

    def for_user(self, user_sub: str, limit: int | None = 20) -> list[AuditEvent]:
        """Newest-first events for one subject."""
        statement = (
            select(AuditEvent)
            .where(AuditEvent.user_sub == user_sub)
            .order_by(col(AuditEvent.created_at).desc(), col(AuditEvent.id).desc())
            .limit(clamp_limit(limit, 20))
        )
        return self._query(statement)

    def recent(
        self, limit: int | None = 50, entity_type: str | None = None
    ) -> list[AuditEvent]:
        """Newest-first events across all users, optionally by entity type."""
        statement = select(AuditEvent)
        if entity_type:
            statement = statement.where(AuditEvent.entity_type == entity_type)
        statement = statement.order_by(
            col(AuditEvent.created_at).desc(), col(AuditEvent.id).desc()
        ).limit(clamp_limit(limit, 50))
        return self._query(statement)

    def _query(self, statement) -> list[AuditEvent]:
        try:
            with Session(self._engine) as db:
                return list(db.exec(statement).all())
        except SQLAlchemyError as e:
            raise SessionPersistenceError(f"Failed to read audit events: {e}") from e
