"""Database tables for users, sessions and audit events."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlmodel import Field, SQLModel

from ocra.shared.time_utils import utc_now


class AuditEventType(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"


class User(SQLModel, table=True):
    """Local user provisioned from the identity provider.

    Upserted by ``sub`` on every successful login and never deleted by the
    authentication flow. The admin and creator flags are managed elsewhere.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    sub: str = Field(
        sa_column=Column(String(255), unique=True, nullable=False, index=True),
        description="Subject identifier issued by the identity provider",
    )
    email: Optional[str] = Field(default=None, max_length=320)
    name: Optional[str] = Field(default=None, max_length=255)
    username: Optional[str] = Field(default=None, max_length=255)
    given_name: Optional[str] = Field(default=None, max_length=255)
    family_name: Optional[str] = Field(default=None, max_length=255)
    sys_admin: bool = Field(default=False)
    can_create_projects: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class SessionRecord(SQLModel, table=True):
    """Server-side session holding the provider tokens.

    Valid only while ``expires_at`` is in the future; expired rows linger
    until the sweep removes them but are never returned as live sessions.
    """

    __tablename__ = "sessions"

    id: str = Field(primary_key=True, max_length=64)
    user_id: uuid.UUID = Field(
        sa_column=Column(
            Uuid,
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    token_type: str = Field(default="Bearer", max_length=32)
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    def __repr__(self) -> str:
        return f"SessionRecord(id={self.id[:8]}..., user_id={self.user_id})"


class AuditEvent(SQLModel, table=True):
    """Append-only login/logout record.

    Keyed by subject string rather than user id so failed logins for
    users that were never provisioned can still be recorded.
    """

    __tablename__ = "audit_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_sub: str = Field(max_length=255, index=True)
    event_type: str = Field(max_length=32)
    entity_type: str = Field(default="session", max_length=32, index=True)
    success: bool
    user_agent: Optional[str] = Field(default=None, max_length=512)
    ip_address: Optional[str] = Field(default=None, max_length=64)
    session_id: Optional[str] = Field(default=None, max_length=64)
    error_message: Optional[str] = None
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
