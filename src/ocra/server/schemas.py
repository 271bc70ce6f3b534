"""Request and response bodies of the backend HTTP API.

JSON field names are camelCase on the wire.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ocra.auth.client.models.tokens import TokenSet, UserProfile
from ocra.shared.time_utils import ensure_utc


class SessionCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_profile: UserProfile = Field(alias="userProfile")
    tokens: TokenSet


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UserOut(_ApiModel):
    id: uuid.UUID
    sub: str
    email: str | None = None
    name: str | None = None
    username: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    sys_admin: bool = False
    can_create_projects: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def validate_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class AuditEventOut(_ApiModel):
    id: int
    user_sub: str
    event_type: str
    entity_type: str
    success: bool
    user_agent: str | None = None
    ip_address: str | None = None
    session_id: str | None = None
    error_message: str | None = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def validate_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)
