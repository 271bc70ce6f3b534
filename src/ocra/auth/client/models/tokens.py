"""Token and user profile models.

``TokenSet`` is what the token endpoint hands back and what the session
store takes custody of. ``UserProfile`` is the userinfo payload.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3).

    Includes the PKCE code_verifier (RFC 7636).
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).
        """
        return {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": self.code_verifier,
        }


class TokenSet(BaseModel):
    """Successful token endpoint response (RFC 6749 Section 5.1)."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1, repr=False)
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = Field(default=None, repr=False)
    id_token: str | None = Field(default=None, repr=False)
    scope: str | None = None


class UserProfile(BaseModel):
    """OIDC userinfo claims used to provision the local user."""

    model_config = ConfigDict(extra="ignore")

    sub: str
    email: str | None = None
    name: str | None = None
    preferred_username: str | None = None
    username: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    middle_name: str | None = None

    @field_validator("sub")
    @classmethod
    def validate_sub(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("sub must not be empty")
        return v

    @property
    def login_name(self) -> str | None:
        """Username as the provider reports it, preferring the OIDC claim."""
        return self.preferred_username or self.username
