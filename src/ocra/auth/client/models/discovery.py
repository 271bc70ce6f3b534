"""OpenID Connect discovery document model."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, field_validator


class DiscoveryDocument(BaseModel):
    """The endpoint subset of an OIDC discovery document.

    Any other metadata the provider publishes is ignored. A document missing
    one of the three required endpoints fails validation.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    issuer: str | None = None
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str
    end_session_endpoint: str | None = None

    @field_validator(
        "authorization_endpoint",
        "token_endpoint",
        "userinfo_endpoint",
        "end_session_endpoint",
    )
    @classmethod
    def validate_endpoint_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Endpoint must be an absolute http(s) URL: {v!r}")
        return v
