"""Application settings using Pydantic Settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ocra.auth.client.models.config import OAuthConfig


class OAuthSettings(BaseSettings):
    """Identity provider client settings."""

    model_config = SettingsConfigDict(
        env_prefix="OCRA_OAUTH__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    issuer: str = Field(
        default="http://localhost:8081/realms/demo",
        description="OIDC issuer URL",
    )
    client_id: str = Field(default="react-oauth", description="OAuth client ID")
    redirect_uri: str = Field(
        default="http://localhost:8000/auth/callback",
        description="Callback URL registered with the provider",
    )
    scope: str = Field(default="openid profile email", description="Requested scopes")
    post_logout_redirect_uri: str | None = Field(
        default="http://localhost:8000/",
        description="Where the provider sends the browser after logout",
    )
    http_timeout: float = Field(
        default=15.0, description="Timeout in seconds for each provider call"
    )
    discovery_ttl_seconds: float | None = Field(
        default=None,
        description="Discovery cache lifetime, unset to cache for the process lifetime",
    )

    def to_config(self) -> OAuthConfig:
        return OAuthConfig(
            issuer=self.issuer,
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            scope=self.scope,
            post_logout_redirect_uri=self.post_logout_redirect_uri,
        )


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="OCRA_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # API
    host: str = Field(default="127.0.0.1", description="API server host")
    port: int = Field(default=8000, description="API server port")
    log_level: str = Field(default="INFO", description="Root log level")

    # Database
    database_url: str = Field(
        default="sqlite:///./ocra.db", description="SQLAlchemy database URL"
    )

    # Sessions
    default_session_ttl_seconds: int = Field(
        default=3600,
        description="Session lifetime when the provider omits expires_in",
    )
    sweep_interval_seconds: float = Field(
        default=300.0, description="Seconds between expired session sweeps"
    )
    session_cookie_name: str = Field(default="session_id")
    session_cookie_max_age: int = Field(
        default=24 * 60 * 60, description="Session cookie lifetime in seconds"
    )
    cookie_secure: bool = Field(
        default=False, description="Mark cookies Secure (enable behind HTTPS)"
    )

    # Login flow
    flow_state_ttl_seconds: float = Field(
        default=600.0, description="How long a pending authorization stays valid"
    )
    flow_cookie_name: str = Field(default="ocra_login_ctx")
    landing_url: str = Field(
        default="/", description="Where the browser lands after login"
    )
    session_backend_url: str | None = Field(
        default=None,
        description="Remote session API base URL, unset to use the local database",
    )

    # Identity provider (nested)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)


def get_settings() -> Settings:
    return Settings()
