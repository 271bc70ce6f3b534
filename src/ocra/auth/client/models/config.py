from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OAuthConfig:
    """Identity provider client configuration.

    Loaded once at startup and never mutated.
    """

    issuer: str
    client_id: str
    redirect_uri: str
    scope: str = "openid profile email"
    post_logout_redirect_uri: str | None = None

    @property
    def logout_landing_uri(self) -> str:
        """Where the browser goes after provider logout."""
        return self.post_logout_redirect_uri or self.redirect_uri
