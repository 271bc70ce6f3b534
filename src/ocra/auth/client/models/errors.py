"""Exception hierarchy for the OCRA login and logout flows.

Every failure the login flow can end in is a ``LoginFlowError`` carrying a
``FailureReason``, so web adapters can map any of them to a user-visible
message without inspecting the concrete type.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ocra.auth.client.models.flow import FailureReason

if TYPE_CHECKING:
    from ocra.auth.client.models.flow import LoginAttempt


class OAuth2Error(Exception):
    """Base exception for all OAuth 2.0 related errors."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails.

    Only happens when the secure random source is unavailable, which is
    fatal: no authorization request can be built safely.
    """

    pass


class LoginFlowError(OAuth2Error):
    """Base exception for a login attempt that ended in the failed state."""

    reason: FailureReason = FailureReason.PROVIDER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.attempt: LoginAttempt | None = None


class DiscoveryError(LoginFlowError):
    """Raised when the provider's discovery document is unreachable or malformed."""

    reason = FailureReason.DISCOVERY_FAILED


class ProviderAuthorizationError(LoginFlowError):
    """Raised when the provider redirected back with an ``error`` parameter."""

    reason = FailureReason.PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        error: str | None = None,
        error_description: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class InvalidStateError(LoginFlowError):
    """Raised when the returned state does not match the stored nonce.

    Indicates a possible CSRF attack or a stale redirect. Never retried.
    """

    reason = FailureReason.INVALID_STATE


class MissingVerifierError(LoginFlowError):
    """Raised when no pending code verifier exists for the browser context."""

    reason = FailureReason.MISSING_VERIFIER


class TokenExchangeError(LoginFlowError):
    """Raised when the token endpoint rejects the authorization code."""

    reason = FailureReason.TOKEN_EXCHANGE_FAILED

    def __init__(
        self, message: str, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UserinfoError(LoginFlowError):
    """Raised when the userinfo endpoint does not return a usable profile."""

    reason = FailureReason.USERINFO_FAILED

    def __init__(
        self, message: str, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SessionCreationError(LoginFlowError):
    """Raised when the session backend could not persist the new session."""

    reason = FailureReason.SESSION_CREATION_FAILED


class FlowTimeoutError(LoginFlowError):
    """Raised when a provider or backend call exceeds its time budget."""

    reason = FailureReason.TIMEOUT
