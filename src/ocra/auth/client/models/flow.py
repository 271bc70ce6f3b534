"""Authorization flow models.

Contains the authorization request and callback models, the pending
attempt kept in transient storage, and the login state machine records.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import urlencode

if TYPE_CHECKING:
    from ocra.auth.client.models.tokens import UserProfile

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    AWAITING_REDIRECT = "awaiting_redirect"
    CODE_RECEIVED = "code_received"
    TOKEN_EXCHANGED = "token_exchanged"
    PROFILE_FETCHED = "profile_fetched"
    SESSION_CREATED = "session_created"
    FAILED = "failed"


class FailureReason(str, Enum):
    PROVIDER_ERROR = "provider_error"
    INVALID_STATE = "invalid_state"
    MISSING_VERIFIER = "missing_verifier"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    USERINFO_FAILED = "userinfo_failed"
    SESSION_CREATION_FAILED = "session_creation_failed"
    DISCOVERY_FAILED = "discovery_failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the code flow with PKCE."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    scope: str
    state: str
    code_challenge: str
    code_challenge_method: str = "S256"

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }
        separator = "&" if "?" in self.authorization_endpoint else "?"
        return f"{self.authorization_endpoint}{separator}{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationResponse:
    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    def is_success(self) -> bool:
        return self.error is None and self.code is not None

    def is_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class PendingAuthorization:
    """State nonce and code verifier bound together for one round trip."""

    state: str
    code_verifier: str
    redirect_uri: str
    created_at: float = field(default_factory=time.time)


@dataclass
class LoginAttempt:
    """Mutable record of one pass through the login state machine."""

    context_id: str
    state: FlowState = FlowState.AWAITING_REDIRECT
    history: list[FlowState] = field(
        default_factory=lambda: [FlowState.AWAITING_REDIRECT]
    )
    failure: FailureReason | None = None

    def advance(self, new_state: FlowState) -> None:
        if self.state in (FlowState.SESSION_CREATED, FlowState.FAILED):
            raise RuntimeError(f"Login attempt already finished in {self.state.value}")
        logger.debug(
            f"Login attempt {self.context_id[:8]}: "
            f"{self.state.value} -> {new_state.value}"
        )
        self.state = new_state
        self.history.append(new_state)

    def fail(self, reason: FailureReason) -> None:
        logger.debug(
            f"Login attempt {self.context_id[:8]}: "
            f"{self.state.value} -> failed({reason.value})"
        )
        self.state = FlowState.FAILED
        self.failure = reason
        self.history.append(FlowState.FAILED)

    @property
    def succeeded(self) -> bool:
        return self.state is FlowState.SESSION_CREATED


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a completed login.

    ``clean_url`` is the callback URL with its query string removed, safe to
    show in the address bar without exposing a replayable code.
    """

    session_id: str
    user: UserProfile
    clean_url: str
    attempt: LoginAttempt
    id_token: str | None = None
