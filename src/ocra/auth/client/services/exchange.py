"""Code exchange state machine.

Drives one login attempt from the provider's redirect to a created
session::

    awaiting_redirect -> code_received -> token_exchanged
        -> profile_fetched -> session_created

Any step may instead end in ``failed(reason)``. Steps run strictly in
order and nothing is retried; the user restarts from the login route.
"""

from __future__ import annotations

import logging

from ocra.auth.client.models.config import OAuthConfig
from ocra.auth.client.models.errors import (
    InvalidStateError,
    LoginFlowError,
    MissingVerifierError,
    ProviderAuthorizationError,
    SessionCreationError,
)
from ocra.auth.client.models.flow import (
    AuthorizationResponse,
    FlowState,
    LoginAttempt,
    LoginResult,
    PendingAuthorization,
)
from ocra.auth.client.models.tokens import TokenRequest
from ocra.auth.client.primitives.discovery import DiscoveryCache
from ocra.auth.client.services.flow import parse_callback, strip_query
from ocra.auth.client.services.security import validate_state
from ocra.auth.client.services.sessions import SessionBackend
from ocra.auth.client.services.tokens import OAuth2TokenManager
from ocra.auth.client.services.userinfo import UserinfoClient
from ocra.auth.client.storage import FlowStateStore
from ocra.sessions.errors import SessionPersistenceError

logger = logging.getLogger(__name__)


class CodeExchanger:
    """Completes authorization code logins.

    The pending attempt is taken out of transient storage before the first
    await, so a duplicate completion of the same redirect finds nothing and
    fails with ``missing_verifier`` instead of creating a second session.
    """

    def __init__(
        self,
        config: OAuthConfig,
        discovery: DiscoveryCache,
        store: FlowStateStore,
        token_manager: OAuth2TokenManager,
        userinfo_client: UserinfoClient,
        session_backend: SessionBackend,
    ):
        self._config = config
        self._discovery = discovery
        self._store = store
        self._token_manager = token_manager
        self._userinfo_client = userinfo_client
        self._session_backend = session_backend

    async def complete(
        self,
        context_id: str,
        callback_url: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> LoginResult:
        """Run the state machine for a provider redirect.

        Args:
            context_id: Browser context the attempt was started in
            callback_url: Full redirect URL including its query string
            user_agent: Forwarded to the audit trail
            ip_address: Forwarded to the audit trail

        Returns:
            LoginResult: The new session and the cleaned callback URL

        Raises:
            LoginFlowError: Subclass matching the failure reason; the error's
                ``attempt`` holds the state history
        """
        attempt = LoginAttempt(context_id=context_id)
        pending = self._store.take(context_id)
        response = parse_callback(callback_url)

        try:
            self._receive(attempt, response)
            self._validate(response, pending)

            document = await self._discovery.resolve(self._config.issuer)

            tokens = await self._token_manager.exchange_code_for_token(
                TokenRequest(
                    token_endpoint=document.token_endpoint,
                    code=response.code,
                    redirect_uri=pending.redirect_uri,
                    client_id=self._config.client_id,
                    code_verifier=pending.code_verifier,
                )
            )
            attempt.advance(FlowState.TOKEN_EXCHANGED)

            profile = await self._userinfo_client.fetch_profile(
                document.userinfo_endpoint, tokens.access_token
            )
            attempt.advance(FlowState.PROFILE_FETCHED)

            try:
                session_id = await self._session_backend.create_session(
                    profile, tokens, user_agent=user_agent, ip_address=ip_address
                )
            except LoginFlowError:
                raise
            except SessionPersistenceError as e:
                raise SessionCreationError(f"Failed to create session: {e}") from e
            attempt.advance(FlowState.SESSION_CREATED)

        except LoginFlowError as e:
            attempt.fail(e.reason)
            e.attempt = attempt
            logger.warning(f"Login failed ({e.reason.value}): {e}")
            raise

        logger.info(f"Login completed for subject {profile.sub}")
        return LoginResult(
            session_id=session_id,
            user=profile,
            clean_url=strip_query(callback_url),
            attempt=attempt,
            id_token=tokens.id_token,
        )

    def _receive(self, attempt: LoginAttempt, response: AuthorizationResponse) -> None:
        if response.is_error():
            raise ProviderAuthorizationError(
                f"Authorization failed: {response.error} "
                f"({response.error_description or ''})",
                error=response.error,
                error_description=response.error_description,
            )
        if response.code is None:
            raise ProviderAuthorizationError(
                "Callback carried neither an authorization code nor an error"
            )
        attempt.advance(FlowState.CODE_RECEIVED)

    def _validate(
        self, response: AuthorizationResponse, pending: PendingAuthorization | None
    ) -> None:
        if pending is None or not pending.code_verifier:
            raise MissingVerifierError(
                "No pending authorization for this browser context"
            )
        if response.state is None:
            raise InvalidStateError("Callback missing required state parameter")
        validate_state(pending.state, response.state)

