"""Authorization flow initiation and callback parsing.

Starts the authorization code flow: generates the PKCE pair and state,
records them for the browser context, and builds the provider URL.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlparse, urlunparse

from ocra.auth.client.models.config import OAuthConfig
from ocra.auth.client.models.flow import (
    AuthorizationRequest,
    AuthorizationResponse,
    PendingAuthorization,
)
from ocra.auth.client.primitives.discovery import DiscoveryCache
from ocra.auth.client.primitives.pkce import PKCEManager
from ocra.auth.client.services.security import generate_state
from ocra.auth.client.storage import FlowStateStore

logger = logging.getLogger(__name__)


class AuthorizationInitiator:
    """Builds authorization redirects for the code flow with PKCE.

    Only one attempt may be in flight per browser context: each call to
    ``start_login`` discards whatever the context had pending before.
    """

    def __init__(
        self,
        config: OAuthConfig,
        discovery: DiscoveryCache,
        store: FlowStateStore,
    ):
        self._config = config
        self._discovery = discovery
        self._store = store
        self._pkce_manager = PKCEManager()

    async def start_login(self, context_id: str) -> str:
        """Start an authorization attempt for a browser context.

        Args:
            context_id: Identifier of the browser context the attempt belongs to

        Returns:
            Authorization URL the browser should be redirected to

        Raises:
            DiscoveryError: If provider metadata cannot be resolved
            FlowTimeoutError: If discovery times out
            PKCEError: If the secure random source is unavailable
        """
        self._store.discard(context_id)

        document = await self._discovery.resolve(self._config.issuer)

        pkce_params = self._pkce_manager.generate_parameters()
        state = generate_state()

        self._store.put(
            context_id,
            PendingAuthorization(
                state=state,
                code_verifier=pkce_params.code_verifier,
                redirect_uri=self._config.redirect_uri,
            ),
        )

        auth_request = AuthorizationRequest(
            authorization_endpoint=document.authorization_endpoint,
            client_id=self._config.client_id,
            redirect_uri=self._config.redirect_uri,
            scope=self._config.scope,
            state=state,
            code_challenge=pkce_params.code_challenge,
            code_challenge_method=pkce_params.code_challenge_method,
        )

        logger.info(f"Starting authorization for client {self._config.client_id}")
        return auth_request.build_authorization_url()


def parse_callback(callback_url: str) -> AuthorizationResponse:
    """Parse the provider's redirect URL into an AuthorizationResponse."""
    parsed = urlparse(callback_url)
    query_params = parse_qs(parsed.query)

    # Extract single values from query parameter lists
    def get_single_param(key: str) -> str | None:
        values = query_params.get(key, [])
        return values[0] if values else None

    return AuthorizationResponse(
        code=get_single_param("code"),
        state=get_single_param("state"),
        error=get_single_param("error"),
        error_description=get_single_param("error_description"),
        error_uri=get_single_param("error_uri"),
    )


def strip_query(url: str) -> str:
    """Return the URL without its query string and fragment."""
    parsed = urlparse(url)
    return urlunparse(parsed._replace(query="", fragment=""))
