"""OCRA OAuth client orchestration.

Wires discovery, the authorization initiator, the code exchanger and the
logout orchestrator around one shared HTTP client.
"""

from __future__ import annotations

import logging

import httpx

from ocra.auth.client.models.config import OAuthConfig
from ocra.auth.client.models.flow import LoginResult
from ocra.auth.client.primitives.discovery import DiscoveryCache
from ocra.auth.client.services.exchange import CodeExchanger
from ocra.auth.client.services.flow import AuthorizationInitiator
from ocra.auth.client.services.logout import LogoutOrchestrator
from ocra.auth.client.services.sessions import HttpSessionBackend, SessionBackend
from ocra.auth.client.services.tokens import OAuth2TokenManager
from ocra.auth.client.services.userinfo import UserinfoClient
from ocra.auth.client.storage import FlowStateStore, InMemoryFlowStateStore

logger = logging.getLogger(__name__)


class OCRAOAuthClient:
    """Complete authorization code + PKCE client for OCRA.

    Provides the three browser-facing operations: start a login, complete
    it from the provider's redirect, and log out.
    """

    def __init__(
        self,
        config: OAuthConfig,
        session_backend: SessionBackend,
        *,
        flow_store: FlowStateStore | None = None,
        timeout: float = 30.0,
        discovery_ttl: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the OAuth client.

        Args:
            config: Identity provider client configuration
            session_backend: Where sessions are created and deleted
            flow_store: Transient storage for in-flight attempts
            timeout: HTTP request timeout for provider calls
            discovery_ttl: Seconds discovery documents stay cached
            http_client: Client to use for provider calls; closed by the caller
        """
        self.config = config
        self.session_backend = session_backend
        self.flow_store = (
            flow_store if flow_store is not None else InMemoryFlowStateStore()
        )
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

        # Initialize service components
        self.discovery = DiscoveryCache(
            timeout=timeout, ttl=discovery_ttl, http_client=self._http_client
        )
        self.token_manager = OAuth2TokenManager(
            timeout=timeout, http_client=self._http_client
        )
        self.userinfo = UserinfoClient(timeout=timeout, http_client=self._http_client)
        self.initiator = AuthorizationInitiator(config, self.discovery, self.flow_store)
        self.exchanger = CodeExchanger(
            config,
            self.discovery,
            self.flow_store,
            self.token_manager,
            self.userinfo,
            session_backend,
        )
        self.logout_orchestrator = LogoutOrchestrator(
            config, self.discovery, session_backend
        )

    async def start_login(self, context_id: str) -> str:
        """Return the authorization URL for a new attempt in this context."""
        return await self.initiator.start_login(context_id)

    async def complete_login(
        self,
        context_id: str,
        callback_url: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> LoginResult:
        return await self.exchanger.complete(
            context_id, callback_url, user_agent=user_agent, ip_address=ip_address
        )

    async def logout(
        self,
        session_id: str | None,
        *,
        id_token_hint: str | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        return await self.logout_orchestrator.logout(
            session_id,
            id_token_hint=id_token_hint,
            user_agent=user_agent,
            ip_address=ip_address,
        )

    async def close(self) -> None:
        """Close all service connections."""
        if self._owns_client:
            await self._http_client.aclose()
        if isinstance(self.session_backend, HttpSessionBackend):
            await self.session_backend.close()
