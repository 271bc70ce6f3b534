"""Logout orchestration.

Logout always succeeds from the user's point of view: the server-side
session is removed first, and the browser is always handed a URL to go
to, whatever fails along the way.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from ocra.auth.client.models.config import OAuthConfig
from ocra.auth.client.models.errors import LoginFlowError
from ocra.auth.client.primitives.discovery import DiscoveryCache
from ocra.auth.client.services.sessions import SessionBackend

logger = logging.getLogger(__name__)


class LogoutOrchestrator:
    def __init__(
        self,
        config: OAuthConfig,
        discovery: DiscoveryCache,
        session_backend: SessionBackend,
    ):
        self._config = config
        self._discovery = discovery
        self._session_backend = session_backend

    async def logout(
        self,
        session_id: str | None,
        *,
        id_token_hint: str | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        """Delete the session, then return the provider's end-session URL.

        The session backend records the logout audit event. A failure to
        delete is logged and does not stop the redirect.

        Returns:
            URL the browser should be sent to
        """
        if session_id:
            try:
                await self._session_backend.delete_session(
                    session_id, user_agent=user_agent, ip_address=ip_address
                )
            except Exception as e:
                logger.error(f"Failed to delete session during logout: {e}")

        return await self.build_end_session_url(id_token_hint)

    async def build_end_session_url(self, id_token_hint: str | None = None) -> str:
        """Build the provider end-session URL.

        Falls back to the post-logout redirect URI when the provider cannot
        be discovered or advertises no end-session endpoint.
        """
        landing = self._config.logout_landing_uri

        try:
            document = await self._discovery.resolve(self._config.issuer)
        except LoginFlowError as e:
            logger.warning(f"Discovery failed during logout, skipping provider: {e}")
            return landing

        if not document.end_session_endpoint:
            logger.debug("Provider advertises no end_session_endpoint")
            return landing

        params = {
            "post_logout_redirect_uri": landing,
            "client_id": self._config.client_id,
        }
        if id_token_hint:
            params["id_token_hint"] = id_token_hint

        endpoint = document.end_session_endpoint
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(params)}"
