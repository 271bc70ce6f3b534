"""Session backends used by the login and logout flows.

``LocalSessionBackend`` calls the session service in-process. It is used
when the login routes and the session database live in the same app.
``HttpSessionBackend`` talks to the backend session API instead.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from starlette.concurrency import run_in_threadpool

from ocra.auth.client.models.errors import FlowTimeoutError
from ocra.auth.client.models.tokens import TokenSet, UserProfile
from ocra.sessions.errors import SessionPersistenceError
from ocra.sessions.service import SessionService

logger = logging.getLogger(__name__)


class SessionBackend(Protocol):
    """Where a completed login's session is created and later removed."""

    async def create_session(
        self,
        profile: UserProfile,
        tokens: TokenSet,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        """Persist a session and return its opaque id.

        Raises:
            SessionPersistenceError: If the session could not be stored
        """
        ...

    async def delete_session(
        self,
        session_id: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> None:
        """Remove a session. Removing an absent session is not an error."""
        ...


class LocalSessionBackend:
    def __init__(self, service: SessionService) -> None:
        self._service = service

    async def create_session(
        self,
        profile: UserProfile,
        tokens: TokenSet,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        return await run_in_threadpool(
            self._service.open_session,
            profile,
            tokens,
            user_agent=user_agent,
            ip_address=ip_address,
        )

    async def delete_session(
        self,
        session_id: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> None:
        await run_in_threadpool(
            self._service.close_session,
            session_id,
            user_agent=user_agent,
            ip_address=ip_address,
        )


class HttpSessionBackend:
    """Client for the backend session API.

    POST /api/sessions creates, DELETE /api/sessions/{id} removes.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    def _forwarded_headers(
        self, user_agent: str | None, ip_address: str | None
    ) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if user_agent:
            headers["User-Agent"] = user_agent
        if ip_address:
            headers["X-Forwarded-For"] = ip_address
        return headers

    async def create_session(
        self,
        profile: UserProfile,
        tokens: TokenSet,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        payload = {
            "userProfile": profile.model_dump(exclude_none=True),
            "tokens": tokens.model_dump(exclude_none=True),
        }
        url = f"{self.base_url}/api/sessions"
        try:
            response = await self._http_client.post(
                url, json=payload, headers=self._forwarded_headers(user_agent, ip_address)
            )
            response.raise_for_status()
            session_id = response.json()["sessionId"]
        except httpx.TimeoutException as e:
            raise FlowTimeoutError("Timed out waiting for the session backend") from e
        except httpx.HTTPStatusError as e:
            raise SessionPersistenceError(
                f"Session backend returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise SessionPersistenceError(f"Session backend unreachable: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise SessionPersistenceError(
                f"Invalid session backend response: {e}"
            ) from e

        if not isinstance(session_id, str) or not session_id:
            raise SessionPersistenceError("Session backend returned no session id")
        return session_id

    async def delete_session(
        self,
        session_id: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> None:
        url = f"{self.base_url}/api/sessions/{session_id}"
        try:
            response = await self._http_client.delete(
                url, headers=self._forwarded_headers(user_agent, ip_address)
            )
            if response.status_code != 404:
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SessionPersistenceError(
                f"Session backend returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise SessionPersistenceError(f"Session backend unreachable: {e}") from e

    async def close(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()
