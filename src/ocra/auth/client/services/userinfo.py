"""Userinfo endpoint client."""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from ocra.auth.client.models.errors import FlowTimeoutError, UserinfoError
from ocra.auth.client.models.tokens import UserProfile

logger = logging.getLogger(__name__)


class UserinfoClient:
    """Fetches the signed-in user's claims with the access token."""

    def __init__(
        self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None
    ):
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def fetch_profile(
        self, userinfo_endpoint: str, access_token: str
    ) -> UserProfile:
        """GET the userinfo endpoint with a bearer token.

        Raises:
            UserinfoError: On a non-2xx status or a payload without ``sub``
            FlowTimeoutError: If the endpoint does not answer in time
        """
        logger.debug(f"Fetching user profile from {userinfo_endpoint}")

        try:
            response = await self._http_client.get(
                userinfo_endpoint,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.TimeoutException as e:
            raise FlowTimeoutError("Timed out waiting for the userinfo endpoint") from e
        except httpx.HTTPError as e:
            raise UserinfoError(f"HTTP error fetching user profile: {e}") from e

        if not (200 <= response.status_code < 300):
            logger.warning(f"Userinfo request failed with {response.status_code}")
            raise UserinfoError(
                f"Userinfo endpoint returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            profile = UserProfile.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UserinfoError(
                f"Invalid userinfo response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        logger.debug(f"Fetched profile for subject {profile.sub}")
        return profile

    async def close(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()
