"""Authorization code to token exchange service.

Implements the RFC 6749 token endpoint request with the PKCE (RFC 7636)
code_verifier.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from ocra.auth.client.models.errors import FlowTimeoutError, TokenExchangeError
from ocra.auth.client.models.tokens import TokenRequest, TokenSet

logger = logging.getLogger(__name__)


class OAuth2TokenManager:
    """Exchanges authorization codes for tokens.

    Uses application/x-www-form-urlencoded encoding as required by RFC 6749.
    Nothing is retried: an authorization code is single-use at the provider.
    """

    def __init__(
        self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None
    ):
        """Initialize the token manager.

        Args:
            timeout: HTTP request timeout in seconds
            http_client: Shared client, owned by the caller when given
        """
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(self, token_request: TokenRequest) -> TokenSet:
        """Exchange authorization code for tokens.

        Args:
            token_request: Token exchange request parameters

        Returns:
            TokenSet: The provider's tokens

        Raises:
            TokenExchangeError: If the provider rejects the code or replies badly
            FlowTimeoutError: If the token endpoint does not answer in time
        """
        logger.debug(f"Exchanging authorization code at {token_request.token_endpoint}")

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        form_data = token_request.to_form_data()

        # Log request details (without sensitive data)
        logger.debug(
            f"Token request: grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}"
        )

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=form_data,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise FlowTimeoutError("Timed out waiting for the token endpoint") from e
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"HTTP error during token exchange: {e}") from e

        return self._parse_token_response(response)

    def _parse_token_response(self, response: httpx.Response) -> TokenSet:
        """Parse token endpoint response into a TokenSet.

        Error responses (RFC 6749 Section 5.2) become a TokenExchangeError
        carrying the status and the provider's body.
        """
        if not (200 <= response.status_code < 300):
            error_code, error_description = _extract_oauth_error(response)
            logger.warning(
                f"Token exchange failed with {response.status_code}: "
                f"{error_code} - {error_description}"
            )
            raise TokenExchangeError(
                f"Token endpoint returned {response.status_code}: {error_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            tokens = TokenSet.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TokenExchangeError(
                f"Invalid token response format: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        logger.info("Token exchange successful")
        return tokens

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self._owns_client:
            await self._http_client.aclose()


def _extract_oauth_error(response: httpx.Response) -> tuple[str, str]:
    try:
        data = response.json()
    except ValueError:
        return "unknown_error", "No description provided"
    if not isinstance(data, dict):
        return "unknown_error", "No description provided"
    return (
        data.get("error", "unknown_error"),
        data.get("error_description", "No description provided"),
    )
