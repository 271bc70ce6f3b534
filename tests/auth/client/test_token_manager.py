"""Tests for authorization code to token exchange.

High-impact tests covering the token exchange flow:
- Successful authorization code to token exchange
- Form encoding and request headers
- Error response handling and OAuth error codes
- Timeouts
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ocra.auth.client.models.errors import FlowTimeoutError, TokenExchangeError
from ocra.auth.client.models.flow import FailureReason
from ocra.auth.client.models.tokens import TokenRequest
from ocra.auth.client.services.tokens import OAuth2TokenManager


class TestTokenExchange:
    """Test authorization code to access token exchange."""

    def setup_method(self):
        # Arrange
        self.token_manager = OAuth2TokenManager()
        self.token_manager._http_client = AsyncMock()
        self.token_request = TokenRequest(
            token_endpoint="https://auth.example.com/token",
            code="auth-code-123",
            redirect_uri="https://myapp.com/callback",
            client_id="client-456",
            code_verifier="dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk",
        )

    async def test_successful_token_exchange_with_all_fields(self):
        """Test successful token exchange with complete response."""
        # Arrange
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {
            "access_token": "access-token-xyz",
            "token_type": "Bearer",
            "expires_in": 3600,
            "refresh_token": "refresh-token-abc",
            "id_token": "id-token-123",
            "scope": "openid profile email",
            "not-before-policy": 0,
        }
        self.token_manager._http_client.post.return_value = mock_response

        # Act
        tokens = await self.token_manager.exchange_code_for_token(self.token_request)

        # Assert
        assert tokens.access_token == "access-token-xyz"
        assert tokens.token_type == "Bearer"
        assert tokens.expires_in == 3600
        assert tokens.refresh_token == "refresh-token-abc"
        assert tokens.id_token == "id-token-123"
        assert tokens.scope == "openid profile email"

        # Verify HTTP request was made correctly
        self.token_manager._http_client.post.assert_awaited_once()
        call_args = self.token_manager._http_client.post.call_args

        assert call_args[0][0] == "https://auth.example.com/token"

        form_data = call_args[1]["data"]
        assert form_data == {
            "grant_type": "authorization_code",
            "code": "auth-code-123",
            "redirect_uri": "https://myapp.com/callback",
            "client_id": "client-456",
            "code_verifier": "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk",
        }

        headers = call_args[1]["headers"]
        assert headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert headers["Accept"] == "application/json"

    async def test_minimal_token_response(self):
        # Arrange
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {"access_token": "only-access"}
        self.token_manager._http_client.post.return_value = mock_response

        # Act
        tokens = await self.token_manager.exchange_code_for_token(self.token_request)

        # Assert
        assert tokens.access_token == "only-access"
        assert tokens.token_type == "Bearer"
        assert tokens.expires_in is None
        assert tokens.id_token is None

    async def test_tokens_are_hidden_from_repr_and_str(self):
        # Arrange
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {
            "access_token": "secret-access",
            "refresh_token": "secret-refresh",
            "id_token": "secret-id",
        }
        self.token_manager._http_client.post.return_value = mock_response

        # Act
        tokens = await self.token_manager.exchange_code_for_token(self.token_request)

        # Assert
        for text in (repr(tokens), str(tokens), f"{tokens}"):
            assert "secret-access" not in text
            assert "secret-refresh" not in text
            assert "secret-id" not in text


class TestTokenExchangeErrors:
    """Test token endpoint error handling."""

    def setup_method(self):
        # Arrange
        self.token_manager = OAuth2TokenManager()
        self.token_manager._http_client = AsyncMock()
        self.token_request = TokenRequest(
            token_endpoint="https://auth.example.com/token",
            code="expired-code",
            redirect_uri="https://myapp.com/callback",
            client_id="client-456",
            code_verifier="dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk",
        )

    async def test_invalid_grant_raises_with_status_and_body(self):
        # Arrange
        body = '{"error": "invalid_grant", "error_description": "Code expired"}'
        mock_response = MagicMock()
        mock_response.status_code = 400
        mock_response.text = body
        mock_response.json.return_value = {
            "error": "invalid_grant",
            "error_description": "Code expired",
        }
        self.token_manager._http_client.post.return_value = mock_response

        # Act
        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.exchange_code_for_token(self.token_request)

        # Assert
        error = exc_info.value
        assert error.status_code == 400
        assert error.body == body
        assert "invalid_grant" in str(error)
        assert error.reason is FailureReason.TOKEN_EXCHANGE_FAILED

    async def test_error_response_without_json_body(self):
        # Arrange
        mock_response = MagicMock()
        mock_response.status_code = 502
        mock_response.text = "Bad Gateway"
        mock_response.json.side_effect = ValueError("not json")
        self.token_manager._http_client.post.return_value = mock_response

        # Act
        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.exchange_code_for_token(self.token_request)

        # Assert
        assert exc_info.value.status_code == 502
        assert "unknown_error" in str(exc_info.value)

    async def test_success_without_access_token_is_rejected(self):
        # Arrange
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.text = '{"token_type": "Bearer"}'
        mock_response.json.return_value = {"token_type": "Bearer"}
        self.token_manager._http_client.post.return_value = mock_response

        # Act / Assert
        with pytest.raises(TokenExchangeError, match="Invalid token response"):
            await self.token_manager.exchange_code_for_token(self.token_request)

    async def test_timeout_raises_flow_timeout(self):
        # Arrange
        self.token_manager._http_client.post.side_effect = httpx.ReadTimeout(
            "timed out"
        )

        # Act / Assert
        with pytest.raises(FlowTimeoutError):
            await self.token_manager.exchange_code_for_token(self.token_request)

    async def test_network_error_raises_token_exchange_error(self):
        # Arrange
        self.token_manager._http_client.post.side_effect = httpx.ConnectError(
            "Connection refused"
        )

        # Act
        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.exchange_code_for_token(self.token_request)

        # Assert
        assert exc_info.value.status_code is None
        assert "Connection refused" in str(exc_info.value)
