"""Shared fixtures: in-memory session database and a fake identity provider."""

import httpx
import pytest

from ocra.auth.client.models.config import OAuthConfig
from ocra.auth.client.models.tokens import TokenSet, UserProfile
from ocra.auth.client.oauth_client import OCRAOAuthClient
from ocra.auth.client.services.sessions import LocalSessionBackend
from ocra.sessions.audit import AuditRecorder
from ocra.sessions.database import create_db_engine, init_db
from ocra.sessions.service import SessionService
from ocra.sessions.store import SessionStore

ISSUER = "https://idp.example.com/realms/demo"
OIDC_BASE = f"{ISSUER}/protocol/openid-connect"


class FakeProvider:
    """Scriptable OIDC provider served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.discovery_status = 200
        self.discovery_body: dict = {
            "issuer": ISSUER,
            "authorization_endpoint": f"{OIDC_BASE}/auth",
            "token_endpoint": f"{OIDC_BASE}/token",
            "userinfo_endpoint": f"{OIDC_BASE}/userinfo",
            "end_session_endpoint": f"{OIDC_BASE}/logout",
            "jwks_uri": f"{OIDC_BASE}/certs",
        }
        self.token_status = 200
        self.token_body: dict = {
            "access_token": "access-token-xyz",
            "token_type": "Bearer",
            "expires_in": 300,
            "refresh_token": "refresh-token-abc",
            "id_token": "id-token-123",
        }
        self.userinfo_status = 200
        self.userinfo_body: dict = {
            "sub": "user-123",
            "email": "ada@example.com",
            "name": "Ada Lovelace",
            "preferred_username": "ada",
            "given_name": "Ada",
            "family_name": "Lovelace",
        }
        self.userinfo_by_token: dict[str, dict] = {}
        self.raise_on: dict[str, Exception] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        for suffix, exc in self.raise_on.items():
            if path.endswith(suffix):
                raise exc

        if path.endswith("/.well-known/openid-configuration"):
            return httpx.Response(self.discovery_status, json=self.discovery_body)
        if path.endswith("/token"):
            return httpx.Response(self.token_status, json=self.token_body)
        if path.endswith("/userinfo"):
            return self._userinfo(request)
        return httpx.Response(404, json={"error": "not_found"})

    def _userinfo(self, request: httpx.Request) -> httpx.Response:
        token = request.headers.get("authorization", "").removeprefix("Bearer ")
        if token in self.userinfo_by_token:
            return httpx.Response(200, json=self.userinfo_by_token[token])
        if token != self.token_body.get("access_token"):
            return httpx.Response(401, json={"error": "invalid_token"})
        return httpx.Response(self.userinfo_status, json=self.userinfo_body)

    def requests_to(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def oauth_config():
    return OAuthConfig(
        issuer=ISSUER,
        client_id="ocra-web",
        redirect_uri="https://ocra.example.com/auth/callback",
        scope="openid profile email",
        post_logout_redirect_uri="https://ocra.example.com/",
    )


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_store(engine):
    return SessionStore(engine)


@pytest.fixture
def audit_recorder(engine):
    return AuditRecorder(engine)


@pytest.fixture
def session_service(session_store, audit_recorder):
    return SessionService(session_store, audit_recorder)


@pytest.fixture
async def oauth_client(oauth_config, provider, session_service):
    http_client = provider.client()
    client = OCRAOAuthClient(
        oauth_config,
        LocalSessionBackend(session_service),
        http_client=http_client,
    )
    yield client
    await client.close()
    await http_client.aclose()


@pytest.fixture
def profile():
    return UserProfile(
        sub="user-123",
        email="ada@example.com",
        name="Ada Lovelace",
        preferred_username="ada",
        given_name="Ada",
        family_name="Lovelace",
    )


@pytest.fixture
def tokens():
    return TokenSet(
        access_token="access-token-xyz",
        token_type="Bearer",
        expires_in=300,
        refresh_token="refresh-token-abc",
        id_token="id-token-123",
    )
