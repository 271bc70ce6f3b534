import pytest
from sqlmodel import Session, select
from starlette.testclient import TestClient

from ocra.auth.client.oauth_client import OCRAOAuthClient
from ocra.auth.client.services.sessions import LocalSessionBackend
from ocra.server.app import create_app
from ocra.sessions.models import User
from ocra.shared.settings import OAuthSettings, Settings

ISSUER = "https://idp.example.com/realms/demo"


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        oauth=OAuthSettings(
            issuer=ISSUER,
            client_id="ocra-web",
            redirect_uri="http://testserver/auth/callback",
            post_logout_redirect_uri="http://testserver/",
        ),
    )


@pytest.fixture
def app(settings, session_service, provider):
    oauth_client = OCRAOAuthClient(
        settings.oauth.to_config(),
        LocalSessionBackend(session_service),
        http_client=provider.client(),
    )
    return create_app(
        settings, session_service=session_service, oauth_client=oauth_client
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_admin(engine):
    def promote(sub: str) -> None:
        with Session(engine) as db:
            user = db.exec(select(User).where(User.sub == sub)).one()
            user.sys_admin = True
            db.add(user)
            db.commit()

    return promote
