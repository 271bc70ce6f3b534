"""Browser-facing login, callback and logout routes."""

from __future__ import annotations

import logging
import secrets
from urllib.parse import urlencode

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from ocra.auth.client.models.errors import LoginFlowError
from ocra.auth.client.models.flow import FailureReason
from ocra.auth.client.oauth_client import OCRAOAuthClient
from ocra.server.auth import (
    clear_session_cookie,
    client_ip,
    extract_session_id,
    require_session,
    set_session_cookie,
    user_agent,
)
from ocra.server.schemas import UserOut
from ocra.sessions.errors import SessionPersistenceError
from ocra.shared.settings import Settings

logger = logging.getLogger(__name__)


def _landing_with_error(settings: Settings, reason: FailureReason) -> str:
    separator = "&" if "?" in settings.landing_url else "?"
    return f"{settings.landing_url}{separator}{urlencode({'login_error': reason.value})}"


def _clear_flow_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.flow_cookie_name, httponly=True, samesite="lax")


async def login(request: Request) -> Response:
    """Redirect the browser to the identity provider."""
    settings: Settings = request.app.state.settings
    client: OCRAOAuthClient = request.app.state.oauth

    context_id = request.cookies.get(settings.flow_cookie_name)
    if not context_id:
        context_id = secrets.token_urlsafe(16)

    try:
        authorization_url = await client.start_login(context_id)
    except LoginFlowError as e:
        logger.error(f"Could not start login: {e}")
        return RedirectResponse(_landing_with_error(settings, e.reason), status_code=303)

    response = RedirectResponse(authorization_url, status_code=302)
    response.set_cookie(
        settings.flow_cookie_name,
        context_id,
        max_age=int(settings.flow_state_ttl_seconds),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return response


async def callback(request: Request) -> Response:
    """Complete the login from the provider's redirect.

    The browser always leaves this URL, so the authorization code never
    stays in the address bar.
    """
    settings: Settings = request.app.state.settings
    client: OCRAOAuthClient = request.app.state.oauth
    context_id = request.cookies.get(settings.flow_cookie_name, "")

    try:
        result = await client.complete_login(
            context_id,
            str(request.url),
            user_agent=user_agent(request),
            ip_address=client_ip(request),
        )
    except LoginFlowError as e:
        response = RedirectResponse(
            _landing_with_error(settings, e.reason), status_code=303
        )
        _clear_flow_cookie(response, settings)
        return response

    response = RedirectResponse(settings.landing_url, status_code=303)
    set_session_cookie(response, settings, result.session_id)
    _clear_flow_cookie(response, settings)
    return response


async def logout(request: Request) -> Response:
    """Remove the session and send the browser to the provider's logout."""
    settings: Settings = request.app.state.settings
    client: OCRAOAuthClient = request.app.state.oauth
    session_id = extract_session_id(request, settings.session_cookie_name)

    id_token_hint = None
    if session_id:
        try:
            resolved = await run_in_threadpool(
                request.app.state.sessions.current, session_id
            )
        except SessionPersistenceError as e:
            logger.error(f"Could not read session before logout: {e}")
            resolved = None
        if resolved is not None:
            id_token_hint = resolved.id_token

    end_session_url = await client.logout(
        session_id,
        id_token_hint=id_token_hint,
        user_agent=user_agent(request),
        ip_address=client_ip(request),
    )

    response = RedirectResponse(end_session_url, status_code=302)
    clear_session_cookie(response, settings)
    return response


async def me(request: Request) -> Response:
    current = await require_session(request)
    return JSONResponse({"user": UserOut.model_validate(current.user).to_json()})


routes = [
    Route("/auth/login", login, methods=["GET"]),
    Route("/auth/callback", callback, methods=["GET"]),
    Route("/auth/logout", logout, methods=["GET", "POST"]),
    Route("/auth/me", me, methods=["GET"]),
]
