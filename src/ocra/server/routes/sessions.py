"""Backend session API.

POST /api/sessions, GET /api/sessions/{session_id}, DELETE /api/sessions/{session_id}.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ocra.auth.client.models.errors import LoginFlowError, UserinfoError
from ocra.auth.client.models.tokens import TokenSet, UserProfile
from ocra.auth.client.oauth_client import OCRAOAuthClient
from ocra.server.auth import (
    clear_session_cookie,
    client_ip,
    error_response,
    set_session_cookie,
    user_agent,
)
from ocra.server.schemas import SessionCreateRequest, UserOut
from ocra.sessions.errors import SessionPersistenceError
from ocra.sessions.service import SessionService

logger = logging.getLogger(__name__)


async def _verify_tokens(oauth: OCRAOAuthClient, tokens: TokenSet) -> UserProfile:
    """Ask the identity provider who the access token belongs to."""
    document = await oauth.discovery.resolve(oauth.config.issuer)
    return await oauth.userinfo.fetch_profile(
        document.userinfo_endpoint, tokens.access_token
    )


async def create_session(request: Request) -> Response:
    """Persist a session for a completed login and set the session cookie.

    The posted profile is only a claim. The session is built from the
    profile the provider returns for the posted access token.
    """
    service: SessionService = request.app.state.sessions

    try:
        payload = SessionCreateRequest.model_validate_json(await request.body())
    except ValidationError as e:
        logger.debug(f"Rejected session request: {e}")
        return error_response(
            400, "invalid_request", "userProfile and tokens are required"
        )

    try:
        profile = await _verify_tokens(request.app.state.oauth, payload.tokens)
    except UserinfoError as e:
        logger.warning(f"Rejected session request, token not accepted: {e}")
        return error_response(
            401, "invalid_token", "Access token was not accepted by the provider"
        )
    except LoginFlowError as e:
        logger.error(f"Could not verify access token: {e}")
        return error_response(
            502, "provider_unavailable", "Could not verify the access token"
        )

    if profile.sub != payload.user_profile.sub:
        logger.warning(
            f"Rejected session request for {payload.user_profile.sub}: "
            f"token belongs to {profile.sub}"
        )
        return error_response(
            401, "invalid_token", "Access token does not belong to this user"
        )

    try:
        session_id = await run_in_threadpool(
            service.open_session,
            profile,
            payload.tokens,
            user_agent=user_agent(request),
            ip_address=client_ip(request),
        )
    except SessionPersistenceError as e:
        logger.error(f"Session creation failed: {e}")
        return error_response(
            500, "session_creation_failed", "Failed to create session"
        )

    response = JSONResponse({"sessionId": session_id}, status_code=201)
    set_session_cookie(response, request.app.state.settings, session_id)
    return response


async def session_endpoint(request: Request) -> Response:
    """Handle session lookups and deletions by id."""
    if request.method == "GET":
        return await _handle_get(request)
    elif request.method == "DELETE":
        return await _handle_delete(request)
    else:
        return Response("Method not allowed", status_code=405)


async def _handle_get(request: Request) -> Response:
    service: SessionService = request.app.state.sessions
    session_id = request.path_params["session_id"]

    try:
        resolved = await run_in_threadpool(service.current, session_id)
    except SessionPersistenceError as e:
        logger.error(f"Session lookup failed: {e}")
        return error_response(500, "internal_error", "Failed to look up session")

    if resolved is None:
        return error_response(404, "session_not_found", "Session not found or expired")

    return JSONResponse(
        {
            "user": UserOut.model_validate(resolved.user).to_json(),
            "expiresAt": resolved.expires_at.isoformat(),
        }
    )


async def _handle_delete(request: Request) -> Response:
    service: SessionService = request.app.state.sessions
    session_id = request.path_params["session_id"]

    try:
        await run_in_threadpool(
            service.close_session,
            session_id,
            user_agent=user_agent(request),
            ip_address=client_ip(request),
        )
    except SessionPersistenceError as e:
        logger.error(f"Session deletion failed: {e}")
        return error_response(500, "internal_error", "Failed to delete session")

    response = Response(status_code=204)
    clear_session_cookie(response, request.app.state.settings)
    return response


routes = [
    Route("/api/sessions", create_session, methods=["POST"]),
    Route(
        "/api/sessions/{session_id}", session_endpoint, methods=["GET", "DELETE"]
    ),
]
