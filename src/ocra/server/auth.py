"""Request authentication helpers.

The session id travels in the session cookie, an ``Authorization: Bearer``
header, or a ``session_id`` query parameter, checked in that order.
"""

from __future__ import annotations

import logging

from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ocra.sessions.errors import SessionPersistenceError
from ocra.sessions.store import ResolvedSession
from ocra.shared.settings import Settings

logger = logging.getLogger(__name__)

_ERROR_CODES = {
    400: "invalid_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    500: "internal_error",
}


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse({"error": error, "message": message}, status_code=status_code)


async def http_error_handler(request: Request, exc: HTTPException) -> Response:
    return error_response(
        exc.status_code, _ERROR_CODES.get(exc.status_code, "error"), exc.detail
    )


async def session_error_handler(
    request: Request, exc: SessionPersistenceError
) -> Response:
    logger.error(f"Session storage failed on {request.url.path}: {exc}")
    return error_response(500, "internal_error", "Session storage is unavailable")


def extract_session_id(request: Request, cookie_name: str) -> str | None:
    session_id = request.cookies.get(cookie_name)
    if session_id:
        return session_id

    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    return request.query_params.get("session_id") or None


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


async def require_session(request: Request) -> ResolvedSession:
    """Resolve the caller's session or raise 401."""
    settings: Settings = request.app.state.settings
    session_id = extract_session_id(request, settings.session_cookie_name)
    if not session_id:
        raise HTTPException(status_code=401, detail="No session provided")

    resolved = await run_in_threadpool(request.app.state.sessions.current, session_id)
    if resolved is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return resolved


async def require_admin(request: Request) -> ResolvedSession:
    resolved = await require_session(request)
    if not resolved.user.sys_admin:
        logger.warning(f"Non-admin {resolved.user.sub} denied admin access")
        raise HTTPException(status_code=403, detail="Admin access required")
    return resolved


def set_session_cookie(response: Response, settings: Settings, session_id: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        session_id,
        max_age=settings.session_cookie_max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
