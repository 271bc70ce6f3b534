"""Audit API.

GET /api/users/{sub}/audit for the user themself or an admin, and the
admin-only GET /api/admin/audit.
"""

from __future__ import annotations

import logging

from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ocra.server.auth import require_admin, require_session
from ocra.server.schemas import AuditEventOut
from ocra.sessions.audit import clamp_limit
from ocra.sessions.service import SessionService

logger = logging.getLogger(__name__)

USER_AUDIT_DEFAULT_LIMIT = 20
ADMIN_AUDIT_DEFAULT_LIMIT = 50


def _parse_limit(request: Request, default: int) -> int:
    raw = request.query_params.get("limit")
    if raw is None:
        return default
    try:
        return clamp_limit(int(raw), default)
    except ValueError:
        raise HTTPException(
            status_code=400, detail="limit must be an integer"
        ) from None


async def user_audit(request: Request) -> Response:
    current = await require_session(request)
    sub = request.path_params["sub"]

    if current.user.sub != sub and not current.user.sys_admin:
        raise HTTPException(
            status_code=403, detail="Cannot read another user's audit log"
        )

    service: SessionService = request.app.state.sessions
    limit = _parse_limit(request, USER_AUDIT_DEFAULT_LIMIT)
    events = await run_in_threadpool(service.audit.for_user, sub, limit)

    return JSONResponse([AuditEventOut.model_validate(e).to_json() for e in events])


async def admin_audit(request: Request) -> Response:
    await require_admin(request)

    service: SessionService = request.app.state.sessions
    limit = _parse_limit(request, ADMIN_AUDIT_DEFAULT_LIMIT)
    entity_type = request.query_params.get("entityType") or None
    events = await run_in_threadpool(service.audit.recent, limit, entity_type)

    return JSONResponse([AuditEventOut.model_validate(e).to_json() for e in events])


routes = [
    Route("/api/users/{sub}/audit", user_audit, methods=["GET"]),
    Route("/api/admin/audit", admin_audit, methods=["GET"]),
]
