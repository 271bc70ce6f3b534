"""Starlette application for the OCRA backend."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ocra.auth.client.oauth_client import OCRAOAuthClient
from ocra.auth.client.services.sessions import HttpSessionBackend, LocalSessionBackend
from ocra.auth.client.storage import InMemoryFlowStateStore
from ocra.server.auth import http_error_handler, session_error_handler
from ocra.server.routes import audit, login, sessions
from ocra.sessions.audit import AuditRecorder
from ocra.sessions.database import create_db_engine, init_db
from ocra.sessions.errors import SessionPersistenceError
from ocra.sessions.service import SessionService
from ocra.sessions.store import SessionStore
from ocra.shared.settings import Settings, get_settings

logger = logging.getLogger(__name__)


async def health(request: Request) -> Response:
    return JSONResponse({"status": "ok", "service": "backend"})


async def sweep_expired_sessions(service: SessionService, interval: float) -> None:
    """Periodically remove expired sessions until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(service.sweep_expired)
        except SessionPersistenceError as e:
            logger.error(f"Expired session sweep failed: {e}")
        except Exception:
            logger.exception("Unexpected error in expired session sweep")


@contextlib.asynccontextmanager
async def lifespan(app: Starlette) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    sweeper = asyncio.create_task(
        sweep_expired_sessions(app.state.sessions, settings.sweep_interval_seconds)
    )
    logger.info("OCRA backend started")
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await app.state.oauth.close()
        logger.info("OCRA backend stopped")


def build_session_service(settings: Settings) -> SessionService:
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    return SessionService(
        SessionStore(engine, default_ttl_seconds=settings.default_session_ttl_seconds),
        AuditRecorder(engine),
    )


def build_oauth_client(
    settings: Settings, session_service: SessionService
) -> OCRAOAuthClient:
    if settings.session_backend_url:
        backend = HttpSessionBackend(
            settings.session_backend_url, timeout=settings.oauth.http_timeout
        )
    else:
        backend = LocalSessionBackend(session_service)

    return OCRAOAuthClient(
        settings.oauth.to_config(),
        backend,
        flow_store=InMemoryFlowStateStore(settings.flow_state_ttl_seconds),
        timeout=settings.oauth.http_timeout,
        discovery_ttl=settings.oauth.discovery_ttl_seconds,
    )


def create_app(
    settings: Settings | None = None,
    *,
    session_service: SessionService | None = None,
    oauth_client: OCRAOAuthClient | None = None,
) -> Starlette:
    """Build the backend application.

    Args:
        settings: Application settings, read from the environment if omitted
        session_service: Session service to use instead of one built from settings
        oauth_client: OAuth client to use instead of one built from settings
    """
    settings = settings or get_settings()
    session_service = session_service or build_session_service(settings)
    oauth_client = oauth_client or build_oauth_client(settings, session_service)

    app = Starlette(
        routes=[
            Route("/api/health", health, methods=["GET"]),
            *sessions.routes,
            *audit.routes,
            *login.routes,
        ],
        exception_handlers={
            HTTPException: http_error_handler,
            SessionPersistenceError: session_error_handler,
        },
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.sessions = session_service
    app.state.oauth = oauth_client
    return app
