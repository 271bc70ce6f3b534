"""Engine construction and schema setup."""

from __future__ import annotations

import logging

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# Registers the tables on SQLModel.metadata
from ocra.sessions import models  # noqa: F401

logger = logging.getLogger(__name__)

_IN_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the session database.

    SQLite connections get foreign key enforcement switched on so deleting
    a user cascades to its sessions. In-memory SQLite shares one connection
    so every thread sees the same database.
    """
    kwargs: dict = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in _IN_MEMORY_SQLITE_URLS:
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    logger.debug(f"Created database engine for {engine.url.render_as_string()}")
    return engine


def init_db(engine: Engine) -> None:
    """Create any missing tables."""
    SQLModel.metadata.create_all(engine)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
