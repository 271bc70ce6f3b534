"""Command line entry point for the OCRA backend."""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from ocra.server.app import create_app
from ocra.shared.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def serve(settings: Settings) -> None:
    """Run the HTTP server until it is told to exit."""
    config = uvicorn.Config(
        app=create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    logger.info(f"HTTP server starting on {settings.host}:{settings.port}")
    await server.serve()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
