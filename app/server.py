"""Startup orchestration for the room backend.

:func:`startup` validates configuration, connects to MongoDB and builds the
application, reporting failures through :class:`StartupResult` rather than
exiting. :func:`serve` runs the application under uvicorn until it is
interrupted. Only ``run.main`` turns results into a process exit status.
"""

from __future__ import annotations

import asyncio
import logging
import platform
from dataclasses import dataclass
from typing import Any, Callable, Optional

import uvicorn
from fastapi import FastAPI

from app.main import create_app
from lib.config import Config, app_version, load_config
from lib.database import Database
from lib.errors import ConfigError, DatabaseError, StartupError
from lib.sentry import start_sentry
from lib.tunnel import start_tunnel, stop_tunnel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartupResult:
    config: Optional[Config] = None
    app: Optional[FastAPI] = None
    database: Optional[Database] = None
    error: Optional[StartupError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.app is not None and self.config is not None

    @property
    def exit_code(self) -> int:
        if self.error is not None:
            return self.error.exit_code
        return 0 if self.ok else 1


def server_summary(config: Config) -> dict[str, Any]:
    return {
        "cors": config.cors_options,
        "home": config.home_url,
        "apiDocs": config.api_docs_url,
        "pythonVersion": platform.python_version(),
        "app_version": app_version(),
    }


async def startup(
    env_file: Optional[str] = ".env",
    database_factory: Callable[[Config], Database] = Database,
) -> StartupResult:
    """Prepare everything needed to serve, without binding a socket."""
    try:
        config = load_config(env_file)
    except ConfigError as exc:
        logger.error("Invalid or missing .env file: %s", exc)
        return StartupResult(error=exc)

    logging.getLogger().setLevel(config.LOG_LEVEL)
    start_sentry(config)

    try:
        database = database_factory(config)
    except DatabaseError as exc:
        logger.error("MongoDB init connection error: %s", exc)
        return StartupResult(config=config, error=exc)

    try:
        await database.connect()
    except DatabaseError as exc:
        logger.error("MongoDB init connection error: %s", exc)
        await database.close()
        return StartupResult(config=config, error=exc)

    try:
        app = create_app(config, database)
    except StartupError as exc:
        logger.error("Application setup failed: %s", exc)
        await database.close()
        return StartupResult(config=config, error=exc)

    return StartupResult(config=config, app=app, database=database)


async def announce(server: uvicorn.Server, config: Config) -> None:
    """Wait for the socket to be bound, then start the tunnel or log the summary."""
    while not server.started:
        await asyncio.sleep(0.05)

    summary = server_summary(config)
    if config.NGROK_ENABLED:
        try:
            await asyncio.to_thread(start_tunnel, config, summary)
            return
        except Exception as e:
            logger.exception("Ngrok tunnel failed to start: %s", e)
    logger.info("Server: %s", summary)


async def serve(result: StartupResult) -> int:
    """Run the prepared application until uvicorn shuts down."""
    config = result.config
    if not result.ok or config is None or result.app is None:
        return result.exit_code

    server = uvicorn.Server(
        uvicorn.Config(
            result.app,
            host=config.SERVER_HOST,
            port=config.SERVER_PORT,
            log_config=None,
            proxy_headers=True,
        )
    )
    announcer = asyncio.create_task(announce(server, config))
    try:
        await server.serve()
    finally:
        announcer.cancel()
        try:
            await announcer
        except asyncio.CancelledError:
            pass
        if config.NGROK_ENABLED:
            stop_tunnel()
        if result.database is not None:
            await result.database.close()
    return 0
