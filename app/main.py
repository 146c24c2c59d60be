"""FastAPI application factory for the room backend.

This module builds the application from an explicit configuration: the
ordered middleware pipeline, the ``/api/v1`` route modules, the login,
client and config pages, Keycloak authentication routes, static assets and
the JSON 404 fallback.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler as default_http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from app.routes.root import router as root_router
from lib.auth import register_auth_routes
from lib.config import API_PATH, Config, app_version
from lib.database import Database
from lib.guard import RedirectError, redirect_exception_handler
from lib.pipeline import MiddlewarePipeline, Stage
from lib.principal import PrincipalMiddleware
from lib.request_log import RequestLogMiddleware
from lib.routers import load_api_routers

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

NOT_FOUND_BODY = {"message": "Page not found"}
NOT_FOUND_STATUSES = (404, 405)


def build_pipeline(config: Config) -> MiddlewarePipeline:
    return (
        MiddlewarePipeline()
        .add(Stage.CORS, CORSMiddleware, **config.cors_options)
        .add(Stage.COMPRESSION, GZipMiddleware, minimum_size=500)
        .add(
            Stage.SESSION,
            SessionMiddleware,
            secret_key=config.SESSION_SECRET.get_secret_value(),
            same_site="lax",
            https_only=config.is_production,
            max_age=config.SESSION_DURATION,
        )
        .add(Stage.AUTH, PrincipalMiddleware)
        .add(Stage.REQUEST_LOG, RequestLogMiddleware)
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    database: Optional[Database] = app.state.database
    if database is not None:
        await database.close()


def create_app(config: Config, database: Optional[Database] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Immutable process configuration
        database: Connected database, closed again on application shutdown

    Returns:
        FastAPI: Configured application instance ready to run

    Raises:
        RouterLoadError: If a configured API route module cannot be loaded
    """
    app = FastAPI(
        title="Room backend",
        version=app_version(),
        docs_url=f"{API_PATH}/docs",
        redoc_url=None,
        openapi_url=f"{API_PATH}/openapi.json",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.database = database
    app.state.templates = templates

    build_pipeline(config).install(app)

    for router in load_api_routers(config.api_route_modules_list):
        app.include_router(router, prefix=API_PATH)

    app.include_router(root_router)
    register_auth_routes(app, config)

    static_dir = BASE_DIR / "static"
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
        """Answer unmatched paths and methods with a fixed JSON body."""
        if exc.status_code in NOT_FOUND_STATUSES:
            return JSONResponse(NOT_FOUND_BODY, status_code=404)
        return await default_http_exception_handler(request, exc)

    app.add_exception_handler(RedirectError, redirect_exception_handler)

    logger.info("FastAPI application initialized")

    return app
