"""Login, client and config pages.

The login page is public; the client page and the config endpoint require
an authenticated session via the require_auth dependency.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse

from lib.guard import require_auth
from lib.principal import UserProfile

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def home(request: Request) -> Any:
    """Render the login page."""
    return request.app.state.templates.TemplateResponse(
        request=request,
        name="home.html",
        context={"loginUrl": request.url_for("login")},
    )


@router.get("/client", response_class=HTMLResponse)
async def client(
    request: Request,
    user: UserProfile = Depends(require_auth),  # noqa: B008
) -> Any:
    """Render the client page for the signed-in user."""
    return request.app.state.templates.TemplateResponse(
        request=request,
        name="client.html",
        context={"user": user, "logoutUrl": request.url_for("logout")},
    )


@router.get("/config")
async def config(
    request: Request,
    user: UserProfile = Depends(require_auth),  # noqa: B008
) -> JSONResponse:
    """Return the process configuration with secrets masked."""
    body = request.app.state.config.model_dump(mode="json")
    logger.debug("Send config: %s", body)
    return JSONResponse(body, status_code=200)
