"""Keycloak OpenID Connect login and logout using Authlib's Starlette client."""

from __future__ import annotations

import logging
from typing import Optional, cast
from urllib.parse import urlencode, urlsplit

from authlib.integrations.starlette_client import OAuth
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from starlette.routing import Match

from lib.config import Config
from lib.principal import SESSION_USER_KEY, UserProfile, serialize_user

logger = logging.getLogger(__name__)

KEYCLOAK_SCOPES = "openid profile email"

auth_router = APIRouter()


def get_well_known_url(issuer: str) -> str:
    return f"{issuer.rstrip('/')}/.well-known/openid-configuration"


def init_oauth(config: Config) -> OAuth:
    """Register the Keycloak client with explicit endpoints.

    Discovery is only used for the signing keys needed to verify ID tokens.
    """
    oauth = OAuth()
    oauth.register(
        name="keycloak",
        client_id=config.KEYCLOAK_CLIENT_ID,
        client_secret=config.KEYCLOAK_CLIENT_SECRET.get_secret_value(),
        authorize_url=config.KEYCLOAK_AUTHORIZATION_URL,
        access_token_url=config.KEYCLOAK_TOKEN_URL,
        userinfo_endpoint=config.KEYCLOAK_USERINFO_URL,
        server_metadata_url=get_well_known_url(config.KEYCLOAK_ISSUER),
        client_kwargs={"scope": KEYCLOAK_SCOPES},
    )
    return oauth


async def complete_login(request: Request) -> Optional[UserProfile]:
    """Exchange the authorization code and store the user in the session.

    Returns:
        The validated profile, or None when the exchange or validation fails
    """
    keycloak = request.app.state.oauth.keycloak
    try:
        token = await keycloak.authorize_access_token(request)
        userinfo = token.get("userinfo") or await keycloak.userinfo(token=token)
        user = UserProfile.model_validate(dict(userinfo))
    except ValidationError as e:
        logger.warning("Rejected profile from identity provider: %s", e.errors())
        return None
    except Exception as e:
        logger.exception("Callback error: %s", e)
        return None

    request.session.clear()
    request.session[SESSION_USER_KEY] = serialize_user(user)
    request.state.user = user
    logger.info("User %s signed in", user.sub)
    return user


@auth_router.get("/login")
async def login(request: Request) -> RedirectResponse:
    """Start the authorization code flow with Keycloak."""
    config: Config = request.app.state.config
    resp = await request.app.state.oauth.keycloak.authorize_redirect(request, config.KEYCLOAK_CALLBACK_URL)
    return cast(RedirectResponse, resp)


@auth_router.get("/logout")
async def logout(request: Request) -> RedirectResponse:
    """End the local session and hand the browser to Keycloak's end-session endpoint."""
    config: Config = request.app.state.config
    request.session.clear()
    params = {
        "client_id": config.KEYCLOAK_CLIENT_ID,
        "post_logout_redirect_uri": config.home_url,
    }
    return RedirectResponse(f"{config.logout_url}?{urlencode(params)}", status_code=302)


async def callback(request: Request) -> RedirectResponse:
    user = await complete_login(request)
    return RedirectResponse("/client" if user is not None else "/", status_code=302)


def _has_route(app: FastAPI, path: str) -> bool:
    """Whether a GET on ``path`` is already fully matched by a registered route."""
    scope = {"type": "http", "method": "GET", "path": path, "root_path": "", "query_string": b"", "headers": []}
    return any(route.matches(scope)[0] == Match.FULL for route in app.router.routes)


def register_auth_routes(app: FastAPI, config: Config) -> OAuth:
    """Attach the OAuth client and the login, logout and callback routes.

    The callback gets its own route only when ``KEYCLOAK_CALLBACK_URL``
    points somewhere no page already handles; protected pages complete the
    callback themselves.
    """
    app.state.oauth = init_oauth(config)
    app.include_router(auth_router)

    callback_path = urlsplit(config.KEYCLOAK_CALLBACK_URL).path or "/"
    if not _has_route(app, callback_path):
        app.add_api_route(callback_path, callback, methods=["GET"], name="auth_callback")
    return app.state.oauth
