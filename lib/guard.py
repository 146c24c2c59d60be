"""Authentication guard for protected pages.

Protected routes depend on :func:`require_auth`. A request carrying an
authorization ``code`` and ``state`` is treated as the provider callback and
completes the login in place; any other anonymous request is redirected to
the login page at the application root.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import RedirectResponse, Response

from lib.auth import complete_login
from lib.principal import UserProfile

logger = logging.getLogger(__name__)

LOGIN_PAGE = "/"


class RedirectError(Exception):
    """Exception raised to trigger HTTP redirects for authentication flows.

    It's caught by the global exception handler which converts it to a
    proper HTTP redirect response.

    Attributes:
        url: The URL to redirect to
    """

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Redirect to: {url}")


def is_callback(request: Request) -> bool:
    params = request.query_params
    return "code" in params and "state" in params


async def require_auth(request: Request) -> UserProfile:
    """Ensure the user is authenticated before accessing protected routes.

    Args:
        request: The incoming HTTP request carrying the session principal

    Returns:
        The authenticated user profile

    Raises:
        RedirectError: When the request is anonymous or the provider
            callback could not be completed
    """
    user = getattr(request.state, "user", None)
    if user is not None:
        return user

    if is_callback(request):
        user = await complete_login(request)
        if user is not None:
            return user

    logger.info("Unauthenticated access attempt to %s, redirecting to login", request.url.path)
    raise RedirectError(LOGIN_PAGE)


def redirect_exception_handler(request: Request, exc: Exception) -> Response:
    """Convert RedirectError exceptions into HTTP redirect responses.

    Raises:
        Exception: Re-raises the exception if it's not a RedirectError
    """
    if not isinstance(exc, RedirectError):
        raise exc
    return RedirectResponse(url=exc.url, status_code=302)
