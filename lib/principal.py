"""Authenticated user principal and its session round-trip."""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user"


class UserProfile(BaseModel):
    """Identity returned by the OIDC provider after a successful login.

    ``name`` falls back to ``preferred_username`` for accounts without a
    display name.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    sub: str
    email: str
    name: str
    preferred_username: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and data.get("preferred_username"):
            return {**data, "name": data["preferred_username"]}
        return data


def serialize_user(user: UserProfile) -> dict[str, Any]:
    return user.model_dump(mode="json", exclude_none=True)


def deserialize_user(data: Any) -> Optional[UserProfile]:
    if not data:
        return None
    try:
        return UserProfile.model_validate(data)
    except ValidationError:
        logger.warning("Discarding invalid user in session")
        return None


class PrincipalMiddleware:
    """Expose the session user as ``request.state.user`` (``None`` if anonymous).

    Must be wrapped by ``SessionMiddleware``.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] in ("http", "websocket"):
            session = scope.get("session") or {}
            scope.setdefault("state", {})["user"] = deserialize_user(session.get(SESSION_USER_KEY))
        await self.app(scope, receive, send)
