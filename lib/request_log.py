"""Debug logging of every inbound request before it reaches a route."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import parse_qsl

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


def decode_body(body: bytes, content_type: str) -> Any:
    if not body:
        return {}
    if content_type.startswith("application/json"):
        try:
            return json.loads(body)
        except ValueError:
            pass
    if content_type.startswith("application/x-www-form-urlencoded"):
        return dict(parse_qsl(body.decode("latin-1"), keep_blank_values=True))
    return body.decode("utf-8", errors="replace")


class RequestLogMiddleware:
    """Log headers, body, method and path of each HTTP request at debug level.

    The body is read in full and replayed to the wrapped application.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not logger.isEnabledFor(logging.DEBUG):
            await self.app(scope, receive, send)
            return

        buffered: list[Message] = []
        chunks: list[bytes] = []
        more_body = True
        while more_body:
            message = await receive()
            buffered.append(message)
            if message["type"] != "http.request":
                break
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)

        headers = Headers(scope=scope)
        path = scope.get("path", "")
        query = scope.get("query_string", b"")
        if query:
            path = f"{path}?{query.decode('latin-1')}"

        logger.debug(
            "New request: %s",
            {
                "headers": dict(headers),
                "body": decode_body(b"".join(chunks), headers.get("content-type", "")),
                "method": scope.get("method"),
                "path": path,
            },
        )

        async def replay() -> Message:
            if buffered:
                return buffered.pop(0)
            return await receive()

        await self.app(scope, replay, send)
