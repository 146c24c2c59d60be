"""MongoDB connection lifecycle for the backend.

A single :class:`Database` owns the process-wide ``AsyncMongoClient``. The
initial connection is verified with a ``ping`` before the HTTP server is
built, and server state transitions are logged for the lifetime of the
process through a PyMongo monitoring listener.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError
from pymongo.monitoring import (
    ServerClosedEvent,
    ServerDescriptionChangedEvent,
    ServerListener,
    ServerOpeningEvent,
)

from lib.config import Config
from lib.errors import DatabaseError

logger = logging.getLogger(__name__)


def redact_url(url: str) -> str:
    """Strip credentials from a connection string before it is logged."""
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit((parts.scheme, f"***@{host}", parts.path, parts.query, parts.fragment))


class ConnectionStateLogger(ServerListener):
    """Log connected, error and disconnected transitions of each server."""

    def __init__(self, url: str, db_name: str) -> None:
        self.url = redact_url(url)
        self.db_name = db_name

    def opened(self, event: ServerOpeningEvent) -> None:
        logger.debug("MongoDB server opening: %s", {"address": event.server_address})

    def description_changed(self, event: ServerDescriptionChangedEvent) -> None:
        previous = event.previous_description
        new = event.new_description
        if not previous.is_server_type_known and new.is_server_type_known:
            logger.debug("MongoDB connection open to: %s", {"url": self.url, "db": self.db_name})
        elif new.error is not None:
            logger.error(
                "MongoDB connection error: %s",
                {"error": str(new.error), "url": self.url, "db": self.db_name},
            )
        elif previous.is_server_type_known and not new.is_server_type_known:
            logger.debug("MongoDB connection disconnected")

    def closed(self, event: ServerClosedEvent) -> None:
        logger.debug("MongoDB connection disconnected: %s", {"address": event.server_address})


class Database:
    """Process-wide MongoDB handle.

    Args:
        config: Application configuration
        client: Optional pre-built client; one is created from ``MONGO_URL``
            when omitted
    """

    def __init__(self, config: Config, client: Optional[Any] = None) -> None:
        self.config = config
        self.client = client if client is not None else self._create_client(config)
        self._closed = False

    @staticmethod
    def _create_client(config: Config) -> AsyncMongoClient:
        try:
            return AsyncMongoClient(
                config.MONGO_URL,
                serverSelectionTimeoutMS=config.MONGO_SERVER_SELECTION_TIMEOUT_MS,
                event_listeners=[ConnectionStateLogger(config.MONGO_URL, config.MONGO_DATABASE)],
            )
        except PyMongoError as exc:
            raise DatabaseError(f"Invalid MONGO_URL: {exc}") from exc

    @property
    def db(self) -> Any:
        return self.client[self.config.MONGO_DATABASE]

    @property
    def closed(self) -> bool:
        return self._closed

    async def _ping(self) -> None:
        await self.client.admin.command("ping")

    async def connect(self) -> None:
        """Open the connection, retrying when the policy allows it.

        Raises:
            DatabaseError: When no attempt succeeds
        """
        attempts = 1
        if self.config.MONGO_CONNECT_POLICY == "retry":
            attempts += self.config.MONGO_CONNECT_RETRIES

        for attempt in range(attempts):
            try:
                await self._ping()
                return
            except PyMongoError as exc:
                if attempt + 1 >= attempts:
                    raise DatabaseError(str(exc)) from exc
                delay = self.config.MONGO_CONNECT_BACKOFF * (2**attempt)
                logger.warning(
                    "MongoDB connection attempt %d/%d failed, retrying in %.1fs: %s",
                    attempt + 1,
                    attempts,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.client.close()
            logger.debug("MongoDB connection disconnected through app termination")
        except PyMongoError as exc:
            logger.error("Error closing MongoDB connection: %s", exc)
