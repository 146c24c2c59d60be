"""Optional ngrok tunnel exposing the local server publicly."""

from __future__ import annotations

import logging
from typing import Any

from pyngrok import ngrok

from lib.config import API_PATH, Config

logger = logging.getLogger(__name__)


def start_tunnel(config: Config, summary: dict[str, Any]) -> str:
    """Open an HTTP tunnel to ``SERVER_PORT`` and log its public URL.

    Blocking; run it off the event loop.
    """
    if config.NGROK_AUTH_TOKEN is not None:
        ngrok.set_auth_token(config.NGROK_AUTH_TOKEN.get_secret_value())

    tunnel = ngrok.connect(config.SERVER_PORT, "http")
    public_url = tunnel.public_url
    logger.info("Server: %s", {**summary, "ngrokHome": public_url, "ngrokApiDocs": f"{public_url}{API_PATH}/docs"})
    return public_url


def stop_tunnel() -> None:
    ngrok.kill()
