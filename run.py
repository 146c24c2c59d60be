"""Application entry point for the room backend.

This module configures logging, runs the startup sequence and serves the
application. It is the only place that turns a startup failure into a
process exit status.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from app.server import serve, startup

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def run() -> int:
    result = await startup()
    if not result.ok:
        return result.exit_code
    return await serve(result)


def main() -> int:
    try:
        return asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Server stopped")
        return 0


if __name__ == "__main__":
    sys.exit(main())
