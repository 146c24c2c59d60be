"""Optional Sentry error reporting."""

from __future__ import annotations

import logging

import sentry_sdk

from lib.config import Config

logger = logging.getLogger(__name__)


def start_sentry(config: Config) -> bool:
    if not config.SENTRY_ENABLED:
        return False
    if not config.SENTRY_DSN:
        logger.warning("SENTRY_ENABLED is set but SENTRY_DSN is empty, Sentry disabled")
        return False

    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.PY_ENV,
        traces_sample_rate=config.SENTRY_TRACES_SAMPLE_RATE,
    )
    logger.info("Sentry started")
    return True
