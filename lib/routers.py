"""Loading of the externally supplied ``/api/v1`` route modules."""

from __future__ import annotations

import importlib
import logging
from typing import Iterable

from fastapi import APIRouter

from lib.errors import RouterLoadError

logger = logging.getLogger(__name__)


def load_api_routers(module_paths: Iterable[str]) -> list[APIRouter]:
    """Import each module and return its ``router`` attribute.

    Raises:
        RouterLoadError: If a module cannot be imported or exposes no APIRouter
    """
    routers = []
    for path in module_paths:
        try:
            module = importlib.import_module(path)
        except ImportError as exc:
            raise RouterLoadError(f"Cannot import route module {path}: {exc}") from exc

        router = getattr(module, "router", None)
        if not isinstance(router, APIRouter):
            raise RouterLoadError(f"Route module {path} has no APIRouter named 'router'")

        logger.debug("Loaded route module %s", path)
        routers.append(router)
    return routers
