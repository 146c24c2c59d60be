"""Ordered middleware pipeline.

Starlette applies middleware in reverse registration order, which makes the
effective order easy to get wrong. :class:`MiddlewarePipeline` takes the
stages outermost-first and refuses any registration that breaks the order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from fastapi import FastAPI


class Stage(IntEnum):
    CORS = 1
    COMPRESSION = 2
    SESSION = 3
    AUTH = 4
    REQUEST_LOG = 5


# Stages that cannot run unless another stage wraps them.
REQUIRES = {Stage.AUTH: Stage.SESSION}


class PipelineOrderError(Exception):
    """Raised when a stage is added out of order or without its prerequisite."""


@dataclass(frozen=True)
class PipelineEntry:
    stage: Stage
    middleware_class: type
    options: dict[str, Any] = field(default_factory=dict)


class MiddlewarePipeline:
    def __init__(self) -> None:
        self._entries: list[PipelineEntry] = []

    @property
    def stages(self) -> tuple[Stage, ...]:
        return tuple(entry.stage for entry in self._entries)

    def add(self, stage: Stage, middleware_class: type, **options: Any) -> MiddlewarePipeline:
        """Append a stage; stages must be added in ascending order.

        Raises:
            PipelineOrderError: On a duplicate or out-of-order stage, or a
                stage whose prerequisite has not been added
        """
        if self._entries and stage <= self._entries[-1].stage:
            raise PipelineOrderError(f"{stage.name} cannot follow {self._entries[-1].stage.name}")

        required = REQUIRES.get(stage)
        if required is not None and required not in self.stages:
            raise PipelineOrderError(f"{stage.name} requires {required.name}")

        self._entries.append(PipelineEntry(stage, middleware_class, dict(options)))
        return self

    def install(self, app: FastAPI) -> None:
        """Register every stage so that the first one added is outermost."""
        for entry in reversed(self._entries):
            app.add_middleware(entry.middleware_class, **entry.options)
