"""Startup failures reported by the orchestrator instead of exiting."""

from __future__ import annotations

from typing import Iterable


class StartupError(Exception):
    """Base class for failures that prevent the server from starting.

    Attributes:
        exit_code: Process exit status the entry point should use
    """

    exit_code = 1


class ConfigError(StartupError):
    """Raised when mandatory environment variables are missing or invalid."""

    def __init__(self, variables: Iterable[str]) -> None:
        self.variables = list(variables)
        super().__init__(f"Missing or invalid variables: {', '.join(self.variables)}")


class DatabaseError(StartupError):
    """Raised when the initial database connection cannot be established."""


class RouterLoadError(StartupError):
    """Raised when an API route module cannot be imported or has no router."""
