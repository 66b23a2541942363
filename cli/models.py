"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class CreateCommand:
    """Create a session, optionally with a password."""

    password: str | None = None
    command: Literal["create"] = "create"


@dataclass(frozen=True)
class ShowCommand:
    """Look up a session by id."""

    session_id: str
    command: Literal["show"] = "show"


@dataclass(frozen=True)
class HealthCommand:
    """Check relay readiness."""

    command: Literal["health"] = "health"


CommandRequest = CreateCommand | ShowCommand | HealthCommand
