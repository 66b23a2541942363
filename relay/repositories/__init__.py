"""Repository layer for session storage."""

from relay.repositories.session_repository import (
    InMemorySessionRepository,
    Session,
    SessionRepository,
    SqliteSessionRepository,
)

__all__ = [
    "Session",
    "SessionRepository",
    "SqliteSessionRepository",
    "InMemorySessionRepository",
]
