"""Service layer for business logic."""

from relay.services.session_service import SessionService

__all__ = [
    "SessionService",
]
