"""Pydantic schemas for API requests and responses."""

from relay.schemas.session import CreateSessionRequest, SessionResponse
from relay.schemas.common import ErrorResponse

__all__ = [
    "CreateSessionRequest",
    "SessionResponse",
    "ErrorResponse",
]
