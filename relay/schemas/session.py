"""Pydantic schemas for session endpoints."""

from typing import Optional
from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    """Request model for session creation."""
    password: Optional[str] = None


class SessionResponse(BaseModel):
    """Response model for session creation and lookup."""
    session_id: str = Field(..., alias="sessionId")
    password: Optional[str] = None
