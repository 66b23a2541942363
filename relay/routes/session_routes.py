"""Session API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status

from relay.schemas.common import ErrorResponse
from relay.schemas.session import CreateSessionRequest, SessionResponse
from relay.services.session_service import SessionService

router = APIRouter(prefix="/session", tags=["Sessions"])


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={503: {"model": ErrorResponse}},
)
async def create_session(
    request: Optional[CreateSessionRequest] = None,
    service: SessionService = Depends(get_session_service),
):
    """
    Create a new session.

    Parameters:
        - password: Optional shared password; null or empty means the session is open

    Returns:
        - sessionId: Short identifier both parties use to join the relay
        - password: The password the session was created with

    Raises:
        - 503: Session store unavailable
    """
    password = request.password if request else None
    session = service.create_session(password)
    return SessionResponse(sessionId=session.session_id, password=session.password)


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_session(session_id: str, service: SessionService = Depends(get_session_service)):
    """
    Look up a session by id.

    Raises:
        - 404: Session does not exist or has expired
        - 503: Session store unavailable
    """
    session = service.get_session(session_id)
    return SessionResponse(sessionId=session.session_id, password=session.password)
