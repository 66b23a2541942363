"""Session service: creation, lookup and relay admission checks."""

import secrets
import uuid
from typing import Optional

from common.constants import SESSION_ID_LENGTH
from common.logging_config import get_logger
from relay.exceptions import (
    InvalidPasswordError,
    MissingSessionIdError,
    SessionNotFoundError,
    SessionStoreUnavailableError,
)
from relay.repositories.session_repository import Session, SessionRepository, utcnow

logger = get_logger(__name__)

MAX_ID_ATTEMPTS = 5


def generate_session_id() -> str:
    """
    Generate a short opaque session identifier.

    Returns:
        First SESSION_ID_LENGTH hex characters of a uuid4
    """
    return uuid.uuid4().hex[:SESSION_ID_LENGTH]


class SessionService:
    def __init__(self, repository: SessionRepository, ttl_seconds: int):
        self.repository = repository
        self.ttl_seconds = ttl_seconds

    def create_session(self, password: Optional[str] = None) -> Session:
        password = password or None

        for attempt in range(MAX_ID_ATTEMPTS):
            session = Session(
                session_id=generate_session_id(),
                password=password,
                created_at=utcnow(),
                ttl_seconds=self.ttl_seconds,
            )
            if self.repository.add(session):
                logger.info(
                    f"Created session {session.session_id} "
                    f"(protected={password is not None}, ttl={self.ttl_seconds}s)"
                )
                return session
            logger.warning(f"Retrying session id generation (attempt {attempt + 1}/{MAX_ID_ATTEMPTS})")

        raise SessionStoreUnavailableError("Could not allocate a unique session id")

    def get_session(self, session_id: str) -> Session:
        session = self.repository.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session '{session_id}' not found")
        return session

    def admit(self, session_id: Optional[str], password: Optional[str]) -> Session:
        """
        Check whether a relay connection may join a session.

        Args:
            session_id: Session named in the handshake
            password: Password supplied in the handshake, if any

        Returns:
            The live session record

        Raises:
            MissingSessionIdError: No session id supplied
            SessionNotFoundError: Unknown or expired session
            InvalidPasswordError: Session is protected and the password differs
        """
        if not session_id:
            raise MissingSessionIdError("sessionId required")

        session = self.get_session(session_id)

        if session.password is not None:
            supplied = (password or "").encode('utf-8')
            if not secrets.compare_digest(supplied, session.password.encode('utf-8')):
                logger.warning(f"Rejected relay admission to {session_id}: invalid password")
                raise InvalidPasswordError(f"Invalid password for session '{session_id}'")

        return session
