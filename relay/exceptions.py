"""Custom exception classes for the relay."""

from common.constants import (
    CLOSE_INVALID_PASSWORD,
    CLOSE_INVALID_ROLE,
    CLOSE_MISSING_SESSION_ID,
    CLOSE_SESSION_NOT_FOUND,
    CLOSE_STORE_UNAVAILABLE,
)


class RelayException(Exception):
    """
    Base exception class for all relay errors.

    Subclasses raised during WebSocket admission carry the close code and
    the short reason sent to the refused client.
    """
    close_code = CLOSE_STORE_UNAVAILABLE
    close_reason = "internal error"


class MissingSessionIdError(RelayException):
    """
    Raised when a relay connection does not name a session.
    """
    close_code = CLOSE_MISSING_SESSION_ID
    close_reason = "sessionId required"


class SessionNotFoundError(RelayException):
    """
    Raised when a session does not exist or has expired.
    """
    close_code = CLOSE_SESSION_NOT_FOUND
    close_reason = "session not found"


class InvalidPasswordError(RelayException):
    """
    Raised when the supplied password does not match the session's password.
    """
    close_code = CLOSE_INVALID_PASSWORD
    close_reason = "invalid password"


class InvalidRoleError(RelayException):
    """
    Raised when a relay connection asks for a role other than initiator or responder.
    """
    close_code = CLOSE_INVALID_ROLE
    close_reason = "invalid role"


class SessionStoreUnavailableError(RelayException):
    """
    Raised when the session persistence backend cannot be read or written.
    """
    close_code = CLOSE_STORE_UNAVAILABLE
    close_reason = "session store unavailable"
