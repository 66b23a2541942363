"""Session repositories: durable sqlite storage and the in-memory fallback."""

import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from common.logging_config import get_logger
from relay.database import get_db_connection, init_database
from relay.exceptions import SessionStoreUnavailableError

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(value: datetime) -> str:
    return value.isoformat(timespec='microseconds')


@dataclass(frozen=True)
class Session:
    session_id: str
    password: Optional[str]
    created_at: datetime
    ttl_seconds: int

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at


class SessionRepository(ABC):
    """
    Storage contract for session records.

    Implementations must hide expired sessions from ``get`` even before
    ``purge_expired`` has physically removed them.
    """

    @abstractmethod
    def add(self, session: Session) -> bool:
        """
        Store a new session.

        Returns:
            False if a session with the same id already exists
        """

    @abstractmethod
    def get(self, session_id: str, now: Optional[datetime] = None) -> Optional[Session]:
        """Return the live session with this id, or None."""

    @abstractmethod
    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete expired sessions and return how many were removed."""

    def ping(self) -> None:
        """Raise SessionStoreUnavailableError if the backend cannot be reached."""


class SqliteSessionRepository(SessionRepository):
    def __init__(self, database_path: str):
        self.database_path = database_path
        try:
            init_database(database_path)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to initialize session database at {database_path}: {e}", exc_info=True)
            raise SessionStoreUnavailableError(f"Cannot open session database: {e}")
        logger.info(f"Using sqlite session store at {database_path}")

    def add(self, session: Session) -> bool:
        logger.debug(f"Storing session {session.session_id}")
        try:
            with get_db_connection(self.database_path) as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO sessions (session_id, password, created_at, ttl_seconds, expires_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (session.session_id, session.password, _timestamp(session.created_at),
                     session.ttl_seconds, _timestamp(session.expires_at))
                )
                conn.commit()
        except sqlite3.IntegrityError:
            logger.warning(f"Session id collision: {session.session_id}")
            return False
        except sqlite3.Error as e:
            logger.error(f"Failed to store session {session.session_id}: {e}", exc_info=True)
            raise SessionStoreUnavailableError(f"Cannot store session: {e}")
        return True

    def get(self, session_id: str, now: Optional[datetime] = None) -> Optional[Session]:
        now = now or utcnow()
        try:
            with get_db_connection(self.database_path) as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """SELECT session_id, password, created_at, ttl_seconds
                       FROM sessions WHERE session_id = ? AND expires_at > ?""",
                    (session_id, _timestamp(now))
                )
                row = cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to read session {session_id}: {e}", exc_info=True)
            raise SessionStoreUnavailableError(f"Cannot read session: {e}")

        if row is None:
            logger.debug(f"Session not found or expired: {session_id}")
            return None

        return Session(
            session_id=row["session_id"],
            password=row["password"],
            created_at=datetime.fromisoformat(row["created_at"]),
            ttl_seconds=row["ttl_seconds"],
        )

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        try:
            with get_db_connection(self.database_path) as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "DELETE FROM sessions WHERE expires_at <= ?",
                    (_timestamp(now),)
                )
                deleted = cursor.rowcount
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to purge expired sessions: {e}", exc_info=True)
            raise SessionStoreUnavailableError(f"Cannot purge sessions: {e}")
        return deleted

    def ping(self) -> None:
        try:
            with get_db_connection(self.database_path) as conn:
                conn.execute("SELECT 1 FROM sessions LIMIT 1")
        except sqlite3.Error as e:
            raise SessionStoreUnavailableError(f"Session database unavailable: {e}")


class InMemorySessionRepository(SessionRepository):
    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        logger.warning(
            "Using in-memory session store: all sessions are lost when the relay restarts"
        )

    def add(self, session: Session) -> bool:
        if session.session_id in self._sessions:
            logger.warning(f"Session id collision: {session.session_id}")
            return False
        self._sessions[session.session_id] = session
        return True

    def get(self, session_id: str, now: Optional[datetime] = None) -> Optional[Session]:
        session = self._sessions.get(session_id)
        if session is None or session.is_expired(now):
            return None
        return session

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
        for session_id in expired:
            del self._sessions[session_id]
        return len(expired)
