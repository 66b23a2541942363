"""Live membership of relay sessions."""

import asyncio
import uuid
from typing import Any, Dict, List

from common.logging_config import get_logger

logger = get_logger(__name__)


class RelayMember:
    """
    One admitted relay connection.

    Sends are serialised per member so that two forwarders writing to the
    same socket never interleave frames.
    """

    def __init__(self, websocket: Any, session_id: str, role: str):
        self.websocket = websocket
        self.session_id = session_id
        self.role = role
        self.member_id = uuid.uuid4().hex[:12]
        self._send_lock = asyncio.Lock()

    async def accept(self) -> None:
        """Complete the handshake. Sends queued by other members wait until it is done."""
        async with self._send_lock:
            await self.websocket.accept()

    async def send_text(self, data: str) -> None:
        async with self._send_lock:
            await self.websocket.send_text(data)

    async def send_bytes(self, data: bytes) -> None:
        async with self._send_lock:
            await self.websocket.send_bytes(data)

    def __repr__(self) -> str:
        return f"RelayMember(session={self.session_id}, role={self.role}, id={self.member_id})"


class MembershipIndex:
    """
    Index of session id -> connected members, in join order.

    All operations are synchronous and never await, so they are atomic
    with respect to the event loop; no lock spans unrelated sessions.
    """

    def __init__(self):
        self._sessions: Dict[str, List[RelayMember]] = {}

    def join(self, session_id: str, member: RelayMember) -> int:
        """
        Add a member to a session.

        Returns:
            Number of members in the session after joining
        """
        members = self._sessions.setdefault(session_id, [])
        if member not in members:
            members.append(member)
        logger.debug(f"{member} joined ({len(members)} member(s))")
        return len(members)

    def leave(self, session_id: str, member: RelayMember) -> int:
        """
        Remove a member from a session; empty sessions are dropped from the index.

        Returns:
            Number of members remaining in the session
        """
        members = self._sessions.get(session_id)
        if not members:
            return 0
        if member in members:
            members.remove(member)
        remaining = len(members)
        if remaining == 0:
            del self._sessions[session_id]
        logger.debug(f"{member} left ({remaining} member(s) remaining)")
        return remaining

    def members_of(self, session_id: str) -> List[RelayMember]:
        """Snapshot of the members currently connected to a session."""
        return list(self._sessions.get(session_id, ()))

    def connection_count(self) -> int:
        return sum(len(members) for members in self._sessions.values())

    def session_count(self) -> int:
        return len(self._sessions)
