"""Fan-out of signaling payloads between members of the same session."""

from typing import Union

from common.logging_config import get_logger
from common.protocol import PeerDisconnectMessage
from relay.membership import MembershipIndex, RelayMember

logger = get_logger(__name__)


class SignalingRelay:
    """
    Forwards opaque payloads to the other members of a session.

    The relay never inspects payloads: text stays text, binary stays binary.
    Per-sender ordering follows from the caller awaiting ``forward`` before
    reading the sender's next frame.
    """

    def __init__(self, membership: MembershipIndex):
        self.membership = membership

    async def forward(self, sender: RelayMember, payload: Union[str, bytes]) -> int:
        """
        Send a payload to every other member of the sender's session.

        Args:
            sender: Member the payload came from
            payload: Text or binary frame, forwarded unmodified

        Returns:
            Number of members the payload was delivered to
        """
        delivered = 0
        for member in self.membership.members_of(sender.session_id):
            if member is sender:
                continue
            try:
                if isinstance(payload, str):
                    await member.send_text(payload)
                else:
                    await member.send_bytes(payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Failed to forward to {member}: {e}")
        return delivered

    async def announce_departure(self, member: RelayMember) -> int:
        """
        Tell the remaining members of a session that a member left.

        Delivery is best-effort; failures are logged and skipped.

        Returns:
            Number of members notified
        """
        notice = PeerDisconnectMessage(role=member.role).to_json()
        notified = 0
        for peer in self.membership.members_of(member.session_id):
            if peer is member:
                continue
            try:
                await peer.send_text(notice)
                notified += 1
            except Exception as e:
                logger.debug(f"Could not deliver peer-disconnect to {peer}: {e}")
        return notified
