"""WebSocket signaling route."""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from common.constants import ROLE_ALIASES, ROLE_RESPONDER
from common.logging_config import get_logger, session_logger
from relay.exceptions import InvalidRoleError, RelayException
from relay.membership import RelayMember

logger = get_logger(__name__)

router = APIRouter(tags=["Signaling"])


def normalize_role(role: str) -> str:
    """
    Map a handshake role (including legacy host/viewer names) to initiator or responder.

    Raises:
        InvalidRoleError: If the role is not recognised
    """
    normalized = ROLE_ALIASES.get(role.strip().lower())
    if normalized is None:
        raise InvalidRoleError(f"Unknown role '{role}'")
    return normalized


@router.websocket("/ws")
async def signaling_endpoint(websocket: WebSocket):
    """
    Relay connection for one session member.

    Query parameters:
        - sessionId: Session to join (required)
        - role: initiator | responder (default responder)
        - password: Session password, if the session has one

    Admission failures accept and immediately close the socket with a
    4xxx close code and a short reason so the client can tell them apart.
    """
    params = websocket.query_params
    session_id = params.get("sessionId")
    raw_role = params.get("role") or ROLE_RESPONDER
    password = params.get("password") or None

    log = session_logger(logger, session_id, raw_role)
    service = websocket.app.state.session_service
    membership = websocket.app.state.membership
    relay = websocket.app.state.relay

    try:
        service.admit(session_id, password)
        role = normalize_role(raw_role)
    except RelayException as e:
        log.warning(f"Refused relay connection: {e.close_reason}")
        await websocket.accept()
        await websocket.close(code=e.close_code, reason=e.close_reason)
        return

    member = RelayMember(websocket, session_id, role)
    log = session_logger(logger, session_id, role)
    membership.join(session_id, member)

    try:
        await member.accept()
        log.info(f"Relay connection admitted ({len(membership.members_of(session_id))} member(s))")

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            text = message.get("text")
            if text is not None:
                await relay.forward(member, text)
                continue

            data = message.get("bytes")
            if data is not None:
                await relay.forward(member, data)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        log.error(f"Relay connection error: {e}", exc_info=True)
    finally:
        membership.leave(session_id, member)
        notified = await relay.announce_departure(member)
        log.info(f"Relay connection closed (notified {notified} peer(s))")
