"""Shared wire message definitions for signaling and the file-transfer channel.

Every message is a JSON object with a ``type`` field. Signaling messages travel
through the relay as text frames; transfer control frames travel on the peer
data channel alongside raw binary chunk frames.
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, Union
import json

from common.constants import DEFAULT_MIMETYPE


OFFER = "offer"
ANSWER = "answer"
ICE = "ice"
SYNC_REQUEST = "sync-request"
SYNC_RECEIVED = "sync-received"
SYNC_DENIED = "sync-denied"
HOST_ONLINE = "host-online"
PEER_DISCONNECT = "peer-disconnect"

FILES_META = "files-meta"
FILES_CHUNK = "files-chunk"
FILES_COMPLETE = "files-complete"


@dataclass
class OfferMessage:
    """Session description offered by the initiator."""
    sdp: str
    type: ClassVar[str] = OFFER

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'sdp': self.sdp}

    def to_json(self) -> str:
        """Serialize to a JSON text frame."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'OfferMessage':
        return cls(sdp=_require_str(obj, 'sdp'))


@dataclass
class AnswerMessage:
    """Session description answered by the responder."""
    sdp: str
    type: ClassVar[str] = ANSWER

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'sdp': self.sdp}

    def to_json(self) -> str:
        """Serialize to a JSON text frame."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'AnswerMessage':
        return cls(sdp=_require_str(obj, 'sdp'))


@dataclass
class IceMessage:
    """
    A trickled ICE candidate.

    The candidate is opaque: whatever the transport primitive produced
    (usually a dict with candidate/sdpMid/sdpMLineIndex) is carried as-is.
    A null candidate marks end-of-candidates.
    """
    candidate: Any
    type: ClassVar[str] = ICE

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'candidate': self.candidate}

    def to_json(self) -> str:
        """Serialize to a JSON text frame."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'IceMessage':
        return cls(candidate=obj.get('candidate'))


@dataclass
class SyncRequestMessage:
    """Responder asks the initiator to start sharing."""
    type: ClassVar[str] = SYNC_REQUEST

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'SyncRequestMessage':
        return cls()


@dataclass
class SyncReceivedMessage:
    """Initiator acknowledges a sync request and is waiting on local approval."""
    type: ClassVar[str] = SYNC_RECEIVED

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'SyncReceivedMessage':
        return cls()


@dataclass
class SyncDeniedMessage:
    """Initiator refused the sync request."""
    type: ClassVar[str] = SYNC_DENIED

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'SyncDeniedMessage':
        return cls()


@dataclass
class HostOnlineMessage:
    """Keepalive emitted periodically by the initiator."""
    type: ClassVar[str] = HOST_ONLINE

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'HostOnlineMessage':
        return cls()


@dataclass
class PeerDisconnectMessage:
    """Synthesized by the relay when a session member leaves."""
    role: str
    type: ClassVar[str] = PEER_DISCONNECT

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'role': self.role}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'PeerDisconnectMessage':
        return cls(role=_require_str(obj, 'role'))


@dataclass
class FilesMetaMessage:
    """Announces the start of a file transfer on the data channel."""
    name: str
    size: int
    mimetype: str = DEFAULT_MIMETYPE
    type: ClassVar[str] = FILES_META

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'name': self.name,
            'size': self.size,
            'mimetype': self.mimetype,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'FilesMetaMessage':
        size = obj.get('size')
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise ValueError(f"files-meta has invalid size: {size!r}")
        return cls(
            name=_require_str(obj, 'name'),
            size=size,
            mimetype=obj.get('mimetype') or DEFAULT_MIMETYPE,
        )


@dataclass
class FilesCompleteMessage:
    """Marks the end of the current file transfer."""
    type: ClassVar[str] = FILES_COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'FilesCompleteMessage':
        return cls()


SignalingMessage = Union[
    OfferMessage,
    AnswerMessage,
    IceMessage,
    SyncRequestMessage,
    SyncReceivedMessage,
    SyncDeniedMessage,
    HostOnlineMessage,
    PeerDisconnectMessage,
]

TransferMessage = Union[FilesMetaMessage, FilesCompleteMessage]

SIGNALING_MESSAGES = {
    cls.type: cls
    for cls in (
        OfferMessage,
        AnswerMessage,
        IceMessage,
        SyncRequestMessage,
        SyncReceivedMessage,
        SyncDeniedMessage,
        HostOnlineMessage,
        PeerDisconnectMessage,
    )
}

TRANSFER_MESSAGES = {
    cls.type: cls
    for cls in (FilesMetaMessage, FilesCompleteMessage)
}


def _require_str(obj: Dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise ValueError(f"'{obj.get('type')}' message requires string field '{key}'")
    return value


def decode_object(raw: Union[str, bytes]) -> Dict[str, Any]:
    """
    Decode a JSON text frame into a dict carrying a string ``type``.

    Raises:
        ValueError: If the frame is not JSON, not an object, or has no type
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = bytes(raw).decode('utf-8')
        except UnicodeDecodeError as e:
            raise ValueError(f"frame is not UTF-8 text: {e}")
    try:
        obj = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"frame is not valid JSON: {e}")
    if not isinstance(obj, dict):
        raise ValueError("frame is not a JSON object")
    if not isinstance(obj.get('type'), str):
        raise ValueError("frame has no message type")
    return obj


def parse_signaling_message(raw: Union[str, bytes]) -> SignalingMessage:
    """
    Parse a relay payload into a typed signaling message.

    Raises:
        ValueError: If the payload is malformed or of an unknown type
    """
    obj = decode_object(raw)
    message_cls = SIGNALING_MESSAGES.get(obj['type'])
    if message_cls is None:
        raise ValueError(f"unknown signaling message type: {obj['type']}")
    return message_cls.from_dict(obj)


def parse_transfer_message(raw: str) -> Optional[TransferMessage]:
    """
    Parse a data channel text frame into a transfer control message.

    Returns None for well-formed JSON objects of a type the transfer
    protocol does not handle.

    Raises:
        ValueError: If the frame is not a JSON object with a type
    """
    obj = decode_object(raw)
    if obj['type'] == FILES_CHUNK:
        # Chunks travel as binary frames; JSON chunk frames are not reassembled.
        return None
    message_cls = TRANSFER_MESSAGES.get(obj['type'])
    if message_cls is None:
        return None
    return message_cls.from_dict(obj)
