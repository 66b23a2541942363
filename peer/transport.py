"""
Interfaces of the external collaborators the endpoint drives.

Capture-source enumeration and the real-time transport primitive (session
descriptions, ICE, media, data channel) live outside this package. The
negotiation controller only calls these methods and reacts to the
listener callbacks; adapters for a concrete stack implement them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Union

Frame = Union[str, bytes]


@dataclass(frozen=True)
class CaptureSource:
    id: str
    name: str


class CaptureSourceProvider(ABC):
    @abstractmethod
    async def list_sources(self) -> List[CaptureSource]:
        """Enumerate capturable screens and windows."""

    @abstractmethod
    async def acquire(self, source_id: str) -> Optional[Any]:
        """Return a media handle for the source, or None if it is gone."""


class DataChannel(ABC):
    """
    Ordered, reliable message channel carried by the peer transport.

    ``on_message`` is assigned by the endpoint and called with each inbound
    text or binary frame.
    """

    on_message: Optional[Callable[[Frame], Optional[Awaitable[None]]]] = None

    @property
    @abstractmethod
    def ready_state(self) -> str:
        """'connecting', 'open', 'closing' or 'closed'."""

    @abstractmethod
    async def send(self, data: Frame) -> None:
        """Send one frame; returns once the transport accepted it."""


class TransportListener(ABC):
    """Callbacks a peer transport invokes on its owner."""

    @abstractmethod
    def on_ice_candidate(self, candidate: Any) -> None:
        pass

    @abstractmethod
    def on_connection_state_change(self, state: str) -> None:
        pass

    @abstractmethod
    def on_data_channel(self, channel: DataChannel) -> None:
        pass


class PeerTransport(ABC):
    @abstractmethod
    async def add_media(self, media: Any) -> None:
        pass

    @abstractmethod
    async def create_offer(self) -> str:
        pass

    @abstractmethod
    async def create_answer(self) -> str:
        pass

    @abstractmethod
    async def set_local_description(self, kind: str, sdp: str) -> None:
        pass

    @abstractmethod
    async def set_remote_description(self, kind: str, sdp: str) -> None:
        pass

    @abstractmethod
    async def add_ice_candidate(self, candidate: Any) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class TransportFactory(ABC):
    @abstractmethod
    async def create_transport(self, role: str, listener: TransportListener) -> PeerTransport:
        """
        Create the local transport object.

        For the initiator the factory also opens the 'data' channel and
        reports it through ``listener.on_data_channel``; the responder
        learns about the channel when the remote side opens it.
        """
