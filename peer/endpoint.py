"""Peer endpoint: wires the relay connection, negotiation and file transfer together."""

from pathlib import Path
from typing import Any, Callable, Optional, Union

from common.constants import (
    KEEPALIVE_INTERVAL_SECONDS,
    RECONNECT_DELAY_SECONDS,
    TRANSFER_CHUNK_SIZE_BYTES,
)
from common.logging_config import get_logger, session_logger
from peer.exceptions import TransferError
from peer.negotiation import NegotiationController, Phase
from peer.signaling_client import SignalingClient
from peer.transfer import FileReceiver, FileSender, ReceivedFile
from peer.transport import CaptureSourceProvider, DataChannel, Frame, TransportFactory

logger = get_logger(__name__)


class PeerEndpoint:
    """
    One participant of a session.

    The transport factory and capture provider are supplied by the embedding
    application. Received files are passed to ``on_file`` and, when
    ``download_dir`` is set, saved there.
    """

    def __init__(
        self,
        ws_url: str,
        session_id: str,
        role: str,
        transport_factory: TransportFactory,
        capture_provider: Optional[CaptureSourceProvider] = None,
        password: Optional[str] = None,
        require_approval: bool = True,
        keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        chunk_size: int = TRANSFER_CHUNK_SIZE_BYTES,
        download_dir: Optional[Union[str, Path]] = None,
        on_status: Optional[Callable[[str], Any]] = None,
        on_file: Optional[Callable[[ReceivedFile], Any]] = None,
        on_approval_requested: Optional[Callable[[], Any]] = None,
        signaling: Optional[Any] = None
    ):
        self.session_id = session_id
        self.role = role
        self.chunk_size = chunk_size
        self.download_dir = Path(download_dir) if download_dir else None
        self.on_status = on_status
        self.on_file = on_file
        self.log = session_logger(logger, session_id, role)

        self.signaling = signaling or SignalingClient(
            ws_url,
            session_id,
            role,
            password=password,
            on_message=self._on_signal,
            on_disconnect=self._on_signaling_lost,
        )
        self.controller = NegotiationController(
            role,
            self.signaling,
            transport_factory,
            capture_provider=capture_provider,
            session_id=session_id,
            require_approval=require_approval,
            keepalive_interval=keepalive_interval,
            reconnect_delay=reconnect_delay,
            on_status=on_status,
            on_approval_requested=on_approval_requested,
            on_data_channel=self._on_data_channel,
        )
        self.receiver = FileReceiver(on_file=self._on_file_received)

    @classmethod
    def from_config(cls, config, session_id: str, role: str, transport_factory: TransportFactory, **kwargs):
        """Build an endpoint using relay address and tuning values from a CLI ``Config``."""
        return cls(
            config.get_ws_url(),
            session_id,
            role,
            transport_factory,
            require_approval=config.get_require_approval(),
            keepalive_interval=config.get_keepalive_interval(),
            reconnect_delay=config.get_reconnect_delay(),
            chunk_size=config.get_chunk_size(),
            **kwargs,
        )

    @property
    def phase(self) -> Phase:
        return self.controller.phase

    @property
    def status(self) -> str:
        return self.controller.status

    async def start(self):
        await self.controller.start()

    async def share(self, source_id: Optional[str] = None):
        """Initiator: start sharing the given (or first available) capture source."""
        await self.controller.begin(source_id)

    async def request_stream(self):
        """Responder: ask the initiator to start sharing."""
        await self.controller.begin()

    async def approve(self, source_id: Optional[str] = None):
        await self.controller.approve(source_id)

    async def deny(self):
        await self.controller.deny()

    async def send_file(self, path: Union[str, Path], on_progress=None) -> int:
        """
        Send a file to the other peer over the data channel.

        Raises:
            TransferError: If there is no open data channel
        """
        channel = self.controller.data_channel
        if channel is None:
            raise TransferError("No data channel: peer is not connected")
        return await FileSender(channel, self.chunk_size).send_file(path, on_progress=on_progress)

    async def close(self):
        await self.controller.close()

    async def _on_signal(self, raw: Union[str, bytes]):
        await self.controller.handle_signal(raw)

    async def _on_signaling_lost(self, code: Optional[int], reason: Optional[str]):
        await self.controller.signaling_lost(code, reason)

    def _on_data_channel(self, channel: DataChannel):
        channel.on_message = self._on_channel_message
        self.log.info("Data channel attached")

    def _on_channel_message(self, frame: Frame):
        try:
            self.receiver.handle_frame(frame)
        except TransferError as e:
            self.log.error(f"Transfer failed: {e}")
            self._report(f"Transfer failed: {e}")

    def _on_file_received(self, received: ReceivedFile):
        if self.download_dir is not None:
            received.save(self.download_dir)
        self._report(f"Received {received.name} ({received.size} bytes)")
        if self.on_file is not None:
            self.on_file(received)

    def _report(self, status: str):
        if self.on_status is not None:
            self.on_status(status)
