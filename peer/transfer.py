"""File transfer over the peer data channel.

A transfer is a ``files-meta`` text frame, zero or more binary chunk frames,
and a ``files-complete`` text frame. The channel is ordered and reliable, so
chunks are concatenated in arrival order.
"""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Union

from common.constants import DEFAULT_MIMETYPE, TRANSFER_CHUNK_SIZE_BYTES
from common.logging_config import get_logger
from common.protocol import FilesCompleteMessage, FilesMetaMessage, parse_transfer_message
from peer.exceptions import TransferError, TransferSizeMismatchError
from peer.transport import DataChannel

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


def guess_mimetype(name: str) -> str:
    mimetype, _ = mimetypes.guess_type(name)
    return mimetype or DEFAULT_MIMETYPE


@dataclass
class TransferState:
    """An inbound transfer between its meta frame and its complete frame."""
    name: str
    size: int
    mimetype: str
    received: int = 0
    chunks: List[bytes] = field(default_factory=list)

    @property
    def progress(self) -> float:
        if self.size == 0:
            return 1.0
        return min(self.received / self.size, 1.0)

    def append(self, chunk: bytes):
        self.chunks.append(chunk)
        self.received += len(chunk)


@dataclass(frozen=True)
class ReceivedFile:
    name: str
    mimetype: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def save(self, directory: Union[str, Path]) -> Path:
        """
        Write the file into ``directory``.

        Only the base name of the sender-declared name is used, so a name
        like ``../../etc/passwd`` lands as ``passwd`` inside ``directory``.
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        base_name = Path(self.name.replace('\\', '/')).name
        if base_name in ('', '.', '..'):
            base_name = 'received.bin'

        target = directory / base_name
        target.write_bytes(self.data)
        logger.info(f"Saved {self.name} ({self.size} bytes) to {target}")
        return target


class FileSender:
    """Sends files as meta + binary chunks + complete on a data channel."""

    def __init__(self, channel: DataChannel, chunk_size: int = TRANSFER_CHUNK_SIZE_BYTES):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.channel = channel
        self.chunk_size = chunk_size

    async def send_file(
        self,
        path: Union[str, Path],
        mimetype: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> int:
        """
        Send a local file.

        Returns:
            Number of chunk frames sent

        Raises:
            TransferError: If the file does not exist or the channel is not open
        """
        path = Path(path)
        if not path.is_file():
            raise TransferError(f"Not a file: {path}")

        size = path.stat().st_size
        meta = FilesMetaMessage(
            name=path.name,
            size=size,
            mimetype=mimetype or guess_mimetype(path.name),
        )
        await self._send_meta(meta)

        chunks = 0
        sent = 0
        with open(path, 'rb') as f:
            while True:
                chunk = f.read(self.chunk_size)
                if not chunk:
                    break
                await self.channel.send(chunk)
                chunks += 1
                sent += len(chunk)
                if on_progress is not None:
                    on_progress(sent, size)

        await self.channel.send(FilesCompleteMessage().to_json())
        logger.info(f"Sent {meta.name} ({sent} bytes in {chunks} chunks)")
        return chunks

    async def send_bytes(
        self,
        name: str,
        data: bytes,
        mimetype: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> int:
        """Send an in-memory payload under ``name``. Returns the number of chunk frames."""
        meta = FilesMetaMessage(
            name=name,
            size=len(data),
            mimetype=mimetype or guess_mimetype(name),
        )
        await self._send_meta(meta)

        view = memoryview(data)
        chunks = 0
        for offset in range(0, len(data), self.chunk_size):
            chunk = bytes(view[offset:offset + self.chunk_size])
            await self.channel.send(chunk)
            chunks += 1
            if on_progress is not None:
                on_progress(offset + len(chunk), len(data))

        await self.channel.send(FilesCompleteMessage().to_json())
        logger.info(f"Sent {name} ({len(data)} bytes in {chunks} chunks)")
        return chunks

    async def _send_meta(self, meta: FilesMetaMessage):
        if self.channel.ready_state != 'open':
            raise TransferError(f"Data channel is not open ({self.channel.ready_state})")
        await self.channel.send(meta.to_json())


class FileReceiver:
    """
    Reassembles inbound transfers from data channel frames.

    Only one transfer is in progress at a time. A new ``files-meta`` while a
    transfer is running replaces it. Binary frames outside a transfer are
    ignored.
    """

    def __init__(self, on_file: Optional[Callable[[ReceivedFile], None]] = None):
        self.on_file = on_file
        self.current: Optional[TransferState] = None

    def handle_frame(self, frame: Union[str, bytes, bytearray, memoryview]) -> Optional[ReceivedFile]:
        """
        Process one data channel frame.

        Returns:
            The completed file when this frame finished a transfer, else None

        Raises:
            TransferSizeMismatchError: If a completed transfer has the wrong byte count
        """
        if isinstance(frame, (bytes, bytearray, memoryview)):
            self._handle_chunk(bytes(frame))
            return None

        if not isinstance(frame, str):
            logger.warning(f"Ignoring data channel frame of type {type(frame).__name__}")
            return None

        try:
            message = parse_transfer_message(frame)
        except ValueError as e:
            logger.info(f"Data channel text: {frame[:200]} ({e})")
            return None

        if message is None:
            logger.debug(f"Ignoring data channel message: {frame[:200]}")
            return None

        if isinstance(message, FilesMetaMessage):
            self._start(message)
            return None
        return self._complete()

    def _start(self, meta: FilesMetaMessage):
        if self.current is not None:
            logger.warning(
                f"Transfer of {self.current.name} replaced by {meta.name} "
                f"after {self.current.received}/{self.current.size} bytes"
            )
        self.current = TransferState(name=meta.name, size=meta.size, mimetype=meta.mimetype)
        logger.info(f"Receiving {meta.name} ({meta.size} bytes, {meta.mimetype})")

    def _handle_chunk(self, chunk: bytes):
        if self.current is None:
            logger.debug(f"Ignoring {len(chunk)}-byte chunk with no active transfer")
            return
        self.current.append(chunk)
        logger.debug(
            f"{self.current.name}: {self.current.received}/{self.current.size} bytes"
        )

    def _complete(self) -> Optional[ReceivedFile]:
        state = self.current
        self.current = None
        if state is None:
            logger.warning("files-complete with no active transfer")
            return None

        data = b''.join(state.chunks)
        if len(data) != state.size:
            raise TransferSizeMismatchError(state.name, state.size, len(data))

        received = ReceivedFile(name=state.name, mimetype=state.mimetype, data=data)
        logger.info(f"Received {received.name} ({received.size} bytes)")
        if self.on_file is not None:
            self.on_file(received)
        return received
