"""Shared pytest fixtures for all tests."""

from typing import Any, List, Optional

import pytest

from cli.config import Config
from common.constants import ROLE_INITIATOR
from peer.exceptions import SignalingUnavailableError
from peer.transport import (
    CaptureSource,
    CaptureSourceProvider,
    DataChannel,
    PeerTransport,
    TransportFactory,
    TransportListener,
)
from relay.config import SESSION_BACKEND_MEMORY, RelaySettings
from relay.main import create_app
from relay.repositories.session_repository import InMemorySessionRepository


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .peerlink directory
    """
    config_dir = tmp_path / '.peerlink'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a 150000-byte sample file for transfer tests.

    Returns:
        Path to sample binary file
    """
    file_path = tmp_path / 'capture.bin'
    file_path.write_bytes(bytes(i % 251 for i in range(150000)))
    return file_path


@pytest.fixture
def relay_settings(tmp_path):
    return RelaySettings(
        host='127.0.0.1',
        port=0,
        session_backend=SESSION_BACKEND_MEMORY,
        database_path=str(tmp_path / 'sessions.db'),
        session_ttl_seconds=3600,
        cleanup_interval_seconds=3600,
    )


@pytest.fixture
def relay_app(relay_settings):
    """Relay application backed by an in-memory session store."""
    return create_app(relay_settings, repository=InMemorySessionRepository())


class FakeSignaling:
    """In-memory stand-in for the relay connection."""

    def __init__(self):
        self.sent: List[dict] = []
        self.connected = False
        self.connect_calls = 0
        self.fail_connects = 0
        self.closed = False

    async def connect(self):
        self.connect_calls += 1
        if self.fail_connects:
            self.fail_connects -= 1
            raise SignalingUnavailableError("relay unreachable")
        self.connected = True

    async def send(self, payload):
        if not self.connected:
            raise SignalingUnavailableError("not connected")
        self.sent.append(payload)

    async def close(self):
        self.closed = True
        self.connected = False

    def drop(self):
        self.connected = False

    def sent_types(self) -> List[str]:
        return [message['type'] for message in self.sent]


class FakeDataChannel(DataChannel):
    def __init__(self, state: str = 'open'):
        self.frames: List[Any] = []
        self.state = state
        self.on_message = None

    @property
    def ready_state(self) -> str:
        return self.state

    async def send(self, data):
        self.frames.append(data)


class FakeTransport(PeerTransport):
    """Records every call into a log shared with its factory."""

    def __init__(self, listener: TransportListener, calls: list, local_candidates: List[Any]):
        self.listener = listener
        self.calls = calls
        self.local_candidates = local_candidates
        self.closed = False
        self.channel: Optional[FakeDataChannel] = None

    async def add_media(self, media):
        self.calls.append(('add_media', media))

    async def create_offer(self) -> str:
        return 'offer-sdp'

    async def create_answer(self) -> str:
        return 'answer-sdp'

    async def set_local_description(self, kind, sdp):
        self.calls.append(('local', kind))
        for candidate in self.local_candidates:
            self.listener.on_ice_candidate(candidate)

    async def set_remote_description(self, kind, sdp):
        self.calls.append(('remote', kind, sdp))

    async def add_ice_candidate(self, candidate):
        self.calls.append(('ice', candidate))

    async def close(self):
        self.closed = True
        self.calls.append(('close',))


class FakeTransportFactory(TransportFactory):
    def __init__(self, local_candidates: Optional[List[Any]] = None):
        self.calls: list = []
        self.transports: List[FakeTransport] = []
        self.local_candidates = local_candidates or []

    async def create_transport(self, role, listener):
        self.calls.append(('create', role))
        transport = FakeTransport(listener, self.calls, self.local_candidates)
        self.transports.append(transport)
        if role == ROLE_INITIATOR:
            transport.channel = FakeDataChannel()
            listener.on_data_channel(transport.channel)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


class FakeCaptureProvider(CaptureSourceProvider):
    def __init__(self, sources: Optional[List[CaptureSource]] = None):
        self.sources = [CaptureSource('screen:0', 'Entire screen')] if sources is None else sources
        self.acquired: List[str] = []

    async def list_sources(self):
        return list(self.sources)

    async def acquire(self, source_id):
        if not any(source.id == source_id for source in self.sources):
            return None
        self.acquired.append(source_id)
        return f"media:{source_id}"


@pytest.fixture
def fake_signaling():
    return FakeSignaling()


@pytest.fixture
def transport_factory():
    return FakeTransportFactory()


@pytest.fixture
def capture_provider():
    return FakeCaptureProvider()


@pytest.fixture
def fake_channel():
    return FakeDataChannel()


@pytest.fixture
def make_transport_factory():
    """Build a transport factory whose transports emit the given local candidates."""
    return FakeTransportFactory


@pytest.fixture
def make_capture_provider():
    return FakeCaptureProvider
