"""
Negotiation controller for one endpoint of a session.

The controller owns the negotiation phase, the pending candidate buffer, the
approval flag and the keepalive/reconnect timers. Every input (signaling
payloads, local user actions, transport callbacks, timer expiries) is turned
into an event and applied through :meth:`NegotiationController.apply`, which
serialises them with a single asyncio lock.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Set, Union

from common.constants import (
    ADMISSION_CLOSE_CODES,
    KEEPALIVE_INTERVAL_SECONDS,
    RECONNECT_DELAY_SECONDS,
    ROLE_INITIATOR,
    ROLE_RESPONDER,
)
from common.logging_config import get_logger, session_logger
from common.protocol import (
    AnswerMessage,
    HostOnlineMessage,
    IceMessage,
    OfferMessage,
    PeerDisconnectMessage,
    SyncDeniedMessage,
    SyncReceivedMessage,
    SyncRequestMessage,
    parse_signaling_message,
)
from peer.exceptions import (
    NegotiationMalformedError,
    NoCaptureSourceError,
    SignalingUnavailableError,
)
from peer.transport import (
    CaptureSourceProvider,
    DataChannel,
    PeerTransport,
    TransportFactory,
    TransportListener,
)

logger = get_logger(__name__)

TIMER_KEEPALIVE = "keepalive"
TIMER_RECONNECT = "reconnect"

StatusCallback = Callable[[str], Any]


class Phase(str, Enum):
    IDLE = "idle"
    AWAITING_APPROVAL = "awaiting-approval"
    OFFERING = "offering"
    ANSWERING = "answering"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class BeginRequested:
    """Local user action: share (initiator) or ask for the stream (responder)."""
    source_id: Optional[str] = None


@dataclass(frozen=True)
class SyncRequested:
    pass


@dataclass(frozen=True)
class SyncAcknowledged:
    pass


@dataclass(frozen=True)
class SyncDenied:
    pass


@dataclass(frozen=True)
class HostOnline:
    pass


@dataclass(frozen=True)
class OfferReceived:
    sdp: str


@dataclass(frozen=True)
class AnswerReceived:
    sdp: str


@dataclass(frozen=True)
class IceReceived:
    candidate: Any


@dataclass(frozen=True)
class ConnectivityChanged:
    state: str
    generation: Optional[int] = None


@dataclass(frozen=True)
class ApprovalGranted:
    source_id: Optional[str] = None


@dataclass(frozen=True)
class ApprovalDenied:
    pass


@dataclass(frozen=True)
class TimerFired:
    timer: str


@dataclass(frozen=True)
class SignalingConnected:
    pass


@dataclass(frozen=True)
class SignalingLost:
    code: Optional[int] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class ReconnectFailed:
    error: str


@dataclass(frozen=True)
class PeerLeft:
    role: str


Event = Union[
    BeginRequested,
    SyncRequested,
    SyncAcknowledged,
    SyncDenied,
    HostOnline,
    OfferReceived,
    AnswerReceived,
    IceReceived,
    ConnectivityChanged,
    ApprovalGranted,
    ApprovalDenied,
    TimerFired,
    SignalingConnected,
    SignalingLost,
    ReconnectFailed,
    PeerLeft,
]


def event_from_signal(raw: Union[str, bytes]) -> Event:
    """
    Map one relay payload to a negotiation event.

    Raises:
        NegotiationMalformedError: If the payload is not a known signaling message
    """
    try:
        message = parse_signaling_message(raw)
    except ValueError as e:
        raise NegotiationMalformedError(str(e))

    if isinstance(message, OfferMessage):
        return OfferReceived(message.sdp)
    if isinstance(message, AnswerMessage):
        return AnswerReceived(message.sdp)
    if isinstance(message, IceMessage):
        return IceReceived(message.candidate)
    if isinstance(message, SyncRequestMessage):
        return SyncRequested()
    if isinstance(message, SyncReceivedMessage):
        return SyncAcknowledged()
    if isinstance(message, SyncDeniedMessage):
        return SyncDenied()
    if isinstance(message, HostOnlineMessage):
        return HostOnline()
    if isinstance(message, PeerDisconnectMessage):
        return PeerLeft(message.role)
    raise NegotiationMalformedError(f"unhandled signaling message: {message!r}")


class _BoundListener(TransportListener):
    """Routes callbacks of one transport instance back to the controller, tagged with its generation."""

    def __init__(self, controller: 'NegotiationController', generation: int):
        self.controller = controller
        self.generation = generation

    def on_ice_candidate(self, candidate: Any) -> None:
        self.controller._local_candidate(self.generation, candidate)

    def on_connection_state_change(self, state: str) -> None:
        self.controller._spawn(
            self.controller.apply(ConnectivityChanged(state, self.generation))
        )

    def on_data_channel(self, channel: DataChannel) -> None:
        self.controller._attach_data_channel(self.generation, channel)


class NegotiationController:
    """
    Per-endpoint negotiation state machine.

    ``signaling`` is any object with ``connect()``, ``send(dict)``, ``close()``
    and a ``connected`` property, normally a
    :class:`peer.signaling_client.SignalingClient`.
    """

    def __init__(
        self,
        role: str,
        signaling: Any,
        transport_factory: TransportFactory,
        capture_provider: Optional[CaptureSourceProvider] = None,
        session_id: Optional[str] = None,
        require_approval: bool = True,
        keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        default_source_id: Optional[str] = None,
        on_status: Optional[StatusCallback] = None,
        on_approval_requested: Optional[Callable[[], Any]] = None,
        on_data_channel: Optional[Callable[[DataChannel], Any]] = None
    ):
        if role not in (ROLE_INITIATOR, ROLE_RESPONDER):
            raise ValueError(f"Unknown role: {role}")

        self.role = role
        self.signaling = signaling
        self.transport_factory = transport_factory
        self.capture_provider = capture_provider
        self.require_approval = require_approval
        self.keepalive_interval = keepalive_interval
        self.reconnect_delay = reconnect_delay
        self.default_source_id = default_source_id
        self.on_status = on_status
        self.on_approval_requested = on_approval_requested
        self.on_data_channel = on_data_channel

        self.phase = Phase.IDLE
        self.status = "Idle"
        self.pending_candidates: List[Any] = []
        self.approved = False
        self.transport: Optional[PeerTransport] = None
        self.data_channel: Optional[DataChannel] = None
        self.reconnect_attempts = 0

        self._generation = 0
        self._local_description_sent = False
        self._outbound_candidates: List[Any] = []
        self._sync_requested = False
        self._host_seen = False
        self._closed = False

        self._lock = asyncio.Lock()
        self._keepalive_timer: Optional[asyncio.TimerHandle] = None
        self._reconnect_timer: Optional[asyncio.TimerHandle] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

        self.log = session_logger(logger, session_id, role)

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_timer is not None or self._reconnect_task is not None

    @property
    def keepalive_running(self) -> bool:
        return self._keepalive_timer is not None

    async def start(self):
        """
        Connect to the relay and enter the session.

        Raises:
            SignalingUnavailableError: If the relay cannot be reached
        """
        self._closed = False
        await self.signaling.connect()
        await self.apply(SignalingConnected())

    async def begin(self, source_id: Optional[str] = None):
        await self.apply(BeginRequested(source_id))

    async def approve(self, source_id: Optional[str] = None):
        await self.apply(ApprovalGranted(source_id))

    async def deny(self):
        await self.apply(ApprovalDenied())

    async def handle_signal(self, raw: Union[str, bytes]) -> Optional[Event]:
        """
        Apply one relay payload. Malformed payloads are logged and dropped.

        Returns:
            The event that was applied, or None if the payload was dropped
        """
        try:
            event = event_from_signal(raw)
        except NegotiationMalformedError as e:
            self.log.warning(f"Dropping malformed signal: {e}")
            return None

        try:
            await self.apply(event)
        except NoCaptureSourceError as e:
            self.log.error(f"Cannot start sharing: {e}")
        return event

    async def signaling_lost(self, code: Optional[int], reason: Optional[str]):
        await self.apply(SignalingLost(code, reason))

    async def apply(self, event: Event):
        """Apply one event. Events are processed strictly one at a time."""
        async with self._lock:
            if self._closed:
                self.log.debug(f"Ignoring {type(event).__name__} after close")
                return
            handler = self._handlers().get(type(event))
            if handler is None:
                raise TypeError(f"Unsupported negotiation event: {event!r}")
            await handler(event)

    def _handlers(self):
        return {
            BeginRequested: self._on_begin,
            SyncRequested: self._on_sync_requested,
            SyncAcknowledged: self._on_sync_acknowledged,
            SyncDenied: self._on_sync_denied,
            HostOnline: self._on_host_online,
            OfferReceived: self._on_offer,
            AnswerReceived: self._on_answer,
            IceReceived: self._on_ice,
            ConnectivityChanged: self._on_connectivity,
            ApprovalGranted: self._on_approval_granted,
            ApprovalDenied: self._on_approval_denied,
            TimerFired: self._on_timer,
            SignalingConnected: self._on_signaling_connected,
            SignalingLost: self._on_signaling_lost,
            ReconnectFailed: self._on_reconnect_failed,
            PeerLeft: self._on_peer_left,
        }

    async def close(self):
        """End the session: cancel timers, close the transport and the relay connection."""
        async with self._lock:
            self._closed = True
            self._cancel_keepalive()
            self._cancel_reconnect()
            await self._close_transport()
            self.pending_candidates.clear()
            self.approved = False
            self.phase = Phase.IDLE
            self._set_status("Session closed")

        await self.signaling.close()

        for task in list(self._tasks):
            task.cancel()

    # Local user actions

    async def _on_begin(self, event: BeginRequested):
        if self.role == ROLE_RESPONDER:
            if self.phase not in (Phase.IDLE, Phase.DISCONNECTED):
                self.log.info(f"Stream already in progress ({self.phase.value})")
                return
            await self._request_sync()
            return

        if self.phase not in (Phase.IDLE, Phase.DISCONNECTED):
            self.log.info(f"Already negotiating ({self.phase.value}), ignoring share request")
            return

        self.approved = True
        await self._start_offer(event.source_id)

    async def _on_approval_granted(self, event: ApprovalGranted):
        if self.role != ROLE_INITIATOR or self.phase != Phase.AWAITING_APPROVAL:
            self.log.warning(f"No sync request awaiting approval ({self.phase.value})")
            return

        self.approved = True
        await self._start_offer(event.source_id or self.default_source_id)

    async def _on_approval_denied(self, event: ApprovalDenied):
        if self.role != ROLE_INITIATOR or self.phase != Phase.AWAITING_APPROVAL:
            self.log.warning(f"No sync request awaiting approval ({self.phase.value})")
            return

        self.pending_candidates.clear()
        self.approved = False
        self.phase = Phase.IDLE
        await self._send_signal(SyncDeniedMessage())
        self._set_status("Denied the viewer's request")

    # Sync handshake

    async def _request_sync(self):
        if await self._send_signal(SyncRequestMessage()):
            self._sync_requested = True
            self._set_status("Requested stream from host")

    async def _on_host_online(self, event: HostOnline):
        if self.role != ROLE_RESPONDER:
            return

        first_sighting = not self._host_seen
        self._host_seen = True
        if self.phase not in (Phase.IDLE, Phase.DISCONNECTED):
            return
        if self._sync_requested and not first_sighting:
            return

        self.log.info("Host is online")
        await self._request_sync()

    async def _on_sync_requested(self, event: SyncRequested):
        if self.role != ROLE_INITIATOR:
            self.log.warning("Ignoring sync-request received by a responder")
            return
        if self.phase == Phase.AWAITING_APPROVAL:
            self.log.debug("Sync request already awaiting approval")
            return
        if self.phase not in (Phase.IDLE, Phase.DISCONNECTED):
            self.log.info(f"Ignoring sync-request while {self.phase.value}")
            return

        if not self.require_approval:
            self.approved = True
            await self._start_offer(self.default_source_id)
            return

        await self._send_signal(SyncReceivedMessage())
        self.approved = False
        self.phase = Phase.AWAITING_APPROVAL
        self._set_status("Viewer requested the stream, waiting for approval")
        if self.on_approval_requested is not None:
            result = self.on_approval_requested()
            if asyncio.iscoroutine(result):
                self._spawn(result)

    async def _on_sync_acknowledged(self, event: SyncAcknowledged):
        if self.role == ROLE_RESPONDER:
            self._set_status("Waiting for host approval")

    async def _on_sync_denied(self, event: SyncDenied):
        if self.role != ROLE_RESPONDER:
            return
        self.pending_candidates.clear()
        if self.phase != Phase.CONNECTED:
            self.phase = Phase.IDLE
        self._set_status("Host denied the request")

    # Offer / answer

    async def _acquire_capture(self, source_id: Optional[str]) -> Any:
        if self.capture_provider is None:
            raise NoCaptureSourceError("No capture source provider configured")

        if source_id is None:
            sources = await self.capture_provider.list_sources()
            if not sources:
                raise NoCaptureSourceError("No capture sources available")
            source_id = sources[0].id

        media = await self.capture_provider.acquire(source_id)
        if media is None:
            raise NoCaptureSourceError(f"Capture source '{source_id}' is not available")
        self.log.info(f"Capturing source {source_id}")
        return media

    async def _new_transport(self) -> PeerTransport:
        await self._close_transport()
        self._generation += 1
        self._local_description_sent = False
        self._outbound_candidates = []
        self.transport = await self.transport_factory.create_transport(
            self.role, _BoundListener(self, self._generation)
        )
        return self.transport

    async def _drain_pending_candidates(self):
        pending, self.pending_candidates = self.pending_candidates, []
        if pending:
            self.log.debug(f"Applying {len(pending)} buffered candidate(s)")
        for candidate in pending:
            await self._add_candidate(candidate)

    async def _start_offer(self, source_id: Optional[str]):
        try:
            media = await self._acquire_capture(source_id)
            transport = await self._new_transport()
            await self._drain_pending_candidates()
            await transport.add_media(media)
            sdp = await transport.create_offer()
            await transport.set_local_description("offer", sdp)
            self.phase = Phase.OFFERING
        except Exception as e:
            await self._abort(f"Sharing failed: {e}")
            raise

        await self._send_signal(OfferMessage(sdp))
        await self._flush_local_candidates()
        self._set_status("Offer sent")

    async def _on_offer(self, event: OfferReceived):
        if self.role != ROLE_RESPONDER:
            self.log.warning("Ignoring offer received by the initiator")
            return

        try:
            transport = await self._new_transport()
            await transport.set_remote_description("offer", event.sdp)
            await self._drain_pending_candidates()
            sdp = await transport.create_answer()
            await transport.set_local_description("answer", sdp)
            self.phase = Phase.ANSWERING
        except Exception as e:
            await self._abort(f"Answering failed: {e}")
            raise

        await self._send_signal(AnswerMessage(sdp))
        await self._flush_local_candidates()
        self._set_status("Answer sent")

    async def _on_answer(self, event: AnswerReceived):
        if self.role != ROLE_INITIATOR or self.phase != Phase.OFFERING or self.transport is None:
            self.log.warning(f"Ignoring unexpected answer ({self.phase.value})")
            return

        try:
            await self.transport.set_remote_description("answer", event.sdp)
        except Exception as e:
            await self._abort(f"Applying answer failed: {e}")
            raise
        self._set_status("Answer received")

    # Candidates

    async def _on_ice(self, event: IceReceived):
        if event.candidate is None:
            return

        if self.transport is None:
            self.pending_candidates.append(event.candidate)
            self.log.debug(f"Buffered candidate ({len(self.pending_candidates)} pending)")
            return

        await self._add_candidate(event.candidate)

    async def _add_candidate(self, candidate: Any):
        try:
            await self.transport.add_ice_candidate(candidate)
        except Exception as e:
            self.log.warning(f"Failed to add remote candidate: {e}")

    def _local_candidate(self, generation: int, candidate: Any):
        if generation != self._generation:
            return
        if not self._local_description_sent:
            self._outbound_candidates.append(candidate)
            return
        self._spawn(self._send_signal(IceMessage(candidate)))

    async def _flush_local_candidates(self):
        self._local_description_sent = True
        queued, self._outbound_candidates = self._outbound_candidates, []
        for candidate in queued:
            await self._send_signal(IceMessage(candidate))

    # Transport lifecycle

    def _attach_data_channel(self, generation: int, channel: DataChannel):
        if generation != self._generation:
            return
        self.data_channel = channel
        if self.on_data_channel is not None:
            self.on_data_channel(channel)

    async def _on_connectivity(self, event: ConnectivityChanged):
        if self.transport is None:
            return
        if event.generation is not None and event.generation != self._generation:
            return

        if event.state == "connected":
            self.phase = Phase.CONNECTED
            self._set_status("Peer connected")
        elif event.state in ("failed", "closed"):
            if self.phase == Phase.CONNECTED:
                await self._close_transport()
                self.phase = Phase.DISCONNECTED
                self._set_status(f"Peer connection {event.state}")
            else:
                await self._abort(f"Peer connection {event.state} during negotiation")
        else:
            self.log.info(f"Peer connection state: {event.state}")

    async def _on_peer_left(self, event: PeerLeft):
        was_connected = self.phase == Phase.CONNECTED
        await self._close_transport()
        self.pending_candidates.clear()
        self.approved = False
        self._sync_requested = False
        if event.role == ROLE_INITIATOR:
            self._host_seen = False
        self.phase = Phase.DISCONNECTED if was_connected else Phase.IDLE
        self._set_status(f"Peer ({event.role}) left the session")

    async def _close_transport(self):
        transport = self.transport
        self.transport = None
        self.data_channel = None
        if transport is None:
            return
        try:
            await transport.close()
        except Exception as e:
            self.log.warning(f"Error closing transport: {e}")

    async def _abort(self, status: str):
        await self._close_transport()
        self.pending_candidates.clear()
        self.approved = False
        self.phase = Phase.IDLE
        self._set_status(status)

    # Relay connection and timers

    async def _on_signaling_connected(self, event: SignalingConnected):
        self._cancel_reconnect()
        self.reconnect_attempts = 0
        if self.phase == Phase.DISCONNECTED:
            self.phase = Phase.IDLE
        self._set_status("Connected to relay")

        if self.role == ROLE_INITIATOR:
            await self._send_signal(HostOnlineMessage())
            self._arm_keepalive()
        elif self.phase == Phase.IDLE:
            self._sync_requested = False
            self._host_seen = False
            await self._request_sync()

    async def _on_signaling_lost(self, event: SignalingLost):
        self._cancel_keepalive()

        if event.code in ADMISSION_CLOSE_CODES:
            self._cancel_reconnect()
            self._set_status(f"Relay refused the session: {event.reason or event.code}")
            return

        if self.reconnect_scheduled:
            self.log.debug("Reconnect already scheduled")
            return

        self._set_status(f"Relay connection lost, reconnecting in {self.reconnect_delay}s")
        self._schedule_reconnect()

    async def _on_timer(self, event: TimerFired):
        if event.timer == TIMER_KEEPALIVE:
            self._keepalive_timer = None
            if self.role == ROLE_INITIATOR and self.signaling.connected:
                await self._send_signal(HostOnlineMessage())
                self._arm_keepalive()
        elif event.timer == TIMER_RECONNECT:
            self._reconnect_timer = None
            self.reconnect_attempts += 1
            self.log.info(f"Reconnect attempt {self.reconnect_attempts}")
            self._reconnect_task = self._spawn(self._attempt_reconnect())
        else:
            self.log.warning(f"Unknown timer fired: {event.timer}")

    async def _attempt_reconnect(self):
        # Runs outside the lock so close() can cancel a slow connect.
        try:
            await self.signaling.connect()
        except SignalingUnavailableError as e:
            self._reconnect_task = None
            await self.apply(ReconnectFailed(str(e)))
            return

        self._reconnect_task = None
        await self.apply(SignalingConnected())

    async def _on_reconnect_failed(self, event: ReconnectFailed):
        self._set_status(f"Reconnect failed: {event.error}")
        self._schedule_reconnect()

    def _arm_keepalive(self):
        self._cancel_keepalive()
        loop = asyncio.get_running_loop()
        self._keepalive_timer = loop.call_later(
            self.keepalive_interval, self._fire_timer, TIMER_KEEPALIVE
        )

    def _schedule_reconnect(self):
        if self.reconnect_scheduled:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_timer = loop.call_later(
            self.reconnect_delay, self._fire_timer, TIMER_RECONNECT
        )

    def _cancel_keepalive(self):
        if self._keepalive_timer is not None:
            self._keepalive_timer.cancel()
            self._keepalive_timer = None

    def _cancel_reconnect(self):
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None

    def _fire_timer(self, timer: str):
        self._spawn(self.apply(TimerFired(timer)))

    # Helpers

    async def _send_signal(self, message) -> bool:
        try:
            await self.signaling.send(message.to_dict())
            return True
        except SignalingUnavailableError as e:
            self.log.warning(f"Dropped outbound {message.type}: {e}")
            return False

    def _set_status(self, status: str):
        self.status = status
        self.log.info(status)
        if self.on_status is not None:
            self.on_status(status)

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.log.error(f"Negotiation task failed: {exc}")
