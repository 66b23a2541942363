"""WebSocket client connecting an endpoint to the relay."""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import aiohttp

from common.logging_config import get_logger, session_logger
from peer.exceptions import SignalingUnavailableError

logger = get_logger(__name__)

MessageHandler = Callable[[Union[str, bytes]], Awaitable[None]]
DisconnectHandler = Callable[[Optional[int], Optional[str]], Awaitable[None]]


class SignalingClient:
    """
    Relay connection for one session member.

    Inbound frames are handed to ``on_message`` in arrival order from a single
    reader task. When the relay closes the socket or the network drops,
    ``on_disconnect(code, reason)`` is awaited once; a close requested through
    :meth:`close` does not report a disconnect.
    """

    def __init__(
        self,
        ws_url: str,
        session_id: str,
        role: str,
        password: Optional[str] = None,
        on_message: Optional[MessageHandler] = None,
        on_disconnect: Optional[DisconnectHandler] = None,
        connect_timeout: float = 10.0
    ):
        self.ws_url = ws_url
        self.session_id = session_id
        self.role = role
        self.password = password
        self.on_message = on_message
        self.on_disconnect = on_disconnect
        self.connect_timeout = connect_timeout

        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task] = None
        self._closing = False
        self.log = session_logger(logger, session_id, role)

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    def _params(self) -> Dict[str, str]:
        params = {'sessionId': self.session_id, 'role': self.role}
        if self.password:
            params['password'] = self.password
        return params

    async def connect(self):
        """
        Open the relay socket and start reading.

        Raises:
            SignalingUnavailableError: If the relay cannot be reached
        """
        if self.connected:
            return

        self._closing = False
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

        try:
            ws = await asyncio.wait_for(
                self._session.ws_connect(self.ws_url, params=self._params()),
                timeout=self.connect_timeout,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            self.log.warning(f"Relay connection to {self.ws_url} failed: {e}")
            raise SignalingUnavailableError(f"Cannot reach relay at {self.ws_url}: {e}")

        self._ws = ws
        self._reader = asyncio.create_task(self._read_loop(ws))
        self.log.info(f"Connected to relay at {self.ws_url}")

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse):
        code: Optional[int] = None
        reason: Optional[str] = None
        try:
            while True:
                msg = await ws.receive()

                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    await self._dispatch(msg.data)
                elif msg.type == aiohttp.WSMsgType.CLOSE:
                    code, reason = msg.data, msg.extra
                    break
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    reason = str(ws.exception())
                    break
                else:
                    break
        finally:
            if code is None:
                code = ws.close_code
            if self._ws is ws:
                self._ws = None

        if self._closing:
            return

        self.log.warning(f"Relay connection lost (code={code}, reason={reason})")
        if self.on_disconnect is not None:
            await self.on_disconnect(code, reason)

    async def _dispatch(self, data: Union[str, bytes]):
        if self.on_message is None:
            return
        try:
            await self.on_message(data)
        except Exception as e:
            self.log.error(f"Signal handler failed: {e}")

    async def send(self, payload: Union[Dict[str, Any], str]):
        """
        Send one signaling message as a text frame.

        Raises:
            SignalingUnavailableError: If the relay connection is not open
        """
        ws = self._ws
        if ws is None or ws.closed:
            raise SignalingUnavailableError("Relay connection is not open")

        text = payload if isinstance(payload, str) else json.dumps(payload)
        try:
            await ws.send_str(text)
        except (aiohttp.ClientError, ConnectionError) as e:
            raise SignalingUnavailableError(f"Relay send failed: {e}")

    async def close(self):
        """Close the relay socket and the HTTP session without reporting a disconnect."""
        self._closing = True

        ws = self._ws
        if ws is not None and not ws.closed:
            await ws.close()

        reader = self._reader
        self._reader = None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        if self._session is not None:
            await self._session.close()
            self._session = None
        self._ws = None
        self.log.info("Relay connection closed")
