"""
Connection Manager
Owns one WebSocket to the swarm backend: connect, detect loss, retry on a fixed delay
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

import websockets
from websockets.exceptions import WebSocketException

from .config import DEFAULT_RECONNECT_DELAY

logger = logging.getLogger(__name__)

Frame = Union[str, bytes]
Connector = Callable[[str], Awaitable[Any]]


class ConnectionState(str, Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


async def open_websocket(url: str):
    """Default connector: a websockets client connection"""
    return await websockets.connect(url)


class ConnectionManager:
    """
    Explicit Disconnected -> Connecting -> Connected state machine.

    Every loss (remote close, receive error, failed open) returns to
    Disconnected and schedules exactly one connect() after `reconnect_delay`.
    Retries never stop and never back off; only disconnect() ends them.
    """

    def __init__(self, url: str,
                 on_frame: Callable[[Frame], Any],
                 reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
                 on_state_change: Optional[Callable[[ConnectionState], None]] = None,
                 connector: Optional[Connector] = None):
        self.url = url
        self.on_frame = on_frame
        self.reconnect_delay = reconnect_delay
        self.on_state_change = on_state_change
        self._connector = connector or open_websocket
        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self._ws = None
        self._task: Optional[asyncio.Task] = None
        self._retry: Optional[asyncio.TimerHandle] = None
        self._closing = False

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._retry is not None

    def _set_state(self, state: ConnectionState):
        if state is self.state:
            return
        self.state = state
        if self.on_state_change:
            try:
                self.on_state_change(state)
            except Exception:
                logger.exception("[WS] State observer failed")

    def connect(self) -> bool:
        """Open a connection unless one is already open or opening. Returns True if an attempt started."""
        if self.state is not ConnectionState.DISCONNECTED:
            return False
        self._cancel_retry()
        self._closing = False
        self.attempts += 1
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(self._run())
        return True

    def reconnect(self) -> bool:
        """User-triggered recovery: connect now instead of waiting out the delay"""
        return self.connect()

    async def disconnect(self):
        """Cancel any pending retry and close the active connection (teardown only)"""
        self._closing = True
        self._cancel_retry()
        ws, task = self._ws, self._task
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.warning("[WS] Error while closing: %s", e)
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._ws = None
        self._task = None
        self._set_state(ConnectionState.DISCONNECTED)

    async def send(self, text: str) -> bool:
        """Send one text frame if connected. Never raises for transport problems."""
        ws = self._ws
        if not self.connected or ws is None:
            return False
        try:
            await ws.send(text)
        except (OSError, WebSocketException) as e:
            logger.warning("[WS] Send failed: %s", e)
            return False
        return True

    async def _run(self):
        try:
            ws = await self._connector(self.url)
        except Exception as e:
            logger.warning("[WS] Connect to %s failed: %s", self.url, e)
            self._handle_close()
            return

        self._ws = ws
        self._set_state(ConnectionState.CONNECTED)
        logger.info("[WS] Connected to %s", self.url)
        try:
            async for frame in ws:
                try:
                    self.on_frame(frame)
                except Exception:
                    logger.exception("[WS] Frame handler failed")
        except Exception as e:
            logger.warning("[WS] Connection error: %s", e)
        finally:
            self._ws = None
            self._handle_close()

    def _handle_close(self):
        self._set_state(ConnectionState.DISCONNECTED)
        if self._closing:
            logger.info("[WS] Disconnected")
            return
        self._cancel_retry()
        logger.warning("[WS] Disconnected, reconnecting in %.1fs", self.reconnect_delay)
        self._retry = asyncio.get_running_loop().call_later(self.reconnect_delay, self._retry_connect)

    def _retry_connect(self):
        self._retry = None
        self.connect()

    def _cancel_retry(self):
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None
