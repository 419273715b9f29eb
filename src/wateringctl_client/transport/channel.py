"""Message channel to the device.

A channel owns exactly one socket and keeps it alive for as long as the
channel is in use:

- connect() starts a background run loop and resolves once connected
- a closed connection is reconnected by the run loop, without limit
- send() is best-effort: frames sent while disconnected are dropped
- inbound frames go to a single swappable hook (``on_message``)

Architecture:
- BaseTransportChannel holds the state machine and the run loop
- Implementations only provide the wire (_do_connect, _do_send, ...)
- MockChannel is an in-memory implementation for tests
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

Frame = str | bytes
MessageHook = Callable[[Frame], Awaitable[None] | None]
StateListener = Callable[["ChannelState"], None]


class ChannelState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class ChannelConfig:
    """Configuration for a single device channel."""

    url: str = "ws://192.168.4.1/api/fs"
    open_timeout: float = 1.5

    # Reconnection. The first attempt after a close is always immediate,
    # failed attempts wait reconnect_delay * reconnect_backoff**n.
    reconnect_delay: float = 1.5
    reconnect_backoff: float = 1.0
    max_reconnect_delay: float = 30.0


class BaseTransportChannel(ABC):
    """Base class for channels with the shared lifecycle.

    Provides:
    - State management and listeners
    - The reconnecting run loop
    - Single-slot inbound dispatch
    """

    def __init__(self, config: ChannelConfig):
        self.config = config
        self._state = ChannelState.DISCONNECTED
        self._on_message: MessageHook | None = None
        self._listeners: list[StateListener] = []
        self._ready = asyncio.Event()
        self._run_task: asyncio.Task[None] | None = None
        self._disposed = False

    @property
    def state(self) -> ChannelState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the channel is connected."""
        return self._state == ChannelState.CONNECTED

    @property
    def on_message(self) -> MessageHook | None:
        """The inbound hook. Assigning a new hook replaces the previous one."""
        return self._on_message

    @on_message.setter
    def on_message(self, hook: MessageHook | None) -> None:
        self._on_message = hook

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener.

        Returns:
            Unsubscribe function
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def connect(self) -> None:
        """Start the run loop (if needed) and wait until connected.

        Refused or timed-out attempts are retried by the run loop. Any
        other connect error stops the loop and is raised here.

        Raises:
            ValueError: If the channel URL is malformed
            ConnectionError: If the channel is disposed before connecting
        """
        if self._run_task is None or self._run_task.done():
            self._disposed = False
            self._run_task = asyncio.create_task(self._run())
        run_task = self._run_task

        ready = asyncio.create_task(self._ready.wait())
        try:
            await asyncio.wait({ready, run_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            ready.cancel()

        if self._ready.is_set():
            return
        if run_task.cancelled():
            raise ConnectionError(f"Channel to {self.config.url} disposed before connecting")
        error = run_task.exception()
        if error is not None:
            raise error
        raise ConnectionError(f"Channel to {self.config.url} stopped before connecting")

    async def send(self, frame: Frame) -> bool:
        """Send a frame, dropping it if not connected.

        Returns:
            True if the frame was handed to the socket
        """
        if not self.is_connected:
            logger.debug(f"{self.__class__.__name__} not connected, dropping frame")
            return False

        try:
            await self._do_send(frame)
        except ConnectionError as e:
            logger.warning(f"{self.__class__.__name__} send failed, dropping frame: {e}")
            return False
        return True

    async def reconnect(self) -> None:
        """Close the current connection; the run loop connects again."""
        if self._state != ChannelState.CONNECTED:
            return
        logger.info(f"{self.__class__.__name__} forcing reconnect to {self.config.url}")
        await self._do_disconnect()

    async def dispose(self) -> None:
        """Stop the run loop and close the connection."""
        self._disposed = True
        # A run loop that already failed has raised its error from connect()
        if self._run_task and not self._run_task.done():
            self._run_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._run_task
        self._run_task = None
        self._ready.clear()
        self._set_state(ChannelState.DISCONNECTED)

    async def _run(self) -> None:
        """Connect, pump inbound frames, reconnect on close."""
        delay = self.config.reconnect_delay

        while not self._disposed:
            self._set_state(ChannelState.CONNECTING)
            try:
                await self._do_connect()
            except (OSError, TimeoutError) as e:
                logger.warning(f"Connecting to {self.config.url} failed: {e}")
                self._set_state(ChannelState.DISCONNECTED)
                await asyncio.sleep(delay)
                delay = min(delay * self.config.reconnect_backoff, self.config.max_reconnect_delay)
                continue
            except Exception as e:
                logger.error(f"Cannot connect to {self.config.url}, giving up: {e}")
                self._set_state(ChannelState.DISCONNECTED)
                raise

            delay = self.config.reconnect_delay
            self._set_state(ChannelState.CONNECTED)
            self._ready.set()
            logger.info(f"{self.__class__.__name__} connected to {self.config.url}")

            try:
                async for frame in self._receive_frames():
                    await self._dispatch(frame)
            except ConnectionError as e:
                logger.warning(f"{self.__class__.__name__} connection lost: {e}")
            finally:
                self._ready.clear()
                await self._do_disconnect()
                self._set_state(ChannelState.DISCONNECTED)

            if not self._disposed:
                logger.info(f"{self.__class__.__name__} closed, reconnecting")

    async def _dispatch(self, frame: Frame) -> None:
        hook = self._on_message
        if hook is None:
            logger.debug("No inbound hook registered, frame lost")
            return
        try:
            result = hook(frame)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Inbound hook failed on {self.config.url}")

    def _set_state(self, state: ChannelState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> None:
        """Open the socket.

        Raise OSError/TimeoutError for failures worth retrying, anything
        else stops the run loop.
        """
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Close the socket; must make _receive_frames() finish."""
        ...

    @abstractmethod
    async def _do_send(self, frame: Frame) -> None:
        """Write one frame. Raise ConnectionError if the socket is gone."""
        ...

    @abstractmethod
    def _receive_frames(self) -> AsyncIterator[Frame]:
        """Yield inbound frames until the socket closes. Must be an async generator."""
        ...

    async def __aenter__(self) -> BaseTransportChannel:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.dispose()


class WebSocketChannel(BaseTransportChannel):
    """Channel over a WebSocket connection.

    Keep-alive pings of the websockets library are disabled; liveness
    is checked on the application level where needed.
    """

    def __init__(self, config: ChannelConfig | None = None):
        super().__init__(config or ChannelConfig())
        self._ws: Any = None  # websockets ClientConnection

    async def _do_connect(self) -> None:
        """Connect to the WebSocket endpoint."""
        try:
            import websockets
            from websockets.exceptions import InvalidHandshake, InvalidURI
        except ImportError as e:
            raise ImportError(
                "websockets package required. Install with: pip install websockets"
            ) from e

        try:
            self._ws = await websockets.connect(
                self.config.url,
                open_timeout=self.config.open_timeout,
                close_timeout=self.config.open_timeout,
                ping_interval=None,
                max_size=None,
            )
        except InvalidURI as e:
            raise ValueError(f"Invalid WebSocket URL: {e}") from e
        except InvalidHandshake as e:
            raise ConnectionError(f"Handshake rejected: {e}") from e

    async def _do_disconnect(self) -> None:
        """Close the WebSocket connection."""
        if self._ws:
            ws, self._ws = self._ws, None
            await ws.close()

    async def _do_send(self, frame: Frame) -> None:
        from websockets.exceptions import ConnectionClosed

        if not self._ws:
            raise ConnectionError("WebSocket not connected")
        try:
            await self._ws.send(frame)
        except ConnectionClosed as e:
            raise ConnectionError(str(e)) from e

    async def _receive_frames(self) -> AsyncIterator[Frame]:
        from websockets.exceptions import ConnectionClosed

        ws = self._ws
        if not ws:
            raise ConnectionError("WebSocket not connected")
        try:
            async for data in ws:
                yield data
        except ConnectionClosed as e:
            raise ConnectionError(str(e)) from e


Responder = Callable[[Frame], "list[Frame] | None"]


class MockChannel(BaseTransportChannel):
    """Mock channel for testing.

    Records outbound frames and lets tests inject inbound ones.
    No actual I/O - everything is in-memory.

    Usage:
        channel = MockChannel(responder=lambda frame: [b"WSFS_DELETED"])
        client = FsClient(channel)
        await client.start()
        await client.delete_file("/a.txt")

        assert channel.sent == [b"DELETE;/a.txt;false"]
    """

    def __init__(
        self,
        responder: Responder | None = None,
        config: ChannelConfig | None = None,
    ) -> None:
        super().__init__(config or ChannelConfig(url="mock://device", reconnect_delay=0.01))
        self.responder = responder
        self.sent: list[Frame] = []
        self.connect_attempts = 0
        self.fail_connects = 0
        self._inbox: asyncio.Queue[Frame | None] = asyncio.Queue()

    def feed(self, frame: Frame) -> None:
        """Inject an inbound frame."""
        self._inbox.put_nowait(frame)

    def drop(self) -> None:
        """Simulate the remote end closing the connection."""
        self._inbox.put_nowait(None)

    async def _do_connect(self) -> None:
        self.connect_attempts += 1
        if self.fail_connects > 0:
            self.fail_connects -= 1
            raise ConnectionRefusedError("mock connect refused")
        self._inbox = asyncio.Queue()

    async def _do_disconnect(self) -> None:
        self._inbox.put_nowait(None)

    async def _do_send(self, frame: Frame) -> None:
        self.sent.append(frame)
        if self.responder is None:
            return
        for reply in self.responder(frame) or []:
            self._inbox.put_nowait(reply)

    async def _receive_frames(self) -> AsyncIterator[Frame]:
        inbox = self._inbox
        while True:
            frame = await inbox.get()
            if frame is None:
                return
            yield frame


# Factory functions


def create_websocket_channel(
    url: str,
    open_timeout: float = 1.5,
    reconnect_delay: float = 1.5,
) -> WebSocketChannel:
    """Create a WebSocket channel.

    Args:
        url: WebSocket URL (ws:// or wss://)
        open_timeout: Timeout for the opening handshake
        reconnect_delay: Delay between failed connection attempts

    Returns:
        WebSocketChannel for the given endpoint
    """
    config = ChannelConfig(url=url, open_timeout=open_timeout, reconnect_delay=reconnect_delay)
    return WebSocketChannel(config)


def create_mock_channel(responder: Responder | None = None) -> MockChannel:
    """Create a mock channel for testing."""
    return MockChannel(responder=responder)
