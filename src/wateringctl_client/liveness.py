"""Heartbeat liveness check for the event socket.

A half-open connection never produces a close event, so the monitor
probes it: on every open it sends a sentinel string that the device
echoes verbatim. An echo within the timeout schedules the next probe;
no echo forces one reconnect cycle.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from .protocol.status import frame_text
from .transport import BaseTransportChannel, ChannelState, Frame

logger = logging.getLogger(__name__)

HEARTBEAT_SENTINEL = "<conn_test>"


class LivenessState(str, Enum):
    """Liveness state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED_UNVERIFIED = "connected_unverified"
    CONNECTED_VERIFIED = "connected_verified"


class LivenessMonitor:
    """Probe/echo loop over a channel.

    The monitor does not own the channel's inbound hook; the owner
    passes frames to consume(), which swallows heartbeat echoes.
    """

    def __init__(
        self,
        channel: BaseTransportChannel,
        timeout: float = 1.5,
        interval: float = 1.5,
        sentinel: str = HEARTBEAT_SENTINEL,
    ):
        self.channel = channel
        self.timeout = timeout
        self.interval = interval
        self.sentinel = sentinel
        self.reconnects = 0
        self._state = LivenessState.DISCONNECTED
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._probe_handle: asyncio.TimerHandle | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._detach: Callable[[], None] | None = None
        self._sends: set[asyncio.Task[bool]] = set()

    @property
    def state(self) -> LivenessState:
        return self._state

    @property
    def awaiting_echo(self) -> bool:
        return self._timeout_handle is not None

    def attach(self) -> None:
        """Start following the channel's state."""
        if self._detach is None:
            self._detach = self.channel.add_state_listener(self._on_channel_state)
        if self.channel.is_connected:
            self._on_channel_state(ChannelState.CONNECTED)

    def detach(self) -> None:
        """Stop probing and forget the channel."""
        if self._detach:
            self._detach()
            self._detach = None
        self._cancel_timers()
        self._state = LivenessState.DISCONNECTED

    def consume(self, frame: Frame) -> bool:
        """Handle a heartbeat echo.

        Returns:
            True if the frame was the sentinel and must not be processed further
        """
        if frame_text(frame) != self.sentinel:
            return False

        if self._timeout_handle is None:
            logger.debug("Ignoring heartbeat echo without outstanding probe")
            return True

        self._timeout_handle.cancel()
        self._timeout_handle = None
        self._state = LivenessState.CONNECTED_VERIFIED
        loop = asyncio.get_running_loop()
        self._probe_handle = loop.call_later(self.interval, self._probe)
        return True

    def _on_channel_state(self, state: ChannelState) -> None:
        if state == ChannelState.CONNECTED:
            self._state = LivenessState.CONNECTED_UNVERIFIED
            self._probe()
        elif state == ChannelState.CONNECTING:
            self._cancel_timers()
            self._state = LivenessState.CONNECTING
        else:
            self._cancel_timers()
            self._state = LivenessState.DISCONNECTED

    def _probe(self) -> None:
        self._probe_handle = None
        if not self.channel.is_connected:
            return

        loop = asyncio.get_running_loop()
        send = loop.create_task(self.channel.send(self.sentinel))
        self._sends.add(send)
        send.add_done_callback(self._sends.discard)
        if self._timeout_handle:
            self._timeout_handle.cancel()
        self._timeout_handle = loop.call_later(self.timeout, self._on_timeout)

    def _on_timeout(self) -> None:
        self._timeout_handle = None
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return

        self.reconnects += 1
        self._state = LivenessState.DISCONNECTED
        logger.warning(
            f"No heartbeat echo within {self.timeout}s, reconnecting {self.channel.config.url}"
        )
        self._cancel_timers()
        self._reconnect_task = asyncio.get_running_loop().create_task(self.channel.reconnect())

    def _cancel_timers(self) -> None:
        for handle in (self._timeout_handle, self._probe_handle):
            if handle:
                handle.cancel()
        self._timeout_handle = None
        self._probe_handle = None
