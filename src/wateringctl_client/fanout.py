"""Event client for the device's /wse socket.

Owns the event channel's inbound hook. Each frame is first offered to
the liveness monitor (heartbeat echoes stop there), everything else is
decoded into a DomainEvent and published on the bus.
"""

from __future__ import annotations

import logging

from .bus import EventBus
from .liveness import LivenessMonitor
from .protocol.events import DomainEvent
from .transport import BaseTransportChannel, Frame

logger = logging.getLogger(__name__)


class EventFanoutClient:
    """Republishes push frames as typed events.

    Usage:
        events = EventFanoutClient(create_websocket_channel("ws://device/wse"))
        events.bus.subscribe(EventType.VALVE_ON, on_valve_on)
        await events.start()
    """

    def __init__(
        self,
        channel: BaseTransportChannel,
        monitor: LivenessMonitor | None = None,
        bus: EventBus | None = None,
    ):
        self.channel = channel
        self.monitor = monitor if monitor is not None else LivenessMonitor(channel)
        self.bus = bus or EventBus()
        self.received = 0

    async def start(self) -> None:
        """Take the channel's inbound hook, start the heartbeat and connect."""
        self.channel.on_message = self._on_frame
        self.monitor.attach()
        await self.channel.connect()

    async def stop(self) -> None:
        """Stop the heartbeat and dispose the channel."""
        self.monitor.detach()
        await self.channel.dispose()

    async def _on_frame(self, frame: Frame) -> None:
        if self.monitor.consume(frame):
            return

        event = DomainEvent.decode(frame)
        if not event.type:
            logger.debug("Ignoring push frame without event type")
            return

        self.received += 1
        if event.kind is None:
            logger.info(f"Unknown event type {event.type}, publishing anyway")
        else:
            logger.debug(f"Event {event.type} {event.args}")
        await self.bus.publish(event)
