"""Push events from the device's event socket.

The device broadcasts a frame whenever a valve or the schedule changes:

    <EVENT_TYPE>;<arg0>;<arg1>;...

Events are uncorrelated; the leading arguments identify the entity
(a valve id, a weekday, or a weekday plus interval index).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from ..transport import Frame
from .status import frame_text


class EventType(str, Enum):
    """All event types the device broadcasts."""

    # Scheduler edges <interval_index>
    INTERVAL_SCHED_ON = "WSE_INTERVAL_SCHED_ON"
    INTERVAL_SCHED_OFF = "WSE_INTERVAL_SCHED_OFF"

    # Valves <valve_id>[;<value>]
    VALVE_ON = "WSE_VALVE_ON"
    VALVE_OFF = "WSE_VALVE_OFF"
    VALVE_RENAME = "WSE_VALVE_RENAME"  # <valve_id>;<alias>
    VALVE_DISABLE_ON = "WSE_VALVE_DISABLE_ON"
    VALVE_DISABLE_OFF = "WSE_VALVE_DISABLE_OFF"
    VALVE_TIMER_UPDATED = "WSE_VALVE_TIMER_UPDATED"  # <valve_id>;<timer>

    # Days <day>
    DAY_DISABLE_ON = "WSE_DAY_DISABLE_ON"
    DAY_DISABLE_OFF = "WSE_DAY_DISABLE_OFF"

    # Intervals <day>;<index>[;<value>]
    INTERVAL_DISABLE_ON = "WSE_INTERVAL_DISABLE_ON"
    INTERVAL_DISABLE_OFF = "WSE_INTERVAL_DISABLE_OFF"
    INTERVAL_START_CHANGE = "WSE_INTERVAL_START_CHANGE"
    INTERVAL_END_CHANGE = "WSE_INTERVAL_END_CHANGE"
    INTERVAL_IDENTIFIER_CHANGE = "WSE_INTERVAL_IDENTIFIER_CHANGE"
    INTERVAL_DELETED = "WSE_INTERVAL_DELETED"


class DomainEvent(BaseModel):
    """A decoded push event.

    ``type`` keeps the raw wire name so that event types this client
    does not know yet are still delivered to subscribers.
    """

    type: str
    args: list[str] = Field(default_factory=list)

    @property
    def kind(self) -> EventType | None:
        """The known event type, None for unknown types."""
        try:
            return EventType(self.type)
        except ValueError:
            return None

    def arg(self, index: int, default: str | None = None) -> str | None:
        """Get a positional argument with optional default."""
        if index < len(self.args):
            return self.args[index]
        return default

    @classmethod
    def decode(cls, frame: Frame) -> DomainEvent:
        """Parse ``TYPE;arg0;arg1;...``.

        A frame without a delimiter is an event without arguments.
        """
        type_, sep, rest = frame_text(frame).partition(";")
        return cls(type=type_, args=rest.split(";") if sep else [])

    def encode(self) -> str:
        """Serialize to the wire format (used by test fakes and tooling)."""
        return ";".join([self.type, *self.args])
