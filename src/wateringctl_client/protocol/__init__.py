"""Device protocol layer.

Two sockets, two protocols:
- Filesystem socket: delimited ASCII commands, one response sequence
  per command, no correlation IDs
- Event socket: server-initiated push events plus a heartbeat echo

Key concepts:
- Command: one outbound request frame
- StatusCode: the device's response strings
- DomainEvent: one decoded push frame
"""

from .commands import Command, Verb, join_path
from .events import DomainEvent, EventType
from .status import (
    PROGRESS_PREFIX,
    StatusCode,
    frame_text,
    is_progress_frame,
    parse_header,
    parse_progress,
)

__all__ = [
    "Command",
    "Verb",
    "join_path",
    "DomainEvent",
    "EventType",
    "PROGRESS_PREFIX",
    "StatusCode",
    "frame_text",
    "is_progress_frame",
    "parse_header",
    "parse_progress",
]
