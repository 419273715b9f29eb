"""wateringctl client - protocol client for the watering controller.

Talks to the device over two WebSocket channels:
- /api/fs: filesystem commands with chunked transfers
- /wse: push events plus heartbeat

Usage:
    async with create_client("http://192.168.4.1") as device:
        entries = await device.fs.list("/")
        await device.valves.refresh()
"""

from .bus import EventBus
from .client import DeviceClient, create_client
from .config import ClientConfig
from .errors import (
    FsClientError,
    OperationCancelledError,
    OperationInProgressError,
    OperationTimeoutError,
    ProtocolStatusError,
)
from .fanout import EventFanoutClient
from .fs import FsClient, FsClientConfig, FsEntry
from .liveness import HEARTBEAT_SENTINEL, LivenessMonitor, LivenessState
from .mirror import MirrorReconciler, ScheduleMirror, ValveMirror
from .notifications import ErrorInterceptor, MessageCatalog, Notification
from .progress import ProgressTaskTracker
from .protocol import Command, DomainEvent, EventType, StatusCode, Verb
from .transport import ChannelConfig, ChannelState, MockChannel, WebSocketChannel
from .types import Interval, ScheduledDay, Valve

__version__ = "0.1.0"

__all__ = [
    # Facade
    "DeviceClient",
    "create_client",
    "ClientConfig",
    # Protocol clients
    "FsClient",
    "FsClientConfig",
    "FsEntry",
    "EventFanoutClient",
    "EventBus",
    "LivenessMonitor",
    "LivenessState",
    "HEARTBEAT_SENTINEL",
    "ProgressTaskTracker",
    # Mirrors
    "ValveMirror",
    "ScheduleMirror",
    "MirrorReconciler",
    "Valve",
    "Interval",
    "ScheduledDay",
    # Wire
    "Command",
    "Verb",
    "StatusCode",
    "DomainEvent",
    "EventType",
    # Transport
    "ChannelConfig",
    "ChannelState",
    "WebSocketChannel",
    "MockChannel",
    # Errors and notifications
    "FsClientError",
    "ProtocolStatusError",
    "OperationTimeoutError",
    "OperationInProgressError",
    "OperationCancelledError",
    "ErrorInterceptor",
    "MessageCatalog",
    "Notification",
]
