"""Transport layer.

Message-based channels to the device:
- WebSocket - the device's socket endpoints (/api/fs, /wse)
- Mock - in-memory, for tests

Channels reconnect on their own; callers only see best-effort send
and a single inbound hook.
"""

from .channel import (
    BaseTransportChannel,
    ChannelConfig,
    ChannelState,
    Frame,
    MessageHook,
    MockChannel,
    WebSocketChannel,
    create_mock_channel,
    create_websocket_channel,
)

__all__ = [
    "BaseTransportChannel",
    "ChannelConfig",
    "ChannelState",
    "Frame",
    "MessageHook",
    "MockChannel",
    "WebSocketChannel",
    "create_mock_channel",
    "create_websocket_channel",
]
