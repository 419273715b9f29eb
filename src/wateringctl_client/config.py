"""Client configuration.

Defaults match the device firmware. Every field can be overridden from
the environment (``WATERINGCTL_<FIELD>``), e.g.::

    WATERINGCTL_BASE_URL=http://10.0.0.12
    WATERINGCTL_METADATA_TIMEOUT=10
    WATERINGCTL_UNTAR_TIMEOUT=none
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

from .fs.client import FsClientConfig
from .transport import ChannelConfig

ENV_PREFIX = "WATERINGCTL_"


@dataclass
class ClientConfig:
    """Configuration for a DeviceClient."""

    base_url: str = "http://192.168.4.1"
    fs_path: str = "/api/fs"
    events_path: str = "/wse"
    http_timeout: float = 5.0

    # Channels
    connect_timeout: float = 1.5
    reconnect_delay: float = 1.5
    reconnect_backoff: float = 1.0
    max_reconnect_delay: float = 30.0

    # Filesystem operations
    metadata_timeout: float = 5.0
    payload_timeout: float = 20.0
    untar_timeout: float | None = None
    slice_size: int = 1024
    strict_single_operation: bool = True

    # Heartbeat on the event socket
    heartbeat_timeout: float = 1.5
    heartbeat_interval: float = 1.5

    # Busy indicator
    busy_debounce: float = 0.05

    @property
    def ws_base_url(self) -> str:
        """Base URL with http(s) replaced by ws(s)."""
        return self.base_url.replace("https://", "wss://").replace("http://", "ws://").rstrip("/")

    @property
    def fs_url(self) -> str:
        return f"{self.ws_base_url}{self.fs_path}"

    @property
    def events_url(self) -> str:
        return f"{self.ws_base_url}{self.events_path}"

    def channel_config(self, url: str) -> ChannelConfig:
        return ChannelConfig(
            url=url,
            open_timeout=self.connect_timeout,
            reconnect_delay=self.reconnect_delay,
            reconnect_backoff=self.reconnect_backoff,
            max_reconnect_delay=self.max_reconnect_delay,
        )

    def fs_client_config(self) -> FsClientConfig:
        return FsClientConfig(
            metadata_timeout=self.metadata_timeout,
            payload_timeout=self.payload_timeout,
            untar_timeout=self.untar_timeout,
            slice_size=self.slice_size,
            strict_single_operation=self.strict_single_operation,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientConfig:
        """Build a config from WATERINGCTL_* variables.

        Explicit keyword overrides win over the environment; None
        overrides are ignored.
        """
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is not None:
                values[f.name] = _convert(f.name, raw, f.default)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _convert(name: str, raw: str, default: Any) -> Any:
    """Convert an environment string to the type of the field's default."""
    if raw.strip().lower() in ("none", ""):
        if default is None:
            return None
        raise ValueError(f"{ENV_PREFIX}{name.upper()} must not be empty")
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float) or default is None:
        return float(raw)
    return raw
