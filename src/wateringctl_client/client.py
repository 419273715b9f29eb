"""Device client facade.

Wires the pieces together the way the device UIs use them:
- fs: filesystem commands on the /api/fs channel
- events: push events and heartbeat on the /wse channel
- valves / schedule: entity mirrors kept current by the events
- tracker: busy/progress state shared by all operations

The two channels are independent; the event side runs regardless of
filesystem activity.
"""

from __future__ import annotations

from typing import Any

from .config import ClientConfig
from .fanout import EventFanoutClient
from .fs import FsClient
from .http import DeviceHttpApi
from .liveness import LivenessMonitor
from .mirror import MirrorReconciler, ScheduleMirror, ValveMirror
from .notifications import ErrorInterceptor, NotificationSink
from .progress import ProgressTaskTracker
from .transport import BaseTransportChannel, WebSocketChannel


class DeviceClient:
    """Everything needed to talk to one device.

    Channels are created from the config unless injected (tests pass
    MockChannels).
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        fs_channel: BaseTransportChannel | None = None,
        events_channel: BaseTransportChannel | None = None,
        http: DeviceHttpApi | None = None,
        sink: NotificationSink | None = None,
    ):
        self.config = config or ClientConfig()
        self.interceptor = ErrorInterceptor(sink=sink)
        self.tracker = ProgressTaskTracker(debounce=self.config.busy_debounce)

        fs_channel = fs_channel or WebSocketChannel(self.config.channel_config(self.config.fs_url))
        events_channel = events_channel or WebSocketChannel(
            self.config.channel_config(self.config.events_url)
        )

        self.fs = FsClient(
            fs_channel,
            config=self.config.fs_client_config(),
            tracker=self.tracker,
            interceptor=self.interceptor,
        )
        self.monitor = LivenessMonitor(
            events_channel,
            timeout=self.config.heartbeat_timeout,
            interval=self.config.heartbeat_interval,
        )
        self.events = EventFanoutClient(events_channel, monitor=self.monitor)

        self.http = http or DeviceHttpApi(
            self.config.base_url,
            timeout=self.config.http_timeout,
            interceptor=self.interceptor,
        )
        self.valves = ValveMirror(self.http.get_valves)
        self.schedule = ScheduleMirror(self.http.get_day)
        self.reconciler = MirrorReconciler(self.valves, self.schedule)

    async def start_fs(self) -> None:
        """Connect the filesystem channel only."""
        await self.fs.start()

    async def start_events(self) -> None:
        """Connect the event channel and keep the mirrors current."""
        self.reconciler.attach(self.events.bus)
        await self.events.start()

    async def start(self) -> None:
        await self.start_fs()
        await self.start_events()

    async def close(self) -> None:
        self.reconciler.detach()
        await self.events.stop()
        await self.fs.close()
        await self.http.aclose()

    async def __aenter__(self) -> DeviceClient:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def create_client(base_url: str | None = None, **overrides: Any) -> DeviceClient:
    """Create a DeviceClient from the environment plus overrides.

    Args:
        base_url: Device URL, e.g. http://192.168.4.1
        **overrides: Any ClientConfig field
    """
    return DeviceClient(ClientConfig.from_env(base_url=base_url, **overrides))
