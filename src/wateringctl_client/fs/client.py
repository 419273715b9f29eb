"""Filesystem client for the device's /api/fs socket.

Every operation follows the same exchange:
1. claim the single pending-operation slot
2. send one command frame
3. feed inbound frames to the pending operation until it settles
4. release the slot

There is no correlation ID on the wire, so only one operation may be
in flight per channel. By default a second call while one is pending
raises OperationInProgressError; with ``strict_single_operation=False``
the new call takes over the slot and the earlier call never settles.

``PROGRESS;<n>`` frames are diverted to the progress tracker before
they reach the pending operation and can never settle it.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..errors import (
    FsClientError,
    OperationCancelledError,
    OperationInProgressError,
    OperationTimeoutError,
)
from ..notifications import ErrorInterceptor
from ..progress import ProgressTaskTracker
from ..protocol.commands import Command, join_path
from ..protocol.status import StatusCode, is_progress_frame, parse_progress
from ..transport import BaseTransportChannel, Frame
from .operations import (
    SLICE_SIZE,
    DownloadOperation,
    ListOperation,
    PendingOperation,
    StatusOperation,
    UploadOperation,
)
from .types import FsEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FsClientConfig:
    """Timeouts and limits for filesystem operations."""

    # Fixed guard for operations without payload (list, mkdir, delete, update)
    metadata_timeout: float = 5.0

    # Inactivity guard for transfers, re-armed by every inbound frame
    payload_timeout: float = 20.0

    # Untar relies on progress frames; None disables its guard
    untar_timeout: float | None = None

    slice_size: int = SLICE_SIZE
    strict_single_operation: bool = True


def intercepted(
    method: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Report FsClientErrors through the client's interceptor, then re-raise."""

    @functools.wraps(method)
    async def wrapper(self: FsClient, *args: Any, **kwargs: Any) -> T:
        try:
            return await method(self, *args, **kwargs)
        except FsClientError as e:
            if self.interceptor is not None:
                self.interceptor.report(e.code)
            raise

    return wrapper


class FsClient:
    """Command client for the device filesystem.

    Usage:
        client = FsClient(create_websocket_channel("ws://device/api/fs"))
        await client.start()
        entries = await client.list("/")
        data = await client.read_file("/www/index.html")
    """

    def __init__(
        self,
        channel: BaseTransportChannel,
        config: FsClientConfig | None = None,
        tracker: ProgressTaskTracker | None = None,
        interceptor: ErrorInterceptor | None = None,
    ):
        self.channel = channel
        self.config = config or FsClientConfig()
        self.tracker = tracker or ProgressTaskTracker()
        self.interceptor = interceptor
        self._pending: PendingOperation | None = None

    @property
    def pending(self) -> PendingOperation | None:
        """The operation currently owning the response slot."""
        return self._pending

    async def start(self) -> None:
        """Take the channel's inbound hook and connect."""
        self.channel.on_message = self._on_frame
        await self.channel.connect()

    async def close(self) -> None:
        """Dispose the channel. A pending operation is left unsettled."""
        await self.channel.dispose()

    # -- Operations ---------------------------------------------------------

    @intercepted
    async def list(self, path: str) -> list[FsEntry]:
        """List a directory."""
        command = Command.fetch(path, directory=True)
        op = ListOperation(command, timeout=self.config.metadata_timeout)
        return await self._execute(op)

    @intercepted
    async def read_file(self, path: str) -> bytes:
        """Download a file's full contents."""
        command = Command.fetch(path, directory=False)
        op = DownloadOperation(
            command,
            timeout=self.config.payload_timeout,
            rearm_on_frame=True,
            on_progress=self.tracker.set_progress,
        )
        return await self._execute(op)

    @intercepted
    async def write_file(
        self,
        path: str,
        data: bytes,
        overwrite: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> None:
        """Upload a file in slices.

        Args:
            path: Target path on the device
            data: File contents
            overwrite: Replace an existing file instead of failing with WSFS_FILE_EXISTS
            cancel: Set to stop before the next slice is sent
        """
        command = Command.write(path, len(data), overwrite=overwrite)
        op = UploadOperation(
            command,
            data,
            slice_size=self.config.slice_size,
            cancel=cancel,
            timeout=self.config.payload_timeout,
            rearm_on_frame=True,
            on_progress=self.tracker.set_progress,
        )
        self.tracker.set_progress(0)
        await self._execute(op)

    @intercepted
    async def create_directory(self, path: str, name: str) -> None:
        """Create directory ``name`` inside ``path``."""
        command = Command.mkdir(join_path(path, name))
        await self._execute_status(command, StatusCode.DIRECTORY_CREATED)

    @intercepted
    async def delete_file(self, path: str) -> None:
        """Delete a file."""
        await self._execute_status(Command.delete(path, directory=False), StatusCode.DELETED)

    @intercepted
    async def delete_directory(self, path: str) -> None:
        """Delete a directory recursively."""
        await self._execute_status(Command.delete(path, directory=True), StatusCode.DELETED)

    @intercepted
    async def untar(self, path: str) -> None:
        """Unpack a tarball on the device; progress arrives as PROGRESS frames."""
        self.tracker.set_progress(None)
        op = StatusOperation(
            Command.untar(path),
            StatusCode.UNTARRED,
            timeout=self.config.untar_timeout,
            rearm_on_frame=True,
        )
        await self._execute(op)

    @intercepted
    async def update_firmware(self, path: str) -> None:
        """Flash the firmware image at ``path``."""
        await self._execute_status(Command.update(path), StatusCode.UPDATED)

    def abort_pending(self) -> bool:
        """Fail the pending operation locally and free the slot.

        The device is not told; a late response is dropped.

        Returns:
            True if an operation was pending
        """
        op = self._pending
        if op is None:
            return False
        logger.info(f"Aborting {op!r}")
        op.fail(OperationCancelledError(f"{op.command} aborted", op.command))
        self._release(op)
        return True

    # -- Slot handling ------------------------------------------------------

    async def _execute_status(self, command: Command, expected: StatusCode) -> None:
        op = StatusOperation(command, expected, timeout=self.config.metadata_timeout)
        await self._execute(op)

    async def _execute(self, op: PendingOperation) -> Any:
        self._claim(op)
        op.task_id = self.tracker.start_task()
        op.arm(self._expire)

        if not await self.channel.send(op.command.encode()):
            logger.warning(f"{op.command} not sent, channel disconnected")

        try:
            return await op.future
        finally:
            self._release(op)

    def _claim(self, op: PendingOperation) -> None:
        previous = self._pending
        if previous is not None and not previous.done:
            if self.config.strict_single_operation:
                raise OperationInProgressError(
                    f"{previous.command} still pending, cannot issue {op.command}",
                    op.command,
                )
            # Orphan the previous operation: it keeps waiting forever
            logger.warning(f"{op.command} replaces pending {previous.command}, which is orphaned")
            previous.disarm()
            self.tracker.finish_task(previous.task_id)
        self._pending = op

    def _release(self, op: PendingOperation) -> None:
        op.disarm()
        self.tracker.finish_task(op.task_id)
        if self._pending is op:
            self._pending = None

    def _expire(self, op: PendingOperation) -> None:
        if self._pending is not op or op.done:
            return
        logger.warning(f"{op.command} timed out after {op.timeout}s")
        op.fail(OperationTimeoutError(f"{op.command} timed out", op.command))
        self._release(op)

    async def _on_frame(self, frame: Frame) -> None:
        """Inbound hook: progress frames first, then the pending operation."""
        if is_progress_frame(frame):
            percent = parse_progress(frame)
            if percent is not None:
                self.tracker.set_progress(percent)
            op = self._pending
            if op is not None and op.rearm_on_frame and not op.done:
                op.arm(self._expire)
            return

        op = self._pending
        if op is None or op.done:
            logger.debug(f"Dropping frame with no pending operation ({len(frame)} bytes)")
            return

        if op.rearm_on_frame:
            op.arm(self._expire)

        try:
            reply = op.feed(frame)
        except Exception as e:
            op.fail(e)
            return

        if reply is not None and not op.done:
            await self.channel.send(reply)
