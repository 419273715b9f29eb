"""Pending operations of the filesystem client.

The filesystem socket has no correlation IDs, so the client keeps one
pending operation that receives every inbound frame until it settles.
Each variant below knows how to consume its own response sequence:

- StatusOperation: one status frame, compared against a success code
- ListOperation: one JSON frame (or an error status)
- DownloadOperation: ``WSFS_FILE_FOUND;<size>`` header, then raw chunks
- UploadOperation: ``WSFS_FILE_CREATED``, then one ``WSFS_FILE_APPENDED`` per slice

feed() returns the next frame to send, if the exchange needs one.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from ..errors import OperationCancelledError, ProtocolStatusError
from ..protocol.commands import Command
from ..protocol.status import StatusCode, frame_text, parse_header
from ..transport import Frame
from .types import FsEntry, FsListing

logger = logging.getLogger(__name__)

SLICE_SIZE = 1024

ProgressCallback = Callable[["int | None"], None]


class PendingOperation(ABC):
    """Base class: the command, its future and its timeout guard."""

    def __init__(
        self,
        command: Command,
        timeout: float | None = None,
        rearm_on_frame: bool = False,
        on_progress: ProgressCallback | None = None,
    ):
        self.command = command
        self.timeout = timeout
        self.rearm_on_frame = rearm_on_frame
        self.on_progress = on_progress
        self.task_id: int | None = None
        self.future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._guard: asyncio.TimerHandle | None = None

    @property
    def done(self) -> bool:
        return self.future.done()

    def resolve(self, value: Any = None) -> None:
        if not self.future.done():
            self.future.set_result(value)

    def fail(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)

    def arm(self, on_expire: Callable[[PendingOperation], None]) -> None:
        """(Re)start the timeout guard; no-op without a timeout."""
        self.disarm()
        if self.timeout is None:
            return
        loop = asyncio.get_running_loop()
        self._guard = loop.call_later(self.timeout, on_expire, self)

    def disarm(self) -> None:
        if self._guard:
            self._guard.cancel()
            self._guard = None

    def report(self, percent: int | None) -> None:
        if self.on_progress:
            self.on_progress(percent)

    @abstractmethod
    def feed(self, frame: Frame) -> Frame | None:
        """Consume one inbound frame.

        Returns:
            A frame to send next, or None
        """
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.command}>"


class StatusOperation(PendingOperation):
    """Single status response with a known success code."""

    def __init__(self, command: Command, expected: StatusCode, **kwargs: Any):
        super().__init__(command, **kwargs)
        self.expected = expected

    def feed(self, frame: Frame) -> Frame | None:
        status = frame_text(frame)
        if status == self.expected.value:
            self.resolve(None)
        else:
            self.fail(ProtocolStatusError(status, self.command))
        return None


class ListOperation(PendingOperation):
    """Directory listing, one JSON frame."""

    def feed(self, frame: Frame) -> Frame | None:
        text = frame_text(frame)
        if not text.lstrip().startswith("{"):
            self.fail(ProtocolStatusError(text, self.command))
            return None

        # Malformed payloads propagate to the caller as-is
        listing = FsListing.model_validate(json.loads(text))
        self.resolve(listing.items)
        return None


class DownloadOperation(PendingOperation):
    """File download: header, then chunks until the declared size is reached.

    Chunks carry no offset. Completion is decided by the accumulated
    length alone, so a missing chunk stalls the download and a
    duplicated one overshoots it.
    """

    def __init__(self, command: Command, **kwargs: Any):
        super().__init__(command, **kwargs)
        self.size: int | None = None
        self.buffer = bytearray()
        self._overflow_logged = False

    @property
    def received(self) -> int:
        return len(self.buffer)

    def feed(self, frame: Frame) -> Frame | None:
        if self.size is None:
            self._feed_header(frame)
            return None

        self.buffer.extend(frame if isinstance(frame, bytes) else frame.encode("utf-8"))
        if self.received == self.size:
            self.report(100)
            self.resolve(bytes(self.buffer))
        elif self.received < self.size:
            self.report(self.received * 100 // self.size)
        elif not self._overflow_logged:
            self._overflow_logged = True
            logger.warning(
                f"{self.command}: received {self.received} bytes, "
                f"more than the declared {self.size}"
            )
        return None

    def _feed_header(self, frame: Frame) -> None:
        status, size = parse_header(frame)
        if status != StatusCode.FILE_FOUND.value:
            self.fail(ProtocolStatusError(status, self.command))
            return
        if size is None:
            self.fail(ProtocolStatusError(frame_text(frame), self.command))
            return

        self.size = size
        self.report(0)
        if size == 0:
            self.resolve(b"")


class UploadOperation(PendingOperation):
    """Chunked upload, one slice per acknowledgment.

    Progress for slice ``i`` of ``n`` is ``(i + 1) * 100 // n``, reported
    when the slice is sent; the final 100 is reported on its
    acknowledgment. ``cancel`` is checked before each slice; a slice
    already sent cannot be taken back.
    """

    def __init__(
        self,
        command: Command,
        data: bytes,
        slice_size: int = SLICE_SIZE,
        cancel: asyncio.Event | None = None,
        **kwargs: Any,
    ):
        super().__init__(command, **kwargs)
        self.data = data
        self.slice_size = slice_size
        self.cancel = cancel
        self.total = -(-len(data) // slice_size)
        self.sent = 0

    def feed(self, frame: Frame) -> Frame | None:
        status = frame_text(frame)
        expected = StatusCode.FILE_CREATED if self.sent == 0 else StatusCode.FILE_APPENDED
        if status != expected.value:
            self.fail(ProtocolStatusError(status, self.command))
            return None

        if self.sent == self.total:
            self.report(100)
            self.resolve(None)
            return None

        if self.cancel is not None and self.cancel.is_set():
            self.fail(OperationCancelledError(f"{self.command} cancelled", self.command))
            return None

        start = self.sent * self.slice_size
        chunk = self.data[start : start + self.slice_size]
        self.sent += 1
        if self.sent < self.total:
            self.report(self.sent * 100 // self.total)
        return chunk
