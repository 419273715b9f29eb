"""Errors raised to callers of the filesystem client.

Transport disconnects are not in here: channels reconnect silently and
callers only ever see the consequence (a timeout, or nothing).
"""

from __future__ import annotations

from .protocol.commands import Command
from .protocol.status import StatusCode


class FsClientError(Exception):
    """Base class for all filesystem client errors.

    ``code`` is the key used to look up a user-facing message.
    """

    code = "default"

    def __init__(self, message: str, command: Command | None = None):
        super().__init__(message)
        self.command = command


class ProtocolStatusError(FsClientError):
    """The device answered with something other than the expected success status."""

    def __init__(self, status: str, command: Command | None = None):
        super().__init__(f"{command or 'command'} failed: {status}", command)
        self.status = status

    @property
    def code(self) -> str:  # type: ignore[override]
        return self.status

    @property
    def status_code(self) -> StatusCode | None:
        """The known status, None if the device sent an unknown string."""
        return StatusCode.lookup(self.status)


class OperationTimeoutError(FsClientError, TimeoutError):
    """No terminal response arrived before the client-side guard expired."""

    code = "timeout"


class OperationInProgressError(FsClientError):
    """Another operation still owns the channel's response slot."""

    code = "busy"


class OperationCancelledError(FsClientError):
    """The operation was cancelled or aborted locally."""

    code = "cancelled"
