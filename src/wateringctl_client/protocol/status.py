"""Inbound frames on the filesystem socket.

The device answers with a status name (``WSFS_*``), a JSON listing, a
``WSFS_FILE_FOUND;<size>`` download header followed by raw chunks, or a
``PROGRESS;<n>`` frame that may arrive at any time.
"""

from __future__ import annotations

import logging
from enum import Enum

from ..transport import Frame

logger = logging.getLogger(__name__)

PROGRESS_PREFIX = "PROGRESS;"
_PROGRESS_PREFIX_BYTES = PROGRESS_PREFIX.encode("ascii")


class StatusCode(str, Enum):
    """All status names the device sends, as plain binary frames."""

    # Request errors
    NON_BINARY_DATA = "WSFS_NON_BINARY_DATA"
    EMPTY_REQUEST = "WSFS_EMPTY_REQUEST"
    UNKNOWN_COMMAND = "WSFS_COMMAND_UNKNOWN"
    MISSING_PARAMETER = "WSFS_PARAM_MISSING"

    # Target errors
    TARGET_NOT_FOUND = "WSFS_TARGET_NOT_EXISTING"
    NOT_A_DIRECTORY = "WSFS_NOT_A_DIR"
    IS_A_DIRECTORY = "WSFS_IS_A_DIR"
    DIRECTORY_EXISTS = "WSFS_DIR_EXISTS"
    FILE_EXISTS = "WSFS_FILE_EXISTS"

    # Operation failures
    DELETE_FILE_FAILED = "WSFS_COULD_NOT_DELETE_FILE"
    DELETE_DIRECTORY_FAILED = "WSFS_COULD_NOT_DELETE_DIR"
    CREATE_FILE_FAILED = "WSFS_COULD_NOT_CREATE_FILE"
    CREATE_DIRECTORY_FAILED = "WSFS_COULD_NOT_CREATE_DIR"

    # Success
    DELETED = "WSFS_DELETED"
    DIRECTORY_CREATED = "WSFS_DIR_CREATED"
    FILE_CREATED = "WSFS_FILE_CREATED"
    FILE_APPENDED = "WSFS_FILE_APPENDED"
    FILE_FOUND = "WSFS_FILE_FOUND"
    UPDATED = "WSFS_UPDATED"
    UNTARRED = "WSFS_UNTARRED"

    @classmethod
    def lookup(cls, status: str) -> StatusCode | None:
        """Resolve a wire string, None if the device sent something unknown."""
        try:
            return cls(status)
        except ValueError:
            return None


def frame_text(frame: Frame) -> str:
    """Decode a status-like frame to text.

    The device sends its status strings in binary frames, so both
    frame kinds are accepted.
    """
    if isinstance(frame, bytes):
        frame = frame.decode("ascii", errors="replace")
    return frame.rstrip("\x00")


def is_progress_frame(frame: Frame) -> bool:
    """Check for the reserved PROGRESS prefix."""
    if isinstance(frame, bytes):
        return frame.startswith(_PROGRESS_PREFIX_BYTES)
    return frame.startswith(PROGRESS_PREFIX)


def parse_progress(frame: Frame) -> int | None:
    """Extract the percentage of a progress frame, clamped to 0..100.

    Returns:
        The percentage, or None if the value is not a number
    """
    value = frame_text(frame)[len(PROGRESS_PREFIX) :].strip()
    try:
        percent = int(value)
    except ValueError:
        logger.warning(f"Ignoring malformed progress frame: {value[:20]!r}")
        return None
    return max(0, min(100, percent))


def parse_header(frame: Frame) -> tuple[str, int | None]:
    """Split a download header ``WSFS_FILE_FOUND;<size>``.

    Returns:
        (status, size) where size is None if absent or not a number
    """
    status, _, size = frame_text(frame).partition(";")
    try:
        return status, int(size)
    except ValueError:
        return status, None
