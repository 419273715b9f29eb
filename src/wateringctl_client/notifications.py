"""User-facing error notifications.

Every failed operation is reported exactly once at the client boundary:
the error code is resolved to a readable message, published as a
transient notification, and the original error is re-raised so the
caller can still apply its own recovery.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

HEADLINE_KEY = "server_errors.headline"
DEFAULT_KEY = "server_errors.default"

DEFAULT_MESSAGES: dict[str, str] = {
    HEADLINE_KEY: "Device error",
    DEFAULT_KEY: "The device could not complete the request.",
    "server_errors.WSFS_NON_BINARY_DATA": "The device only accepts binary requests.",
    "server_errors.WSFS_EMPTY_REQUEST": "The request was empty.",
    "server_errors.WSFS_COMMAND_UNKNOWN": "The device does not know this command.",
    "server_errors.WSFS_PARAM_MISSING": "The request is missing a parameter.",
    "server_errors.WSFS_TARGET_NOT_EXISTING": "The file or directory does not exist.",
    "server_errors.WSFS_NOT_A_DIR": "The target is not a directory.",
    "server_errors.WSFS_IS_A_DIR": "The target is a directory.",
    "server_errors.WSFS_DIR_EXISTS": "A directory with this name already exists.",
    "server_errors.WSFS_FILE_EXISTS": "A file with this name already exists.",
    "server_errors.WSFS_COULD_NOT_DELETE_FILE": "The file could not be deleted.",
    "server_errors.WSFS_COULD_NOT_DELETE_DIR": "The directory could not be deleted.",
    "server_errors.WSFS_COULD_NOT_CREATE_FILE": "The file could not be created.",
    "server_errors.WSFS_COULD_NOT_CREATE_DIR": "The directory could not be created.",
    "server_errors.BODY_MALFORMED": "The device rejected the request data.",
    "server_errors.VALVE_ALIAS_DUP": "Another valve already uses this name.",
    "server_errors.VALVE_ALREADY_ACTIVE": "The valve is already on.",
    "server_errors.VALVE_NOT_ACTIVE": "The valve is not on.",
    "server_errors.VALVE_TIMER_IN_CONTROL": "A timer controls this valve, clear the timer first.",
    "server_errors.VALVE_TIMER_NOT_ACTIVE": "The valve timer cannot be changed right now.",
    "server_errors.VALVE_TIMER_ZERO": "The timer duration cannot be zero.",
    "server_errors.INDEX_EMPTY": "This interval is already empty.",
    "server_errors.timeout": "The device did not answer in time.",
    "server_errors.busy": "Another operation is still running.",
    "server_errors.cancelled": "The operation was cancelled.",
}


class Notification(BaseModel):
    """A transient notification for the UI."""

    headline: str
    text: str
    icon: str = "warning.svg"
    color: Literal["success", "warning"] = "warning"
    timeout: int | None = 5000  # milliseconds, None = sticky
    buttons: list[str] = Field(default_factory=list)


# Type for notification sinks
NotificationSink = Callable[[Notification], None]


class MessageCatalog:
    """Message lookup by key with a default fallback."""

    def __init__(self, messages: Mapping[str, str] | None = None):
        self._messages = dict(DEFAULT_MESSAGES)
        if messages:
            self._messages.update(messages)

    def get(self, key: str) -> str | None:
        return self._messages.get(key)

    def server_error(self, code: str) -> str:
        """Message for an error code, the default message if unknown."""
        return self._messages.get(f"server_errors.{code}") or self._messages[DEFAULT_KEY]

    @property
    def headline(self) -> str:
        return self._messages[HEADLINE_KEY]


def log_sink(notification: Notification) -> None:
    """Fallback sink: write notifications to the log."""
    logger.warning(f"{notification.headline}: {notification.text}")


class ErrorInterceptor:
    """Maps error codes to notifications and publishes them."""

    def __init__(
        self,
        catalog: MessageCatalog | None = None,
        sink: NotificationSink | None = None,
    ):
        self.catalog = catalog or MessageCatalog()
        self.sink = sink or log_sink

    def report(self, code: str | None) -> Notification:
        """Publish the notification for an error code."""
        notification = Notification(
            headline=self.catalog.headline,
            text=self.catalog.server_error(code or "default"),
        )
        try:
            self.sink(notification)
        except Exception:
            logger.exception("Notification sink failed")
        return notification
