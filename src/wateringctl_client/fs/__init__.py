"""Filesystem client for the device's command socket."""

from .client import FsClient, FsClientConfig
from .operations import (
    SLICE_SIZE,
    DownloadOperation,
    ListOperation,
    PendingOperation,
    StatusOperation,
    UploadOperation,
)
from .types import FsEntry, FsListing

__all__ = [
    "FsClient",
    "FsClientConfig",
    "FsEntry",
    "FsListing",
    "SLICE_SIZE",
    "PendingOperation",
    "StatusOperation",
    "ListOperation",
    "DownloadOperation",
    "UploadOperation",
]
