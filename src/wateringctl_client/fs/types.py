"""Filesystem type definitions."""

from pydantic import BaseModel, ConfigDict, Field


class FsEntry(BaseModel):
    """A directory entry as listed by the device."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    size: int = 0
    is_directory: bool = Field(default=False, alias="isDirectory")


class FsListing(BaseModel):
    """Response to a directory FETCH."""

    items: list[FsEntry]
