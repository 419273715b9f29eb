"""Command definitions for the filesystem socket.

Commands are requests from the client that expect exactly one
response sequence. They carry no correlation ID: the response that
arrives next belongs to the command that was sent last.

Wire format (ASCII, ``;``-delimited, sent as a binary frame):
    FETCH;<path>;<isDirectory>
    WRITE;<path>;false;<size>      (OVERWRITE for replacing files)
    WRITE;<path>;true              (create directory)
    DELETE;<path>;<isDirectory>
    UNTAR;<path>
    UPDATE;<path>
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, field_validator

DELIMITER = ";"


class Verb(str, Enum):
    """All supported command verbs."""

    FETCH = "FETCH"
    WRITE = "WRITE"
    OVERWRITE = "OVERWRITE"
    DELETE = "DELETE"
    UNTAR = "UNTAR"
    UPDATE = "UPDATE"


class Command(BaseModel):
    """A command from client to device.

    Example:
        Command.fetch("/www", directory=True).encode() == b"FETCH;/www;true"

    Fields left as None are not encoded.
    """

    verb: Verb
    path: str
    directory: bool | None = None
    size: int | None = None

    @field_validator("path")
    @classmethod
    def _path_has_no_delimiter(cls, value: str) -> str:
        if DELIMITER in value:
            raise ValueError(f"Path must not contain '{DELIMITER}': {value}")
        if not value.isascii():
            raise ValueError(f"Path must be ASCII: {value}")
        return value

    @field_validator("size")
    @classmethod
    def _size_not_negative(cls, value: int | None) -> int | None:
        if value is not None and value < 0:
            raise ValueError(f"Size must not be negative: {value}")
        return value

    def encode(self) -> bytes:
        """Serialize to the ASCII wire format."""
        parts = [self.verb.value, self.path]
        if self.directory is not None:
            parts.append("true" if self.directory else "false")
        if self.size is not None:
            parts.append(str(self.size))
        return DELIMITER.join(parts).encode("ascii")

    def __str__(self) -> str:
        return self.encode().decode("ascii")

    # Convenience factories
    @classmethod
    def fetch(cls, path: str, directory: bool) -> Command:
        """List a directory or download a file."""
        return cls(verb=Verb.FETCH, path=path, directory=directory)

    @classmethod
    def write(cls, path: str, size: int, overwrite: bool = False) -> Command:
        """Announce a file upload of ``size`` bytes."""
        verb = Verb.OVERWRITE if overwrite else Verb.WRITE
        return cls(verb=verb, path=path, directory=False, size=size)

    @classmethod
    def mkdir(cls, path: str) -> Command:
        """Create a directory."""
        return cls(verb=Verb.WRITE, path=path, directory=True)

    @classmethod
    def delete(cls, path: str, directory: bool) -> Command:
        """Delete a file, or a directory recursively."""
        return cls(verb=Verb.DELETE, path=path, directory=directory)

    @classmethod
    def untar(cls, path: str) -> Command:
        """Unpack a tarball in place."""
        return cls(verb=Verb.UNTAR, path=path)

    @classmethod
    def update(cls, path: str) -> Command:
        """Flash a firmware image."""
        return cls(verb=Verb.UPDATE, path=path)


def join_path(path: str, name: str) -> str:
    """Join a directory path and an entry name with a single slash."""
    return f"{path.rstrip('/')}/{name.lstrip('/')}"
