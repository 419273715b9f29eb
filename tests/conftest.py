"""Pytest configuration and shared fixtures."""

import json

import pytest

from wateringctl_client.transport import Frame


class FakeDevice:
    """In-memory stand-in for the device's filesystem socket.

    Used as a MockChannel responder: every outbound frame is answered
    the way the firmware answers it. Downloads are split into
    ``chunk_size`` byte frames; untar emits PROGRESS frames first.
    """

    def __init__(self, files: dict[str, bytes] | None = None, chunk_size: int = 4):
        self.files: dict[str, bytes] = dict(files or {})
        self.dirs: set[str] = {"/"}
        for path in self.files:
            self.dirs.update(self._parents(path))
        self.chunk_size = chunk_size
        self.commands: list[str] = []
        self.chunks: list[bytes] = []
        self.silent = False
        self._upload_path: str | None = None
        self._upload_remaining = 0

    @staticmethod
    def _parent(path: str) -> str:
        return path.rstrip("/").rsplit("/", 1)[0] or "/"

    def _parents(self, path: str) -> set[str]:
        parents = set()
        while path != "/":
            path = self._parent(path)
            parents.add(path)
        return parents

    def __call__(self, frame: Frame) -> list[Frame]:
        if self.silent:
            return []

        if self._upload_path is not None:
            data = frame if isinstance(frame, bytes) else frame.encode()
            self.chunks.append(data)
            self.files[self._upload_path] += data
            self._upload_remaining -= len(data)
            if self._upload_remaining <= 0:
                self._upload_path = None
            return [b"WSFS_FILE_APPENDED"]

        text = frame.decode() if isinstance(frame, bytes) else frame
        self.commands.append(text)
        verb, path, *rest = text.split(";")

        if verb == "FETCH":
            return self._fetch(path, rest[0] == "true")
        if verb in ("WRITE", "OVERWRITE") and rest[0] == "true":
            if path in self.dirs:
                return [b"WSFS_DIR_EXISTS"]
            self.dirs.add(path)
            return [b"WSFS_DIR_CREATED"]
        if verb in ("WRITE", "OVERWRITE"):
            if path in self.files and verb == "WRITE":
                return [b"WSFS_FILE_EXISTS"]
            self.files[path] = b""
            size = int(rest[1])
            if size > 0:
                self._upload_path = path
                self._upload_remaining = size
            return [b"WSFS_FILE_CREATED"]
        if verb == "DELETE":
            return self._delete(path, rest[0] == "true")
        if verb == "UNTAR":
            if path not in self.files:
                return [b"WSFS_TARGET_NOT_EXISTING"]
            return ["PROGRESS;10", "PROGRESS;50", "PROGRESS;100", b"WSFS_UNTARRED"]
        if verb == "UPDATE":
            return [b"WSFS_UPDATED"] if path in self.files else [b"WSFS_TARGET_NOT_EXISTING"]
        return [b"WSFS_COMMAND_UNKNOWN"]

    def _fetch(self, path: str, directory: bool) -> list[Frame]:
        if directory:
            if path in self.files:
                return [b"WSFS_NOT_A_DIR"]
            if path not in self.dirs:
                return [b"WSFS_TARGET_NOT_EXISTING"]
            items = [
                {"name": d.rsplit("/", 1)[1], "size": 0, "isDirectory": True}
                for d in sorted(self.dirs)
                if d != path and self._parent(d) == path
            ]
            items += [
                {"name": f.rsplit("/", 1)[1], "size": len(data), "isDirectory": False}
                for f, data in sorted(self.files.items())
                if self._parent(f) == path
            ]
            return [json.dumps({"items": items})]

        if path in self.dirs:
            return [b"WSFS_IS_A_DIR"]
        if path not in self.files:
            return [b"WSFS_TARGET_NOT_EXISTING"]
        data = self.files[path]
        chunks = [data[i : i + self.chunk_size] for i in range(0, len(data), self.chunk_size)]
        return [f"WSFS_FILE_FOUND;{len(data)}".encode(), *chunks]

    def _delete(self, path: str, directory: bool) -> list[Frame]:
        if directory:
            if path not in self.dirs:
                return [b"WSFS_TARGET_NOT_EXISTING"]
            self.dirs = {d for d in self.dirs if d != path and not d.startswith(path + "/")}
            self.files = {f: v for f, v in self.files.items() if not f.startswith(path + "/")}
            return [b"WSFS_DELETED"]
        if path not in self.files:
            return [b"WSFS_TARGET_NOT_EXISTING"]
        del self.files[path]
        return [b"WSFS_DELETED"]


@pytest.fixture
def fake_device():
    """A device with a small web root and a firmware image."""
    return FakeDevice(
        files={
            "/www/index.html": b"<html>hello</html>",
            "/www/app.js": b"console.log(1)",
            "/fw.bin": b"\x00\x01\x02\x03",
            "/www.tar": b"tarball",
        }
    )


@pytest.fixture
def make_device():
    """Factory for devices with custom files or chunk sizes."""
    return FakeDevice
