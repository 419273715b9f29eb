"""Unit tests for the wire protocol: commands, status frames and push events."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from wateringctl_client.protocol import (
    Command,
    DomainEvent,
    EventType,
    StatusCode,
    Verb,
    frame_text,
    is_progress_frame,
    join_path,
    parse_header,
    parse_progress,
)

# =============================================================================
# Command Tests
# =============================================================================


class TestCommandEncoding:
    """Commands serialize to the delimited ASCII format."""

    def test_fetch_directory(self) -> None:
        """Listing a directory sends FETCH with isDirectory=true."""
        assert Command.fetch("/www", directory=True).encode() == b"FETCH;/www;true"

    def test_fetch_file(self) -> None:
        assert Command.fetch("/www/index.html", directory=False).encode() == (
            b"FETCH;/www/index.html;false"
        )

    def test_write_announces_size(self) -> None:
        """Uploads carry the total byte count."""
        assert Command.write("/a.txt", 2500).encode() == b"WRITE;/a.txt;false;2500"

    def test_overwrite_uses_own_verb(self) -> None:
        cmd = Command.write("/a.txt", 3, overwrite=True)

        assert cmd.verb == Verb.OVERWRITE
        assert cmd.encode() == b"OVERWRITE;/a.txt;false;3"

    def test_mkdir(self) -> None:
        assert Command.mkdir("/www/assets").encode() == b"WRITE;/www/assets;true"

    def test_delete(self) -> None:
        assert Command.delete("/a.txt", directory=False).encode() == b"DELETE;/a.txt;false"
        assert Command.delete("/www", directory=True).encode() == b"DELETE;/www;true"

    def test_untar_and_update_have_no_flags(self) -> None:
        assert Command.untar("/www.tar").encode() == b"UNTAR;/www.tar"
        assert Command.update("/fw.bin").encode() == b"UPDATE;/fw.bin"

    def test_str_is_wire_text(self) -> None:
        assert str(Command.untar("/www.tar")) == "UNTAR;/www.tar"


class TestCommandValidation:
    """Paths that cannot be framed are rejected before sending."""

    def test_path_with_delimiter_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Command.fetch("/a;b", directory=False)

    def test_non_ascii_path_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Command.fetch("/bär.txt", directory=False)

    def test_negative_size_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Command.write("/a.txt", -1)


class TestJoinPath:
    def test_single_slash(self) -> None:
        assert join_path("/www", "assets") == "/www/assets"
        assert join_path("/www/", "assets") == "/www/assets"
        assert join_path("/", "/assets") == "/assets"


# =============================================================================
# Status Frame Tests
# =============================================================================


class TestStatusFrames:
    """Status strings, progress frames and download headers."""

    def test_lookup_known_status(self) -> None:
        assert StatusCode.lookup("WSFS_TARGET_NOT_EXISTING") == StatusCode.TARGET_NOT_FOUND
        assert StatusCode.lookup("WSFS_FILE_APPENDED") == StatusCode.FILE_APPENDED

    def test_lookup_unknown_status(self) -> None:
        assert StatusCode.lookup("flux capacitor empty") is None

    def test_frame_text_accepts_bytes(self) -> None:
        """Binary frames are decoded, trailing NULs stripped."""
        assert frame_text(b"WSFS_DELETED\x00") == "WSFS_DELETED"
        assert frame_text("WSFS_DELETED") == "WSFS_DELETED"

    def test_progress_detection(self) -> None:
        assert is_progress_frame("PROGRESS;42")
        assert is_progress_frame(b"PROGRESS;42")
        assert not is_progress_frame("WSFS_FILE_FOUND;42")
        assert not is_progress_frame(b"\x00PROGRESS;1")

    def test_parse_progress_clamps(self) -> None:
        assert parse_progress("PROGRESS;42") == 42
        assert parse_progress("PROGRESS;150") == 100
        assert parse_progress("PROGRESS;-3") == 0

    def test_parse_progress_malformed(self) -> None:
        assert parse_progress("PROGRESS;abc") is None

    def test_parse_header(self) -> None:
        assert parse_header(b"WSFS_FILE_FOUND;2048") == ("WSFS_FILE_FOUND", 2048)
        assert parse_header("WSFS_TARGET_NOT_EXISTING") == ("WSFS_TARGET_NOT_EXISTING", None)
        assert parse_header("WSFS_FILE_FOUND;lots") == ("WSFS_FILE_FOUND", None)


# =============================================================================
# Push Event Tests
# =============================================================================


class TestDomainEvent:
    """Push frames decode into type plus positional arguments."""

    def test_decode_with_args(self) -> None:
        event = DomainEvent.decode("WSE_INTERVAL_START_CHANGE;monday;2;06:30:00")

        assert event.type == "WSE_INTERVAL_START_CHANGE"
        assert event.kind == EventType.INTERVAL_START_CHANGE
        assert event.args == ["monday", "2", "06:30:00"]

    def test_decode_without_args(self) -> None:
        event = DomainEvent.decode("WSE_VALVE_ON")

        assert event.type == "WSE_VALVE_ON"
        assert event.args == []

    def test_decode_empty_arg(self) -> None:
        """A trailing delimiter is an empty argument, not no argument."""
        assert DomainEvent.decode("WSE_VALVE_ON;").args == [""]

    def test_decode_binary_frame(self) -> None:
        assert DomainEvent.decode(b"WSE_VALVE_OFF;3").args == ["3"]

    def test_unknown_type_is_kept(self) -> None:
        event = DomainEvent.decode("WSE_SOMETHING_NEW;1")

        assert event.type == "WSE_SOMETHING_NEW"
        assert event.kind is None

    def test_arg_default(self) -> None:
        event = DomainEvent.decode("WSE_VALVE_ON;3")

        assert event.arg(0) == "3"
        assert event.arg(1) is None
        assert event.arg(1, "x") == "x"

    def test_encode(self) -> None:
        event = DomainEvent(type="WSE_VALVE_RENAME", args=["3", "Front lawn"])

        assert event.encode() == "WSE_VALVE_RENAME;3;Front lawn"
