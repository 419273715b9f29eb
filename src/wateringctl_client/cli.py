"""wateringctl command line client.

Usage:
    wateringctl ls /                        # List a directory
    wateringctl get /www/index.html out.html
    wateringctl put firmware.bin /fw.bin --overwrite
    wateringctl mkdir /www assets           # Create /www/assets
    wateringctl rm /www/assets --recursive
    wateringctl untar /www.tar
    wateringctl update /fw.bin
    wateringctl watch                       # Stream push events
    wateringctl valves                      # Show the valve list
    wateringctl valve on 2                  # Switch valve 2 on
    wateringctl valve timer 2 00:10:00      # Run valve 2 for ten minutes

The device URL comes from --url or WATERINGCTL_BASE_URL.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
import httpx

from .client import DeviceClient
from .config import ClientConfig
from .errors import FsClientError
from .fs import FsEntry
from .notifications import Notification
from .protocol.events import DomainEvent

T = TypeVar("T")

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

# How long to wait for the first connection before giving up
CONNECT_WAIT = 10.0


def format_size(size: int) -> str:
    """Human readable byte count."""
    value = float(size)
    for unit in ("B", "KiB", "MiB"):
        if value < 1024 or unit == "MiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def format_entries(entries: list[FsEntry]) -> list[str]:
    """Table rows for a listing, directories first."""
    rows = []
    for entry in sorted(entries, key=lambda e: (not e.is_directory, e.name.lower())):
        kind = "dir" if entry.is_directory else "file"
        size = "" if entry.is_directory else format_size(entry.size)
        rows.append(f"{kind:<5} {size:>10}  {entry.name}")
    return rows


def _notify(notification: Notification) -> None:
    click.secho(f"{notification.headline}: {notification.text}", fg="yellow", err=True)


def _device(ctx: click.Context) -> DeviceClient:
    return DeviceClient(ctx.obj["config"], sink=_notify)


def _run_fs(ctx: click.Context, action: Callable[[DeviceClient], Awaitable[T]]) -> T:
    """Connect the filesystem channel, run one action, disconnect."""

    async def run() -> T:
        device = _device(ctx)
        try:
            try:
                await asyncio.wait_for(device.start_fs(), timeout=CONNECT_WAIT)
            except TimeoutError as e:
                raise ConnectionError(f"Cannot connect to device at {device.config.fs_url}") from e
            return await action(device)
        finally:
            await device.close()

    try:
        return asyncio.run(run())
    except FsClientError as e:
        # Already reported as a notification
        logging.getLogger(__name__).debug(f"Command failed: {e}")
        sys.exit(1)
    except (ConnectionError, ValueError) as e:
        click.echo(str(e), err=True)
        sys.exit(1)


def _run_http(ctx: click.Context, action: Callable[[DeviceClient], Awaitable[T]]) -> T:
    """Run one REST action against the device."""

    async def run() -> T:
        device = _device(ctx)
        try:
            return await action(device)
        finally:
            await device.close()

    try:
        return asyncio.run(run())
    except httpx.HTTPStatusError as e:
        # Coded errors are already reported as a notification
        logging.getLogger(__name__).debug(f"Request failed: {e}")
        sys.exit(1)
    except httpx.HTTPError as e:
        click.echo(f"Cannot reach device: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option(
    "--url",
    envvar="WATERINGCTL_BASE_URL",
    default=None,
    help="Device URL, e.g. http://192.168.4.1",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, url: str | None, verbose: bool) -> None:
    """Client for the watering controller's file system and events."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = ClientConfig.from_env(base_url=url)


# =============================================================================
# File System Commands
# =============================================================================


@main.command("ls")
@click.argument("path", default="/")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
@click.pass_context
def ls(ctx: click.Context, path: str, output_format: str) -> None:
    """List a directory on the device."""
    entries = _run_fs(ctx, lambda device: device.fs.list(path))

    if output_format == FORMAT_JSON:
        data = [e.model_dump(by_alias=True) for e in entries]
        click.echo(json.dumps(data, indent=2))
        return

    if not entries:
        click.echo("Directory is empty.")
        return

    for row in format_entries(entries):
        click.echo(row)
    click.echo(f"\nTotal: {len(entries)} entries")


@main.command("get")
@click.argument("remote")
@click.argument("local", type=click.Path(dir_okay=False, writable=True), required=False)
@click.pass_context
def get(ctx: click.Context, remote: str, local: str | None) -> None:
    """Download REMOTE to LOCAL (or stdout).

    Examples:

        wateringctl get /www/index.html index.html

        wateringctl get /config.json | jq .
    """
    data = _run_fs(ctx, lambda device: device.fs.read_file(remote))

    if local is None:
        click.get_binary_stream("stdout").write(data)
        return
    Path(local).write_bytes(data)
    click.echo(f"Saved {format_size(len(data))} to {local}", err=True)


@main.command("put")
@click.argument("local", type=click.Path(exists=True, dir_okay=False))
@click.argument("remote")
@click.option("--overwrite", is_flag=True, help="Replace an existing file")
@click.pass_context
def put(ctx: click.Context, local: str, remote: str, overwrite: bool) -> None:
    """Upload LOCAL to REMOTE."""
    data = Path(local).read_bytes()

    async def upload(device: DeviceClient) -> None:
        def show(percent: int | None) -> None:
            if percent is not None:
                click.echo(f"\r{percent:>3}%", nl=False, err=True)

        remove = device.tracker.add_progress_listener(show)
        try:
            await device.fs.write_file(remote, data, overwrite=overwrite)
        finally:
            remove()
            click.echo("", err=True)

    _run_fs(ctx, upload)
    click.echo(f"Uploaded {format_size(len(data))} to {remote}", err=True)


@main.command("mkdir")
@click.argument("path")
@click.argument("name")
@click.pass_context
def mkdir(ctx: click.Context, path: str, name: str) -> None:
    """Create directory NAME inside PATH."""
    _run_fs(ctx, lambda device: device.fs.create_directory(path, name))


@main.command("rm")
@click.argument("path")
@click.option("--recursive", "-r", is_flag=True, help="PATH is a directory, delete it with its contents")
@click.pass_context
def rm(ctx: click.Context, path: str, recursive: bool) -> None:
    """Delete a file or directory."""
    if recursive:
        _run_fs(ctx, lambda device: device.fs.delete_directory(path))
    else:
        _run_fs(ctx, lambda device: device.fs.delete_file(path))


@main.command("untar")
@click.argument("path")
@click.pass_context
def untar(ctx: click.Context, path: str) -> None:
    """Unpack a tarball on the device."""

    async def run(device: DeviceClient) -> None:
        def show(percent: int | None) -> None:
            click.echo(f"\r{'...' if percent is None else f'{percent:>3}%'}", nl=False, err=True)

        remove = device.tracker.add_progress_listener(show)
        try:
            await device.fs.untar(path)
        finally:
            remove()
            click.echo("", err=True)

    _run_fs(ctx, run)


@main.command("update")
@click.argument("path")
@click.confirmation_option(prompt="Flash this firmware image?")
@click.pass_context
def update(ctx: click.Context, path: str) -> None:
    """Flash the firmware image at PATH."""
    _run_fs(ctx, lambda device: device.fs.update_firmware(path))
    click.echo("Firmware updated.", err=True)


# =============================================================================
# Event Commands
# =============================================================================


def format_event(event: DomainEvent) -> str:
    return f"{event.type:<32} {' '.join(event.args)}"


@main.command("watch")
@click.option("--type", "event_types", multiple=True, help="Only show these event types")
@click.pass_context
def watch(ctx: click.Context, event_types: tuple[str, ...]) -> None:
    """Stream push events until interrupted."""

    async def run() -> None:
        device = _device(ctx)
        try:
            await device.events.start()
            click.echo(f"Watching {device.config.events_url} (Ctrl+C to stop)", err=True)
            async for event in device.events.bus.stream():
                if not event_types or event.type in event_types:
                    click.echo(format_event(event))
        finally:
            await device.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        click.echo("\nStopped", err=True)
    except (ConnectionError, ValueError) as e:
        click.echo(str(e), err=True)
        sys.exit(1)


@main.command("valves")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
@click.pass_context
def valves(ctx: click.Context, output_format: str) -> None:
    """Show all valves."""

    async def run() -> list[Any]:
        device = _device(ctx)
        try:
            return await device.valves.refresh()
        finally:
            await device.close()

    try:
        items = asyncio.run(run())
    except httpx.HTTPError as e:
        click.echo(f"Cannot fetch valves: {e}", err=True)
        sys.exit(1)

    if output_format == FORMAT_JSON:
        click.echo(json.dumps([v.model_dump() for v in items], indent=2))
        return

    click.echo(f"{'ID':>3} {'Alias':<20} {'State':<6} {'Disabled':<9} {'Timer':<8}")
    click.echo("-" * 50)
    for v in items:
        state = "on" if v.state else "off"
        disabled = "yes" if v.disabled else "no"
        click.echo(f"{v.identifier:>3} {v.alias[:20]:<20} {state:<6} {disabled:<9} {v.timer:<8}")


@main.group("valve")
def valve() -> None:
    """Switch a single valve."""


@valve.command("on")
@click.argument("identifier", type=int)
@click.pass_context
def valve_on(ctx: click.Context, identifier: int) -> None:
    """Switch valve IDENTIFIER on."""
    _run_http(ctx, lambda device: device.http.activate_valve(identifier))
    click.echo(f"Valve {identifier} on", err=True)


@valve.command("off")
@click.argument("identifier", type=int)
@click.pass_context
def valve_off(ctx: click.Context, identifier: int) -> None:
    """Switch valve IDENTIFIER off."""
    _run_http(ctx, lambda device: device.http.deactivate_valve(identifier))
    click.echo(f"Valve {identifier} off", err=True)


@valve.command("timer")
@click.argument("identifier", type=int)
@click.argument("duration")
@click.pass_context
def valve_timer(ctx: click.Context, identifier: int, duration: str) -> None:
    """Run valve IDENTIFIER for DURATION (HH:MM:SS)."""
    _run_http(ctx, lambda device: device.http.set_valve_timer(identifier, duration))
    click.echo(f"Valve {identifier} on for {duration}", err=True)


@valve.command("clear")
@click.argument("identifier", type=int)
@click.pass_context
def valve_clear(ctx: click.Context, identifier: int) -> None:
    """Cancel the timer of valve IDENTIFIER."""
    _run_http(ctx, lambda device: device.http.clear_valve_timer(identifier))
    click.echo(f"Valve {identifier} timer cleared", err=True)


if __name__ == "__main__":
    main()
