"""
Command-line interface for nodedev.

This module defines all CLI commands using the Typer library. The commands
mirror the virsh nodedev-* family and are thin wrappers around Connection
and NodeDevice.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Iterator

import typer

from nodedev import __version__
from nodedev.config import Settings
from nodedev.connection import Connection, open_connection
from nodedev.device import NodeDevice
from nodedev.errors import NodeDevError
from nodedev.features import format_features, query_features
from nodedev.native.constants import VIR_NODE_DEVICE_XML_INACTIVE

app = typer.Typer(
    name="nodedev",
    help="nodedev - Inspect and control libvirt node devices",
    no_args_is_help=True,
)


@dataclass
class CLIState:
    """Options shared by all commands."""

    uri: str | None = None
    read_only: bool = False


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"nodedev {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    connect: Annotated[
        str | None,
        typer.Option("--connect", "-c", help="Hypervisor URI (default: $LIBVIRT_DEFAULT_URI)"),
    ] = None,
    readonly: Annotated[
        bool,
        typer.Option("--readonly", "-r", help="Open a read-only connection"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging"),
    ] = False,
) -> None:
    """nodedev - Inspect and control libvirt node devices."""
    settings = Settings.from_env()
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = CLIState(uri=connect or settings.default_uri, read_only=readonly)


@contextmanager
def _connection(ctx: typer.Context) -> Iterator[Connection]:
    """Open the configured connection and turn library errors into exit code 1."""
    state: CLIState = ctx.obj
    try:
        with open_connection(state.uri, read_only=state.read_only) as conn:
            yield conn
    except (NodeDevError, OSError) as e:
        # OSError: libvirt itself could not be loaded
        print(f"Error: {e}")
        raise typer.Exit(code=1) from e


@contextmanager
def _device(conn: Connection, name: str) -> Iterator[NodeDevice]:
    device = conn.lookup_device_by_name(name)
    with device:
        yield device


CapOption = Annotated[
    str | None,
    typer.Option("--cap", help="Only devices with this capability (e.g. pci, usb_device)"),
]


@app.command("list")
def list_devices(ctx: typer.Context, cap: CapOption = None) -> None:
    """List node device names."""
    with _connection(ctx) as conn:
        for name in conn.list_devices(cap):
            print(name)


@app.command("count")
def count_devices(ctx: typer.Context, cap: CapOption = None) -> None:
    """Print the number of node devices."""
    with _connection(ctx) as conn:
        print(conn.num_of_devices(cap))


@app.command("info")
def device_info(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Node device name"),
) -> None:
    """
    Display basic information about a node device.

    Shows the device name, its parent and its capabilities.
    """
    with _connection(ctx) as conn, _device(conn, name) as device:
        caps = device.list_caps()
        print(f"Name:          {device.name()}")
        print(f"Parent:        {device.parent() or '-'}")
        print(f"Capabilities:  {', '.join(caps) if caps else '-'}")


@app.command("dumpxml")
def dump_xml(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Node device name"),
    inactive: bool = typer.Option(
        False,
        "--inactive",
        help="Show the persistent definition instead of the live state",
    ),
) -> None:
    """Print the XML description of a node device."""
    flags = VIR_NODE_DEVICE_XML_INACTIVE if inactive else 0
    with _connection(ctx) as conn, _device(conn, name) as device:
        print(device.xml_desc(flags))


@app.command("detach")
def detach(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Node device name"),
) -> None:
    """Detach a device from its host driver (e.g. for passthrough)."""
    with _connection(ctx) as conn, _device(conn, name) as device:
        device.detach()
        print(f"Device {name} detached")


@app.command("reattach")
def reattach(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Node device name"),
) -> None:
    """Give a detached device back to its host driver."""
    with _connection(ctx) as conn, _device(conn, name) as device:
        device.reattach()
        print(f"Device {name} re-attached")


@app.command("reset")
def reset(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Node device name"),
) -> None:
    """Reset a node device."""
    with _connection(ctx) as conn, _device(conn, name) as device:
        device.reset()
        print(f"Device {name} reset")


@app.command("create")
def create(
    ctx: typer.Context,
    xml_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="XML file describing the device",
    ),
) -> None:
    """
    Create a node device from an XML file.

    Only available when the loaded libvirt supports virNodeDeviceCreateXML.
    """
    xml = xml_file.read_text()
    with _connection(ctx) as conn:
        with conn.create_device_xml(xml) as device:
            print(f"Node device {device.name()} created from {xml_file}")


@app.command("destroy")
def destroy(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Node device name"),
) -> None:
    """
    Destroy a node device created with 'create'.

    Only available when the loaded libvirt supports virNodeDeviceDestroy.
    """
    with _connection(ctx) as conn, _device(conn, name) as device:
        device.destroy()
        print(f"Destroyed node device {name}")


@app.command("features")
def features(ctx: typer.Context) -> None:
    """Display which optional libvirt features are available."""
    with _connection(ctx) as conn:
        print("Optional features:")
        print("-" * 60)
        print(format_features(query_features(conn.native)))


if __name__ == "__main__":
    app()
