"""
Hypervisor connections.

A Connection owns one libvirt virConnectPtr. All node device operations are
scoped to a connection, and every NodeDevice keeps a plain back-reference
to the connection it came from so that failures can be described with the
connection's last error.

The connection must stay open for as long as devices obtained from it are
in use. This is the caller's responsibility and is not reference counted:
closing early is allowed, logged, and makes later device operations fail
with ConnectionClosedError.
"""

import logging
from typing import Any

from nodedev.config import Settings
from nodedev.device import NodeDevice
from nodedev.errors import (
    ConnectError,
    ConnectionClosedError,
    ErrorInfo,
    OperationError,
    RetrieveError,
    format_error,
    translate_error,
)
from nodedev.features import FEATURE_CREATE_XML, optional_operation
from nodedev.handles import HandleRegistry, NativeHandle
from nodedev.listing import retrieve_names
from nodedev.native.base import NativeAPI
from nodedev.native.constants import VIR_ERR_NO_NODE_DEVICE

logger = logging.getLogger(__name__)


class Connection:
    """
    An open connection to a hypervisor.

    Usage:
        with open_connection("qemu:///system") as conn:
            for name in conn.list_devices("pci"):
                print(name)

            dev = conn.lookup_device_by_name("pci_0000_00_1f_2")
            print(dev.xml_desc())
            dev.free()
    """

    def __init__(
        self,
        native: NativeAPI,
        raw: Any,
        uri: str | None = None,
        read_only: bool = False,
    ):
        """
        Wrap an already opened native connection.

        Args:
            native: The backend the connection was opened with.
            raw: The virConnectPtr. The Connection takes ownership.
            uri: The URI it was opened with, for display.
            read_only: Whether it was opened read-only.
        """
        self._native = native
        self._handle = NativeHandle(raw, "Connection")
        self._uri = uri
        self._read_only = read_only
        self._devices = HandleRegistry()

    @property
    def native(self) -> NativeAPI:
        return self._native

    @property
    def uri(self) -> str | None:
        return self._uri

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def closed(self) -> bool:
        return not self._handle.live

    @property
    def live_devices(self) -> int:
        """Number of devices obtained from this connection and not yet freed."""
        return len(self._devices)

    def _conn(self) -> Any:
        if self.closed:
            raise ConnectionClosedError("Connection has been closed")
        return self._handle.get()

    def supports(self, feature: str) -> bool:
        """Check whether an optional feature is available in the loaded libvirt."""
        return self._native.supports(feature)

    def last_error(self) -> ErrorInfo | None:
        """
        Get a copy of the last error libvirt recorded on this connection.

        Returns None if the connection is closed or has no error.
        """
        if self.closed:
            return None
        return self._native.last_error(self._handle.get())

    def close(self):
        """
        Close the connection.

        Calling close() again is a no-op.

        Raises:
            OperationError: If virConnectClose fails.
        """
        if self.closed:
            return

        outstanding = self.live_devices
        if outstanding:
            logger.warning(
                f"Closing connection {self._uri or '(default)'} with "
                f"{outstanding} node device(s) still live"
            )

        if not self._handle.release(self._native.close_connection):
            raise translate_error(OperationError, "virConnectClose", self)
        logger.debug(f"Closed connection {self._uri or '(default)'}")

    def __enter__(self):
        """Support for 'with' statement."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Close the connection when exiting 'with' block."""
        self.close()
        return False

    def __del__(self):
        """Clean up when garbage collected."""
        handle = getattr(self, "_handle", None)
        if handle is not None and handle.live:
            handle.release(self._native.close_connection)

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<Connection {self._uri or '(default)'} {state}>"

    # ------------------------------------------------------------------
    # Node devices
    # ------------------------------------------------------------------

    def _wrap_device(self, raw: Any) -> NodeDevice:
        handle = self._devices.register(NativeHandle(raw, "NodeDevice"))
        return NodeDevice(self, handle)

    def _forget_device(self, handle: NativeHandle):
        self._devices.mark_freed(handle)

    def num_of_devices(self, cap: str | None = None, flags: int = 0) -> int:
        """
        Count the node devices on this host.

        Args:
            cap: Only count devices with this capability (e.g. "pci").
                None counts all devices.
            flags: Passed to virNodeNumOfDevices. Currently unused by libvirt.

        Raises:
            RetrieveError: If virNodeNumOfDevices fails.
        """
        result = self._native.num_of_devices(self._conn(), cap, flags)
        if result < 0:
            raise translate_error(RetrieveError, "virNodeNumOfDevices", self)
        return result

    def list_devices(self, cap: str | None = None, flags: int = 0) -> list[str]:
        """
        List node device names.

        Args:
            cap: Only list devices with this capability. None lists all.
            flags: Passed to both virNodeNumOfDevices and virNodeListDevices.

        Returns:
            Device names. Devices removed between counting and listing are
            simply missing from the result.

        Raises:
            RetrieveError: If counting or listing fails.
        """
        conn = self._conn()
        return retrieve_names(
            count=lambda: self._native.num_of_devices(conn, cap, flags),
            fetch=lambda names, capacity: self._native.list_devices(
                conn, cap, names, capacity, flags
            ),
            free_string=self._native.free_string,
            count_op="virNodeNumOfDevices",
            fetch_op="virNodeListDevices",
            connection=self,
        )

    def list_all_devices(self, cap: str | None = None, flags: int = 0) -> list[NodeDevice]:
        """
        Look up every node device, optionally filtered by capability.

        Devices that disappear between listing and lookup are skipped.
        On any other lookup failure the devices looked up so far are freed.

        Raises:
            RetrieveError: If listing or a lookup fails.
        """
        devices = []
        for name in self.list_devices(cap, flags):
            try:
                devices.append(self.lookup_device_by_name(name))
            except RetrieveError as e:
                if e.code == VIR_ERR_NO_NODE_DEVICE:
                    logger.info(f"Node device {name} disappeared while listing")
                    continue
                for device in devices:
                    device.free()
                raise
        return devices

    def lookup_device_by_name(self, name: str) -> NodeDevice:
        """
        Get a node device by its exact name.

        Raises:
            RetrieveError: If no such device exists.
        """
        raw = self._native.lookup_device_by_name(self._conn(), name)
        if raw is None:
            raise translate_error(RetrieveError, "virNodeDeviceLookupByName", self)
        return self._wrap_device(raw)

    @optional_operation(FEATURE_CREATE_XML)
    def create_device_xml(self, xml: str, flags: int = 0) -> NodeDevice:
        """
        Create a node device from an XML description.

        Only available when the loaded libvirt provides virNodeDeviceCreateXML;
        check with supports("create_xml") or hasattr().

        Args:
            xml: The device XML.
            flags: VIR_NODE_DEVICE_CREATE_XML_* flags.

        Raises:
            OperationError: If the driver rejects the definition.
        """
        raw = self._native.create_device_xml(self._conn(), xml, flags)
        if raw is None:
            raise translate_error(OperationError, "virNodeDeviceCreateXML", self)
        device = self._wrap_device(raw)
        logger.debug(f"Created node device from XML ({len(xml)} bytes)")
        return device


def open_connection(
    uri: str | None = None,
    read_only: bool = False,
    native: NativeAPI | None = None,
    settings: Settings | None = None,
) -> Connection:
    """
    Open a connection to a hypervisor.

    Args:
        uri: Hypervisor URI (e.g., "qemu:///system"). Defaults to the
            configured LIBVIRT_DEFAULT_URI, then to libvirt's own default.
        read_only: Open a read-only connection.
        native: Backend to use. Defaults to the real libvirt.
        settings: Configuration. Read from the environment when omitted.

    Raises:
        ConnectError: If the connection cannot be opened.
    """
    if native is None:
        from nodedev.native.libvirt import LibvirtNative

        native = LibvirtNative()
    settings = settings or Settings.from_env()
    uri = uri or settings.default_uri

    raw = native.open_connection(uri, read_only)
    if raw is None:
        function_name = "virConnectOpenReadOnly" if read_only else "virConnectOpen"
        info = native.open_error()
        raise ConnectError(format_error(function_name, info), function_name, info)

    logger.debug(f"Opened connection {uri or '(default)'} read_only={read_only}")
    return Connection(native, raw, uri=uri, read_only=read_only)
