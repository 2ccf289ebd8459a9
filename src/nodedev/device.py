"""
Node device objects.

A NodeDevice wraps one virNodeDevicePtr obtained through a Connection. It
moves through two states:

    Live --detach/reattach/reset/destroy--> Live
    Live --free--> Freed

Every method checks liveness before calling libvirt. In the Freed state all
methods except free() raise UseAfterFreeError; free() itself is a no-op.
"""

import logging
from typing import TYPE_CHECKING, Any

from nodedev.errors import (
    ConnectionClosedError,
    OperationError,
    RetrieveError,
    translate_error,
)
from nodedev.features import FEATURE_DESTROY, optional_operation
from nodedev.handles import NativeHandle
from nodedev.listing import retrieve_names

if TYPE_CHECKING:
    from nodedev.connection import Connection

logger = logging.getLogger(__name__)


class NodeDevice:
    """
    A physical or virtual device attached to the host.

    Instances are created by Connection.lookup_device_by_name(),
    Connection.create_device_xml() and Connection.list_all_devices(),
    never directly.

    Usage:
        dev = conn.lookup_device_by_name("pci_0000_02_00_0")
        print(dev.name(), dev.parent(), dev.list_caps())
        dev.detach()
        ...
        dev.reattach()
        dev.free()
    """

    def __init__(self, connection: "Connection", handle: NativeHandle):
        self._connection = connection
        self._handle = handle
        self._native = connection.native

    @property
    def connection(self) -> "Connection":
        """The connection this device was obtained from."""
        return self._connection

    @property
    def live(self) -> bool:
        return self._handle.live

    def _dev(self) -> Any:
        """Get the native pointer, failing fast if it can't be used."""
        raw = self._handle.get()
        if self._connection.closed:
            raise ConnectionClosedError(
                "NodeDevice cannot be used after its connection was closed"
            )
        return raw

    def supports(self, feature: str) -> bool:
        return self._connection.supports(feature)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def name(self) -> str:
        """
        Get the device name.

        Raises:
            RetrieveError: If virNodeDeviceGetName fails.
        """
        name = self._native.device_get_name(self._dev())
        if name is None:
            raise translate_error(RetrieveError, "virNodeDeviceGetName", self._connection)
        return name

    def parent(self) -> str | None:
        """
        Get the name of the parent device.

        Returns:
            The parent name, or None for a device without a parent (the
            root "computer" device). This is not an error.
        """
        return self._native.device_get_parent(self._dev())

    def num_of_caps(self) -> int:
        """
        Count the capabilities of this device.

        Raises:
            RetrieveError: If virNodeDeviceNumOfCaps fails.
        """
        result = self._native.device_num_of_caps(self._dev())
        if result < 0:
            raise translate_error(RetrieveError, "virNodeDeviceNumOfCaps", self._connection)
        return result

    def list_caps(self) -> list[str]:
        """
        List the capability names of this device (e.g. ["pci"]).

        Raises:
            RetrieveError: If counting or listing the capabilities fails.
        """
        dev = self._dev()
        return retrieve_names(
            count=lambda: self._native.device_num_of_caps(dev),
            fetch=lambda names, capacity: self._native.device_list_caps(
                dev, names, capacity
            ),
            free_string=self._native.free_string,
            count_op="virNodeDeviceNumOfCaps",
            fetch_op="virNodeDeviceListCaps",
            connection=self._connection,
        )

    def xml_desc(self, flags: int = 0) -> str:
        """
        Get the XML description of the device.

        Args:
            flags: VIR_NODE_DEVICE_XML_* flags.

        Raises:
            RetrieveError: If virNodeDeviceGetXMLDesc fails.
        """
        xml = self._native.device_get_xml_desc(self._dev(), flags)
        if xml is None:
            raise translate_error(RetrieveError, "virNodeDeviceGetXMLDesc", self._connection)
        return xml

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _call_action(self, func, function_name: str):
        if func(self._dev()) < 0:
            raise translate_error(OperationError, function_name, self._connection)
        logger.debug(f"{function_name} succeeded")

    def detach(self):
        """
        Detach the device from its host driver (e.g. for PCI passthrough).

        Raises:
            OperationError: If virNodeDeviceDettach fails.
        """
        self._call_action(self._native.device_detach, "virNodeDeviceDettach")

    def reattach(self):
        """
        Give a detached device back to its host driver.

        Raises:
            OperationError: If virNodeDeviceReAttach fails.
        """
        self._call_action(self._native.device_reattach, "virNodeDeviceReAttach")

    def reset(self):
        """
        Reset the device (function level or bus reset).

        Raises:
            OperationError: If virNodeDeviceReset fails.
        """
        self._call_action(self._native.device_reset, "virNodeDeviceReset")

    @optional_operation(FEATURE_DESTROY)
    def destroy(self):
        """
        Destroy the device's active configuration.

        The handle itself stays valid and must still be freed.

        Raises:
            OperationError: If virNodeDeviceDestroy fails.
        """
        self._call_action(self._native.device_destroy, "virNodeDeviceDestroy")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def free(self):
        """
        Release the native device object.

        After this call every other method raises UseAfterFreeError. Calling
        free() again is a no-op. Freeing is allowed after detach() or
        destroy(), and after the connection was closed.

        Raises:
            OperationError: If virNodeDeviceFree fails; the device stays live.
        """
        if not self._handle.live:
            return

        if not self._handle.release(self._native.device_free):
            raise translate_error(OperationError, "virNodeDeviceFree", self._connection)
        self._connection._forget_device(self._handle)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.free()
        return False

    def __del__(self):
        """Release the native object if the caller never freed it."""
        handle = getattr(self, "_handle", None)
        if handle is not None and handle.live:
            logger.debug("Freeing unreleased NodeDevice on garbage collection")
            handle.release(self._native.device_free)

    def __repr__(self) -> str:
        state = "live" if self._handle.live else "freed"
        return f"<NodeDevice {state}>"
