"""
NativeAPI backed by the real libvirt library through cffi.

Each method is a direct call into libvirt with Python <-> C conversion of
arguments and results. No error checking happens here: return codes and NULL
pointers are passed back so the lifecycle layer can translate them with the
connection's error state.
"""

import logging
from typing import Any

from nodedev.errors import ErrorInfo
from nodedev.features import FEATURES
from .base import NativeAPI
from .bindings import ffi, get_lib, has_symbol, libc

logger = logging.getLogger(__name__)


def _encode(value: str | None):
    """Convert an optional Python string into a C string argument."""
    if value is None:
        return ffi.NULL
    return value.encode("utf-8")


def _decode(ptr) -> str | None:
    """Copy a C string into Python. NULL becomes None."""
    if ptr == ffi.NULL:
        return None
    return ffi.string(ptr).decode("utf-8")


def _null_to_none(ptr) -> Any:
    if ptr == ffi.NULL:
        return None
    return ptr


def _copy_error(err) -> ErrorInfo | None:
    """
    Copy a virErrorPtr into an ErrorInfo.

    The virError belongs to libvirt and is overwritten by the next failing
    call, so the fields are copied out immediately.
    """
    if err == ffi.NULL or err.code == 0:
        return None
    return ErrorInfo(
        code=err.code,
        domain=err.domain,
        message=_decode(err.message) or "",
        level=err.level,
    )


class LibvirtNative(NativeAPI):
    """
    The libvirt C API.

    Usage:
        native = LibvirtNative()
        conn = native.open_connection("qemu:///system", read_only=True)
        count = native.num_of_devices(conn, None, 0)
    """

    def __init__(self, lib=None):
        """
        Args:
            lib: An already loaded cffi library. Loaded lazily when omitted.
        """
        self._lib = lib
        self._supported: dict[str, bool] = {}

    @property
    def lib(self):
        if self._lib is None:
            self._lib = get_lib()
        return self._lib

    def supports(self, feature: str) -> bool:
        if feature not in self._supported:
            symbol = FEATURES[feature].symbol
            self._supported[feature] = has_symbol(self.lib, symbol)
            logger.debug(f"Feature {feature} ({symbol}): {self._supported[feature]}")
        return self._supported[feature]

    def free_string(self, ptr) -> None:
        libc.free(ptr)

    # Connections and errors

    def open_connection(self, uri: str | None, read_only: bool) -> Any:
        if read_only:
            conn = self.lib.virConnectOpenReadOnly(_encode(uri))
        else:
            conn = self.lib.virConnectOpen(_encode(uri))
        return _null_to_none(conn)

    def close_connection(self, conn) -> int:
        return self.lib.virConnectClose(conn)

    def last_error(self, conn) -> ErrorInfo | None:
        return _copy_error(self.lib.virConnGetLastError(conn))

    def open_error(self) -> ErrorInfo | None:
        # No connection exists yet, so libvirt only has the thread-local record
        return _copy_error(self.lib.virGetLastError())

    # Device enumeration

    def num_of_devices(self, conn, cap: str | None, flags: int) -> int:
        return self.lib.virNodeNumOfDevices(conn, _encode(cap), flags)

    def list_devices(self, conn, cap: str | None, names, maxnames: int, flags: int) -> int:
        return self.lib.virNodeListDevices(conn, _encode(cap), names, maxnames, flags)

    def lookup_device_by_name(self, conn, name: str) -> Any:
        return _null_to_none(self.lib.virNodeDeviceLookupByName(conn, _encode(name)))

    def create_device_xml(self, conn, xml: str, flags: int) -> Any:
        return _null_to_none(self.lib.virNodeDeviceCreateXML(conn, _encode(xml), flags))

    # Per-device calls

    def device_get_name(self, dev) -> str | None:
        # The name belongs to the device object; do not free it
        return _decode(self.lib.virNodeDeviceGetName(dev))

    def device_get_parent(self, dev) -> str | None:
        return _decode(self.lib.virNodeDeviceGetParent(dev))

    def device_num_of_caps(self, dev) -> int:
        return self.lib.virNodeDeviceNumOfCaps(dev)

    def device_list_caps(self, dev, names, maxnames: int) -> int:
        return self.lib.virNodeDeviceListCaps(dev, names, maxnames)

    def device_get_xml_desc(self, dev, flags: int) -> str | None:
        ptr = self.lib.virNodeDeviceGetXMLDesc(dev, flags)
        if ptr == ffi.NULL:
            return None
        try:
            return ffi.string(ptr).decode("utf-8")
        finally:
            # Unlike the name, the XML document is owned by the caller
            libc.free(ptr)

    def device_detach(self, dev) -> int:
        return self.lib.virNodeDeviceDettach(dev)

    def device_reattach(self, dev) -> int:
        return self.lib.virNodeDeviceReAttach(dev)

    def device_reset(self, dev) -> int:
        return self.lib.virNodeDeviceReset(dev)

    def device_destroy(self, dev) -> int:
        return self.lib.virNodeDeviceDestroy(dev)

    def device_free(self, dev) -> int:
        return self.lib.virNodeDeviceFree(dev)
