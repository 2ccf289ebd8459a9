"""
Shared fixtures: an in-memory stand-in for the libvirt C API.

FakeNative behaves like libvirt at the C boundary: counts and statuses are
ints, missing objects are None, list calls fill a real cffi `char *[]`
buffer with strings the caller must free, and errors are recorded on the
connection instead of being returned.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

import pytest

from nodedev.config import Settings
from nodedev.connection import open_connection
from nodedev.errors import ErrorInfo
from nodedev.features import FEATURE_CREATE_XML, FEATURE_DESTROY
from nodedev.native.base import NativeAPI
from nodedev.native.bindings import ffi
from nodedev.native.constants import (
    VIR_ERR_ERROR,
    VIR_ERR_NO_NODE_DEVICE,
    VIR_ERR_XML_ERROR,
    VIR_FROM_NODEDEV,
)


class StringPool:
    """Hands out C strings and checks each one is freed exactly once."""

    def __init__(self):
        self._live = {}
        self.freed = []

    def put(self, value: str):
        buf = ffi.new("char[]", value.encode("utf-8"))
        self._live[int(ffi.cast("uintptr_t", buf))] = buf
        return buf

    def fill(self, names, values: list[str], maxnames: int) -> int:
        written = values[:maxnames]
        for i, value in enumerate(written):
            names[i] = self.put(value)
        return len(written)

    def free(self, ptr):
        address = int(ffi.cast("uintptr_t", ptr))
        assert address in self._live, "string freed twice or never allocated"
        del self._live[address]
        self.freed.append(address)

    @property
    def outstanding(self) -> int:
        return len(self._live)


@dataclass
class FakeDevice:
    name: str
    parent: str | None = None
    caps: list[str] = field(default_factory=list)

    def xml(self) -> str:
        lines = ["<device>", f"  <name>{self.name}</name>"]
        if self.parent:
            lines.append(f"  <parent>{self.parent}</parent>")
        for cap in self.caps:
            lines.append(f"  <capability type='{cap}'/>")
        lines.append("</device>")
        return "\n".join(lines)


class FakeConn:
    def __init__(self, uri):
        self.uri = uri


class FakeDeviceHandle:
    def __init__(self, conn: FakeConn, name: str):
        self.conn = conn
        self.name = name


class FakeNative(NativeAPI):
    """In-memory NativeAPI with failure injection and call recording."""

    def __init__(self, devices=(), features=(FEATURE_CREATE_XML, FEATURE_DESTROY)):
        self.devices = {device.name: device for device in devices}
        self.features = set(features)
        self.strings = StringPool()
        self.calls: list[str] = []
        self.errors: dict[FakeConn, ErrorInfo] = {}
        self.failures: dict[str, ErrorInfo] = {}
        self.freed_devices: list[FakeDeviceHandle] = []
        self.closed: list[FakeConn] = []
        self.vanish_before_list: list[str] = []
        self.detached: set[str] = set()
        self.refuse_open = False

    def fail_on(self, primitive: str, code: int = 1, message: str = "injected failure"):
        self.failures[primitive] = ErrorInfo(
            code=code, domain=VIR_FROM_NODEDEV, message=message, level=VIR_ERR_ERROR
        )

    def _failed(self, primitive: str, conn: FakeConn) -> bool:
        self.calls.append(primitive)
        if primitive in self.failures:
            self.errors[conn] = self.failures[primitive]
            return True
        return False

    def _error(self, conn: FakeConn, code: int, message: str):
        self.errors[conn] = ErrorInfo(
            code=code, domain=VIR_FROM_NODEDEV, message=message, level=VIR_ERR_ERROR
        )

    def _matching(self, cap):
        return [d.name for d in self.devices.values() if cap is None or cap in d.caps]

    # Connections and errors

    def open_connection(self, uri, read_only):
        self.calls.append("open_connection")
        if self.refuse_open:
            return None
        return FakeConn(uri)

    def close_connection(self, conn):
        if self._failed("close_connection", conn):
            return -1
        assert conn not in self.closed, "connection closed twice"
        self.closed.append(conn)
        return 0

    def last_error(self, conn):
        return self.errors.get(conn)

    def open_error(self):
        return ErrorInfo(code=38, domain=0, message="no connection driver available", level=2)

    def supports(self, feature):
        return feature in self.features

    def free_string(self, ptr):
        self.strings.free(ptr)

    # Enumeration

    def num_of_devices(self, conn, cap, flags):
        if self._failed("num_of_devices", conn):
            return -1
        return len(self._matching(cap))

    def list_devices(self, conn, cap, names, maxnames, flags):
        if self._failed("list_devices", conn):
            return -1
        for name in self.vanish_before_list:
            self.devices.pop(name, None)
        return self.strings.fill(names, self._matching(cap), maxnames)

    def lookup_device_by_name(self, conn, name):
        if self._failed("lookup_device_by_name", conn):
            return None
        if name not in self.devices:
            self._error(conn, VIR_ERR_NO_NODE_DEVICE, f"Node device not found: no node device with matching name '{name}'")
            return None
        return FakeDeviceHandle(conn, name)

    def create_device_xml(self, conn, xml, flags):
        if self._failed("create_device_xml", conn):
            return None
        root = ET.fromstring(xml)
        name = root.findtext("name")
        if not name:
            self._error(conn, VIR_ERR_XML_ERROR, "XML error: missing device name")
            return None
        caps = [cap.get("type") for cap in root.findall("capability")]
        self.devices[name] = FakeDevice(name, root.findtext("parent"), caps)
        return FakeDeviceHandle(conn, name)

    # Per-device calls

    def _check(self, dev):
        assert dev not in self.freed_devices, "native call on a freed device"

    def device_get_name(self, dev):
        self._check(dev)
        if self._failed("device_get_name", dev.conn):
            return None
        return dev.name

    def device_get_parent(self, dev):
        self._check(dev)
        self.calls.append("device_get_parent")
        device = self.devices.get(dev.name)
        return device.parent if device else None

    def device_num_of_caps(self, dev):
        self._check(dev)
        if self._failed("device_num_of_caps", dev.conn):
            return -1
        return len(self.devices[dev.name].caps)

    def device_list_caps(self, dev, names, maxnames):
        self._check(dev)
        if self._failed("device_list_caps", dev.conn):
            return -1
        return self.strings.fill(names, self.devices[dev.name].caps, maxnames)

    def device_get_xml_desc(self, dev, flags):
        self._check(dev)
        if self._failed("device_get_xml_desc", dev.conn):
            return None
        device = self.devices.get(dev.name)
        if device is None:
            self._error(dev.conn, VIR_ERR_NO_NODE_DEVICE, f"no node device with matching name '{dev.name}'")
            return None
        return device.xml()

    def device_detach(self, dev):
        self._check(dev)
        if self._failed("device_detach", dev.conn):
            return -1
        self.detached.add(dev.name)
        return 0

    def device_reattach(self, dev):
        self._check(dev)
        if self._failed("device_reattach", dev.conn):
            return -1
        self.detached.discard(dev.name)
        return 0

    def device_reset(self, dev):
        self._check(dev)
        if self._failed("device_reset", dev.conn):
            return -1
        return 0

    def device_destroy(self, dev):
        self._check(dev)
        if self._failed("device_destroy", dev.conn):
            return -1
        self.devices.pop(dev.name, None)
        return 0

    def device_free(self, dev):
        self._check(dev)
        if self._failed("device_free", dev.conn):
            return -1
        self.freed_devices.append(dev)
        return 0


HOST_DEVICES = [
    FakeDevice("computer", None, ["system"]),
    FakeDevice("pci_0000_00_14_0", "computer", ["pci"]),
    FakeDevice("pci_0000_02_00_0", "computer", ["pci"]),
    FakeDevice("usb_usb1", "pci_0000_00_14_0", ["usb_device"]),
    FakeDevice("usb_1_1", "usb_usb1", ["usb_device"]),
    FakeDevice("usb_1_2", "usb_usb1", ["usb_device"]),
    FakeDevice("usb_1_1_0", "usb_1_1", ["usb"]),
    FakeDevice("net_eth0_52_54_00_12_34_56", "pci_0000_02_00_0", ["net"]),
    FakeDevice("scsi_host5", "pci_0000_00_14_0", ["scsi_host", "fc_host", "vports"]),
]


@pytest.fixture
def native():
    return FakeNative(devices=[FakeDevice(d.name, d.parent, list(d.caps)) for d in HOST_DEVICES])


@pytest.fixture
def conn(native):
    connection = open_connection("test:///default", native=native, settings=Settings())
    yield connection
    connection.close()
