"""
nodedev - Python bindings for libvirt node devices.

Main classes:
- Connection: An open hypervisor connection; enumerates and looks up devices
- NodeDevice: One host device (PCI, USB, network interface, ...)
"""

__version__ = "0.1.0"

from .connection import Connection, open_connection
from .device import NodeDevice
from .errors import (
    ConnectError,
    ConnectionClosedError,
    ErrorInfo,
    InvalidHandleError,
    NodeDevError,
    NotSupportedError,
    OperationError,
    RetrieveError,
    UseAfterFreeError,
)
from .features import FEATURE_CREATE_XML, FEATURE_DESTROY

__all__ = [
    "__version__",
    "Connection",
    "open_connection",
    "NodeDevice",
    "ErrorInfo",
    "NodeDevError",
    "RetrieveError",
    "OperationError",
    "ConnectError",
    "InvalidHandleError",
    "UseAfterFreeError",
    "ConnectionClosedError",
    "NotSupportedError",
    "FEATURE_CREATE_XML",
    "FEATURE_DESTROY",
]
