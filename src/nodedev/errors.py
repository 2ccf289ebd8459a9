"""
Exceptions raised by the node device layer.

libvirt reports failure with a negative return value or a NULL pointer and
records the details on the connection. Every failing call is translated at
the call site into one of the exceptions below, carrying the name of the C
function that failed and a snapshot of the connection's last error.

Taxonomy:
- RetrieveError: a query, enumeration or lookup failed
- OperationError: a state-changing action failed
- InvalidHandleError: an object was used after it was freed or closed
- NotSupportedError: an optional operation is missing from the library
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nodedev.connection import Connection


@dataclass(frozen=True)
class ErrorInfo:
    """
    Snapshot of a libvirt virError record.

    Attributes:
        code: The virErrorNumber (e.g. VIR_ERR_NO_NODE_DEVICE)
        domain: The virErrorDomain, i.e. which subsystem failed
        message: Human-readable message from libvirt
        level: The virErrorLevel (warning or error)
    """

    code: int
    domain: int
    message: str
    level: int


class NodeDevError(Exception):
    """Base class for errors raised by nodedev."""

    def __init__(
        self,
        description: str,
        function_name: str | None = None,
        info: ErrorInfo | None = None,
    ):
        super().__init__(description)
        self.function_name = function_name
        self.info = info

    @property
    def code(self) -> int | None:
        return self.info.code if self.info else None

    @property
    def domain(self) -> int | None:
        return self.info.domain if self.info else None

    @property
    def level(self) -> int | None:
        return self.info.level if self.info else None

    @property
    def native_message(self) -> str | None:
        return self.info.message if self.info else None


class RetrieveError(NodeDevError):
    """Raised when retrieving data from libvirt fails."""

    pass


class OperationError(NodeDevError):
    """Raised when a state-changing libvirt call fails."""

    pass


class ConnectError(NodeDevError):
    """Raised when a connection to the hypervisor cannot be opened."""

    pass


class InvalidHandleError(NodeDevError):
    """Raised when an object is used after its native handle was released."""

    pass


class UseAfterFreeError(InvalidHandleError):
    """Raised when a NodeDevice is used after free()."""

    pass


class ConnectionClosedError(InvalidHandleError):
    """Raised when a Connection (or a device obtained from it) is used after close()."""

    pass


class NotSupportedError(NodeDevError, AttributeError):
    """
    Raised when an optional operation is not available in the loaded libvirt.

    Also an AttributeError so that hasattr() on the operation returns False.
    """

    pass


def format_error(function_name: str, info: ErrorInfo | None) -> str:
    """Build the message used for translated errors."""
    if info is None or not info.message:
        return f"Call to {function_name} failed"
    return f"Call to {function_name} failed: {info.message}"


def translate_error(
    error_cls: type[NodeDevError],
    function_name: str,
    connection: "Connection | None",
) -> NodeDevError:
    """
    Translate a failed native call into an exception.

    The error details are read from the connection at the moment of failure,
    because libvirt records errors there rather than returning them. The
    returned exception is meant to be raised by the caller.

    Args:
        error_cls: RetrieveError for queries, OperationError for actions.
        function_name: The libvirt function that failed.
        connection: The connection the call was made through, if still open.

    Returns:
        An instance of error_cls.
    """
    info = None
    if connection is not None and not connection.closed:
        info = connection.last_error()
    return error_cls(format_error(function_name, info), function_name, info)
