"""
The native API contract.

Connection and NodeDevice never call libvirt directly. They talk to a
NativeAPI, which exposes each C primitive as one method with the C calling
convention preserved: counts and statuses are ints (negative on failure),
handles are opaque objects (None for NULL), and list calls fill a caller
supplied `char *[]` buffer.

LibvirtNative implements this against the real library. Tests implement it
in memory.
"""

from abc import ABC, abstractmethod
from typing import Any

from nodedev.errors import ErrorInfo


class NativeAPI(ABC):
    """
    Base class for native backends.

    Subclasses must implement every abstract method. The two optional
    primitives, create_device_xml() and device_destroy(), are only called
    when supports() reports the matching feature.
    """

    # ------------------------------------------------------------------
    # Connections and errors
    # ------------------------------------------------------------------

    @abstractmethod
    def open_connection(self, uri: str | None, read_only: bool) -> Any:
        """Open a connection. Returns the handle, or None on failure."""
        pass

    @abstractmethod
    def close_connection(self, conn: Any) -> int:
        """Close a connection. Returns the remaining reference count, or -1."""
        pass

    @abstractmethod
    def last_error(self, conn: Any) -> ErrorInfo | None:
        """Return a copy of the last error recorded on the connection."""
        pass

    @abstractmethod
    def open_error(self) -> ErrorInfo | None:
        """Return the error left by a failed open_connection()."""
        pass

    @abstractmethod
    def supports(self, feature: str) -> bool:
        """Check whether an optional feature is available."""
        pass

    @abstractmethod
    def free_string(self, ptr: Any) -> None:
        """Release a string the library handed over to the caller."""
        pass

    # ------------------------------------------------------------------
    # Device enumeration
    # ------------------------------------------------------------------

    @abstractmethod
    def num_of_devices(self, conn: Any, cap: str | None, flags: int) -> int:
        pass

    @abstractmethod
    def list_devices(
        self, conn: Any, cap: str | None, names: Any, maxnames: int, flags: int
    ) -> int:
        """Fill at most maxnames slots of names. Returns how many were written."""
        pass

    @abstractmethod
    def lookup_device_by_name(self, conn: Any, name: str) -> Any:
        pass

    def create_device_xml(self, conn: Any, xml: str, flags: int) -> Any:
        """Create a device from an XML description. Optional."""
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Per-device calls
    # ------------------------------------------------------------------

    @abstractmethod
    def device_get_name(self, dev: Any) -> str | None:
        pass

    @abstractmethod
    def device_get_parent(self, dev: Any) -> str | None:
        pass

    @abstractmethod
    def device_num_of_caps(self, dev: Any) -> int:
        pass

    @abstractmethod
    def device_list_caps(self, dev: Any, names: Any, maxnames: int) -> int:
        pass

    @abstractmethod
    def device_get_xml_desc(self, dev: Any, flags: int) -> str | None:
        pass

    @abstractmethod
    def device_detach(self, dev: Any) -> int:
        pass

    @abstractmethod
    def device_reattach(self, dev: Any) -> int:
        pass

    @abstractmethod
    def device_reset(self, dev: Any) -> int:
        pass

    def device_destroy(self, dev: Any) -> int:
        """Tear down a device's active configuration. Optional."""
        raise NotImplementedError

    @abstractmethod
    def device_free(self, dev: Any) -> int:
        pass
