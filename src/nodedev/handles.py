"""
Native handle ownership.

libvirt hands out raw pointers that the caller must release exactly once,
and it cannot detect reuse of a pointer after it was released. NativeHandle
owns one such pointer together with a liveness flag that is checked before
every use, so a freed handle never reaches the native layer again.

Releasing twice is a no-op: the second release() returns without calling
into libvirt.
"""

import weakref
from typing import Any, Callable

from nodedev.errors import UseAfterFreeError


class NativeHandle:
    """
    An owned native pointer with a liveness flag.

    Usage:
        handle = NativeHandle(ptr, "NodeDevice")
        native.device_get_name(handle.get())
        handle.release(native.device_free)
        handle.get()  # raises UseAfterFreeError
    """

    def __init__(self, raw: Any, kind: str):
        """
        Take ownership of a native pointer.

        Args:
            raw: The pointer returned by libvirt. Must not be NULL.
            kind: Name of the wrapped object type, used in error messages.
        """
        if raw is None:
            raise ValueError(f"Cannot wrap a NULL {kind} handle")
        self._raw = raw
        self._kind = kind
        self._live = True

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def live(self) -> bool:
        return self._live

    def get(self) -> Any:
        """
        Get the raw pointer for a native call.

        Raises:
            UseAfterFreeError: If the handle was already released.
        """
        if not self._live:
            raise UseAfterFreeError(f"{self._kind} has been freed")
        return self._raw

    def release(self, free_fn: Callable[[Any], int | None]) -> bool:
        """
        Release the pointer with free_fn, at most once.

        Args:
            free_fn: The native free function. A negative return value means
                the release failed; the handle then stays live.

        Returns:
            True if the pointer was released by this call, False if it had
            already been released before. Also False if free_fn failed.
        """
        if not self._live:
            return False

        result = free_fn(self._raw)
        if result is not None and result < 0:
            return False

        self._live = False
        self._raw = None
        return True

    def __repr__(self) -> str:
        state = "live" if self._live else "freed"
        return f"<NativeHandle {self._kind} {state}>"


class HandleRegistry:
    """
    Tracks the handles obtained through one connection.

    Handles are held weakly: dropping the last reference to a wrapper lets
    it be collected even if it was never freed explicitly.
    """

    def __init__(self):
        self._handles: weakref.WeakSet[NativeHandle] = weakref.WeakSet()

    def register(self, handle: NativeHandle) -> NativeHandle:
        self._handles.add(handle)
        return handle

    def is_live(self, handle: NativeHandle) -> bool:
        return handle in self._handles and handle.live

    def mark_freed(self, handle: NativeHandle) -> None:
        """Forget a handle once it has been released. Idempotent."""
        self._handles.discard(handle)

    def live_handles(self) -> list[NativeHandle]:
        return [handle for handle in self._handles if handle.live]

    def __len__(self) -> int:
        return len(self.live_handles())
