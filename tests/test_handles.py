"""
Test native handle ownership and the handle registry.
"""

import gc

import pytest

from nodedev.errors import UseAfterFreeError
from nodedev.handles import HandleRegistry, NativeHandle


class TestNativeHandle:
    def setup_method(self):
        self.released = []

    def free(self, raw):
        self.released.append(raw)
        return 0

    def test_get_returns_raw_pointer(self):
        handle = NativeHandle("ptr", "NodeDevice")
        assert handle.live
        assert handle.get() == "ptr"

    def test_null_pointer_rejected(self):
        with pytest.raises(ValueError):
            NativeHandle(None, "NodeDevice")

    def test_release_frees_once(self):
        handle = NativeHandle("ptr", "NodeDevice")

        assert handle.release(self.free) is True
        assert handle.release(self.free) is False

        assert self.released == ["ptr"]
        assert not handle.live

    def test_get_after_release_raises(self):
        handle = NativeHandle("ptr", "NodeDevice")
        handle.release(self.free)

        with pytest.raises(UseAfterFreeError, match="NodeDevice has been freed"):
            handle.get()

    def test_failed_release_keeps_handle_live(self):
        handle = NativeHandle("ptr", "NodeDevice")

        assert handle.release(lambda raw: -1) is False
        assert handle.live
        assert handle.get() == "ptr"

    def test_release_accepts_void_free_function(self):
        handle = NativeHandle("ptr", "Connection")
        assert handle.release(lambda raw: None) is True
        assert not handle.live

    def test_repr_shows_state(self):
        handle = NativeHandle("ptr", "NodeDevice")
        assert "live" in repr(handle)
        handle.release(self.free)
        assert "freed" in repr(handle)


class TestHandleRegistry:
    def test_register_and_count(self):
        registry = HandleRegistry()
        a = registry.register(NativeHandle("a", "NodeDevice"))
        b = registry.register(NativeHandle("b", "NodeDevice"))

        assert len(registry) == 2
        assert registry.is_live(a)
        assert registry.is_live(b)

    def test_mark_freed_is_idempotent(self):
        registry = HandleRegistry()
        handle = registry.register(NativeHandle("a", "NodeDevice"))
        handle.release(lambda raw: 0)

        registry.mark_freed(handle)
        registry.mark_freed(handle)

        assert not registry.is_live(handle)
        assert len(registry) == 0

    def test_released_handles_are_not_live(self):
        registry = HandleRegistry()
        handle = registry.register(NativeHandle("a", "NodeDevice"))
        handle.release(lambda raw: 0)

        assert registry.live_handles() == []

    def test_unknown_handle_is_not_live(self):
        registry = HandleRegistry()
        assert not registry.is_live(NativeHandle("a", "NodeDevice"))

    def test_handles_held_weakly(self):
        registry = HandleRegistry()
        registry.register(NativeHandle("a", "NodeDevice"))
        gc.collect()

        assert len(registry) == 0
