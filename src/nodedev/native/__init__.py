"""
Native interface layer.

This package provides the boundary between nodedev and the libvirt C
library:
- bindings: cffi declarations and library loading
- constants: libvirt error codes, flags and capability names
- base: NativeAPI, the primitives the lifecycle layer consumes
- libvirt: LibvirtNative, the cffi implementation of NativeAPI
"""

from .base import NativeAPI
from .libvirt import LibvirtNative

__all__ = ["NativeAPI", "LibvirtNative"]
