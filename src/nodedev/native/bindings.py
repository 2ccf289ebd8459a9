"""
Low-level cffi bindings for the libvirt node device API.

This module provides Python access to the parts of libvirt we need through
cffi in ABI mode. libvirt exposes node devices through opaque pointers that
are owned by the caller:

- virConnectPtr: a session with a hypervisor driver
- virNodeDevicePtr: one device on the host, obtained through a connection

Strings returned by the list and XML calls are heap allocated by libvirt and
must be released with free() from the C library.
"""

import ctypes.util
import logging
import os

from cffi import FFI

from nodedev.config import Settings

logger = logging.getLogger(__name__)

# Create the FFI instance that we'll use throughout
ffi = FFI()

# These declarations come from libvirt's public headers:
# - libvirt/libvirt-host.h
# - libvirt/libvirt-nodedev.h
# - libvirt/virterror.h
ffi.cdef("""
    // Opaque handle types
    typedef struct _virConnect virConnect;
    typedef virConnect *virConnectPtr;
    typedef struct _virNodeDevice virNodeDevice;
    typedef virNodeDevice *virNodeDevicePtr;

    // Error record kept per connection (and per thread) by libvirt.
    // The enum fields are ints in the C ABI.
    typedef struct _virError {
        int code;            // virErrorNumber
        int domain;          // virErrorDomain, the subsystem that failed
        char *message;       // Human-readable message
        int level;           // virErrorLevel
        virConnectPtr conn;  // Deprecated, always NULL
        void *dom;           // Deprecated
        char *str1;
        char *str2;
        char *str3;
        int int1;
        int int2;
        void *net;           // Deprecated
    } virError;
    typedef virError *virErrorPtr;

    // Connections
    virConnectPtr virConnectOpen(const char *name);
    virConnectPtr virConnectOpenReadOnly(const char *name);
    int virConnectClose(virConnectPtr conn);

    // Errors
    virErrorPtr virConnGetLastError(virConnectPtr conn);
    virErrorPtr virGetLastError(void);

    // Node device enumeration
    int virNodeNumOfDevices(virConnectPtr conn, const char *cap,
                            unsigned int flags);
    int virNodeListDevices(virConnectPtr conn, const char *cap,
                           char **const names, int maxnames,
                           unsigned int flags);
    virNodeDevicePtr virNodeDeviceLookupByName(virConnectPtr conn,
                                               const char *name);
    virNodeDevicePtr virNodeDeviceCreateXML(virConnectPtr conn,
                                            const char *xmlDesc,
                                            unsigned int flags);

    // Node device queries
    const char *virNodeDeviceGetName(virNodeDevicePtr dev);
    const char *virNodeDeviceGetParent(virNodeDevicePtr dev);
    int virNodeDeviceNumOfCaps(virNodeDevicePtr dev);
    int virNodeDeviceListCaps(virNodeDevicePtr dev, char **const names,
                              int maxnames);
    char *virNodeDeviceGetXMLDesc(virNodeDevicePtr dev, unsigned int flags);

    // Node device actions. "Dettach" is the real (misspelled) symbol name.
    int virNodeDeviceDettach(virNodeDevicePtr dev);
    int virNodeDeviceReAttach(virNodeDevicePtr dev);
    int virNodeDeviceReset(virNodeDevicePtr dev);
    int virNodeDeviceDestroy(virNodeDevicePtr dev);
    int virNodeDeviceFree(virNodeDevicePtr dev);

    // C library
    void free(void *ptr);
""")

# libc is always there; None means "the C library"
libc = ffi.dlopen(None)

_lib = None


def find_library(settings: Settings | None = None) -> str:
    """
    Find the libvirt shared library.

    An explicit path from the settings (NODEDEV_LIBVIRT_PATH) wins. Otherwise
    the system loader search is used, falling back to the soname.

    Raises:
        OSError: If an explicitly configured path does not exist.
    """
    settings = settings or Settings.from_env()
    if settings.library_path:
        if not os.path.exists(settings.library_path):
            raise OSError(f"libvirt library not found at {settings.library_path}")
        return settings.library_path

    found = ctypes.util.find_library("virt")
    if found:
        return found

    # Let dlopen search LD_LIBRARY_PATH and the default paths itself
    return "libvirt.so.0"


def get_lib():
    """
    Get the loaded libvirt library, loading it on first use.

    Loading is deferred so that importing this package (and allocating
    buffers with ffi) works on machines without libvirt installed.
    """
    global _lib
    if _lib is None:
        path = find_library()
        logger.debug(f"Loading libvirt from {path}")
        _lib = ffi.dlopen(path)
    return _lib


def has_symbol(lib, symbol: str) -> bool:
    """
    Check whether a declared function is exported by the loaded library.

    cffi raises AttributeError when a function declared in cdef() is not
    present in the shared object, which is how older libvirt builds without
    virNodeDeviceCreateXML or virNodeDeviceDestroy show up.
    """
    try:
        getattr(lib, symbol)
    except AttributeError:
        return False
    return True
