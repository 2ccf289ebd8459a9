"""
libvirt constants used by the node device layer.

These values come from the libvirt public headers:
- libvirt/virterror.h (error numbers, domains, levels)
- libvirt/libvirt-nodedev.h (flags and capability names)
"""

# ============================================================================
# Error levels (virErrorLevel)
# ============================================================================

VIR_ERR_NONE = 0
VIR_ERR_WARNING = 1
VIR_ERR_ERROR = 2

# ============================================================================
# Error numbers (virErrorNumber)
# ============================================================================
# Only the codes this package inspects or tests against.

VIR_ERR_OK = 0
VIR_ERR_INTERNAL_ERROR = 1
VIR_ERR_NO_SUPPORT = 3
VIR_ERR_XML_ERROR = 27
VIR_ERR_INVALID_NODE_DEVICE = 52
VIR_ERR_NO_NODE_DEVICE = 53
VIR_ERR_OPERATION_INVALID = 55

# ============================================================================
# Error domains (virErrorDomain)
# ============================================================================

VIR_FROM_NONE = 0
VIR_FROM_NODEDEV = 22

# ============================================================================
# Flags
# ============================================================================

# virNodeDeviceCreateXML: validate the XML document against the schema
VIR_NODE_DEVICE_CREATE_XML_VALIDATE = 1 << 0

# virNodeDeviceGetXMLDesc: dump the persistent (inactive) definition
VIR_NODE_DEVICE_XML_INACTIVE = 1 << 0

# ============================================================================
# Capability names
# ============================================================================
# Strings accepted as the `cap` filter of virNodeNumOfDevices and returned
# by virNodeDeviceListCaps.

NODE_DEVICE_CAPABILITIES = (
    "system",
    "pci",
    "usb_device",
    "usb",
    "net",
    "scsi_host",
    "scsi_target",
    "scsi",
    "storage",
    "fc_host",
    "vports",
    "scsi_generic",
    "drm",
    "mdev_types",
    "mdev",
    "ccw",
    "css",
    "vdpa",
    "ap_card",
    "ap_queue",
    "ap_matrix",
    "vpd",
)
