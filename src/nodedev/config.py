"""
Runtime configuration.

Settings are read from the environment. Command-line options override them.

    NODEDEV_LIBVIRT_PATH   explicit path to libvirt.so
    LIBVIRT_DEFAULT_URI    hypervisor URI used when none is given
    NODEDEV_LOG_LEVEL      logging level name for the CLI (default WARNING)
"""

import os
from dataclasses import dataclass

DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class Settings:
    """
    Attributes:
        library_path: Path to the libvirt shared library, or None to search
        default_uri: Hypervisor URI, or None to let libvirt choose
        log_level: Logging level name
    """

    library_path: str | None = None
    default_uri: str | None = None
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        environ = os.environ if environ is None else environ
        return cls(
            library_path=environ.get("NODEDEV_LIBVIRT_PATH") or None,
            default_uri=environ.get("LIBVIRT_DEFAULT_URI") or None,
            log_level=(environ.get("NODEDEV_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        )
