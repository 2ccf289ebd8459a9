"""
Count-then-fetch list retrieval.

libvirt's older enumeration calls do not return a self-describing list.
The caller first asks how many entries exist, allocates a `char *[]` buffer
of that size, and asks libvirt to fill it. Each filled slot is a string the
caller now owns and must free.

The set of devices can change between the two calls. The fetch call may
then write fewer entries than the buffer holds, so only the number of
entries it reports is consumed, never the original count.
"""

import logging
from typing import Any, Callable

from nodedev.errors import RetrieveError, translate_error
from nodedev.native.bindings import ffi

logger = logging.getLogger(__name__)


def allocate_names(count: int):
    """Allocate a zeroed `char *[count]` buffer."""
    return ffi.new("char *[]", count)


def release_names(names, capacity: int, free_string: Callable[[Any], None]) -> None:
    """Free every string libvirt stored in the buffer."""
    for i in range(capacity):
        if names[i] != ffi.NULL:
            free_string(names[i])
            names[i] = ffi.NULL


def retrieve_names(
    count: Callable[[], int],
    fetch: Callable[[Any, int], int],
    free_string: Callable[[Any], None],
    count_op: str,
    fetch_op: str,
    connection=None,
) -> list[str]:
    """
    Run the count-then-fetch protocol.

    Args:
        count: Returns the number of entries, negative on failure.
        fetch: Called as fetch(names, capacity); fills the buffer and returns
            how many entries it wrote, negative on failure.
        free_string: Releases one string written by fetch.
        count_op: libvirt function name behind count, for errors.
        fetch_op: libvirt function name behind fetch, for errors.
        connection: Connection whose last error describes failures.

    Returns:
        The names in the order libvirt returned them.

    Raises:
        RetrieveError: If either step fails.
    """
    num = count()
    if num < 0:
        raise translate_error(RetrieveError, count_op, connection)
    if num == 0:
        # Don't call the fetch function with an empty buffer
        return []

    names = allocate_names(num)
    written = fetch(names, num)
    if written < 0:
        error = translate_error(RetrieveError, fetch_op, connection)
        release_names(names, num, free_string)
        raise error

    if written < num:
        logger.debug(f"{fetch_op} returned {written} of {num} entries")

    try:
        return [
            ffi.string(names[i]).decode("utf-8")
            for i in range(min(written, num))
            if names[i] != ffi.NULL
        ]
    finally:
        release_names(names, num, free_string)
