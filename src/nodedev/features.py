"""
Optional libvirt features.

Some node device calls only exist in newer libvirt builds. Rather than
failing at call time, the operations backed by them are hidden when the
loaded library does not export the symbol: accessing the method raises
NotSupportedError, which is also an AttributeError, so callers can probe
with hasattr() or ask supports() up front.
"""

import functools
import types
from dataclasses import dataclass

from nodedev.errors import NotSupportedError

FEATURE_CREATE_XML = "create_xml"
FEATURE_DESTROY = "destroy"


@dataclass
class Feature:
    """
    Describes an optional libvirt feature.

    Attributes:
        name: Feature name used with supports() (e.g., "create_xml")
        symbol: The libvirt function that provides it
        description: Human-readable description of what it enables
        available: Whether the loaded library has it (None if not queried yet)
    """

    name: str
    symbol: str
    description: str
    available: bool | None = None


# All optional features, keyed by name
FEATURES = {
    FEATURE_CREATE_XML: Feature(
        name=FEATURE_CREATE_XML,
        symbol="virNodeDeviceCreateXML",
        description="Create transient node devices (e.g. NPIV vHBAs) from XML",
    ),
    FEATURE_DESTROY: Feature(
        name=FEATURE_DESTROY,
        symbol="virNodeDeviceDestroy",
        description="Destroy node devices created with virNodeDeviceCreateXML",
    ),
}


def query_features(native) -> list[Feature]:
    """
    Query all known features from a native backend.

    Args:
        native: A NativeAPI instance.

    Returns:
        List of Feature objects with availability filled in.
    """
    return [
        Feature(
            name=feature.name,
            symbol=feature.symbol,
            description=feature.description,
            available=native.supports(feature.name),
        )
        for feature in FEATURES.values()
    ]


def format_features(features: list[Feature]) -> str:
    """Format features for display."""
    lines = []
    max_name_len = max(len(feature.name) for feature in features)

    for feature in features:
        if feature.available is None:
            value_str = "not queried"
        elif feature.available:
            value_str = "available"
        else:
            value_str = "not supported"

        name_padded = feature.name.ljust(max_name_len)
        lines.append(f"  {name_padded}  = {value_str}")
        lines.append(f"    └─ {feature.symbol}: {feature.description}")

    return "\n".join(lines)


class _OptionalOperation:
    """Method descriptor that only resolves when its feature is supported."""

    def __init__(self, feature: str, func):
        self.feature = feature
        self.func = func
        self.name = func.__name__
        functools.update_wrapper(self, func)

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        if not instance.supports(self.feature):
            symbol = FEATURES[self.feature].symbol
            raise NotSupportedError(
                f"{type(instance).__name__}.{self.name} is not available: "
                f"the loaded libvirt does not provide {symbol}",
                function_name=symbol,
            )
        return types.MethodType(self.func, instance)


def optional_operation(feature: str):
    """
    Mark a method as depending on an optional feature.

    The owning class must provide supports(feature) -> bool.

    Example:
        class Connection:
            @optional_operation(FEATURE_CREATE_XML)
            def create_device_xml(self, xml, flags=0):
                ...
    """
    if feature not in FEATURES:
        raise ValueError(f"Unknown feature: {feature}")

    def decorator(func):
        return _OptionalOperation(feature, func)

    return decorator
