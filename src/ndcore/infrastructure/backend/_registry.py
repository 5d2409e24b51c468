"""
Process-wide kernel dispatcher registry.

Dispatchers register themselves here by ``(DeviceType, SparseFormat)`` when
their module is imported; arrays resolve theirs once, at construction.
Looking up a device with no registered dispatcher raises
`DeviceNotSupportedError`.
"""

from typing import Any, Hashable

from ...domain._errors import DeviceNotSupportedError
from ...domain.utils._dispatch_registry import create_dispatch_registry


def _raise_not_supported(device: Any, fmt: Hashable) -> None:
    fmt_name = getattr(fmt, "value", fmt)
    raise DeviceNotSupportedError(f"{fmt_name} storage", str(device))


kernel_registry = create_dispatch_registry(trap_exception=_raise_not_supported)
