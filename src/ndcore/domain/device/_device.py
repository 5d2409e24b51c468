"""
Device abstraction utilities.

This module defines lightweight abstractions for representing the memory
location of an array in a backend-agnostic way. It provides:

- `DeviceType`: an enumeration of supported location categories
- `Device`: a concrete location descriptor that validates and normalizes
  user-facing device strings such as "cpu" or "gpu:0"

A device is only a tag. Placement policy and the memory behind a tag belong
to whichever kernel dispatcher is registered for the device type.
"""

from enum import Enum
import re


class DeviceType(Enum):
    """
    Enumeration of supported device categories.

    This enum represents the *type* of a location, independent of any
    specific device index or backend implementation.

    Attributes
    ----------
    CPU : DeviceType
        Host memory.
    GPU : DeviceType
        Accelerator memory (one per device index).
    """

    CPU = "cpu"
    GPU = "gpu"


class Device:
    """
    Concrete location descriptor.

    This class encapsulates a normalized representation of a location,
    including its type (CPU or GPU) and, for GPU devices, a device index
    (e.g., gpu:0).

    Parameters
    ----------
    device : str
        Device identifier string, case-insensitive. Must be either:
        - "cpu"
        - "gpu:<index>" (or the alias "cuda:<index>"), where <index> is a
          non-negative integer

    Raises
    ------
    ValueError
        If the provided device string does not match the supported formats.

    Notes
    -----
    `__slots__` is used to prevent dynamic attribute creation and reduce
    per-instance memory overhead.
    """

    __slots__ = ("type", "index")

    _GPU_PATTERN = re.compile(r"^(?:gpu|cuda):(\d+)$")

    def __init__(self, device: "str | Device"):
        """
        Initialize a Device instance from a device string.

        Parameters
        ----------
        device : str or Device
            Device identifier string ("cpu" or "gpu:<index>"), or another
            Device to copy.

        Raises
        ------
        ValueError
            If the device string is invalid or unsupported.
        """
        if isinstance(device, Device):
            self.type = device.type
            self.index = device.index
            return

        text = str(device).strip().lower()
        if text == "cpu":
            self.type = DeviceType.CPU
            self.index = None
        else:
            m = self._GPU_PATTERN.match(text)
            if not m:
                raise ValueError(
                    f"Invalid device '{device}'. Expected 'cpu' or 'gpu:<index>'"
                )
            self.type = DeviceType.GPU
            self.index = int(m.group(1))

    def __str__(self) -> str:
        """
        Return the canonical string representation of the device.

        Returns
        -------
        str
            "cpu" for CPU devices, or "gpu:<index>" for GPU devices.
        """
        return "cpu" if self.type is DeviceType.CPU else f"gpu:{self.index}"

    def __repr__(self) -> str:
        return f"Device('{self}')"

    def __eq__(self, other: object) -> bool:
        """
        Compare two Device objects for semantic equality.

        Devices are considered equal if they represent the same device type
        and (for GPU devices) the same device index.
        """
        if not isinstance(other, Device):
            return NotImplemented
        return (self.type, self.index) == (other.type, other.index)

    def __hash__(self) -> int:
        return hash((self.type, self.index))

    def is_cpu(self) -> bool:
        """
        Check whether this device represents host memory.

        Returns
        -------
        bool
            True if the device type is CPU, False otherwise.
        """
        return self.type is DeviceType.CPU

    def is_gpu(self) -> bool:
        """
        Check whether this device represents an accelerator.

        Returns
        -------
        bool
            True if the device type is GPU, False otherwise.
        """
        return self.type is DeviceType.GPU
