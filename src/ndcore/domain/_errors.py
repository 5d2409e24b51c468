"""
Array-contract exceptions for ndcore.

This module defines the error taxonomy raised by array operations. Each
failure mode maps to exactly one exception class so callers can tell them
apart by type:

- `ShapeMismatchError`: broadcast incompatibility, reshape size mismatch,
  in-place shape change, concat/stack/split shape mismatch.
- `InvalidIndexError`: a selection that does not resolve to what the caller
  asked for, or an axis argument out of range.
- `InvalidConversionError`: unsupported data-type conversion, a 2-D view of
  a non-2-D array, or an undecodable blob.
- `LifetimeViolationError`: double close, or use of an array after its
  buffer has been released.

Every class also derives from `ArrayError`, and from the closest builtin
exception (`ValueError`, `IndexError`, ...), so both styles of `except`
clause work.

Device errors follow the same pattern and fail fast when an operation is
invoked on a device without a registered dispatcher, or when operands
reside on different devices.
"""


class ArrayError(Exception):
    """
    Common base class for every error raised by the array contract.

    Catching `ArrayError` catches all ndcore contract violations while still
    letting unrelated exceptions propagate.
    """


class ShapeMismatchError(ArrayError, ValueError):
    """
    Raised when operand shapes violate a shape contract.

    Attributes
    ----------
    op : str
        The operation that rejected the shapes (e.g., "add", "reshape").
    shapes : tuple
        The offending shapes, in argument order.
    """

    def __init__(self, op: str, *shapes: object, detail: str = "") -> None:
        """
        Initialize the ShapeMismatchError.

        Parameters
        ----------
        op : str
            Name of the operation that failed.
        *shapes : object
            Shapes involved in the failure.
        detail : str, optional
            Additional human-readable explanation.
        """
        rendered = " vs ".join(str(tuple(s)) for s in shapes)
        msg = f"{op}: shape mismatch {rendered}" if rendered else f"{op}: shape mismatch"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)
        self.op = op
        self.shapes = shapes


class InvalidIndexError(ArrayError, IndexError):
    """
    Raised when an index expression or axis argument cannot be resolved.

    Examples are a malformed textual index, a point selector outside its
    axis, an axis argument beyond the array rank, or a selection that was
    required to address a single element but does not.
    """


class InvalidConversionError(ArrayError, TypeError):
    """
    Raised when a data-type, layout, or encoding conversion is not possible.
    """


class LifetimeViolationError(ArrayError, RuntimeError):
    """
    Raised when an array's buffer lifetime contract is broken.

    This signals a lifetime-tracking bug in the caller: closing an array
    twice, or touching an array whose buffer was already released (either
    explicitly or by its owning scope).
    """


class GradientNotAttachedError(ArrayError, RuntimeError):
    """
    Raised when a gradient is requested from an array that has none attached.
    """


class DeviceNotSupportedError(ArrayError, RuntimeError):
    """
    Raised when an array operation is requested on a device that has no
    registered kernel dispatcher.

    Attributes
    ----------
    op : str
        The name of the operation that was attempted (e.g., "add", "alloc").
    device : str
        String representation of the device on which the operation
        was attempted.
    """

    def __init__(self, op: str, device: str) -> None:
        """
        Initialize the DeviceNotSupportedError.

        Parameters
        ----------
        op : str
            The operation name that is not supported on the given device.
        device : str
            The device identifier (e.g., "gpu:0").
        """
        super().__init__(f"{op} is not implemented for device '{device}'.")
        self.op = op
        self.device = device


class DeviceMismatchError(ArrayError, RuntimeError):
    """
    Raised when an operation is attempted between arrays on different devices.

    Arrays on different locations must be moved explicitly with
    `as_in_device` before they can be combined.
    """

    def __init__(self, device_a: str, device_b: str) -> None:
        """
        Initialize the DeviceMismatchError.

        Parameters
        ----------
        device_a : str
            Device identifier of the first operand.
        device_b : str
            Device identifier of the second operand.
        """
        super().__init__(f"Device mismatch: '{device_a}' vs '{device_b}'.")
        self.device_a = device_a
        self.device_b = device_b
