"""
Concrete array value.

`NDArray` is a thin handle: it records the shape, data type, device and
storage format of an array, owns one `BufferHandle` issued by the host
allocator, and holds a reference to the kernel dispatcher that serves its
``(device type, format)`` pair. It never branches on device or format
itself; every kernel call goes through the dispatcher.

The operation surface is split across mixins:

- arithmetic (copy and in-place forms, Python operators, matrix product),
- comparison and logical predicates,
- reductions and derived predicates (``all``/``any``/``none``),
- element-wise math,
- structural operations (copy-only),
- indexing (get/set with `NDIndex`),
- autograd hooks.

This module provides the core: construction, metadata, lifetime and scope
membership, device/type conversion, host transfer and encoding.
"""

from __future__ import annotations

import weakref
from typing import Any, BinaryIO, Optional, Sequence, Union

import numpy as np

from ...domain._dtype import DataType
from ...domain._errors import (
    DeviceMismatchError,
    InvalidConversionError,
    InvalidIndexError,
    LifetimeViolationError,
    ShapeMismatchError,
)
from ...domain._formats import SparseFormat
from ...domain._shape import Shape
from ...domain.device._device import Device
from ..autograd._gradients import gradient_registry
from ..autograd._recorder import get_recorder
from ..backend import kernel_registry, host_allocator
from ..backend._allocator import BufferHandle
from ..backend._dtypes import from_numpy_dtype, to_numpy_dtype
from ..config._settings import get_settings
from ..scope._scope import ResourceScope, active_scope, release_leaked, scope_of
from ._array_context import Context
from .mixins import _ArrayAllMixin

Number = Union[bool, int, float]

# Sentinel for "attach to the active scope, if any".
_ACTIVE = object()


class NDArray(_ArrayAllMixin):
    """
    N-dimensional array value.

    Arrays are created by an `ArrayFactory` (or returned by operations on
    other arrays); the constructor is internal.

    Notes
    -----
    - Shape, data type and storage format are fixed for the lifetime of the
      array. Only `as_in_device(copy=False)` rebinds the device.
    - Every operation on a closed array raises `LifetimeViolationError`.
    - Results of operations join the receiver's scope, or the active scope
      when the receiver is unscoped.
    """

    def __init__(
        self,
        handle: BufferHandle,
        shape: Shape,
        dtype: DataType,
        device: Device,
        sparse_format: SparseFormat,
        dispatcher: Any,
    ) -> None:
        self._handle = handle
        self._shape = shape
        self._dtype = dtype
        self._device = device
        self._format = sparse_format
        self._dispatcher = dispatcher
        self._ctx: Optional[Context] = None
        self._finalizer = weakref.finalize(
            self, release_leaked, handle, get_settings().warn_on_leak
        )
        self._finalizer.atexit = False

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def _from_storage(
        cls,
        storage: Any,
        shape: Shape,
        dtype: DataType,
        device: Device,
        sparse_format: SparseFormat = SparseFormat.DENSE,
        scope: Any = _ACTIVE,
    ) -> "NDArray":
        dispatcher = kernel_registry.resolve(device, sparse_format)
        out = cls(
            host_allocator.allocate(storage),
            shape,
            dtype,
            device,
            sparse_format,
            dispatcher,
        )
        if scope is _ACTIVE:
            scope = active_scope()
        if scope is not None:
            out.attach(scope)
        return out

    @classmethod
    def _from_host(
        cls,
        values: np.ndarray,
        device: Union[Device, str, None] = None,
        sparse_format: SparseFormat = SparseFormat.DENSE,
        scope: Any = _ACTIVE,
    ) -> "NDArray":
        """
        Wrap a host array, converting it to `sparse_format` storage.
        """
        values = np.asarray(values)
        device = get_settings().device if device is None else Device(device)
        dtype = from_numpy_dtype(values.dtype)
        dispatcher = kernel_registry.resolve(device, sparse_format)
        return cls._from_storage(
            dispatcher.from_host(values),
            Shape(values.shape),
            dtype,
            device,
            sparse_format,
            scope,
        )

    def _result_scope(self) -> Any:
        own = scope_of(self._handle)
        return own if own is not None else _ACTIVE

    def _new(
        self, values: np.ndarray, sparse_format: SparseFormat = SparseFormat.DENSE
    ) -> "NDArray":
        """Wrap an operation result on this array's device and scope."""
        return type(self)._from_host(
            values, self._device, sparse_format, self._result_scope()
        )

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def dtype(self) -> DataType:
        return self._dtype

    @property
    def device(self) -> Device:
        return self._device

    @property
    def sparse_format(self) -> SparseFormat:
        return self._format

    @property
    def handle(self) -> BufferHandle:
        return self._handle

    @property
    def rank(self) -> int:
        return self._shape.rank

    @property
    def nbytes(self) -> int:
        return self._dispatcher.nbytes(self._storage())

    @property
    def is_closed(self) -> bool:
        return not self._handle.is_live

    @property
    def scope(self) -> Optional[ResourceScope]:
        """The scope this array is attached to, if any."""
        return scope_of(self._handle)

    def is_sparse(self) -> bool:
        return self._format.is_sparse()

    def size(self, axis: Optional[int] = None) -> int:
        """Total element count, or the extent of `axis`."""
        if axis is None:
            return self._shape.size
        return self._shape.dimension(axis)

    def is_empty(self) -> bool:
        return self._shape.size == 0

    def equal_shapes(self, other: "NDArray") -> bool:
        return self._shape == other.shape

    def __len__(self) -> int:
        if self._shape.is_scalar():
            raise TypeError("len() of a rank-0 array")
        return self._shape[0]

    # ------------------------------------------------------------------
    # Internal access
    # ------------------------------------------------------------------
    def _storage(self) -> Any:
        if not self._handle.is_live:
            raise LifetimeViolationError("operation on a closed array")
        return self._handle.payload

    def _host(self) -> np.ndarray:
        """Dense host values (a view for dense storage, a copy for sparse)."""
        return self._dispatcher.to_host(self._storage())

    def _mutable_host(self, op: str) -> np.ndarray:
        if self._format.is_sparse():
            raise InvalidConversionError(
                f"{op}: in-place operations need dense storage, got {self._format.value}"
            )
        return self._host()

    def _assign_host(self, values: np.ndarray) -> None:
        """Overwrite the contents of the buffer, whatever its format."""
        values = np.asarray(values, dtype=to_numpy_dtype(self._dtype))
        if self._format.is_sparse():
            self._handle.replace(self._dispatcher.from_host(values))
        else:
            np.copyto(self._host(), values, casting="unsafe")

    def _check_device(self, other: "NDArray") -> None:
        if other.device != self._device:
            raise DeviceMismatchError(str(self._device), str(other.device))

    def _operand(self, other: Any):
        """
        Normalize a right-hand operand.

        Returns
        -------
        tuple
            ``(host value, DataType or None, Shape, NDArray or None)``. The
            data type is None for Python scalars, which promote weakly.
        """
        if isinstance(other, NDArray):
            self._check_device(other)
            return other._host(), other.dtype, other.shape, other
        if isinstance(other, np.ndarray):
            return other, from_numpy_dtype(other.dtype), Shape(other.shape), None
        if isinstance(other, np.generic):
            other = other.item()
        if isinstance(other, (bool, int, float)):
            return other, None, Shape(), None
        raise InvalidConversionError(
            f"unsupported operand type {type(other).__name__!r}"
        )

    def _peer(self, other: Any, op: str) -> "NDArray":
        """Require `other` to be a live array on this device."""
        if not isinstance(other, NDArray):
            raise InvalidConversionError(
                f"{op} expects an NDArray, got {type(other).__name__!r}"
            )
        self._check_device(other)
        other._storage()
        return other

    def _promote(self, other_dtype: Optional[DataType], other_value: Any) -> DataType:
        if other_dtype is None:
            return DataType.promote_scalar(self._dtype, other_value)
        return DataType.promote(self._dtype, other_dtype)

    def _broadcast_shape(self, op: str, other: Shape) -> Shape:
        try:
            return Shape.broadcast(self._shape, other)
        except ShapeMismatchError:
            raise ShapeMismatchError(op, self._shape, other) from None

    def _requires_grad(self) -> bool:
        return self._ctx is not None or gradient_registry.requires_grad(self)

    def _record(
        self,
        out: "NDArray",
        parents: Sequence["NDArray"],
        backward_fn: Any,
        op: str,
        **meta: Any,
    ) -> "NDArray":
        """Attach a backward context to `out` when recording is on."""
        if not get_recorder().is_recording():
            return out
        if not any(p._requires_grad() for p in parents):
            return out
        out._ctx = Context(
            parents=tuple(parents), backward_fn=backward_fn, op=op, saved_meta=meta
        )
        return out

    # ------------------------------------------------------------------
    # Scope membership and lifetime
    # ------------------------------------------------------------------
    def attach(self, scope: ResourceScope) -> "NDArray":
        """
        Register this array with `scope`, detaching it from any prior scope.

        Attaching to the scope that already owns the array is a no-op.
        """
        self._storage()
        if self._handle.owner == scope.id:
            return self
        if scope.is_closed:
            raise LifetimeViolationError(f"cannot attach to closed scope {scope.name!r}")
        self.detach()
        scope._adopt(self._handle)
        return self

    def detach(self) -> "NDArray":
        """
        Remove this array from its scope; no effect if it has none.

        A detached array is released only by an explicit `close()` (or, as a
        reported leak, when it is garbage-collected).
        """
        current = scope_of(self._handle)
        if current is not None:
            current._forget(self._handle)
        else:
            self._handle.owner = None
        return self

    def close(self) -> None:
        """
        Release the buffer.

        Raises
        ------
        LifetimeViolationError
            If the array was already closed (directly or by its scope).
        """
        if not self._handle.is_live:
            raise LifetimeViolationError("array closed twice")
        self.detach()
        self._handle.release()
        self._ctx = None
        self._finalizer.detach()

    def _release_quietly(self) -> None:
        if self._handle.is_live:
            self.close()

    def __enter__(self) -> "NDArray":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._release_quietly()

    # ------------------------------------------------------------------
    # Type, device and layout conversion
    # ------------------------------------------------------------------
    def as_type(self, dtype: Union[DataType, str], copy: bool = True) -> "NDArray":
        """
        Convert to another data type.

        With ``copy=False`` the receiver itself is returned when it already has
        the requested type.

        Raises
        ------
        InvalidConversionError
            For numeric-to-boolean conversion.
        """
        target = DataType.of(dtype)
        if not self._dtype.can_convert_to(target):
            raise InvalidConversionError(
                f"cannot convert {self._dtype.value} to {target.value}; "
                "compare explicitly (e.g. neq(0)) to obtain a boolean array"
            )
        if target is self._dtype and not copy:
            return self
        values = self._dispatcher.astype(self._host(), to_numpy_dtype(target))
        return self._new(values, self._format)

    def as_in_device(self, device: Union[Device, str], copy: bool = True) -> "NDArray":
        """
        Move to `device`.

        With ``copy=True`` a new array is returned. With ``copy=False`` the
        receiver is returned: unchanged when already on `device`, otherwise
        rebound to the new device in place (same handle, scope and gradient).

        Raises
        ------
        DeviceNotSupportedError
            If no dispatcher is registered for the target device.
        """
        target = Device(device)
        if target == self._device:
            return self.dup() if copy else self
        dispatcher = kernel_registry.resolve(target, self._format)
        values = self._dispatcher.to_dense(self._storage())
        if copy:
            return type(self)._from_host(
                values, target, self._format, self._result_scope()
            )
        self._handle.replace(dispatcher.from_host(values))
        self._device = target
        self._dispatcher = dispatcher
        return self

    def to_dense(self) -> "NDArray":
        """A new dense array with the same shape and data type."""
        return self._new(self._dispatcher.to_dense(self._storage()))

    def to_sparse(self, sparse_format: SparseFormat) -> "NDArray":
        """A new array stored in `sparse_format`."""
        return self._new(self._dispatcher.to_dense(self._storage()), SparseFormat(sparse_format))

    def as_matrix(self) -> np.ndarray:
        """
        Copy of a rank-2 array as a 2-D host matrix.

        Raises
        ------
        InvalidConversionError
            If the array is not rank 2.
        """
        if self._shape.rank != 2:
            raise InvalidConversionError(
                f"as_matrix requires a rank-2 array, got shape {self._shape}"
            )
        return self.to_numpy()

    # ------------------------------------------------------------------
    # Host transfer
    # ------------------------------------------------------------------
    def to_numpy(self) -> np.ndarray:
        """Dense host copy."""
        return self._dispatcher.to_dense(self._storage())

    def to_list(self) -> Any:
        """Nested Python lists (a plain number for rank 0)."""
        return self.to_numpy().tolist()

    def to_array(self) -> list:
        """Flat list of Python numbers in row-major order."""
        return self.to_numpy().reshape(-1).tolist()

    def item(self) -> Number:
        """
        The single element as a Python number.

        Raises
        ------
        InvalidIndexError
            If the array does not hold exactly one element.
        """
        if self._shape.size != 1:
            raise InvalidIndexError(
                f"item() needs exactly one element, array has shape {self._shape}"
            )
        return self.to_numpy().reshape(-1)[0].item()

    def set_data(self, values: Any) -> None:
        """
        Overwrite every element from a flat or shaped sequence.

        Raises
        ------
        ShapeMismatchError
            If the number of values differs from the array size.
        InvalidConversionError
            If numeric values are written into a boolean array.
        """
        self._storage()
        data = np.asarray(values)
        if data.size != self._shape.size:
            raise ShapeMismatchError("set_data", data.shape, self._shape)
        if data.size and not from_numpy_dtype(data.dtype).can_convert_to(self._dtype):
            raise InvalidConversionError(
                f"cannot store {data.dtype.name} values in a {self._dtype.value} array"
            )
        self._assign_host(data.reshape(self._shape.dims))

    def dup(self) -> "NDArray":
        """Deep copy with the same shape, type, device and format."""
        return type(self)._from_storage(
            self._dispatcher.copy(self._storage()),
            self._shape,
            self._dtype,
            self._device,
            self._format,
            self._result_scope(),
        )

    def copy_to(self, other: "NDArray") -> None:
        """
        Copy this array's values into `other`.

        Raises
        ------
        ShapeMismatchError
            If the shapes differ.
        InvalidConversionError
            If the values cannot be converted to `other`'s data type.
        """
        if other.shape != self._shape:
            raise ShapeMismatchError("copy_to", self._shape, other.shape)
        if not self._dtype.can_convert_to(other.dtype):
            raise InvalidConversionError(
                f"cannot convert {self._dtype.value} to {other.dtype.value}"
            )
        other._storage()
        other._assign_host(self.to_numpy())

    def _like(self, values: np.ndarray) -> "NDArray":
        return self._new(values, self._format)

    def zeros_like(self) -> "NDArray":
        """Zeros with this array's shape, type, device and format."""
        self._storage()
        return self._like(np.zeros(self._shape.dims, dtype=to_numpy_dtype(self._dtype)))

    def ones_like(self) -> "NDArray":
        """Ones with this array's shape, type, device and format."""
        self._storage()
        return self._like(np.ones(self._shape.dims, dtype=to_numpy_dtype(self._dtype)))

    def like(self) -> "NDArray":
        """Uninitialized array with this array's shape, type, device and format."""
        self._storage()
        return self._like(np.empty(self._shape.dims, dtype=to_numpy_dtype(self._dtype)))

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------
    def encode(self) -> bytes:
        """
        Serialize the full state (type, shape, format, device, values).

        The blob is decoded by `ArrayFactory.decode`.
        """
        from ..encoding._codec import encode_array

        return encode_array(self)

    def encode_to(self, stream: BinaryIO) -> int:
        """Write `encode()` to a binary stream and return the byte count."""
        blob = self.encode()
        stream.write(blob)
        return len(blob)

    # ------------------------------------------------------------------
    # Representation
    # ------------------------------------------------------------------
    def __repr__(self) -> str:
        head = (
            f"shape={self._shape}, dtype={self._dtype.value}, "
            f"device={self._device}, format={self._format.value}"
        )
        if not self._handle.is_live:
            return f"NDArray({head}, closed)"
        body = np.array2string(self.to_numpy(), separator=", ", threshold=100)
        return f"NDArray({head})\n{body}"
