"""
Array factory.

`ArrayFactory` is the entry point for creating arrays from host data and for
the usual filled constructors. A factory carries a default device and data
type (from the runtime settings unless given), and every array it creates
attaches to the active `ResourceScope` of the calling thread, if any.

Type inference for `create`
---------------------------
- NumPy arrays keep their dtype.
- Python floats take the factory's default type.
- Python ints become ``INT64`` and bools become ``BOOLEAN``.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, Union

import numpy as np

from ...domain._dtype import DataType
from ...domain._errors import InvalidConversionError, ShapeMismatchError
from ...domain._formats import SparseFormat
from ...domain._shape import Shape
from ...domain.device._device import Device
from ..array._array import NDArray
from ..backend import kernel_registry
from ..backend._dtypes import from_numpy_dtype, to_numpy_dtype
from ..config._settings import get_settings
from ..encoding._codec import decode_array

ShapeLike = Union[Shape, Sequence[int], int]
DTypeLike = Union[DataType, str, type, None]


def _dims(shape: ShapeLike) -> tuple:
    if isinstance(shape, int):
        return (shape,)
    return Shape(shape).dims


class ArrayFactory:
    """
    Creates arrays on one device with one default data type.

    Parameters
    ----------
    device : Device or str, optional
        Device of created arrays. Defaults to the ``default_device`` setting,
        read at creation time.
    dtype : DataType or str, optional
        Default floating type. Defaults to the ``default_dtype`` setting.

    Examples
    --------
    >>> f = ArrayFactory()
    >>> x = f.create([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    >>> x.dtype
    <DataType.FLOAT32: 'float32'>
    """

    def __init__(
        self,
        device: Optional[Union[Device, str]] = None,
        dtype: DTypeLike = None,
    ) -> None:
        self._device = None if device is None else Device(device)
        self._dtype = None if dtype is None else DataType.of(dtype)

    @property
    def device(self) -> Device:
        return get_settings().device if self._device is None else self._device

    @property
    def dtype(self) -> DataType:
        return get_settings().dtype if self._dtype is None else self._dtype

    def __repr__(self) -> str:
        return f"ArrayFactory(device={self.device}, dtype={self.dtype.value})"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _resolve_dtype(self, dtype: DTypeLike) -> DataType:
        return self.dtype if dtype is None else DataType.of(dtype)

    def _infer(self, values: np.ndarray, explicit: bool) -> DataType:
        if explicit:
            return from_numpy_dtype(values.dtype)
        kind = values.dtype.kind
        if kind == "f":
            return self.dtype
        if kind in "iu":
            return DataType.INT64
        if kind == "b":
            return DataType.BOOLEAN
        raise InvalidConversionError(f"cannot create an array from {values.dtype} data")

    def _wrap(
        self, values: np.ndarray, sparse_format: SparseFormat = SparseFormat.DENSE
    ) -> NDArray:
        return NDArray._from_host(values, self.device, SparseFormat(sparse_format))

    # ------------------------------------------------------------------
    # From data
    # ------------------------------------------------------------------
    def create(
        self,
        data: Any,
        dtype: DTypeLike = None,
        shape: Optional[ShapeLike] = None,
        sparse_format: SparseFormat = SparseFormat.DENSE,
    ) -> NDArray:
        """
        Create an array from host data.

        Parameters
        ----------
        data : number, nested sequence, numpy.ndarray or NDArray
            Source values; they are copied.
        dtype : DataType or str, optional
            Element type; inferred from `data` when omitted.
        shape : sequence of int, optional
            Target shape for a flat buffer; the size must match.
        sparse_format : SparseFormat, optional
            Storage format of the result.

        Raises
        ------
        ShapeMismatchError
            If `shape` does not match the number of values.
        InvalidConversionError
            If the data cannot be represented in `dtype`.
        """
        if isinstance(data, NDArray):
            data = data.to_numpy()
        values = np.array(data, copy=True)
        if values.dtype == object:
            raise InvalidConversionError("ragged or non-numeric data")
        if dtype is None:
            target = self._infer(values, explicit=isinstance(data, np.ndarray))
        else:
            target = DataType.of(dtype)
            if values.size and not from_numpy_dtype(values.dtype).can_convert_to(target):
                raise InvalidConversionError(
                    f"cannot create a {target.value} array from {values.dtype.name} data"
                )
        values = values.astype(to_numpy_dtype(target), copy=False)
        if shape is not None:
            dims = _dims(shape)
            if Shape(dims).size != values.size:
                raise ShapeMismatchError("create", values.shape, dims)
            values = values.reshape(dims)
        return self._wrap(values, sparse_format)

    def create_csr(
        self,
        data: Any,
        indices: Any,
        indptr: Any,
        shape: ShapeLike,
        dtype: DTypeLike = None,
    ) -> NDArray:
        """
        Create a 2-D CSR array from its components.

        Raises
        ------
        InvalidConversionError
            If the components are inconsistent with `shape`.
        """
        return self._from_components(
            SparseFormat.CSR,
            {"data": data, "indices": indices, "indptr": indptr},
            shape,
            dtype,
        )

    def create_row_sparse(
        self, data: Any, indices: Any, shape: ShapeLike, dtype: DTypeLike = None
    ) -> NDArray:
        """
        Create a row-sparse array from its stored rows and their indices.
        """
        return self._from_components(
            SparseFormat.ROW_SPARSE, {"data": data, "indices": indices}, shape, dtype
        )

    def _from_components(
        self, fmt: SparseFormat, components: dict, shape: ShapeLike, dtype: DTypeLike
    ) -> NDArray:
        data = np.asarray(components["data"])
        target = self._infer(data, explicit=False) if dtype is None else DataType.of(dtype)
        dims = Shape(_dims(shape))
        device = self.device
        dispatcher = kernel_registry.resolve(device, fmt)
        storage = dispatcher.from_components(components, dims.dims, to_numpy_dtype(target))
        return NDArray._from_storage(storage, dims, target, device, fmt)

    def decode(self, blob: Union[bytes, str]) -> NDArray:
        """
        Rebuild an array from `NDArray.encode` output.

        The array is placed on this factory's device when one was given,
        otherwise on the device recorded in the blob.
        """
        return decode_array(blob, self._device)

    # ------------------------------------------------------------------
    # Filled constructors
    # ------------------------------------------------------------------
    def zeros(
        self,
        shape: ShapeLike,
        dtype: DTypeLike = None,
        sparse_format: SparseFormat = SparseFormat.DENSE,
    ) -> NDArray:
        np_dtype = to_numpy_dtype(self._resolve_dtype(dtype))
        return self._wrap(np.zeros(_dims(shape), dtype=np_dtype), sparse_format)

    def ones(
        self,
        shape: ShapeLike,
        dtype: DTypeLike = None,
        sparse_format: SparseFormat = SparseFormat.DENSE,
    ) -> NDArray:
        np_dtype = to_numpy_dtype(self._resolve_dtype(dtype))
        return self._wrap(np.ones(_dims(shape), dtype=np_dtype), sparse_format)

    def full(self, shape: ShapeLike, value: Any, dtype: DTypeLike = None) -> NDArray:
        """Array of `shape` with every element set to `value`."""
        target = self._resolve_dtype(dtype)
        if isinstance(value, bool):
            target = DataType.BOOLEAN if dtype is None else target
        elif target.is_boolean():
            raise InvalidConversionError("cannot fill a boolean array with a number")
        return self._wrap(np.full(_dims(shape), value, dtype=to_numpy_dtype(target)))

    def empty(self, shape: ShapeLike, dtype: DTypeLike = None) -> NDArray:
        """Uninitialized array; the contents are unspecified."""
        np_dtype = to_numpy_dtype(self._resolve_dtype(dtype))
        return self._wrap(np.empty(_dims(shape), dtype=np_dtype))

    def arange(
        self,
        start: Union[int, float],
        stop: Optional[Union[int, float]] = None,
        step: Union[int, float] = 1,
        dtype: DTypeLike = None,
    ) -> NDArray:
        """
        Evenly spaced values in ``[start, stop)``; ``arange(n)`` counts from 0.

        Integer arguments give ``INT64`` unless `dtype` is set.
        """
        if stop is None:
            start, stop = 0, start
        if step == 0:
            raise ValueError("arange step cannot be zero")
        if dtype is None:
            integral = all(isinstance(v, int) for v in (start, stop, step))
            target = DataType.INT64 if integral else self.dtype
        else:
            target = DataType.of(dtype)
        return self._wrap(np.arange(start, stop, step, dtype=to_numpy_dtype(target)))

    def linspace(
        self, start: float, stop: float, num: int, endpoint: bool = True, dtype: DTypeLike = None
    ) -> NDArray:
        if num < 0:
            raise ValueError(f"linspace needs a non-negative count, got {num}")
        np_dtype = to_numpy_dtype(self._resolve_dtype(dtype))
        return self._wrap(np.linspace(start, stop, num, endpoint=endpoint, dtype=np_dtype))

    def eye(self, rows: int, cols: Optional[int] = None, k: int = 0, dtype: DTypeLike = None) -> NDArray:
        """2-D array with ones on diagonal `k`."""
        np_dtype = to_numpy_dtype(self._resolve_dtype(dtype))
        return self._wrap(np.eye(rows, cols, k, dtype=np_dtype))

    def random_uniform(
        self,
        low: float,
        high: float,
        shape: ShapeLike,
        dtype: DTypeLike = None,
        seed: Optional[int] = None,
    ) -> NDArray:
        """Samples from ``U[low, high)``."""
        rng = np.random.default_rng(seed)
        values = rng.uniform(low, high, _dims(shape))
        return self._wrap(values.astype(to_numpy_dtype(self._resolve_dtype(dtype))))

    def random_normal(
        self,
        loc: float,
        scale: float,
        shape: ShapeLike,
        dtype: DTypeLike = None,
        seed: Optional[int] = None,
    ) -> NDArray:
        """Samples from ``N(loc, scale**2)``."""
        rng = np.random.default_rng(seed)
        values = rng.normal(loc, scale, _dims(shape))
        return self._wrap(values.astype(to_numpy_dtype(self._resolve_dtype(dtype))))

    # ------------------------------------------------------------------
    # Like-constructors
    # ------------------------------------------------------------------
    def zeros_like(self, array: NDArray) -> NDArray:
        return array.zeros_like()

    def ones_like(self, array: NDArray) -> NDArray:
        return array.ones_like()

    def like(self, array: NDArray) -> NDArray:
        return array.like()


_default: Optional[ArrayFactory] = None


def default_factory() -> ArrayFactory:
    """Process-wide factory following the runtime settings."""
    global _default
    if _default is None:
        _default = ArrayFactory()
    return _default
