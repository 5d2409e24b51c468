"""
NumPy dispatchers for the sparse storage formats.

Both dispatchers inherit every kernel from `NumpyDenseDispatcher` and
override the storage-level methods only: `to_host` densifies, so general
operations on a sparse array run on a dense copy and produce dense results.
Conversion, non-zero counting and encoding work directly on the sparse
components.
"""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np

from ...domain._errors import InvalidConversionError
from ...domain._formats import SparseFormat
from ...domain.device._device import DeviceType
from ._numpy_dense import NumpyDenseDispatcher, _contiguous
from ._registry import kernel_registry
from ._storage import CSRStorage, RowSparseStorage


def _index_array(values: Any, name: str) -> np.ndarray:
    arr = np.asarray(values)
    if arr.ndim != 1 or not (arr.size == 0 or np.issubdtype(arr.dtype, np.integer)):
        raise InvalidConversionError(f"{name} must be a 1-D integer array")
    return _contiguous(arr, dtype=np.int64)


@kernel_registry.register(DeviceType.CPU, SparseFormat.CSR)
class NumpyCSRDispatcher(NumpyDenseDispatcher):
    """
    Compressed sparse row storage for 2-D arrays.
    """

    sparse_format = SparseFormat.CSR

    def from_host(self, values: Any) -> CSRStorage:
        dense = np.asarray(values)
        if dense.ndim != 2:
            raise InvalidConversionError(
                f"CSR storage requires a 2-D array, got rank {dense.ndim}"
            )
        rows, cols = np.nonzero(dense)
        indptr = np.zeros(dense.shape[0] + 1, dtype=np.int64)
        np.cumsum(np.bincount(rows, minlength=dense.shape[0]), out=indptr[1:])
        return CSRStorage(
            data=_contiguous(dense[rows, cols]),
            indices=cols.astype(np.int64),
            indptr=indptr,
            shape=tuple(dense.shape),
        )

    def to_host(self, storage: CSRStorage) -> np.ndarray:
        dense = np.zeros(storage.shape, dtype=storage.dtype)
        rows = np.repeat(np.arange(storage.shape[0]), np.diff(storage.indptr))
        dense[rows, storage.indices] = storage.data
        return dense

    def to_dense(self, storage: CSRStorage) -> np.ndarray:
        return self.to_host(storage)

    def copy(self, storage: CSRStorage) -> CSRStorage:
        return CSRStorage(
            storage.data.copy(), storage.indices.copy(), storage.indptr.copy(), storage.shape
        )

    def nbytes(self, storage: CSRStorage) -> int:
        return storage.nbytes

    def nonzero(self, storage: CSRStorage) -> int:
        return int(np.count_nonzero(storage.data))

    def components(self, storage: CSRStorage) -> dict:
        return {"data": storage.data, "indices": storage.indices, "indptr": storage.indptr}

    def from_components(
        self, components: dict, shape: Sequence[int], dtype: Any
    ) -> CSRStorage:
        shape = tuple(int(d) for d in shape)
        if len(shape) != 2:
            raise InvalidConversionError(f"CSR storage requires a 2-D shape, got {shape}")
        data = _contiguous(np.asarray(components["data"], dtype=dtype).reshape(-1))
        indices = _index_array(components["indices"], "indices")
        indptr = _index_array(components["indptr"], "indptr")
        if (
            indptr.size != shape[0] + 1
            or indptr[0] != 0
            or indptr[-1] != data.size
            or np.any(np.diff(indptr) < 0)
        ):
            raise InvalidConversionError("inconsistent CSR row pointers")
        if indices.size != data.size or np.any((indices < 0) | (indices >= shape[1])):
            raise InvalidConversionError("inconsistent CSR column indices")
        return CSRStorage(data, indices, indptr, shape)


@kernel_registry.register(DeviceType.CPU, SparseFormat.ROW_SPARSE)
class NumpyRowSparseDispatcher(NumpyDenseDispatcher):
    """
    Row-sparse storage: non-zero slices along axis 0 with their row indices.
    """

    sparse_format = SparseFormat.ROW_SPARSE

    def from_host(self, values: Any) -> RowSparseStorage:
        dense = np.asarray(values)
        if dense.ndim < 1:
            raise InvalidConversionError("row-sparse storage requires rank >= 1")
        # An explicit row width keeps zero-row inputs reshapeable.
        flat = dense.reshape(dense.shape[0], int(np.prod(dense.shape[1:], dtype=np.int64)))
        rows = np.flatnonzero(np.any(flat != 0, axis=1))
        return RowSparseStorage(
            data=_contiguous(dense[rows]),
            indices=rows.astype(np.int64),
            shape=tuple(dense.shape),
        )

    def to_host(self, storage: RowSparseStorage) -> np.ndarray:
        dense = np.zeros(storage.shape, dtype=storage.dtype)
        dense[storage.indices] = storage.data
        return dense

    def to_dense(self, storage: RowSparseStorage) -> np.ndarray:
        return self.to_host(storage)

    def copy(self, storage: RowSparseStorage) -> RowSparseStorage:
        return RowSparseStorage(storage.data.copy(), storage.indices.copy(), storage.shape)

    def nbytes(self, storage: RowSparseStorage) -> int:
        return storage.nbytes

    def nonzero(self, storage: RowSparseStorage) -> int:
        return int(np.count_nonzero(storage.data))

    def components(self, storage: RowSparseStorage) -> dict:
        return {"data": storage.data, "indices": storage.indices}

    def from_components(
        self, components: dict, shape: Sequence[int], dtype: Any
    ) -> RowSparseStorage:
        shape = tuple(int(d) for d in shape)
        if not shape:
            raise InvalidConversionError("row-sparse storage requires rank >= 1")
        indices = _index_array(components["indices"], "indices")
        data = np.asarray(components["data"], dtype=dtype)
        try:
            data = _contiguous(data.reshape((indices.size,) + shape[1:]))
        except ValueError:
            raise InvalidConversionError("row-sparse data does not match its indices") from None
        if np.any((indices < 0) | (indices >= shape[0])) or np.any(np.diff(indices) <= 0):
            raise InvalidConversionError("row indices must be sorted, unique and in range")
        return RowSparseStorage(data, indices, shape)
