"""
Host-side sparse storage layouts.

Dense arrays are stored as a plain C-contiguous `numpy.ndarray`. The two
sparse layouts below keep only the non-zero part of an array together with
the indices needed to rebuild it.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class CSRStorage:
    """
    Compressed sparse row storage of a 2-D array.

    Attributes
    ----------
    data : np.ndarray
        Non-zero values in row-major order, shape ``(nnz,)``.
    indices : np.ndarray
        Column index of every entry of `data` (int64).
    indptr : np.ndarray
        Row pointers, shape ``(rows + 1,)``; row ``r`` owns
        ``data[indptr[r]:indptr[r + 1]]``.
    shape : tuple[int, int]
        Logical dense shape.
    """

    data: np.ndarray
    indices: np.ndarray
    indptr: np.ndarray
    shape: tuple

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    @property
    def nbytes(self) -> int:
        return int(self.data.nbytes + self.indices.nbytes + self.indptr.nbytes)


@dataclass
class RowSparseStorage:
    """
    Row-sparse storage: only the non-zero slices along axis 0 are kept.

    Attributes
    ----------
    data : np.ndarray
        Stored slices, shape ``(k, *shape[1:])``.
    indices : np.ndarray
        Sorted row index of each stored slice (int64), shape ``(k,)``.
    shape : tuple[int, ...]
        Logical dense shape.
    """

    data: np.ndarray
    indices: np.ndarray
    shape: tuple

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    @property
    def nbytes(self) -> int:
        return int(self.data.nbytes + self.indices.nbytes)
