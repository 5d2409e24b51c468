"""
Storage format and gradient policy enumerations.
"""

from enum import Enum


class SparseFormat(Enum):
    """
    Storage encoding of an array's elements.

    An array's format is fixed at creation; converting between formats always
    produces a new array.

    Attributes
    ----------
    DENSE : SparseFormat
        Every element stored contiguously.
    CSR : SparseFormat
        Compressed sparse row layout (2-D only): values, column indices and
        row pointers.
    ROW_SPARSE : SparseFormat
        Only non-zero leading-axis slices are stored, with their row indices.
    """

    DENSE = "dense"
    CSR = "csr"
    ROW_SPARSE = "row_sparse"

    def is_sparse(self) -> bool:
        return self is not SparseFormat.DENSE


class GradReq(Enum):
    """
    Gradient accumulation policy recorded by `attach_grad`.

    Attributes
    ----------
    WRITE : GradReq
        Each backward pass overwrites the gradient buffer.
    ADD : GradReq
        Each backward pass adds into the gradient buffer.
    NULL : GradReq
        The array is not tracked; its gradient buffer is never written.
    """

    WRITE = "write"
    ADD = "add"
    NULL = "null"
