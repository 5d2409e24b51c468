"""
Reduction mixin.

Reductions take an axis set (``None`` or empty meaning every axis) and a
``keep_dims`` flag. Without ``keep_dims`` the reduced axes are removed from
the result; with it they are kept with extent 1. Negative axes count from the
last axis.

Result types
------------
- ``sum``/``prod`` keep the input type; booleans are counted as ``INT64``.
- ``mean``, ``median`` and ``percentile`` of integer or boolean input are
  ``FLOAT32``.
- ``max``/``min`` keep the input type; ``argmax``/``argmin`` are ``INT64``.
"""

from __future__ import annotations

from typing import Optional, Sequence, TYPE_CHECKING, Union

import numpy as np

from ....domain._dtype import DataType
from ....domain._errors import ShapeMismatchError
from ....domain._shape import normalize_axes, normalize_axis
from ...backend._dtypes import to_numpy_dtype

if TYPE_CHECKING:
    from .._array import NDArray

AxesLike = Optional[Union[int, Sequence[int]]]
Number = Union[bool, int, float]


def _unpack_axes(axes: tuple) -> AxesLike:
    # amax(0, 1) and amax((0, 1)) are equivalent.
    if len(axes) == 1 and not isinstance(axes[0], int):
        return axes[0]
    return axes


class ArrayMixinReduction:
    """
    Reductions over axis sets and derived predicates.
    """

    def _float_result(self: "NDArray") -> DataType:
        return self.dtype if self.dtype.is_floating() else DataType.FLOAT32

    def _require_elements(self: "NDArray", op: str, axes: tuple) -> None:
        if any(self.shape[a] == 0 for a in axes) or (not axes and self.size() == 0):
            raise ShapeMismatchError(op, self.shape, detail="reduction over an empty axis")

    def _reduce(
        self: "NDArray", op: str, axes: AxesLike, keep_dims: bool, dtype: DataType
    ) -> "NDArray":
        ax = normalize_axes(axes, self.rank)
        values = self._dispatcher.reduce(
            op, self._host(), ax, keep_dims, to_numpy_dtype(dtype)
        )
        return self._new(values.reshape(self.shape.reduced(ax, keep_dims).dims))

    def sum(self: "NDArray", axes: AxesLike = None, keep_dims: bool = False) -> "NDArray":
        """
        Sum over `axes`.

        Examples
        --------
        >>> x = factory.create([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        >>> x.sum(0).to_list()
        [5.0, 7.0, 9.0]
        >>> x.sum(0, keep_dims=True).shape
        Shape(1, 3)
        """
        dtype = DataType.INT64 if self.dtype.is_boolean() else self.dtype
        out = self._reduce("sum", axes, keep_dims, dtype)
        ax = normalize_axes(axes, self.rank)
        kept = self.shape.reduced(ax, keep_dims=True).dims
        shape = self.shape.dims

        def backward_fn(g: np.ndarray):
            return (np.broadcast_to(np.reshape(g, kept), shape),)

        return self._record(out, (self,), backward_fn, "sum", axes=ax)

    def prod(self: "NDArray", axes: AxesLike = None, keep_dims: bool = False) -> "NDArray":
        dtype = DataType.INT64 if self.dtype.is_boolean() else self.dtype
        return self._reduce("prod", axes, keep_dims, dtype)

    def mean(self: "NDArray", axes: AxesLike = None, keep_dims: bool = False) -> "NDArray":
        """Arithmetic mean over `axes`."""
        ax = normalize_axes(axes, self.rank)
        self._require_elements("mean", ax)
        out = self._reduce("mean", ax, keep_dims, self._float_result())
        kept = self.shape.reduced(ax, keep_dims=True).dims
        shape = self.shape.dims
        count = max(1, self.size() // max(1, int(np.prod(kept, dtype=np.int64))))

        def backward_fn(g: np.ndarray):
            return (np.broadcast_to(np.reshape(g, kept) / count, shape),)

        return self._record(out, (self,), backward_fn, "mean", axes=ax)

    def max(self: "NDArray", axes: AxesLike = None, keep_dims: bool = False) -> "NDArray":
        """
        Maximum over `axes`.

        Raises
        ------
        ShapeMismatchError
            If a reduced axis is empty.
        """
        ax = normalize_axes(axes, self.rank)
        self._require_elements("max", ax)
        return self._reduce("max", ax, keep_dims, self.dtype)

    def min(self: "NDArray", axes: AxesLike = None, keep_dims: bool = False) -> "NDArray":
        ax = normalize_axes(axes, self.rank)
        self._require_elements("min", ax)
        return self._reduce("min", ax, keep_dims, self.dtype)

    def amax(self: "NDArray", *axes: Union[int, Sequence[int]]) -> "NDArray":
        return self.max(_unpack_axes(axes))

    def amin(self: "NDArray", *axes: Union[int, Sequence[int]]) -> "NDArray":
        return self.min(_unpack_axes(axes))

    def _number(self: "NDArray", reduced: "NDArray") -> Number:
        try:
            return reduced.item()
        finally:
            reduced._release_quietly()

    def amax_number(self: "NDArray") -> Number:
        """Largest element as a Python number."""
        return self._number(self.max())

    def amin_number(self: "NDArray") -> Number:
        """Smallest element as a Python number."""
        return self._number(self.min())

    def _arg(self: "NDArray", op: str, axis: Optional[int], keep_dims: bool) -> "NDArray":
        a = None if axis is None else normalize_axis(axis, self.rank)
        self._require_elements(op, () if a is None else (a,))
        values = self._dispatcher.arg_reduce(op, self._host(), a, keep_dims)
        return self._new(values)

    def argmax(self: "NDArray", axis: Optional[int] = None, keep_dims: bool = False) -> "NDArray":
        """
        Index of the maximum along `axis`, or into the flattened array when
        `axis` is None. Ties resolve to the first occurrence.
        """
        return self._arg("argmax", axis, keep_dims)

    def argmin(self: "NDArray", axis: Optional[int] = None, keep_dims: bool = False) -> "NDArray":
        return self._arg("argmin", axis, keep_dims)

    # ------------------------------------------------------------------
    # Order statistics
    # ------------------------------------------------------------------
    def percentile(self: "NDArray", p: float, *axes: Union[int, Sequence[int]]) -> "NDArray":
        """
        The `p`-th percentile (linear interpolation) over `axes`.

        Raises
        ------
        ValueError
            If `p` is outside ``[0, 100]``.
        ShapeMismatchError
            If a reduced axis is empty.
        """
        if not 0.0 <= float(p) <= 100.0:
            raise ValueError(f"percentile must be within [0, 100], got {p}")
        ax = normalize_axes(_unpack_axes(axes), self.rank)
        self._require_elements("percentile", ax)
        values = self._dispatcher.quantile(
            self._host(), float(p), ax, to_numpy_dtype(self._float_result())
        )
        return self._new(values)

    def percentile_number(self: "NDArray", p: float) -> float:
        return self._number(self.percentile(p))

    def median(self: "NDArray", *axes: Union[int, Sequence[int]]) -> "NDArray":
        return self.percentile(50.0, *axes)

    def median_number(self: "NDArray") -> float:
        return self._number(self.median())

    # ------------------------------------------------------------------
    # Counting predicates
    # ------------------------------------------------------------------
    def nonzero(self: "NDArray") -> int:
        """Number of non-zero (or true) elements."""
        return self._dispatcher.nonzero(self._storage())

    def all(self: "NDArray") -> bool:
        """True iff every element is non-zero (vacuously true when empty)."""
        return self.nonzero() == self.size()

    def any(self: "NDArray") -> bool:
        return self.nonzero() > 0

    def none(self: "NDArray") -> bool:
        return self.nonzero() == 0
