"""
Structural mixin.

Structural operations rearrange elements without computing new values. All
of them return a new array; none mutates the receiver's shape.

- `reshape`, `flatten` and `expand_dims` reinterpret the element sequence and
  share the receiver's dense buffer when the layout allows it.
- `transpose`, `swap_axes`, `broadcast`, `concat`, `stack`, `split`,
  `unstack`, `tile` and `repeat` copy.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Sequence, TYPE_CHECKING, Union

import numpy as np

from ....domain._dtype import DataType
from ....domain._errors import InvalidIndexError, ShapeMismatchError
from ....domain._shape import Shape, normalize_axis
from ...backend._dtypes import to_numpy_dtype
from .._array_list import NDList

if TYPE_CHECKING:
    from .._array import NDArray

ShapeLike = Union[Shape, Sequence[int]]


def _shape_args(dims: tuple) -> tuple:
    # reshape(2, 3), reshape((2, 3)) and reshape(Shape(2, 3)) are equivalent.
    if len(dims) == 1 and not isinstance(dims[0], int):
        return tuple(dims[0])
    return dims


def _as_sequence(arrays: Any) -> List["NDArray"]:
    if isinstance(arrays, (list, tuple)):
        return list(arrays)
    return [arrays]


class ArrayMixinStructural:
    """
    Copy-only structural operations.
    """

    # ------------------------------------------------------------------
    # Reinterpretation
    # ------------------------------------------------------------------
    def reshape(self: "NDArray", *shape: Union[int, ShapeLike]) -> "NDArray":
        """
        Reinterpret the elements with a new shape.

        One extent may be ``-1`` and is inferred from the others.

        Raises
        ------
        ShapeMismatchError
            If the target size differs from this array's size.
        """
        target = self.shape.infer(_shape_args(shape))
        source = self.shape.dims
        values = self._dispatcher.reshape(self._host(), target.dims)
        out = self._new(values)
        return self._record(
            out, (self,), lambda g: (np.reshape(g, source),), "reshape", shape=source
        )

    def flatten(self: "NDArray") -> "NDArray":
        """Rank-1 view of the elements in row-major order."""
        return self.reshape(-1)

    def expand_dims(self: "NDArray", axis: int) -> "NDArray":
        """Insert an axis of extent 1 at `axis` (``-1`` appends)."""
        return self.reshape(self.shape.insert(axis, 1))

    def squeeze(self: "NDArray", axis: Any = None) -> "NDArray":
        """
        Remove axes of extent 1; only `axis` when given.

        Raises
        ------
        ShapeMismatchError
            If a requested axis does not have extent 1.
        """
        dims = self.shape.dims
        if axis is None:
            return self.reshape(tuple(d for d in dims if d != 1))
        axes = {normalize_axis(a, self.rank) for a in _as_sequence(axis)}
        for a in axes:
            if dims[a] != 1:
                raise ShapeMismatchError(
                    "squeeze", self.shape, detail=f"axis {a} has extent {dims[a]}"
                )
        return self.reshape(tuple(d for i, d in enumerate(dims) if i not in axes))

    # ------------------------------------------------------------------
    # Axis permutation
    # ------------------------------------------------------------------
    def transpose(self: "NDArray", *axes: Union[int, Sequence[int]]) -> "NDArray":
        """
        Permute axes; with no arguments the axis order is reversed.

        Raises
        ------
        InvalidIndexError
            If `axes` is not a permutation of the array's axes.
        """
        axes = _shape_args(axes)
        if not axes:
            perm = tuple(reversed(range(self.rank)))
        else:
            perm = tuple(normalize_axis(a, self.rank) for a in axes)
            if sorted(perm) != list(range(self.rank)):
                raise InvalidIndexError(
                    f"axes {tuple(axes)} are not a permutation for rank {self.rank}"
                )
        inverse = tuple(np.argsort(perm))
        out = self._new(self._dispatcher.transpose(self._host(), perm))
        return self._record(
            out, (self,), lambda g: (np.transpose(g, inverse),), "transpose", axes=perm
        )

    def swap_axes(self: "NDArray", axis1: int, axis2: int) -> "NDArray":
        perm = list(range(self.rank))
        a = normalize_axis(axis1, self.rank)
        b = normalize_axis(axis2, self.rank)
        perm[a], perm[b] = perm[b], perm[a]
        return self.transpose(tuple(perm))

    # ------------------------------------------------------------------
    # Broadcasting
    # ------------------------------------------------------------------
    def broadcast(self: "NDArray", *shape: Union[int, ShapeLike]) -> "NDArray":
        """
        Stretch to `shape` by the broadcast rule.

        Raises
        ------
        ShapeMismatchError
            If this shape cannot be stretched to `shape`.
        """
        target = Shape(_shape_args(shape))
        if not self.shape.can_broadcast_to(target):
            raise ShapeMismatchError("broadcast", self.shape, target)
        out = self._new(self._dispatcher.broadcast_to(self._host(), target.dims))
        # The recorder sums the stretched axes back to this array's shape.
        return self._record(out, (self,), lambda g: (g,), "broadcast")

    def broadcast_like(self: "NDArray", other: "NDArray") -> "NDArray":
        return self.broadcast(other.shape)

    # ------------------------------------------------------------------
    # Joining and splitting
    # ------------------------------------------------------------------
    def _joined(self: "NDArray", others: Any, op: str) -> List["NDArray"]:
        arrays = [self] + [self._peer(o, op) for o in _as_sequence(others)]
        return arrays

    def _common_host(self: "NDArray", arrays: List["NDArray"]) -> tuple:
        dtype = arrays[0].dtype
        for a in arrays[1:]:
            dtype = DataType.promote(dtype, a.dtype)
        np_dtype = to_numpy_dtype(dtype)
        return [a._host().astype(np_dtype, copy=False) for a in arrays], dtype

    def concat(self: "NDArray", others: Any, axis: int = 0) -> "NDArray":
        """
        Join this array and `others` along an existing axis.

        Raises
        ------
        ShapeMismatchError
            If ranks differ, an array is rank 0, or extents differ on any
            axis other than `axis`.
        """
        arrays = self._joined(others, "concat")
        if self.rank == 0:
            raise ShapeMismatchError("concat", self.shape, detail="cannot join rank-0 arrays")
        a = normalize_axis(axis, self.rank)
        for other in arrays[1:]:
            s = other.shape
            if s.rank != self.rank or any(
                s[i] != self.shape[i] for i in range(self.rank) if i != a
            ):
                raise ShapeMismatchError("concat", self.shape, s)
        hosts, _ = self._common_host(arrays)
        out = self._new(self._dispatcher.concat(hosts, a))
        bounds = np.cumsum([x.shape[a] for x in arrays])[:-1].tolist()

        def backward_fn(g: np.ndarray):
            return tuple(np.split(g, bounds, axis=a))

        return self._record(out, arrays, backward_fn, "concat", axis=a)

    def stack(self: "NDArray", others: Any, axis: int = 0) -> "NDArray":
        """
        Join this array and `others` along a new axis at `axis`.

        Raises
        ------
        ShapeMismatchError
            If the shapes are not all identical.
        """
        arrays = self._joined(others, "stack")
        for other in arrays[1:]:
            if other.shape != self.shape:
                raise ShapeMismatchError("stack", self.shape, other.shape)
        a = normalize_axis(axis, self.rank + 1)
        hosts, _ = self._common_host(arrays)
        out = self._new(self._dispatcher.stack(hosts, a))
        n = len(arrays)

        def backward_fn(g: np.ndarray):
            return tuple(np.take(g, i, axis=a) for i in range(n))

        return self._record(out, arrays, backward_fn, "stack", axis=a)

    def split(self: "NDArray", sections: Union[int, Sequence[int]], axis: int = 0) -> NDList:
        """
        Split along `axis`.

        Parameters
        ----------
        sections : int or sequence of int
            Either the number of equal parts, or the positions along `axis`
            where each new part starts.

        Raises
        ------
        ShapeMismatchError
            If the axis does not divide into `sections` equal parts.
        ValueError
            If `sections` is not positive, or the boundaries decrease or
            exceed the axis extent.
        """
        if self.rank == 0:
            raise ShapeMismatchError("split", self.shape, detail="cannot split a rank-0 array")
        a = normalize_axis(axis, self.rank)
        extent = self.shape[a]
        if isinstance(sections, int):
            if sections <= 0:
                raise ValueError(f"number of sections must be positive, got {sections}")
            if extent % sections != 0:
                raise ShapeMismatchError(
                    "split", self.shape,
                    detail=f"axis {a} of extent {extent} does not divide into {sections} parts",
                )
            step = extent // sections
            bounds = [step * i for i in range(1, sections)]
        else:
            bounds = [int(b) for b in sections]
            if any(b < 0 for b in bounds) or bounds != sorted(bounds):
                raise ValueError(f"split boundaries must be non-negative and sorted, got {bounds}")
            if bounds and bounds[-1] > extent:
                raise ValueError(
                    f"split boundary {bounds[-1]} lies beyond axis {a} of extent {extent}"
                )
        parts = self._dispatcher.split(self._host(), bounds, a)
        return NDList(self._new(p) for p in parts)

    def unstack(self: "NDArray", axis: int = 0, squeeze_axis: bool = True) -> NDList:
        """
        One array per position along `axis`.

        With `squeeze_axis` False each part keeps `axis` with extent 1.
        """
        a = normalize_axis(axis, self.rank)
        if self.shape[a] == 0:
            return NDList()
        out = NDList()
        parts = self.split(self.shape[a], a)
        if not squeeze_axis:
            return parts
        for part in parts:
            out.append(part.squeeze(a))
            part.close()
        return out

    # ------------------------------------------------------------------
    # Tiling and repetition
    # ------------------------------------------------------------------
    def _multipliers(self: "NDArray", op: str, repeats: Any, axis: Any) -> tuple:
        if axis is not None:
            if not isinstance(repeats, int):
                raise ValueError(f"{op} along one axis takes a single repeat count")
            reps = [1] * self.rank
            reps[normalize_axis(axis, self.rank)] = repeats
        elif isinstance(repeats, int):
            reps = [repeats] * self.rank
        else:
            given = [int(r) for r in repeats]
            if len(given) > self.rank:
                raise ShapeMismatchError(
                    op, self.shape, detail=f"{len(given)} multipliers for rank {self.rank}"
                )
            # Short lists apply to the trailing axes.
            reps = [1] * (self.rank - len(given)) + given
        if any(r < 0 for r in reps):
            raise ValueError(f"{op} multipliers must be non-negative, got {reps}")
        return tuple(reps)

    def _multipliers_to(self: "NDArray", op: str, target: ShapeLike) -> tuple:
        target = Shape(target)
        if target.rank != self.rank:
            raise ShapeMismatchError(op, self.shape, target)
        reps = []
        for have, want in zip(self.shape, target):
            if have == 0:
                if want != 0:
                    raise ShapeMismatchError(op, self.shape, target)
                reps.append(1)
            elif want % have != 0:
                raise ShapeMismatchError(op, self.shape, target)
            else:
                reps.append(want // have)
        return tuple(reps)

    def tile(self: "NDArray", repeats: Union[int, Sequence[int]], axis: Any = None) -> "NDArray":
        """
        Repeat the whole array as a block.

        ``[1, 2].tile(2)`` gives ``[1, 2, 1, 2]``.

        Parameters
        ----------
        repeats : int or sequence of int
            One multiplier for every axis, or per-axis multipliers. A list
            shorter than the rank applies to the trailing axes.
        axis : int, optional
            Restrict a single multiplier to this axis.
        """
        reps = self._multipliers("tile", repeats, axis)
        return self._new(self._dispatcher.tile(self._host(), reps))

    def tile_to(self: "NDArray", *shape: Union[int, ShapeLike]) -> "NDArray":
        """
        Tile up to `shape`; each target extent must be a multiple of the
        current one.
        """
        reps = self._multipliers_to("tile_to", _shape_args(shape))
        return self._new(self._dispatcher.tile(self._host(), reps))

    def _repeat(self: "NDArray", reps: tuple) -> "NDArray":
        values = self._dispatcher.to_dense(self._storage())
        for a, r in enumerate(reps):
            if r != 1:
                values = self._dispatcher.repeat(values, r, a)
        return self._new(values)

    def repeat(self: "NDArray", repeats: Union[int, Sequence[int]], axis: Any = None) -> "NDArray":
        """
        Repeat each element in place along the axes.

        ``[1, 2].repeat(2)`` gives ``[1, 1, 2, 2]``. Multipliers follow the
        same rules as `tile`.
        """
        return self._repeat(self._multipliers("repeat", repeats, axis))

    def repeat_to(self: "NDArray", *shape: Union[int, ShapeLike]) -> "NDArray":
        return self._repeat(self._multipliers_to("repeat_to", _shape_args(shape)))
