"""
Shape value type and broadcast engine.

`Shape` is an immutable ordered sequence of non-negative extents. Besides
the size/rank queries it carries the shape arithmetic shared by every
operation family:

- broadcasting of two shapes (aligned from the trailing axis),
- axis normalization with negative indices,
- the output shape of reductions with and without kept dimensions,
- reshape target inference with a single ``-1`` placeholder.

The module has no NumPy dependency; the infrastructure layer computes every
result shape here before a kernel runs, so shape invariants do not depend on
backend behavior.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Optional, Sequence, Union

from ._errors import InvalidIndexError, ShapeMismatchError

AxesLike = Optional[Union[int, Sequence[int]]]


def _is_extent(value: object) -> bool:
    # NumPy arrays define __index__ too; only 0-d ones are integers.
    return hasattr(value, "__index__") and getattr(value, "ndim", 0) == 0


def normalize_axis(axis: int, rank: int) -> int:
    """
    Map a possibly negative axis onto ``[0, rank)``.

    Parameters
    ----------
    axis : int
        Axis index. Negative values count from the last axis.
    rank : int
        Rank of the array the axis refers to.

    Returns
    -------
    int
        Non-negative axis index.

    Raises
    ------
    InvalidIndexError
        If `axis` is not an integer or falls outside the valid range.
    """
    if isinstance(axis, bool) or not isinstance(axis, int):
        raise InvalidIndexError(f"axis must be an int, got {type(axis).__name__}")
    a = axis + rank if axis < 0 else axis
    if a < 0 or a >= rank:
        raise InvalidIndexError(f"axis {axis} is out of range for rank {rank}")
    return a


def normalize_axes(axes: AxesLike, rank: int) -> tuple[int, ...]:
    """
    Normalize an axis argument into a sorted tuple of unique axes.

    ``None`` and an empty sequence both mean "all axes".

    Raises
    ------
    InvalidIndexError
        If any axis is out of range or an axis is repeated.
    """
    if axes is None:
        return tuple(range(rank))
    if isinstance(axes, int):
        axes = (axes,)
    axes = tuple(axes)
    if not axes:
        return tuple(range(rank))
    out = [normalize_axis(a, rank) for a in axes]
    if len(set(out)) != len(out):
        raise InvalidIndexError(f"repeated axis in {axes}")
    return tuple(sorted(out))


class Shape:
    """
    Immutable ordered sequence of dimension extents.

    Parameters
    ----------
    *dims : int or iterable of int
        Either the extents as positional arguments (``Shape(2, 3)``) or a
        single iterable (``Shape((2, 3))``). ``Shape()`` is the scalar shape.

    Raises
    ------
    ValueError
        If an extent is negative or not an integer.

    Notes
    -----
    A rank-0 shape describes a scalar and has size 1. Two shapes are equal iff
    they have the same rank and identical extents; a `Shape` also compares
    equal to the plain tuple of its extents.
    """

    __slots__ = ("_dims",)

    def __init__(self, *dims: Union[int, Iterable[int]]) -> None:
        if len(dims) == 1 and not _is_extent(dims[0]):
            try:
                dims = tuple(dims[0])  # type: ignore[arg-type]
            except TypeError:
                raise ValueError(f"Shape extents must be integers, got {dims[0]!r}") from None
        checked = []
        for d in dims:
            if isinstance(d, bool) or not _is_extent(d):
                raise ValueError(f"Shape extents must be integers, got {d!r}")
            d = int(d)  # accepts numpy integers
            if d < 0:
                raise ValueError(f"Shape extents must be non-negative, got {d}")
            checked.append(d)
        object.__setattr__(self, "_dims", tuple(checked))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Shape is immutable")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def dims(self) -> tuple[int, ...]:
        """Extents as a plain tuple."""
        return self._dims

    @property
    def rank(self) -> int:
        """Number of axes."""
        return len(self._dims)

    @property
    def size(self) -> int:
        """Total element count (1 for the scalar shape)."""
        n = 1
        for d in self._dims:
            n *= d
        return n

    def dimension(self, axis: int) -> int:
        """Extent of `axis`, negative axes count from the end."""
        return self._dims[normalize_axis(axis, self.rank)]

    def is_scalar(self) -> bool:
        return not self._dims

    def head(self) -> int:
        if not self._dims:
            raise InvalidIndexError("scalar shape has no head")
        return self._dims[0]

    def tail(self) -> "Shape":
        return Shape(self._dims[1:])

    def drop(self, axis: int) -> "Shape":
        a = normalize_axis(axis, self.rank)
        return Shape(self._dims[:a] + self._dims[a + 1 :])

    def insert(self, axis: int, extent: int) -> "Shape":
        a = normalize_axis(axis, self.rank + 1)
        return Shape(self._dims[:a] + (extent,) + self._dims[a:])

    def replace(self, axis: int, extent: int) -> "Shape":
        a = normalize_axis(axis, self.rank)
        return Shape(self._dims[:a] + (extent,) + self._dims[a + 1 :])

    # ------------------------------------------------------------------
    # Broadcasting
    # ------------------------------------------------------------------
    @staticmethod
    def broadcast(a: "Shape | Sequence[int]", b: "Shape | Sequence[int]") -> "Shape":
        """
        Compute the broadcast result of two shapes.

        Shapes are aligned from the trailing axis. For each aligned pair the
        extents must be equal or one of them must be 1; a shorter shape is
        treated as having leading extents of 1.

        Raises
        ------
        ShapeMismatchError
            If the shapes are not broadcast-compatible.
        """
        da = tuple(a)
        db = tuple(b)
        rank = max(len(da), len(db))
        pa = (1,) * (rank - len(da)) + da
        pb = (1,) * (rank - len(db)) + db
        out = []
        for x, y in zip(pa, pb):
            if x == y or y == 1:
                out.append(x)
            elif x == 1:
                out.append(y)
            else:
                raise ShapeMismatchError("broadcast", da, db)
        return Shape(out)

    def can_broadcast_to(self, target: "Shape | Sequence[int]") -> bool:
        """
        Return True if this shape stretches to `target` without changing it.
        """
        try:
            return Shape.broadcast(self, target) == Shape(target)
        except ShapeMismatchError:
            return False

    # ------------------------------------------------------------------
    # Reduction / reshape helpers
    # ------------------------------------------------------------------
    def reduced(self, axes: AxesLike, keep_dims: bool = False) -> "Shape":
        """
        Output shape of reducing over `axes`.

        Parameters
        ----------
        axes : int, sequence of int, or None
            Axes to reduce; ``None`` or empty means all axes.
        keep_dims : bool, optional
            If True, reduced axes are kept with extent 1; otherwise removed.
        """
        red = set(normalize_axes(axes, self.rank))
        if keep_dims:
            return Shape(1 if i in red else d for i, d in enumerate(self._dims))
        return Shape(d for i, d in enumerate(self._dims) if i not in red)

    def infer(self, target: "Shape | Sequence[int]") -> "Shape":
        """
        Resolve a reshape target against this shape's size.

        At most one extent of `target` may be ``-1``; it is inferred so that
        the sizes match.

        Raises
        ------
        ShapeMismatchError
            If the sizes cannot match or more than one ``-1`` is given.
        """
        dims = [int(d) for d in target]
        unknown = [i for i, d in enumerate(dims) if d == -1]
        if len(unknown) > 1:
            raise ShapeMismatchError(
                "reshape", self._dims, dims, detail="only one -1 extent is allowed"
            )
        if any(d < -1 for d in dims):
            raise ShapeMismatchError("reshape", self._dims, dims)
        if unknown:
            known = 1
            for i, d in enumerate(dims):
                if i != unknown[0]:
                    known *= d
            if known == 0 or self.size % known != 0:
                raise ShapeMismatchError("reshape", self._dims, dims)
            dims[unknown[0]] = self.size // known
        out = Shape(dims)
        if out.size != self.size:
            raise ShapeMismatchError(
                "reshape", self._dims, dims, detail="total size must be preserved"
            )
        return out

    # ------------------------------------------------------------------
    # Python protocol
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._dims)

    def __iter__(self) -> Iterator[int]:
        return iter(self._dims)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return Shape(self._dims[item])
        return self._dims[item]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Shape):
            return self._dims == other._dims
        if isinstance(other, tuple):
            return self._dims == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._dims)

    def __repr__(self) -> str:
        return f"Shape{self._dims}"

    def __str__(self) -> str:
        return "(" + ", ".join(str(d) for d in self._dims) + ")"
