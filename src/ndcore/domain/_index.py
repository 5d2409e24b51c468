"""
Index expressions: parsing and resolution of sub-selections.

An `NDIndex` is an ordered list of per-axis selectors built once from a
compact textual grammar, from integer coordinates, from a Python indexing key,
or through the fluent ``add_*`` builder. Parsing is independent of any array:
negative points, ellipses and masks are only bound to a concrete shape by
`NDIndex.resolve`.

Textual grammar
---------------
Items are separated by commas; whitespace is ignored::

    item   := point | range | "..."
    point  := ["-"] digits
    range  := [int] ":" [int] [":" [int]]

Examples: ``"1"``, ``"-1, :"``, ``"0:4:2, ..."``, ``"::-1"``.

Selectors
---------
- `PointSelector`: a single position; the axis is removed from the result.
- `RangeSelector`: Python slice semantics (clamped bounds, optional step).
- `AllSelector`: the whole axis (a bare ``":"``).
- `EllipsisSelector`: expands to as many `AllSelector` as needed.
- `MaskSelector`: a boolean array covering ``mask.rank`` consecutive axes;
  those axes collapse into one axis holding the number of true entries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

from ._errors import InvalidIndexError
from ._shape import Shape


@dataclass(frozen=True)
class PointSelector:
    index: int


@dataclass(frozen=True)
class RangeSelector:
    start: Optional[int] = None
    stop: Optional[int] = None
    step: Optional[int] = None

    def __post_init__(self) -> None:
        if self.step == 0:
            raise InvalidIndexError("slice step cannot be zero")

    def as_slice(self) -> slice:
        return slice(self.start, self.stop, self.step)


@dataclass(frozen=True)
class AllSelector:
    pass


@dataclass(frozen=True)
class EllipsisSelector:
    pass


@dataclass(frozen=True, eq=False)
class MaskSelector:
    """
    Boolean mask selector.

    The mask is any array-like object exposing ``shape`` and ``nonzero()``
    (the count of true entries); the infrastructure layer converts it to a
    backend mask when the index is applied.
    """

    mask: Any

    @property
    def mask_shape(self) -> tuple[int, ...]:
        return tuple(self.mask.shape)

    def count(self) -> int:
        """Number of true entries."""
        n = self.mask.nonzero()
        if isinstance(n, tuple):
            # NumPy returns one coordinate array per axis.
            return len(n[0]) if n else 0
        return int(n)


Selector = Union[PointSelector, RangeSelector, AllSelector, EllipsisSelector, MaskSelector]


@dataclass(frozen=True)
class ResolvedIndex:
    """
    An index expression bound to a concrete source shape.

    Attributes
    ----------
    source : Shape
        Shape the index was resolved against.
    basic : tuple
        One entry per source axis: an ``int`` for points, a ``slice`` for
        ranges, and ``slice(None)`` for whole axes and mask-covered axes.
        Applying `basic` first removes point axes and narrows ranges.
    masks : tuple[tuple[int, Any], ...]
        ``(position, mask)`` pairs to apply, in order, after `basic`.
        Positions are axis numbers in the array produced by the previous step.
    shape : Shape
        Shape of the selection.
    """

    source: Shape
    basic: tuple
    masks: tuple = field(default_factory=tuple)
    shape: Shape = field(default_factory=Shape)

    @property
    def has_masks(self) -> bool:
        return bool(self.masks)

    def is_single_element(self) -> bool:
        """True if the selection holds exactly one element."""
        return self.shape.size == 1


def _parse_int(token: str, text: str) -> int:
    try:
        return int(token)
    except ValueError:
        raise InvalidIndexError(f"invalid index item {token!r} in {text!r}") from None


def _parse_item(item: str, text: str) -> Selector:
    item = item.strip()
    if not item:
        raise InvalidIndexError(f"empty index item in {text!r}")
    if item == "...":
        return EllipsisSelector()
    if ":" not in item:
        return PointSelector(_parse_int(item, text))
    if item == ":":
        return AllSelector()
    parts = [p.strip() for p in item.split(":")]
    if len(parts) > 3:
        raise InvalidIndexError(f"too many ':' in index item {item!r}")
    values = [None if not p else _parse_int(p, text) for p in parts]
    while len(values) < 3:
        values.append(None)
    return RangeSelector(*values)


class NDIndex:
    """
    Parsed, rank-independent description of a sub-selection.

    Parameters
    ----------
    *indices : str or int
        Either a single textual index (``NDIndex("1:3, -1")``) or integer
        coordinates (``NDIndex(1, -1)``). With no arguments the index selects
        everything.

    Raises
    ------
    InvalidIndexError
        If the text is malformed or more than one ellipsis is present.
    """

    __slots__ = ("_selectors",)

    def __init__(self, *indices: Union[str, int]) -> None:
        self._selectors: list[Selector] = []
        if len(indices) == 1 and isinstance(indices[0], str):
            text = indices[0]
            if text.strip():
                for item in text.split(","):
                    self._append(_parse_item(item, text))
            return
        for i in indices:
            if isinstance(i, bool) or not hasattr(i, "__index__"):
                raise InvalidIndexError(f"integer index expected, got {i!r}")
            self._selectors.append(PointSelector(int(i)))

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------
    def _append(self, selector: Selector) -> "NDIndex":
        if isinstance(selector, EllipsisSelector) and any(
            isinstance(s, EllipsisSelector) for s in self._selectors
        ):
            raise InvalidIndexError("an index can only have a single ellipsis")
        self._selectors.append(selector)
        return self

    def add_index(self, index: int) -> "NDIndex":
        return self._append(PointSelector(int(index)))

    def add_slice(
        self,
        start: Optional[int] = None,
        stop: Optional[int] = None,
        step: Optional[int] = None,
    ) -> "NDIndex":
        return self._append(RangeSelector(start, stop, step))

    def add_all(self) -> "NDIndex":
        return self._append(AllSelector())

    def add_ellipsis(self) -> "NDIndex":
        return self._append(EllipsisSelector())

    def add_mask(self, mask: Any) -> "NDIndex":
        return self._append(MaskSelector(mask))

    @classmethod
    def from_key(cls, key: Any) -> "NDIndex":
        """
        Build an index from a Python indexing key.

        Accepts an existing `NDIndex`, a textual index, an ``int``, a
        ``slice``, ``Ellipsis``, a boolean mask array, or a tuple of those.
        """
        if isinstance(key, NDIndex):
            return key
        if isinstance(key, str):
            return cls(key)
        out = cls()
        items = key if isinstance(key, tuple) else (key,)
        for item in items:
            if item is Ellipsis:
                out.add_ellipsis()
            elif isinstance(item, slice):
                if item.start is None and item.stop is None and item.step is None:
                    out.add_all()
                else:
                    out.add_slice(item.start, item.stop, item.step)
            elif type(item).__name__ in ("bool", "bool_"):
                raise InvalidIndexError("boolean scalars are not valid indices")
            elif isinstance(item, int) or (
                hasattr(item, "__index__") and getattr(item, "ndim", 0) == 0
            ):
                out.add_index(int(item))
            elif hasattr(item, "shape") and hasattr(item, "nonzero"):
                out.add_mask(item)
            else:
                raise InvalidIndexError(f"unsupported index item {item!r}")
        return out

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def selectors(self) -> tuple[Selector, ...]:
        return tuple(self._selectors)

    def __len__(self) -> int:
        return len(self._selectors)

    def __repr__(self) -> str:
        return f"NDIndex({', '.join(_render(s) for s in self._selectors)})"

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def _axes_consumed(self, selector: Selector) -> int:
        if isinstance(selector, MaskSelector):
            return len(selector.mask_shape)
        if isinstance(selector, EllipsisSelector):
            return 0
        return 1

    def resolve(self, shape: Union[Shape, Sequence[int]]) -> ResolvedIndex:
        """
        Bind this index to `shape`.

        Returns
        -------
        ResolvedIndex
            The per-axis selection and the resulting shape.

        Raises
        ------
        InvalidIndexError
            If more axes are selected than `shape` has, a point falls outside
            its axis, or a mask does not match the axes it covers.
        """
        shape = shape if isinstance(shape, Shape) else Shape(shape)
        rank = shape.rank
        consumed = sum(self._axes_consumed(s) for s in self._selectors)
        if consumed > rank:
            raise InvalidIndexError(
                f"too many indices: {consumed} axes selected for rank {rank}"
            )

        expanded: list[Selector] = []
        for s in self._selectors:
            if isinstance(s, EllipsisSelector):
                expanded.extend(AllSelector() for _ in range(rank - consumed))
            else:
                expanded.append(s)
        covered = sum(self._axes_consumed(s) for s in expanded)
        expanded.extend(AllSelector() for _ in range(rank - covered))

        basic: list = []
        masks: list = []
        out_dims: list[int] = []
        axis = 0
        for s in expanded:
            extent = shape[axis] if axis < rank else 0
            if isinstance(s, PointSelector):
                i = s.index + extent if s.index < 0 else s.index
                if i < 0 or i >= extent:
                    raise InvalidIndexError(
                        f"index {s.index} is out of bounds for axis {axis} with size {extent}"
                    )
                basic.append(i)
                axis += 1
            elif isinstance(s, RangeSelector):
                sl = s.as_slice()
                basic.append(sl)
                out_dims.append(len(range(*sl.indices(extent))))
                axis += 1
            elif isinstance(s, AllSelector):
                basic.append(slice(None))
                out_dims.append(extent)
                axis += 1
            else:
                k = len(s.mask_shape)
                covered_dims = tuple(shape.dims[axis : axis + k])
                if s.mask_shape != covered_dims:
                    raise InvalidIndexError(
                        f"mask shape {s.mask_shape} does not match axes "
                        f"{axis}..{axis + k - 1} of shape {shape}"
                    )
                masks.append((len(out_dims), s.mask))
                out_dims.append(s.count())
                basic.extend(slice(None) for _ in range(k))
                axis += k

        return ResolvedIndex(
            source=shape,
            basic=tuple(basic),
            masks=tuple(masks),
            shape=Shape(out_dims),
        )


def _render(selector: Selector) -> str:
    if isinstance(selector, PointSelector):
        return str(selector.index)
    if isinstance(selector, AllSelector):
        return ":"
    if isinstance(selector, EllipsisSelector):
        return "..."
    if isinstance(selector, RangeSelector):
        parts = [
            "" if v is None else str(v)
            for v in (selector.start, selector.stop, selector.step)
        ]
        return ":".join(parts[:2]) if selector.step is None else ":".join(parts)
    return f"mask{selector.mask_shape}"
