"""
Indexing mixin.

Reads and writes go through `NDIndex`. Keys accepted by `get`, `set` and the
subscript operators:

- an `NDIndex` or its textual form (``"1:, -1"``),
- integers, slices and ``...``, alone or in a tuple,
- boolean masks (`NDArray` or NumPy), covering as many leading axes of the
  remaining selection as the mask has dimensions.

Assigned values broadcast to the selection's shape with the usual rule.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING, Union

import numpy as np

from ....domain._dtype import DataType
from ....domain._errors import (
    InvalidConversionError,
    InvalidIndexError,
    ShapeMismatchError,
)
from ....domain._index import MaskSelector, NDIndex, ResolvedIndex
from ....domain._shape import Shape
from ...backend._dtypes import from_numpy_dtype

if TYPE_CHECKING:
    from .._array import NDArray

Number = Union[bool, int, float]


def _key(indices: tuple) -> Any:
    # get(1, 2) and get((1, 2)) select the same element.
    return indices[0] if len(indices) == 1 else indices


class ArrayMixinIndexing:
    """
    Sub-selection reads and writes.
    """

    def _resolve(self: "NDArray", index: NDIndex) -> ResolvedIndex:
        """
        Bind `index` to this array's shape with host masks.

        Raises
        ------
        InvalidIndexError
            If a mask is not boolean or does not fit the axes it covers.
        """
        bound = NDIndex()
        for s in index.selectors:
            if isinstance(s, MaskSelector):
                m = s.mask
                m = m.to_numpy() if hasattr(m, "to_numpy") else np.asarray(m)
                if m.dtype != np.bool_:
                    raise InvalidIndexError(f"mask must be boolean, got {m.dtype.name}")
                bound.add_mask(m)
            else:
                bound._append(s)
        return bound.resolve(self.shape)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self: "NDArray", *indices: Any) -> "NDArray":
        """
        Copy out a sub-selection.

        Point-selected axes are removed, range-selected axes are resized and
        mask-covered axes collapse into one axis holding the number of
        matches.

        Examples
        --------
        >>> factory.create([10, 20, 30]).get(-1).item()
        30
        >>> x.get("1:, ::2").shape
        Shape(1, 2)
        """
        resolved = self._resolve(NDIndex.from_key(_key(indices)))
        out = self._new(self._dispatcher.gather(self._host(), resolved))
        source = self.shape.dims

        def backward_fn(g: np.ndarray):
            gx = np.zeros(source, dtype=g.dtype)
            self._dispatcher.scatter(gx, resolved, g)
            return (gx,)

        return self._record(out, (self,), backward_fn, "get")

    def __getitem__(self, key: Any) -> "NDArray":
        return self.get(key)

    def get_element(self: "NDArray", *indices: Any) -> Number:
        """
        The single element addressed by `indices` as a Python number.

        Raises
        ------
        InvalidIndexError
            If the selection does not address exactly one element.
        """
        resolved = self._resolve(NDIndex.from_key(_key(indices)))
        if not resolved.is_single_element():
            raise InvalidIndexError(
                f"selection of shape {resolved.shape} does not address a single element"
            )
        values = self._dispatcher.gather(self._host(), resolved)
        return values.reshape(-1)[0].item()

    def _typed_element(self: "NDArray", family: str, ok: bool, indices: tuple) -> Number:
        if not ok:
            raise InvalidConversionError(
                f"get_{family} on a {self.dtype.value} array"
            )
        return self.get_element(*indices)

    def get_float(self: "NDArray", *indices: Any) -> float:
        return self._typed_element("float", self.dtype.is_floating(), indices)

    def get_int(self: "NDArray", *indices: Any) -> int:
        return self._typed_element("int", self.dtype.is_integer(), indices)

    def get_bool(self: "NDArray", *indices: Any) -> bool:
        return self._typed_element("bool", self.dtype.is_boolean(), indices)

    def get_uint8(self: "NDArray", *indices: Any) -> int:
        return self._typed_element("uint8", self.dtype is DataType.UINT8, indices)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def _assignment(self: "NDArray", key: Any, value: Any) -> tuple:
        """Validate a write and return ``(resolved, host value)``."""
        resolved = self._resolve(NDIndex.from_key(key))
        if len(resolved.masks) > 1:
            raise InvalidIndexError("assignment supports at most one mask selector")
        v, v_dtype, v_shape, _ = self._operand(value)
        if v_dtype is None:
            v_dtype = DataType.of(type(v))
        if not v_dtype.can_convert_to(self.dtype):
            raise InvalidConversionError(
                f"cannot store {v_dtype.value} values in a {self.dtype.value} array"
            )
        if not Shape(v_shape).can_broadcast_to(resolved.shape):
            raise ShapeMismatchError("set", v_shape, resolved.shape)
        return resolved, v

    def set(self: "NDArray", key: Any, value: Any) -> "NDArray":
        """
        Copy of this array with the selection replaced by `value`.
        """
        resolved, v = self._assignment(key, value)
        values = self.to_numpy()
        self._dispatcher.scatter(values, resolved, v)
        return self._new(values, self.sparse_format)

    def seti(self: "NDArray", key: Any, value: Any) -> "NDArray":
        """
        Replace the selection by `value` in place and return this array.

        Raises
        ------
        ShapeMismatchError
            If `value` does not broadcast to the selection's shape.
        InvalidConversionError
            If the array is sparse or `value` cannot be stored in it.
        """
        host = self._mutable_host("seti")
        resolved, v = self._assignment(key, value)
        self._dispatcher.scatter(host, resolved, v)
        return self

    def __setitem__(self, key: Any, value: Any) -> None:
        self.seti(key, value)

    def _single(self: "NDArray", key: Any, value: Any) -> Any:
        resolved = self._resolve(NDIndex.from_key(key))
        if not resolved.is_single_element():
            raise InvalidIndexError(
                f"selection of shape {resolved.shape} does not address a single element"
            )
        if isinstance(value, np.generic):
            value = value.item()
        if not isinstance(value, (bool, int, float)):
            raise InvalidConversionError(
                f"set_element expects a number, got {type(value).__name__!r}"
            )
        return key

    def set_element(self: "NDArray", key: Any, value: Number) -> "NDArray":
        """Copy of this array with the one element at `key` replaced."""
        return self.set(self._single(key, value), value)

    def set_elementi(self: "NDArray", key: Any, value: Number) -> "NDArray":
        """In-place form of `set_element`."""
        return self.seti(self._single(key, value), value)
