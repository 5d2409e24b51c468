"""
Comparison mixin.

Element-wise comparisons return ``BOOLEAN`` arrays of the broadcast shape and
never take part in autograd. The content-equality variants collapse the
comparison into a single Python ``bool``.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TYPE_CHECKING, Union

import numpy as np

from ....domain._errors import InvalidConversionError, ShapeMismatchError
from ....domain._index import NDIndex
from ....domain._shape import Shape
from ...config._settings import get_settings

if TYPE_CHECKING:
    from .._array import NDArray


class ArrayMixinComparison:
    """
    Element-wise comparison and logical predicates.
    """

    def _compare(self: "NDArray", op: str, other: Any) -> "NDArray":
        b, _, b_shape, _ = self._operand(other)
        self._broadcast_shape(op, b_shape)
        return self._new(self._dispatcher.compare(op, self._host(), b))

    def eq(self: "NDArray", other: Any) -> "NDArray":
        """Element-wise ``self == other``."""
        return self._compare("eq", other)

    def neq(self: "NDArray", other: Any) -> "NDArray":
        """Element-wise ``self != other``."""
        return self._compare("neq", other)

    def gt(self: "NDArray", other: Any) -> "NDArray":
        return self._compare("gt", other)

    def gte(self: "NDArray", other: Any) -> "NDArray":
        return self._compare("gte", other)

    def lt(self: "NDArray", other: Any) -> "NDArray":
        return self._compare("lt", other)

    def lte(self: "NDArray", other: Any) -> "NDArray":
        return self._compare("lte", other)

    def __lt__(self, other: Any) -> "NDArray":
        return self.lt(other)

    def __le__(self, other: Any) -> "NDArray":
        return self.lte(other)

    def __gt__(self, other: Any) -> "NDArray":
        return self.gt(other)

    def __ge__(self, other: Any) -> "NDArray":
        return self.gte(other)

    def eps(self: "NDArray", other: Any, tolerance: Optional[float] = None) -> "NDArray":
        """
        Element-wise approximate equality: ``|self - other| <= tolerance``.

        Parameters
        ----------
        other : NDArray or number
            Right-hand operand, broadcast against the receiver.
        tolerance : float, optional
            Absolute tolerance. Defaults to ``eps_tolerance`` from the runtime
            settings.
        """
        tol = get_settings().eps_tolerance if tolerance is None else float(tolerance)
        b, _, b_shape, _ = self._operand(other)
        self._broadcast_shape("eps", b_shape)
        return self._new(self._dispatcher.close(self._host(), b, tol))

    def _matches(self: "NDArray", other: Any, fn: Callable) -> bool:
        _, _, b_shape, _ = self._operand(other)
        try:
            Shape.broadcast(self.shape, b_shape)
        except ShapeMismatchError:
            return False
        result = fn(other)
        try:
            return bool(np.all(result.to_numpy()))
        finally:
            result._release_quietly()

    def content_equals(self: "NDArray", other: Any) -> bool:
        """
        True iff every broadcast-compared element is equal.

        Shapes that cannot be broadcast together compare unequal.
        """
        return self._matches(other, self.eq)

    def equals_with_eps(self: "NDArray", other: Any, tolerance: Optional[float] = None) -> bool:
        """`content_equals` with the tolerance of `eps`."""
        return self._matches(other, lambda o: self.eps(o, tolerance))

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------
    def _predicate(self: "NDArray", op: str) -> "NDArray":
        return self._new(self._dispatcher.unary(op, self._host(), np.bool_))

    def is_nan(self: "NDArray") -> "NDArray":
        return self._predicate("is_nan")

    def is_infinite(self: "NDArray") -> "NDArray":
        return self._predicate("is_infinite")

    def logical_not(self: "NDArray") -> "NDArray":
        """Element-wise logical negation; non-zero values count as true."""
        return self._predicate("logical_not")

    def create_mask(
        self: "NDArray", selection: Union[NDIndex, str, Callable[["NDArray"], "NDArray"]]
    ) -> "NDArray":
        """
        Boolean array of this array's shape.

        Parameters
        ----------
        selection : NDIndex, str or callable
            With an index, the selected positions are True. With a callable,
            the callable is applied to this array and must return a boolean
            array broadcastable to its shape.

        Raises
        ------
        InvalidConversionError
            If the predicate does not produce a boolean array.
        """
        if callable(selection) and not isinstance(selection, NDIndex):
            result = selection(self)
            if not result.dtype.is_boolean():
                raise InvalidConversionError(
                    f"mask predicate must return a boolean array, got {result.dtype.value}"
                )
            if result.shape == self.shape:
                return result
            try:
                return result.broadcast(self.shape)
            finally:
                result._release_quietly()
        resolved = self._resolve(NDIndex.from_key(selection))
        mask = np.zeros(self.shape.dims, dtype=np.bool_)
        self._dispatcher.scatter(mask, resolved, True)
        return self._new(mask)
