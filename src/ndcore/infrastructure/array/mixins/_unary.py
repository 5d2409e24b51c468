"""
Element-wise math mixin.

Rounding and sign functions keep the input type. Transcendental functions
(roots, exponentials, logarithms, trigonometric and hyperbolic functions,
angle conversions) produce a floating result: ``FLOAT32`` for integer or
boolean input, otherwise the input's own floating type.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Sequence, TYPE_CHECKING, Union

import numpy as np

from ....domain._dtype import DataType
from ....domain._errors import InvalidConversionError
from ....domain._shape import normalize_axes, normalize_axis
from ...backend._dtypes import to_numpy_dtype

if TYPE_CHECKING:
    from .._array import NDArray

# x, out, g -> dx
_GRADS: Dict[str, Callable[[np.ndarray, np.ndarray, np.ndarray], np.ndarray]] = {
    "exp": lambda x, out, g: g * out,
    "log": lambda x, out, g: g / x,
    "sin": lambda x, out, g: g * np.cos(x),
    "cos": lambda x, out, g: -g * np.sin(x),
    "tanh": lambda x, out, g: g * (1.0 - out * out),
    "abs": lambda x, out, g: g * np.sign(x),
    "square": lambda x, out, g: 2.0 * g * x,
    "sqrt": lambda x, out, g: g / (2.0 * out),
}


class ArrayMixinUnary:
    """
    Element-wise mathematical functions, clipping, softmax and sorting.
    """

    def _map(self: "NDArray", op: str, floating: bool = True) -> "NDArray":
        if floating and not self.dtype.is_floating():
            dtype = DataType.FLOAT32
        else:
            dtype = self.dtype
        x = self._host()
        values = self._dispatcher.unary(op, x, to_numpy_dtype(dtype))
        out = self._new(values)
        grad = _GRADS.get(op)
        if grad is None:
            return out
        return self._record(out, (self,), lambda g: (grad(x, values, g),), op)

    # Type-preserving
    def abs(self: "NDArray") -> "NDArray":
        return self._map("abs", floating=False)

    def __abs__(self) -> "NDArray":
        return self.abs()

    def sign(self: "NDArray") -> "NDArray":
        return self._map("sign", floating=False)

    def square(self: "NDArray") -> "NDArray":
        return self._map("square", floating=False)

    def floor(self: "NDArray") -> "NDArray":
        return self._map("floor", floating=False)

    def ceil(self: "NDArray") -> "NDArray":
        return self._map("ceil", floating=False)

    def round(self: "NDArray") -> "NDArray":
        """Round half to even."""
        return self._map("round", floating=False)

    def trunc(self: "NDArray") -> "NDArray":
        return self._map("trunc", floating=False)

    # Floating
    def sqrt(self: "NDArray") -> "NDArray":
        return self._map("sqrt")

    def cbrt(self: "NDArray") -> "NDArray":
        return self._map("cbrt")

    def exp(self: "NDArray") -> "NDArray":
        return self._map("exp")

    def log(self: "NDArray") -> "NDArray":
        """Natural logarithm; non-positive inputs give ``-inf``/``nan``."""
        return self._map("log")

    def log10(self: "NDArray") -> "NDArray":
        return self._map("log10")

    def log2(self: "NDArray") -> "NDArray":
        return self._map("log2")

    def sin(self: "NDArray") -> "NDArray":
        return self._map("sin")

    def cos(self: "NDArray") -> "NDArray":
        return self._map("cos")

    def tan(self: "NDArray") -> "NDArray":
        return self._map("tan")

    def asin(self: "NDArray") -> "NDArray":
        return self._map("asin")

    def acos(self: "NDArray") -> "NDArray":
        return self._map("acos")

    def atan(self: "NDArray") -> "NDArray":
        return self._map("atan")

    def sinh(self: "NDArray") -> "NDArray":
        return self._map("sinh")

    def cosh(self: "NDArray") -> "NDArray":
        return self._map("cosh")

    def tanh(self: "NDArray") -> "NDArray":
        return self._map("tanh")

    def asinh(self: "NDArray") -> "NDArray":
        return self._map("asinh")

    def acosh(self: "NDArray") -> "NDArray":
        return self._map("acosh")

    def atanh(self: "NDArray") -> "NDArray":
        return self._map("atanh")

    def to_degrees(self: "NDArray") -> "NDArray":
        return self._map("to_degrees")

    def to_radians(self: "NDArray") -> "NDArray":
        return self._map("to_radians")

    # ------------------------------------------------------------------
    # Clipping and normalization
    # ------------------------------------------------------------------
    def clip(self: "NDArray", min: Any, max: Any) -> "NDArray":
        """
        Limit every element to ``[min, max]``.

        Raises
        ------
        ValueError
            If ``min > max``.
        """
        if min > max:
            raise ValueError(f"clip bounds are inverted: min={min}, max={max}")
        return self._new(self._dispatcher.clip(self._host(), min, max))

    def softmax(
        self: "NDArray",
        axes: Optional[Union[int, Sequence[int]]] = -1,
        temperature: float = 1.0,
    ) -> "NDArray":
        """
        Softmax over `axes` of ``temperature * self``.

        Parameters
        ----------
        axes : int or sequence of int, optional
            Normalization axes; the last axis by default, every axis for None.
        temperature : float, optional
            Exponent multiplier applied before normalization.
        """
        if self.dtype.is_boolean():
            raise InvalidConversionError("softmax is not defined for boolean arrays")
        ax = normalize_axes(axes, self.rank)
        dtype = self.dtype if self.dtype.is_floating() else DataType.FLOAT32
        values = self._dispatcher.softmax(
            self._host(), ax, float(temperature), to_numpy_dtype(dtype)
        )
        return self._new(values)

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------
    def sort(self: "NDArray", axis: int = -1) -> "NDArray":
        """Ascending stable sort along `axis`."""
        a = normalize_axis(axis, self.rank)
        return self._new(self._dispatcher.sort(self._host(), a))

    def argsort(self: "NDArray", axis: int = -1, ascending: bool = True) -> "NDArray":
        """
        ``INT64`` indices that sort the array along `axis`.
        """
        a = normalize_axis(axis, self.rank)
        return self._new(self._dispatcher.argsort(self._host(), a, ascending))
