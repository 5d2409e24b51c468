"""
Arithmetic mixin: copy and in-place element-wise operators.

Every operation exists in two forms sharing the same broadcast and type
promotion rules:

- the copy form (``add``, ``sub``, ...) returns a new array and leaves the
  receiver unchanged;
- the in-place form (``addi``, ``subi``, ...) writes into the receiver and
  returns it. It raises `ShapeMismatchError` when the broadcast shape differs
  from the receiver's shape and `InvalidConversionError` when the promoted
  type differs from the receiver's type.

Python operators map onto these forms (``a + b`` is ``a.add(b)``, ``a += b``
is ``a.addi(b)``). Integer and boolean division promotes to ``FLOAT32``.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TYPE_CHECKING, Union

import numpy as np

from ....domain._dtype import DataType
from ....domain._errors import InvalidConversionError, ShapeMismatchError
from ....domain._shape import Shape, normalize_axis
from ...backend._dtypes import to_numpy_dtype

if TYPE_CHECKING:
    from .._array import NDArray

Number = Union[bool, int, float]
Operand = Union["NDArray", Number, np.ndarray]

# Boolean inputs stay boolean only for these (logical or / and).
_BOOLEAN_OPS = ("add", "mul", "maximum", "minimum")


def _binary_grads(op: str, x: np.ndarray, y: np.ndarray, out: np.ndarray) -> Callable:
    """
    Build ``g -> (dx, dy)`` for ``out = op(x, y)``.

    Backward rules
    --------------
    - add: ``(g, g)``
    - sub: ``(g, -g)``
    - mul: ``(g * y, g * x)``
    - div: ``(g / y, -g * x / y**2)``
    - pow: ``(g * y * x**(y - 1), g * out * log(x))``
    - mod: ``(g, -g * floor(x / y))``
    """

    def backward(g: np.ndarray):
        if op == "add":
            return g, g
        if op == "sub":
            return g, -g
        if op == "mul":
            return g * y, g * x
        if op == "div":
            return g / y, -g * x / (y * y)
        if op == "pow":
            with np.errstate(divide="ignore", invalid="ignore"):
                dx = g * y * np.power(x, y - 1)
                dy = g * out * np.log(np.where(x > 0, x, 1))
            return dx, dy
        if op == "mod":
            return g, -g * np.floor_divide(x, y)
        if op in ("maximum", "minimum"):
            pick = (x >= y) if op == "maximum" else (x <= y)
            return g * pick, g * ~pick
        raise NotImplementedError(f"no backward rule for {op!r}")

    return backward


class ArrayMixinArithmetic:
    """
    Element-wise arithmetic in copy and in-place forms.
    """

    # ------------------------------------------------------------------
    # Shared machinery
    # ------------------------------------------------------------------
    def _result_dtype(self: "NDArray", op: str, dtype: DataType) -> DataType:
        if op == "div" and not dtype.is_floating():
            return DataType.FLOAT32
        if dtype.is_boolean() and op not in _BOOLEAN_OPS:
            raise InvalidConversionError(f"{op} is not defined for boolean arrays")
        return dtype

    def _elementwise(
        self: "NDArray", op: str, other: Operand, reverse: bool = False
    ) -> "NDArray":
        b, b_dtype, b_shape, b_arr = self._operand(other)
        dtype = self._result_dtype(op, self._promote(b_dtype, b))
        self._broadcast_shape(op, b_shape)
        a = self._host()
        x, y = (b, a) if reverse else (a, b)
        values = self._dispatcher.binary(op, x, y, to_numpy_dtype(dtype))
        out = self._new(values)

        slots = ((b_arr, 0), (self, 1)) if reverse else ((self, 0), (b_arr, 1))
        parents = tuple(p for p, _ in slots if p is not None)
        grads = _binary_grads(op, np.asarray(x), np.asarray(y), values)

        def backward_fn(g: np.ndarray):
            both = grads(g)
            return tuple(both[i] for p, i in slots if p is not None)

        return self._record(out, parents, backward_fn, op)

    def _elementwise_(self: "NDArray", op: str, other: Operand) -> "NDArray":
        name = op + "i"
        host = self._mutable_host(name)
        b, b_dtype, b_shape, _ = self._operand(other)
        dtype = self._result_dtype(op, self._promote(b_dtype, b))
        if dtype is not self.dtype:
            raise InvalidConversionError(
                f"{name}: result type {dtype.value} cannot be stored in a "
                f"{self.dtype.value} array"
            )
        shape = self._broadcast_shape(name, b_shape)
        if shape != self.shape:
            raise ShapeMismatchError(
                name, self.shape, b_shape, detail="in-place result must keep the receiver's shape"
            )
        self._dispatcher.binary_(op, host, b)
        return self

    # ------------------------------------------------------------------
    # Copy forms
    # ------------------------------------------------------------------
    def add(self: "NDArray", other: Operand) -> "NDArray":
        """Element-wise ``self + other`` with broadcasting."""
        return self._elementwise("add", other)

    def sub(self: "NDArray", other: Operand) -> "NDArray":
        """Element-wise ``self - other`` with broadcasting."""
        return self._elementwise("sub", other)

    def mul(self: "NDArray", other: Operand) -> "NDArray":
        """Element-wise ``self * other`` with broadcasting."""
        return self._elementwise("mul", other)

    def div(self: "NDArray", other: Operand) -> "NDArray":
        """Element-wise true division; integer inputs produce ``FLOAT32``."""
        return self._elementwise("div", other)

    def mod(self: "NDArray", other: Operand) -> "NDArray":
        """Element-wise remainder (sign follows the divisor)."""
        return self._elementwise("mod", other)

    def pow(self: "NDArray", other: Operand) -> "NDArray":
        """Element-wise power."""
        return self._elementwise("pow", other)

    def maximum(self: "NDArray", other: Operand) -> "NDArray":
        return self._elementwise("maximum", other)

    def minimum(self: "NDArray", other: Operand) -> "NDArray":
        return self._elementwise("minimum", other)

    def neg(self: "NDArray") -> "NDArray":
        """Element-wise negation."""
        if self.dtype.is_boolean():
            raise InvalidConversionError("neg is not defined for boolean arrays")
        out = self._new(self._dispatcher.unary("neg", self._host(), to_numpy_dtype(self.dtype)))
        return self._record(out, (self,), lambda g: (-g,), "neg")

    # ------------------------------------------------------------------
    # In-place forms
    # ------------------------------------------------------------------
    def addi(self: "NDArray", other: Operand) -> "NDArray":
        return self._elementwise_("add", other)

    def subi(self: "NDArray", other: Operand) -> "NDArray":
        return self._elementwise_("sub", other)

    def muli(self: "NDArray", other: Operand) -> "NDArray":
        return self._elementwise_("mul", other)

    def divi(self: "NDArray", other: Operand) -> "NDArray":
        return self._elementwise_("div", other)

    def modi(self: "NDArray", other: Operand) -> "NDArray":
        return self._elementwise_("mod", other)

    def powi(self: "NDArray", other: Operand) -> "NDArray":
        return self._elementwise_("pow", other)

    def negi(self: "NDArray") -> "NDArray":
        host = self._mutable_host("negi")
        if self.dtype.is_boolean():
            raise InvalidConversionError("negi is not defined for boolean arrays")
        self._dispatcher.unary_("neg", host)
        return self

    # ------------------------------------------------------------------
    # Cumulative sum
    # ------------------------------------------------------------------
    def _cumsum_dtype(self: "NDArray") -> DataType:
        return DataType.INT64 if self.dtype.is_boolean() else self.dtype

    def cumsum(self: "NDArray", axis: Optional[int] = None) -> "NDArray":
        """
        Cumulative sum along `axis`; over the flattened array when None.

        Booleans are summed as ``INT64``.
        """
        a = normalize_axis(axis, self.rank) if axis is not None else None
        values = self._dispatcher.cumsum(
            self._host(), a, to_numpy_dtype(self._cumsum_dtype())
        )
        return self._new(values)

    def cumsumi(self: "NDArray", axis: Optional[int] = None) -> "NDArray":
        """
        In-place cumulative sum.

        Raises
        ------
        ShapeMismatchError
            If `axis` is None and the array has rank >= 2 (flattening would
            change the receiver's shape).
        InvalidConversionError
            For boolean arrays.
        """
        host = self._mutable_host("cumsumi")
        if axis is None and self.rank >= 2:
            raise ShapeMismatchError(
                "cumsumi", self.shape, detail="flattened cumulative sum cannot be stored in place"
            )
        if self._cumsum_dtype() is not self.dtype:
            raise InvalidConversionError("cumsumi is not defined for boolean arrays")
        a = normalize_axis(axis, self.rank) if axis is not None else None
        values = self._dispatcher.cumsum(host, a, host.dtype)
        np.copyto(host, values.reshape(host.shape))
        return self

    # ------------------------------------------------------------------
    # Matrix product
    # ------------------------------------------------------------------
    def mmul(self: "NDArray", other: "NDArray") -> "NDArray":
        """
        Matrix product following the usual rules for 1-D and batched
        operands.

        Raises
        ------
        ShapeMismatchError
            If the contracted extents differ, an operand is rank 0, or the
            batch axes do not broadcast.
        """
        other = self._peer(other, "mmul")
        sa, sb = self.shape, other.shape
        if sa.rank == 0 or sb.rank == 0:
            raise ShapeMismatchError("mmul", sa, sb, detail="operands must have rank >= 1")
        k_b = sb[0] if sb.rank == 1 else sb[-2]
        if sa[-1] != k_b:
            raise ShapeMismatchError("mmul", sa, sb)
        try:
            Shape.broadcast(sa.dims[:-2], sb.dims[:-2])
        except ShapeMismatchError:
            raise ShapeMismatchError("mmul", sa, sb, detail="batch axes do not broadcast") from None
        dtype = DataType.promote(self.dtype, other.dtype)
        x, y = self._host(), other._host()
        values = self._dispatcher.matmul(x, y, to_numpy_dtype(dtype))
        out = self._new(values)

        def backward_fn(g: np.ndarray):
            a2 = x if x.ndim > 1 else x[np.newaxis, :]
            b2 = y if y.ndim > 1 else y[:, np.newaxis]
            g2 = g
            if x.ndim == 1:
                g2 = np.expand_dims(g2, -2)
            if y.ndim == 1:
                g2 = np.expand_dims(g2, -1)
            ga = np.matmul(g2, np.swapaxes(b2, -1, -2))
            gb = np.matmul(np.swapaxes(a2, -1, -2), g2)
            if x.ndim == 1:
                ga = ga[..., 0, :]
            if y.ndim == 1:
                gb = gb[..., 0]
            return ga, gb

        return self._record(out, (self, other), backward_fn, "mmul")

    # ------------------------------------------------------------------
    # Python operators
    # ------------------------------------------------------------------
    def __add__(self, other: Operand) -> "NDArray":
        return self.add(other)

    def __radd__(self, other: Number) -> "NDArray":
        return self._elementwise("add", other, reverse=True)

    def __sub__(self, other: Operand) -> "NDArray":
        return self.sub(other)

    def __rsub__(self, other: Number) -> "NDArray":
        return self._elementwise("sub", other, reverse=True)

    def __mul__(self, other: Operand) -> "NDArray":
        return self.mul(other)

    def __rmul__(self, other: Number) -> "NDArray":
        return self._elementwise("mul", other, reverse=True)

    def __truediv__(self, other: Operand) -> "NDArray":
        return self.div(other)

    def __rtruediv__(self, other: Number) -> "NDArray":
        return self._elementwise("div", other, reverse=True)

    def __mod__(self, other: Operand) -> "NDArray":
        return self.mod(other)

    def __rmod__(self, other: Number) -> "NDArray":
        return self._elementwise("mod", other, reverse=True)

    def __pow__(self, other: Operand) -> "NDArray":
        return self.pow(other)

    def __rpow__(self, other: Number) -> "NDArray":
        return self._elementwise("pow", other, reverse=True)

    def __matmul__(self, other: "NDArray") -> "NDArray":
        return self.mmul(other)

    def __neg__(self) -> "NDArray":
        return self.neg()

    def __iadd__(self, other: Operand) -> "NDArray":
        return self.addi(other)

    def __isub__(self, other: Operand) -> "NDArray":
        return self.subi(other)

    def __imul__(self, other: Operand) -> "NDArray":
        return self.muli(other)

    def __itruediv__(self, other: Operand) -> "NDArray":
        return self.divi(other)

    def __imod__(self, other: Operand) -> "NDArray":
        return self.modi(other)

    def __ipow__(self, other: Operand) -> "NDArray":
        return self.powi(other)
