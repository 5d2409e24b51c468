"""
NumPy kernel dispatcher for dense host storage.

`NumpyDenseDispatcher` is registered for ``(DeviceType.CPU, SparseFormat.DENSE)``.
Dense storage is a C-contiguous `numpy.ndarray`; every kernel takes and
returns host arrays. The sparse dispatchers inherit the kernels and override
only the storage-level methods.

Kernels assume the array layer already validated shapes and dtypes. Floating
point exceptions (division by zero, invalid values) are silenced and follow
IEEE semantics (``inf``/``nan``).
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

import numpy as np

from ...domain._errors import InvalidConversionError, InvalidIndexError
from ...domain._formats import SparseFormat
from ...domain.device._device import DeviceType
from ._registry import kernel_registry

_BINARY = {
    "add": np.add,
    "sub": np.subtract,
    "mul": np.multiply,
    "div": np.true_divide,
    "mod": np.mod,
    "pow": np.power,
    "maximum": np.maximum,
    "minimum": np.minimum,
}

_COMPARE = {
    "eq": np.equal,
    "neq": np.not_equal,
    "gt": np.greater,
    "gte": np.greater_equal,
    "lt": np.less,
    "lte": np.less_equal,
}

_UNARY = {
    "abs": np.abs,
    "neg": np.negative,
    "sign": np.sign,
    "square": np.square,
    "sqrt": np.sqrt,
    "cbrt": np.cbrt,
    "floor": np.floor,
    "ceil": np.ceil,
    "round": np.round,
    "trunc": np.trunc,
    "exp": np.exp,
    "log": np.log,
    "log10": np.log10,
    "log2": np.log2,
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "asin": np.arcsin,
    "acos": np.arccos,
    "atan": np.arctan,
    "sinh": np.sinh,
    "cosh": np.cosh,
    "tanh": np.tanh,
    "asinh": np.arcsinh,
    "acosh": np.arccosh,
    "atanh": np.arctanh,
    "to_degrees": np.degrees,
    "to_radians": np.radians,
}

# Predicates ignore the requested dtype and always yield booleans.
_PREDICATES = {
    "is_nan": np.isnan,
    "is_infinite": np.isinf,
    "logical_not": np.logical_not,
}

_REDUCE = {
    "sum": np.sum,
    "prod": np.prod,
    "mean": np.mean,
    "max": np.max,
    "min": np.min,
}


def _lookup(table: dict, op: str, family: str):
    try:
        return table[op]
    except KeyError:
        raise NotImplementedError(f"Unknown {family} kernel: {op!r}") from None


def _contiguous(values: Any, dtype: Any = None) -> np.ndarray:
    # np.ascontiguousarray would turn 0-d results into 1-d arrays.
    return np.asarray(values, dtype=dtype, order="C")


def _as_operand(value: Any, dtype: Optional[np.dtype] = None) -> np.ndarray:
    return np.asarray(value, dtype=dtype)


def _wide(value: Any, dtype: Any) -> np.ndarray:
    # Python numbers keep their own width; the result cast wraps them.
    if isinstance(value, np.ndarray):
        return value.astype(dtype, copy=False)
    scalar = np.asarray(value)
    if scalar.dtype == object:
        raise InvalidConversionError(f"{value!r} does not fit in a 64-bit integer")
    return scalar


def _cast(value: Any, dtype: Any) -> np.ndarray:
    """Host values of `value` in `dtype`. Out-of-range integers wrap."""
    return _wide(value, dtype).astype(dtype, copy=False)


@kernel_registry.register(DeviceType.CPU, SparseFormat.DENSE)
class NumpyDenseDispatcher:
    """
    Dense CPU kernels implemented with NumPy.
    """

    sparse_format = SparseFormat.DENSE

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    def from_host(self, values: Any) -> np.ndarray:
        return _contiguous(values)

    def to_host(self, storage: np.ndarray) -> np.ndarray:
        return storage

    def to_dense(self, storage: Any) -> np.ndarray:
        return np.array(self.to_host(storage), copy=True)

    def copy(self, storage: np.ndarray) -> np.ndarray:
        return np.array(storage, copy=True)

    def nbytes(self, storage: np.ndarray) -> int:
        return int(storage.nbytes)

    def nonzero(self, storage: Any) -> int:
        return int(np.count_nonzero(self.to_host(storage)))

    def components(self, storage: np.ndarray) -> dict:
        return {"data": storage}

    def from_components(
        self, components: dict, shape: Sequence[int], dtype: Any
    ) -> np.ndarray:
        data = np.asarray(components["data"], dtype=dtype)
        if data.size != int(np.prod(shape, dtype=np.int64)):
            raise InvalidConversionError(
                f"dense payload holds {data.size} elements, shape {tuple(shape)} needs "
                f"{int(np.prod(shape, dtype=np.int64))}"
            )
        return _contiguous(data.reshape(tuple(shape)))

    # ------------------------------------------------------------------
    # Element-wise
    # ------------------------------------------------------------------
    def binary(self, op: str, a: Any, b: Any, dtype: Any) -> np.ndarray:
        fn = _lookup(_BINARY, op, "binary")
        x, y = _wide(a, dtype), _wide(b, dtype)
        if op == "pow" and np.dtype(dtype).kind in "iu" and np.any(y < 0):
            raise InvalidConversionError(
                "integer arrays cannot be raised to negative integer powers"
            )
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            return _contiguous(_cast(fn(x, y), dtype))

    def binary_(self, op: str, out: np.ndarray, b: Any) -> None:
        out[...] = self.binary(op, out, b, out.dtype)

    def compare(self, op: str, a: Any, b: Any) -> np.ndarray:
        fn = _lookup(_COMPARE, op, "comparison")
        return _contiguous(fn(_as_operand(a), _as_operand(b)))

    def close(self, a: Any, b: Any, tolerance: float) -> np.ndarray:
        a = _as_operand(a)
        b = _as_operand(b)
        with np.errstate(invalid="ignore"):
            return _contiguous(np.isclose(a, b, rtol=0.0, atol=tolerance))

    def unary(self, op: str, a: Any, dtype: Any) -> np.ndarray:
        if op in _PREDICATES:
            return _contiguous(_PREDICATES[op](_as_operand(a)))
        fn = _lookup(_UNARY, op, "unary")
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            out = fn(_as_operand(a, dtype))
        return _contiguous(np.asarray(out).astype(dtype, copy=False))

    def unary_(self, op: str, out: np.ndarray) -> None:
        fn = _lookup(_UNARY, op, "unary")
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            fn(out, out=out)

    def clip(self, a: Any, low: Any, high: Any) -> np.ndarray:
        a = _as_operand(a)
        return _contiguous(np.clip(a, low, high).astype(a.dtype, copy=False))

    def softmax(self, a: Any, axes: tuple, temperature: float, dtype: Any) -> np.ndarray:
        x = _as_operand(a, dtype) * temperature
        # Shift by the max for numerical stability.
        shifted = x - np.max(x, axis=axes, keepdims=True)
        e = np.exp(shifted)
        return _contiguous(e / np.sum(e, axis=axes, keepdims=True))

    # ------------------------------------------------------------------
    # Reductions
    # ------------------------------------------------------------------
    def reduce(
        self, op: str, a: Any, axes: tuple, keep_dims: bool, dtype: Any
    ) -> np.ndarray:
        fn = _lookup(_REDUCE, op, "reduction")
        out = fn(_as_operand(a), axis=axes, keepdims=keep_dims)
        return _contiguous(np.asarray(out).astype(dtype, copy=False))

    def arg_reduce(
        self, op: str, a: Any, axis: Optional[int], keep_dims: bool
    ) -> np.ndarray:
        fn = {"argmax": np.argmax, "argmin": np.argmin}.get(op)
        if fn is None:
            raise NotImplementedError(f"Unknown arg-reduction kernel: {op!r}")
        out = fn(_as_operand(a), axis=axis, keepdims=keep_dims)
        return _contiguous(np.asarray(out, dtype=np.int64))

    def quantile(self, a: Any, q: float, axes: tuple, dtype: Any) -> np.ndarray:
        a = _as_operand(a, dtype)
        axis = None if len(axes) == a.ndim else axes
        out = np.percentile(a, q, axis=axis)
        return _contiguous(np.asarray(out).astype(dtype, copy=False))

    def cumsum(self, a: Any, axis: Optional[int], dtype: Any) -> np.ndarray:
        return _contiguous(np.cumsum(_as_operand(a), axis=axis, dtype=dtype))

    def sum_to_shape(self, grad: Any, shape: Sequence[int]) -> np.ndarray:
        """
        Reduce a broadcast gradient back to `shape`.

        Leading axes added by broadcasting are summed away; axes where
        `shape` holds 1 are summed with ``keepdims``.
        """
        g = _as_operand(grad)
        shape = tuple(shape)
        if g.shape == shape:
            return g
        extra = g.ndim - len(shape)
        if extra > 0:
            g = g.sum(axis=tuple(range(extra)))
        axes = tuple(i for i, d in enumerate(shape) if d == 1 and g.shape[i] != 1)
        if axes:
            g = g.sum(axis=axes, keepdims=True)
        return g.reshape(shape)

    # ------------------------------------------------------------------
    # Structural
    # ------------------------------------------------------------------
    def reshape(self, a: Any, shape: tuple) -> np.ndarray:
        # A view when the layout allows it.
        return np.reshape(_as_operand(a), shape)

    def transpose(self, a: Any, axes: tuple) -> np.ndarray:
        return _contiguous(np.transpose(_as_operand(a), axes))

    def broadcast_to(self, a: Any, shape: tuple) -> np.ndarray:
        return np.array(np.broadcast_to(_as_operand(a), shape), copy=True)

    def concat(self, arrays: Sequence[Any], axis: int) -> np.ndarray:
        return _contiguous(np.concatenate([_as_operand(x) for x in arrays], axis=axis))

    def stack(self, arrays: Sequence[Any], axis: int) -> np.ndarray:
        return _contiguous(np.stack([_as_operand(x) for x in arrays], axis=axis))

    def split(self, a: Any, boundaries: Sequence[int], axis: int) -> list:
        parts = np.split(_as_operand(a), list(boundaries), axis=axis)
        return [np.array(p, copy=True) for p in parts]

    def tile(self, a: Any, reps: tuple) -> np.ndarray:
        return _contiguous(np.tile(_as_operand(a), reps))

    def repeat(self, a: Any, repeats: int, axis: int) -> np.ndarray:
        return _contiguous(np.repeat(_as_operand(a), repeats, axis=axis))

    def matmul(self, a: Any, b: Any, dtype: Any) -> np.ndarray:
        return _contiguous(np.matmul(_as_operand(a, dtype), _as_operand(b, dtype)))

    def sort(self, a: Any, axis: int) -> np.ndarray:
        return _contiguous(np.sort(_as_operand(a), axis=axis, kind="stable"))

    def argsort(self, a: Any, axis: int, ascending: bool) -> np.ndarray:
        idx = np.argsort(_as_operand(a), axis=axis, kind="stable")
        if not ascending:
            idx = np.flip(idx, axis=axis)
        return _contiguous(idx.astype(np.int64, copy=False))

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------
    def gather(self, a: Any, resolved: Any) -> np.ndarray:
        """
        Copy out the selection described by a host-resolved index.

        Point and range selections are applied first in one basic-indexing
        step; each mask then replaces the axes it covers at its position.
        """
        out = _as_operand(a)[resolved.basic]
        for pos, mask in resolved.masks:
            out = np.asarray(out)[(slice(None),) * pos + (mask,)]
        return np.array(out, copy=True).reshape(tuple(resolved.shape))

    def scatter(self, out: np.ndarray, resolved: Any, values: Any) -> None:
        with np.errstate(invalid="ignore", over="ignore"):
            values = _cast(values, out.dtype)
        if not resolved.masks:
            out[resolved.basic] = values
            return
        if len(resolved.masks) > 1:
            raise InvalidIndexError("assignment supports at most one mask selector")
        pos, mask = resolved.masks[0]
        view = out[resolved.basic]
        view[(slice(None),) * pos + (mask,)] = values

    def astype(self, a: Any, dtype: Any) -> np.ndarray:
        return _contiguous(_as_operand(a).astype(dtype))
