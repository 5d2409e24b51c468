"""
Backend contracts for array kernels and graph recording.

This module defines the structural interfaces the array value depends on:

- `IKernelDispatcher`: one object per ``(device type, storage format)`` pair
  that owns the storage representation of that format and runs the numeric
  kernels. Array methods never touch storage directly; they go through the
  dispatcher bound to the array, so new devices or formats are added by
  registering another dispatcher.
- `IGraphRecorder`: the autograd collaborator. Differentiable operations ask
  it whether recording is on and hand it the backward context of their
  results; `NDArray.backward` delegates the traversal to it.

Both are `typing.Protocol` classes marked `runtime_checkable`, so conformance
is structural and can be checked with ``isinstance`` in tests.
"""

from typing import Any, ContextManager, Optional, Protocol, Sequence, runtime_checkable

from ._formats import SparseFormat


@runtime_checkable
class IKernelDispatcher(Protocol):
    """
    Storage owner and kernel runner for one ``(device type, format)`` pair.

    Storage-level methods accept and return backend storage objects. Kernel
    methods accept and return host arrays in dense layout; a sparse dispatcher
    densifies before running them.

    Notes
    -----
    Dtype and shape validation happens in the array layer before a kernel is
    invoked. Kernels may assume their operands are already compatible.
    """

    @property
    def sparse_format(self) -> SparseFormat:
        """Storage format handled by this dispatcher."""
        ...

    # ---- storage ----
    def from_host(self, values: Any) -> Any:
        """Build storage of this format from a dense host array."""
        ...

    def to_host(self, storage: Any) -> Any:
        """Dense host view (dense formats) or copy (sparse formats)."""
        ...

    def to_dense(self, storage: Any) -> Any:
        """Always a fresh dense host copy."""
        ...

    def copy(self, storage: Any) -> Any: ...

    def nbytes(self, storage: Any) -> int: ...

    def nonzero(self, storage: Any) -> int:
        """Count of non-zero elements."""
        ...

    def components(self, storage: Any) -> dict:
        """Named host arrays that fully describe the storage (for encoding)."""
        ...

    def from_components(self, components: dict, shape: Sequence[int], dtype: Any) -> Any: ...

    # ---- element-wise ----
    def binary(self, op: str, a: Any, b: Any, dtype: Any) -> Any: ...

    def binary_(self, op: str, out: Any, b: Any) -> None:
        """In-place variant writing into `out`."""
        ...

    def compare(self, op: str, a: Any, b: Any) -> Any: ...

    def close(self, a: Any, b: Any, tolerance: float) -> Any:
        """Element-wise ``|a - b| <= tolerance``."""
        ...

    def unary(self, op: str, a: Any, dtype: Any) -> Any: ...

    def unary_(self, op: str, out: Any) -> None: ...

    def clip(self, a: Any, low: Any, high: Any) -> Any: ...

    def softmax(self, a: Any, axes: tuple, temperature: float, dtype: Any) -> Any: ...

    # ---- reductions ----
    def reduce(self, op: str, a: Any, axes: tuple, keep_dims: bool, dtype: Any) -> Any: ...

    def arg_reduce(self, op: str, a: Any, axis: Optional[int], keep_dims: bool) -> Any: ...

    def quantile(self, a: Any, q: float, axes: tuple, dtype: Any) -> Any: ...

    def cumsum(self, a: Any, axis: Optional[int], dtype: Any) -> Any: ...

    def sum_to_shape(self, grad: Any, shape: Sequence[int]) -> Any:
        """Reduce a broadcast gradient back to `shape`."""
        ...

    # ---- structural ----
    def reshape(self, a: Any, shape: tuple) -> Any: ...

    def transpose(self, a: Any, axes: tuple) -> Any: ...

    def broadcast_to(self, a: Any, shape: tuple) -> Any: ...

    def concat(self, arrays: Sequence[Any], axis: int) -> Any: ...

    def stack(self, arrays: Sequence[Any], axis: int) -> Any: ...

    def split(self, a: Any, boundaries: Sequence[int], axis: int) -> list: ...

    def tile(self, a: Any, reps: tuple) -> Any: ...

    def repeat(self, a: Any, repeats: int, axis: int) -> Any: ...

    def matmul(self, a: Any, b: Any, dtype: Any) -> Any: ...

    def sort(self, a: Any, axis: int) -> Any: ...

    def argsort(self, a: Any, axis: int, ascending: bool) -> Any: ...

    # ---- indexing ----
    def gather(self, a: Any, resolved: Any) -> Any: ...

    def scatter(self, out: Any, resolved: Any, values: Any) -> None: ...

    def astype(self, a: Any, dtype: Any) -> Any: ...


@runtime_checkable
class IGraphRecorder(Protocol):
    """
    Autograd collaborator used by differentiable array operations.
    """

    def is_recording(self) -> bool:
        """True while operations should attach backward contexts."""
        ...

    def record(self) -> ContextManager[None]:
        """Context manager enabling recording on the current thread."""
        ...

    def pause(self) -> ContextManager[None]:
        """Context manager disabling recording on the current thread."""
        ...

    def backward(
        self,
        root: Any,
        out_grad: Optional[Any] = None,
        retain_graph: bool = False,
        is_training: bool = True,
    ) -> None:
        """Propagate gradients from `root` into attached gradient buffers."""
        ...
