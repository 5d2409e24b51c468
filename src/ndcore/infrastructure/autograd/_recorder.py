"""
Tape-based graph recorder.

`TapeRecorder` is the default `IGraphRecorder`. While recording is enabled
(``with record():``), differentiable array operations whose inputs require a
gradient attach a `Context` to their result, linking it to its parents. An
input requires a gradient when it has a non-NULL gradient buffer attached or
is itself the result of a recorded operation.

`backward` walks the recorded graph from a root in reverse topological order,
reduces broadcast gradients to each parent's shape, and writes into the
gradient buffers attached to the arrays it visits, following their
`GradReq` policy.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import numpy as np

from ...domain._errors import ShapeMismatchError
from ...domain._formats import GradReq
from ...domain._kernels import IGraphRecorder
from ._gradients import GradientRegistry, gradient_registry

logger = logging.getLogger(__name__)


class TapeRecorder:
    """
    Thread-aware recorder with per-thread recording state.

    Parameters
    ----------
    registry : GradientRegistry, optional
        Where gradient buffers are looked up; defaults to the process-wide
        registry.
    """

    def __init__(self, registry: Optional[GradientRegistry] = None) -> None:
        self.registry = gradient_registry if registry is None else registry
        self._local = threading.local()

    # ------------------------------------------------------------------
    # Recording state
    # ------------------------------------------------------------------
    def is_recording(self) -> bool:
        return bool(getattr(self._local, "recording", False))

    @contextmanager
    def _recording(self, flag: bool) -> Iterator[None]:
        previous = self.is_recording()
        self._local.recording = flag
        try:
            yield
        finally:
            self._local.recording = previous

    def record(self):
        """Context manager enabling recording on the current thread."""
        return self._recording(True)

    def pause(self):
        """Context manager disabling recording on the current thread."""
        return self._recording(False)

    def requires_grad(self, array: Any) -> bool:
        return array._ctx is not None or self.registry.requires_grad(array)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------
    def backward(
        self,
        root: Any,
        out_grad: Optional[Any] = None,
        retain_graph: bool = False,
        is_training: bool = True,
    ) -> None:
        """
        Backpropagate from `root` through the recorded graph.

        Parameters
        ----------
        root : NDArray
            Array to differentiate.
        out_grad : NDArray or array-like, optional
            Upstream gradient; must have the root's shape. Defaults to ones.
        retain_graph : bool, optional
            Keep the recorded contexts for another pass.
        is_training : bool, optional
            Write into attached gradient buffers only when True.

        Raises
        ------
        ShapeMismatchError
            If `out_grad` does not have the root's shape.
        RuntimeError
            If a backward function returns the wrong number of gradients.
        """
        seed = self._seed(root, out_grad)

        topo: List[Any] = []
        visited: set[int] = set()

        def dfs(node: Any) -> None:
            nid = id(node)
            if nid in visited:
                return
            visited.add(nid)
            ctx = node._ctx
            if ctx is not None:
                for p in ctx.parents:
                    dfs(p)
            topo.append(node)

        dfs(root)
        logger.debug("backward over %d node(s)", len(topo))

        grads: Dict[int, np.ndarray] = {id(root): seed}
        for node in reversed(topo):
            g = grads.pop(id(node), None)
            if g is None:
                continue

            if is_training and not node.is_closed:
                entry = self.registry.get(node)
                if entry is not None and entry.grad_req is not GradReq.NULL:
                    entry.grad._write_gradient(g, accumulate=entry.grad_req is GradReq.ADD)

            ctx = node._ctx
            if ctx is None:
                continue
            parent_grads = ctx.backward_fn(g)
            if len(parent_grads) != len(ctx.parents):
                raise RuntimeError(
                    "backward_fn must return one grad per parent. "
                    f"Got {len(parent_grads)} grads for {len(ctx.parents)} parents."
                )
            for parent, pg in zip(ctx.parents, parent_grads):
                if pg is None:
                    continue
                pg = node._dispatcher.sum_to_shape(pg, parent.shape)
                key = id(parent)
                grads[key] = pg if key not in grads else grads[key] + pg

        if not retain_graph:
            for node in topo:
                node._ctx = None

    def _seed(self, root: Any, out_grad: Optional[Any]) -> np.ndarray:
        dtype = root.dtype
        np_dtype = np.dtype(dtype.value if dtype.is_floating() else "float32")
        if out_grad is None:
            return np.ones(tuple(root.shape), dtype=np_dtype)
        values = out_grad.to_numpy() if hasattr(out_grad, "to_numpy") else np.asarray(out_grad)
        if tuple(values.shape) != tuple(root.shape):
            raise ShapeMismatchError("backward", tuple(values.shape), tuple(root.shape))
        return np.asarray(values, dtype=np_dtype)


_recorder: IGraphRecorder = TapeRecorder()


def get_recorder() -> IGraphRecorder:
    return _recorder


def set_recorder(recorder: IGraphRecorder) -> IGraphRecorder:
    """Install `recorder` globally and return the previous one."""
    global _recorder
    if not isinstance(recorder, IGraphRecorder):
        raise TypeError(f"{type(recorder).__name__} does not implement IGraphRecorder")
    previous, _recorder = _recorder, recorder
    return previous


def record():
    """
    Enable recording of differentiable operations on the current thread.

    Example
    -------
    >>> x.attach_grad()
    >>> with autograd.record():
    ...     y = (x * x).sum()
    >>> y.backward()
    """
    return get_recorder().record()


def pause():
    """Disable recording inside a ``record()`` block."""
    return get_recorder().pause()


def is_recording() -> bool:
    return get_recorder().is_recording()
