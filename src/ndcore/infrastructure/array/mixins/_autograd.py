"""
Autograd hooks.

An array takes part in differentiation once a gradient buffer is attached
with `attach_grad`. The buffer is held by the gradient registry under the
array's buffer-handle id; the array itself keeps no reference to it. Graph
construction and traversal belong to the installed graph recorder.
"""

from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING

import numpy as np

from ....domain._errors import GradientNotAttachedError
from ....domain._formats import GradReq, SparseFormat
from ...autograd._gradients import gradient_registry
from ...autograd._recorder import get_recorder
from ...backend._dtypes import to_numpy_dtype

if TYPE_CHECKING:
    from .._array import NDArray


class ArrayMixinAutograd:
    """
    Gradient attachment and backward trigger.
    """

    def attach_grad(
        self: "NDArray",
        grad_req: GradReq = GradReq.WRITE,
        sparse_format: Optional[SparseFormat] = None,
    ) -> None:
        """
        Allocate a zero gradient buffer shaped like this array.

        Parameters
        ----------
        grad_req : GradReq, optional
            ``WRITE`` overwrites the buffer on each backward pass, ``ADD``
            accumulates into it, ``NULL`` keeps the buffer but stops tracking.
        sparse_format : SparseFormat, optional
            Storage format of the buffer; this array's format by default.

        Notes
        -----
        Attaching again replaces the previous buffer, which is closed.
        """
        self._storage()
        gradient_registry.attach(self, GradReq(grad_req), sparse_format)

    def get_gradient(self: "NDArray") -> "NDArray":
        """
        The attached gradient buffer.

        Raises
        ------
        GradientNotAttachedError
            If `attach_grad` was never called on this array.
        """
        self._storage()
        entry = gradient_registry.get(self)
        if entry is None:
            raise GradientNotAttachedError("no gradient is attached to this array")
        return entry.grad

    def has_gradient(self: "NDArray") -> bool:
        return gradient_registry.get(self) is not None

    @property
    def requires_grad(self: "NDArray") -> bool:
        return self._requires_grad()

    def backward(
        self: "NDArray",
        out_grad: Optional[Any] = None,
        retain_graph: bool = False,
        is_training: bool = True,
    ) -> None:
        """
        Backpropagate from this array through the recorded graph.

        Parameters
        ----------
        out_grad : NDArray, optional
            Upstream gradient with this array's shape; ones when omitted.
        retain_graph : bool, optional
            Keep the recorded graph for another pass.
        is_training : bool, optional
            Gradient buffers are written only when True.

        Raises
        ------
        ShapeMismatchError
            If `out_grad` does not have this array's shape.
        """
        self._storage()
        get_recorder().backward(self, out_grad, retain_graph, is_training)

    # ------------------------------------------------------------------
    # Buffer hooks used by the gradient registry and the recorder
    # ------------------------------------------------------------------
    def _gradient_buffer(self: "NDArray", sparse_format: SparseFormat) -> "NDArray":
        zeros = np.zeros(self.shape.dims, dtype=to_numpy_dtype(self.dtype))
        return type(self)._from_host(zeros, self.device, SparseFormat(sparse_format), scope=None)

    def _write_gradient(self: "NDArray", g: np.ndarray, accumulate: bool) -> None:
        g = np.broadcast_to(np.asarray(g), self.shape.dims)
        if accumulate:
            g = self.to_numpy() + g
        self._assign_host(g)
