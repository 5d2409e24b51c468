"""
Gradient buffers keyed by buffer-handle identity.

Arrays do not hold their gradient. `attach_grad` stores a gradient buffer in
the process-wide `gradient_registry` under the host array's handle id, and the
registry drops (and closes) that buffer when the host handle is released. The
association is therefore a lookup owned by the autograd subsystem instead of
a reference between the two arrays.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, TYPE_CHECKING

from ...domain._formats import GradReq, SparseFormat

if TYPE_CHECKING:
    from ..array._array import NDArray
    from ..backend._allocator import BufferHandle

logger = logging.getLogger(__name__)


@dataclass
class GradientEntry:
    """
    Gradient buffer of one host array and its accumulation policy.
    """

    grad: "NDArray"
    grad_req: GradReq


class GradientRegistry:
    """
    Mapping from host handle id to `GradientEntry`.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, GradientEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def attach(
        self,
        host: "NDArray",
        grad_req: GradReq = GradReq.WRITE,
        sparse_format: Optional[SparseFormat] = None,
    ) -> "NDArray":
        """
        Allocate a zero-filled gradient buffer for `host`.

        The buffer has the host's shape and data type and either the host's
        storage format or `sparse_format` when given. Attaching again
        replaces the previous buffer and policy.

        Returns
        -------
        NDArray
            The new gradient buffer.
        """
        fmt = host.sparse_format if sparse_format is None else sparse_format
        grad = host._gradient_buffer(fmt)
        handle = host.handle
        with self._lock:
            previous = self._entries.pop(handle.id, None)
            self._entries[handle.id] = GradientEntry(grad, GradReq(grad_req))
        if previous is not None:
            previous.grad._release_quietly()
        else:
            handle.add_release_callback(self._on_host_released)
        return grad

    def get(self, host: "NDArray") -> Optional[GradientEntry]:
        return self._entries.get(host.handle.id)

    def requires_grad(self, host: "NDArray") -> bool:
        entry = self._entries.get(host.handle.id)
        return entry is not None and entry.grad_req is not GradReq.NULL

    def drop(self, handle_id: int) -> None:
        """Forget and release the gradient stored under `handle_id`."""
        with self._lock:
            entry = self._entries.pop(handle_id, None)
        if entry is not None:
            entry.grad._release_quietly()
            logger.debug("dropped gradient of buffer %d", handle_id)

    def _on_host_released(self, handle: "BufferHandle") -> None:
        self.drop(handle.id)


gradient_registry = GradientRegistry()
