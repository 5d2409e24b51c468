"""
Host buffer handles.

Every array owns exactly one `BufferHandle`. The handle is the unit of
lifetime tracking: scopes hold handles (not arrays), the gradient registry is
keyed by handle id, and releasing a handle invalidates every array bound to
it in one step.

A handle is issued by `HostAllocator.allocate` with a process-unique id. It
wraps the backend storage object produced by a kernel dispatcher, records the
id of the scope that owns it (if any), and runs its release callbacks exactly
once when released. Releasing an already released handle raises
`LifetimeViolationError`.
"""

from __future__ import annotations

import itertools
import logging
import threading
import weakref
from typing import Any, Callable, List, Optional

from ...domain._errors import LifetimeViolationError

logger = logging.getLogger(__name__)


class BufferHandle:
    """
    Handle to one backend storage object.

    Attributes
    ----------
    id : int
        Process-unique identifier, never reused.
    owner : Optional[int]
        Id of the owning `ResourceScope`, or None when unscoped.
    """

    __slots__ = ("id", "owner", "_payload", "_live", "_callbacks", "__weakref__")

    def __init__(self, handle_id: int, payload: Any) -> None:
        self.id = handle_id
        self.owner: Optional[int] = None
        self._payload = payload
        self._live = True
        self._callbacks: List[Callable[["BufferHandle"], None]] = []

    @property
    def is_live(self) -> bool:
        return self._live

    @property
    def payload(self) -> Any:
        """
        The storage object.

        Raises
        ------
        LifetimeViolationError
            If the handle was released.
        """
        if not self._live:
            raise LifetimeViolationError(f"buffer {self.id} has already been released")
        return self._payload

    def replace(self, payload: Any) -> None:
        """Swap the storage object, keeping the handle identity."""
        if not self._live:
            raise LifetimeViolationError(f"buffer {self.id} has already been released")
        self._payload = payload

    def add_release_callback(self, callback: Callable[["BufferHandle"], None]) -> None:
        self._callbacks.append(callback)

    def release(self) -> None:
        """
        Release the storage and run release callbacks.

        Raises
        ------
        LifetimeViolationError
            If the handle was already released.
        """
        if not self._live:
            raise LifetimeViolationError(f"buffer {self.id} released twice")
        self._live = False
        self._payload = None
        callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            cb(self)
        logger.debug("released buffer %d", self.id)

    def __repr__(self) -> str:
        state = "live" if self._live else "released"
        return f"BufferHandle(id={self.id}, {state}, owner={self.owner})"


class HostAllocator:
    """
    Issues buffer handles and tracks the ones still alive.

    Tracking is weak: the allocator never keeps a handle (or its storage)
    alive on its own.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._handles: "weakref.WeakValueDictionary[int, BufferHandle]" = (
            weakref.WeakValueDictionary()
        )

    def allocate(self, payload: Any) -> BufferHandle:
        with self._lock:
            handle = BufferHandle(next(self._ids), payload)
            self._handles[handle.id] = handle
        return handle

    def live_count(self) -> int:
        """Number of handles that are reachable and not yet released."""
        return sum(1 for h in list(self._handles.values()) if h.is_live)


host_allocator = HostAllocator()
