"""
Resource scopes: batch release of array buffers.

A `ResourceScope` is an arena of buffer handles. Arrays register their handle
with at most one scope at a time; closing the scope releases every handle it
still holds in one pass, which invalidates the arrays bound to them. The
scope never references the arrays themselves, so there is no array/scope
reference cycle.

Entering a scope with ``with`` makes it the active scope of the current
thread until the block exits (scopes nest). Arrays created by the factory, and
results of operations on unscoped arrays, attach to the active scope.

Arrays created while no scope is active are unscoped. Releasing them is the
caller's job (``close()``); a buffer that is garbage-collected without being
released is reported as a leak and released by the fallback finalizer.
"""

from __future__ import annotations

import itertools
import logging
import threading
import warnings
import weakref
from typing import Dict, List, Optional, TYPE_CHECKING

from ...domain._errors import LifetimeViolationError
from ..backend._allocator import BufferHandle

if TYPE_CHECKING:
    from ..array._array import NDArray

logger = logging.getLogger(__name__)

_scope_ids = itertools.count(1)
_scopes: "weakref.WeakValueDictionary[int, ResourceScope]" = weakref.WeakValueDictionary()
_local = threading.local()


def _stack() -> List["ResourceScope"]:
    stack = getattr(_local, "stack", None)
    if stack is None:
        stack = _local.stack = []
    return stack


def active_scope() -> Optional["ResourceScope"]:
    """Innermost scope entered with ``with`` on this thread, if any."""
    stack = _stack()
    return stack[-1] if stack else None


def _orphan(scope_id: int, handles: Dict[int, BufferHandle]) -> None:
    # Members of a scope collected without close() become unscoped leaks.
    for handle in list(handles.values()):
        if handle.owner == scope_id:
            handle.owner = None
    handles.clear()


def scope_of(handle: BufferHandle) -> Optional["ResourceScope"]:
    """The scope currently owning `handle`, if any."""
    if handle.owner is None:
        return None
    return _scopes.get(handle.owner)


class ResourceScope:
    """
    Tracking set that releases its members' buffers when closed.

    Examples
    --------
    >>> with ResourceScope() as scope:
    ...     a = factory.ones((2, 2))      # attached to `scope`
    ...     b = (a + 1).detach()          # survives the scope
    >>> a.is_closed, b.is_closed
    (True, False)
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self.id = next(_scope_ids)
        self.name = name or f"scope-{self.id}"
        self._handles: Dict[int, BufferHandle] = {}
        self._closed = False
        self._lock = threading.Lock()
        _scopes[self.id] = self
        weakref.finalize(self, _orphan, self.id, self._handles)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, array: "NDArray") -> bool:
        return array.handle.id in self._handles

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    def attach(self, array: "NDArray") -> "NDArray":
        """Register `array` with this scope (same as ``array.attach(self)``)."""
        return array.attach(self)

    def detach(self, array: "NDArray") -> "NDArray":
        """Remove `array` from this scope if it is a member."""
        if array.handle.owner == self.id:
            array.detach()
        return array

    def _adopt(self, handle: BufferHandle) -> None:
        if self._closed:
            raise LifetimeViolationError(f"cannot attach to closed scope {self.name!r}")
        with self._lock:
            self._handles[handle.id] = handle
        handle.owner = self.id

    def _forget(self, handle: BufferHandle) -> None:
        with self._lock:
            self._handles.pop(handle.id, None)
        if handle.owner == self.id:
            handle.owner = None

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------
    def close(self) -> None:
        """
        Release every member buffer. Closing a closed scope is a no-op.
        """
        if self._closed:
            return
        self._closed = True
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
        released = 0
        for handle in handles:
            handle.owner = None
            if handle.is_live:
                handle.release()
                released += 1
        logger.debug("closed %s, released %d buffer(s)", self.name, released)

    def __enter__(self) -> "ResourceScope":
        if self._closed:
            raise LifetimeViolationError(f"cannot enter closed scope {self.name!r}")
        _stack().append(self)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        stack = _stack()
        if stack and stack[-1] is self:
            stack.pop()
        elif self in stack:
            stack.remove(self)
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"{len(self)} buffer(s)"
        return f"ResourceScope({self.name!r}, {state})"


def release_leaked(handle: BufferHandle, warn: bool) -> None:
    """
    Finalizer for arrays that were garbage-collected.

    Only unscoped, still-live buffers are touched; scoped buffers belong to
    their scope until it closes.
    """
    if not handle.is_live or handle.owner is not None:
        return
    if warn:
        message = f"buffer {handle.id} was garbage-collected without close()"
        logger.debug(message)
        warnings.warn(message, ResourceWarning, stacklevel=2)
    handle.release()
