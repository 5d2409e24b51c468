"""
Host backend: buffer handles and NumPy kernel dispatchers.

Importing this package registers the CPU dispatchers for every storage
format with `kernel_registry`:

- ``(cpu, dense)``      -> ``NumpyDenseDispatcher``
- ``(cpu, csr)``        -> ``NumpyCSRDispatcher``
- ``(cpu, row_sparse)`` -> ``NumpyRowSparseDispatcher``

Other devices are served by registering a dispatcher for them.
"""

from ._registry import kernel_registry
from ._allocator import BufferHandle, HostAllocator, host_allocator
from ._storage import CSRStorage, RowSparseStorage
from ._numpy_dense import NumpyDenseDispatcher
from ._numpy_sparse import NumpyCSRDispatcher, NumpyRowSparseDispatcher

__all__ = [
    "kernel_registry",
    BufferHandle.__name__,
    HostAllocator.__name__,
    "host_allocator",
    CSRStorage.__name__,
    RowSparseStorage.__name__,
    NumpyDenseDispatcher.__name__,
    NumpyCSRDispatcher.__name__,
    NumpyRowSparseDispatcher.__name__,
]
