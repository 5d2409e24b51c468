from ._array import NDArray
from ._array_context import Context
from ._array_list import NDList

__all__ = [
    NDArray.__name__,
    Context.__name__,
    NDList.__name__,
]
