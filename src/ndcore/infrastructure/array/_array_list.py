"""
Ordered collection of arrays.
"""

from __future__ import annotations

from typing import List, TYPE_CHECKING

import numpy as np

from ...domain._errors import ShapeMismatchError

if TYPE_CHECKING:
    from ._array import NDArray


class NDList(list):
    """
    Ordered, index-accessible sequence of `NDArray` values.

    Used as the result of multi-output operations (`split`, `unstack`) and as
    the input of multi-input ones (`concat`, `stack`). Duplicates are allowed.
    """

    def _head(self, op: str) -> "NDArray":
        if not self:
            raise ShapeMismatchError(op, detail="empty list")
        return self[0]

    def concat(self, axis: int = 0) -> "NDArray":
        """Concatenate every member along `axis`."""
        head = self._head("concat")
        return head.concat(list(self[1:]), axis)

    def stack(self, axis: int = 0) -> "NDArray":
        """Stack every member along a new axis."""
        head = self._head("stack")
        return head.stack(list(self[1:]), axis)

    def shapes(self) -> list:
        return [a.shape for a in self]

    def to_numpy(self) -> List[np.ndarray]:
        return [a.to_numpy() for a in self]

    def close(self) -> None:
        """Close every member that is still open."""
        for a in self:
            a._release_quietly()

    def __enter__(self) -> "NDList":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"NDList({len(self)} arrays: {', '.join(str(s) for s in self.shapes())})"
