from typing import Any, Callable, Optional, Sequence, TYPE_CHECKING
from dataclasses import dataclass, field

if TYPE_CHECKING:
    from ._array import NDArray


@dataclass
class Context:
    """
    Backward context attached to an array produced by a recorded operation.

    Attributes
    ----------
    parents : Sequence[NDArray]
        The input arrays used to compute the output. Gradients are produced
        for these parents during the backward pass.
    backward_fn : Callable[[Any], Sequence[Optional[Any]]]
        Takes the host gradient w.r.t. the output and returns host gradients
        w.r.t. each `parents` entry, in the same order. Entries may be None
        for parents that receive no gradient. Returned gradients may still
        carry broadcast axes; the recorder reduces them to each parent's
        shape.
    op : str
        Name of the recorded operation (for diagnostics).
    saved_meta : dict[str, Any]
        Non-array metadata of the forward call (e.g., shapes, axes).
    """

    parents: Sequence["NDArray"]
    backward_fn: Callable[[Any], Sequence[Optional[Any]]]
    op: str = ""
    saved_meta: dict[str, Any] = field(default_factory=dict)
