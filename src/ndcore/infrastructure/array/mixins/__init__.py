"""
Operation mixins of `NDArray`.

Each mixin groups one operation family and relies only on the core helpers
of `NDArray` (operand normalization, result wrapping, graph recording and the
kernel dispatcher):

- ``ArrayMixinArithmetic``  copy/in-place arithmetic, operators, ``mmul``
- ``ArrayMixinComparison``  comparisons, predicates, masks
- ``ArrayMixinReduction``   reductions and counting predicates
- ``ArrayMixinUnary``       element-wise math, softmax, sorting
- ``ArrayMixinStructural``  reshape, permutation, joins, tiling
- ``ArrayMixinIndexing``    get/set with index expressions
- ``ArrayMixinAutograd``    gradient attachment and backward
"""

from ._arithmetic import ArrayMixinArithmetic
from ._comparison import ArrayMixinComparison
from ._reduction import ArrayMixinReduction
from ._unary import ArrayMixinUnary
from ._structural import ArrayMixinStructural
from ._indexing import ArrayMixinIndexing
from ._autograd import ArrayMixinAutograd


class _ArrayAllMixin(
    ArrayMixinArithmetic,
    ArrayMixinComparison,
    ArrayMixinReduction,
    ArrayMixinUnary,
    ArrayMixinStructural,
    ArrayMixinIndexing,
    ArrayMixinAutograd,
):
    pass


__all__ = [_ArrayAllMixin.__name__]
