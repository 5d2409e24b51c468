"""
Mapping between `DataType` and NumPy dtypes.
"""

import numpy as np

from ...domain._dtype import DataType
from ...domain._errors import InvalidConversionError


def to_numpy_dtype(dtype: DataType) -> np.dtype:
    return np.dtype(DataType.of(dtype).value)


def from_numpy_dtype(dtype: np.dtype) -> DataType:
    """
    Raises
    ------
    InvalidConversionError
        If NumPy produced a dtype with no `DataType` counterpart.
    """
    try:
        return DataType.of(np.dtype(dtype).name)
    except TypeError:
        raise InvalidConversionError(f"Unsupported data type: {dtype!r}") from None
