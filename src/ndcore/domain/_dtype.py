"""
Element data types.

`DataType` is the closed enumeration of element types an array may hold. It
records the element width and the promotion and conversion rules shared by
every backend. The infrastructure layer maps each member to a NumPy dtype by
name; this module does not import NumPy.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from ._errors import InvalidConversionError

Number = Union[bool, int, float]


class DataType(Enum):
    """
    Enumeration of supported element types.

    The value of each member is its canonical name, which is also the NumPy
    dtype name used by the host backend.
    """

    BOOLEAN = "bool"
    UINT8 = "uint8"
    INT8 = "int8"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT16 = "float16"
    FLOAT32 = "float32"
    FLOAT64 = "float64"

    @property
    def width(self) -> int:
        """Element width in bytes."""
        return _WIDTHS[self]

    def is_floating(self) -> bool:
        return self in (DataType.FLOAT16, DataType.FLOAT32, DataType.FLOAT64)

    def is_integer(self) -> bool:
        return self in (DataType.UINT8, DataType.INT8, DataType.INT32, DataType.INT64)

    def is_boolean(self) -> bool:
        return self is DataType.BOOLEAN

    def can_convert_to(self, target: "DataType") -> bool:
        """
        Return True if elements of this type may be converted to `target`.

        Numeric types convert freely among themselves and booleans convert to
        any numeric type. Numeric-to-boolean conversion is rejected: the
        intended truth test is ambiguous, so callers should compare explicitly
        (e.g., ``array.neq(0)``).
        """
        if target is DataType.BOOLEAN:
            return self is DataType.BOOLEAN
        return True

    @classmethod
    def of(cls, value: "DataType | str | type | object") -> "DataType":
        """
        Parse a data type from a member, a name, or a dtype-like object.

        Accepted inputs are `DataType` members, names such as ``"float32"``
        or ``"FLOAT32"``, the Python types ``bool``, ``int`` and ``float``,
        and any object whose ``str()`` or ``name`` is a known name (NumPy
        dtypes qualify).

        Raises
        ------
        InvalidConversionError
            If the value does not name a supported type.
        """
        if isinstance(value, DataType):
            return value
        if value is bool:
            return cls.BOOLEAN
        if value is int:
            return cls.INT64
        if value is float:
            return cls.FLOAT32
        candidates = (
            getattr(value, "name", None),
            getattr(value, "__name__", None),
            str(value),
        )
        for candidate in candidates:
            if not isinstance(candidate, str):
                continue
            key = candidate.strip().lower()
            key = _ALIASES.get(key, key)
            for member in cls:
                if member.value == key:
                    return member
        raise InvalidConversionError(f"Unsupported data type: {value!r}")

    @staticmethod
    def promote(a: "DataType", b: "DataType") -> "DataType":
        """
        Result type of a binary operation between elements of `a` and `b`.

        Rules
        -----
        - identical types promote to themselves;
        - booleans promote to the other operand's type;
        - ``UINT8`` mixed with ``INT8`` promotes to ``INT32``;
        - otherwise the higher-ranked type wins, with every floating type
          ranked above every integer type.
        """
        if a is b:
            return a
        if {a, b} == {DataType.UINT8, DataType.INT8}:
            return DataType.INT32
        return a if _RANKS[a] >= _RANKS[b] else b

    @staticmethod
    def promote_scalar(dtype: "DataType", value: Number) -> "DataType":
        """
        Result type of combining an array of `dtype` with a Python scalar.

        Python scalars are weakly typed: they adopt the array's type unless
        the scalar's kind is wider (a float scalar with an integer or boolean
        array gives ``FLOAT32``, an int scalar with a boolean array gives
        ``INT32``).
        """
        if isinstance(value, bool):
            return dtype
        if isinstance(value, int):
            return DataType.INT32 if dtype is DataType.BOOLEAN else dtype
        if isinstance(value, float):
            return dtype if dtype.is_floating() else DataType.FLOAT32
        raise InvalidConversionError(f"Unsupported scalar operand: {value!r}")


_WIDTHS = {
    DataType.BOOLEAN: 1,
    DataType.UINT8: 1,
    DataType.INT8: 1,
    DataType.INT32: 4,
    DataType.INT64: 8,
    DataType.FLOAT16: 2,
    DataType.FLOAT32: 4,
    DataType.FLOAT64: 8,
}

_RANKS = {
    DataType.BOOLEAN: 0,
    DataType.UINT8: 1,
    DataType.INT8: 2,
    DataType.INT32: 3,
    DataType.INT64: 4,
    DataType.FLOAT16: 5,
    DataType.FLOAT32: 6,
    DataType.FLOAT64: 7,
}

_ALIASES = {
    "boolean": "bool",
    "bool_": "bool",
    "byte": "int8",
    "int": "int64",
    "long": "int64",
    "half": "float16",
    "float": "float32",
    "double": "float64",
}
