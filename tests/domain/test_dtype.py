import unittest

import numpy as np

from src.ndcore.domain._dtype import DataType
from src.ndcore.domain._errors import InvalidConversionError


class TestDataTypeParsing(unittest.TestCase):
    def test_names_and_aliases(self) -> None:
        self.assertIs(DataType.of("float32"), DataType.FLOAT32)
        self.assertIs(DataType.of("FLOAT64"), DataType.FLOAT64)
        self.assertIs(DataType.of("double"), DataType.FLOAT64)
        self.assertIs(DataType.of("boolean"), DataType.BOOLEAN)

    def test_python_types(self) -> None:
        self.assertIs(DataType.of(bool), DataType.BOOLEAN)
        self.assertIs(DataType.of(int), DataType.INT64)
        self.assertIs(DataType.of(float), DataType.FLOAT32)

    def test_python_type_and_its_name_agree(self) -> None:
        for py_type in (bool, int, float):
            with self.subTest(py_type=py_type.__name__):
                self.assertIs(DataType.of(py_type.__name__), DataType.of(py_type))

    def test_numpy_dtypes(self) -> None:
        self.assertIs(DataType.of(np.dtype("int32")), DataType.INT32)
        self.assertIs(DataType.of(np.float16), DataType.FLOAT16)
        self.assertIs(DataType.of(np.dtype(bool)), DataType.BOOLEAN)

    def test_unknown_type_rejected(self) -> None:
        with self.assertRaises(InvalidConversionError):
            DataType.of("complex64")
        with self.assertRaises(TypeError):
            DataType.of("string")

    def test_widths(self) -> None:
        self.assertEqual(DataType.FLOAT32.width, 4)
        self.assertEqual(DataType.INT64.width, 8)
        self.assertEqual(DataType.BOOLEAN.width, 1)

    def test_kind_predicates(self) -> None:
        self.assertTrue(DataType.FLOAT16.is_floating())
        self.assertTrue(DataType.UINT8.is_integer())
        self.assertFalse(DataType.BOOLEAN.is_integer())
        self.assertTrue(DataType.BOOLEAN.is_boolean())


class TestPromotion(unittest.TestCase):
    def test_identity(self) -> None:
        for t in DataType:
            self.assertIs(DataType.promote(t, t), t)

    def test_float_beats_integer(self) -> None:
        self.assertIs(DataType.promote(DataType.INT64, DataType.FLOAT16), DataType.FLOAT16)
        self.assertIs(DataType.promote(DataType.FLOAT32, DataType.FLOAT64), DataType.FLOAT64)

    def test_boolean_adopts_other(self) -> None:
        self.assertIs(DataType.promote(DataType.BOOLEAN, DataType.INT8), DataType.INT8)

    def test_mixed_signedness_bytes(self) -> None:
        self.assertIs(DataType.promote(DataType.UINT8, DataType.INT8), DataType.INT32)

    def test_symmetric(self) -> None:
        for a in DataType:
            for b in DataType:
                self.assertIs(DataType.promote(a, b), DataType.promote(b, a))

    def test_scalar_is_weak(self) -> None:
        self.assertIs(DataType.promote_scalar(DataType.FLOAT16, 2.5), DataType.FLOAT16)
        self.assertIs(DataType.promote_scalar(DataType.INT8, 3), DataType.INT8)
        self.assertIs(DataType.promote_scalar(DataType.INT32, 0.5), DataType.FLOAT32)
        self.assertIs(DataType.promote_scalar(DataType.BOOLEAN, 1), DataType.INT32)
        self.assertIs(DataType.promote_scalar(DataType.UINT8, True), DataType.UINT8)


class TestConversion(unittest.TestCase):
    def test_numeric_to_boolean_rejected(self) -> None:
        self.assertFalse(DataType.FLOAT32.can_convert_to(DataType.BOOLEAN))
        self.assertTrue(DataType.BOOLEAN.can_convert_to(DataType.BOOLEAN))

    def test_everything_converts_to_numeric(self) -> None:
        for t in DataType:
            self.assertTrue(t.can_convert_to(DataType.INT8))


if __name__ == "__main__":
    unittest.main()
