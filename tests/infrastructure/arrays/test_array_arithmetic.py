import unittest
from unittest import TestCase

import numpy as np

from src.ndcore.domain._dtype import DataType
from src.ndcore.domain._errors import InvalidConversionError, ShapeMismatchError
from src.ndcore.domain._formats import SparseFormat
from src.ndcore.infrastructure.factory import ArrayFactory
from src.ndcore.infrastructure.scope._scope import ResourceScope


class _ScopedCase(TestCase):
    """Every array created by a test is released when the test ends."""

    def setUp(self) -> None:
        self.scope = ResourceScope("test").__enter__()
        self.f = ArrayFactory("cpu", "float32")

    def tearDown(self) -> None:
        self.scope.__exit__(None, None, None)


class TestBinaryCopyForms(_ScopedCase):
    def test_add_broadcasts_trailing_axis(self):
        a = self.f.create(np.arange(6, dtype=np.float32).reshape(2, 3))
        b = self.f.create(np.array([10, 20, 30], dtype=np.float32))

        y = a.add(b)

        self.assertEqual(y.shape, (2, 3))
        np.testing.assert_array_equal(y.to_numpy(), a.to_numpy() + b.to_numpy())

    def test_incompatible_shapes_raise(self):
        a = self.f.ones((2, 3))
        b = self.f.ones((4,))
        with self.assertRaises(ShapeMismatchError):
            a.add(b)
        with self.assertRaises(ShapeMismatchError):
            a.mul(self.f.ones((3, 3)))

    def test_copy_form_leaves_receiver_unchanged(self):
        a = self.f.create([1.0, 2.0, 3.0])
        _ = a.sub(1.0)
        np.testing.assert_array_equal(a.to_numpy(), [1.0, 2.0, 3.0])

    def test_scalar_operands_promote_weakly(self):
        a = self.f.create(np.array([1, 2], dtype=np.int8))
        self.assertIs(a.add(3).dtype, DataType.INT8)
        self.assertIs(a.mul(0.5).dtype, DataType.FLOAT32)

    def test_array_operands_promote(self):
        a = self.f.create(np.array([1, 2], dtype=np.int32))
        b = self.f.create(np.array([0.5, 0.5], dtype=np.float64))
        y = a.add(b)
        self.assertIs(y.dtype, DataType.FLOAT64)
        np.testing.assert_allclose(y.to_numpy(), [1.5, 2.5])

    def test_integer_division_gives_float32(self):
        a = self.f.create([1, 2, 3])
        y = a.div(2)
        self.assertIs(y.dtype, DataType.FLOAT32)
        np.testing.assert_allclose(y.to_numpy(), [0.5, 1.0, 1.5])

    def test_division_by_zero_follows_ieee(self):
        y = self.f.create([1.0, -1.0, 0.0]).div(0.0).to_numpy()
        self.assertEqual(y[0], np.inf)
        self.assertEqual(y[1], -np.inf)
        self.assertTrue(np.isnan(y[2]))

    def test_mod_sign_follows_divisor(self):
        y = self.f.create([-3.0, 3.0, 5.5]).mod(2.0)
        np.testing.assert_allclose(y.to_numpy(), [1.0, 1.0, 1.5])

    def test_pow_maximum_minimum(self):
        a = self.f.create([1.0, 2.0, 3.0])
        b = self.f.create([3.0, 2.0, 1.0])
        np.testing.assert_allclose(a.pow(2).to_numpy(), [1.0, 4.0, 9.0])
        np.testing.assert_allclose(a.maximum(b).to_numpy(), [3.0, 2.0, 3.0])
        np.testing.assert_allclose(a.minimum(b).to_numpy(), [1.0, 2.0, 1.0])

    def test_boolean_add_and_mul_are_logical(self):
        a = self.f.create([True, False, True])
        b = self.f.create([True, True, False])
        self.assertIs(a.add(b).dtype, DataType.BOOLEAN)
        self.assertEqual(a.add(b).to_list(), [True, True, True])
        self.assertEqual(a.mul(b).to_list(), [True, False, False])

    def test_boolean_sub_rejected(self):
        a = self.f.create([True, False])
        with self.assertRaises(InvalidConversionError):
            a.sub(a)
        with self.assertRaises(InvalidConversionError):
            a.neg()

    def test_unsupported_operand_rejected(self):
        with self.assertRaises(InvalidConversionError):
            self.f.ones((2,)).add("1")


class TestInPlaceForms(_ScopedCase):
    def test_in_place_matches_copy_form(self):
        rng = np.random.default_rng(0)
        x = rng.standard_normal((3, 4)).astype(np.float32)
        y = rng.standard_normal((4,)).astype(np.float32) + 3.0
        for op in ("add", "sub", "mul", "div", "pow", "mod"):
            with self.subTest(op=op):
                base = np.abs(x) + 1.0 if op == "pow" else x
                a = self.f.create(base)
                b = self.f.create(y)
                expected = getattr(a, op)(b).to_numpy()
                result = getattr(a, op + "i")(b)
                self.assertIs(result, a)
                np.testing.assert_allclose(a.to_numpy(), expected, rtol=1e-6)

    def test_in_place_keeps_receiver_shape(self):
        a = self.f.ones((3,))
        with self.assertRaises(ShapeMismatchError):
            a.addi(self.f.ones((2, 3)))
        np.testing.assert_array_equal(a.to_numpy(), [1.0, 1.0, 1.0])

    def test_in_place_rejects_type_change(self):
        a = self.f.create([1, 2, 3])
        with self.assertRaises(InvalidConversionError):
            a.addi(0.5)
        with self.assertRaises(InvalidConversionError):
            a.divi(2)
        self.assertEqual(a.to_list(), [1, 2, 3])

    def test_in_place_on_sparse_rejected(self):
        a = self.f.create([[0.0, 1.0], [2.0, 0.0]], sparse_format=SparseFormat.CSR)
        with self.assertRaises(InvalidConversionError):
            a.addi(1.0)

    def test_negi(self):
        a = self.f.create([1.0, -2.0])
        self.assertIs(a.negi(), a)
        np.testing.assert_array_equal(a.to_numpy(), [-1.0, 2.0])


class TestNarrowIntegerScalars(_ScopedCase):
    def test_out_of_range_scalar_wraps(self):
        u8 = self.f.create(np.array([5, 6], dtype=np.uint8))
        y = u8.add(-1)
        self.assertIs(y.dtype, DataType.UINT8)
        np.testing.assert_array_equal(y.to_numpy(), np.array([4, 5], dtype=np.uint8))

        i8 = self.f.create(np.array([1, -1], dtype=np.int8))
        z = i8.add(300)
        self.assertIs(z.dtype, DataType.INT8)
        np.testing.assert_array_equal(z.to_numpy(), np.array([45, 43], dtype=np.int8))

    def test_scalar_keeps_its_value_in_maximum(self):
        u8 = self.f.create(np.array([0, 7], dtype=np.uint8))
        np.testing.assert_array_equal(u8.maximum(-1).to_numpy(), [0, 7])

    def test_in_place_out_of_range_scalar_wraps(self):
        u8 = self.f.create(np.array([5, 0], dtype=np.uint8))
        self.assertIs(u8.addi(-1), u8)
        np.testing.assert_array_equal(u8.to_numpy(), np.array([4, 255], dtype=np.uint8))
        i8 = self.f.create(np.array([1, 2], dtype=np.int8))
        i8.subi(300)
        np.testing.assert_array_equal(i8.to_numpy(), np.array([-43, -42], dtype=np.int8))

    def test_integer_negative_power_rejected(self):
        ints = self.f.create([2, 3])
        with self.assertRaises(InvalidConversionError):
            ints.pow(-1)
        with self.assertRaises(InvalidConversionError):
            ints.powi(self.f.create([1, -2]))
        np.testing.assert_array_equal(ints.to_numpy(), [2, 3])
        np.testing.assert_allclose(self.f.create([2.0, 4.0]).pow(-1).to_numpy(), [0.5, 0.25])


class TestOperators(_ScopedCase):
    def test_binary_operators(self):
        a = self.f.create([1.0, 2.0, 4.0])
        np.testing.assert_allclose((a + 1).to_numpy(), [2.0, 3.0, 5.0])
        np.testing.assert_allclose((a - 1).to_numpy(), [0.0, 1.0, 3.0])
        np.testing.assert_allclose((a * 2).to_numpy(), [2.0, 4.0, 8.0])
        np.testing.assert_allclose((a / 2).to_numpy(), [0.5, 1.0, 2.0])
        np.testing.assert_allclose((a ** 2).to_numpy(), [1.0, 4.0, 16.0])
        np.testing.assert_allclose((a % 3).to_numpy(), [1.0, 2.0, 1.0])
        np.testing.assert_allclose((-a).to_numpy(), [-1.0, -2.0, -4.0])

    def test_reflected_operators(self):
        a = self.f.create([1.0, 2.0, 4.0])
        np.testing.assert_allclose((10 - a).to_numpy(), [9.0, 8.0, 6.0])
        np.testing.assert_allclose((8 / a).to_numpy(), [8.0, 4.0, 2.0])
        np.testing.assert_allclose((2 ** a).to_numpy(), [2.0, 4.0, 16.0])
        np.testing.assert_allclose((1 + a).to_numpy(), [2.0, 3.0, 5.0])
        np.testing.assert_allclose((3 * a).to_numpy(), [3.0, 6.0, 12.0])

    def test_augmented_assignment_is_in_place(self):
        a = self.f.create([1.0, 2.0])
        alias = a
        a += 1
        a *= 3
        self.assertIs(a, alias)
        np.testing.assert_allclose(alias.to_numpy(), [6.0, 9.0])


class TestCumsum(_ScopedCase):
    def test_flattened_and_along_axis(self):
        a = self.f.create([[1, 2], [3, 4]])
        self.assertEqual(a.cumsum().to_list(), [1, 3, 6, 10])
        self.assertEqual(a.cumsum(1).to_list(), [[1, 3], [3, 7]])
        self.assertEqual(a.cumsum(-2).to_list(), [[1, 2], [4, 6]])

    def test_boolean_counts_as_int64(self):
        y = self.f.create([True, True, False, True]).cumsum()
        self.assertIs(y.dtype, DataType.INT64)
        self.assertEqual(y.to_list(), [1, 2, 2, 3])

    def test_cumsumi(self):
        a = self.f.create([1.0, 2.0, 3.0])
        self.assertIs(a.cumsumi(), a)
        np.testing.assert_allclose(a.to_numpy(), [1.0, 3.0, 6.0])

    def test_cumsumi_flattened_rank2_rejected(self):
        with self.assertRaises(ShapeMismatchError):
            self.f.ones((2, 2)).cumsumi()


class TestMatrixProduct(_ScopedCase):
    def test_matrix_matrix(self):
        a = self.f.create(np.arange(6, dtype=np.float32).reshape(2, 3))
        b = self.f.create(np.arange(12, dtype=np.float32).reshape(3, 4))
        y = a.mmul(b)
        self.assertEqual(y.shape, (2, 4))
        np.testing.assert_allclose(y.to_numpy(), a.to_numpy() @ b.to_numpy())
        np.testing.assert_allclose((a @ b).to_numpy(), y.to_numpy())

    def test_vector_dot_gives_scalar(self):
        a = self.f.create([1.0, 2.0, 3.0])
        y = a.mmul(a)
        self.assertEqual(y.shape, ())
        self.assertAlmostEqual(y.item(), 14.0)

    def test_batched(self):
        a = self.f.ones((5, 2, 3))
        b = self.f.ones((3, 4))
        self.assertEqual(a.mmul(b).shape, (5, 2, 4))

    def test_contracted_extent_mismatch(self):
        with self.assertRaises(ShapeMismatchError):
            self.f.ones((2, 3)).mmul(self.f.ones((2, 3)))

    def test_batch_mismatch(self):
        with self.assertRaises(ShapeMismatchError):
            self.f.ones((2, 2, 3)).mmul(self.f.ones((4, 3, 1)))

    def test_rank0_rejected(self):
        with self.assertRaises(ShapeMismatchError):
            self.f.create(1.0).mmul(self.f.ones((1,)))


if __name__ == "__main__":
    unittest.main()
