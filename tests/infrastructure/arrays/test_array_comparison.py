import unittest
from unittest import TestCase

import numpy as np

from src.ndcore.domain._dtype import DataType
from src.ndcore.domain._errors import InvalidConversionError, ShapeMismatchError
from src.ndcore.domain._index import NDIndex
from src.ndcore.infrastructure.config._settings import settings_override
from src.ndcore.infrastructure.factory import ArrayFactory
from src.ndcore.infrastructure.scope._scope import ResourceScope


class TestComparison(TestCase):
    def setUp(self) -> None:
        self.scope = ResourceScope("comparison").__enter__()
        self.f = ArrayFactory("cpu", "float32")

    def tearDown(self) -> None:
        self.scope.__exit__(None, None, None)

    def test_elementwise_results_are_boolean(self):
        a = self.f.create([1.0, 2.0, 3.0])
        b = self.f.create([3.0, 2.0, 1.0])
        cases = {
            "eq": [False, True, False],
            "neq": [True, False, True],
            "gt": [False, False, True],
            "gte": [False, True, True],
            "lt": [True, False, False],
            "lte": [True, True, False],
        }
        for op, expected in cases.items():
            with self.subTest(op=op):
                y = getattr(a, op)(b)
                self.assertIs(y.dtype, DataType.BOOLEAN)
                self.assertEqual(y.to_list(), expected)

    def test_ordering_operators(self):
        a = self.f.create([1.0, 2.0, 3.0])
        self.assertEqual((a < 2).to_list(), [True, False, False])
        self.assertEqual((a <= 2).to_list(), [True, True, False])
        self.assertEqual((a > 2).to_list(), [False, False, True])
        self.assertEqual((a >= 2).to_list(), [False, True, True])

    def test_broadcast_comparison(self):
        a = self.f.create([[1.0, 5.0], [3.0, 0.0]])
        y = a.gt(self.f.create([2.0, 2.0]))
        self.assertEqual(y.shape, (2, 2))
        self.assertEqual(y.to_list(), [[False, True], [True, False]])

    def test_incompatible_shapes_raise(self):
        with self.assertRaises(ShapeMismatchError):
            self.f.ones((2, 3)).eq(self.f.ones((2,)))

    def test_eps_uses_explicit_tolerance(self):
        a = self.f.create([1.0, 1.0, 1.0])
        b = self.f.create([1.0, 1.05, 1.2])
        self.assertEqual(a.eps(b, 0.1).to_list(), [True, True, False])

    def test_eps_default_tolerance_comes_from_settings(self):
        a = self.f.create([1.0])
        b = self.f.create([1.001])
        self.assertFalse(a.equals_with_eps(b))
        with settings_override(eps_tolerance=1e-2):
            self.assertTrue(a.equals_with_eps(b))

    def test_content_equals(self):
        a = self.f.create([[1.0, 2.0], [3.0, 4.0]])
        self.assertTrue(a.content_equals(a.dup()))
        self.assertFalse(a.content_equals(a.add(1.0)))
        self.assertTrue(self.f.full((2, 2), 7.0).content_equals(7.0))

    def test_content_equals_false_for_unbroadcastable_shapes(self):
        self.assertFalse(self.f.ones((2, 3)).content_equals(self.f.ones((4,))))
        self.assertFalse(self.f.ones((2, 3)).equals_with_eps(self.f.ones((3, 2))))

    def test_content_equals_does_not_leave_temporaries(self):
        a = self.f.ones((2, 2))
        before = len(self.scope)
        a.content_equals(a)
        self.assertEqual(len(self.scope), before)

    def test_nan_and_infinite_predicates(self):
        a = self.f.create([np.nan, np.inf, -np.inf, 0.0])
        self.assertEqual(a.is_nan().to_list(), [True, False, False, False])
        self.assertEqual(a.is_infinite().to_list(), [False, True, True, False])

    def test_logical_not(self):
        self.assertEqual(self.f.create([0.0, 2.0]).logical_not().to_list(), [True, False])
        self.assertEqual(self.f.create([True, False]).logical_not().to_list(), [False, True])

    def test_create_mask_from_index(self):
        a = self.f.zeros((2, 3))
        mask = a.create_mask(NDIndex("1, 1:"))
        self.assertIs(mask.dtype, DataType.BOOLEAN)
        self.assertEqual(mask.to_list(), [[False, False, False], [False, True, True]])
        self.assertEqual(a.create_mask(":, 0").nonzero(), 2)

    def test_create_mask_from_predicate(self):
        a = self.f.create([[1.0, -1.0], [-2.0, 3.0]])
        mask = a.create_mask(lambda x: x.gt(0))
        self.assertEqual(mask.to_list(), [[True, False], [False, True]])

    def test_create_mask_predicate_is_broadcast(self):
        a = self.f.zeros((2, 3))
        mask = a.create_mask(lambda x: self.f.create([True, False, True]))
        self.assertEqual(mask.shape, (2, 3))
        self.assertEqual(mask.nonzero(), 4)

    def test_create_mask_predicate_must_be_boolean(self):
        with self.assertRaises(InvalidConversionError):
            self.f.ones((2,)).create_mask(lambda x: x.add(1.0))

    def test_mask_selects_with_get(self):
        a = self.f.create([5.0, -1.0, 7.0, -3.0])
        picked = a.get(a.create_mask(lambda x: x.lt(0)))
        self.assertEqual(picked.to_list(), [-1.0, -3.0])


if __name__ == "__main__":
    unittest.main()
