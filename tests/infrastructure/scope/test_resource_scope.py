import gc
import unittest
import warnings
from unittest import TestCase

from src.ndcore.domain._errors import LifetimeViolationError
from src.ndcore.infrastructure.config._settings import settings_override
from src.ndcore.infrastructure.factory import ArrayFactory
from src.ndcore.infrastructure.scope._scope import ResourceScope, active_scope


class TestScopeMembership(TestCase):
    def setUp(self) -> None:
        self.f = ArrayFactory("cpu", "float32")

    def test_factory_arrays_join_active_scope(self):
        with ResourceScope() as scope:
            a = self.f.ones((2, 2))
            self.assertIs(a.scope, scope)
            self.assertIn(a, scope)
            self.assertEqual(len(scope), 1)
        self.assertTrue(a.is_closed)
        self.assertTrue(scope.is_closed)

    def test_results_join_receiver_scope(self):
        outer = ResourceScope("outer")
        a = self.f.ones((3,)).attach(outer)
        with ResourceScope("inner") as inner:
            b = a.add(1.0)
            self.assertIs(b.scope, outer)
            self.assertEqual(len(inner), 0)
        self.assertFalse(b.is_closed)
        outer.close()
        self.assertTrue(b.is_closed)

    def test_detached_array_survives(self):
        with ResourceScope() as scope:
            a = self.f.ones((2,))
            b = a.mul(3.0).detach()
            self.assertIsNone(b.scope)
            self.assertEqual(len(scope), 1)
        self.assertTrue(a.is_closed)
        self.assertFalse(b.is_closed)
        self.assertEqual(b.to_list(), [3.0, 3.0])
        b.close()

    def test_scope_detach_ignores_foreign_arrays(self):
        s1, s2 = ResourceScope(), ResourceScope()
        a = self.f.ones((1,)).attach(s1)
        s2.detach(a)
        self.assertIs(a.scope, s1)
        s1.close()
        s2.close()

    def test_attach_moves_between_scopes(self):
        s1, s2 = ResourceScope("s1"), ResourceScope("s2")
        a = self.f.ones((2,)).attach(s1)
        s2.attach(a)
        self.assertIs(a.scope, s2)
        self.assertEqual(len(s1), 0)
        s1.close()
        self.assertFalse(a.is_closed)
        s2.close()
        self.assertTrue(a.is_closed)

    def test_nested_scopes(self):
        with ResourceScope("outer") as outer:
            a = self.f.ones((1,))
            with ResourceScope("inner") as inner:
                self.assertIs(active_scope(), inner)
                b = self.f.ones((1,))
            self.assertIs(active_scope(), outer)
            self.assertTrue(b.is_closed)
            self.assertFalse(a.is_closed)
        self.assertTrue(a.is_closed)
        self.assertIsNone(active_scope())

    def test_close_releases_handles(self):
        with ResourceScope() as scope:
            arrays = [self.f.zeros((4,)) for _ in range(5)]
            handles = [a.handle for a in arrays]
            self.assertEqual(len(scope), 5)
        self.assertFalse(any(h.is_live for h in handles))
        self.assertTrue(all(a.is_closed for a in arrays))
        self.assertEqual(len(scope), 0)


class TestLifetimeViolations(TestCase):
    def setUp(self) -> None:
        self.f = ArrayFactory("cpu", "float32")

    def test_second_scope_close_is_noop(self):
        scope = ResourceScope()
        self.f.ones((2,)).attach(scope)
        scope.close()
        scope.close()
        self.assertTrue(scope.is_closed)

    def test_closed_scope_rejects_members(self):
        scope = ResourceScope()
        scope.close()
        a = self.f.ones((2,))
        with self.assertRaises(LifetimeViolationError):
            a.attach(scope)
        with self.assertRaises(LifetimeViolationError):
            scope.__enter__()
        a.close()

    def test_failed_attach_keeps_previous_scope(self):
        home = ResourceScope("home")
        closed = ResourceScope("closed")
        closed.close()
        a = self.f.ones((2,)).attach(home)
        with self.assertRaises(LifetimeViolationError):
            a.attach(closed)
        self.assertIs(a.scope, home)
        self.assertIn(a, home)
        home.close()
        self.assertTrue(a.is_closed)

    def test_second_array_close_raises(self):
        a = self.f.ones((2,))
        a.close()
        with self.assertRaises(LifetimeViolationError):
            a.close()

    def test_array_closed_by_scope_cannot_be_closed_again(self):
        with ResourceScope():
            a = self.f.ones((2,))
        with self.assertRaises(LifetimeViolationError):
            a.close()

    def test_operations_on_closed_array_raise(self):
        a = self.f.ones((2, 2))
        a.close()
        for op in (
            lambda: a.add(1.0),
            lambda: a.sum(),
            lambda: a.to_numpy(),
            lambda: a.get(0),
            lambda: a.reshape(4),
            lambda: a.dup(),
            lambda: a.encode(),
        ):
            with self.assertRaises(LifetimeViolationError):
                op()
        self.assertTrue(a.is_closed)
        self.assertIn("closed", repr(a))

    def test_operand_from_closed_array_raises(self):
        a = self.f.ones((2,))
        b = self.f.ones((2,))
        b.close()
        with self.assertRaises(LifetimeViolationError):
            a.add(b)
        a.close()

    def test_context_manager_closes_array(self):
        with self.f.ones((3,)) as a:
            self.assertFalse(a.is_closed)
        self.assertTrue(a.is_closed)


class TestLeakReporting(TestCase):
    def setUp(self) -> None:
        self.f = ArrayFactory("cpu", "float32")

    def test_unclosed_array_warns_when_collected(self):
        a = self.f.ones((8,))
        handle = a.handle
        with self.assertWarns(ResourceWarning):
            del a
            gc.collect()
        self.assertFalse(handle.is_live)

    def test_closed_array_does_not_warn(self):
        a = self.f.ones((8,))
        a.close()
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            del a
            gc.collect()
        self.assertFalse([w for w in caught if issubclass(w.category, ResourceWarning)])

    def test_scoped_array_is_left_to_its_scope(self):
        scope = ResourceScope()
        a = self.f.ones((8,)).attach(scope)
        handle = a.handle
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            del a
            gc.collect()
        self.assertFalse([w for w in caught if issubclass(w.category, ResourceWarning)])
        self.assertTrue(handle.is_live)
        scope.close()
        self.assertFalse(handle.is_live)

    def test_members_of_collected_scope_become_unscoped(self):
        scope = ResourceScope()
        a = self.f.ones((8,)).attach(scope)
        handle = a.handle
        del scope
        gc.collect()
        self.assertIsNone(a.scope)
        self.assertIsNone(handle.owner)
        with self.assertWarns(ResourceWarning):
            del a
            gc.collect()
        self.assertFalse(handle.is_live)

    def test_warning_can_be_disabled(self):
        with settings_override(warn_on_leak=False):
            a = self.f.ones((8,))
        handle = a.handle
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            del a
            gc.collect()
        self.assertFalse([w for w in caught if issubclass(w.category, ResourceWarning)])
        self.assertFalse(handle.is_live)


if __name__ == "__main__":
    unittest.main()
