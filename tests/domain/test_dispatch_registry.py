import unittest

from src.ndcore.domain._errors import DeviceNotSupportedError
from src.ndcore.domain._formats import SparseFormat
from src.ndcore.domain.device._device import Device, DeviceType
from src.ndcore.domain.utils._dispatch_registry import create_dispatch_registry


class TestDispatchRegistry(unittest.TestCase):
    def test_class_registration_stores_an_instance(self) -> None:
        registry = create_dispatch_registry()

        @registry.register(DeviceType.CPU, SparseFormat.DENSE)
        class CpuDense:
            pass

        impl = registry.resolve(Device("cpu"), SparseFormat.DENSE)
        self.assertIsInstance(impl, CpuDense)
        self.assertIs(impl, registry.resolve(Device("cpu"), SparseFormat.DENSE))

    def test_object_registration_is_kept_as_is(self) -> None:
        registry = create_dispatch_registry()
        marker = object()
        registry.register(DeviceType.GPU, SparseFormat.CSR)(marker)
        self.assertIs(registry.resolve(Device("gpu:1"), SparseFormat.CSR), marker)

    def test_resolve_accepts_bare_device_type(self) -> None:
        registry = create_dispatch_registry()
        registry.register(DeviceType.CPU, SparseFormat.DENSE)("impl")
        self.assertEqual(registry.resolve(DeviceType.CPU, SparseFormat.DENSE), "impl")

    def test_double_registration_needs_replace(self) -> None:
        registry = create_dispatch_registry()
        registry.register(DeviceType.CPU, SparseFormat.DENSE)("a")
        with self.assertRaises(KeyError):
            registry.register(DeviceType.CPU, SparseFormat.DENSE)("b")
        registry.register(DeviceType.CPU, SparseFormat.DENSE, replace=True)("b")
        self.assertEqual(registry.resolve(Device("cpu"), SparseFormat.DENSE), "b")

    def test_unhashable_key_rejected(self) -> None:
        registry = create_dispatch_registry()
        with self.assertRaises(TypeError):
            registry.register([], SparseFormat.DENSE)

    def test_missing_key_without_trap(self) -> None:
        registry = create_dispatch_registry()
        with self.assertRaises(NotImplementedError):
            registry.resolve(Device("cpu"), SparseFormat.DENSE)

    def test_missing_key_calls_trap(self) -> None:
        def trap(device, fmt):
            raise DeviceNotSupportedError("resolve", device)

        registry = create_dispatch_registry(trap)
        with self.assertRaises(DeviceNotSupportedError):
            registry.resolve(Device("gpu:0"), SparseFormat.DENSE)

    def test_unregister_and_keys(self) -> None:
        registry = create_dispatch_registry()
        registry.register(DeviceType.CPU, SparseFormat.DENSE)("a")
        registry.register(DeviceType.CPU, SparseFormat.CSR)("b")
        self.assertEqual(len(registry.keys()), 2)
        registry.unregister(DeviceType.CPU, SparseFormat.CSR)
        self.assertEqual(len(registry.keys()), 1)
        registry.unregister(DeviceType.CPU, SparseFormat.CSR)

    def test_registries_are_independent(self) -> None:
        a = create_dispatch_registry()
        b = create_dispatch_registry()
        a.register(DeviceType.CPU, SparseFormat.DENSE)("a")
        self.assertEqual(b.keys(), ())


if __name__ == "__main__":
    unittest.main()
