import unittest

from src.ndcore.domain.device._device import Device, DeviceType


class TestDevice(unittest.TestCase):
    def test_cpu(self) -> None:
        d = Device("CPU")
        self.assertIs(d.type, DeviceType.CPU)
        self.assertIsNone(d.index)
        self.assertTrue(d.is_cpu())
        self.assertEqual(str(d), "cpu")

    def test_gpu_with_index(self) -> None:
        d = Device("gpu:2")
        self.assertTrue(d.is_gpu())
        self.assertEqual(d.index, 2)
        self.assertEqual(repr(d), "Device('gpu:2')")

    def test_cuda_alias(self) -> None:
        self.assertEqual(Device("cuda:0"), Device("gpu:0"))
        self.assertEqual(str(Device("cuda:0")), "gpu:0")

    def test_copy_constructor(self) -> None:
        d = Device("gpu:3")
        self.assertEqual(Device(d), d)

    def test_equality_and_hash(self) -> None:
        self.assertNotEqual(Device("gpu:0"), Device("gpu:1"))
        self.assertNotEqual(Device("cpu"), Device("gpu:0"))
        self.assertEqual(len({Device("cpu"), Device(" cpu "), Device("gpu:0")}), 2)

    def test_invalid_strings_rejected(self) -> None:
        for text in ("gpu", "gpu:-1", "tpu:0", "", "cpu:0"):
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    Device(text)


if __name__ == "__main__":
    unittest.main()
