import os
import tempfile
import unittest
from unittest import TestCase

from src.ndcore.domain._dtype import DataType
from src.ndcore.domain._errors import InvalidConversionError
from src.ndcore.domain.device._device import Device
from src.ndcore.infrastructure.config._settings import (
    RuntimeSettings,
    get_settings,
    set_settings,
    settings_override,
)
from src.ndcore.infrastructure.factory import ArrayFactory


class TestRuntimeSettingsLoading(TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _write(self, text: str) -> str:
        path = os.path.join(self.tmp.name, "ndcore.toml")
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def test_defaults(self):
        s = RuntimeSettings()
        self.assertEqual(s.device, Device("cpu"))
        self.assertIs(s.dtype, DataType.FLOAT32)
        self.assertEqual(s.eps_tolerance, 1e-5)
        self.assertTrue(s.warn_on_leak)
        self.assertEqual(s.log_level, "WARNING")

    def test_load_toml_table(self):
        path = self._write(
            "[ndcore]\n"
            'default_dtype = "float64"\n'
            "eps_tolerance = 0.001\n"
            "warn_on_leak = false\n"
        )
        s = RuntimeSettings.load(path)
        self.assertIs(s.dtype, DataType.FLOAT64)
        self.assertEqual(s.eps_tolerance, 0.001)
        self.assertFalse(s.warn_on_leak)
        self.assertEqual(s.default_device, "cpu")

    def test_load_without_table_gives_defaults(self):
        path = self._write('[other]\nkey = "value"\n')
        self.assertEqual(RuntimeSettings.load(path), RuntimeSettings())

    def test_load_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            RuntimeSettings.load(os.path.join(self.tmp.name, "absent.toml"))

    def test_unknown_keys_rejected(self):
        path = self._write("[ndcore]\ndefault_dtyp = \"float64\"\n")
        with self.assertRaises(ValueError):
            RuntimeSettings.load(path)

    def test_invalid_values_rejected(self):
        with self.assertRaises(ValueError):
            RuntimeSettings(default_device="tpu:0")
        with self.assertRaises(InvalidConversionError):
            RuntimeSettings(default_dtype="complex64")
        with self.assertRaises(ValueError):
            RuntimeSettings(eps_tolerance=-1.0)

    def test_from_env(self):
        env = {
            "NDCORE_DEFAULT_DEVICE": "gpu:1",
            "NDCORE_EPS_TOLERANCE": "0.5",
            "NDCORE_WARN_ON_LEAK": "off",
            "NDCORE_LOG_LEVEL": " debug ",
            "UNRELATED": "1",
        }
        s = RuntimeSettings.from_env(env)
        self.assertEqual(s.device, Device("gpu:1"))
        self.assertEqual(s.eps_tolerance, 0.5)
        self.assertFalse(s.warn_on_leak)
        self.assertEqual(s.log_level, "debug")
        self.assertEqual(s.default_dtype, "float32")

    def test_from_env_bad_boolean(self):
        with self.assertRaises(ValueError):
            RuntimeSettings.from_env({"NDCORE_WARN_ON_LEAK": "maybe"})

    def test_frozen(self):
        with self.assertRaises(AttributeError):
            RuntimeSettings().eps_tolerance = 1.0


class TestGlobalSettings(TestCase):
    def test_set_settings_returns_previous(self):
        original = get_settings()
        replacement = RuntimeSettings(default_dtype="float64")
        previous = set_settings(replacement)
        try:
            self.assertIs(previous, original)
            self.assertIs(get_settings(), replacement)
        finally:
            set_settings(original)
        self.assertIs(get_settings(), original)

    def test_override_is_temporary(self):
        before = get_settings()
        with settings_override(eps_tolerance=0.25) as s:
            self.assertEqual(s.eps_tolerance, 0.25)
            self.assertIs(get_settings(), s)
        self.assertIs(get_settings(), before)

    def test_override_restores_after_error(self):
        before = get_settings()
        with self.assertRaises(RuntimeError):
            with settings_override(default_dtype="float16"):
                raise RuntimeError("boom")
        self.assertIs(get_settings(), before)

    def test_factory_reads_settings_at_creation_time(self):
        f = ArrayFactory()
        with settings_override(default_dtype="float64"):
            self.assertIs(f.dtype, DataType.FLOAT64)
            with f.create([1.5]) as a:
                self.assertIs(a.dtype, DataType.FLOAT64)
        self.assertIs(f.dtype, get_settings().dtype)


if __name__ == "__main__":
    unittest.main()
