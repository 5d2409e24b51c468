import io
import json
import unittest
from unittest import TestCase

import numpy as np

from src.ndcore.domain._dtype import DataType
from src.ndcore.domain._errors import DeviceNotSupportedError, InvalidConversionError
from src.ndcore.domain._formats import SparseFormat
from src.ndcore.domain.device._device import Device, DeviceType
from src.ndcore.infrastructure.backend import NumpyDenseDispatcher, kernel_registry
from src.ndcore.infrastructure.encoding import FORMAT_TAG, decode_array, encode_array
from src.ndcore.infrastructure.factory import ArrayFactory
from src.ndcore.infrastructure.scope._scope import ResourceScope


class _CodecCase(TestCase):
    def setUp(self) -> None:
        self.scope = ResourceScope("codec").__enter__()
        self.f = ArrayFactory("cpu", "float32")

    def tearDown(self) -> None:
        self.scope.__exit__(None, None, None)

    def assert_same_array(self, a, b) -> None:
        self.assertEqual(a.shape, b.shape)
        self.assertIs(a.dtype, b.dtype)
        self.assertIs(a.sparse_format, b.sparse_format)
        self.assertEqual(a.device, b.device)
        np.testing.assert_array_equal(a.to_numpy(), b.to_numpy())


class TestRoundTrip(_CodecCase):
    def test_dense_float(self):
        a = self.f.create([[1.5, -2.0, 3.25], [0.0, 4.0, 5.0]])
        self.assert_same_array(self.f.decode(a.encode()), a)

    def test_dtypes(self):
        for dtype in ("float64", "float16", "int8", "uint8", "int32", "int64"):
            with self.subTest(dtype=dtype):
                a = self.f.create([1, 0, 1], dtype=dtype)
                self.assert_same_array(self.f.decode(a.encode()), a)
        flags = self.f.create([True, False, True])
        self.assert_same_array(self.f.decode(flags.encode()), flags)

    def test_scalar(self):
        a = self.f.create(7.0)
        b = self.f.decode(a.encode())
        self.assertEqual(b.shape, ())
        self.assertEqual(b.item(), 7.0)

    def test_empty(self):
        a = self.f.zeros((0, 3))
        self.assert_same_array(self.f.decode(a.encode()), a)

    def test_sparse_formats(self):
        values = np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 0.0], [2.0, 0.0, 3.0]], dtype=np.float32)
        for fmt in (SparseFormat.CSR, SparseFormat.ROW_SPARSE):
            with self.subTest(fmt=fmt):
                a = self.f.create(values, sparse_format=fmt)
                self.assert_same_array(self.f.decode(a.encode()), a)

    def test_decode_accepts_text(self):
        a = self.f.create([1.0, 2.0])
        self.assert_same_array(decode_array(a.encode().decode("utf-8")), a)

    def test_decoded_array_joins_active_scope(self):
        a = self.f.create([1.0])
        b = decode_array(encode_array(a))
        self.assertIs(b.scope, self.scope)
        c = decode_array(encode_array(a), scope=None)
        self.assertIsNone(c.scope)
        c.close()

    def test_encode_to_stream(self):
        a = self.f.create([1.0, 2.0, 3.0])
        buf = io.BytesIO()
        n = a.encode_to(buf)
        self.assertEqual(n, len(buf.getvalue()))
        self.assert_same_array(self.f.decode(buf.getvalue()), a)


class TestBlobLayout(_CodecCase):
    def test_fields(self):
        a = self.f.create([[1.0, 0.0], [0.0, 2.0]], sparse_format=SparseFormat.CSR)
        payload = json.loads(a.encode())
        self.assertEqual(payload["format"], FORMAT_TAG)
        self.assertEqual(payload["dtype"], "float32")
        self.assertEqual(payload["shape"], [2, 2])
        self.assertEqual(payload["sparse_format"], "csr")
        self.assertEqual(payload["device"], "cpu")
        self.assertEqual(set(payload["components"]), {"data", "indices", "indptr"})
        self.assertEqual(payload["components"]["data"]["shape"], [2])

    def test_encoding_is_deterministic(self):
        a = self.f.create([1.0, 2.0])
        self.assertEqual(a.encode(), a.dup().encode())


class TestDeviceOnDecode(_CodecCase):
    def setUp(self) -> None:
        super().setUp()
        kernel_registry.register(DeviceType.GPU, SparseFormat.DENSE)(NumpyDenseDispatcher)

    def tearDown(self) -> None:
        kernel_registry.unregister(DeviceType.GPU, SparseFormat.DENSE)
        super().tearDown()

    def test_factory_device_overrides_blob(self):
        a = self.f.create([1.0, 2.0])
        b = ArrayFactory("gpu:0").decode(a.encode())
        self.assertEqual(b.device, Device("gpu:0"))
        np.testing.assert_array_equal(b.to_numpy(), a.to_numpy())

    def test_blob_device_used_by_default(self):
        a = ArrayFactory("gpu:1").create([1.0])
        b = ArrayFactory().decode(a.encode())
        self.assertEqual(b.device, Device("gpu:1"))

    def test_unserved_device_raises(self):
        a = self.f.create([[1.0]], sparse_format=SparseFormat.CSR)
        with self.assertRaises(DeviceNotSupportedError):
            decode_array(a.encode(), device="gpu:0")


class TestCorruptBlobs(_CodecCase):
    def _payload(self):
        return json.loads(self.f.create([1.0, 2.0, 3.0]).encode())

    def _assert_rejected(self, blob):
        with self.assertRaises(InvalidConversionError):
            decode_array(blob)

    def test_not_json(self):
        self._assert_rejected(b"\xff\xfe not json")
        self._assert_rejected("{")

    def test_wrong_format_tag(self):
        payload = self._payload()
        payload["format"] = "something.else"
        self._assert_rejected(json.dumps(payload))
        self._assert_rejected(json.dumps([1, 2, 3]))

    def test_unknown_dtype_or_format(self):
        for key, value in (("dtype", "complex128"), ("sparse_format", "coo")):
            with self.subTest(key=key):
                payload = self._payload()
                payload[key] = value
                self._assert_rejected(json.dumps(payload))

    def test_missing_fields(self):
        for key in ("dtype", "shape", "components"):
            with self.subTest(key=key):
                payload = self._payload()
                del payload[key]
                self._assert_rejected(json.dumps(payload))
        payload = self._payload()
        payload["components"] = {}
        self._assert_rejected(json.dumps(payload))

    def test_bad_base64(self):
        payload = self._payload()
        payload["components"]["data"]["b64"] = "!!not base64!!"
        self._assert_rejected(json.dumps(payload))

    def test_byte_count_mismatch(self):
        payload = self._payload()
        payload["components"]["data"]["shape"] = [4]
        self._assert_rejected(json.dumps(payload))

    def test_shape_mismatch(self):
        payload = self._payload()
        payload["shape"] = [2, 2]
        self._assert_rejected(json.dumps(payload))

    def test_object_dtype_rejected(self):
        payload = self._payload()
        payload["components"]["data"]["dtype"] = "|O"
        self._assert_rejected(json.dumps(payload))


class TestDtypeRecorded(_CodecCase):
    def test_int_data_keeps_declared_type(self):
        a = self.f.create([1, 2], dtype=DataType.INT32)
        self.assertIs(self.f.decode(a.encode()).dtype, DataType.INT32)


if __name__ == "__main__":
    unittest.main()
