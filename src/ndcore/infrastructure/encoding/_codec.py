"""
Array encoding.

`encode_array` turns an array into a self-describing UTF-8 JSON blob and
`decode_array` rebuilds an equal array from it. The blob records everything
needed for reconstruction:

    {
      "format": "ndcore.array.v1",
      "dtype": "float32",
      "shape": [2, 3],
      "sparse_format": "csr",
      "device": "cpu",
      "components": {
        "data":    {"b64": "...", "dtype": "<f4", "shape": [4]},
        "indices": {...},
        "indptr":  {...}
      }
    }

Components are the storage pieces reported by the array's kernel dispatcher:
``data`` for dense arrays, ``data/indices/indptr`` for CSR and
``data/indices`` for row-sparse arrays. Avoiding pickle keeps blobs safe to
load from untrusted sources.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Union

from ...domain._dtype import DataType
from ...domain._errors import InvalidConversionError
from ...domain._formats import SparseFormat
from ...domain._shape import Shape
from ...domain.device._device import Device
from ..array._array import NDArray, _ACTIVE
from ..backend import kernel_registry
from ..backend._dtypes import to_numpy_dtype
from ._b64 import component_to_payload, payload_to_component

logger = logging.getLogger(__name__)

FORMAT_TAG = "ndcore.array.v1"


def encode_array(array: NDArray) -> bytes:
    """
    Serialize `array` into a JSON blob.

    Raises
    ------
    LifetimeViolationError
        If the array is closed.
    """
    components = array._dispatcher.components(array._storage())
    payload = {
        "format": FORMAT_TAG,
        "dtype": array.dtype.value,
        "shape": list(array.shape.dims),
        "sparse_format": array.sparse_format.value,
        "device": str(array.device),
        "components": {k: component_to_payload(v) for k, v in components.items()},
    }
    return json.dumps(payload, sort_keys=True).encode("utf-8")


def decode_array(
    blob: Union[bytes, bytearray, str],
    device: Optional[Union[Device, str]] = None,
    scope: Any = _ACTIVE,
) -> NDArray:
    """
    Rebuild an array from a blob produced by `encode_array`.

    Parameters
    ----------
    blob : bytes or str
        The encoded array.
    device : Device or str, optional
        Target device; the device recorded in the blob by default.
    scope : ResourceScope or None, optional
        Scope for the new array; the active scope by default.

    Raises
    ------
    InvalidConversionError
        If the blob is not valid JSON, carries an unknown format tag, names an
        unknown type or format, or its components are inconsistent with the
        recorded shape.
    DeviceNotSupportedError
        If no dispatcher serves the target device.
    """
    try:
        text = blob.decode("utf-8") if isinstance(blob, (bytes, bytearray)) else str(blob)
        payload = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidConversionError(f"array blob is not valid JSON: {e}") from None
    if not isinstance(payload, dict) or payload.get("format") != FORMAT_TAG:
        raise InvalidConversionError("not an encoded array (missing or unknown format tag)")

    try:
        dtype = DataType.of(payload["dtype"])
        shape = Shape(payload["shape"])
        fmt = SparseFormat(payload["sparse_format"])
        target = Device(payload["device"] if device is None else device)
        components = {
            name: payload_to_component(p) for name, p in dict(payload["components"]).items()
        }
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidConversionError(f"malformed array blob: {e}") from None

    dispatcher = kernel_registry.resolve(target, fmt)
    try:
        storage = dispatcher.from_components(components, shape.dims, to_numpy_dtype(dtype))
    except KeyError as e:
        raise InvalidConversionError(f"array blob lacks component {e}") from None
    logger.debug("decoded %s array of shape %s", fmt.value, shape)
    return NDArray._from_storage(storage, shape, dtype, target, fmt, scope)
