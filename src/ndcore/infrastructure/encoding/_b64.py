from __future__ import annotations

import base64
import binascii
from typing import Any, Dict

import numpy as np

from ...domain._errors import InvalidConversionError


def bytes_to_b64_str(b: bytes) -> str:
    """
    Encode raw bytes into a base64 ASCII string (JSON-safe).
    """
    return base64.b64encode(b).decode("ascii")


def b64_str_to_bytes(s: str) -> bytes:
    """
    Decode a base64 ASCII string back into raw bytes.

    Raises
    ------
    InvalidConversionError
        If `s` is not valid base64.
    """
    try:
        return base64.b64decode(s.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        raise InvalidConversionError("component is not valid base64") from None


def component_to_payload(arr: np.ndarray) -> Dict[str, Any]:
    """
    Serialize one storage component into a JSON-safe payload.

    Returns
    -------
    dict
        {
          "b64": "<base64>",
          "dtype": "<numpy dtype str>",
          "shape": [...]
        }

    Notes
    -----
    The dtype string carries the byte order (e.g. ``"<f4"``), so blobs move
    between hosts of different endianness.
    """
    a = np.asarray(arr, order="C")
    return {
        "b64": bytes_to_b64_str(a.tobytes(order="C")),
        "dtype": a.dtype.str,
        "shape": list(a.shape),
    }


def payload_to_component(payload: Dict[str, Any]) -> np.ndarray:
    """
    Deserialize a payload produced by `component_to_payload`.

    The result owns its memory (``np.frombuffer`` views are read-only).

    Raises
    ------
    InvalidConversionError
        If a field is missing, the dtype is unknown, or the byte count does
        not match the shape.
    """
    try:
        raw = b64_str_to_bytes(str(payload["b64"]))
        dtype = np.dtype(str(payload["dtype"]))
        shape = tuple(int(x) for x in payload["shape"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidConversionError(f"malformed component payload: {e}") from None
    if dtype.hasobject:
        raise InvalidConversionError("object components are not decodable")
    try:
        arr = np.frombuffer(raw, dtype=dtype).reshape(shape)
    except ValueError:
        raise InvalidConversionError(
            f"component holds {len(raw)} bytes, shape {shape} needs "
            f"{int(np.prod(shape, dtype=np.int64)) * dtype.itemsize}"
        ) from None
    return np.array(arr, copy=True, order="C")
