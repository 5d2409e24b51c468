from ._codec import FORMAT_TAG, decode_array, encode_array

__all__ = [
    "FORMAT_TAG",
    "decode_array",
    "encode_array",
]
