"""Embedding blob codec.

Embeddings are persisted as packed little-endian float32 arrays, so a blob of
``dim * 4`` bytes holds a ``dim``-dimensional vector.
"""

from typing import Iterable, Union

import numpy as np

FLOAT32_LE = np.dtype("<f4")


def decode_embedding(blob: Union[bytes, bytearray, memoryview]) -> np.ndarray:
    """Decode a packed little-endian float32 blob into a 1-D float32 array."""
    raw = bytes(blob)
    if not raw or len(raw) % FLOAT32_LE.itemsize:
        raise ValueError(f"Embedding blob of {len(raw)} bytes is not a float32 array")
    # Native-endian copy so downstream math doesn't pay for byte swapping.
    return np.frombuffer(raw, dtype=FLOAT32_LE).astype(np.float32)


def encode_embedding(vector: Iterable[float]) -> bytes:
    """Encode a vector into the packed little-endian float32 layout."""
    array = np.asarray(vector, dtype=FLOAT32_LE)
    if array.ndim != 1:
        raise ValueError("Embedding must be one-dimensional")
    return array.tobytes()
