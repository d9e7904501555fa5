"""Binary weight-file codec.

Layout, little-endian::

    int32           layer count N
    int32[N]        layer sizes (bias excluded)
    int32           weight layer-pair count (N - 1)
    per pair:
        int32       inputs  (source layer size + 1)
        int32       outputs (destination layer size)
        float64[inputs * outputs]  row-major weights
"""

from __future__ import annotations

import struct
from typing import List, Sequence

import numpy as np

from .errors import StructureMismatch
from .topology import Topology
from .types import Array

_INT = struct.Struct("<i")
_FLOAT = np.dtype("<f8")


def encode(topology: Topology, matrices: Sequence[Array]) -> bytes:
    """Serialise ``topology`` and ``matrices`` into the weight-file layout."""

    parts: List[bytes] = [_INT.pack(topology.layer_count)]
    parts.extend(_INT.pack(size) for size in topology.sizes)
    parts.append(_INT.pack(len(matrices)))
    for matrix in matrices:
        inputs, outputs = matrix.shape
        parts.append(_INT.pack(inputs))
        parts.append(_INT.pack(outputs))
        parts.append(np.ascontiguousarray(matrix, dtype=_FLOAT).tobytes())
    return b"".join(parts)


class _Reader:
    def __init__(self, payload: bytes) -> None:
        self._view = memoryview(payload)
        self._offset = 0

    def read_int(self) -> int:
        return int(_INT.unpack(self._take(_INT.size))[0])

    def read_floats(self, count: int) -> Array:
        raw = self._take(count * _FLOAT.itemsize)
        return np.frombuffer(raw, dtype=_FLOAT).astype(np.float64)

    def _take(self, size: int) -> memoryview:
        end = self._offset + size
        if size < 0 or end > len(self._view):
            raise StructureMismatch(
                f"Weight file truncated: need {size} bytes at offset {self._offset}, "
                f"have {len(self._view) - self._offset}"
            )
        chunk = self._view[self._offset:end]
        self._offset = end
        return chunk

    @property
    def remaining(self) -> int:
        return len(self._view) - self._offset


def decode(payload: bytes, topology: Topology) -> List[Array]:
    """Decode ``payload`` and return fresh matrices shaped for ``topology``.

    Every header field is checked against ``topology`` before any weight
    data is read, and nothing outside the returned list is modified.
    """

    reader = _Reader(payload)
    layer_count = reader.read_int()
    if layer_count != topology.layer_count:
        raise StructureMismatch(
            f"File has {layer_count} layers, network has {topology.layer_count}"
        )
    sizes = tuple(reader.read_int() for _ in range(layer_count))
    if sizes != topology.sizes:
        raise StructureMismatch(f"File topology {list(sizes)} != network {list(topology.sizes)}")
    pair_count = reader.read_int()
    if pair_count != topology.pair_count:
        raise StructureMismatch(
            f"File has {pair_count} weight matrices, network has {topology.pair_count}"
        )

    matrices: List[Array] = []
    for pair, expected in enumerate(topology.matrix_shapes()):
        shape = (reader.read_int(), reader.read_int())
        if shape != expected:
            raise StructureMismatch(f"Weight matrix {pair} has shape {shape}, expected {expected}")
        values = reader.read_floats(shape[0] * shape[1])
        matrices.append(values.reshape(shape))

    if reader.remaining:
        raise StructureMismatch(f"Weight file has {reader.remaining} trailing bytes")
    return matrices


__all__ = ["decode", "encode"]
