"""Per-layer-pair weight matrices."""

from __future__ import annotations

from typing import List

import numpy as np

from . import codec
from .topology import Topology
from .types import Array


class WeightStore:
    """Owns one ``(sizes[k] + 1) x sizes[k + 1]`` matrix per adjacent layer pair.

    Row ``i`` of matrix ``k`` holds the weights leaving source neuron ``i``;
    the last row belongs to the bias unit.
    """

    def __init__(self, topology: Topology, rng: np.random.Generator | int | None = None) -> None:
        self.topology = topology
        self.matrices: List[Array] = []
        self.initialize(rng)

    def initialize(self, rng: np.random.Generator | int | None = None) -> None:
        """Fill every matrix with ``U(-1/sqrt(inputs), +1/sqrt(inputs))``.

        ``inputs`` counts the bias unit, so a 400-wide input layer draws from
        ``+-1/sqrt(401)`` and the weighted sums stay inside the sigmoid's
        responsive range.
        """

        if not isinstance(rng, np.random.Generator):
            rng = np.random.default_rng(rng)
        matrices: List[Array] = []
        for inputs, outputs in self.topology.matrix_shapes():
            limit = 1.0 / np.sqrt(inputs)
            matrices.append(rng.uniform(-limit, limit, size=(inputs, outputs)))
        self.matrices = matrices

    def get(self, pair: int, i: int, j: int) -> float:
        self._check(pair, i, j)
        return float(self.matrices[pair][i, j])

    def set(self, pair: int, i: int, j: int, value: float) -> None:
        self._check(pair, i, j)
        self.matrices[pair][i, j] = value

    def _check(self, pair: int, i: int, j: int) -> None:
        rows, cols = self.topology.matrix_shape(pair)
        if not (0 <= i < rows and 0 <= j < cols):
            raise IndexError(f"Weight ({i}, {j}) outside matrix {pair} of shape {(rows, cols)}")

    def __getitem__(self, pair: int) -> Array:
        return self.matrices[pair]

    def __len__(self) -> int:
        return len(self.matrices)

    def encode(self) -> bytes:
        return codec.encode(self.topology, self.matrices)

    def decode(self, payload: bytes) -> None:
        """Replace the weights with the ones in ``payload``.

        Raises :class:`~topobot.core.errors.StructureMismatch` without
        touching the live weights when the payload does not fit.
        """

        decoded = codec.decode(payload, self.topology)
        for target, values in zip(self.matrices, decoded):
            target[...] = values

    def snapshot(self) -> List[Array]:
        return [matrix.copy() for matrix in self.matrices]

    def parameter_count(self) -> int:
        return int(sum(int(matrix.size) for matrix in self.matrices))


__all__ = ["WeightStore"]
