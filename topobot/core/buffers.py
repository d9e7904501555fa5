"""Per-layer activation and error caches reused across samples."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from .errors import ShapeViolation
from .topology import Topology
from .types import Array


class ActivationBuffers:
    """Arena of ``size + 1`` vectors per layer, allocated once per network.

    ``values[k][-1]`` is the bias unit of layer ``k``; it is set to ``1.0``
    here and propagation never writes it. The arena is not thread-safe:
    one forward/backward pass may use it at a time.
    """

    def __init__(self, topology: Topology) -> None:
        self.topology = topology
        self.values: List[Array] = []
        self.errors: List[Array] = []
        for size in topology.sizes:
            layer = np.zeros(size + 1, dtype=np.float64)
            layer[size] = 1.0
            self.values.append(layer)
            self.errors.append(np.zeros(size + 1, dtype=np.float64))

    def load_input(self, inputs: Sequence[float] | Array) -> None:
        """Copy ``inputs`` into layer 0, leaving its bias slot alone."""

        vector = np.asarray(inputs, dtype=np.float64).reshape(-1)
        if vector.shape[0] != self.topology.inputs:
            raise ShapeViolation(
                f"Input has {vector.shape[0]} values, network expects {self.topology.inputs}"
            )
        self.values[0][: self.topology.inputs] = vector

    @property
    def output(self) -> Array:
        """Live view of the output layer without its bias slot."""

        return self.values[-1][:-1]

    def bias_intact(self) -> bool:
        return all(layer[-1] == 1.0 for layer in self.values)


__all__ = ["ActivationBuffers"]
