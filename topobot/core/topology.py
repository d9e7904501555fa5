"""Layer-size description of a feed-forward network."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

from .errors import InvalidTopology


@dataclass(frozen=True)
class Topology:
    """Ordered neuron counts per layer, bias units excluded.

    The first entry is the input-vector length and the last one the number
    of output classes. Instances are immutable and hashable, so they can be
    compared directly against a topology decoded from a weight file.
    """

    sizes: Tuple[int, ...]

    def __init__(self, sizes: Iterable[int]) -> None:
        values = tuple(sizes)
        if len(values) < 2:
            raise InvalidTopology(f"Topology needs at least 2 layers, got {len(values)}")
        for idx, size in enumerate(values):
            if isinstance(size, bool) or int(size) != size or size <= 0:
                raise InvalidTopology(f"Layer {idx} has non-positive size {size!r}")
        object.__setattr__(self, "sizes", tuple(int(size) for size in values))

    @property
    def layer_count(self) -> int:
        return len(self.sizes)

    @property
    def pair_count(self) -> int:
        return len(self.sizes) - 1

    @property
    def inputs(self) -> int:
        return self.sizes[0]

    @property
    def outputs(self) -> int:
        return self.sizes[-1]

    def layer_size(self, index: int) -> int:
        return self.sizes[index]

    def matrix_shape(self, pair: int) -> Tuple[int, int]:
        """Shape ``(sizes[k] + 1, sizes[k + 1])`` of weight matrix ``pair``."""

        if not 0 <= pair < self.pair_count:
            raise IndexError(f"Layer pair {pair} out of range [0, {self.pair_count})")
        return self.sizes[pair] + 1, self.sizes[pair + 1]

    def matrix_shapes(self) -> list[Tuple[int, int]]:
        return [self.matrix_shape(k) for k in range(self.pair_count)]

    def __iter__(self) -> Iterator[int]:
        return iter(self.sizes)

    def __len__(self) -> int:
        return len(self.sizes)

    def __repr__(self) -> str:
        return f"Topology({list(self.sizes)})"


__all__ = ["Topology"]
