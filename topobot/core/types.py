"""Core typing contracts for topobot."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, List, MutableSequence, Optional, Protocol, Sequence

import numpy as np

Array = np.ndarray

ProgressFn = Callable[[int, float, float, float], None]
"""Progress observer called as ``(epoch_index, fraction_complete, epoch_mse, elapsed_seconds)``."""


def fisher_yates(items: MutableSequence[Any], rng: np.random.Generator) -> None:
    """Uniform in-place permutation: swap each slot with a random earlier one."""

    n = len(items)
    while n > 1:
        n -= 1
        k = int(rng.integers(0, n + 1))
        items[k], items[n] = items[n], items[k]


@dataclass(frozen=True, eq=False)
class Sample:
    """One input vector with an optional one-hot target and category label."""

    inputs: Array
    target: Optional[Array] = None
    label: Optional[int] = None

    @classmethod
    def from_label(cls, inputs: Sequence[float] | Array, num_classes: int, label: int) -> "Sample":
        """Build a sample whose target is the one-hot encoding of ``label``."""

        if not 0 <= int(label) < num_classes:
            raise ValueError(f"Label {label} out of range for {num_classes} classes")
        target = np.zeros(num_classes, dtype=np.float64)
        target[int(label)] = 1.0
        return cls(inputs=np.asarray(inputs, dtype=np.float64), target=target, label=int(label))

    @classmethod
    def unlabeled(cls, inputs: Sequence[float] | Array) -> "Sample":
        return cls(inputs=np.asarray(inputs, dtype=np.float64))


@dataclass
class SampleSet:
    """Ordered collection of samples."""

    samples: List[Sample] = field(default_factory=list)

    def add(self, sample: Sample) -> None:
        self.samples.append(sample)

    def extend(self, samples: Iterable[Sample]) -> None:
        self.samples.extend(samples)

    def shuffle(self, rng: np.random.Generator) -> None:
        """Shuffle in place; see :func:`fisher_yates`."""

        fisher_yates(self.samples, rng)

    def copy(self) -> "SampleSet":
        return SampleSet(list(self.samples))

    def labels(self) -> List[Optional[int]]:
        return [sample.label for sample in self.samples]

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self.samples)

    def __getitem__(self, index: int) -> Sample:
        return self.samples[index]


class Classifier(Protocol):
    """Capability set shared by every network architecture."""

    def train(
        self,
        samples: SampleSet,
        epochs: int,
        acceptable_error: float,
        progress: ProgressFn | None = None,
    ) -> float:
        """Run the epoch loop and return the final epoch MSE."""

    def predict(self, inputs: Sequence[float] | Array) -> Optional[int]:
        """Return the winning category index, or ``None`` when undefined."""

    def save(self, path: str | Path) -> None:
        """Persist topology and weights to ``path``."""

    def load(self, path: str | Path) -> None:
        """Replace the live weights with the ones stored at ``path``."""


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`topobot.training.pipelines.run_pipeline`."""

    final_mse: Optional[float]
    accuracy: Optional[float]
    weights_path: str
    trained: bool
    metrics_path: str = ""
    manifest_path: str = ""


__all__ = [
    "Array",
    "Classifier",
    "ProgressFn",
    "RunResult",
    "Sample",
    "SampleSet",
    "fisher_yates",
]
