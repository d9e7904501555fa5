"""Evaluation of a classifier over a labelled :class:`SampleSet`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from ..core.types import Array, Classifier, Sample, SampleSet


@dataclass(frozen=True)
class Evaluation:
    """Tallies of one evaluation pass.

    ``confusion[true, predicted]`` counts answers per category; its last
    column counts answers that fell below the confidence threshold.
    """

    confusion: Array

    @property
    def num_classes(self) -> int:
        return int(self.confusion.shape[0])

    @property
    def total(self) -> int:
        return int(self.confusion.sum())

    @property
    def correct(self) -> int:
        return int(np.trace(self.confusion[:, : self.num_classes]))

    @property
    def undefined(self) -> int:
        return int(self.confusion[:, -1].sum())

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0

    @property
    def undefined_rate(self) -> float:
        return self.undefined / self.total if self.total else 0.0

    @property
    def per_class(self) -> Dict[int, float]:
        seen = self.confusion.sum(axis=1)
        return {
            label: float(self.confusion[label, label] / seen[label])
            for label in range(self.num_classes)
            if seen[label]
        }

    def as_metrics(self) -> Dict[str, float]:
        metrics = {
            "accuracy": float(self.accuracy),
            "undefined_rate": float(self.undefined_rate),
            "samples": float(self.total),
        }
        for label, value in sorted(self.per_class.items()):
            metrics[f"accuracy_class_{label}"] = value
        return metrics


def _true_label(sample: Sample) -> Optional[int]:
    if sample.label is not None:
        return int(sample.label)
    if sample.target is not None:
        return int(np.argmax(sample.target))
    return None


def evaluate(network: Classifier, samples: SampleSet, num_classes: int | None = None) -> Evaluation:
    """Classify every labelled sample; unlabelled ones are skipped."""

    labelled = [(sample, _true_label(sample)) for sample in samples]
    labelled = [(sample, label) for sample, label in labelled if label is not None]
    if num_classes is None:
        widths = [len(sample.target) for sample, _ in labelled if sample.target is not None]
        num_classes = max(widths + [label + 1 for _, label in labelled] + [1])

    confusion = np.zeros((num_classes, num_classes + 1), dtype=np.int64)
    for sample, label in labelled:
        predicted = network.predict(sample.inputs)
        confusion[label, num_classes if predicted is None else predicted] += 1
    return Evaluation(confusion=confusion)


__all__ = ["Evaluation", "evaluate"]
