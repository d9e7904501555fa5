"""Sigmoid multi-layer perceptron and its epoch-based training loop."""

from __future__ import annotations

import math
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Mapping, Optional, Sequence

import numpy as np

from ..core import propagation
from ..core.buffers import ActivationBuffers
from ..core.errors import DivergenceError, ShapeViolation
from ..core.topology import Topology
from ..core.types import Array, ProgressFn, Sample, SampleSet, fisher_yates
from ..core.weights import WeightStore

DEFAULT_LEARNING_RATE = 0.15
DEFAULT_CONFIDENCE = 0.5
SINGLE_SAMPLE_ITERATIONS = 500


class SigmoidMLP:
    """Fully connected sigmoid network with a bias unit on every layer.

    The activation and error buffers are allocated once and reused for
    every sample, so an instance serves one ``train``/``predict`` call at a
    time. Callers sharing a network between threads must serialise access.
    """

    def __init__(
        self,
        topology: Topology | Sequence[int],
        *,
        learning_rate: float = DEFAULT_LEARNING_RATE,
        confidence_threshold: float = DEFAULT_CONFIDENCE,
        seed: int | np.random.Generator | None = None,
        parallel: bool = False,
        workers: int | None = None,
    ) -> None:
        self.topology = topology if isinstance(topology, Topology) else Topology(topology)
        self.learning_rate = float(learning_rate)
        self.confidence_threshold = float(confidence_threshold)
        self.rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)
        self.weights = WeightStore(self.topology, self.rng)
        self.buffers = ActivationBuffers(self.topology)
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=workers, thread_name_prefix="topobot-mlp")
            if parallel
            else None
        )

    # ------------------------------------------------------------------
    # Propagation

    def compute(self, inputs: Sequence[float] | Array) -> Array:
        """Return a copy of the output vector for ``inputs``."""

        self.buffers.load_input(inputs)
        return propagation.forward(self.buffers, self.weights, self._executor).copy()

    forward = compute

    def predict(self, inputs: Sequence[float] | Array) -> Optional[int]:
        """Return the arg-max category, or ``None`` below the confidence threshold."""

        output = self.compute(inputs)
        best = int(np.argmax(output))
        if output[best] < self.confidence_threshold:
            return None
        return best

    def fit_sample(self, inputs: Sequence[float] | Array, target: Array) -> float:
        """One forward/backward pass; returns the pre-update squared error."""

        self.buffers.load_input(inputs)
        propagation.forward(self.buffers, self.weights, self._executor)
        error = propagation.squared_error(self.buffers, target)
        propagation.backward(
            self.buffers, self.weights, target, self.learning_rate, self._executor
        )
        return error

    # ------------------------------------------------------------------
    # Training

    def train(
        self,
        samples: SampleSet,
        epochs: int,
        acceptable_error: float,
        progress: ProgressFn | None = None,
        callbacks: Sequence[object] | None = None,
    ) -> float:
        trainer = Trainer(self, callbacks=callbacks, rng=self.rng)
        return trainer.run(samples, epochs, acceptable_error, progress=progress)

    def train_sample(
        self,
        sample: Sample,
        acceptable_error: float,
        max_iterations: int = SINGLE_SAMPLE_ITERATIONS,
    ) -> int:
        """Repeat forward/backward on ``sample`` until its error is acceptable.

        Returns the number of iterations used, at most ``max_iterations``.
        """

        target = _checked_target(sample, self.topology)
        iterations = 0
        while iterations < max_iterations:
            iterations += 1
            self.buffers.load_input(sample.inputs)
            propagation.forward(self.buffers, self.weights, self._executor)
            if propagation.squared_error(self.buffers, target) < acceptable_error:
                break
            propagation.backward(
                self.buffers, self.weights, target, self.learning_rate, self._executor
            )
        return iterations

    # ------------------------------------------------------------------
    # Persistence

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.weights.encode())

    def load(self, path: str | Path) -> None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Weight file not found: {path}")
        self.weights.decode(path.read_bytes())

    def parameter_count(self) -> int:
        return self.weights.parameter_count()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "SigmoidMLP":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _checked_target(sample: Sample, topology: Topology) -> Array:
    inputs = np.asarray(sample.inputs).reshape(-1)
    if inputs.shape[0] != topology.inputs:
        raise ShapeViolation(
            f"Sample input has {inputs.shape[0]} values, network expects {topology.inputs}"
        )
    if sample.target is None:
        raise ShapeViolation("Training sample has no target vector")
    target = np.asarray(sample.target, dtype=np.float64).reshape(-1)
    if target.shape[0] != topology.outputs:
        raise ShapeViolation(
            f"Sample target has {target.shape[0]} values, network outputs {topology.outputs}"
        )
    return target


class Trainer:
    """Epoch loop: shuffle, per-sample forward/backward, convergence check."""

    def __init__(
        self,
        model: SigmoidMLP,
        callbacks: Sequence[object] | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.model = model
        self.callbacks = list(callbacks or [])
        self.rng = rng if rng is not None else model.rng

    def run(
        self,
        samples: SampleSet,
        epochs: int,
        acceptable_error: float,
        *,
        progress: ProgressFn | None = None,
    ) -> float:
        """Train for at most ``epochs`` epochs and return the last epoch MSE.

        Every sample is shape-checked before the first weight update, so a
        malformed collection aborts the run with the weights untouched.
        """

        if len(samples) == 0:
            raise ValueError("Cannot train on an empty sample collection")
        targets = [_checked_target(sample, self.model.topology) for sample in samples]
        order = list(zip(samples, targets))

        started = time.perf_counter()
        mse = 0.0
        for epoch in range(epochs):
            fisher_yates(order, self.rng)
            total = 0.0
            for sample, target in order:
                total += self.model.fit_sample(sample.inputs, target)
            mse = total / len(order)
            if not math.isfinite(mse):
                raise DivergenceError(f"Epoch {epoch} produced non-finite MSE {mse}")

            fraction = (epoch + 1) / epochs
            elapsed = time.perf_counter() - started
            self._emit_epoch(epoch, {"mse": mse, "progress": fraction, "elapsed": elapsed})
            if progress is not None:
                progress(epoch, fraction, mse, elapsed)
            if mse < acceptable_error:
                break
        return mse

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


__all__ = ["SigmoidMLP", "Trainer"]
