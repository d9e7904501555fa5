"""Forward and backward passes over an :class:`ActivationBuffers` arena.

Within one layer every destination neuron (forward), source neuron
(hidden error) or destination column (weight update) is independent, so
each step is a map over an index range. With an executor the range is cut
into chunks that run concurrently and are joined before the next layer
starts; without one the range is a single vectorised numpy operation.
Layers, and the three backward steps, always run in order.
"""

from __future__ import annotations

import os
from concurrent.futures import Executor
from typing import Callable, Optional

import numpy as np

from .activations import sigmoid, sigmoid_deriv
from .buffers import ActivationBuffers
from .errors import ShapeViolation
from .types import Array
from .weights import WeightStore

_MIN_CHUNK = 16


def _fan_out(size: int, work: Callable[[int, int], None], executor: Optional[Executor]) -> None:
    """Run ``work(lo, hi)`` over ``[0, size)`` and wait for every chunk."""

    if executor is None or size < 2 * _MIN_CHUNK:
        work(0, size)
        return
    workers = os.cpu_count() or 4
    step = max(_MIN_CHUNK, -(-size // workers))
    futures = [executor.submit(work, lo, min(lo + step, size)) for lo in range(0, size, step)]
    for future in futures:
        future.result()


def forward(
    buffers: ActivationBuffers,
    weights: WeightStore,
    executor: Optional[Executor] = None,
) -> Array:
    """Fill every layer from ``buffers.values[0]`` and return the output view."""

    values = buffers.values
    for k in range(len(weights)):
        source = values[k]
        dest = values[k + 1]
        matrix = weights[k]

        def _neurons(lo: int, hi: int, source=source, dest=dest, matrix=matrix) -> None:
            dest[lo:hi] = sigmoid(source @ matrix[:, lo:hi])

        _fan_out(matrix.shape[1], _neurons, executor)
    return buffers.output


def squared_error(buffers: ActivationBuffers, target: Array) -> float:
    """Return ``sum((target - output)^2)`` for the last forward pass."""

    diff = np.asarray(target, dtype=np.float64) - buffers.output
    return float(np.dot(diff, diff))


def backward(
    buffers: ActivationBuffers,
    weights: WeightStore,
    target: Array,
    learning_rate: float,
    executor: Optional[Executor] = None,
) -> None:
    """Back-propagate ``target`` through the last forward pass and update weights."""

    target = np.asarray(target, dtype=np.float64).reshape(-1)
    if target.shape[0] != buffers.topology.outputs:
        raise ShapeViolation(
            f"Target has {target.shape[0]} values, network outputs {buffers.topology.outputs}"
        )
    values = buffers.values
    errors = buffers.errors
    last = len(values) - 1

    output = values[last][:-1]
    out_errors = errors[last]

    def _output(lo: int, hi: int) -> None:
        y = output[lo:hi]
        out_errors[lo:hi] = (target[lo:hi] - y) * sigmoid_deriv(y)

    _fan_out(output.shape[0], _output, executor)

    for k in range(last - 1, -1, -1):
        matrix = weights[k]
        downstream = errors[k + 1][: matrix.shape[1]]
        layer = values[k]
        layer_errors = errors[k]

        def _hidden(lo: int, hi: int, matrix=matrix, downstream=downstream, layer=layer,
                    layer_errors=layer_errors) -> None:
            y = layer[lo:hi]
            layer_errors[lo:hi] = (matrix[lo:hi] @ downstream) * sigmoid_deriv(y)

        # The bias row gets an error too; nothing upstream ever reads it.
        _fan_out(layer.shape[0], _hidden, executor)

    for k in range(len(weights)):
        matrix = weights[k]
        source = values[k]
        delta = errors[k + 1][: matrix.shape[1]]

        def _update(lo: int, hi: int, matrix=matrix, source=source, delta=delta) -> None:
            matrix[:, lo:hi] += learning_rate * np.outer(source, delta[lo:hi])

        _fan_out(matrix.shape[1], _update, executor)


__all__ = ["backward", "forward", "squared_error"]
