"""Activation utilities for topobot."""

from __future__ import annotations

import numpy as np

from .types import Array


def sigmoid(x: Array) -> Array:
    """Return the logistic activation ``1 / (1 + e^-x)``."""

    return 1.0 / (1.0 + np.exp(-x))


def sigmoid_deriv(y: Array) -> Array:
    """Derivative of the sigmoid expressed through its output ``y``."""

    return y * (1.0 - y)
