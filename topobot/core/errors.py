"""Error kinds raised by the network engine."""

from __future__ import annotations


class InvalidTopology(ValueError):
    """Fewer than two layers, or a non-positive layer size."""


class StructureMismatch(ValueError):
    """Persisted topology or matrix shape disagrees with the live network."""


class ShapeViolation(ValueError):
    """A sample's input or target length disagrees with the network."""


class DivergenceError(FloatingPointError):
    """Training produced a non-finite error (exploding weights or NaN)."""


__all__ = ["DivergenceError", "InvalidTopology", "ShapeViolation", "StructureMismatch"]
