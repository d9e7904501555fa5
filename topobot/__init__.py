"""topobot public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.errors import DivergenceError, InvalidTopology, ShapeViolation, StructureMismatch
from .core.topology import Topology
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import SigmoidMLP, Trainer

__all__ = [
    "DivergenceError",
    "InvalidTopology",
    "ShapeViolation",
    "SigmoidMLP",
    "StructureMismatch",
    "Topology",
    "Trainer",
    "activations",
    "types",
    "load_preset",
    "presets",
    "run_pipeline",
]
