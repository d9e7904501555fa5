"""Core numerical primitives for topobot."""

from . import activations, buffers, codec, errors, propagation, topology, types, weights

__all__ = [
    "activations",
    "buffers",
    "codec",
    "errors",
    "propagation",
    "topology",
    "types",
    "weights",
]
