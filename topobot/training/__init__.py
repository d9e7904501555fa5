"""Network, training loop and pipeline assembly."""

from .metrics import Evaluation, evaluate
from .trainer import SigmoidMLP, Trainer

__all__ = ["Evaluation", "SigmoidMLP", "Trainer", "evaluate"]
