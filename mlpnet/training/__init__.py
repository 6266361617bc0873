"""Training loop, configuration and evaluation for mlpnet."""

from .baseline import BaselinePredictor
from .config import MLPConfig, load_config, load_preset, presets
from .controller import TrainingController
from .metrics import evaluate
from .trainer import MultilayerPerceptron, TrainingState

__all__ = [
    "BaselinePredictor",
    "MLPConfig",
    "MultilayerPerceptron",
    "TrainingController",
    "TrainingState",
    "evaluate",
    "load_config",
    "load_preset",
    "presets",
]
