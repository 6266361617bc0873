"""mlpnet public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.errors import (
    CancellationError,
    CapabilityError,
    LearningRateExhausted,
    MLPError,
    NumericDivergence,
    StructuralError,
    TrainingError,
    TrainingStateError,
)
from .core.graph import Network
from .core.topology import TopologyBuilder, build_network, parse_hidden_layers
from .data import Attribute, Dataset
from .training import (
    MLPConfig,
    MultilayerPerceptron,
    TrainingController,
    evaluate,
    load_config,
    load_preset,
    presets,
)

__all__ = [
    "activations",
    "types",
    "Attribute",
    "Dataset",
    "Network",
    "TopologyBuilder",
    "build_network",
    "parse_hidden_layers",
    "MLPConfig",
    "MultilayerPerceptron",
    "TrainingController",
    "evaluate",
    "load_config",
    "load_preset",
    "presets",
    "MLPError",
    "StructuralError",
    "CapabilityError",
    "TrainingError",
    "NumericDivergence",
    "LearningRateExhausted",
    "CancellationError",
    "TrainingStateError",
]
