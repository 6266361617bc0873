"""Exception hierarchy shared across mlpnet."""

from __future__ import annotations


class MLPError(Exception):
    """Base class for every error raised by mlpnet."""


class StructuralError(MLPError, ValueError):
    """Malformed hidden layer specification or an illegal graph edit."""


class CapabilityError(MLPError, ValueError):
    """The dataset uses attribute or class types the network cannot handle."""


class DegenerateDataError(MLPError):
    """No network can be fitted; the baseline predictor takes over."""


class TrainingError(MLPError, RuntimeError):
    """Fatal failure while training."""


class NumericDivergence(TrainingError):
    """The aggregate epoch error became NaN or infinite."""


class LearningRateExhausted(TrainingError):
    """Divergence recovery cannot halve the learning rate any further."""

    def __init__(self, learning_rate: float, minimum: float) -> None:
        super().__init__(
            f"Learning rate got too small ({learning_rate} <= {minimum})"
        )
        self.learning_rate = learning_rate
        self.minimum = minimum


class CancellationError(MLPError):
    """Training was cancelled cooperatively at a poll point."""


class TrainingStateError(MLPError, RuntimeError):
    """An operation was attempted in a state that does not allow it."""


__all__ = [
    "MLPError",
    "StructuralError",
    "CapabilityError",
    "DegenerateDataError",
    "TrainingError",
    "NumericDivergence",
    "LearningRateExhausted",
    "CancellationError",
    "TrainingStateError",
]
