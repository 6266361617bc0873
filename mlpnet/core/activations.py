"""Unit functions for trainable nodes."""

from __future__ import annotations

import math
from dataclasses import dataclass

_SIGMOID_CLAMP = 45.0


def sigmoid(x: float) -> float:
    """Return the logistic of ``x``, saturated outside ``[-45, 45]``."""

    if x < -_SIGMOID_CLAMP:
        return 0.0
    if x > _SIGMOID_CLAMP:
        return 1.0
    return 1.0 / (1.0 + math.exp(-x))


def sigmoid_deriv(value: float) -> float:
    """Derivative of the sigmoid expressed through its output ``value``."""

    return value * (1.0 - value)


def linear(x: float) -> float:
    return x


def linear_deriv(value: float) -> float:
    return 1.0


@dataclass(frozen=True)
class Unit:
    """Named activation together with its output-space derivative."""

    name: str

    def activate(self, total: float) -> float:
        return sigmoid(total) if self.name == "sigmoid" else linear(total)

    def derivative(self, value: float) -> float:
        return sigmoid_deriv(value) if self.name == "sigmoid" else linear_deriv(value)


SIGMOID = Unit("sigmoid")
LINEAR = Unit("linear")

__all__ = ["sigmoid", "sigmoid_deriv", "linear", "linear_deriv", "Unit", "SIGMOID", "LINEAR"]
