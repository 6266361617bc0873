"""Core typing contracts for mlpnet."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, List

import numpy as np

Array = np.ndarray

WeightSnapshot = Dict[int, Array]


class NodeKind(enum.Enum):
    """Role a node plays in the network."""

    INPUT = "input"
    OUTPUT = "output"
    HIDDEN = "hidden"


class Phase(enum.Enum):
    """Lifecycle of an iterative training run."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    TRAINING = "training"
    ACCEPTED = "accepted"
    DONE = "done"


@dataclass(frozen=True)
class EvaluationContext:
    """Instance currently bound to the network plus class scaling metadata."""

    instance: Array
    class_index: int
    class_is_nominal: bool
    normalize_class: bool = False
    class_range: float = 0.0
    class_base: float = 0.0

    def attribute(self, index: int) -> float:
        return float(self.instance[index])

    @property
    def class_value(self) -> float:
        return float(self.instance[self.class_index])

    @property
    def class_missing(self) -> bool:
        return bool(np.isnan(self.instance[self.class_index]))


@dataclass(frozen=True)
class LayerPlan:
    """Resolved hidden layer sizes for a concrete dataset."""

    sizes: List[int]

    @property
    def total(self) -> int:
        return int(sum(self.sizes))
