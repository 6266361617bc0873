"""Majority-class / mean-value fallback predictor."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..core.types import Array
from ..data.dataset import Dataset


@dataclass
class BaselinePredictor:
    """Predict the same distribution for every instance."""

    distribution: Array
    nominal: bool
    class_name: str = "class"

    @classmethod
    def fit(cls, dataset: Dataset) -> "BaselinePredictor":
        attr = dataset.class_attribute
        targets = dataset.class_values
        present = ~np.isnan(targets)
        weights = dataset.weights[present]
        if attr.is_nominal:
            counts = np.ones(attr.num_values, dtype=np.float64)
            np.add.at(counts, targets[present].astype(int), weights)
            return cls(counts / counts.sum(), True, attr.name)
        total = float(weights.sum())
        mean = float(np.dot(targets[present], weights) / total) if total > 0 else 0.0
        return cls(np.array([mean], dtype=np.float64), False, attr.name)

    def distribution_for_instance(self, row: Array | None = None) -> Array:
        return self.distribution.copy()

    def describe(self) -> str:
        if self.nominal:
            best = int(np.argmax(self.distribution))
            return f"Baseline predictor: majority class index {best} of {self.class_name}"
        return f"Baseline predictor: {self.class_name} = {self.distribution[0]:.6g}"


__all__ = ["BaselinePredictor"]
