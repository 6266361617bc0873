"""Metric helpers for scoring a trained network on a dataset."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

import numpy as np

from ..core.types import Array
from ..data.dataset import Dataset


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(nominal: bool) -> List[str]:
    if nominal:
        return ["accuracy", "mean_squared_error"]
    return ["mae", "rmse", "r2"]


def compute_metric(
    name: str,
    predictions: Array,
    targets: Array,
    *,
    weights: Array | None = None,
) -> MetricResult:
    """Score ``predictions`` against class values.

    For a nominal class ``predictions`` is the ``(n, num_classes)``
    distribution matrix and ``targets`` holds label indices; for a numeric
    class both are one value per instance.
    """

    key = name.lower()
    targs = np.asarray(targets, dtype=np.float64).reshape(-1)
    w = np.ones_like(targs) if weights is None else np.asarray(weights, dtype=np.float64)
    total = float(w.sum())
    if total <= 0:
        raise ValueError("Metrics need a positive total weight")
    if key == "accuracy":
        pred_idx = np.argmax(predictions, axis=1)
        value = float(np.dot(w, pred_idx == targs.astype(int)) / total)
    elif key == "mean_squared_error":
        onehot = np.zeros_like(predictions, dtype=np.float64)
        onehot[np.arange(targs.size), targs.astype(int)] = 1.0
        per_row = np.mean((predictions - onehot) ** 2, axis=1)
        value = float(np.dot(w, per_row) / total)
    else:
        preds = np.asarray(predictions, dtype=np.float64).reshape(-1)
        if key == "mae":
            value = float(np.dot(w, np.abs(preds - targs)) / total)
        elif key == "rmse":
            value = float(np.sqrt(np.dot(w, (preds - targs) ** 2) / total))
        elif key == "r2":
            mean = float(np.dot(w, targs) / total)
            ss_res = float(np.dot(w, (targs - preds) ** 2))
            ss_tot = float(np.dot(w, (targs - mean) ** 2))
            value = 1.0 if ss_tot == 0 else float(1 - ss_res / ss_tot)
        else:
            raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(
    names: Iterable[str],
    predictions: Array,
    targets: Array,
    *,
    weights: Array | None = None,
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets, weights=weights)
        results[metric.name] = metric.value
    return results


def evaluate(model, dataset: Dataset, names: Iterable[str] | None = None) -> Mapping[str, float]:
    """Predict every instance with a known class and score the results."""

    data = dataset.delete_with_missing_class()
    nominal = data.class_attribute.is_nominal
    predictions = model.predict(data)
    if not nominal:
        predictions = predictions[:, 0]
    metric_names = list(names) if names is not None else default_metrics(nominal)
    return compute_metrics(metric_names, predictions, data.class_values, weights=data.weights)


__all__ = ["MetricResult", "default_metrics", "compute_metric", "compute_metrics", "evaluate"]
