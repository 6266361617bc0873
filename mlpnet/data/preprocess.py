"""Capability checks, attribute scaling and nominal-to-binary encoding."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from ..core.errors import CapabilityError
from ..core.types import Array
from .dataset import NUMERIC, STRING, Attribute, Dataset


def check_capabilities(dataset: Dataset) -> None:
    """Reject data the network cannot be trained on."""

    if dataset.class_index is None:
        raise CapabilityError("Dataset has no class attribute set")
    class_attr = dataset.class_attribute
    if class_attr.kind == STRING:
        raise CapabilityError(f"Cannot handle string class {class_attr.name!r}")
    if class_attr.is_nominal and class_attr.num_values == 0:
        raise CapabilityError(f"Nominal class {class_attr.name!r} declares no labels")
    for attr in dataset.attributes:
        if attr.kind == STRING:
            raise CapabilityError(f"Cannot handle string attribute {attr.name!r}")
    if dataset.num_instances == 0:
        raise CapabilityError("Dataset has no instances")


def compute_ranges(dataset: Dataset) -> Tuple[Array, Array]:
    """Half-range and midpoint of every attribute over non-missing values."""

    ranges = np.zeros(dataset.num_attributes, dtype=np.float64)
    bases = np.zeros(dataset.num_attributes, dtype=np.float64)
    for col in range(dataset.num_attributes):
        column = dataset.values[:, col]
        present = column[~np.isnan(column)]
        if present.size == 0:
            continue
        lo, hi = float(present.min()), float(present.max())
        ranges[col] = (hi - lo) / 2
        bases[col] = (hi + lo) / 2
    return ranges, bases


@dataclass
class AttributeScaler:
    """Maps every non-class attribute into roughly ``[-1, 1]``."""

    ranges: Array
    bases: Array
    class_index: int

    @classmethod
    def fit(cls, dataset: Dataset) -> "AttributeScaler":
        ranges, bases = compute_ranges(dataset)
        return cls(ranges=ranges, bases=bases, class_index=int(dataset.class_index))

    @property
    def class_range(self) -> float:
        return float(self.ranges[self.class_index])

    @property
    def class_base(self) -> float:
        return float(self.bases[self.class_index])

    def _mask(self, width: int) -> Array:
        mask = np.ones(width, dtype=bool)
        mask[self.class_index] = False
        return mask

    def transform_row(self, row: Array) -> Array:
        out = np.array(row, dtype=np.float64, copy=True)
        mask = self._mask(out.shape[0])
        safe = np.where(self.ranges != 0, self.ranges, 1.0)
        out[mask] = (out[mask] - self.bases[mask]) / safe[mask]
        return out

    def inverse_row(self, row: Array) -> Array:
        out = np.array(row, dtype=np.float64, copy=True)
        mask = self._mask(out.shape[0])
        scale = np.where(self.ranges != 0, self.ranges, 1.0)
        out[mask] = out[mask] * scale[mask] + self.bases[mask]
        return out

    def transform(self, dataset: Dataset) -> Dataset:
        """Return a normalised deep copy; the input is left untouched."""

        scaled = dataset.copy()
        mask = self._mask(dataset.num_attributes)
        safe = np.where(self.ranges != 0, self.ranges, 1.0)
        scaled.values[:, mask] = (scaled.values[:, mask] - self.bases[mask]) / safe[mask]
        return scaled


@dataclass
class NominalToBinary:
    """Replace each multi-valued nominal attribute by one indicator per label.

    Nominal attributes with at most two labels become a single 0/1 column;
    the class attribute is passed through unchanged.
    """

    source: Optional[Dataset] = None
    attributes: List[Attribute] = field(default_factory=list)
    class_index: int = -1
    # per source column: (first output column, number of indicator columns or 0)
    _plan: List[Tuple[int, int]] = field(default_factory=list, repr=False)

    def fit(self, dataset: Dataset) -> "NominalToBinary":
        self.source = dataset.header()
        self.attributes = []
        self._plan = []
        for col, attr in enumerate(dataset.attributes):
            start = len(self.attributes)
            if col == dataset.class_index:
                self.class_index = start
                self.attributes.append(attr)
                self._plan.append((start, 0))
            elif attr.is_nominal and attr.num_values > 2:
                for label in attr.values:
                    self.attributes.append(Attribute(f"{attr.name}={label}", NUMERIC))
                self._plan.append((start, attr.num_values))
            elif attr.is_nominal:
                self.attributes.append(Attribute(attr.name, NUMERIC))
                self._plan.append((start, 0))
            else:
                self.attributes.append(attr)
                self._plan.append((start, 0))
        return self

    def _require_fit(self) -> Dataset:
        if self.source is None:
            raise RuntimeError("NominalToBinary must be fitted before use")
        return self.source

    def _encode(self, values: Array) -> Array:
        n = values.shape[0]
        out = np.zeros((n, len(self.attributes)), dtype=np.float64)
        for col, (start, width) in enumerate(self._plan):
            column = values[:, col]
            if width == 0:
                out[:, start] = column
                continue
            missing = np.isnan(column)
            block = np.zeros((n, width), dtype=np.float64)
            present = np.flatnonzero(~missing)
            block[present, column[present].astype(int)] = 1.0
            block[missing, :] = np.nan
            out[:, start : start + width] = block
        return out

    def transform(self, dataset: Dataset) -> Dataset:
        self._require_fit()
        return Dataset(
            self.attributes,
            self._encode(dataset.values),
            dataset.weights.copy(),
            class_index=self.class_index,
        )

    def transform_row(self, row: Array) -> Array:
        source = self._require_fit()
        values = np.asarray(row, dtype=np.float64).reshape(1, source.num_attributes)
        return self._encode(values)[0]


__all__ = [
    "check_capabilities",
    "compute_ranges",
    "AttributeScaler",
    "NominalToBinary",
]
