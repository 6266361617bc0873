"""In-memory instances with an attribute schema, class index and weights."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder

from ..core.types import Array

NUMERIC = "numeric"
NOMINAL = "nominal"
DATE = "date"
STRING = "string"

ATTRIBUTE_KINDS = (NUMERIC, NOMINAL, DATE, STRING)


@dataclass(frozen=True)
class Attribute:
    """Name, type and (for nominal attributes) the label set of a column."""

    name: str
    kind: str = NUMERIC
    values: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in ATTRIBUTE_KINDS:
            raise ValueError(f"Unknown attribute kind: {self.kind}")
        object.__setattr__(self, "values", tuple(str(v) for v in self.values))

    @property
    def is_nominal(self) -> bool:
        return self.kind == NOMINAL

    @property
    def is_numeric(self) -> bool:
        return self.kind in (NUMERIC, DATE)

    @property
    def num_values(self) -> int:
        return len(self.values)

    def value(self, index: int) -> str:
        return self.values[index]


class Dataset:
    """Dense instance matrix; missing values are NaN, nominal values are indices."""

    def __init__(
        self,
        attributes: Sequence[Attribute],
        values: Array | Sequence[Sequence[float]],
        weights: Array | Sequence[float] | None = None,
        class_index: int | None = None,
    ) -> None:
        self.attributes: List[Attribute] = list(attributes)
        width = len(self.attributes)
        matrix = np.asarray(values, dtype=np.float64)
        if matrix.size == 0:
            matrix = matrix.reshape(0, width)
        if matrix.ndim != 2 or matrix.shape[1] != width:
            raise ValueError(
                f"Instance matrix of shape {matrix.shape} does not match {width} attributes"
            )
        self.values: Array = matrix
        if weights is None:
            self.weights: Array = np.ones(matrix.shape[0], dtype=np.float64)
        else:
            self.weights = np.asarray(weights, dtype=np.float64).reshape(-1)
            if self.weights.shape[0] != matrix.shape[0]:
                raise ValueError("One weight per instance is required")
        if class_index is not None and not 0 <= class_index < width:
            raise ValueError(f"Class index {class_index} out of range")
        self.class_index = class_index

    # ------------------------------------------------------------------
    # Schema

    @property
    def num_instances(self) -> int:
        return int(self.values.shape[0])

    @property
    def num_attributes(self) -> int:
        return len(self.attributes)

    @property
    def attribute_names(self) -> List[str]:
        return [attr.name for attr in self.attributes]

    @property
    def class_attribute(self) -> Attribute:
        if self.class_index is None:
            raise ValueError("Class index is not set")
        return self.attributes[self.class_index]

    @property
    def num_classes(self) -> int:
        attr = self.class_attribute
        return attr.num_values if attr.is_nominal else 1

    @property
    def class_values(self) -> Array:
        if self.class_index is None:
            raise ValueError("Class index is not set")
        return self.values[:, self.class_index]

    def total_weight(self) -> float:
        return float(self.weights.sum())

    def instance(self, index: int) -> Array:
        return self.values[index]

    def __len__(self) -> int:
        return self.num_instances

    def __repr__(self) -> str:
        return (
            f"Dataset(instances={self.num_instances}, attributes={self.num_attributes}, "
            f"class_index={self.class_index})"
        )

    # ------------------------------------------------------------------
    # Copies and subsets

    def copy(self) -> "Dataset":
        return Dataset(self.attributes, self.values.copy(), self.weights.copy(), self.class_index)

    def header(self) -> "Dataset":
        """Schema only, without instances."""

        return Dataset(
            self.attributes,
            np.empty((0, self.num_attributes)),
            np.empty(0),
            self.class_index,
        )

    def subset(self, indices: Iterable[int] | Array) -> "Dataset":
        idx = np.asarray(list(indices) if not isinstance(indices, np.ndarray) else indices, dtype=int)
        return Dataset(self.attributes, self.values[idx], self.weights[idx], self.class_index)

    def delete_with_missing_class(self) -> "Dataset":
        keep = ~np.isnan(self.class_values)
        return self.subset(np.flatnonzero(keep))

    def shuffled(self, rng: np.random.Generator) -> "Dataset":
        return self.subset(rng.permutation(self.num_instances))

    # ------------------------------------------------------------------
    # Constructors

    @classmethod
    def from_arrays(
        cls,
        inputs: Array | Sequence[Sequence[float]],
        targets: Array | Sequence[Any],
        *,
        attribute_names: Sequence[str] | None = None,
        class_name: str = "class",
        class_labels: Sequence[str] | None = None,
        weights: Array | Sequence[float] | None = None,
    ) -> "Dataset":
        """Build a dataset of numeric inputs with the class as the last column.

        The class is nominal when ``class_labels`` is given (``targets`` are
        then label indices) or when ``targets`` are not floating point, in
        which case labels are derived with a ``LabelEncoder``.
        """

        X = np.asarray(inputs, dtype=np.float64)
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        names = list(attribute_names) if attribute_names is not None else [
            f"x{i}" for i in range(X.shape[1])
        ]
        y_raw = np.asarray(targets)
        if class_labels is not None:
            class_attr = Attribute(class_name, NOMINAL, tuple(class_labels))
            y = y_raw.astype(np.float64)
        elif y_raw.dtype.kind in "fc":
            class_attr = Attribute(class_name, NUMERIC)
            y = y_raw.astype(np.float64)
        else:
            encoder = LabelEncoder()
            y = encoder.fit_transform(y_raw).astype(np.float64)
            class_attr = Attribute(class_name, NOMINAL, tuple(encoder.classes_.tolist()))
        attributes = [Attribute(name) for name in names] + [class_attr]
        matrix = np.column_stack([X, y.reshape(-1)]) if X.shape[0] else np.empty((0, len(attributes)))
        return cls(attributes, matrix, weights, class_index=len(attributes) - 1)

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        class_column: str | None = None,
        *,
        weights: Array | Sequence[float] | None = None,
    ) -> "Dataset":
        """Convert a DataFrame; text, categorical and bool columns become nominal."""

        attributes: List[Attribute] = []
        columns: List[Array] = []
        for name in frame.columns:
            attr, column = _convert_column(str(name), frame[name])
            attributes.append(attr)
            columns.append(column)
        matrix = np.column_stack(columns) if columns else np.empty((len(frame), 0))
        class_index = None
        if class_column is not None:
            if class_column not in frame.columns:
                raise KeyError(f"Class column {class_column!r} not found")
            class_index = list(frame.columns).index(class_column)
        return cls(attributes, matrix, weights, class_index=class_index)

    @classmethod
    def from_csv(cls, path: str | Path, class_column: str, **read_csv_kwargs: Any) -> "Dataset":
        frame = pd.read_csv(Path(path), **read_csv_kwargs)
        return cls.from_frame(frame, class_column)


def _convert_column(name: str, series: pd.Series) -> tuple[Attribute, Array]:
    if pd.api.types.is_datetime64_any_dtype(series):
        seconds = (series - pd.Timestamp(0)).dt.total_seconds()
        return Attribute(name, DATE), seconds.to_numpy(dtype=np.float64)
    if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
        return Attribute(name, NUMERIC), series.to_numpy(dtype=np.float64, na_value=np.nan)
    mask = series.notna().to_numpy()
    encoder = LabelEncoder()
    column = np.full(len(series), np.nan, dtype=np.float64)
    if mask.any():
        column[mask] = encoder.fit_transform(series[mask].astype(str).to_numpy())
        labels = tuple(encoder.classes_.tolist())
    else:
        labels = ()
    return Attribute(name, NOMINAL, labels), column


__all__ = [
    "NUMERIC",
    "NOMINAL",
    "DATE",
    "STRING",
    "ATTRIBUTE_KINDS",
    "Attribute",
    "Dataset",
]
