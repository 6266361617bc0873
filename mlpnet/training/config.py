"""Hyperparameter configuration, named presets and file loading."""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..core.topology import canonical_hidden_layers


@dataclass(frozen=True)
class MLPConfig:
    """Settings of a training run; defaults follow the classic MLP classifier."""

    learning_rate: float = 0.3
    momentum: float = 0.2
    epochs: int = 500
    validation_size: int = 0
    validation_threshold: int = 20
    seed: int = 0
    hidden_layers: str = "a"
    normalize_attributes: bool = True
    normalize_numeric_class: bool = True
    nominal_to_binary: bool = True
    decay: bool = False
    reset: bool = True
    auto_build: bool = True

    def __post_init__(self) -> None:
        check_learning_rate(self.learning_rate)
        check_momentum(self.momentum)
        check_epochs(self.epochs)
        if not 0 <= int(self.validation_size) < 100:
            raise ValueError("validation_size must be a percentage in [0, 100)")
        if int(self.validation_threshold) <= 0:
            raise ValueError("validation_threshold must be positive")
        object.__setattr__(self, "hidden_layers", canonical_hidden_layers(self.hidden_layers))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "MLPConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise KeyError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**dict(mapping))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def updated(self, **changes: Any) -> "MLPConfig":
        return replace(self, **changes)


def check_learning_rate(value: float) -> None:
    if not 0 < value <= 1:
        raise ValueError(f"learning_rate must be in (0, 1], got {value}")


def check_momentum(value: float) -> None:
    if not 0 <= value <= 1:
        raise ValueError(f"momentum must be in [0, 1], got {value}")


def check_epochs(value: int) -> None:
    if int(value) <= 0:
        raise ValueError(f"epochs must be positive, got {value}")


_PRESETS: Dict[str, Mapping[str, Any]] = {
    "default": {},
    "quick": {"epochs": 50, "hidden_layers": "a"},
    "early-stopping": {"validation_size": 20, "validation_threshold": 20},
    "regression": {
        "learning_rate": 0.1,
        "momentum": 0.2,
        "hidden_layers": "i",
        "decay": True,
    },
    "perceptron": {"hidden_layers": "0", "epochs": 200},
}


def presets() -> Mapping[str, Mapping[str, Any]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> MLPConfig:
    try:
        mapping = _PRESETS[name]
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc
    return MLPConfig.from_mapping(mapping)


def _read_config_file(path: Path) -> Mapping[str, Any]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load config files in YAML format") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def load_config(path: str | Path) -> MLPConfig:
    """Read a JSON or YAML mapping, optionally based on a ``preset`` key."""

    data = dict(_read_config_file(Path(path)))
    preset = data.pop("preset", None)
    if preset is not None and preset not in _PRESETS:
        raise KeyError(f"Unknown preset: {preset}")
    base: Dict[str, Any] = dict(_PRESETS[preset]) if preset is not None else {}
    base.update(data)
    return MLPConfig.from_mapping(base)


__all__ = [
    "MLPConfig",
    "check_learning_rate",
    "check_momentum",
    "check_epochs",
    "presets",
    "load_preset",
    "load_config",
]
