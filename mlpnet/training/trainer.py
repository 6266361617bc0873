"""Incremental backpropagation over a graph network, one epoch per step."""

from __future__ import annotations

import math
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

import numpy as np
from loguru import logger

from ..core.errors import (
    DegenerateDataError,
    LearningRateExhausted,
    NumericDivergence,
    StructuralError,
    TrainingStateError,
)
from ..core.graph import Network
from ..core.topology import TopologyBuilder, accept_hidden_layers, resolve_layer_sizes
from ..core.types import Array, EvaluationContext, Phase
from ..data.dataset import Dataset
from ..data.preprocess import AttributeScaler, NominalToBinary, check_capabilities
from .baseline import BaselinePredictor
from .config import MLPConfig, check_epochs, check_learning_rate, check_momentum
from .controller import TrainingController

MIN_LEARNING_RATE = 1e-6


@dataclass
class TrainingState:
    """Bookkeeping mutated by every epoch of one training run."""

    learning_rate: float
    epoch: int = 0
    train_error: float = 0.0
    val_error: Optional[float] = None
    best_error: float = math.inf
    drift: int = 0
    checkpoint_epoch: Optional[int] = None
    accepted: bool = False
    num_validation: int = 0
    total_weight: float = 0.0
    total_val_weight: float = 0.0
    original: Optional[Dataset] = None

    @property
    def error(self) -> float:
        return self.val_error if self.val_error is not None else self.train_error


def validation_count(percent: int, num_instances: int) -> int:
    """Size of the validation prefix, leaving at least one training instance."""

    if percent <= 0:
        return 0
    count = int(math.floor(percent / 100.0 * num_instances + 0.5))
    count = max(count, 1)
    if count >= num_instances:
        count = num_instances - 1
    return max(count, 0)


class MultilayerPerceptron:
    """Feed-forward network trained by per-instance backpropagation.

    The iterative protocol is :meth:`initialize`, then :meth:`step_epoch`
    until it returns ``False``, then :meth:`finish`; :meth:`train` runs all
    three. An optional :class:`TrainingController` can pause the loop between
    epochs, during which hyperparameters and topology may be edited.
    """

    def __init__(
        self,
        config: MLPConfig | None = None,
        *,
        controller: TrainingController | None = None,
        callbacks: Sequence[object] | None = None,
        network: Network | None = None,
    ) -> None:
        self.config = config or MLPConfig()
        self.controller = controller
        self.callbacks = list(callbacks or [])
        self.network: Optional[Network] = network
        self._supplied_network = network
        self.phase = Phase.UNINITIALIZED
        self.state: Optional[TrainingState] = None
        self.baseline: Optional[BaselinePredictor] = None
        self.use_baseline = False
        self._header: Optional[Dataset] = None
        self._instances: Optional[Dataset] = None
        self._validation: Optional[Dataset] = None
        self._nominal_filter: Optional[NominalToBinary] = None
        self._scaler: Optional[AttributeScaler] = None
        self._numeric = False

    # ------------------------------------------------------------------
    # Iterative training protocol

    def train(self, data: Dataset) -> "MultilayerPerceptron":
        self.initialize(data)
        while self.step_epoch():
            self._poll()
        self.finish()
        return self

    def initialize(self, data: Dataset) -> None:
        self._initialize(data, self.config.learning_rate)

    def _initialize(self, data: Dataset, learning_rate: float, *, restart: bool = False) -> None:
        check_capabilities(data)
        data = data.delete_with_missing_class()
        self._header = data.header()
        self.baseline = BaselinePredictor.fit(data)
        self.state = None
        self._validation = None
        try:
            self._check_trainable(data)
        except DegenerateDataError as exc:
            logger.warning("{}; using baseline predictor instead", exc)
            self.use_baseline = True
            self.network = None
            self._instances = None
            self.phase = Phase.READY
            return
        self.use_baseline = False

        cfg = self.config
        rng = np.random.default_rng(cfg.seed)
        self._poll()
        instances = data.shuffled(rng)
        if cfg.nominal_to_binary:
            self._nominal_filter = NominalToBinary().fit(instances)
            instances = self._nominal_filter.transform(instances)
        else:
            self._nominal_filter = None
        self._scaler = AttributeScaler.fit(instances)
        if cfg.normalize_attributes:
            instances = self._scaler.transform(instances)
        self._numeric = not instances.class_attribute.is_nominal
        self._instances = instances

        num_val = validation_count(cfg.validation_size, instances.num_instances)
        if num_val:
            self._validation = instances.subset(range(num_val))

        self.network = self._prepare_network(instances, rng, restart=restart)
        self.network.apply_units(self._numeric)

        self.state = TrainingState(
            learning_rate=learning_rate,
            num_validation=num_val,
            total_weight=float(instances.weights[num_val:].sum()),
            total_val_weight=float(instances.weights[:num_val].sum()),
            original=data,
        )
        self.phase = Phase.READY
        self._log_startup_summary(instances)

    def step_epoch(self) -> bool:
        """Run one epoch; return ``True`` while more epochs should follow."""

        if self.phase in (Phase.UNINITIALIZED, Phase.DONE):
            raise TrainingStateError(f"Cannot step an epoch in phase {self.phase.value}")
        if self.use_baseline or self.phase is Phase.ACCEPTED:
            return False
        self._suspend_point()

        state = self.state
        cfg = self.config
        self.phase = Phase.TRAINING
        state.epoch += 1
        error = self._train_pass()
        if math.isnan(error) or math.isinf(error):
            return self._recover(error)
        state.train_error = error

        if self._validation is not None:
            val_error = self._validation_pass()
            state.val_error = val_error
            if val_error < state.best_error:
                state.best_error = val_error
                state.checkpoint_epoch = state.epoch
                state.drift = 0
                self.network.save_weights()
            else:
                state.drift += 1
            if state.drift > cfg.validation_threshold or state.epoch >= cfg.epochs:
                self.network.restore_weights()
                state.accepted = True
                self.phase = Phase.ACCEPTED
                logger.info(
                    "Accepted network after epoch {} (best validation error {:.6g} at epoch {})",
                    state.epoch,
                    state.best_error,
                    state.checkpoint_epoch,
                )

        logger.debug(
            "epoch {} train_error={:.6g} val_error={}",
            state.epoch,
            state.train_error,
            state.val_error,
        )
        self._emit_epoch(state.epoch, self._epoch_metrics())
        return not state.accepted and state.epoch < cfg.epochs

    def finish(self) -> None:
        if self.phase is Phase.UNINITIALIZED:
            raise TrainingStateError("Cannot finish a run that was never initialised")
        if self._instances is not None:
            self._instances = self._instances.header()
        self._validation = None
        if self.network is not None:
            self.network.reset()
            self.network.context = None
        if self.state is not None:
            self.state.original = None
        self.phase = Phase.DONE

    # ------------------------------------------------------------------
    # Epoch internals

    def _train_pass(self) -> float:
        state = self.state
        instances = self._instances
        num_classes = instances.num_classes
        total = 0.0
        start = state.num_validation
        for row, weight in zip(instances.values[start:], instances.weights[start:]):
            self._poll()
            self._bind(row)
            self.network.calculate_outputs()
            rate = state.learning_rate * weight
            if self.config.decay:
                rate /= state.epoch
            total += self.network.calculate_errors() / num_classes * weight
            self.network.update_weights(rate, self.config.momentum)
        if state.total_weight <= 0:
            return math.nan
        return total / state.total_weight

    def _validation_pass(self) -> float:
        state = self.state
        validation = self._validation
        num_classes = validation.num_classes
        total = 0.0
        for row, weight in zip(validation.values, validation.weights):
            self._poll()
            self._bind(row)
            self.network.calculate_outputs()
            total += self.network.calculate_errors() / num_classes * weight
        if state.total_val_weight <= 0:
            return math.inf
        return total / state.total_val_weight

    def _recover(self, error: float) -> bool:
        state = self.state
        if not self.config.reset or state.original is None:
            self._instances = None
            raise NumericDivergence(
                f"Network cannot train (epoch error {error}). "
                "Try restarting with a smaller learning rate."
            )
        if state.learning_rate <= MIN_LEARNING_RATE:
            raise LearningRateExhausted(state.learning_rate, MIN_LEARNING_RATE)
        halved = state.learning_rate / 2
        logger.warning(
            "Epoch {} diverged (error={}); restarting with learning rate {}",
            state.epoch,
            error,
            halved,
        )
        self._initialize(state.original, halved, restart=True)
        return True

    def _check_trainable(self, data: Dataset) -> None:
        if data.num_attributes == 1:
            raise DegenerateDataError("Only the class attribute is present")
        if data.num_instances < 2:
            raise DegenerateDataError(
                f"{data.num_instances} instance(s) with a known class"
            )
        if data.total_weight() <= 0:
            raise DegenerateDataError("No instance carries positive weight")

    def _prepare_network(
        self, instances: Dataset, rng: np.random.Generator, *, restart: bool
    ) -> Network:
        class_index = instances.class_index
        links = [i for i in range(instances.num_attributes) if i != class_index]
        class_attr = instances.class_attribute
        num_outputs = instances.num_classes
        if self._supplied_network is not None:
            network = self._supplied_network
            if len(network.inputs) != len(links) or len(network.outputs) != num_outputs:
                raise StructuralError(
                    f"Supplied network has {len(network.inputs)} inputs and "
                    f"{len(network.outputs)} outputs; data needs {len(links)} and {num_outputs}"
                )
            if restart:
                network.randomize_weights()
            network.clear_caches()
            return network
        builder = TopologyBuilder(rng, poll=self._poll)
        return builder.build(
            len(links),
            num_outputs,
            self.config.hidden_layers,
            not class_attr.is_nominal,
            input_links=links,
            input_names=[instances.attributes[i].name for i in links],
            output_names=list(class_attr.values) if class_attr.is_nominal else [class_attr.name],
            auto_build=self.config.auto_build,
        )

    def _bind(self, row: Array) -> None:
        scaler = self._scaler
        self.network.reset()
        self.network.bind(
            EvaluationContext(
                instance=row,
                class_index=scaler.class_index,
                class_is_nominal=not self._numeric,
                normalize_class=self._numeric and self.config.normalize_numeric_class,
                class_range=scaler.class_range,
                class_base=scaler.class_base,
            )
        )

    def _poll(self) -> None:
        if self.controller is not None:
            self.controller.check_cancelled()

    def _suspend_point(self) -> None:
        if self.controller is None:
            return
        if self.controller.maybe_suspend() and self.network is not None:
            self.network.apply_units(self._numeric)

    def _epoch_metrics(self) -> dict:
        state = self.state
        metrics = {"train_error": state.train_error, "learning_rate": state.learning_rate}
        if state.val_error is not None:
            metrics["val_error"] = state.val_error
        return metrics

    def _emit_epoch(self, epoch: int, metrics: dict) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    def _log_startup_summary(self, instances: Dataset) -> None:
        cfg = self.config
        num_inputs = instances.num_attributes - 1
        plan = resolve_layer_sizes(cfg.hidden_layers, num_inputs, instances.num_classes)
        logger.info("=== mlpnet run ===")
        logger.info("Instances     : {} (validation {})", instances.num_instances, self.state.num_validation)
        logger.info("Inputs        : {}", num_inputs)
        logger.info("Hidden layers : {}", plan.sizes if cfg.auto_build else "manual")
        logger.info("Outputs       : {} ({})", instances.num_classes, "numeric" if self._numeric else "nominal")
        logger.info("Learning rate : {} (momentum {})", self.state.learning_rate, cfg.momentum)
        logger.info("Parameters    : {}", self.network.parameter_count())

    # ------------------------------------------------------------------
    # Prediction

    def distribution_for_instance(self, row: Array | Sequence[float]) -> Array:
        """Class distribution (nominal) or predicted value(s) (numeric) for ``row``.

        ``row`` holds raw attribute values in the training schema; the class
        slot is ignored.
        """

        if self.phase is Phase.UNINITIALIZED:
            raise TrainingStateError("Model has not been trained")
        if self.use_baseline:
            return self.baseline.distribution_for_instance(row)
        values = np.asarray(row, dtype=np.float64).reshape(-1)
        if values.shape[0] != self._header.num_attributes:
            raise ValueError(
                f"Expected {self._header.num_attributes} attribute values, got {values.shape[0]}"
            )
        if self._nominal_filter is not None:
            values = self._nominal_filter.transform_row(values)
        if self.config.normalize_attributes:
            values = self._scaler.transform_row(values)
        self._poll()
        self._bind(values)
        outputs = np.asarray(self.network.calculate_outputs(), dtype=np.float64)
        if self._numeric:
            return outputs
        total = float(outputs.sum())
        if total <= 0:
            return self.baseline.distribution_for_instance(row)
        return outputs / total

    def classify_instance(self, row: Array | Sequence[float]) -> float:
        dist = self.distribution_for_instance(row)
        if self._header.class_attribute.is_nominal:
            return float(np.argmax(dist))
        return float(dist[0])

    def predict(self, dataset: Dataset) -> Array:
        """One distribution (or prediction) row per instance of ``dataset``."""

        if dataset.num_instances == 0:
            width = self._header.num_classes if self._header is not None else 1
            return np.empty((0, width), dtype=np.float64)
        return np.vstack([self.distribution_for_instance(row) for row in dataset.values])

    # ------------------------------------------------------------------
    # Hyperparameters and topology edits

    @contextmanager
    def _editing(self) -> Iterator[None]:
        if self.controller is not None and self.phase in (Phase.READY, Phase.TRAINING):
            with self.controller.edit():
                yield
        else:
            yield

    @property
    def learning_rate(self) -> float:
        if self.state is not None:
            return self.state.learning_rate
        return self.config.learning_rate

    def set_learning_rate(self, value: float) -> None:
        check_learning_rate(value)
        with self._editing():
            self.config = self.config.updated(learning_rate=value)
            if self.state is not None:
                self.state.learning_rate = value

    def set_momentum(self, value: float) -> None:
        check_momentum(value)
        with self._editing():
            self.config = self.config.updated(momentum=value)

    def set_epoch_limit(self, value: int) -> None:
        check_epochs(value)
        with self._editing():
            self.config = self.config.updated(epochs=int(value))

    @property
    def hidden_layers(self) -> str:
        return self.config.hidden_layers

    @hidden_layers.setter
    def hidden_layers(self, spec: str) -> None:
        accepted = accept_hidden_layers(self.config.hidden_layers, spec)
        self.config = self.config.updated(hidden_layers=accepted)

    def _require_network(self) -> Network:
        if self.network is None:
            raise TrainingStateError("No network has been built")
        return self.network

    def add_node(self, name: str | None = None) -> int:
        network = self._require_network()
        with self._editing():
            node_id = network.add_node(name)
            network.apply_units(self._numeric)
        return node_id

    def remove_node(self, node_id: int) -> None:
        network = self._require_network()
        with self._editing():
            network.remove_node(node_id)
            network.apply_units(self._numeric)

    def connect(self, source: int, target: int) -> bool:
        network = self._require_network()
        with self._editing():
            added = network.connect(source, target)
            network.apply_units(self._numeric)
        return added

    def disconnect(self, source: int, target: int) -> bool:
        network = self._require_network()
        with self._editing():
            removed = network.disconnect(source, target)
            network.apply_units(self._numeric)
        return removed

    # ------------------------------------------------------------------
    # Introspection

    @property
    def epoch(self) -> int:
        return self.state.epoch if self.state is not None else 0

    @property
    def error(self) -> float:
        return self.state.error if self.state is not None else 0.0

    @property
    def accepted(self) -> bool:
        return self.phase is Phase.ACCEPTED or bool(self.state and self.state.accepted)

    def __str__(self) -> str:
        from ..reporting.summary import describe_model

        return describe_model(self)


__all__ = ["MIN_LEARNING_RATE", "TrainingState", "MultilayerPerceptron", "validation_count"]
