"""Arena-backed computation graph with memoised forward and backward passes."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set

import numpy as np

from .activations import LINEAR, SIGMOID, Unit
from .errors import StructuralError, TrainingStateError
from .types import Array, EvaluationContext, NodeKind, WeightSnapshot

_INIT_SCALE = 0.1


def _initial_weight(rng: np.random.Generator) -> float:
    return float(rng.random() * _INIT_SCALE - _INIT_SCALE / 2)


class Node:
    """Base node: an id, edge lists and per-instance caches."""

    kind: NodeKind

    def __init__(self, node_id: int, name: str) -> None:
        self.id = node_id
        self.name = name
        self.inputs: List[int] = []
        self.outputs: List[int] = []
        self.value: Optional[float] = None
        self.error: Optional[float] = None
        self.updated = False

    @property
    def cached(self) -> bool:
        return self.value is not None or self.error is not None

    def clear(self) -> None:
        self.value = None
        self.error = None
        self.updated = False

    def weight_for(self, source: int) -> float:
        """Weight applied to the value arriving from ``source``."""

        return 1.0

    def attach_input(self, source: int, rng: np.random.Generator) -> None:
        self.inputs.append(source)

    def detach_input(self, source: int) -> None:
        self.inputs.remove(source)

    def compute_value(self, network: "Network") -> float:
        raise NotImplementedError

    def compute_error(self, network: "Network") -> float:
        raise NotImplementedError

    def apply_update(self, network: "Network", rate: float, momentum: float) -> None:
        """Adjust own weights; terminals have none."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, name={self.name!r})"


class InputTerminal(Node):
    """Reads one attribute of the bound instance."""

    kind = NodeKind.INPUT

    def __init__(self, node_id: int, name: str, link: int) -> None:
        super().__init__(node_id, name)
        self.link = link

    def compute_value(self, network: "Network") -> float:
        value = network.context.attribute(self.link)
        return 0.0 if np.isnan(value) else value

    def compute_error(self, network: "Network") -> float:
        total = 0.0
        for consumer in self.outputs:
            err = network.backward_error(consumer, True)
            if err is not None:
                total += err
        return total


class OutputTerminal(Node):
    """Sums its inputs and scores them against the bound instance's class."""

    kind = NodeKind.OUTPUT

    def __init__(self, node_id: int, name: str, link: int) -> None:
        super().__init__(node_id, name)
        self.link = link

    def compute_value(self, network: "Network") -> float:
        ctx = network.context
        total = 0.0
        for source in self.inputs:
            total += network.forward_value(source, True)
        if not ctx.class_is_nominal and ctx.normalize_class:
            total = total * ctx.class_range + ctx.class_base
        return total

    def compute_error(self, network: "Network") -> float:
        ctx = network.context
        if ctx.class_missing:
            return 0.1
        if ctx.class_is_nominal:
            if int(ctx.class_value) == self.link:
                return 1.0 - self.value
            return -self.value
        if ctx.normalize_class:
            if ctx.class_range == 0:
                return 0.0
            return (ctx.class_value - self.value) / ctx.class_range
        return ctx.class_value - self.value


class HiddenNode(Node):
    """Trainable unit with a threshold weight and momentum state."""

    kind = NodeKind.HIDDEN

    def __init__(
        self,
        node_id: int,
        name: str,
        rng: np.random.Generator,
        unit: Unit = SIGMOID,
    ) -> None:
        super().__init__(node_id, name)
        self.unit = unit
        # weights[0] is the threshold; weights[i + 1] belongs to inputs[i]
        self.weights: Array = np.array([_initial_weight(rng)], dtype=np.float64)
        self.changes: Array = np.zeros(1, dtype=np.float64)
        self.saved: Optional[Array] = None

    def weight_for(self, source: int) -> float:
        return float(self.weights[self.inputs.index(source) + 1])

    def attach_input(self, source: int, rng: np.random.Generator) -> None:
        super().attach_input(source, rng)
        self.weights = np.append(self.weights, _initial_weight(rng))
        self.changes = np.append(self.changes, 0.0)
        self.saved = None

    def detach_input(self, source: int) -> None:
        pos = self.inputs.index(source) + 1
        super().detach_input(source)
        self.weights = np.delete(self.weights, pos)
        self.changes = np.delete(self.changes, pos)
        self.saved = None

    def compute_value(self, network: "Network") -> float:
        total = float(self.weights[0])
        for pos, source in enumerate(self.inputs, start=1):
            total += self.weights[pos] * network.forward_value(source, True)
        return self.unit.activate(total)

    def compute_error(self, network: "Network") -> float:
        total = 0.0
        for consumer in self.outputs:
            err = network.backward_error(consumer, True)
            if err is not None:
                total += err * network.nodes[consumer].weight_for(self.id)
        return self.unit.derivative(self.value) * total

    def apply_update(self, network: "Network", rate: float, momentum: float) -> None:
        signal = np.empty_like(self.weights)
        signal[0] = 1.0
        for pos, source in enumerate(self.inputs, start=1):
            value = network.forward_value(source, False)
            signal[pos] = 0.0 if value is None else value
        delta = rate * self.error * signal + momentum * self.changes
        self.weights = self.weights + delta
        self.changes = delta

    def save(self) -> None:
        self.saved = self.weights.copy()

    def restore(self) -> None:
        if self.saved is not None:
            self.weights = self.saved.copy()


class Network:
    """Owns input terminals, output terminals and hidden nodes by id.

    Values and errors are pulled lazily through the edges and cached on each
    node until :meth:`reset` is called for the next instance.
    """

    def __init__(self, rng: np.random.Generator | None = None) -> None:
        self.rng = rng if rng is not None else np.random.default_rng(0)
        self.nodes: Dict[int, Node] = {}
        self.inputs: List[int] = []
        self.outputs: List[int] = []
        self.hidden: List[int] = []
        self.context: Optional[EvaluationContext] = None
        self._next_id = 0
        self._active: Set[int] = set()

    # ------------------------------------------------------------------
    # Construction and mutation

    def _register(self, node: Node, bucket: List[int]) -> int:
        self.nodes[node.id] = node
        bucket.append(node.id)
        return node.id

    def _allocate_id(self) -> int:
        node_id = self._next_id
        self._next_id += 1
        return node_id

    def add_input_terminal(self, name: str, link: int) -> int:
        return self._register(InputTerminal(self._allocate_id(), name, link), self.inputs)

    def add_output_terminal(self, name: str, link: int) -> int:
        return self._register(OutputTerminal(self._allocate_id(), name, link), self.outputs)

    def add_node(self, name: str | None = None, unit: Unit = SIGMOID) -> int:
        """Add an unconnected trainable node and return its id."""

        node_id = self._allocate_id()
        label = name if name is not None else str(node_id)
        return self._register(HiddenNode(node_id, label, self.rng, unit), self.hidden)

    def remove_node(self, node_id: int) -> None:
        node = self._get(node_id)
        if node.kind is not NodeKind.HIDDEN:
            raise StructuralError(f"Only hidden nodes can be removed, got {node!r}")
        for source in list(node.inputs):
            self.disconnect(source, node_id)
        for target in list(node.outputs):
            self.disconnect(node_id, target)
        del self.nodes[node_id]
        self.hidden.remove(node_id)

    def connect(self, source: int, target: int) -> bool:
        """Add the edge ``source -> target``; return ``False`` if it exists."""

        src = self._get(source)
        dst = self._get(target)
        if source == target:
            raise StructuralError(f"Cannot connect node {source} to itself")
        if dst.kind is NodeKind.INPUT:
            raise StructuralError(f"Input terminal {target} cannot receive edges")
        if src.kind is NodeKind.OUTPUT:
            raise StructuralError(f"Output terminal {source} cannot feed other nodes")
        if dst.kind is NodeKind.OUTPUT and src.kind is not NodeKind.HIDDEN:
            raise StructuralError("Output terminals must be fed by trainable nodes")
        if target in src.outputs:
            return False
        if source in self.descendants(target):
            raise StructuralError(f"Edge {source} -> {target} would create a cycle")
        self.clear_caches()
        src.outputs.append(target)
        dst.attach_input(source, self.rng)
        return True

    def disconnect(self, source: int, target: int) -> bool:
        src = self._get(source)
        dst = self._get(target)
        if target not in src.outputs:
            return False
        self.clear_caches()
        src.outputs.remove(target)
        dst.detach_input(source)
        return True

    def apply_units(self, class_is_numeric: bool) -> None:
        """Linear units feed the outputs of a numeric class, sigmoid elsewhere."""

        for node_id in self.hidden:
            node = self.nodes[node_id]
            feeds_output = any(
                self.nodes[target].kind is NodeKind.OUTPUT for target in node.outputs
            )
            node.unit = LINEAR if class_is_numeric and feeds_output else SIGMOID

    # ------------------------------------------------------------------
    # Evaluation

    def bind(self, context: EvaluationContext) -> None:
        self.context = context

    def forward_value(self, node_id: int, compute: bool = True) -> Optional[float]:
        node = self.nodes[node_id]
        if node.value is None and compute:
            self._require_context()
            self._enter(node_id)
            try:
                node.value = float(node.compute_value(self))
            finally:
                self._active.discard(node_id)
        return node.value

    def backward_error(self, node_id: int, compute: bool = True) -> Optional[float]:
        node = self.nodes[node_id]
        if node.value is not None and node.error is None and compute:
            self._require_context()
            self._enter(node_id)
            try:
                node.error = float(node.compute_error(self))
            finally:
                self._active.discard(node_id)
        return node.error

    def reset(self) -> None:
        for node_id in self.outputs:
            self._reset_node(node_id)

    def _reset_node(self, node_id: int) -> None:
        node = self.nodes[node_id]
        if node.cached:
            node.clear()
            for source in node.inputs:
                self._reset_node(source)

    def clear_caches(self) -> None:
        """Unconditionally drop every cache, used around topology edits."""

        for node in self.nodes.values():
            node.clear()

    def calculate_outputs(self) -> List[float]:
        return [self.forward_value(node_id, True) for node_id in self.outputs]

    def calculate_errors(self) -> float:
        """Force every error in the graph and return the squared output error."""

        for node_id in self.inputs:
            self.backward_error(node_id, True)
        total = 0.0
        for node_id in self.outputs:
            err = self.backward_error(node_id, True)
            if err is not None:
                total += err * err
        return total

    def update_weights(self, rate: float, momentum: float) -> None:
        for node_id in self.outputs:
            self._update_node(node_id, rate, momentum)

    def _update_node(self, node_id: int, rate: float, momentum: float) -> None:
        node = self.nodes[node_id]
        if node.updated:
            return
        if node.kind is NodeKind.HIDDEN:
            if node.error is None:
                return
            node.apply_update(self, rate, momentum)
        node.updated = True
        for source in node.inputs:
            self._update_node(source, rate, momentum)

    # ------------------------------------------------------------------
    # Checkpoints

    def save_weights(self) -> None:
        for node in self._reachable_hidden():
            node.save()

    def restore_weights(self) -> None:
        for node in self._reachable_hidden():
            node.restore()

    def randomize_weights(self) -> None:
        """Redraw every weight and drop momentum and checkpoints."""

        for node_id in self.hidden:
            node = self.nodes[node_id]
            node.weights = np.array(
                [_initial_weight(self.rng) for _ in range(node.weights.size)], dtype=np.float64
            )
            node.changes = np.zeros_like(node.weights)
            node.saved = None

    def weight_snapshot(self) -> WeightSnapshot:
        return {node_id: self.nodes[node_id].weights.copy() for node_id in self.hidden}

    def parameter_count(self) -> int:
        return int(sum(self.nodes[node_id].weights.size for node_id in self.hidden))

    # ------------------------------------------------------------------
    # Traversal helpers

    def descendants(self, node_id: int) -> Set[int]:
        return self._walk([node_id], lambda node: node.outputs)

    def ancestors(self, node_id: int) -> Set[int]:
        return self._walk([node_id], lambda node: node.inputs)

    def _walk(self, start: Iterable[int], edges) -> Set[int]:
        seen: Set[int] = set()
        stack = list(start)
        while stack:
            current = stack.pop()
            for nxt in edges(self.nodes[current]):
                if nxt not in seen:
                    seen.add(nxt)
                    stack.append(nxt)
        return seen

    def _reachable_hidden(self) -> List[HiddenNode]:
        reachable = self._walk(self.outputs, lambda node: node.inputs)
        return [self.nodes[node_id] for node_id in self.hidden if node_id in reachable]

    def _get(self, node_id: int) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError as exc:
            raise StructuralError(f"Unknown node id: {node_id}") from exc

    def _enter(self, node_id: int) -> None:
        if node_id in self._active:
            raise StructuralError(f"Cycle detected while evaluating node {node_id}")
        self._active.add(node_id)

    def _require_context(self) -> None:
        if self.context is None:
            raise TrainingStateError("No instance is bound to the network")


__all__ = ["Node", "InputTerminal", "OutputTerminal", "HiddenNode", "Network"]
