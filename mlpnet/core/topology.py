"""Hidden layer mini-language and the builder that wires a fresh network."""

from __future__ import annotations

import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from .errors import StructuralError
from .graph import Network
from .types import LayerPlan

Poll = Callable[[], None]

WILDCARDS = ("a", "i", "o", "t")


def parse_hidden_layers(spec: str) -> Tuple[str, ...]:
    """Validate ``spec`` and return its canonical tokens.

    Tokens are non-negative integers or one of the wildcards ``a``
    ((inputs + outputs) / 2), ``i`` (inputs), ``o`` (outputs) and ``t``
    (inputs + outputs). A ``0`` is only legal as the sole token.
    """

    raw = [token for token in str(spec).split(",") if token != ""]
    if not raw:
        raise StructuralError("Hidden layer specification is empty")
    tokens: List[str] = []
    for position, chunk in enumerate(raw):
        token = chunk.strip()
        if token in WILDCARDS:
            tokens.append(token)
            continue
        try:
            number = float(token)
        except ValueError as exc:
            raise StructuralError(f"Invalid hidden layer token: {token!r}") from exc
        if not math.isfinite(number) or number != int(number) or number < 0:
            raise StructuralError(f"Invalid hidden layer token: {token!r}")
        size = int(number)
        if size == 0 and not (position == 0 and len(raw) == 1):
            raise StructuralError("A 0 hidden layer is only allowed on its own")
        tokens.append(str(size))
    return tuple(tokens)


def canonical_hidden_layers(spec: str) -> str:
    return ", ".join(parse_hidden_layers(spec))


def accept_hidden_layers(current: str, proposed: str) -> str:
    """Return ``proposed`` in canonical form, or ``current`` if it is malformed."""

    try:
        return canonical_hidden_layers(proposed)
    except StructuralError as exc:
        logger.warning("Ignoring hidden layer spec {!r}: {}", proposed, exc)
        return current


def resolve_layer_sizes(spec: str, num_inputs: int, num_outputs: int) -> LayerPlan:
    sizes: List[int] = []
    for token in parse_hidden_layers(spec):
        if token == "a":
            size = (num_inputs + num_outputs) // 2
        elif token == "i":
            size = num_inputs
        elif token == "o":
            size = num_outputs
        elif token == "t":
            size = num_inputs + num_outputs
        else:
            size = int(token)
        if size > 0:
            sizes.append(size)
    return LayerPlan(sizes=sizes)


class TopologyBuilder:
    """Create terminals and hidden nodes and fully connect adjacent layers."""

    def __init__(self, rng: np.random.Generator, poll: Optional[Poll] = None) -> None:
        self.rng = rng
        self.poll = poll

    def _check(self) -> None:
        if self.poll is not None:
            self.poll()

    def build(
        self,
        num_inputs: int,
        num_outputs: int,
        hidden_layers: str,
        class_is_numeric: bool,
        *,
        input_links: Sequence[int] | None = None,
        input_names: Sequence[str] | None = None,
        output_names: Sequence[str] | None = None,
        auto_build: bool = True,
    ) -> Network:
        links = list(input_links) if input_links is not None else list(range(num_inputs))
        if len(links) != num_inputs:
            raise StructuralError(f"Expected {num_inputs} input links, got {len(links)}")
        in_names = list(input_names) if input_names is not None else [f"x{i}" for i in links]
        out_names = (
            list(output_names) if output_names is not None else [str(i) for i in range(num_outputs)]
        )

        network = Network(self.rng)
        inputs = []
        for link, name in zip(links, in_names):
            self._check()
            inputs.append(network.add_input_terminal(name, link))

        feeders = []
        for index in range(num_outputs):
            self._check()
            terminal = network.add_output_terminal(out_names[index], index)
            feeder = network.add_node()
            network.connect(feeder, terminal)
            feeders.append(feeder)

        plan = resolve_layer_sizes(hidden_layers, num_inputs, num_outputs)
        if auto_build:
            self._wire(network, inputs, feeders, plan)
        network.apply_units(class_is_numeric)
        logger.debug(
            "Built network: {} inputs, hidden layers {}, {} outputs ({} weights)",
            num_inputs,
            plan.sizes if auto_build else "(manual)",
            num_outputs,
            network.parameter_count(),
        )
        return network

    def _wire(
        self,
        network: Network,
        inputs: Sequence[int],
        feeders: Sequence[int],
        plan: LayerPlan,
    ) -> None:
        previous: List[int] = list(inputs)
        for size in plan.sizes:
            layer: List[int] = []
            for _ in range(size):
                self._check()
                node = network.add_node()
                for source in previous:
                    self._check()
                    network.connect(source, node)
                layer.append(node)
            previous = layer
        for source in previous:
            for feeder in feeders:
                self._check()
                network.connect(source, feeder)


def build_network(
    num_inputs: int,
    num_outputs: int,
    hidden_layers: str,
    class_is_numeric: bool,
    *,
    seed: int = 0,
    poll: Optional[Poll] = None,
) -> Network:
    """Convenience wrapper around :class:`TopologyBuilder` with a fresh RNG."""

    builder = TopologyBuilder(np.random.default_rng(seed), poll=poll)
    return builder.build(num_inputs, num_outputs, hidden_layers, class_is_numeric)


__all__ = [
    "WILDCARDS",
    "parse_hidden_layers",
    "canonical_hidden_layers",
    "accept_hidden_layers",
    "resolve_layer_sizes",
    "TopologyBuilder",
    "build_network",
]
