"""Plain-text rendering of a network and of a trained model."""

from __future__ import annotations

from typing import List

from ..core.graph import HiddenNode, Network
from ..core.types import NodeKind


def _source_label(network: Network, source: int) -> str:
    node = network.nodes[source]
    if node.kind is NodeKind.INPUT:
        return f"Attrib {node.name}"
    return f"Node {node.name}"


def describe_network(network: Network) -> str:
    """Render every trainable node's weights, then every output's inputs."""

    lines: List[str] = []
    for node_id in network.hidden:
        node = network.nodes[node_id]
        assert isinstance(node, HiddenNode)
        lines.append(f"{node.unit.name.capitalize()} Node {node.name}")
        lines.append("    Inputs    Weights")
        lines.append(f"    Threshold    {node.weights[0]:.12g}")
        for pos, source in enumerate(node.inputs, start=1):
            lines.append(f"    {_source_label(network, source)}    {node.weights[pos]:.12g}")
    for node_id in network.outputs:
        node = network.nodes[node_id]
        lines.append(f"Class {node.name}")
        lines.append("    Input")
        for source in node.inputs:
            lines.append(f"    {_source_label(network, source)}")
    return "\n".join(lines) + "\n"


def describe_model(model) -> str:
    if model.use_baseline and model.baseline is not None:
        return "Warning: no model could be built, using the baseline predictor.\n" + (
            model.baseline.describe() + "\n"
        )
    if model.network is None:
        return "No model built yet.\n"
    return describe_network(model.network)


__all__ = ["describe_network", "describe_model"]
