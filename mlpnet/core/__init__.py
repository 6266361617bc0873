"""Core graph primitives for mlpnet."""

from . import activations, errors, graph, topology, types

__all__ = ["activations", "errors", "graph", "topology", "types"]
