import numpy as np
import pytest

from mlpnet.core.activations import LINEAR, SIGMOID
from mlpnet.core.errors import CancellationError, StructuralError
from mlpnet.core.topology import (
    TopologyBuilder,
    accept_hidden_layers,
    build_network,
    canonical_hidden_layers,
    parse_hidden_layers,
    resolve_layer_sizes,
)


@pytest.mark.parametrize(
    "spec, expected",
    [
        ("a", ("a",)),
        ("a, 3", ("a", "3")),
        ("4,,2", ("4", "2")),
        ("2.0", ("2",)),
        ("0", ("0",)),
        ("i,o,t", ("i", "o", "t")),
    ],
)
def test_parse_accepts_valid_specs(spec, expected):
    assert parse_hidden_layers(spec) == expected


@pytest.mark.parametrize("spec", ["", "x", "-1", "1.5", "0,3", "3,0", "a,,b"])
def test_parse_rejects_malformed_specs(spec):
    with pytest.raises(StructuralError):
        parse_hidden_layers(spec)


def test_canonical_form_and_silent_acceptance():
    assert canonical_hidden_layers("3 ,a") == "3, a"
    assert accept_hidden_layers("a", "5,t") == "5, t"
    assert accept_hidden_layers("a", "bogus") == "a"


def test_resolve_wildcards():
    plan = resolve_layer_sizes("a,i,o,t", num_inputs=4, num_outputs=3)
    assert plan.sizes == [3, 4, 3, 7]
    assert plan.total == 17
    assert resolve_layer_sizes("0", 4, 3).sizes == []
    assert resolve_layer_sizes("a", 0, 1).sizes == []


def test_builder_fully_connects_layers():
    net = build_network(2, 3, "a", class_is_numeric=False)
    assert len(net.inputs) == 2
    assert len(net.outputs) == 3
    # two hidden nodes plus one feeder per output
    assert len(net.hidden) == 5
    assert net.parameter_count() == 2 * (1 + 2) + 3 * (1 + 2)
    for out in net.outputs:
        (feeder,) = net.nodes[out].inputs
        assert len(net.nodes[feeder].inputs) == 2
        assert net.nodes[feeder].unit is SIGMOID


def test_builder_without_hidden_layers_wires_inputs_to_feeders():
    net = build_network(3, 2, "0", class_is_numeric=False)
    assert len(net.hidden) == 2
    for node_id in net.hidden:
        assert net.nodes[node_id].inputs == net.inputs


def test_numeric_class_gets_linear_feeders():
    net = build_network(2, 1, "a", class_is_numeric=True)
    (feeder,) = net.nodes[net.outputs[0]].inputs
    assert net.nodes[feeder].unit is LINEAR
    others = [n for n in net.hidden if n != feeder]
    assert others and all(net.nodes[n].unit is SIGMOID for n in others)


def test_manual_build_leaves_feeders_unconnected():
    builder = TopologyBuilder(np.random.default_rng(0))
    net = builder.build(
        2,
        2,
        "a",
        False,
        input_names=["sepal", "petal"],
        output_names=["yes", "no"],
        auto_build=False,
    )
    assert [net.nodes[i].name for i in net.inputs] == ["sepal", "petal"]
    assert [net.nodes[o].name for o in net.outputs] == ["yes", "no"]
    assert net.parameter_count() == 2
    assert all(not net.nodes[i].outputs for i in net.inputs)


def test_builder_uses_seeded_weights():
    first = build_network(3, 2, "a", False, seed=7).weight_snapshot()
    second = build_network(3, 2, "a", False, seed=7).weight_snapshot()
    assert first.keys() == second.keys()
    assert all(np.array_equal(first[k], second[k]) for k in first)
    assert all(np.all(np.abs(w) <= 0.05) for w in first.values())


def test_builder_polls_for_cancellation():
    calls = {"n": 0}

    def poll():
        calls["n"] += 1
        if calls["n"] > 3:
            raise CancellationError("stop")

    with pytest.raises(CancellationError):
        TopologyBuilder(np.random.default_rng(0), poll=poll).build(4, 2, "a", False)
