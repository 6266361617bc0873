import numpy as np
import pytest

from mlpnet.core.errors import CapabilityError, StructuralError, TrainingStateError
from mlpnet.core.topology import TopologyBuilder
from mlpnet.core.types import Phase
from mlpnet.data import STRING, Attribute, Dataset
from mlpnet.training import MLPConfig, MultilayerPerceptron
from mlpnet.training.trainer import validation_count


def _data(n: int = 20) -> Dataset:
    rng = np.random.default_rng(1)
    x = rng.uniform(-1.0, 1.0, (n, 3))
    y = (x[:, 0] > 0).astype(int)
    return Dataset.from_arrays(x, y, class_labels=["low", "high"])


@pytest.mark.parametrize(
    "percent, n, expected",
    [(0, 10, 0), (20, 10, 2), (25, 10, 3), (1, 10, 1), (99, 2, 1), (50, 1, 0)],
)
def test_validation_count(percent, n, expected):
    assert validation_count(percent, n) == expected


def test_protocol_phases():
    model = MultilayerPerceptron(MLPConfig(epochs=2))
    assert model.phase is Phase.UNINITIALIZED
    with pytest.raises(TrainingStateError):
        model.step_epoch()
    with pytest.raises(TrainingStateError):
        model.finish()
    with pytest.raises(TrainingStateError):
        model.distribution_for_instance([0.0, 0.0, 0.0, np.nan])

    model.initialize(_data())
    assert model.phase is Phase.READY
    assert model.step_epoch() is True
    assert model.phase is Phase.TRAINING
    assert model.step_epoch() is False
    model.finish()
    assert model.phase is Phase.DONE
    with pytest.raises(TrainingStateError):
        model.step_epoch()


def test_finish_keeps_only_the_header():
    model = MultilayerPerceptron(MLPConfig(epochs=1, validation_size=10))
    model.initialize(_data())
    model.step_epoch()
    model.finish()
    assert model._instances.num_instances == 0
    assert model._validation is None
    assert model.state.original is None
    dist = model.distribution_for_instance([0.5, 0.0, 0.0, np.nan])
    assert dist.shape == (2,)


def test_input_data_is_not_modified():
    data = _data()
    before = data.values.copy()
    MultilayerPerceptron(MLPConfig(epochs=3)).train(data)
    assert np.array_equal(data.values, before)


def test_capability_errors_propagate():
    data = Dataset([Attribute("t", STRING), Attribute("y")], [[np.nan, 1.0]] * 3, class_index=1)
    with pytest.raises(CapabilityError):
        MultilayerPerceptron().initialize(data)


def test_prediction_checks_row_width():
    model = MultilayerPerceptron(MLPConfig(epochs=1)).train(_data())
    with pytest.raises(ValueError):
        model.distribution_for_instance([1.0, 2.0])


def test_setters_validate_and_apply():
    model = MultilayerPerceptron(MLPConfig(epochs=3))
    with pytest.raises(ValueError):
        model.set_learning_rate(0.0)
    with pytest.raises(ValueError):
        model.set_momentum(1.5)
    with pytest.raises(ValueError):
        model.set_epoch_limit(0)
    model.initialize(_data())
    model.set_learning_rate(0.05)
    model.set_momentum(0.0)
    model.set_epoch_limit(1)
    assert model.learning_rate == 0.05
    assert model.config.momentum == 0.0
    assert model.step_epoch() is False


def test_malformed_hidden_layers_keep_previous_value():
    model = MultilayerPerceptron(MLPConfig(hidden_layers="4"))
    model.hidden_layers = "4,x"
    assert model.hidden_layers == "4"
    model.hidden_layers = "2, i"
    assert model.hidden_layers == "2, i"


def test_topology_edits_between_epochs():
    model = MultilayerPerceptron(MLPConfig(epochs=3, hidden_layers="0"))
    model.initialize(_data())
    model.step_epoch()
    network = model.network
    feeder = network.nodes[network.outputs[0]].inputs[0]
    extra = model.add_node("extra")
    assert model.connect(network.inputs[0], extra)
    assert model.connect(extra, feeder)
    with pytest.raises(StructuralError):
        model.connect(feeder, extra)
    assert model.step_epoch() is True
    assert model.disconnect(extra, feeder)
    model.remove_node(extra)
    assert model.step_epoch() is False


def test_manual_topology_without_auto_build():
    model = MultilayerPerceptron(MLPConfig(epochs=2, auto_build=False))
    model.initialize(_data())
    network = model.network
    assert all(not network.nodes[i].outputs for i in network.inputs)
    for out in network.outputs:
        feeder = network.nodes[out].inputs[0]
        for source in network.inputs:
            model.connect(source, feeder)
    while model.step_epoch():
        pass
    model.finish()
    assert model.predict(_data()).shape == (20, 2)


def test_supplied_network_must_match_data():
    wrong = TopologyBuilder(np.random.default_rng(0)).build(2, 2, "a", False)
    with pytest.raises(StructuralError):
        MultilayerPerceptron(network=wrong).initialize(_data())

    right = TopologyBuilder(np.random.default_rng(0)).build(3, 2, "a", False)
    model = MultilayerPerceptron(MLPConfig(epochs=2), network=right)
    model.train(_data())
    assert model.network is right


def test_string_rendering_lists_nodes_and_classes():
    model = MultilayerPerceptron(MLPConfig(epochs=1, hidden_layers="2"))
    model.train(_data())
    text = str(model)
    assert text.count("Sigmoid Node") == 4
    assert "Threshold" in text
    assert "Attrib x0" in text
    assert "Class low" in text and "Class high" in text
