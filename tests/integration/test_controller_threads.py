import threading

import numpy as np
import pytest

from mlpnet.core.errors import CancellationError, TrainingStateError
from mlpnet.core.types import Phase
from mlpnet.data import Dataset
from mlpnet.training import MLPConfig, MultilayerPerceptron, TrainingController


def _data() -> Dataset:
    rng = np.random.default_rng(2)
    x = rng.uniform(-1.0, 1.0, (30, 2))
    y = (x.sum(axis=1) > 0).astype(int)
    return Dataset.from_arrays(x, y, class_labels=["neg", "pos"])


def _run_loop(model, failures):
    try:
        while model.step_epoch():
            pass
    except CancellationError as exc:
        failures.append(exc)


def test_edits_apply_while_parked_then_training_resumes():
    controller = TrainingController(start_paused=True)
    model = MultilayerPerceptron(MLPConfig(epochs=5), controller=controller)
    model.initialize(_data())
    failures = []
    worker = threading.Thread(target=_run_loop, args=(model, failures))
    worker.start()
    try:
        assert controller.wait_until_suspended(timeout=10)
        assert controller.suspended
        model.set_learning_rate(0.1)
        model.set_momentum(0.5)
        network = model.network
        feeder = network.nodes[network.outputs[0]].inputs[0]
        extra = model.add_node()
        model.connect(network.inputs[0], extra)
        model.connect(extra, feeder)
    finally:
        controller.resume()
        worker.join(timeout=30)
    assert not worker.is_alive()
    assert not failures
    assert model.epoch == 5
    assert model.learning_rate == 0.1
    assert model.config.momentum == 0.5
    assert extra in model.network.nodes[feeder].inputs


def test_edits_are_refused_while_not_parked():
    controller = TrainingController()
    model = MultilayerPerceptron(MLPConfig(epochs=3), controller=controller)
    model.initialize(_data())
    with pytest.raises(TrainingStateError):
        model.set_learning_rate(0.1)
    with pytest.raises(TrainingStateError):
        model.add_node()
    assert model.config.learning_rate == 0.3


def test_cancel_wakes_a_parked_loop():
    controller = TrainingController(start_paused=True)
    model = MultilayerPerceptron(MLPConfig(epochs=50), controller=controller)
    model.initialize(_data())
    failures = []
    worker = threading.Thread(target=_run_loop, args=(model, failures))
    worker.start()
    assert controller.wait_until_suspended(timeout=10)
    controller.cancel()
    worker.join(timeout=30)
    assert not worker.is_alive()
    assert len(failures) == 1
    assert model.epoch == 0


def test_pause_between_epochs():
    controller = TrainingController()
    seen = []

    def on_epoch(epoch, metrics):
        seen.append(epoch)
        if epoch == 2:
            controller.pause()

    model = MultilayerPerceptron(
        MLPConfig(epochs=4), controller=controller, callbacks=[on_epoch]
    )
    model.initialize(_data())
    failures = []
    worker = threading.Thread(target=_run_loop, args=(model, failures))
    worker.start()
    assert controller.wait_until_suspended(timeout=10)
    assert seen == [1, 2]
    assert model.phase is Phase.TRAINING
    controller.resume()
    worker.join(timeout=30)
    assert seen == [1, 2, 3, 4]
    assert not failures


def test_cancelled_controller_stops_initialisation():
    controller = TrainingController()
    controller.cancel()
    with pytest.raises(CancellationError):
        MultilayerPerceptron(controller=controller).initialize(_data())
