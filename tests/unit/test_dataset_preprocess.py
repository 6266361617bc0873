import numpy as np
import pandas as pd
import pytest

from mlpnet.core.errors import CapabilityError
from mlpnet.data import (
    NOMINAL,
    NUMERIC,
    STRING,
    Attribute,
    AttributeScaler,
    Dataset,
    NominalToBinary,
    check_capabilities,
    compute_ranges,
)


def _mixed_frame():
    return pd.DataFrame(
        {
            "colour": ["red", "green", "blue", None],
            "flag": [True, False, True, False],
            "size": [0.0, 10.0, 5.0, np.nan],
            "label": ["yes", "no", "yes", "no"],
        }
    )


def test_from_frame_infers_attribute_kinds():
    data = Dataset.from_frame(_mixed_frame(), "label")
    kinds = [attr.kind for attr in data.attributes]
    assert kinds == [NOMINAL, NOMINAL, NUMERIC, NOMINAL]
    assert data.attributes[0].values == ("blue", "green", "red")
    assert np.isnan(data.values[3, 0])
    assert data.class_index == 3
    assert data.num_classes == 2
    assert data.class_attribute.values == ("no", "yes")


def test_from_arrays_places_class_last():
    data = Dataset.from_arrays([[1.0, 2.0], [3.0, 4.0]], [0.5, 1.5])
    assert data.attribute_names == ["x0", "x1", "class"]
    assert data.class_attribute.is_numeric
    labelled = Dataset.from_arrays([[1.0], [2.0]], ["b", "a"])
    assert labelled.class_attribute.values == ("a", "b")
    assert np.array_equal(labelled.class_values, [1.0, 0.0])


def test_subsets_and_missing_class_removal():
    data = Dataset.from_arrays([[1.0], [2.0], [3.0]], [1.0, np.nan, 2.0], weights=[1, 2, 3])
    kept = data.delete_with_missing_class()
    assert kept.num_instances == 2
    assert np.array_equal(kept.weights, [1.0, 3.0])
    assert data.header().num_instances == 0
    shuffled = data.shuffled(np.random.default_rng(0))
    assert sorted(shuffled.weights.tolist()) == [1.0, 2.0, 3.0]


def test_capabilities_reject_unusable_data():
    data = Dataset.from_arrays([[1.0]], [1.0])
    data.class_index = None
    with pytest.raises(CapabilityError):
        check_capabilities(data)

    strings = Dataset(
        [Attribute("text", STRING), Attribute("y")], [[np.nan, 1.0]], class_index=1
    )
    with pytest.raises(CapabilityError):
        check_capabilities(strings)

    empty = Dataset([Attribute("x"), Attribute("y", NOMINAL, ("a", "b"))], [], class_index=1)
    with pytest.raises(CapabilityError):
        check_capabilities(empty)

    no_labels = Dataset([Attribute("x"), Attribute("y", NOMINAL)], [[1.0, 0.0]], class_index=1)
    with pytest.raises(CapabilityError):
        check_capabilities(no_labels)


def test_ranges_and_scaling():
    data = Dataset.from_arrays([[0.0, 3.0], [10.0, 3.0], [np.nan, 3.0]], [1.0, 5.0, 3.0])
    ranges, bases = compute_ranges(data)
    assert np.allclose(ranges, [5.0, 0.0, 2.0])
    assert np.allclose(bases, [5.0, 3.0, 3.0])

    scaler = AttributeScaler.fit(data)
    scaled = scaler.transform(data)
    assert np.allclose(scaled.values[:2, 0], [-1.0, 1.0])
    assert np.allclose(scaled.values[:, 1], 0.0)
    assert np.isnan(scaled.values[2, 0])
    # class column untouched, source untouched
    assert np.array_equal(scaled.class_values, data.class_values)
    assert data.values[1, 0] == 10.0
    assert scaler.class_range == 2.0 and scaler.class_base == 3.0
    row = scaler.transform_row(data.values[1])
    assert np.allclose(scaler.inverse_row(row)[:2], data.values[1, :2])


def test_nominal_to_binary_expands_multi_valued_attributes():
    data = Dataset.from_frame(_mixed_frame(), "label")
    encoder = NominalToBinary().fit(data)
    encoded = encoder.transform(data)
    names = [attr.name for attr in encoded.attributes]
    assert names == ["colour=blue", "colour=green", "colour=red", "flag", "size", "label"]
    assert encoded.class_index == 5
    assert encoded.class_attribute.is_nominal
    assert np.array_equal(encoded.values[0, :3], [0.0, 0.0, 1.0])
    assert np.all(np.isnan(encoded.values[3, :3]))
    assert np.array_equal(encoder.transform_row(data.values[1]), encoded.values[1], equal_nan=True)
