"""
conftest.py
~~~~~~~~~~~

Shared fixtures: hand-weighted networks and small CSV datasets.
"""

import os

import numpy as np
import pytest

from digit_nn.network import Layer, Network


def build_network(weights_per_layer, biases_per_layer) -> Network:
    """Network whose neurons carry exactly the given weights and biases."""
    layers = []
    for weights, biases in zip(weights_per_layer, biases_per_layer):
        layer = Layer(len(weights), len(weights[0]))
        for neuron, w, b in zip(layer.neurons, weights, biases):
            neuron.weights = np.array(w, dtype=float)
            neuron.bias = float(b)
        layers.append(layer)
    return Network(layers)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep DIGIT_NN_* variables from the outer environment out of the tests."""
    for name in list(os.environ):
        if name.startswith("DIGIT_NN_"):
            monkeypatch.delenv(name)


@pytest.fixture
def network_builder():
    """The `build_network` helper, for tests that need their own weights."""
    return build_network


@pytest.fixture
def two_layer_network():
    """2 inputs -> 2 hidden neurons -> 1 output, fixed weights."""
    return build_network(
        [[[0.1, -0.2], [0.3, 0.4]], [[0.5, -0.6]]],
        [[0.05, -0.05], [0.1]],
    )


@pytest.fixture
def separating_network():
    """4 inputs -> 1 neuron: low for all-zero input, high for all-one input."""
    return build_network([[[1.0, 1.0, 1.0, 1.0]]], [[-2.0]])


@pytest.fixture
def small_dataset(tmp_path):
    """Eight 4-feature examples (zeros-ish = class 0, ones-ish = class 1)."""
    features = [
        "0,0,0,0,9",
        "0.1,0,0.1,0",
        "1,1,1,1",
        "0.9,1,0.8,1",
        "0,0.1,0,0",
        "1,0.9,1,1,7",
        "0,0,0.1,0.1",
        "1,1,0.9,0.9",
    ]
    targets = ["0", "0", "1", "1", "0", "1", "0", "1"]
    dataset_path = tmp_path / "dataset.csv"
    targets_path = tmp_path / "targets.csv"
    dataset_path.write_text("\n".join(features) + "\n")
    targets_path.write_text("\n".join(targets) + "\n")
    return dataset_path, targets_path
