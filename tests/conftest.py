"""Pytest configuration and shared fixtures."""

import pytest
import torch


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")


class FixedConfigurationEngine:
    """
    Network stand-in that replays fixed per-point layer configurations and outputs.

    configurations[layer][point] is the bit vector of that layer for that point.
    """

    def __init__(self, layer_sizes, configurations, outputs):
        self.layer_sizes = list(layer_sizes)
        self._configurations = [
            torch.tensor(layer, dtype=torch.bool).reshape(len(outputs), size)
            for layer, size in zip(configurations, self.layer_sizes[1:])
        ]
        self._outputs = torch.tensor(outputs, dtype=torch.float64)
        self.calls = 0

    def layer_configurations(self, inputs, threshold=0.0):
        self.calls += 1
        return self._configurations

    def output(self, inputs):
        return self._outputs


@pytest.fixture
def fixed_engine_factory():
    """Build FixedConfigurationEngine instances."""
    return FixedConfigurationEngine


@pytest.fixture
def sign_network():
    """
    2-2-1 tanh network whose hidden nodes are on when x > 0 and y > 0 respectively,
    and whose output is positive exactly when x > 0.
    """
    from nam_efficiency.network import FeedForwardNetwork

    net = FeedForwardNetwork([2, 2, 1])
    with torch.no_grad():
        net.linears[0].weight.copy_(torch.eye(2, dtype=torch.float64))
        net.linears[0].bias.zero_()
        net.linears[1].weight.copy_(torch.tensor([[1.0, 0.0]], dtype=torch.float64))
        net.linears[1].bias.zero_()
    return net


@pytest.fixture
def quadrant_points():
    """Six points labeled by the sign of x, so sign_network classifies all of them correctly."""
    from nam_efficiency.data_prep import LabeledPoint
    return [
        LabeledPoint(1.0, 1.0, 1),
        LabeledPoint(2.0, 1.0, 1),
        LabeledPoint(1.0, -1.0, 1),
        LabeledPoint(-1.0, 1.0, -1),
        LabeledPoint(-1.0, -1.0, -1),
        LabeledPoint(-2.0, -1.0, -1),
    ]


@pytest.fixture
def single_node_engine(fixed_engine_factory):
    """
    Engine with one 1-node layer: ten negative points (3 off, 7 on, all predicted
    Negative) and five positive points (all on, predicted Positive).
    """
    configurations = [[[0]] * 3 + [[1]] * 7 + [[1]] * 5]
    outputs = [-0.5] * 10 + [0.5] * 5
    return fixed_engine_factory([2, 1], configurations, outputs)


@pytest.fixture
def single_node_points():
    """Labels matching single_node_engine: ten -1 labels then five +1 labels."""
    from nam_efficiency.data_prep import LabeledPoint
    return [LabeledPoint(float(i), 0.0, -1) for i in range(10)] + \
           [LabeledPoint(float(i), 1.0, 1) for i in range(5)]
