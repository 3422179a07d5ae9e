"""
Feed-Forward Network Engine
===========================

A small fully-connected network in the shape of the playground networks whose
layer efficiency gets measured. The analysis only needs three things from it:

- ``layer_sizes``: node counts per layer, input layer first
- ``layer_configurations(inputs)``: the binary on/off state of every node in
  every non-input layer, one [N, k] bool tensor per layer
- ``output(inputs)``: the scalar network output for each point, shape [N]

Any object providing those can be analyzed; this module supplies a torch
implementation. Training is left to the caller.
"""

import math

import torch
import torch.nn as nn

from typing import List, Optional

from .efficiency_config import NetworkConfig



_ACTIVATIONS = {
    'tanh': torch.tanh,
    'relu': torch.relu,
    'sigmoid': torch.sigmoid,
    'linear': lambda x: x,
}


class FeedForwardNetwork(nn.Module):
    """
    Fully-connected network with one activation for hidden layers and one for
    the output layer.

    Example:
        >>> net = FeedForwardNetwork([2, 4, 2, 1])
        >>> configs = net.layer_configurations(torch.randn(10, 2))
        >>> [c.shape for c in configs]   # [10, 4], [10, 2], [10, 1]
    """

    def __init__(self, layer_sizes: List[int], activation: str = 'tanh',
                 output_activation: str = 'tanh', seed: Optional[int] = None):
        super().__init__()
        if len(layer_sizes) < 2:
            raise ValueError(f"layer_sizes={layer_sizes} needs at least an input and an output layer")
        if activation not in _ACTIVATIONS or output_activation not in _ACTIVATIONS:
            raise ValueError(f"activations must be in {list(_ACTIVATIONS)}")

        self.layer_sizes = list(layer_sizes)
        self.activation = activation
        self.output_activation = output_activation

        ## A seeded network draws its weights from a private generator and leaves the global RNG untouched
        with torch.random.fork_rng(devices=[], enabled=seed is not None):
            self.linears = nn.ModuleList(
                nn.Linear(n_in, n_out, dtype=torch.float64)
                for n_in, n_out in zip(self.layer_sizes[:-1], self.layer_sizes[1:])
            )
        if seed is not None:
            self._initialize(torch.Generator().manual_seed(seed))


    @torch.no_grad()
    def _initialize(self, generator: torch.Generator) -> None:
        """Re-draw weights and biases from U(-1/sqrt(fan_in), 1/sqrt(fan_in)), the nn.Linear default range."""
        for linear in self.linears:
            bound = 1.0 / math.sqrt(linear.in_features) if linear.in_features > 0 else 0.0
            linear.weight.uniform_(-bound, bound, generator=generator)
            linear.bias.uniform_(-bound, bound, generator=generator)


    @classmethod
    def from_config(cls, config: NetworkConfig) -> 'FeedForwardNetwork':
        """Build a network from a NetworkConfig."""
        return cls(config.layer_sizes, activation=config.activation,
                   output_activation=config.output_activation, seed=config.seed)


    def __repr__(self):
        return f"FeedForwardNetwork(layer_sizes={self.layer_sizes}, activation='{self.activation}')"


    @torch.no_grad()
    def forward(self, inputs: torch.Tensor) -> List[torch.Tensor]:
        """
        Evaluate the network and return the activations of every non-input layer.

        Args:
            inputs: [N, layer_sizes[0]] tensor of input features

        Returns:
            list of [N, layer_sizes[i]] tensors for i = 1 .. len(layer_sizes)-1
        """
        x = inputs.to(torch.float64)
        if x.dim() == 1:
            x = x.unsqueeze(0)

        activations = []
        last = len(self.linears) - 1
        for i, linear in enumerate(self.linears):
            fn = _ACTIVATIONS[self.output_activation if i == last else self.activation]
            x = fn(linear(x))
            activations.append(x)
        return activations


    def layer_configurations(self, inputs: torch.Tensor, threshold: float = 0.0) -> List[torch.Tensor]:
        """Binary node states per non-input layer: True where the activation exceeds the threshold."""
        return [layer_out > threshold for layer_out in self.forward(inputs)]


    def output(self, inputs: torch.Tensor) -> torch.Tensor:
        """Scalar output per point, taken from the first output node. Shape [N]."""
        return self.forward(inputs)[-1][:, 0]
