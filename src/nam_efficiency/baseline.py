"""
Baseline model memory: weight and bias arithmetic across trained networks.

A baseline holds one copy of a network's parameters. Further networks of the
same architecture can be added to it or subtracted from it, the accumulated
sum can be averaged over the number of added models, and the result can be
written back into a network to analyze, e.g. the efficiency of an averaged or
a difference model.

Example:
    >>> baseline = BaselineModel()
    >>> baseline.store(net_run_0)
    >>> baseline.add(net_run_1)
    >>> baseline.add(net_run_2)
    >>> baseline.average()          # mean of the three models
    >>> baseline.restore(net)       # net now holds the averaged weights
"""

import logging
from typing import Dict, Optional

import torch
import torch.nn as nn


logger = logging.getLogger(__name__)



class BaselineModel:
    """
    Parameter memory over ``state_dict()`` tensors of one network architecture.

    Attributes:
        parameters: name --> tensor of the stored baseline, or None when empty
        add_count: number of models summed into the baseline since the last average
        subtract_count: number of subtractions applied since the last store
    """

    def __init__(self):
        self.clear()


    def __repr__(self):
        return (f"BaselineModel(empty={self.is_empty}, add_count={self.add_count}, "
                f"subtract_count={self.subtract_count})")


    @property
    def is_empty(self) -> bool:
        return self.parameters is None


    def clear(self) -> None:
        """Forget the stored baseline."""
        self.parameters: Optional[Dict[str, torch.Tensor]] = None
        self.add_count = 0
        self.subtract_count = 0
        logger.info("cleared baseline weights and biases")


    def store(self, network: nn.Module) -> None:
        """Replace the baseline with a copy of the network's weights and biases."""
        self.parameters = _copy_parameters(network)
        self.add_count = 1
        self.subtract_count = 0
        logger.info("set baseline to the current weights and biases")


    def restore(self, network: nn.Module) -> None:
        """
        Write the baseline into a network.

        Raises:
            RuntimeError: if no baseline is stored
            ValueError: if the network architecture differs from the baseline
        """
        if self.is_empty:
            raise RuntimeError("No baseline weights and biases stored. Call store() or add() first.")
        self._check_architecture(network.state_dict())
        network.load_state_dict(self.parameters)
        logger.info("restored the baseline weights and biases into the network")


    @torch.no_grad()
    def add(self, network: nn.Module) -> None:
        """
        Add the network's weights and biases to the baseline.

        An empty baseline counts as zeros, so the first add stores the network.

        Raises:
            ValueError: if the network architecture differs from the baseline
        """
        current = _copy_parameters(network)
        if self.is_empty:
            self.parameters = current
            self.add_count = 1
            self.subtract_count = 0
            logger.info("baseline was empty, set it to the current weights and biases")
            return

        self._check_architecture(current)
        self.parameters = {name: current[name] + value for name, value in self.parameters.items()}
        self.add_count += 1
        logger.info(f"added the current weights and biases to the baseline (add_count={self.add_count})")


    @torch.no_grad()
    def subtract(self, network: nn.Module) -> None:
        """
        Replace the baseline with (network - baseline).

        An empty baseline counts as zeros, so the first subtract stores the
        negated network.

        Raises:
            ValueError: if the network architecture differs from the baseline
        """
        current = _copy_parameters(network)
        if self.is_empty:
            self.parameters = {name: -value for name, value in current.items()}
            self.add_count = 0
            self.subtract_count = 1
            logger.info("baseline was empty, set it to the negated weights and biases")
            return

        self._check_architecture(current)
        self.parameters = {name: current[name] - value for name, value in self.parameters.items()}
        self.subtract_count += 1
        logger.info(f"subtracted the baseline from the current weights and biases "
                    f"(subtract_count={self.subtract_count})")


    @torch.no_grad()
    def average(self) -> bool:
        """
        Divide the accumulated baseline by the number of added models.

        Returns:
            True if the baseline was averaged, False if it holds a single model

        Raises:
            RuntimeError: if no baseline is stored
        """
        if self.is_empty:
            raise RuntimeError("No baseline weights and biases stored. Call store() or add() first.")
        if self.add_count < 2:
            logger.info(f"only one model in the baseline, nothing to average (add_count={self.add_count})")
            return False

        self.parameters = {name: value / self.add_count for name, value in self.parameters.items()}
        logger.info(f"averaged {self.add_count} models stored in the baseline")
        self.add_count = 1
        return True


    def _check_architecture(self, parameters: Dict[str, torch.Tensor]) -> None:
        baseline_shapes = {name: tuple(value.shape) for name, value in self.parameters.items()}
        current_shapes = {name: tuple(value.shape) for name, value in parameters.items()}
        if baseline_shapes != current_shapes:
            raise ValueError(f"baseline network architecture is different from the current architecture: "
                             f"baseline {baseline_shapes}, current {current_shapes}")



def _copy_parameters(network: nn.Module) -> Dict[str, torch.Tensor]:
    return {name: value.detach().clone() for name, value in network.state_dict().items()}
