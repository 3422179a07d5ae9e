"""
Activation Configuration Histograms
===================================

Discretizes a network's behaviour on a dataset: every point maps, per layer, to
the bit pattern of which nodes are "on", paired with the label the network
predicts for that point. Counting those (label, pattern) keys gives one
histogram per layer, which is what the KL efficiency measure is computed from.

Key Components:
- PredictedLabel / ConfigurationKey: the structural histogram key
- build_configuration_key(): (label, bit vector) --> key
- build_layer_histograms(): the single pass over the dataset
"""

import enum
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import torch
from tqdm import tqdm

from .errors import DegenerateDatasetError


logger = logging.getLogger(__name__)



## ==========================================================================
## ========================= CONFIGURATION KEYS =============================
## ==========================================================================


class PredictedLabel(enum.Enum):
    """Hard label derived from the sign of the network output."""
    NEGATIVE = 'N'
    POSITIVE = 'P'

    @property
    def index(self) -> int:
        return 0 if self is PredictedLabel.NEGATIVE else 1

    @classmethod
    def from_index(cls, index: int) -> 'PredictedLabel':
        return (cls.NEGATIVE, cls.POSITIVE)[index]


def predicted_label_from_output(output: float, threshold: float = 0.0) -> PredictedLabel:
    """Outputs at or below the threshold are NEGATIVE, everything above is POSITIVE."""
    return PredictedLabel.NEGATIVE if float(output) <= threshold else PredictedLabel.POSITIVE


@dataclass(frozen=True)
class ConfigurationKey:
    """
    Histogram key: the predicted label plus the on/off pattern of one layer.

    Equality and hashing are structural, so the same pattern under different
    labels, or different patterns under the same label, never collide.
    """
    label: PredictedLabel
    bits: Tuple[int, ...]

    def __str__(self):
        return f"{self.label.value}-{','.join(str(b) for b in self.bits)}"

    @property
    def width(self) -> int:
        return len(self.bits)


def build_configuration_key(label: PredictedLabel,
                            configuration: Union[torch.Tensor, Sequence[int], Sequence[bool]]
                            ) -> ConfigurationKey:
    """
    Build the histogram key for one point in one layer.

    Args:
        label: the predicted label for the point
        configuration: per-node binary states for the layer (bool/int tensor or sequence)

    Returns:
        ConfigurationKey with the states normalized to a tuple of 0/1 ints
    """
    if isinstance(configuration, torch.Tensor):
        configuration = configuration.reshape(-1).tolist()
    return ConfigurationKey(label=label, bits=tuple(1 if state else 0 for state in configuration))



## ==========================================================================
## ========================== HISTOGRAM BUILDER =============================
## ==========================================================================


LayerHistogram = Dict[ConfigurationKey, int]


@dataclass
class LayerHistograms:
    """Result of one pass over a dataset: one histogram per layer plus ground-truth counts."""
    histograms: List[LayerHistogram]
    negative_count: int
    positive_count: int

    @property
    def n_samples(self) -> int:
        return self.negative_count + self.positive_count

    def label_count(self, label: PredictedLabel) -> int:
        """Ground-truth count used to normalize keys carrying this label."""
        return self.negative_count if label is PredictedLabel.NEGATIVE else self.positive_count


def build_layer_histograms(network, inputs: torch.Tensor, labels: torch.Tensor,
                           expected_sample_count: Optional[int] = None,
                           activation_threshold: float = 0.0,
                           output_threshold: float = 0.0,
                           show_progress: bool = False) -> LayerHistograms:
    """
    Count (predicted label, activation pattern) keys per layer in one pass over the data.

    Layers are indexed by the boundary they sit behind: histogram i holds the
    patterns of network layer i+1, so the input layer has no histogram and the
    output layer has the last one.

    Args:
        network: engine exposing layer_sizes, layer_configurations() and output()
        inputs: [N, D] input features
        labels: [N] ground-truth labels, <= 0 counts as negative
        expected_sample_count: externally computed sample count, used in messages only
        activation_threshold: node state threshold passed to the engine
        output_threshold: network outputs <= this are predicted NEGATIVE
        show_progress: wrap the pass in a tqdm bar

    Returns:
        LayerHistograms

    Raises:
        DegenerateDatasetError: if either ground-truth class is absent
    """
    n_layers = len(network.layer_sizes)
    histograms = [defaultdict(int) for _ in range(n_layers - 1)]

    ## Evaluate every point; the engine only reads its weights
    configurations = network.layer_configurations(inputs, threshold=activation_threshold)
    outputs = network.output(inputs)
    if len(configurations) != n_layers - 1:
        raise ValueError(f"network returned {len(configurations)} layer configurations, "
                         f"expected {n_layers - 1}")

    negative_count = 0
    positive_count = 0

    point_indices = range(labels.shape[0])
    if show_progress:
        point_indices = tqdm(point_indices, desc="Counting activation configurations")

    for i in point_indices:
        label = predicted_label_from_output(outputs[i], threshold=output_threshold)

        if labels[i] <= 0:
            negative_count += 1
        else:
            positive_count += 1

        for layer_idx, layer_configs in enumerate(configurations):
            key = build_configuration_key(label, layer_configs[i])
            histograms[layer_idx][key] += 1

    n_samples = negative_count + positive_count
    if expected_sample_count is not None and expected_sample_count != n_samples:
        logger.warning(f"evaluated {n_samples} samples but {expected_sample_count} were expected")

    if negative_count <= 0 or positive_count <= 0:
        raise DegenerateDatasetError(negative_count, positive_count, expected_sample_count)

    logger.info(f"negative_count={negative_count}, positive_count={positive_count}")
    return LayerHistograms(histograms=[dict(h) for h in histograms],
                           negative_count=negative_count,
                           positive_count=positive_count)
