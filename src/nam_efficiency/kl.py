"""
Layer Efficiency Measures (kl.py)
=================================

Turns a layer's activation-configuration histogram into a KL divergence (in
bits) against a uniform reference over all 2^k patterns of a k-node layer, and
reduces the per-layer values to network-level averages.

Reference model:
    numBins  = 2^k
    refProb  = n_classes / numBins          (same for every label)

Divergence:
    D = sum_keys  q * log2(q / refProb),    q = count / ground_truth_count(label)

The reference mass per label sums to n_classes rather than 1, so D can come
out negative. That is reported, not clamped.
"""

import math
import sys
import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Literal, Optional, Sequence, Tuple

import torch

from .errors import InvalidLayerWidthError, NegativeDivergenceError
from .histograms import ConfigurationKey, LayerHistogram, LayerHistograms, PredictedLabel


logger = logging.getLogger(__name__)

MAX_COUNT_SENTINEL = -sys.maxsize - 1
MIN_COUNT_SENTINEL = sys.maxsize



## ==========================================================================
## ======================== REFERENCE DISTRIBUTION ==========================
## ==========================================================================


@dataclass(frozen=True)
class ReferenceDistribution:
    """Uniform reference over the activation patterns of one layer."""
    node_count: int
    n_classes: int
    num_bins: int
    reference_probability: float

    @property
    def max_entropy(self) -> float:
        """log2(numBins), the entropy of a uniform distribution over all patterns."""
        return math.log2(self.num_bins)

    def probability_for(self, label: PredictedLabel) -> float:
        return self.reference_probability


def reference_distribution(node_count: int, n_classes: int = 2,
                           layer_index: Optional[int] = None) -> ReferenceDistribution:
    """
    Derive the reference probability of every pattern of a layer.

    Args:
        node_count: number of nodes k in the layer
        n_classes: number of output classes m
        layer_index: only used in error messages

    Returns:
        ReferenceDistribution with numBins = 2^k and refProb = m / numBins

    Raises:
        InvalidLayerWidthError: if the layer has no nodes
    """
    if node_count <= 0:
        raise InvalidLayerWidthError(node_count, layer_index)

    num_bins = 2 ** node_count
    reference_probability = n_classes / num_bins
    reference = ReferenceDistribution(node_count=node_count, n_classes=n_classes,
                                      num_bins=num_bins, reference_probability=reference_probability)

    ## Every label needs positive reference mass for the log ratio
    for label in PredictedLabel:
        if not reference.probability_for(label) > 0:
            raise InvalidLayerWidthError(node_count, layer_index)

    logger.debug(f"layer {layer_index}: numBins={num_bins}, maxEntropy={reference.max_entropy}, "
                 f"refProb={reference_probability}")
    return reference



## ==========================================================================
## ========================= STATE USAGE / EXTREMA ==========================
## ==========================================================================


@dataclass(frozen=True)
class LabelStateUsage:
    """
    How one label uses the states of one layer: number of distinct patterns
    observed and the most/least frequent pattern.

    Until a key is observed the counts hold sentinels and the keys are None;
    check ``observed`` rather than the sentinel values. Records are frozen;
    ``record()`` returns the updated copy.
    """
    label: PredictedLabel
    state_count: int = 0
    max_count: int = MAX_COUNT_SENTINEL
    max_key: Optional[ConfigurationKey] = None
    min_count: int = MIN_COUNT_SENTINEL
    min_key: Optional[ConfigurationKey] = None
    observed: bool = False

    def record(self, key: ConfigurationKey, count: int) -> 'LabelStateUsage':
        updates = {'state_count': self.state_count + 1, 'observed': True}
        if count > self.max_count:
            updates.update(max_count=count, max_key=key)
        if count < self.min_count:
            updates.update(min_count=count, min_key=key)
        return replace(self, **updates)


def empty_state_usage(n_classes: int = 2) -> Dict[PredictedLabel, LabelStateUsage]:
    return {PredictedLabel.from_index(i): LabelStateUsage(label=PredictedLabel.from_index(i))
            for i in range(n_classes)}


def track_state_usage(histogram: LayerHistogram, n_classes: int = 2) -> Dict[PredictedLabel, LabelStateUsage]:
    """State usage and extrema per label for one layer's histogram."""
    usage = empty_state_usage(n_classes)
    for key, count in histogram.items():
        usage[key.label] = usage[key.label].record(key, count)
    return usage



## ==========================================================================
## ============================== DIVERGENCE ================================
## ==========================================================================


@torch.no_grad()
def kl_terms_in_bits(probabilities: torch.Tensor, reference_probabilities: torch.Tensor) -> torch.Tensor:
    """
    Per-state contributions q * log2(q / r).

    Zero probabilities contribute exactly zero (xlogy convention), though only
    observed states ever reach here.
    """
    return torch.xlogy(probabilities, probabilities / reference_probabilities) / math.log(2.0)


def analyze_layer(histogram: LayerHistogram, reference: ReferenceDistribution,
                  negative_count: int, positive_count: int,
                  layer_index: Optional[int] = None
                  ) -> Tuple[float, Dict[PredictedLabel, LabelStateUsage]]:
    """
    Compute a layer's KL divergence and its per-label state usage in one walk
    over the histogram.

    Args:
        histogram: mapping ConfigurationKey --> count for the layer
        reference: the layer's reference distribution
        negative_count, positive_count: ground-truth counts used to normalize each label
        layer_index: only used in log messages

    Returns:
        (kl_divergence_in_bits, {label: LabelStateUsage})
    """
    label_counts = {PredictedLabel.NEGATIVE: negative_count, PredictedLabel.POSITIVE: positive_count}
    usage = empty_state_usage(reference.n_classes)

    counts = []
    normalizers = []
    references = []
    for key, value in histogram.items():
        usage[key.label] = usage[key.label].record(key, value)
        counts.append(value)
        normalizers.append(label_counts[key.label])
        references.append(reference.probability_for(key.label))

    if not counts:
        return 0.0, usage

    probabilities = torch.tensor(counts, dtype=torch.float64) / torch.tensor(normalizers, dtype=torch.float64)
    terms = kl_terms_in_bits(probabilities, torch.tensor(references, dtype=torch.float64))

    if logger.isEnabledFor(logging.DEBUG):
        for key, prob, term in zip(histogram, probabilities.tolist(), terms.tolist()):
            logger.debug(f"layer {layer_index} key {key}: prob={prob}, prob x log2(ratio)={term}")

    return terms.sum().item(), usage


def layer_kl_divergence(histogram: LayerHistogram, reference: ReferenceDistribution,
                        negative_count: int, positive_count: int) -> float:
    """KL divergence (bits) of one layer's label-conditioned histogram from the reference."""
    kl_value, _ = analyze_layer(histogram, reference, negative_count, positive_count)
    return kl_value


def analyze_layers(layer_histograms: LayerHistograms, layer_sizes: Sequence[int], n_classes: int = 2):
    """
    Run the reference / divergence / usage steps for every layer boundary.

    Returns:
        list of (reference, kl_value, usage) tuples, one per histogram
    """
    if len(layer_sizes) - 1 != len(layer_histograms.histograms):
        raise ValueError(f"{len(layer_histograms.histograms)} histograms for {len(layer_sizes)} layers")

    results = []
    for layer_idx, histogram in enumerate(layer_histograms.histograms):
        reference = reference_distribution(layer_sizes[layer_idx + 1], n_classes, layer_index=layer_idx)
        kl_value, usage = analyze_layer(histogram, reference,
                                        layer_histograms.negative_count,
                                        layer_histograms.positive_count,
                                        layer_index=layer_idx)
        logger.info(f"layer {layer_idx}: KL divergence = {kl_value}")
        results.append((reference, kl_value, usage))
    return results



## ==========================================================================
## ============================== AGGREGATION ===============================
## ==========================================================================


def arithmetic_mean_kl(values: Sequence[float]) -> float:
    """Sum of the per-layer divergences over the number of layers."""
    if len(values) == 0:
        raise ValueError("Cannot average an empty list of layer divergences.")
    return sum(values) / len(values)


def geometric_mean_kl(values: Sequence[float],
                      negative_policy: Literal['nan', 'absolute', 'raise'] = 'nan'
                      ) -> Tuple[float, List[str]]:
    """
    N-th root of the product of the per-layer divergences.

    A fractional power of a negative product has no real value, so negative
    layer divergences are handled by policy:
        - "nan": return NaN
        - "absolute": use the absolute values of the divergences
        - "raise": raise NegativeDivergenceError

    Returns:
        (geometric_mean, warning_messages)

    Raises:
        ValueError: for an empty input or unknown policy
        NegativeDivergenceError: under the "raise" policy
    """
    allowed_policies = ['nan', 'absolute', 'raise']
    if negative_policy not in allowed_policies:
        raise ValueError(f"negative_policy = {negative_policy} must be in {allowed_policies}.")
    if len(values) == 0:
        raise ValueError("Cannot average an empty list of layer divergences.")

    messages = []
    negative_layers = [i for i, v in enumerate(values) if v < 0]
    if negative_layers:
        message = (f"layers {negative_layers} have negative KL divergence; "
                   f"geometric mean computed with policy '{negative_policy}'")
        if negative_policy == 'raise':
            raise NegativeDivergenceError(message)
        messages.append(message)
        if negative_policy == 'nan':
            return float('nan'), messages
        values = [abs(v) for v in values]

    product = math.prod(values)
    return product ** (1.0 / len(values)), messages
