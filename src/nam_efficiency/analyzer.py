"""
Network Inefficiency Analyzer
=============================

Measures how efficiently each layer of a binary classifier uses its
representational capacity. For every layer the analyzer histograms the
activation patterns the dataset drives it into (conditioned on the predicted
label) and computes the KL divergence of that histogram from a uniform
reference over all 2^k patterns of the layer.

Example:
    >>> analyzer = NetworkEfficiencyAnalyzer()
    >>> report = analyzer.analyze(network, train_points)
    >>> report.kl_divergences, report.arithmetic_mean_kl
    >>> analyzer.reset()
    >>> report = analyzer.analyze(network, test_points)
"""

import enum
import logging
import warnings
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from .data_prep import Dataset, prepare_dataset
from .efficiency_config import EfficiencyAnalyzerConfig
from .errors import ArithmeticWarning, EfficiencyAnalysisError, NegativeDivergenceError
from .histograms import ConfigurationKey, PredictedLabel, build_layer_histograms
from .kl import (LabelStateUsage, ReferenceDistribution, analyze_layers,
                 arithmetic_mean_kl, geometric_mean_kl)


logger = logging.getLogger(__name__)


def _emit_arithmetic_warning(message: str) -> None:
    logger.warning(message)
    warnings.warn(message, ArithmeticWarning, stacklevel=3)



## ==========================================================================
## ============================ REPORT TYPES ================================
## ==========================================================================


@dataclass(frozen=True)
class LayerEfficiencyResult:
    """Efficiency measures for the layer behind one boundary of the network."""
    layer_index: int
    reference: ReferenceDistribution
    kl_divergence: float
    histogram: Mapping[ConfigurationKey, int]
    state_usage: Mapping[PredictedLabel, LabelStateUsage]

    @property
    def node_count(self) -> int:
        return self.reference.node_count

    @property
    def num_bins(self) -> int:
        return self.reference.num_bins

    def label_histogram(self, label: PredictedLabel) -> Dict[ConfigurationKey, int]:
        """The part of the histogram whose keys carry the given predicted label."""
        return {key: count for key, count in self.histogram.items() if key.label is label}


@dataclass(frozen=True)
class NetworkEfficiencyReport:
    """Per-layer results plus the network-level averages of one analysis run."""
    layers: Tuple[LayerEfficiencyResult, ...]
    arithmetic_mean_kl: float
    geometric_mean_kl: float
    negative_count: int
    positive_count: int
    warnings: Tuple[str, ...] = ()

    @property
    def n_samples(self) -> int:
        return self.negative_count + self.positive_count

    @property
    def kl_divergences(self) -> List[float]:
        return [layer.kl_divergence for layer in self.layers]

    @property
    def layer_histograms(self) -> List[Mapping[ConfigurationKey, int]]:
        return [layer.histogram for layer in self.layers]

    def label_count(self, label: PredictedLabel) -> int:
        return self.negative_count if label is PredictedLabel.NEGATIVE else self.positive_count

    def to_dict(self) -> dict:
        """
        Plain-dict view for reporting.

        Returns:
            Dictionary containing:
                - output_metrics: per-layer KL values and the two averages
                - intermediate_data: histograms (keys rendered as 'N-0,1'),
                  reference values and state usage per layer
        """
        return {
            'output_metrics': {
                'kl_divergences': self.kl_divergences,
                'arithmetic_mean_kl': self.arithmetic_mean_kl,
                'geometric_mean_kl': self.geometric_mean_kl,
                'warnings': list(self.warnings),
            },
            'intermediate_data': {
                'negative_count': self.negative_count,
                'positive_count': self.positive_count,
                'layers': [
                    {
                        'layer_index': layer.layer_index,
                        'node_count': layer.node_count,
                        'num_bins': layer.num_bins,
                        'reference_probability': layer.reference.reference_probability,
                        'histogram': {str(key): count for key, count in layer.histogram.items()},
                        'state_usage': {
                            label.value: {
                                'state_count': usage.state_count,
                                'max_count': usage.max_count if usage.observed else None,
                                'max_key': str(usage.max_key) if usage.observed else None,
                                'min_count': usage.min_count if usage.observed else None,
                                'min_key': str(usage.min_key) if usage.observed else None,
                            }
                            for label, usage in layer.state_usage.items()
                        },
                    }
                    for layer in self.layers
                ],
            },
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per (layer, label) with the layer's KL value and the label's state usage."""
        rows = []
        for layer in self.layers:
            for label, usage in layer.state_usage.items():
                rows.append({
                    'layer': layer.layer_index,
                    'node_count': layer.node_count,
                    'num_bins': layer.num_bins,
                    'kl_divergence': layer.kl_divergence,
                    'label': label.value,
                    'state_count': usage.state_count,
                    'max_count': usage.max_count if usage.observed else None,
                    'max_key': str(usage.max_key) if usage.observed else None,
                    'min_count': usage.min_count if usage.observed else None,
                    'min_key': str(usage.min_key) if usage.observed else None,
                })
        return pd.DataFrame(rows)



## ==========================================================================
## ============================== ANALYZER ==================================
## ==========================================================================


class AnalyzerState(enum.Enum):
    IDLE = 'idle'
    COMPUTED = 'computed'


class NetworkEfficiencyAnalyzer(object):
    """
    Per-layer KL-divergence efficiency analysis of a binary classifier.

    The analyzer owns the histograms and results of one run. After a
    successful analyze() it is COMPUTED and its results are readable; reset()
    clears everything and returns it to IDLE, which is required before the
    next run. A failed run leaves it IDLE with nothing exposed.
    """

    def __init__(self, config: EfficiencyAnalyzerConfig = None, config_path: str = None) -> None:
        # Load config from YAML or use defaults
        if config_path:
            self.config = EfficiencyAnalyzerConfig.from_yaml(config_path)
        elif config:
            self.config = config
        else:
            self.config = EfficiencyAnalyzerConfig()

        self.n_classes = self.config.estimator.n_classes
        self.reset()


    def __repr__(self):
        return f"NetworkEfficiencyAnalyzer(state={self.state.value})"


    def reset(self) -> None:
        """Discard all histograms, results and the last recorded failure."""
        self.state = AnalyzerState.IDLE
        self.report: Optional[NetworkEfficiencyReport] = None
        self.last_error: Optional[Exception] = None


    @property
    def is_computed(self) -> bool:
        return self.state is AnalyzerState.COMPUTED


    def _require_computed(self) -> NetworkEfficiencyReport:
        if not self.is_computed:
            raise RuntimeError("No results available. Call analyze() first.")
        return self.report


    def analyze(self, network, dataset: Dataset,
                expected_sample_count: Optional[int] = None) -> NetworkEfficiencyReport:
        """
        Run the full efficiency analysis of a network on a labeled dataset.

        Args:
            network: engine exposing layer_sizes, layer_configurations() and output()
            dataset: list of LabeledPoint, (inputs, labels) tensors, or a DataFrame
            expected_sample_count: externally computed sample count, used in messages only

        Returns:
            NetworkEfficiencyReport

        Raises:
            RuntimeError: if the analyzer still holds results from a previous run
            DegenerateDatasetError: if one ground-truth class is absent
            InvalidLayerWidthError: if a layer has no nodes
            NegativeDivergenceError: if a layer's KL divergence is negative and the
                geometric mean policy is 'raise'
        """
        if self.state is not AnalyzerState.IDLE:
            raise RuntimeError("Analyzer already holds results. Call reset() before analyzing again.")

        estimator_config = self.config.estimator
        try:
            inputs, labels = prepare_dataset(dataset)
            layer_histograms = build_layer_histograms(
                network, inputs, labels,
                expected_sample_count=expected_sample_count,
                activation_threshold=estimator_config.activation_threshold,
                output_threshold=estimator_config.output_threshold,
                show_progress=estimator_config.show_progress,
            )
            layer_results = analyze_layers(layer_histograms, network.layer_sizes, self.n_classes)
        except EfficiencyAnalysisError:
            self.reset()
            raise

        report_warnings = []
        layers = []
        for layer_idx, (reference, kl_value, usage) in enumerate(layer_results):
            if kl_value < 0:
                message = f"layer {layer_idx}: KL divergence {kl_value} is less than zero"
                _emit_arithmetic_warning(message)
                report_warnings.append(message)
            layers.append(LayerEfficiencyResult(
                layer_index=layer_idx,
                reference=reference,
                kl_divergence=kl_value,
                histogram=MappingProxyType(dict(layer_histograms.histograms[layer_idx])),
                state_usage=MappingProxyType(usage),
            ))

        kl_values = [layer.kl_divergence for layer in layers]
        arithmetic_mean = arithmetic_mean_kl(kl_values)
        geometric_mean, geometric_warnings = geometric_mean_kl(
            kl_values, negative_policy=estimator_config.geometric_mean_negative_policy)
        for message in geometric_warnings:
            _emit_arithmetic_warning(message)
        report_warnings.extend(geometric_warnings)

        logger.info(f"arithmetic avg. KL divergence: {round(arithmetic_mean, 3)}")
        logger.info(f"geometric avg. KL divergence: {round(geometric_mean, 3)}")

        self.report = NetworkEfficiencyReport(
            layers=tuple(layers),
            arithmetic_mean_kl=arithmetic_mean,
            geometric_mean_kl=geometric_mean,
            negative_count=layer_histograms.negative_count,
            positive_count=layer_histograms.positive_count,
            warnings=tuple(report_warnings),
        )
        self.state = AnalyzerState.COMPUTED
        return self.report


    def compute_network_inefficiency_per_layer(self, network, dataset: Dataset,
                                               expected_sample_count: Optional[int] = None
                                               ) -> Optional[List[float]]:
        """
        Sentinel-returning form of analyze().

        Returns:
            the per-layer KL divergences, or None if the run failed; the
            failure is logged and kept on ``last_error``
        """
        self.last_error = None
        try:
            return self.analyze(network, dataset, expected_sample_count).kl_divergences
        except (EfficiencyAnalysisError, NegativeDivergenceError) as e:
            self.last_error = e
            logger.error(f"network efficiency analysis failed: {e}")
            return None


    ## Read-only accessors for the reporting layer

    @property
    def layer_histograms(self) -> List[Mapping[ConfigurationKey, int]]:
        return self._require_computed().layer_histograms

    @property
    def kl_divergences(self) -> List[float]:
        return self._require_computed().kl_divergences

    @property
    def arithmetic_mean_kl(self) -> float:
        return self._require_computed().arithmetic_mean_kl

    @property
    def geometric_mean_kl(self) -> float:
        return self._require_computed().geometric_mean_kl

    def state_usage_table(self) -> List[List[LabelStateUsage]]:
        """[layer][label index] grid of state usage records."""
        report = self._require_computed()
        return [[layer.state_usage[PredictedLabel.from_index(i)] for i in range(self.n_classes)]
                for layer in report.layers]

    def get_state_dict(self) -> Dict[str, Any]:
        """Serializable summary of the current results (see NetworkEfficiencyReport.to_dict)."""
        return self._require_computed().to_dict()
