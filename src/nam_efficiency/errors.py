"""
Error and warning types raised by the network efficiency analysis.

Fatal conditions abort a run and are raised as exceptions; non-fatal numeric
oddities are emitted as ArithmeticWarning and recorded on the report.
"""

from typing import Optional


class EfficiencyAnalysisError(ValueError):
    """Base class for conditions that make an efficiency analysis run fail."""


class DegenerateDatasetError(EfficiencyAnalysisError):
    """
    One ground-truth class is entirely absent from the evaluated samples.

    Without samples of both classes there is nothing to normalize the
    per-label histograms by, so no reference comparison is meaningful.
    """

    def __init__(self, negative_count: int, positive_count: int,
                 expected_sample_count: Optional[int] = None):
        self.negative_count = negative_count
        self.positive_count = positive_count
        self.expected_sample_count = expected_sample_count
        message = (f"dataset contains only one label: negative_count={negative_count}, "
                   f"positive_count={positive_count}")
        if expected_sample_count is not None:
            message += f" (expected {expected_sample_count} samples)"
        super().__init__(message)


class InvalidLayerWidthError(EfficiencyAnalysisError):
    """A layer has no nodes, so the reference distribution is undefined."""

    def __init__(self, node_count: int, layer_index: Optional[int] = None):
        self.node_count = node_count
        self.layer_index = layer_index
        where = f"layer {layer_index}" if layer_index is not None else "layer"
        super().__init__(f"{where} has node_count={node_count}; a layer needs at least one node")


class NegativeDivergenceError(ArithmeticError):
    """Raised by the 'raise' geometric-mean policy when a divergence is negative."""


class ArithmeticWarning(RuntimeWarning):
    """
    Non-fatal numeric condition: a negative layer divergence, or a geometric
    mean that would need a fractional power of a negative product.
    """
