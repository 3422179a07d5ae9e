
## Imports for the network efficiency analysis:
## --------------------------------------------

## Import configuration
from .efficiency_config import EfficiencyAnalyzerConfig, EfficiencyEstimatorConfig, \
                               NetworkConfig, CrossValidationConfig

## Import error types
from .errors import EfficiencyAnalysisError, DegenerateDatasetError, InvalidLayerWidthError, \
                    NegativeDivergenceError, ArithmeticWarning

## Import the network engine and dataset preparation routines
from .network import FeedForwardNetwork
from .data_prep import LabeledPoint, points_to_tensors, dataframe_to_points, prepare_dataset


## Import main efficiency calculation routines
from .histograms import PredictedLabel, ConfigurationKey, build_configuration_key, build_layer_histograms
from .kl import reference_distribution, layer_kl_divergence, track_state_usage, \
                arithmetic_mean_kl, geometric_mean_kl
from .analyzer import NetworkEfficiencyAnalyzer, NetworkEfficiencyReport, LayerEfficiencyResult
from .cross_validation import summarize_kl_runs, cross_validate_kl
from .baseline import BaselineModel

__version__ = "0.1.0"
