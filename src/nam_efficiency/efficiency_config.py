from pydantic import BaseModel, Field, field_validator
from typing import List, Literal
import yaml



class EfficiencyEstimatorConfig(BaseModel):
    """Configuration for the per-layer KL efficiency estimator."""

    n_classes: Literal[2] = Field(
        default=2,
        description="Number of output classes (binary classification only)"
    )
    activation_threshold: float = Field(
        default=0.0,
        description="A node is in the 'on' regime when its activation exceeds this value"
    )
    output_threshold: float = Field(
        default=0.0,
        description="Network outputs <= this value are predicted Negative, otherwise Positive"
    )
    geometric_mean_negative_policy: Literal['nan', 'absolute', 'raise'] = Field(
        default='nan',
        description="How the geometric mean treats negative layer divergences"
    )
    show_progress: bool = Field(default=False, description="Show a tqdm bar over the dataset pass")


class NetworkConfig(BaseModel):
    """Configuration for building the feed-forward network that gets analyzed."""

    layer_sizes: List[int] = Field(
        default_factory=lambda: [2, 4, 2, 1],
        description="Node counts per layer, input layer first"
    )
    activation: Literal['tanh', 'relu', 'sigmoid', 'linear'] = 'tanh'
    output_activation: Literal['tanh', 'relu', 'sigmoid', 'linear'] = 'tanh'
    seed: int = Field(default=496, ge=0)

    @field_validator('layer_sizes')
    @classmethod
    def validate_layer_sizes(cls, layer_sizes):
        """Need an input layer plus at least one more; widths must be positive."""
        if len(layer_sizes) < 2:
            raise ValueError("layer_sizes needs at least an input and an output layer")
        if any(size < 1 for size in layer_sizes):
            raise ValueError(f"every layer needs at least one node, got {layer_sizes}")
        return layer_sizes


class CrossValidationConfig(BaseModel):
    """Configuration for repeated train/evaluate runs."""

    n_runs: int = Field(default=3, gt=0, description="How many runs to collect KL values over")



class EfficiencyAnalyzerConfig(BaseModel):
    """Main configuration class containing all sub-configurations."""

    estimator: EfficiencyEstimatorConfig = Field(default_factory=EfficiencyEstimatorConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    cross_validation: CrossValidationConfig = Field(default_factory=CrossValidationConfig)

    @classmethod
    def from_yaml(cls, path: str) -> 'EfficiencyAnalyzerConfig':
        """Load configuration from YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'EfficiencyAnalyzerConfig':
        """Load configuration from dictionary."""
        return cls(**config_dict)

    def to_yaml(self, path: str) -> None:
        """Save configuration to YAML file."""
        with open(path, 'w') as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return self.model_dump()
