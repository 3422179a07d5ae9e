"""
Helpers for turning labeled 2D point collections into the tensors the
efficiency analysis walks over.
"""

import torch
import pandas as pd

from typing import List, NamedTuple, Tuple, Union

from .errors import DegenerateDatasetError



class LabeledPoint(NamedTuple):
    """A 2D sample with a binary ground-truth label in {-1, +1}."""
    x: float
    y: float
    label: float


Dataset = Union[List[LabeledPoint], Tuple[torch.Tensor, torch.Tensor], pd.DataFrame]


def points_to_tensors(points: List[LabeledPoint]) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Stack a list of labeled points into an input tensor and a label tensor.

    Args:
        points: sequence of LabeledPoint (or any (x, y, label) triples)

    Returns:
        (inputs, labels) -- float64 tensors of shape [N, 2] and [N]
    """
    if len(points) == 0:
        return torch.zeros((0, 2), dtype=torch.float64), torch.zeros(0, dtype=torch.float64)

    inputs = torch.tensor([[p[0], p[1]] for p in points], dtype=torch.float64)
    labels = torch.tensor([p[2] for p in points], dtype=torch.float64)
    return inputs, labels


def dataframe_to_points(data_df: pd.DataFrame, x_column: str = 'x', y_column: str = 'y',
                        label_column: str = 'label') -> List[LabeledPoint]:
    """
    Read labeled points out of a DataFrame.

    Raises:
        ValueError: if one of the named columns is missing
    """
    for column in (x_column, y_column, label_column):
        if column not in data_df.columns:
            raise ValueError(f"The column '{column}' is not a column name in the given "
                             f"dataframe (columns = {list(data_df.columns)}).")

    return [LabeledPoint(float(x), float(y), float(label))
            for x, y, label in zip(data_df[x_column], data_df[y_column], data_df[label_column])]


def prepare_dataset(dataset: Dataset) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Normalize any supported dataset form to (inputs [N, D], labels [N]) tensors.

    Accepted forms are a list of LabeledPoint, a DataFrame with x/y/label
    columns, or an already-prepared (inputs, labels) tensor pair.
    """
    if isinstance(dataset, pd.DataFrame):
        inputs, labels = points_to_tensors(dataframe_to_points(dataset))
    elif isinstance(dataset, tuple) and len(dataset) == 2 and isinstance(dataset[0], torch.Tensor):
        inputs, labels = dataset
        inputs = inputs.to(torch.float64)
        labels = labels.to(torch.float64).reshape(-1)
        if inputs.shape[0] != labels.shape[0]:
            raise ValueError(f"inputs has {inputs.shape[0]} rows but labels has {labels.shape[0]} entries")
    else:
        inputs, labels = points_to_tensors(list(dataset))

    if labels.numel() == 0:
        raise DegenerateDatasetError(negative_count=0, positive_count=0)

    return inputs, labels
