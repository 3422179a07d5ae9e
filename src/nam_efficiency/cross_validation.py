"""
Per-layer KL divergence statistics over repeated train/evaluate runs.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import torch

from .analyzer import NetworkEfficiencyAnalyzer
from .data_prep import Dataset
from .efficiency_config import EfficiencyAnalyzerConfig


logger = logging.getLogger(__name__)



@dataclass(frozen=True)
class KLDivergenceStatistics:
    """Mean and (population) standard deviation of each layer's KL divergence."""
    n_runs: int
    mean: Tuple[float, ...]
    stdev: Tuple[float, ...]
    runs: Tuple[Tuple[float, ...], ...] = ()

    def summary_lines(self) -> List[str]:
        return [f"layer:{i}, avg KL:{round(m, 3)}, stdev KL:{round(s, 3)}"
                for i, (m, s) in enumerate(zip(self.mean, self.stdev))]


@torch.no_grad()
def summarize_kl_runs(runs: Sequence[Sequence[float]]) -> KLDivergenceStatistics:
    """
    Per-layer mean and population standard deviation over runs.

    Args:
        runs: one list of per-layer KL divergences per run, all the same length

    Returns:
        KLDivergenceStatistics

    Raises:
        ValueError: if there are no runs or the runs disagree on the number of layers
    """
    if len(runs) == 0:
        raise ValueError("Need at least one run to summarize.")
    n_layers = len(runs[0])
    if any(len(run) != n_layers for run in runs):
        raise ValueError(f"All runs must report the same number of layers, got {[len(r) for r in runs]}")

    values = torch.tensor([list(run) for run in runs], dtype=torch.float64)   ## [n_runs, n_layers]
    mean = values.mean(dim=0)
    stdev = values.std(dim=0, correction=0)

    return KLDivergenceStatistics(
        n_runs=len(runs),
        mean=tuple(mean.tolist()),
        stdev=tuple(stdev.tolist()),
        runs=tuple(tuple(float(v) for v in run) for run in runs),
    )


def cross_validate_kl(run_fn: Callable[[int], Tuple[object, Dataset]],
                      n_runs: Optional[int] = None,
                      config: Optional[EfficiencyAnalyzerConfig] = None) -> KLDivergenceStatistics:
    """
    Collect per-layer KL divergences over several runs and summarize them.

    Args:
        run_fn: called with the run index; prepares (e.g. retrains) a network and
            returns (network, dataset) to analyze
        n_runs: number of runs, defaults to config.cross_validation.n_runs
        config: analyzer configuration

    Returns:
        KLDivergenceStatistics over all runs

    Raises:
        EfficiencyAnalysisError: if any run fails
    """
    config = config or EfficiencyAnalyzerConfig()
    n_runs = n_runs if n_runs is not None else config.cross_validation.n_runs

    analyzer = NetworkEfficiencyAnalyzer(config=config)
    runs = []
    for run_idx in range(n_runs):
        network, dataset = run_fn(run_idx)
        analyzer.reset()
        report = analyzer.analyze(network, dataset)
        runs.append(report.kl_divergences)

    statistics = summarize_kl_runs(runs)
    logger.info(f"KL divergence stats over {n_runs} runs")
    for line in statistics.summary_lines():
        logger.info(line)
    return statistics
