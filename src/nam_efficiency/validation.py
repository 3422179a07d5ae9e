"""
Validation utilities for network efficiency reports.

This module provides validation functions to verify the invariants of the
histograms, reference distributions and state usage tables a completed
analysis produces.
"""

from typing import Dict, List, Tuple

from .histograms import PredictedLabel
from .kl import MAX_COUNT_SENTINEL, MIN_COUNT_SENTINEL


def validate_histogram_label_sums(
    report,
    strict: bool = False,
    raise_on_failure: bool = True
) -> Tuple[bool, List[str]]:
    """
    Validates that every point was counted exactly once per layer.

    Histogram keys carry the predicted label while normalization uses the
    ground-truth counts, so by default this checks:
        - the total count of each layer equals the number of samples
        - the per-label totals are identical in every layer

    With strict=True it also checks that each label's total equals that
    label's ground-truth count, which holds when the network predicts as many
    points of each class as there are.

    Args:
        report: NetworkEfficiencyReport to validate
        strict: Also compare per-label totals with ground-truth counts. Default: False
        raise_on_failure: Raise AssertionError on failure. Default: True

    Returns:
        Tuple of (passed: bool, error_messages: List[str])
    """
    errors = []
    first_label_totals = None

    for layer in report.layers:
        total = sum(layer.histogram.values())
        if total != report.n_samples:
            errors.append(f"layer {layer.layer_index}: histogram total {total} != n_samples {report.n_samples}")

        label_totals = {label: sum(layer.label_histogram(label).values()) for label in PredictedLabel}
        if first_label_totals is None:
            first_label_totals = label_totals
        elif label_totals != first_label_totals:
            errors.append(f"layer {layer.layer_index}: per-label totals {label_totals} differ from "
                          f"layer 0 totals {first_label_totals}")

        if strict:
            for label, label_total in label_totals.items():
                expected = report.label_count(label)
                if label_total != expected:
                    errors.append(f"layer {layer.layer_index}: label {label.value} histogram total "
                                  f"{label_total} != ground-truth count {expected}")

    passed = len(errors) == 0

    if not passed and raise_on_failure:
        raise AssertionError("Histogram label sum validation failed:\n" + "\n".join(errors))

    return passed, errors


def validate_reference_distributions(
    report,
    raise_on_failure: bool = True
) -> Tuple[bool, List[str]]:
    """
    Validates numBins = 2^k and refProb = n_classes / numBins for every layer.

    Returns:
        Tuple of (passed: bool, error_messages: List[str])
    """
    errors = []

    for layer in report.layers:
        reference = layer.reference
        if reference.num_bins != 2 ** reference.node_count:
            errors.append(f"layer {layer.layer_index}: num_bins={reference.num_bins} != "
                          f"2**{reference.node_count}")
        expected_prob = reference.n_classes / reference.num_bins
        if reference.reference_probability != expected_prob:
            errors.append(f"layer {layer.layer_index}: reference_probability="
                          f"{reference.reference_probability} != {expected_prob}")
        if not reference.reference_probability > 0:
            errors.append(f"layer {layer.layer_index}: reference_probability is not positive")

    passed = len(errors) == 0

    if not passed and raise_on_failure:
        raise AssertionError("Reference distribution validation failed:\n" + "\n".join(errors))

    return passed, errors


def validate_state_extrema(
    report,
    raise_on_failure: bool = True
) -> Tuple[bool, List[str]]:
    """
    Validates the per-layer, per-label state usage records.

    Checks:
        - exactly n_classes records per layer
        - state_count equals the number of keys carrying the label
        - min_count <= every observed count <= max_count
        - min_key and max_key belong to the label's histogram and carry those counts
        - unobserved labels still hold the sentinels

    Returns:
        Tuple of (passed: bool, error_messages: List[str])
    """
    errors = []

    for layer in report.layers:
        n_classes = layer.reference.n_classes
        if len(layer.state_usage) != n_classes:
            errors.append(f"layer {layer.layer_index}: {len(layer.state_usage)} usage records, "
                          f"expected {n_classes}")

        for label, usage in layer.state_usage.items():
            where = f"layer {layer.layer_index}, label {label.value}"
            label_histogram = layer.label_histogram(label)

            if usage.state_count != len(label_histogram):
                errors.append(f"{where}: state_count={usage.state_count} != {len(label_histogram)} keys")

            if not usage.observed:
                if label_histogram:
                    errors.append(f"{where}: marked unobserved but has {len(label_histogram)} keys")
                if usage.max_count != MAX_COUNT_SENTINEL or usage.min_count != MIN_COUNT_SENTINEL:
                    errors.append(f"{where}: unobserved label lost its sentinel counts")
                continue

            for key, count in label_histogram.items():
                if not usage.min_count <= count <= usage.max_count:
                    errors.append(f"{where}: count {count} of {key} outside "
                                  f"[{usage.min_count}, {usage.max_count}]")

            if label_histogram.get(usage.max_key) != usage.max_count:
                errors.append(f"{where}: max_key {usage.max_key} does not carry max_count {usage.max_count}")
            if label_histogram.get(usage.min_key) != usage.min_count:
                errors.append(f"{where}: min_key {usage.min_key} does not carry min_count {usage.min_count}")

    passed = len(errors) == 0

    if not passed and raise_on_failure:
        raise AssertionError("State extrema validation failed:\n" + "\n".join(errors))

    return passed, errors


def validate_all(
    report,
    strict_label_sums: bool = False,
    raise_on_failure: bool = True,
    verbose: bool = False
) -> Tuple[bool, Dict[str, Tuple[bool, List[str]]]]:
    """
    Runs all report validations and reports results.

    Args:
        report: NetworkEfficiencyReport to validate
        strict_label_sums: passed to validate_histogram_label_sums as strict
        raise_on_failure: Raise AssertionError on first failure. Default: True
        verbose: Print status for each validation. Default: False

    Returns:
        Tuple of (all_passed: bool, results: Dict mapping validation name to (passed, errors))
    """
    results = {}
    all_passed = True

    validations = [
        ("histogram_label_sums",
         lambda: validate_histogram_label_sums(report, strict=strict_label_sums, raise_on_failure=False)),
        ("reference_distributions", lambda: validate_reference_distributions(report, raise_on_failure=False)),
        ("state_extrema", lambda: validate_state_extrema(report, raise_on_failure=False)),
    ]

    for name, validate_fn in validations:
        passed, errors = validate_fn()
        results[name] = (passed, errors)

        if verbose:
            status = "PASSED" if passed else "FAILED"
            print(f"  {name}: {status}")
            if not passed:
                for err in errors:
                    print(f"    - {err}")

        if not passed:
            all_passed = False
            if raise_on_failure:
                raise AssertionError(
                    f"Validation '{name}' failed:\n" + "\n".join(errors)
                )

    return all_passed, results
