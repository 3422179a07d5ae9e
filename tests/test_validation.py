"""Test report validation routines."""

import dataclasses
from types import MappingProxyType

import pytest


@pytest.fixture
def sign_report(sign_network, quadrant_points):
    from nam_efficiency.analyzer import NetworkEfficiencyAnalyzer
    return NetworkEfficiencyAnalyzer().analyze(sign_network, quadrant_points)


class TestValidateHistogramLabelSums:
    """Test validate_histogram_label_sums()."""

    def test_valid_report_passes_strict(self, sign_report):
        """Test a perfect classifier satisfies the ground-truth form."""
        from nam_efficiency.validation import validate_histogram_label_sums

        passed, errors = validate_histogram_label_sums(sign_report, strict=True)
        assert passed
        assert errors == []

    def test_misclassification_fails_only_strict(self, sign_network):
        """Test predicted and ground-truth totals may differ without breaking the default check."""
        from nam_efficiency.analyzer import NetworkEfficiencyAnalyzer
        from nam_efficiency.data_prep import LabeledPoint
        from nam_efficiency.validation import validate_histogram_label_sums

        ## (1, 1) is predicted Positive but labeled -1
        points = [LabeledPoint(1.0, 1.0, -1), LabeledPoint(-1.0, 1.0, -1), LabeledPoint(2.0, 1.0, 1)]
        report = NetworkEfficiencyAnalyzer().analyze(sign_network, points)

        assert validate_histogram_label_sums(report)[0]
        passed, errors = validate_histogram_label_sums(report, strict=True, raise_on_failure=False)
        assert not passed
        assert any("ground-truth count" in e for e in errors)

    def test_wrong_sample_count_fails(self, sign_report):
        """Test a report whose counts disagree with its histograms is rejected."""
        from nam_efficiency.validation import validate_histogram_label_sums

        tampered = dataclasses.replace(sign_report, negative_count=sign_report.negative_count + 1)

        with pytest.raises(AssertionError, match="n_samples"):
            validate_histogram_label_sums(tampered)


class TestValidateReferenceDistributions:
    """Test validate_reference_distributions()."""

    def test_valid_report_passes(self, sign_report):
        """Test computed references satisfy numBins = 2^k and refProb = 2 / numBins."""
        from nam_efficiency.validation import validate_reference_distributions

        assert validate_reference_distributions(sign_report) == (True, [])

    def test_wrong_reference_fails(self, sign_report):
        """Test a reference that was not derived from the layer width is rejected."""
        from nam_efficiency.kl import ReferenceDistribution
        from nam_efficiency.validation import validate_reference_distributions

        bad_reference = ReferenceDistribution(node_count=2, n_classes=2, num_bins=4, reference_probability=0.25)
        bad_layer = dataclasses.replace(sign_report.layers[0], reference=bad_reference)
        tampered = dataclasses.replace(sign_report, layers=(bad_layer,) + sign_report.layers[1:])

        passed, errors = validate_reference_distributions(tampered, raise_on_failure=False)
        assert not passed
        assert len(errors) == 1


class TestValidateStateExtrema:
    """Test validate_state_extrema()."""

    def test_valid_report_passes(self, sign_report):
        """Test computed usage records satisfy the extrema invariant."""
        from nam_efficiency.validation import validate_state_extrema

        assert validate_state_extrema(sign_report)[0]

    def test_wrong_max_fails(self, sign_report):
        """Test a max count below an observed count is rejected."""
        from nam_efficiency.histograms import PredictedLabel
        from nam_efficiency.validation import validate_state_extrema

        layer = sign_report.layers[0]
        usage = dict(layer.state_usage)
        usage[PredictedLabel.NEGATIVE] = dataclasses.replace(usage[PredictedLabel.NEGATIVE], max_count=1)
        bad_layer = dataclasses.replace(layer, state_usage=MappingProxyType(usage))
        tampered = dataclasses.replace(sign_report, layers=(bad_layer,) + sign_report.layers[1:])

        passed, errors = validate_state_extrema(tampered, raise_on_failure=False)
        assert not passed
        assert any("outside" in e for e in errors)


class TestValidateAll:
    """Test validate_all()."""

    def test_all_pass(self, sign_report):
        """Test every validation passes on a computed report."""
        from nam_efficiency.validation import validate_all

        all_passed, results = validate_all(sign_report, strict_label_sums=True)

        assert all_passed
        assert set(results) == {"histogram_label_sums", "reference_distributions", "state_extrema"}

    def test_failure_collected_without_raising(self, sign_report):
        """Test failures are collected when raise_on_failure=False."""
        from nam_efficiency.validation import validate_all

        tampered = dataclasses.replace(sign_report, positive_count=0)
        all_passed, results = validate_all(tampered, raise_on_failure=False)

        assert not all_passed
        assert not results["histogram_label_sums"][0]
        assert results["state_extrema"][0]

    def test_verbose_output(self, sign_report, capsys):
        """Test verbose mode prints one status line per validation."""
        from nam_efficiency.validation import validate_all

        validate_all(sign_report, verbose=True)
        assert capsys.readouterr().out.count("PASSED") == 3
