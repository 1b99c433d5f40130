"""
test_metrics.py
~~~~~~~~~~~~~~~

Unit tests for test-set scoring.
"""

import logging
import math

import pytest

from digit_nn.services.metrics import evaluate_predictions, report_frame


@pytest.mark.unit
class TestEvaluatePredictions:
    """Test accuracy, RMSE and per-example rows."""

    def test_all_correct_has_nonzero_rmse(self):
        """Test that perfect classification still reports the continuous error."""
        outputs = [0.2, 0.9, 0.4, 0.7]
        targets = [0.0, 1.0, 0.0, 1.0]
        report = evaluate_predictions(outputs, targets)

        assert report.accuracy == 100.0
        assert report.correct == 4
        assert report.wrong == 0
        expected_rmse = math.sqrt((0.04 + 0.01 + 0.16 + 0.09) / 4)
        assert report.rmse == pytest.approx(expected_rmse)
        assert report.rmse > 0

    def test_threshold_is_inclusive(self):
        """Test that an output of exactly 0.5 predicts class 1."""
        report = evaluate_predictions([0.5], [1.0])
        assert report.results[0].predicted == 1
        assert report.accuracy == 100.0

    def test_confusion_counts_and_rows(self):
        """Test the per-example rows and the confusion matrix."""
        report = evaluate_predictions([0.8, 0.3, 0.6, 0.1], [1.0, 1.0, 0.0, 0.0])
        assert (report.tp, report.fn, report.fp, report.tn) == (1, 1, 1, 1)
        assert report.accuracy == 50.0
        assert [r.index for r in report.results] == [1, 2, 3, 4]
        assert [r.correct for r in report.results] == [True, False, False, True]

    def test_empty_dataset_is_nan(self, caplog):
        """Test that zero examples give NaN accuracy and RMSE instead of crashing."""
        with caplog.at_level(logging.WARNING):
            report = evaluate_predictions([], [])
        assert report.total == 0
        assert report.wrong == 0
        assert math.isnan(report.accuracy)
        assert math.isnan(report.rmse)
        assert report.results == []
        assert "zero examples" in caplog.text

    def test_non_binary_target_truncated_with_warning(self, caplog):
        """Test that expected classes truncate toward zero and are flagged."""
        with caplog.at_level(logging.WARNING):
            report = evaluate_predictions([0.95], [0.9])
        assert report.results[0].expected == 0
        assert report.results[0].correct is False
        assert "Non-binary targets" in caplog.text

    def test_length_mismatch(self):
        """Test that outputs and targets must align."""
        with pytest.raises(ValueError):
            evaluate_predictions([0.1, 0.2], [0.0])


@pytest.mark.unit
def test_report_frame():
    """Test the console table layout."""
    report = evaluate_predictions([0.2, 0.9], [0.0, 0.0])
    frame = report_frame(report)
    assert frame.index.name == "index"
    assert list(frame.columns) == ["expected", "output", "predicted", "correct"]
    assert list(frame["correct"]) == ["Yes", "No"]
