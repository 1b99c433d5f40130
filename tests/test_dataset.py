"""
test_dataset.py
~~~~~~~~~~~~~~~

Unit tests for the feature/target loaders and console input helpers.
"""

import numpy as np
import pytest

from digit_nn.services.dataset import (
    load_inputs,
    load_targets,
    normalize_inputs,
    parse_feature_line,
)


@pytest.mark.unit
class TestLoadInputs:
    """Test the line-window feature loader."""

    def test_window_and_width(self, small_dataset):
        """Test 1-indexed start, row limit and dropping extra fields."""
        dataset_path, _ = small_dataset
        inputs = load_inputs(dataset_path, start_line=1, max_lines=3, width=4)
        assert inputs.shape == (3, 4)
        np.testing.assert_array_equal(inputs[0], [0, 0, 0, 0])
        np.testing.assert_array_equal(inputs[2], [1, 1, 1, 1])

    def test_start_line(self, small_dataset):
        """Test that reading starts at the requested line."""
        dataset_path, _ = small_dataset
        inputs = load_inputs(dataset_path, start_line=5, max_lines=10, width=4)
        assert inputs.shape == (4, 4)
        np.testing.assert_array_equal(inputs[0], [0, 0.1, 0, 0])

    def test_short_lines_skipped_and_not_counted(self, tmp_path):
        """Test that lines with too few fields are skipped."""
        path = tmp_path / "features.csv"
        path.write_text("1,2,3\n1,2\n4,5,6\n7,8,9\n")
        inputs = load_inputs(path, start_line=1, max_lines=2, width=3)
        np.testing.assert_array_equal(inputs, [[1, 2, 3], [4, 5, 6]])

    def test_trailing_comma_does_not_count_as_field(self, tmp_path):
        """Test that a short line ending in a comma is skipped, not parsed."""
        path = tmp_path / "features.csv"
        path.write_text("1,2,3,\n1,2,3,4\n5,6,7,8,\n")
        inputs = load_inputs(path, start_line=1, max_lines=10, width=4)
        np.testing.assert_array_equal(inputs, [[1, 2, 3, 4], [5, 6, 7, 8]])

    def test_missing_file_returns_empty(self, tmp_path, caplog):
        """Test that an unreadable file yields zero rows and an error log."""
        inputs = load_inputs(tmp_path / "missing.csv", 1, 10, width=400)
        assert inputs.shape == (0, 400)
        assert "Error reading inputs" in caplog.text

    def test_non_numeric_field_raises(self, tmp_path):
        """Test that malformed numbers are fatal."""
        path = tmp_path / "features.csv"
        path.write_text("1,two,3\n")
        with pytest.raises(ValueError):
            load_inputs(path, 1, 1, width=3)


@pytest.mark.unit
class TestLoadTargets:
    """Test the target loader."""

    def test_first_field_in_window(self, tmp_path):
        """Test that only the first field of each line is used."""
        path = tmp_path / "targets.csv"
        path.write_text("0,9\n1,9\n1\n0\n")
        targets = load_targets(path, start_line=2, max_lines=2)
        np.testing.assert_array_equal(targets, [1.0, 1.0])

    def test_blank_lines_skipped(self, tmp_path):
        """Test that empty lines are not parsed."""
        path = tmp_path / "targets.csv"
        path.write_text("0\n\n1\n")
        np.testing.assert_array_equal(load_targets(path, 1, 10), [0.0, 1.0])

    def test_missing_file_returns_empty(self, tmp_path, caplog):
        """Test that an unreadable file yields zero targets."""
        assert load_targets(tmp_path / "missing.csv", 1, 10).size == 0
        assert "Error reading targets" in caplog.text


@pytest.mark.unit
class TestConsoleInput:
    """Test parsing and normalizing an ad-hoc feature line."""

    def test_parse_feature_line(self):
        """Test comma splitting with a trailing newline."""
        np.testing.assert_array_equal(parse_feature_line("1,2.5,-3\n"), [1.0, 2.5, -3.0])

    def test_normalize_to_unit_range(self):
        """Test min-max scaling by the line's own range."""
        np.testing.assert_allclose(normalize_inputs([2.0, 4.0, 6.0]), [0.0, 0.5, 1.0])

    def test_constant_line_becomes_zeros(self):
        """Test the degenerate zero-range case."""
        np.testing.assert_array_equal(normalize_inputs([7.0, 7.0, 7.0]), [0.0, 0.0, 0.0])

    def test_empty_line(self):
        """Test that an empty vector passes through."""
        assert normalize_inputs([]).size == 0
