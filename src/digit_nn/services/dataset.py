"""
Loading feature and target files, and preparing console input.

Both files are plain comma-separated text with one example per line and no
header. A training or test split is a window of lines ``[start_line, ...)``
(1-indexed) of at most ``max_lines`` usable rows, so both files must be cut
with the same window to stay aligned.

Notes
-----
- A feature line needs at least ``width`` fields; shorter lines are skipped
  and do not count toward ``max_lines``. Extra fields are ignored.
- If a file cannot be opened or read, the error is logged and whatever rows
  were parsed so far are returned. Callers see a short (possibly empty)
  dataset rather than an exception.
- A field that is not a number raises ``ValueError``.
"""

import logging
from typing import List

import numpy as np

logger = logging.getLogger(__name__)

FEATURE_WIDTH = 400


def _window(lines, start_line: int):
    """Yield ``(line_no, line)`` for lines numbered ``start_line`` and up."""
    for line_no, line in enumerate(lines, start=1):
        if line_no >= start_line:
            yield line_no, line.rstrip("\r\n")


def load_inputs(path, start_line: int, max_lines: int, width: int = FEATURE_WIDTH) -> np.ndarray:
    """Read up to ``max_lines`` feature rows starting at ``start_line``.

    Args
    ----
    path:
        Feature CSV file.
    start_line:
        First line to consider, 1-indexed.
    max_lines:
        Maximum number of rows to return.
    width:
        Number of leading fields kept per row.

    Returns
    -------
    np.ndarray
        Array of shape ``(n_rows, width)``.
    """
    rows: List[np.ndarray] = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_no, line in _window(f, start_line):
                if len(rows) >= max_lines:
                    break
                tokens = line.rstrip(", \t\r\n").split(",")
                if len(tokens) < width:
                    logger.debug(f"{path}:{line_no}: {len(tokens)} fields, skipping")
                    continue
                rows.append(np.array([float(t) for t in tokens[:width]]))
    except OSError as e:
        logger.error(f"Error reading inputs from {path}: {e}")

    if not rows:
        return np.empty((0, width))
    return np.vstack(rows)


def load_targets(path, start_line: int, max_lines: int) -> np.ndarray:
    """Read up to ``max_lines`` targets (first field of each line) from ``start_line``.

    Blank lines are skipped.
    """
    targets: List[float] = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for _, line in _window(f, start_line):
                if len(targets) >= max_lines:
                    break
                if not line.strip():
                    continue
                targets.append(float(line.split(",")[0]))
    except OSError as e:
        logger.error(f"Error reading targets from {path}: {e}")

    return np.array(targets, dtype=float)


def parse_feature_line(line: str) -> np.ndarray:
    """Parse one comma-separated line of numbers."""
    return np.array([float(token) for token in line.strip().split(",")])


def normalize_inputs(values) -> np.ndarray:
    """Min-max scale a vector to [0, 1] by its own range.

    A constant vector maps to all zeros.
    """
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return values
    lo, hi = float(values.min()), float(values.max())
    if hi - lo == 0:
        return np.zeros_like(values)
    return (values - lo) / (hi - lo)
