"""
Test-set scoring for the binary digit classifier.

This module implements:
- `evaluate_predictions`: per-example outcomes, accuracy (%), RMSE and the
  confusion counts for continuous outputs thresholded at 0.5.
- `report_frame`: the per-example outcomes as a pandas DataFrame, for the
  console table.

Notes
-----
- The expected class is the target truncated with ``int()``. Targets are
  meant to be exactly 0.0 or 1.0; anything else is logged as a warning
  because truncation would silently map e.g. 0.9 to class 0.
- RMSE is computed on the continuous outputs, so a perfectly classified set
  still has a non-zero RMSE.
- Zero examples give NaN accuracy and RMSE.
"""

import logging
import math
from typing import Sequence

import numpy as np
import pandas as pd

from ..schemas import EvaluationReport, ExampleResult

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["index", "expected", "output", "predicted", "correct"]


def evaluate_predictions(
    outputs: Sequence[float],
    targets: Sequence[float],
    threshold: float = 0.5
) -> EvaluationReport:
    """Score network outputs against targets.

    Args
    ----
    outputs:
        Network outputs in (0, 1), one per example.
    targets:
        Targets aligned with ``outputs``.
    threshold:
        Outputs ``>= threshold`` are predicted as class 1.

    Returns
    -------
    EvaluationReport
        Totals, accuracy in percent, RMSE, confusion counts and the
        per-example rows.
    """
    outputs = np.asarray(outputs, dtype=float).ravel()
    targets = np.asarray(targets, dtype=float).ravel()
    if outputs.shape != targets.shape:
        raise ValueError(
            f"Got {outputs.size} outputs for {targets.size} targets"
        )

    total = int(outputs.size)
    if total == 0:
        logger.warning("Evaluating on zero examples; accuracy and RMSE are undefined")
        return EvaluationReport(
            total=0, correct=0, accuracy=math.nan, rmse=math.nan, threshold=threshold
        )

    if not np.all((targets == 0.0) | (targets == 1.0)):
        logger.warning("Non-binary targets found; expected classes are truncated with int()")

    expected = targets.astype(int)
    predicted = (outputs >= threshold).astype(int)
    hits = predicted == expected

    # Confusion matrix counts
    tp = int(np.sum((predicted == 1) & (expected == 1)))
    tn = int(np.sum((predicted == 0) & (expected == 0)))
    fp = int(np.sum((predicted == 1) & (expected == 0)))
    fn = int(np.sum((predicted == 0) & (expected == 1)))

    correct = int(np.sum(hits))
    squared_error = float(np.sum((targets - outputs) ** 2))

    results = [
        ExampleResult(
            index=i + 1,
            expected=int(expected[i]),
            output=float(outputs[i]),
            predicted=int(predicted[i]),
            correct=bool(hits[i]),
        )
        for i in range(total)
    ]

    return EvaluationReport(
        total=total,
        correct=correct,
        accuracy=correct / total * 100.0,
        rmse=math.sqrt(squared_error / total),
        threshold=threshold,
        tp=tp, tn=tn, fp=fp, fn=fn,
        results=results,
    )


def report_frame(report: EvaluationReport) -> pd.DataFrame:
    """Per-example rows of ``report`` as a DataFrame indexed like the console table."""
    frame = pd.DataFrame(
        [[r.index, r.expected, r.output, r.predicted, "Yes" if r.correct else "No"] for r in report.results],
        columns=REPORT_COLUMNS,
    )
    return frame.set_index("index")
