"""
Data models for evaluation reports and the inference API.

Notes
-----
- Feature vectors are plain lists of floats. Their length must match the
  input width of the loaded network; this is checked where the network is
  known (the API layer), not here.
- Targets follow the dataset convention: 0.0 for the digit "0", 1.0 for "1".
"""

from typing import Annotated, List

from pydantic import BaseModel, Field


class ExampleResult(BaseModel):
    """Outcome for one test example.

    Attributes
    ----------
    index : int
        1-based position of the example in the test set.
    expected : int
        Target class, the target truncated to an integer.
    output : float
        Raw network output in (0, 1).
    predicted : int
        ``1`` if ``output >= threshold`` else ``0``.
    correct : bool
        Whether ``predicted == expected``.
    """
    index: int
    expected: int
    output: float
    predicted: int
    correct: bool


class EvaluationReport(BaseModel):
    """Aggregate test results.

    ``accuracy`` is a percentage. ``accuracy`` and ``rmse`` are NaN when the
    report covers zero examples.
    """
    total: int
    correct: int
    accuracy: float
    rmse: float
    threshold: float = 0.5
    tp: int = 0
    tn: int = 0
    fp: int = 0
    fn: int = 0
    results: List[ExampleResult] = Field(default_factory=list)

    @property
    def wrong(self) -> int:
        return self.total - self.correct


class PredictRequest(BaseModel):
    """Single feature vector for inference.

    Attributes
    ----------
    features : list[float]
        Raw feature values.
    normalize : bool
        Min-max scale the vector to [0, 1] by its own range first, as the
        console inference mode does.
    """
    features: List[float]
    normalize: bool = False


class LabeledExample(BaseModel):
    """Feature vector with its ground-truth class, for evaluation."""
    features: List[float]
    target: Annotated[int, Field(ge=0, le=1)]
