"""
config.py
~~~~~~~~~

Runtime settings and logging setup.

Defaults reproduce the classic experiment: the first 500 lines of
``dataset.csv`` / ``targets.csv`` train a 400-input single-neuron network
and the next 300 lines test it. Every field can be overridden with a
``DIGIT_NN_<FIELD>`` environment variable, and the CLI flags override both.
"""

import logging
import os
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

ENV_PREFIX = "DIGIT_NN_"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging() -> None:
    """
    Set up root logging from the ``LOG_LEVEL`` environment variable.

    Unknown level names fall back to INFO.
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)


def parse_topology(value: Any) -> List[int]:
    """Accept ``"400,16,1"`` as well as a list of ints."""
    if isinstance(value, str):
        return [int(token) for token in value.split(",") if token.strip()]
    return [int(n) for n in value]


class Settings(BaseModel):
    """
    Paths and hyper-parameters for a training or inference run.

    Attributes:
        topology: ``[input_width, n_1, ..., 1]``; the first entry must equal
            ``feature_width`` and the network ends in a single neuron.
        max_epochs: Safety cap on training epochs; None disables it.
        seed: Seed for weight initialisation; None draws fresh entropy.
    """
    dataset_path: Path = Path("dataset.csv")
    targets_path: Path = Path("targets.csv")
    weights_path: Path = Path("weights.csv")
    mse_log_path: Optional[Path] = Path("mse_values.txt")

    feature_width: Annotated[int, Field(gt=0)] = 400
    topology: List[int] = Field(default_factory=lambda: [400, 1])

    train_start: Annotated[int, Field(ge=1)] = 1
    train_count: Annotated[int, Field(ge=0)] = 500
    test_start: Annotated[int, Field(ge=1)] = 501
    test_count: Annotated[int, Field(ge=0)] = 300

    mse_threshold: Annotated[float, Field(gt=0.0)] = 0.00001
    learning_rate: Annotated[float, Field(ge=0.0)] = 0.1
    max_epochs: Optional[Annotated[int, Field(gt=0)]] = 100_000
    seed: Optional[int] = None

    @field_validator("topology", mode="before")
    @classmethod
    def _split_topology(cls, value: Any) -> List[int]:
        return parse_topology(value)

    @field_validator("topology")
    @classmethod
    def _check_topology(cls, value: List[int]) -> List[int]:
        if len(value) < 2:
            raise ValueError("topology needs an input width and at least one layer")
        if any(n < 1 for n in value):
            raise ValueError("topology sizes must be positive")
        if value[-1] != 1:
            raise ValueError("the output layer must have exactly one neuron")
        return value

    @model_validator(mode="after")
    def _check_width(self) -> "Settings":
        if self.topology[0] != self.feature_width:
            raise ValueError(
                f"topology input width {self.topology[0]} does not match "
                f"feature_width {self.feature_width}"
            )
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> "Settings":
        """
        Build settings from ``DIGIT_NN_*`` environment variables.

        Args:
            **overrides: Values taking precedence over the environment;
                ``None`` values are ignored.
        """
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.getenv(ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = None if raw == "" and name in ("max_epochs", "seed", "mse_log_path") else raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
