"""
digit_nn package
~~~~~~~~~~~~~~~~

From-scratch sigmoid network that tells the digit "0" from the digit "1".
Contains the network implementation, dataset loading, weights checkpoints,
evaluation, a command-line tool and an inference API.
"""

__version__ = "1.0.0"

from .network import (  # noqa: E402
    ConvergenceMonitor,
    Layer,
    LengthMismatchError,
    Network,
    Neuron,
    StopReason,
    TrainingResult,
)
from .services.artifacts import CheckpointError  # noqa: E402

__all__ = [
    "ConvergenceMonitor",
    "CheckpointError",
    "Layer",
    "LengthMismatchError",
    "Network",
    "Neuron",
    "StopReason",
    "TrainingResult",
]
