"""
From-scratch feed-forward network for the "0" vs "1" digit classifier.

Every step is written out per neuron so the arithmetic stays easy to audit.
The module contains:

- Core building blocks:
    * `Neuron`: weights, bias, cached output/delta, sigmoid activation.
    * `Layer`: a fixed group of neurons fed the same input vector.

- Network:
    * `Network.forward_trace` / `forward` / `predict`: inference.
    * `Network.backward` + `Network.update_weights`: two-phase backprop,
      chained only by `Network.train_step`.
    * `Network.train`: online gradient descent gated by `ConvergenceMonitor`.
    * `Network.test`: accuracy / RMSE report (see `services.metrics`).
    * `Network.save_weights` / `load_weights`: CSV checkpoint
      (see `services.artifacts`).
"""

import logging
import math
import os
from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Union

import numpy as np

from .schemas import EvaluationReport
from .services.artifacts import Checkpoint, CheckpointError, read_checkpoint, write_checkpoint
from .services.metrics import evaluate_predictions

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

# Width of the divergence guard window, in epochs.
STALL_WINDOW = 10

# Upper bound (exclusive) of the uniform weight initialisation.
INIT_WEIGHT_SCALE = 0.01


class LengthMismatchError(ValueError):
    """Raised when a dataset has a different number of inputs and targets."""


def sigmoid(x: float) -> float:
    """Logistic function 1 / (1 + e^-x), clipped to avoid overflow."""
    return float(1.0 / (1.0 + np.exp(-np.clip(x, -500.0, 500.0))))


def sigmoid_derivative_from_output(output: float) -> float:
    """Sigmoid slope expressed through its own output: y * (1 - y)."""
    return output * (1.0 - output)


def _check_lengths(inputs, targets) -> None:
    if len(inputs) != len(targets):
        raise LengthMismatchError(
            f"The number of inputs ({len(inputs)}) does not match "
            f"the number of targets ({len(targets)})."
        )

# -------------
# Core units
# -------------

class Neuron:
    """Single sigmoid unit.

    Attributes:
        weights: one weight per input, float64 vector.
        bias: additive bias.
        output: activation from the most recent `activate` call.
        delta: error signal applied by the most recent weight update.
    """
    def __init__(self, weights: Sequence[float], bias: float = 0.0) -> None:
        self.weights = np.array(weights, dtype=float)
        self.bias = float(bias)
        self.output = 0.0
        self.delta = 0.0

    @property
    def input_width(self) -> int:
        return int(self.weights.shape[0])

    def net_input(self, inputs: np.ndarray) -> float:
        """Weighted sum plus bias. Raises ValueError on a width mismatch."""
        return self.bias + float(np.dot(self.weights, inputs))

    def activate(self, inputs: np.ndarray) -> float:
        """Apply the sigmoid to the net input and cache it as `output`."""
        self.output = sigmoid(self.net_input(inputs))
        return self.output

    def sigmoid_derivative(self) -> float:
        """Slope at the cached output (0.0 before the first activation)."""
        return sigmoid_derivative_from_output(self.output)


class Layer:
    """Fully-connected group of neurons sharing one input vector.

    Weights start uniform in [0, 0.01) and biases at 0.0.
    """
    def __init__(
        self,
        neuron_count: int,
        input_width: int,
        rng: Optional[np.random.Generator] = None
    ) -> None:
        if neuron_count < 1 or input_width < 1:
            raise ValueError(
                f"Layer needs at least one neuron and one input, "
                f"got {neuron_count} neurons x {input_width} inputs"
            )
        rng = rng if rng is not None else np.random.default_rng()
        self.neurons: List[Neuron] = [
            Neuron(rng.random(input_width) * INIT_WEIGHT_SCALE, 0.0)
            for _ in range(neuron_count)
        ]

    @property
    def input_width(self) -> int:
        return self.neurons[0].input_width

    def __len__(self) -> int:
        return len(self.neurons)

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        """Activate every neuron on `inputs`; returns their outputs in order."""
        return np.array([neuron.activate(inputs) for neuron in self.neurons])

# -------------------------
# Training bookkeeping
# -------------------------

@dataclass
class ForwardTrace:
    """Activations recorded for one example.

    `inputs[i]` is the vector layer i received and `outputs[i]` the vector it
    produced, so `inputs[i + 1]` is `outputs[i]`.
    """
    inputs: List[np.ndarray] = field(default_factory=list)
    outputs: List[np.ndarray] = field(default_factory=list)

    @property
    def output(self) -> float:
        """Scalar activation of the final neuron."""
        return float(self.outputs[-1][0])


class StopReason(str, Enum):
    CONVERGED = "converged"
    STALLED = "stalled"
    MAX_EPOCHS = "max_epochs"
    NO_DATA = "no_data"


class ConvergenceMonitor:
    """Decide after each epoch whether training should stop.

    Checks, in order:
        1) `mse < mse_threshold` -> CONVERGED.
        2) Every `window` epochs, `mse` no lower than the value recorded
           `window` epochs earlier -> STALLED. At the first check the oldest
           recorded epoch stands in as the reference.
        3) `max_epochs` reached -> MAX_EPOCHS.

    Args:
        mse_threshold: Convergence threshold on the epoch MSE.
        window: Epoch interval of the divergence guard.
        max_epochs: Optional hard cap; None leaves training unbounded.
    """
    def __init__(
        self,
        mse_threshold: float,
        window: int = STALL_WINDOW,
        max_epochs: Optional[int] = None
    ) -> None:
        if window < 1:
            raise ValueError(f"window must be positive, got {window}")
        if max_epochs is not None and max_epochs < 1:
            raise ValueError(f"max_epochs must be positive, got {max_epochs}")
        self.mse_threshold = mse_threshold
        self.window = window
        self.max_epochs = max_epochs
        self.history: List[float] = []
        self.stop = False
        self.reason: Optional[StopReason] = None

    @property
    def epoch(self) -> int:
        return len(self.history)

    def step(self, mse: float) -> bool:
        """Record one epoch MSE; returns True when training should stop."""
        self.history.append(mse)
        epoch = self.epoch

        if mse < self.mse_threshold:
            self.reason = StopReason.CONVERGED
        elif epoch % self.window == 0:
            reference = self.history[max(epoch - self.window - 1, 0)]
            if mse >= reference:
                self.reason = StopReason.STALLED

        if self.reason is None and self.max_epochs is not None and epoch >= self.max_epochs:
            self.reason = StopReason.MAX_EPOCHS

        self.stop = self.reason is not None
        return self.stop


@dataclass
class TrainingResult:
    final_mse: float
    epochs: int
    stop_reason: StopReason
    history: List[float] = field(default_factory=list)
    checkpoint_saved: bool = False

# -----------------
# Model definition
# -----------------

class Network:
    """Ordered stack of sigmoid layers ending in a single output neuron.

    Args:
        layers: Layers in forward order. Each layer's input width must equal
            the previous layer's neuron count, and the last layer must hold
            exactly one neuron.

    Notes:
        - A network instance is not safe to share between threads; `train`
          owns its weights for the whole run.
    """
    def __init__(self, layers: Sequence[Layer]) -> None:
        if not layers:
            raise ValueError("Network needs at least one layer")
        for prev, layer in zip(layers, layers[1:]):
            if layer.input_width != len(prev):
                raise ValueError(
                    f"Layer input width {layer.input_width} does not match "
                    f"the {len(prev)} neurons of the previous layer"
                )
        if len(layers[-1]) != 1:
            raise ValueError(
                f"Output layer must have exactly one neuron, got {len(layers[-1])}"
            )
        self.layers: List[Layer] = list(layers)
        self.learning_rate = 0.0

    @classmethod
    def from_topology(cls, topology: Sequence[int], seed: Optional[int] = None) -> "Network":
        """Build a randomly initialised network from `[input_width, n1, ..., 1]`."""
        if len(topology) < 2:
            raise ValueError(f"Topology needs an input width and one layer, got {list(topology)}")
        rng = np.random.default_rng(seed)
        layers = [
            Layer(neuron_count, input_width, rng=rng)
            for input_width, neuron_count in zip(topology, topology[1:])
        ]
        return cls(layers)

    @classmethod
    def from_checkpoint(
        cls,
        path: PathLike,
        default_topology: Optional[Sequence[int]] = None
    ) -> "Network":
        """Build a network shaped and weighted by a checkpoint.

        Args:
            path: Checkpoint file.
            default_topology: Shape to assume when the file has no topology
                header.

        Raises:
            OSError: If the file cannot be read.
            CheckpointError: If the file is malformed, or has no header and
                no `default_topology` was given.
        """
        checkpoint = read_checkpoint(path)
        topology = checkpoint.topology or default_topology
        if topology is None:
            raise CheckpointError(f"{path}: checkpoint has no topology header")
        network = cls.from_topology(topology)
        network._assign(checkpoint, source=path)
        return network

    @property
    def topology(self) -> List[int]:
        """`[input_width, neurons_in_layer_1, ..., 1]`."""
        return [self.layers[0].input_width] + [len(layer) for layer in self.layers]

    # -- inference --------------------------------------------------------

    def forward_trace(self, x: Sequence[float]) -> ForwardTrace:
        """Thread `x` through every layer, recording each layer's input and output."""
        trace = ForwardTrace()
        signal = np.asarray(x, dtype=float)
        for layer in self.layers:
            trace.inputs.append(signal)
            signal = layer.forward(signal)
            trace.outputs.append(signal)
        return trace

    def forward(self, x: Sequence[float]) -> float:
        """Scalar output of the final neuron for input `x`."""
        return self.forward_trace(x).output

    def predict(self, x: Sequence[float]) -> float:
        """Single-example inference entry point (same as `forward`)."""
        return self.forward(x)

    # -- learning ---------------------------------------------------------

    def backward(self, trace: ForwardTrace, target: float) -> List[np.ndarray]:
        """Compute every neuron's delta for one example without touching weights.

        The output delta is `(target - y) * y * (1 - y)`; a hidden neuron j gets
        `y_j * (1 - y_j) * sum_k(w_kj * delta_k)` over the next layer, using the
        weights as they are now. Apply the result with `update_weights`.

        Returns:
            One delta vector per layer, in forward order.
        """
        deltas: List[np.ndarray] = [np.empty(0)] * len(self.layers)

        output = trace.output
        deltas[-1] = np.array([(target - output) * sigmoid_derivative_from_output(output)])

        for i in range(len(self.layers) - 2, -1, -1):
            next_layer = self.layers[i + 1]
            next_deltas = deltas[i + 1]
            outputs = trace.outputs[i]
            layer_deltas = np.empty(len(self.layers[i]))
            for j in range(len(self.layers[i])):
                downstream = sum(
                    neuron.weights[j] * delta
                    for neuron, delta in zip(next_layer.neurons, next_deltas)
                )
                layer_deltas[j] = sigmoid_derivative_from_output(outputs[j]) * downstream
            deltas[i] = layer_deltas

        return deltas

    def update_weights(
        self,
        trace: ForwardTrace,
        deltas: Sequence[np.ndarray],
        learning_rate: Optional[float] = None
    ) -> None:
        """Apply `w += lr * delta * layer_input` and `b += lr * delta` to every neuron.

        `layer_input` is the network input for the first layer and the previous
        layer's recorded outputs afterwards.
        """
        lr = self.learning_rate if learning_rate is None else learning_rate
        for layer, layer_input, layer_deltas in zip(self.layers, trace.inputs, deltas):
            for neuron, delta in zip(layer.neurons, layer_deltas):
                neuron.delta = float(delta)
                neuron.weights += lr * neuron.delta * layer_input
                neuron.bias += lr * neuron.delta

    def train_step(self, x: Sequence[float], target: float) -> float:
        """One online update on a single example; returns its `0.5 * error^2`."""
        trace = self.forward_trace(x)
        deltas = self.backward(trace, target)
        self.update_weights(trace, deltas)
        error = target - trace.output
        return 0.5 * error ** 2

    def train(
        self,
        inputs: Sequence[Sequence[float]],
        targets: Sequence[float],
        mse_threshold: float,
        learning_rate: float,
        max_epochs: Optional[int] = None,
        mse_log_path: Optional[PathLike] = None,
        checkpoint_path: Optional[PathLike] = None,
    ) -> TrainingResult:
        """Online gradient descent until `ConvergenceMonitor` says stop.

        Each epoch sweeps all examples in order with `train_step` and averages
        the per-example `0.5 * error^2` into the epoch MSE.

        Args:
            inputs: Feature vectors, one per example.
            targets: Scalar targets in {0.0, 1.0}, aligned with `inputs`.
            mse_threshold: Stop once the epoch MSE falls below this value.
            learning_rate: Step size, kept on the network for `update_weights`.
            max_epochs: Optional safety cap on the number of epochs.
            mse_log_path: File receiving one MSE line per epoch (truncated at
                start); None disables the log.
            checkpoint_path: Where to save the weights after training; None
                skips the checkpoint.

        Returns:
            TrainingResult with the final MSE, epochs run and why training stopped.

        Raises:
            LengthMismatchError: If `inputs` and `targets` differ in length.
        """
        _check_lengths(inputs, targets)
        self.learning_rate = learning_rate

        if len(inputs) == 0:
            logger.warning("No training examples; skipping training")
            return TrainingResult(math.nan, 0, StopReason.NO_DATA, [])

        monitor = ConvergenceMonitor(mse_threshold, max_epochs=max_epochs)
        samples = [np.asarray(x, dtype=float) for x in inputs]

        with _open_mse_log(mse_log_path) as log_file:
            while not monitor.stop:
                total_error = 0.0
                for x, target in zip(samples, targets):
                    total_error += self.train_step(x, float(target))
                mse = total_error / len(samples)

                if log_file is not None:
                    log_file.write(f"{mse:.100f}".replace(".", ",") + "\n")
                logger.debug(f"Epoch {monitor.epoch + 1}: mse={mse:.10f}")
                monitor.step(mse)

        result = TrainingResult(
            final_mse=monitor.history[-1],
            epochs=monitor.epoch,
            stop_reason=monitor.reason,
            history=list(monitor.history),
        )
        logger.info(
            f"Training stopped after {result.epochs} epochs "
            f"({result.stop_reason.value}), final mse={result.final_mse:.10f}"
        )

        if checkpoint_path is not None:
            result.checkpoint_saved = self.save_weights(checkpoint_path)
        return result

    # -- evaluation -------------------------------------------------------

    def test(
        self,
        inputs: Sequence[Sequence[float]],
        targets: Sequence[float],
        threshold: float = 0.5
    ) -> EvaluationReport:
        """Score the network on held-out data; weights are left untouched.

        Raises:
            LengthMismatchError: If `inputs` and `targets` differ in length.
        """
        _check_lengths(inputs, targets)
        outputs = [self.forward(x) for x in inputs]
        return evaluate_predictions(outputs, targets, threshold=threshold)

    # -- persistence ------------------------------------------------------

    def save_weights(self, path: PathLike) -> bool:
        """Write the checkpoint; returns False (and logs) if the file cannot be written."""
        rows = [
            np.append(neuron.weights, neuron.bias)
            for layer in self.layers
            for neuron in layer.neurons
        ]
        try:
            write_checkpoint(path, Checkpoint(topology=self.topology, rows=rows))
        except OSError as e:
            logger.error(f"Error saving weights to {path}: {e}")
            return False
        logger.info(f"Weights saved to {path}")
        return True

    def load_weights(self, path: PathLike) -> bool:
        """Restore weights from a checkpoint matching this network's topology.

        Returns:
            True on success, False (logged) if the file cannot be read.

        Raises:
            CheckpointError: If the file is malformed or shaped for another topology.
        """
        try:
            checkpoint = read_checkpoint(path)
        except OSError as e:
            logger.error(f"Error loading weights from {path}: {e}")
            return False
        self._assign(checkpoint, source=path)
        logger.info(f"Weights loaded from {path}")
        return True

    def _assign(self, checkpoint: Checkpoint, source: PathLike = "<checkpoint>") -> None:
        checkpoint.validate_against(self.topology, source=source)
        rows = iter(checkpoint.rows)
        for layer in self.layers:
            for neuron in layer.neurons:
                row = next(rows)
                neuron.weights = np.array(row[:-1], dtype=float)
                neuron.bias = float(row[-1])


def _open_mse_log(path: Optional[PathLike]):
    """Open the epoch log for writing, or a no-op context if unavailable."""
    if path is None:
        return nullcontext()
    try:
        return open(path, "w", encoding="utf-8")
    except OSError as e:
        logger.error(f"Error opening MSE log {path}: {e}; training without it")
        return nullcontext()
