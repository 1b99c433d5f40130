"""
Command-line entry point.

Usage:
    digit-nn train [--topology 400,16,1] [--learning-rate 0.1] ...
    digit-nn test  [--weights weights.csv]
    digit-nn predict [--line "0,12,255,..."]   (reads stdin without --line)
    digit-nn                                   (interactive menu)
"""

import argparse
import logging
import sys
import time
from typing import List, Optional, TextIO

from pydantic import ValidationError

from .config import Settings, configure_logging, parse_topology
from .network import LengthMismatchError, Network, StopReason, TrainingResult
from .schemas import EvaluationReport
from .services.artifacts import CheckpointError
from .services.dataset import load_inputs, load_targets, normalize_inputs, parse_feature_line
from .services.metrics import report_frame

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_IO_ERROR = 1
EXIT_BAD_INPUT = 2

RULE = "================================================="


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="digit-nn",
        description="Train and run a from-scratch network separating digit 0 from digit 1.",
    )
    parser.add_argument("--dataset", dest="dataset_path", help="Feature CSV file.")
    parser.add_argument("--targets", dest="targets_path", help="Target CSV file.")
    parser.add_argument("--weights", dest="weights_path", help="Weights checkpoint file.")
    parser.add_argument("--mse-log", dest="mse_log_path", help="Per-epoch MSE log file.")
    parser.add_argument("--topology", type=parse_topology,
                        help="Comma-separated sizes: input width, then neurons per layer.")
    parser.add_argument("--feature-width", type=int, help="Features kept per input line.")
    parser.add_argument("--learning-rate", type=float, help="Gradient descent step size.")
    parser.add_argument("--mse-threshold", type=float, help="Stop once the epoch MSE is below this.")
    parser.add_argument("--max-epochs", type=int, help="Safety cap on training epochs.")
    parser.add_argument("--seed", type=int, help="Seed for weight initialisation.")
    parser.add_argument("--train-start", type=int, help="First training line (1-indexed).")
    parser.add_argument("--train-count", type=int, help="Maximum training examples.")
    parser.add_argument("--test-start", type=int, help="First test line (1-indexed).")
    parser.add_argument("--test-count", type=int, help="Maximum test examples.")

    commands = parser.add_subparsers(dest="command")
    commands.add_parser("train", help="Train, save the weights, then test.")
    commands.add_parser("test", help="Test using saved weights.")
    predict = commands.add_parser("predict", help="Classify one comma-separated line.")
    predict.add_argument("--line", help="Feature line; read from stdin when omitted.")
    commands.add_parser("menu", help="Interactive menu (default).")
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {
        name: getattr(args, name, None)
        for name in (
            "dataset_path", "targets_path", "weights_path", "mse_log_path",
            "topology", "feature_width", "learning_rate", "mse_threshold",
            "max_epochs", "seed", "train_start", "train_count", "test_start", "test_count",
        )
    }
    if overrides["topology"] and overrides["feature_width"] is None:
        overrides["feature_width"] = overrides["topology"][0]
    return Settings.from_env(**overrides)


def print_report(report: EvaluationReport, out: TextIO = sys.stdout) -> None:
    """Print the per-example table followed by the summary block."""
    if report.results:
        print(report_frame(report).to_string(), file=out)
    print(RULE, file=out)
    print("                TEST  RESULTS                    ", file=out)
    print(RULE, file=out)
    print(f"Number of tests: {report.total}", file=out)
    print(f"Number of wrong guesses: {report.wrong}", file=out)
    print(f"Accuracy: {report.accuracy:.2f}%", file=out)
    print(f"RMSE: {report.rmse:.10f}", file=out)
    print(RULE, file=out)


def print_training_summary(
    settings: Settings,
    n_examples: int,
    result: TrainingResult,
    seconds: float,
    out: TextIO = sys.stdout
) -> None:
    print("               TRAINING PARAMETERS               ", file=out)
    print(RULE, file=out)
    print(f"TRAINING - TRAINED INPUTS: {n_examples}", file=out)
    print(f"TRAINING - MSE: {settings.mse_threshold}", file=out)
    print(f"TRAINING - Learning Rate: {settings.learning_rate}", file=out)
    print(f"Final MSE after training: {result.final_mse}", file=out)
    print(f"Stop reason: {result.stop_reason.value} after {result.epochs} epochs", file=out)
    print(f"Training Time (s): {seconds:.4f}", file=out)
    print(RULE, file=out)


def _load_split(settings: Settings, start: int, count: int):
    inputs = load_inputs(settings.dataset_path, start, count, width=settings.feature_width)
    targets = load_targets(settings.targets_path, start, count)
    return inputs, targets


def _load_network(settings: Settings, out: TextIO) -> Optional[Network]:
    network = Network.from_topology(settings.topology, seed=settings.seed)
    try:
        loaded = network.load_weights(settings.weights_path)
    except CheckpointError as e:
        print(f"Error: {e}", file=out)
        return None
    if not loaded:
        print(f"Error: could not read weights from {settings.weights_path}", file=out)
        return None
    return network


def run_training(settings: Settings, out: TextIO = sys.stdout) -> int:
    """Train on the training split, save the checkpoint, then test."""
    inputs, targets = _load_split(settings, settings.train_start, settings.train_count)
    network = Network.from_topology(settings.topology, seed=settings.seed)

    try:
        started = time.perf_counter()
        result = network.train(
            inputs,
            targets,
            mse_threshold=settings.mse_threshold,
            learning_rate=settings.learning_rate,
            max_epochs=settings.max_epochs,
            mse_log_path=settings.mse_log_path,
            checkpoint_path=settings.weights_path,
        )
        seconds = time.perf_counter() - started
    except LengthMismatchError as e:
        print(f"Error: training data mismatch. {e}", file=out)
        return EXIT_BAD_INPUT

    status = _test(network, settings, out)
    print_training_summary(settings, len(targets), result, seconds, out)
    if result.stop_reason is not StopReason.NO_DATA and not result.checkpoint_saved:
        print(f"Error: could not save weights to {settings.weights_path}", file=out)
        return EXIT_IO_ERROR
    return status


def run_test(settings: Settings, out: TextIO = sys.stdout) -> int:
    """Restore the checkpoint and test on the test split."""
    network = _load_network(settings, out)
    if network is None:
        return EXIT_IO_ERROR
    return _test(network, settings, out)


def _test(network: Network, settings: Settings, out: TextIO) -> int:
    inputs, targets = _load_split(settings, settings.test_start, settings.test_count)
    try:
        report = network.test(inputs, targets)
    except LengthMismatchError as e:
        print(f"Error: test data mismatch. {e}", file=out)
        return EXIT_BAD_INPUT
    print(RULE, file=out)
    print("                Testing the Network              ", file=out)
    print(RULE, file=out)
    print_report(report, out)
    return EXIT_OK


def run_predict(
    settings: Settings,
    line: Optional[str] = None,
    stdin: TextIO = sys.stdin,
    out: TextIO = sys.stdout
) -> int:
    """Classify one normalized feature line and print its class (output >= 0.5 is 1)."""
    network = _load_network(settings, out)
    if network is None:
        return EXIT_IO_ERROR

    if line is None:
        line = stdin.readline()
    try:
        features = normalize_inputs(parse_feature_line(line))
    except ValueError:
        print("Error: the input line must be comma-separated numbers.", file=out)
        return EXIT_BAD_INPUT
    if features.size != settings.feature_width:
        print(
            f"Error: expected {settings.feature_width} values, got {features.size}.",
            file=out,
        )
        return EXIT_BAD_INPUT

    print(int(network.predict(features) >= 0.5), file=out)
    return EXIT_OK


def run_menu(settings: Settings, stdin: TextIO = sys.stdin, out: TextIO = sys.stdout) -> int:
    print("Choose an option:", file=out)
    print("1 - Train the neural network", file=out)
    print("2 - Test the neural network with saved weights", file=out)
    choice = stdin.readline().strip()

    if choice == "1":
        return run_training(settings, out)
    if choice == "2":
        return run_test(settings, out)
    print("Invalid option.", file=out)
    return EXIT_BAD_INPUT


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()
    args = parse_args(argv)
    try:
        settings = settings_from_args(args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    if args.command == "train":
        return run_training(settings, out=sys.stdout)
    if args.command == "test":
        return run_test(settings, out=sys.stdout)
    if args.command == "predict":
        return run_predict(settings, line=args.line, stdin=sys.stdin, out=sys.stdout)
    return run_menu(settings, stdin=sys.stdin, out=sys.stdout)


if __name__ == "__main__":
    sys.exit(main())
