"""
Weights checkpoint reading and writing.

This module is responsible for:
- Serializing a network's parameters to a small CSV-like text file.
- Parsing that file back and checking it against a network topology before
  any weight is overwritten.

File layout
-----------
::

    #topology=400,16,1
    w_0,w_1,...,w_399,bias        <- layer 1, neuron 1
    ...                           <- layer-major, neuron-minor
    w_0,...,w_15,bias             <- output neuron

- The ``#topology=`` header lists the input width followed by the neuron count
  of every layer. Files written before the header existed are still accepted;
  their rows are checked against the expected shapes instead.
- Floats are written with ``repr`` so a save/load round trip is bit-exact.

Design notes
------------
- Writes go to a temporary sibling file that is moved into place with
  ``os.replace``; a crash mid-write leaves the previous checkpoint intact.
- This module only deals with plain numbers. Building or filling a network is
  done by ``digit_nn.network.Network``.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

TOPOLOGY_PREFIX = "#topology="


class CheckpointError(ValueError):
    """Raised when a checkpoint is malformed or does not fit the network."""


@dataclass
class Checkpoint:
    """Parsed checkpoint contents.

    Attributes
    ----------
    topology : list[int] | None
        ``[input_width, n_1, ..., n_L]`` from the header, or None for
        header-less files.
    rows : list[np.ndarray]
        One row per neuron: its weights followed by its bias.
    """
    topology: Optional[List[int]] = None
    rows: List[np.ndarray] = field(default_factory=list)

    def validate_against(self, topology: Sequence[int], source="<checkpoint>") -> None:
        """Check that the checkpoint fits a network of the given topology.

        Parameters
        ----------
        topology : Sequence[int]
            ``[input_width, n_1, ..., n_L]`` of the receiving network.
        source : str | PathLike
            Used in error messages.

        Raises
        ------
        CheckpointError
            On a header mismatch, a wrong number of neuron rows, or a row
            with the wrong number of fields.
        """
        expected = list(topology)
        if self.topology is not None and self.topology != expected:
            raise CheckpointError(
                f"{source}: checkpoint topology {self.topology} does not match "
                f"network topology {expected}"
            )

        widths = [
            input_width
            for input_width, neuron_count in zip(expected, expected[1:])
            for _ in range(neuron_count)
        ]
        if len(self.rows) != len(widths):
            raise CheckpointError(
                f"{source}: expected {len(widths)} neuron rows, found {len(self.rows)}"
            )
        for index, (row, width) in enumerate(zip(self.rows, widths), start=1):
            if len(row) != width + 1:
                raise CheckpointError(
                    f"{source}: neuron row {index} has {len(row)} fields, "
                    f"expected {width} weights plus a bias"
                )


def format_row(values: Sequence[float]) -> str:
    """Join floats with commas using their shortest round-trip repr."""
    return ",".join(repr(float(v)) for v in values)


def write_checkpoint(path, checkpoint: Checkpoint) -> None:
    """Write ``checkpoint`` to ``path`` atomically.

    Raises
    ------
    OSError
        If the destination directory is missing or not writable.
    """
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            if checkpoint.topology is not None:
                f.write(TOPOLOGY_PREFIX + ",".join(str(n) for n in checkpoint.topology) + "\n")
            for row in checkpoint.rows:
                f.write(format_row(row) + "\n")
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


def _parse_topology(line: str, source) -> List[int]:
    try:
        topology = [int(token) for token in line[len(TOPOLOGY_PREFIX):].split(",")]
    except ValueError:
        raise CheckpointError(f"{source}: invalid topology header {line!r}") from None
    if len(topology) < 2 or any(n < 1 for n in topology):
        raise CheckpointError(f"{source}: invalid topology header {line!r}")
    return topology


def read_checkpoint(path) -> Checkpoint:
    """Parse the checkpoint at ``path``.

    Blank lines are ignored. Shape checks happen later in
    ``Checkpoint.validate_against``.

    Raises
    ------
    OSError
        If the file cannot be opened.
    CheckpointError
        If the header or any number cannot be parsed.
    """
    checkpoint = Checkpoint()
    with open(path, "r", encoding="utf-8") as f:
        for line_no, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line:
                continue
            if line.startswith(TOPOLOGY_PREFIX):
                if line_no != 1:
                    raise CheckpointError(f"{path}:{line_no}: topology header must be the first line")
                checkpoint.topology = _parse_topology(line, path)
                continue
            try:
                checkpoint.rows.append(np.array([float(token) for token in line.split(",")]))
            except ValueError:
                raise CheckpointError(f"{path}:{line_no}: cannot parse weights row") from None
    return checkpoint
