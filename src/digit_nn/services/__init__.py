"""Checkpoint, dataset and scoring helpers used by the network, CLI and API."""
