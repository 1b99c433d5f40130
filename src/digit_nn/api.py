"""
Digit classifier inference API.

This module exposes a FastAPI application that serves a trained from-scratch
network restored from its weights checkpoint.

Endpoints
---------
- GET  `/`          : Liveness check plus the loaded topology.
- POST `/predict`   : Network outputs (and labels at 0.5) for one or more
                      feature vectors.
- POST `/evaluate`  : Accuracy / RMSE / confusion counts on labeled vectors.

Notes
-----
- The checkpoint path comes from ``Settings.from_env()``
  (``DIGIT_NN_WEIGHTS_PATH``). It is loaded on first use and cached; if it is
  missing or malformed the request fails with 503 and the next request
  retries.
- Training is not exposed here; use the ``digit-nn train`` command.
"""

import logging
from functools import lru_cache
from typing import Any, Dict, List, Union

import numpy as np
from fastapi import Depends, FastAPI, HTTPException

from . import __version__
from .config import Settings
from .network import Network
from .schemas import LabeledExample, PredictRequest
from .services.dataset import normalize_inputs

logger = logging.getLogger(__name__)

APP_VERSION = __version__

app = FastAPI(
    title="Digit 0/1 Classifier API",
    version=APP_VERSION,
    description="Inference for a from-scratch sigmoid network separating digit 0 from digit 1",
)


@lru_cache(maxsize=1)
def get_network() -> Network:
    """Load the checkpoint configured in the environment (cached on success)."""
    settings = Settings.from_env()
    try:
        network = Network.from_checkpoint(settings.weights_path, default_topology=settings.topology)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load weights from {settings.weights_path}: {e}")
        raise HTTPException(status_code=503, detail="Model weights are not available.")
    logger.info(f"Loaded network {network.topology} from {settings.weights_path}")
    return network


def _check_width(features: List[float], network: Network) -> None:
    width = network.topology[0]
    if len(features) != width:
        raise ValueError(f"Expected {width} features, got {len(features)}.")


@app.get("/")
async def health_check():
    """Liveness probe; ``topology`` is None while no checkpoint can be loaded."""
    try:
        topology = get_network().topology
    except HTTPException:
        topology = None
    return {"version": APP_VERSION, "status": "OK", "topology": topology}


@app.post("/predict")
async def predict(
    data: Union[PredictRequest, List[PredictRequest]],
    network: Network = Depends(get_network),
):
    """Predict outputs for a single vector or a list of vectors.

    Returns
    -------
    dict
        ``predictions`` (raw outputs) and ``labels`` (outputs >= 0.5).

    Raises
    ------
    HTTPException
        With status 400 on an empty list or a vector of the wrong width.
    """
    requests = data if isinstance(data, list) else [data]
    try:
        if not requests:
            raise ValueError("Empty payload.")
        predictions = []
        for item in requests:
            _check_width(item.features, network)
            x = normalize_inputs(item.features) if item.normalize else np.asarray(item.features)
            predictions.append(network.predict(x))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error during prediction: {e}")

    labels = [int(p >= 0.5) for p in predictions]
    return {"predictions": predictions, "labels": labels}


@app.post("/evaluate")
async def evaluate(
    payload: List[LabeledExample],
    network: Network = Depends(get_network),
) -> Dict[str, Any]:
    """Score the network on labeled vectors (summary only, no per-example rows).

    Raises
    ------
    HTTPException
        With status 400 if the payload is empty or a vector has the wrong width.
    """
    try:
        if not payload:
            raise ValueError("Empty payload.")
        for item in payload:
            _check_width(item.features, network)
        report = network.test(
            [item.features for item in payload],
            [float(item.target) for item in payload],
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error during evaluation: {e}")

    summary = report.model_dump(exclude={"results"})
    summary["wrong"] = report.wrong
    return summary
