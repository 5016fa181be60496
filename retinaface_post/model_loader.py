"""
Model loading and invocation for the face detection system.

Responsibility:
    Load the RetinaFace ONNX model from disk, configure the compute
    backend, and run one forward pass that returns the named raw
    outputs.

Non-goals:
    - No preprocessing or post-processing.
    - No automatic model downloading.
    - No fallback to alternative models.

Failure behavior:
    - Missing model file raises FileNotFoundError with the exact
      missing path and expected location.
    - Incompatible backend raises RuntimeError.
    - Absent named outputs raise MissingModelOutputsError.
"""

import logging
from pathlib import Path
from typing import Sequence

import cv2
import numpy as np

from retinaface_post.config import ModelConfig, get_project_root
from retinaface_post.decoder import RawOutputs
from retinaface_post.errors import MissingModelOutputsError

logger = logging.getLogger(__name__)


def load_model(config: ModelConfig) -> cv2.dnn.Net:
    """Load and configure the RetinaFace detection model.

    Args:
        config: ModelConfig containing the model path and backend preference.

    Returns:
        A configured cv2.dnn.Net ready for inference.

    Raises:
        FileNotFoundError: If the model file does not exist.
        RuntimeError: If the requested backend is unavailable.
    """
    model_path = Path(config.model_path)
    if not model_path.is_absolute():
        model_path = get_project_root() / model_path

    if not model_path.is_file():
        raise FileNotFoundError(
            f"Model file not found.\n"
            f"  Expected: {model_path}\n"
            f"  Export the RetinaFace model to ONNX and place it at the path above,\n"
            f"  or update 'model.model_path' in your config."
        )

    logger.info("Loading model: %s", model_path)
    net = cv2.dnn.readNetFromONNX(str(model_path))

    # Configure backend and target
    if config.backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise RuntimeError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support (opencv-contrib-python or custom build).\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        logger.info("Using CPU backend.")
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    logger.info("Model loaded successfully.")
    return net


def run_inference(net, blob: np.ndarray, output_names: Sequence[str]) -> RawOutputs:
    """Run one forward pass and collect the named outputs.

    Args:
        net: A loaded network (cv2.dnn.Net or any object with the same
             setInput/forward interface).
        blob: Input blob from preprocess().
        output_names: Names of the (boxes, scores, landmarks) outputs.

    Raises:
        MissingModelOutputsError: If the network does not produce every
                                  named output.
    """
    names = list(output_names)
    net.setInput(blob)
    try:
        produced = net.forward(names)
    except cv2.error as e:
        raise MissingModelOutputsError(
            f"Missing expected model outputs {names}: {e}"
        ) from e

    if len(produced) != len(names):
        raise MissingModelOutputsError(
            f"Missing expected model outputs: requested {names}, "
            f"got {len(produced)} tensors."
        )

    return RawOutputs.from_mapping(dict(zip(names, produced)), names)
