"""
Preprocessing for the face detection pipeline.

Responsibility:
    Fit a raw BGR frame into the network's fixed input size and convert
    it into a 4D DNN-compatible input blob.

    The frame is scaled by `min(W_in / w, H_in / h)` (aspect ratio
    preserved) and placed at the top-left corner of a black canvas, so
    mapping detections back to the frame only needs that one scale.

Non-goals:
    - No frame acquisition or I/O.
    - No inference or coordinate mapping.
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from retinaface_post.config import ModelConfig
from retinaface_post.errors import ImageResizingError

logger = logging.getLogger(__name__)


def fit_to_input(frame: np.ndarray, input_size: Tuple[int, int]) -> Tuple[np.ndarray, float]:
    """Aspect-fit a frame onto a black canvas of `input_size` (width, height).

    Returns:
        (canvas, scale) where canvas has shape (H_in, W_in, C) and the
        resized frame occupies its top-left corner.

    Raises:
        ImageResizingError: If the resized frame would be empty.
    """
    target_w, target_h = input_size
    h, w = frame.shape[:2]

    scale = min(target_w / w, target_h / h)
    new_w = min(target_w, int(round(w * scale)))
    new_h = min(target_h, int(round(h * scale)))
    if new_w <= 0 or new_h <= 0:
        raise ImageResizingError(
            f"Failed to resize {w}x{h} frame to fit {target_w}x{target_h} "
            f"(scale {scale:.4f} gives {new_w}x{new_h})."
        )

    resized = cv2.resize(frame, (new_w, new_h), interpolation=cv2.INTER_LINEAR)
    if resized.ndim == 2:
        resized = resized[:, :, np.newaxis]

    channels = frame.shape[2] if frame.ndim == 3 else 1
    canvas = np.zeros((target_h, target_w, channels), dtype=frame.dtype)
    canvas[:new_h, :new_w] = resized
    return canvas, scale


def preprocess(frame: np.ndarray, config: ModelConfig) -> Tuple[np.ndarray, float]:
    """Convert a raw BGR frame into a DNN input blob.

    Args:
        frame: Input image as a BGR numpy array (H, W, 3).
        config: ModelConfig providing input_size, scale_factor, mean_values
                and swap_rb.

    Returns:
        (blob, scale): blob is a float32 array of shape (1, 3, H_in, W_in)
        ready for net.setInput(); scale is the resize factor applied to
        the frame.

    Raises:
        ValueError: If the frame is empty.
        ImageResizingError: If the frame cannot be fitted to the input size.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot preprocess an empty frame. "
            "Ensure the input source is providing valid frames."
        )

    canvas, scale = fit_to_input(frame, config.input_size)

    blob = cv2.dnn.blobFromImage(
        image=canvas,
        scalefactor=config.scale_factor,
        size=config.input_size,
        mean=config.mean_values,
        swapRB=config.swap_rb,
        crop=False,
    )

    logger.debug("Preprocessed %dx%d frame (scale=%.4f)", frame.shape[1], frame.shape[0], scale)
    return blob, scale
