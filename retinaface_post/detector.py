"""
Detector — frame-level face detection on top of the decoding pipeline.

Public contract:
    Detector.detect(frame: np.ndarray, limit: int | None) -> list[Detection]

Constraints:
    - Input must be a BGR numpy array (as returned by OpenCV).
    - Results are in the frame's pixel coordinates, sorted by score.
    - The loaded cv2.dnn.Net is not thread-safe; use one Detector per
      thread. The pipeline it wraps is.

Non-goals:
    - No file reading, camera access, or I/O of any kind.
    - No visualization or output writing.
    - No tracking or temporal state.
"""

import logging
from typing import List, Optional

import numpy as np

from retinaface_post.config import AppConfig, load_config
from retinaface_post.detection import Detection
from retinaface_post.model_loader import load_model, run_inference
from retinaface_post.pipeline import FaceDetectionPipeline
from retinaface_post.preprocessor import preprocess

logger = logging.getLogger(__name__)


class Detector:
    """RetinaFace face detector running through OpenCV DNN.

    Usage:
        detector = Detector()                       # Uses safe defaults
        detector = Detector(config=my_config)       # Custom config
        faces = detector.detect(frame, limit=1)     # BGR numpy array

    The constructor loads the model and generates the priors once.
    Subsequent detect() calls reuse both.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        """Initialize the detector and load the model.

        Args:
            config: Application configuration. If None, safe defaults
                    are used (no config file required).

        Raises:
            FileNotFoundError: If the model file is missing.
            RuntimeError: If the requested backend is unavailable.
            ConfigurationError: If configuration values are invalid.
        """
        if config is None:
            config = load_config()

        self._config = config
        self._pipeline = FaceDetectionPipeline.from_config(config)
        self._net = load_model(config.model)

        logger.info(
            "Detector initialized (backend=%s, input=%dx%d, score_threshold=%.2f)",
            config.model.backend,
            config.model.input_size[0],
            config.model.input_size[1],
            config.detection.score_threshold,
        )

    def detect(self, frame: np.ndarray, limit: Optional[int] = None) -> List[Detection]:
        """Detect faces in a single BGR frame.

        Args:
            frame: A BGR image as a numpy array with shape (H, W, 3)
                   and dtype uint8.
            limit: Maximum number of faces to return. Defaults to
                   detection.max_results.

        Returns:
            A list of Detection objects in frame pixel coordinates,
            sorted by score (descending). Empty if no face is found.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame has incorrect shape or is empty.
            MissingModelOutputsError: If the model lacks a named output.
            MalformedOutputError: If a model output has the wrong layout.
        """
        self._validate_frame(frame)

        blob, scale = preprocess(frame, self._config.model)
        outputs = run_inference(self._net, blob, self._config.model.output_names)

        return self._pipeline.process(outputs, scale=scale, limit=limit)

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def pipeline(self) -> FaceDetectionPipeline:
        return self._pipeline

    @staticmethod
    def _validate_frame(frame: np.ndarray) -> None:
        """Validate that the input frame meets the API contract.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame is empty or has wrong dimensions.
        """
        if not isinstance(frame, np.ndarray):
            raise TypeError(
                f"Expected frame to be a numpy ndarray, "
                f"got {type(frame).__name__}. "
                f"Use cv2.imread() or VideoCapture.read() to obtain frames."
            )

        if frame.size == 0:
            raise ValueError(
                "Frame is empty (zero size). "
                "Ensure the input source is providing valid frames."
            )

        if frame.ndim != 3:
            raise ValueError(
                f"Expected a 3-dimensional frame (H, W, C), "
                f"got {frame.ndim} dimensions with shape {frame.shape}. "
                f"Grayscale images must be converted to BGR first."
            )

        if frame.shape[2] != 3:
            raise ValueError(
                f"Expected 3 channels (BGR), got {frame.shape[2]} channels. "
                f"Input must be a BGR image as returned by OpenCV."
            )
