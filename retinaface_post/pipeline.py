"""
FaceDetectionPipeline — raw network outputs to a ranked detection list.

    validate tensors → score filter + decode → NMS → map to image space
    → pose estimation

The pipeline owns the priors for its configured input resolution. They
are generated once, at construction, and are read-only afterwards, so
one pipeline instance may serve concurrent calls from several threads.

Constraints:
    - Pure and synchronous: no I/O, no retries, no state between calls.
    - Configuration problems surface in the constructor; malformed
      tensors surface once per call, before any detection is built.
"""

import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from retinaface_post.config import AppConfig, DetectionConfig, PoseConfig, PriorConfig
from retinaface_post.decoder import RawOutputs
from retinaface_post.detection import Detection
from retinaface_post.errors import ConfigurationError
from retinaface_post.pose import estimate_pose
from retinaface_post.postprocessor import decode_detections, non_max_suppression
from retinaface_post.priors import Priors, generate_priors
from retinaface_post.transform import map_to_image_space

logger = logging.getLogger(__name__)


class FaceDetectionPipeline:
    """Decode, filter, suppress, map and pose-estimate RetinaFace outputs.

    Usage:
        pipeline = FaceDetectionPipeline.from_config(load_config())
        faces = pipeline.process(raw_outputs, scale=0.5, limit=5)
    """

    def __init__(
        self,
        input_size: Tuple[int, int] = (320, 320),
        priors: Optional[PriorConfig] = None,
        detection: Optional[DetectionConfig] = None,
        pose: Optional[PoseConfig] = None,
    ) -> None:
        """Build the pipeline and generate its priors.

        Args:
            input_size: Network input (width, height) in pixels.
            priors: Anchor pyramid configuration.
            detection: Score/IoU thresholds and default result limit.
            pose: Pose estimator calibration constants.

        Raises:
            ConfigurationError: On invalid resolution or pyramid levels.
        """
        if len(input_size) != 2:
            raise ConfigurationError(
                f"input_size must be (width, height), got {input_size}."
            )

        self._input_size = (int(input_size[0]), int(input_size[1]))
        self._prior_config = priors or PriorConfig()
        self._detection = detection or DetectionConfig()
        self._pose = pose or PoseConfig()

        width, height = self._input_size
        self._priors = generate_priors(
            self._prior_config.strides,
            self._prior_config.base_sizes,
            width,
            height,
            clip=self._prior_config.clip,
        )

        logger.info(
            "Pipeline initialized (input=%dx%d, priors=%d, score_threshold=%.2f, "
            "iou_threshold=%.2f)",
            width, height, len(self._priors),
            self._detection.score_threshold, self._detection.iou_threshold,
        )

    @classmethod
    def from_config(cls, config: AppConfig) -> "FaceDetectionPipeline":
        """Build a pipeline from an application configuration."""
        return cls(
            input_size=config.model.input_size,
            priors=config.priors,
            detection=config.detection,
            pose=config.pose,
        )

    @property
    def priors(self) -> Priors:
        """The shared, read-only priors for this pipeline."""
        return self._priors

    @property
    def input_size(self) -> Tuple[int, int]:
        return self._input_size

    def process(
        self,
        outputs: RawOutputs,
        scale: float = 1.0,
        limit: Optional[int] = None,
    ) -> List[Detection]:
        """Turn one inference's raw outputs into final detections.

        Args:
            outputs: The three raw network tensors.
            scale: Resize factor the preprocessing applied to the original
                   image; 1.0 when the image already had the input size.
            limit: Maximum number of faces to return. Defaults to
                   detection.max_results.

        Returns:
            Detections in original image pixel coordinates with pose
            filled in, sorted by score (descending). Empty if no anchor
            passes the score threshold.

        Raises:
            MalformedOutputError: If a tensor has the wrong layout.
            ConfigurationError: If tensor row counts differ from the
                                prior count.
            ValueError: If scale is not positive or limit is negative.
        """
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}.")
        if limit is None:
            limit = self._detection.max_results

        boxes, scores, landmarks = outputs.as_rows(len(self._priors))

        candidates = decode_detections(
            boxes, scores, landmarks, self._priors, self._detection.score_threshold
        )
        if not candidates:
            return []

        kept = non_max_suppression(candidates, self._detection.iou_threshold, limit)

        results: List[Detection] = []
        for detection in kept:
            mapped = map_to_image_space(detection, self._input_size, scale)
            results.append(replace(mapped, angle=estimate_pose(mapped.landmarks, self._pose)))

        return results
