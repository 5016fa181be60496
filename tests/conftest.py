"""
Shared fixtures: synthetic network outputs and detections.
"""

import numpy as np
import pytest

from retinaface_post.decoder import RawOutputs
from retinaface_post.detection import BoundingBox, Detection, Point


@pytest.fixture
def make_outputs():
    """Factory for RawOutputs with N anchors, all scored 0.1 as face.

    hits maps anchor index → (face_score, box_offsets, landmark_offsets);
    offsets default to zeros.
    """

    def _make(num_priors, hits=None, batched=True, dtype=np.float32):
        boxes = np.zeros((num_priors, 4), dtype=dtype)
        scores = np.tile(np.array([0.9, 0.1], dtype=dtype), (num_priors, 1))
        landmarks = np.zeros((num_priors, 10), dtype=dtype)

        for index, hit in (hits or {}).items():
            score, box_offsets, landmark_offsets = (tuple(hit) + (None, None))[:3]
            scores[index] = (1.0 - score, score)
            if box_offsets is not None:
                boxes[index] = box_offsets
            if landmark_offsets is not None:
                landmarks[index] = landmark_offsets

        if batched:
            boxes, scores, landmarks = boxes[None], scores[None], landmarks[None]
        return RawOutputs(boxes=boxes, scores=scores, landmarks=landmarks)

    return _make


@pytest.fixture
def make_detection():
    """Factory for a detection with the given score and box."""

    def _make(score, x, y, w, h):
        cx, cy = x + w / 2, y + h / 2
        landmarks = (
            Point(cx - w / 4, cy - h / 4),
            Point(cx + w / 4, cy - h / 4),
            Point(cx, cy),
            Point(cx - w / 5, cy + h / 4),
            Point(cx + w / 5, cy + h / 4),
        )
        return Detection(score=score, bounds=BoundingBox(x, y, w, h), landmarks=landmarks)

    return _make
