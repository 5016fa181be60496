"""
Postprocessing for the face detection pipeline.

Responsibility:
    Turn validated network output rows into Detection objects: keep the
    anchors whose face score passes the threshold, decode only those,
    and reduce the survivors with greedy non-maximum suppression.

Non-goals:
    - No drawing, saving, or display logic.
    - No model loading or inference.
    - No mapping to original image coordinates (see transform).

Hard-coded:
    - Score tensor layout: (N, 2) rows of [background, face]; the face
      probability is column 1.
"""

import logging
import sys
from typing import List, Optional

import numpy as np

from retinaface_post.decoder import decode_boxes, decode_landmarks
from retinaface_post.detection import BoundingBox, Detection, Point
from retinaface_post.priors import Priors

logger = logging.getLogger(__name__)

FACE_CLASS_COLUMN = 1


def select_candidates(scores: np.ndarray, threshold: float) -> np.ndarray:
    """Return indices of anchors whose face score is >= threshold.

    Args:
        scores: (N, 2) array of [background, face] scores.
        threshold: Minimum face score (inclusive).

    Returns:
        1-D int array of anchor indices in ascending (anchor) order.
    """
    return np.flatnonzero(scores[:, FACE_CLASS_COLUMN] >= threshold)


def decode_detections(
    boxes: np.ndarray,
    scores: np.ndarray,
    landmarks: np.ndarray,
    priors: Priors,
    score_threshold: float,
) -> List[Detection]:
    """Filter anchors by score and decode the survivors.

    Args:
        boxes: (N, 4) box regression rows.
        scores: (N, 2) class score rows.
        landmarks: (N, 10) landmark regression rows.
        priors: The N priors, co-indexed with the rows above.
        score_threshold: Minimum face score to keep an anchor.

    Returns:
        Detections in normalized network-input space, in anchor order.
        Empty list if no anchor passes the threshold.
    """
    indices = select_candidates(scores, score_threshold)
    logger.debug(
        "%d of %d anchors passed score threshold %.2f",
        indices.size, scores.shape[0], score_threshold,
    )
    if indices.size == 0:
        return []

    rects = decode_boxes(boxes, priors, indices)
    points = decode_landmarks(landmarks, priors, indices)
    face_scores = scores[indices, FACE_CLASS_COLUMN]

    detections: List[Detection] = []
    for rect, pts, score in zip(rects, points, face_scores):
        detections.append(Detection(
            score=float(score),
            bounds=BoundingBox(*(float(v) for v in rect)),
            landmarks=tuple(Point(float(x), float(y)) for x, y in pts),
        ))

    return detections


def iou(a: BoundingBox, b: BoundingBox) -> float:
    """Intersection-over-Union of two rectangles.

    Returns 0.0 when the intersection is empty or its area is below
    machine epsilon.
    """
    inter_w = min(a.x2, b.x2) - max(a.x, b.x)
    inter_h = min(a.y2, b.y2) - max(a.y, b.y)
    if inter_w <= 0 or inter_h <= 0:
        return 0.0

    inter_area = inter_w * inter_h
    if inter_area <= sys.float_info.epsilon:
        return 0.0

    union = a.area + b.area - inter_area
    return inter_area / union


def non_max_suppression(
    detections: List[Detection],
    iou_threshold: float,
    limit: Optional[int] = None,
) -> List[Detection]:
    """Greedy NMS over detections.

    Candidates are visited in descending score order (ties keep their
    input order). A candidate is kept if its IoU with every detection
    already kept is strictly below `iou_threshold`. Visiting stops once
    `limit` detections are kept.

    Args:
        detections: Candidate detections.
        iou_threshold: Overlap at or above which a candidate is dropped.
        limit: Maximum number of detections to return; None for no limit.

    Returns:
        Kept detections, sorted by score (descending).

    Raises:
        ValueError: If limit is negative.
    """
    if limit is not None and limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}.")

    selected: List[Detection] = []
    if limit == 0:
        return selected

    # sorted() is stable, so equal scores stay in anchor order
    ordered = sorted(detections, key=lambda d: d.score, reverse=True)

    for candidate in ordered:
        if limit is not None and len(selected) >= limit:
            break
        if all(iou(kept.bounds, candidate.bounds) < iou_threshold for kept in selected):
            selected.append(candidate)

    logger.debug(
        "NMS kept %d of %d detections (iou_threshold=%.2f, limit=%s)",
        len(selected), len(detections), iou_threshold, limit,
    )
    return selected
