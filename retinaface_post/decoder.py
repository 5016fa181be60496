"""
Regression decoding for the RetinaFace detection head.

Responsibility:
    Validate the three raw network output tensors at the boundary and
    convert per-anchor box and landmark regression values into
    coordinates, normalized to [0, 1] of the network input size.

Hard-coded:
    - Variance constants (0.1, 0.2) and the center-size box
      parameterization. They are part of the trained model's contract.
    - Output layouts: boxes (N, 4) as (dx, dy, dw, dh), scores (N, 2)
      as (background, face), landmarks (N, 10) as interleaved (x, y)
      pairs in landmark order. A leading batch dimension of 1 is
      accepted and dropped.

Non-goals:
    - No score filtering or NMS (see postprocessor).
    - No guard against exp() overflow for extreme dw/dh values; such
      rows decode to inf-sized boxes, same as the reference model code.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np

from retinaface_post.errors import (
    ConfigurationError,
    MalformedOutputError,
    MissingModelOutputsError,
)
from retinaface_post.priors import Priors

logger = logging.getLogger(__name__)

CENTER_VARIANCE = 0.1
SIZE_VARIANCE = 0.2

BOX_COLUMNS = 4
SCORE_COLUMNS = 2
LANDMARK_COLUMNS = 10

DEFAULT_OUTPUT_NAMES = ("boxes", "scores", "landmarks")


def as_rows(tensor, columns: int, name: str) -> np.ndarray:
    """Return a read-only (N, columns) float64 view of a raw output tensor.

    Accepts (N, C), (1, N, C), or a flat (N * C,) buffer.

    Raises:
        MalformedOutputError: On non-numeric dtype, wrong rank, a batch
                              size other than 1, a column count other
                              than `columns`, or a non-contiguous
                              innermost dimension.
    """
    if tensor is None:
        raise MalformedOutputError(f"Output tensor '{name}' is None.")

    array = np.asarray(tensor)

    if not np.issubdtype(array.dtype, np.number):
        raise MalformedOutputError(
            f"Output tensor '{name}' must be numeric, got dtype {array.dtype}."
        )

    if array.ndim >= 1 and array.shape[-1] > 1 and array.strides[-1] != array.itemsize:
        raise MalformedOutputError(
            f"Output tensor '{name}' has a non-contiguous innermost dimension "
            f"(stride {array.strides[-1]} bytes, item size {array.itemsize})."
        )

    if array.ndim == 3:
        if array.shape[0] != 1:
            raise MalformedOutputError(
                f"Output tensor '{name}' has batch size {array.shape[0]}; "
                f"only single-image batches are supported."
            )
        array = array[0]
    elif array.ndim == 1:
        if array.size % columns != 0:
            raise MalformedOutputError(
                f"Flat output tensor '{name}' has {array.size} values, "
                f"not a multiple of {columns}."
            )
        array = array.reshape(-1, columns)
    elif array.ndim != 2:
        raise MalformedOutputError(
            f"Output tensor '{name}' must have shape (N, {columns}) or "
            f"(1, N, {columns}), got {array.shape}."
        )

    if array.shape[1] != columns:
        raise MalformedOutputError(
            f"Output tensor '{name}' must have {columns} columns, "
            f"got shape {array.shape}."
        )

    rows = array.astype(np.float64, copy=False)
    if rows is array:
        rows = rows.view()
    rows.setflags(write=False)
    return rows


@dataclass(frozen=True, eq=False)
class RawOutputs:
    """The three raw tensors the network produces for one inference.

    Consumed read-only by exactly one pipeline call.
    """

    boxes: np.ndarray
    scores: np.ndarray
    landmarks: np.ndarray

    @classmethod
    def from_mapping(
        cls,
        outputs: Mapping[str, np.ndarray],
        names: Sequence[str] = DEFAULT_OUTPUT_NAMES,
    ) -> "RawOutputs":
        """Build from a name -> tensor mapping (e.g. model outputs).

        Args:
            outputs: Mapping of output names to tensors.
            names: Output names for (boxes, scores, landmarks), in that order.

        Raises:
            MissingModelOutputsError: If any of the named outputs is absent.
        """
        missing = [n for n in names if outputs.get(n) is None]
        if missing:
            raise MissingModelOutputsError(
                f"Missing expected model outputs: {missing}. "
                f"Available outputs: {sorted(outputs)}."
            )
        boxes_name, scores_name, landmarks_name = names
        return cls(
            boxes=outputs[boxes_name],
            scores=outputs[scores_name],
            landmarks=outputs[landmarks_name],
        )

    def as_rows(self, num_priors: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Validate all three tensors against the prior count.

        Returns:
            (boxes, scores, landmarks) as (N, 4), (N, 2), (N, 10) views.

        Raises:
            MalformedOutputError: If a tensor has the wrong layout.
            ConfigurationError: If a tensor's row count differs from
                                `num_priors`.
        """
        boxes = as_rows(self.boxes, BOX_COLUMNS, "boxes")
        scores = as_rows(self.scores, SCORE_COLUMNS, "scores")
        landmarks = as_rows(self.landmarks, LANDMARK_COLUMNS, "landmarks")

        for name, rows in (("boxes", boxes), ("scores", scores), ("landmarks", landmarks)):
            if rows.shape[0] != num_priors:
                raise ConfigurationError(
                    f"Output tensor '{name}' has {rows.shape[0]} rows but the "
                    f"prior configuration generates {num_priors} anchors. "
                    f"Check model.input_size and the prior strides/base sizes."
                )

        return boxes, scores, landmarks


def decode_boxes(
    offsets: np.ndarray,
    priors: Priors,
    indices: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Decode box regression rows into (x, y, width, height) rectangles.

    Args:
        offsets: (N, 4) array of (dx, dy, dw, dh).
        priors: The N priors, co-indexed with `offsets`.
        indices: Optional anchor indices to decode; all anchors if None.

    Returns:
        (K, 4) float64 array of (x1, y1, w, h), normalized to network
        input size.
    """
    if indices is not None:
        offsets = offsets[indices]
        priors = priors.subset(indices)

    cx = priors.cx + CENTER_VARIANCE * offsets[:, 0] * priors.w
    cy = priors.cy + CENTER_VARIANCE * offsets[:, 1] * priors.h
    w = priors.w * np.exp(SIZE_VARIANCE * offsets[:, 2])
    h = priors.h * np.exp(SIZE_VARIANCE * offsets[:, 3])

    return np.stack([cx - w / 2, cy - h / 2, w, h], axis=1)


def decode_landmarks(
    offsets: np.ndarray,
    priors: Priors,
    indices: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Decode landmark regression rows into five points per anchor.

    Only the center variance applies; landmarks have no size term.

    Returns:
        (K, 5, 2) float64 array of (x, y) points in landmark order.
    """
    if indices is not None:
        offsets = offsets[indices]
        priors = priors.subset(indices)

    pairs = offsets.reshape(-1, LANDMARK_COLUMNS // 2, 2)
    xs = priors.cx[:, None] + CENTER_VARIANCE * pairs[:, :, 0] * priors.w[:, None]
    ys = priors.cy[:, None] + CENTER_VARIANCE * pairs[:, :, 1] * priors.h[:, None]

    return np.stack([xs, ys], axis=2)
