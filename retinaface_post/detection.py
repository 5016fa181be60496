"""
Detection value types.

This module defines the Detection dataclass — the single output type
returned by the pipeline — together with the small geometric value
types it is built from. All of them are frozen: transforming a
detection produces a new instance, so detections can be shared freely
during NMS without aliasing surprises.

Landmark order is fixed and positional:
    0: left eye, 1: right eye, 2: nose tip, 3: mouth left, 4: mouth right

Non-goals:
    - No rendering logic.
    - No file I/O.
    - No coordinate transformation policy (that belongs in transform).
"""

from dataclasses import dataclass, field
from typing import Tuple

LANDMARK_COUNT = 5
LANDMARK_NAMES = ("left_eye", "right_eye", "nose_tip", "mouth_left", "mouth_right")


@dataclass(frozen=True, slots=True)
class Point:
    """A 2D point."""

    x: float
    y: float

    def scaled(self, sx: float, sy: float) -> "Point":
        return Point(self.x * sx, self.y * sy)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned rectangle given by its top-left corner and size."""

    x: float
    y: float
    width: float
    height: float

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    def scaled(self, sx: float, sy: float) -> "BoundingBox":
        return BoundingBox(
            self.x * sx, self.y * sy, self.width * sx, self.height * sy
        )

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True, slots=True)
class FaceAngle:
    """Head pose in degrees. No wrapping or normalization is applied."""

    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0

    def to_dict(self) -> dict:
        return {
            "yaw": round(self.yaw, 4),
            "pitch": round(self.pitch, 4),
            "roll": round(self.roll, 4),
        }


@dataclass(frozen=True, slots=True)
class Detection:
    """A single detected face.

    Attributes:
        score: Face-class probability in [0.0, 1.0].
        bounds: Bounding box, in the same coordinate space as landmarks.
        landmarks: Exactly five points in the fixed order
                   (left eye, right eye, nose tip, mouth left, mouth right).
        angle: Head pose estimate. Zero until the pipeline fills it in.

    The coordinate space depends on the pipeline stage: normalized
    [0, 1] network-input space after decoding, original image pixels
    after mapping.
    """

    score: float
    bounds: BoundingBox
    landmarks: Tuple[Point, ...]
    angle: FaceAngle = field(default_factory=FaceAngle)

    def __post_init__(self) -> None:
        if len(self.landmarks) != LANDMARK_COUNT:
            raise ValueError(
                f"Detection requires exactly {LANDMARK_COUNT} landmarks, "
                f"got {len(self.landmarks)}."
            )

    @property
    def quality(self) -> float:
        """Detection quality on a 0-10 scale (score scaled by 10)."""
        return self.score * 10

    @property
    def left_eye(self) -> Point:
        return self.landmarks[0]

    @property
    def right_eye(self) -> Point:
        return self.landmarks[1]

    @property
    def nose_tip(self) -> Point:
        return self.landmarks[2]

    @property
    def mouth_left(self) -> Point:
        return self.landmarks[3]

    @property
    def mouth_right(self) -> Point:
        return self.landmarks[4]

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "score": round(self.score, 4),
            "quality": round(self.quality, 4),
            "bounds": self.bounds.to_dict(),
            "landmarks": [p.to_dict() for p in self.landmarks],
            "angle": self.angle.to_dict(),
        }
