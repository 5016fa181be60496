"""
Geometric head-pose estimation from five facial landmarks.

    roll  = angle of the eye line
    yaw   = atan2(nose offset from eye center, interocular distance) * yaw_factor
    pitch = (pitch_center - nose_ratio) * pitch_range

where nose_ratio is the nose tip's vertical position between the eye
center (0) and the mouth center (1).

Sign conventions (image coordinates, y grows downward):
    - roll is positive when the right eye sits lower than the left eye.
    - yaw is positive when the nose is right of the eye center.
    - pitch is negative when the nose sits closer to the mouth (head
      tilted down) and positive when it sits closer to the eyes.

yaw_factor (1.2), pitch_center (0.5) and pitch_range (90) are empirical
calibration constants; see PoseConfig.

Degenerate geometry never raises: a zero interocular distance yields
yaw 0.0, and a zero eye-to-mouth distance yields pitch 0.0.
"""

import logging
import math
from typing import Optional, Sequence

from retinaface_post.config import PoseConfig
from retinaface_post.detection import LANDMARK_COUNT, FaceAngle, Point

logger = logging.getLogger(__name__)


def estimate_pose(
    landmarks: Sequence[Point],
    config: Optional[PoseConfig] = None,
) -> FaceAngle:
    """Estimate yaw, pitch and roll (degrees) from five landmarks.

    Args:
        landmarks: Points in order (left eye, right eye, nose tip,
                   mouth left, mouth right), in image pixel space.
        config: Calibration constants. Defaults to PoseConfig().

    Raises:
        ValueError: If landmarks does not hold exactly five points.
    """
    if len(landmarks) != LANDMARK_COUNT:
        raise ValueError(
            f"Pose estimation needs {LANDMARK_COUNT} landmarks, got {len(landmarks)}."
        )
    if config is None:
        config = PoseConfig()

    left_eye, right_eye, nose, mouth_left, mouth_right = landmarks

    roll = math.degrees(math.atan2(right_eye.y - left_eye.y, right_eye.x - left_eye.x))

    eye_cx = (left_eye.x + right_eye.x) / 2
    eye_cy = (left_eye.y + right_eye.y) / 2
    mouth_cy = (mouth_left.y + mouth_right.y) / 2

    interocular = right_eye.x - left_eye.x
    if interocular == 0:
        logger.debug("Zero interocular distance; reporting yaw 0.")
        yaw = 0.0
    else:
        yaw = math.degrees(math.atan2(nose.x - eye_cx, interocular)) * config.yaw_factor

    vertical_face_length = mouth_cy - eye_cy
    if vertical_face_length == 0:
        logger.debug("Zero eye-to-mouth distance; reporting pitch 0.")
        pitch = 0.0
    else:
        ratio = (nose.y - eye_cy) / vertical_face_length
        pitch = (config.pitch_center - ratio) * config.pitch_range

    return FaceAngle(yaw=yaw, pitch=pitch, roll=roll)
