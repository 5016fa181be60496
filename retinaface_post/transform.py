"""
Coordinate mapping from network input space to original image space.

The preprocessing collaborator resizes the original image by `scale`
(aspect-preserving, padded at the bottom/right) to fit the network
input. Decoded coordinates are normalized to that input, so mapping
back is one scale transform per axis:

    x_image = x_normalized * input_width / scale
    y_image = y_normalized * input_height / scale

The same factors are applied to the bounding box and to every landmark,
so relative geometry is preserved exactly.
"""

from dataclasses import replace
from typing import Tuple

from retinaface_post.detection import Detection


def scale_detection(detection: Detection, sx: float, sy: float) -> Detection:
    """Return a copy of `detection` with every x scaled by sx and y by sy."""
    return replace(
        detection,
        bounds=detection.bounds.scaled(sx, sy),
        landmarks=tuple(p.scaled(sx, sy) for p in detection.landmarks),
    )


def map_to_image_space(
    detection: Detection,
    input_size: Tuple[int, int],
    scale: float,
) -> Detection:
    """Map a normalized detection to original image pixel coordinates.

    Args:
        detection: Detection normalized to the network input size.
        input_size: Network input (width, height) in pixels.
        scale: Resize factor used when fitting the original image into
               the network input.

    Raises:
        ValueError: If scale is not positive.
    """
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}.")

    input_width, input_height = input_size
    return scale_detection(detection, input_width / scale, input_height / scale)
