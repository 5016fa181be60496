"""
Serialization for the face detection pipeline.

Responsibility:
    Export detection results to structured file formats (JSON, CSV)
    for downstream consumption or offline analysis.

Non-goals:
    - No rendering, display, or detection logic.
    - No streaming output — writes complete files in one call.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Dict, List

from retinaface_post.detection import LANDMARK_NAMES, Detection

logger = logging.getLogger(__name__)


def save_json(
    detections_by_frame: Dict[str, List[Detection]],
    output_path: str,
) -> None:
    """Export all detections to a JSON file.

    Output schema:
        {
            "frames": [
                {
                    "frame_id": "image.jpg",
                    "detections": [
                        {
                            "score": ..., "quality": ...,
                            "bounds": {"x": ..., "y": ..., "width": ..., "height": ...},
                            "landmarks": [{"x": ..., "y": ...}, ...],
                            "angle": {"yaw": ..., "pitch": ..., "roll": ...}
                        }
                    ]
                }
            ],
            "total_frames": N,
            "total_detections": M
        }

    Args:
        detections_by_frame: Mapping of frame id → list of Detection objects.
        output_path: Path to the output JSON file.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    frames = []
    total_detections = 0

    for frame_id in sorted(detections_by_frame.keys()):
        dets = detections_by_frame[frame_id]
        total_detections += len(dets)
        frames.append({
            "frame_id": frame_id,
            "detections": [d.to_dict() for d in dets],
        })

    payload = {
        "frames": frames,
        "total_frames": len(frames),
        "total_detections": total_detections,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(
        "JSON output saved: %s (%d frames, %d detections)",
        output_path, len(frames), total_detections,
    )


def save_csv(
    detections_by_frame: Dict[str, List[Detection]],
    output_path: str,
) -> None:
    """Export all detections to a CSV file, one row per face.

    Columns: frame_id, score, x, y, width, height, yaw, pitch, roll,
    then <landmark>_x, <landmark>_y for each of the five landmarks.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    fieldnames = ["frame_id", "score", "x", "y", "width", "height", "yaw", "pitch", "roll"]
    for name in LANDMARK_NAMES:
        fieldnames += [f"{name}_x", f"{name}_y"]

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()

        total = 0
        for frame_id in sorted(detections_by_frame.keys()):
            for det in detections_by_frame[frame_id]:
                row = {
                    "frame_id": frame_id,
                    "score": round(det.score, 4),
                    **det.bounds.to_dict(),
                    **det.angle.to_dict(),
                }
                for name, point in zip(LANDMARK_NAMES, det.landmarks):
                    row[f"{name}_x"] = point.x
                    row[f"{name}_y"] = point.y
                writer.writerow(row)
                total += 1

    logger.info("CSV output saved: %s (%d rows)", output_path, total)


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
