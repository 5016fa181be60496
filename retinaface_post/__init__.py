"""
RetinaFace post-processing — from raw network tensors to ranked faces.

Public API:
    - FaceDetectionPipeline: Decodes raw (boxes, scores, landmarks)
      tensors into detections with bounds, landmarks and head pose.
    - RawOutputs: The three raw tensors of one inference.
    - Detector: Frame-level wrapper (preprocess → OpenCV DNN → pipeline).
    - Detection: Value object representing a detected face.

Usage:
    from retinaface_post import FaceDetectionPipeline, RawOutputs

    pipeline = FaceDetectionPipeline(input_size=(320, 320))
    faces = pipeline.process(RawOutputs(boxes, scores, landmarks), scale=0.5, limit=5)
"""

from retinaface_post.decoder import RawOutputs
from retinaface_post.detection import BoundingBox, Detection, FaceAngle, Point
from retinaface_post.detector import Detector
from retinaface_post.pipeline import FaceDetectionPipeline

__all__ = [
    "BoundingBox",
    "Detection",
    "Detector",
    "FaceAngle",
    "FaceDetectionPipeline",
    "Point",
    "RawOutputs",
]
