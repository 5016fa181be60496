"""
Tests for the end-to-end decoding pipeline.
"""

import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from retinaface_post.config import DetectionConfig, load_config
from retinaface_post.decoder import RawOutputs
from retinaface_post.errors import ConfigurationError, MalformedOutputError
from retinaface_post.pipeline import FaceDetectionPipeline


@pytest.fixture
def pipeline():
    return FaceDetectionPipeline(input_size=(320, 320))


def test_single_face_end_to_end(pipeline, make_outputs):
    """Test decode → filter → suppress → map → pose on one known anchor."""
    k = 1234
    box = (0.5, -0.5, 0.1, 0.2)
    lms = (-2.0, -1.0, 2.0, -1.0, 0.0, 0.5, -1.5, 2.0, 1.5, 2.0)
    outputs = make_outputs(len(pipeline.priors), {k: (0.9, box, lms)})

    faces = pipeline.process(outputs, scale=1.0, limit=1)

    assert len(faces) == 1
    face = faces[0]
    assert face.score == pytest.approx(0.9, abs=1e-6)

    p = pipeline.priors
    cx = p.cx[k] + 0.1 * box[0] * p.w[k]
    cy = p.cy[k] + 0.1 * box[1] * p.h[k]
    w = p.w[k] * math.exp(0.2 * box[2])
    h = p.h[k] * math.exp(0.2 * box[3])
    assert face.bounds.x == pytest.approx((cx - w / 2) * 320, rel=1e-5)
    assert face.bounds.y == pytest.approx((cy - h / 2) * 320, rel=1e-5)
    assert face.bounds.width == pytest.approx(w * 320, rel=1e-5)
    assert face.bounds.height == pytest.approx(h * 320, rel=1e-5)

    for i, point in enumerate(face.landmarks):
        assert point.x == pytest.approx((p.cx[k] + 0.1 * lms[2 * i] * p.w[k]) * 320, rel=1e-5)
        assert point.y == pytest.approx((p.cy[k] + 0.1 * lms[2 * i + 1] * p.h[k]) * 320, rel=1e-5)

    # Eyes level, nose centered → no roll or yaw
    assert face.angle.roll == pytest.approx(0.0, abs=1e-6)
    assert face.angle.yaw == pytest.approx(0.0, abs=1e-6)
    # Nose offset 0.5 is halfway between eye offset -1 and mouth offset 2
    assert face.angle.pitch == pytest.approx(0.0, abs=1e-4)


def test_no_face_returns_empty_list(pipeline, make_outputs):
    """Test that no anchor above threshold is an empty result."""
    assert pipeline.process(make_outputs(len(pipeline.priors))) == []


def test_accepts_unbatched_float64_tensors(pipeline, make_outputs):
    """Test (N, C) layouts are accepted as well as (1, N, C)."""
    outputs = make_outputs(len(pipeline.priors), {0: (0.8,)}, batched=False, dtype=np.float64)

    faces = pipeline.process(outputs)

    assert len(faces) == 1
    assert faces[0].score == 0.8


def test_overlapping_anchors_are_suppressed(pipeline, make_outputs):
    """Test that two anchors decoding to the same box yield one face."""
    # Anchor 2 sits one stride (8 px) right of anchor 0 with the same size;
    # dx = -5 moves it back onto anchor 0: 0.1 * -5 * (16/320) = -8/320.
    outputs = make_outputs(
        len(pipeline.priors),
        {0: (0.8,), 2: (0.95, (-5.0, 0.0, 0.0, 0.0))},
    )

    faces = pipeline.process(outputs)

    assert len(faces) == 1
    assert faces[0].score == pytest.approx(0.95, abs=1e-6)


def test_results_sorted_and_limited(pipeline, make_outputs):
    """Test descending score order and the result limit."""
    hits = {0: (0.5,), 1000: (0.9,), 2500: (0.7,), 4000: (0.6,)}
    outputs = make_outputs(len(pipeline.priors), hits)

    faces = pipeline.process(outputs, limit=10)
    scores = [f.score for f in faces]
    assert scores == sorted(scores, reverse=True)
    assert len(faces) == 4

    assert len(pipeline.process(outputs, limit=2)) == 2
    assert pipeline.process(outputs, limit=0) == []


def test_default_limit_comes_from_config(make_outputs):
    """Test that limit=None uses detection.max_results."""
    pipeline = FaceDetectionPipeline(detection=DetectionConfig(max_results=1))
    hits = {0: (0.5,), 1000: (0.9,), 2500: (0.7,)}

    faces = pipeline.process(make_outputs(len(pipeline.priors), hits))

    assert len(faces) == 1
    assert faces[0].score == pytest.approx(0.9, abs=1e-6)


def test_scale_maps_back_to_original_image(pipeline, make_outputs):
    """Test that a 0.5 resize scale doubles the pixel coordinates."""
    outputs = make_outputs(len(pipeline.priors), {100: (0.9,)})

    full = pipeline.process(outputs, scale=1.0)[0]
    half = pipeline.process(outputs, scale=0.5)[0]

    assert half.bounds.width == pytest.approx(full.bounds.width * 2)
    assert half.nose_tip.x == pytest.approx(full.nose_tip.x * 2)


def test_tensor_prior_mismatch_is_configuration_error(make_outputs):
    """Test that tensors generated for another resolution are rejected."""
    pipeline = FaceDetectionPipeline(input_size=(640, 640))

    with pytest.raises(ConfigurationError):
        pipeline.process(make_outputs(4200, {0: (0.9,)}))


def test_malformed_tensor_fails_whole_call(pipeline):
    """Test that a malformed tensor raises instead of returning partial results."""
    n = len(pipeline.priors)
    outputs = RawOutputs(
        boxes=np.zeros((n, 4)),
        scores=np.zeros((n, 3)),
        landmarks=np.zeros((n, 10)),
    )

    with pytest.raises(MalformedOutputError):
        pipeline.process(outputs)


def test_invalid_configuration_fails_at_construction():
    """Test that bad resolution is reported by the constructor."""
    with pytest.raises(ConfigurationError):
        FaceDetectionPipeline(input_size=(0, 320))


def test_from_config_uses_default_configuration():
    """Test building from a loaded AppConfig."""
    pipeline = FaceDetectionPipeline.from_config(load_config(None))

    assert pipeline.input_size == (320, 320)
    assert len(pipeline.priors) == 4200


def test_concurrent_calls_share_priors(pipeline, make_outputs):
    """Test that concurrent calls on one pipeline give identical results."""
    outputs = make_outputs(len(pipeline.priors), {10: (0.9,), 3000: (0.8,)})
    expected = pipeline.process(outputs, scale=0.75)

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda _: pipeline.process(outputs, scale=0.75), range(8)))

    assert all(r == expected for r in results)
