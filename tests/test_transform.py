"""
Tests for the coordinate mapping module.
"""

import pytest

from retinaface_post.transform import map_to_image_space, scale_detection


def _coords(detection):
    b = detection.bounds
    values = [b.x, b.y, b.width, b.height]
    for p in detection.landmarks:
        values += [p.x, p.y]
    return values


def test_identity_mapping_is_noop(make_detection):
    """Test that unit input size and scale 1.0 leave a detection unchanged."""
    det = make_detection(0.9, 0.1, 0.2, 0.3, 0.4)

    assert map_to_image_space(det, (1, 1), 1.0) == det


def test_mapping_scales_bounds_and_landmarks_identically(make_detection):
    """Test the input-size and resize-scale transform."""
    det = make_detection(0.9, 0.1, 0.2, 0.3, 0.4)

    mapped = map_to_image_space(det, (320, 240), 0.5)

    assert mapped.bounds.x == pytest.approx(0.1 * 640)
    assert mapped.bounds.y == pytest.approx(0.2 * 480)
    assert mapped.bounds.width == pytest.approx(0.3 * 640)
    assert mapped.bounds.height == pytest.approx(0.4 * 480)
    for before, after in zip(det.landmarks, mapped.landmarks):
        assert after.x == pytest.approx(before.x * 640)
        assert after.y == pytest.approx(before.y * 480)
    assert mapped.score == det.score


def test_mapping_composes(make_detection):
    """Test that mapping with s1 then s2 equals mapping once with s1 * s2."""
    det = make_detection(0.9, 0.1, 0.2, 0.3, 0.4)

    twice = map_to_image_space(map_to_image_space(det, (1, 1), 0.5), (1, 1), 0.25)
    once = map_to_image_space(det, (1, 1), 0.5 * 0.25)

    assert _coords(twice) == pytest.approx(_coords(once))


def test_mapping_does_not_mutate_input(make_detection):
    """Test that mapping returns a new detection."""
    det = make_detection(0.9, 0.1, 0.2, 0.3, 0.4)
    before = _coords(det)

    mapped = scale_detection(det, 10, 20)

    assert mapped is not det
    assert _coords(det) == before


@pytest.mark.parametrize("scale", [0.0, -1.0])
def test_mapping_rejects_non_positive_scale(make_detection, scale):
    """Test that a non-positive resize scale is rejected."""
    with pytest.raises(ValueError, match="scale"):
        map_to_image_space(make_detection(0.9, 0, 0, 1, 1), (320, 320), scale)
