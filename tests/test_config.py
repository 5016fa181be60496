"""
Tests for the configuration module.
"""

import pytest

from retinaface_post.config import (
    AppConfig,
    DetectionConfig,
    ModelConfig,
    PriorConfig,
    load_config,
    validate_config,
)
from retinaface_post.errors import ConfigurationError


def test_load_defaults():
    """Test loading configuration without any file."""
    config = load_config(None)
    assert isinstance(config, AppConfig)
    assert config.model.backend == "cpu"
    assert config.model.input_size == (320, 320)
    assert config.priors.strides == (8, 16, 32)
    assert config.priors.base_sizes == ((16, 32), (64, 128), (256, 512))
    assert config.detection.score_threshold == 0.3
    assert config.detection.iou_threshold == 0.4
    assert config.pose.yaw_factor == 1.2
    assert config.pose.pitch_center == 0.5


def test_validation_failure():
    """Test fail-fast validation."""
    bad_config = AppConfig(detection=DetectionConfig(score_threshold=1.5))
    with pytest.raises(ConfigurationError, match="score_threshold"):
        validate_config(bad_config)

    bad_config = AppConfig(model=ModelConfig(backend="invalid"))
    with pytest.raises(ValueError, match="backend"):
        validate_config(bad_config)

    bad_config = AppConfig(priors=PriorConfig(strides=(8, 16)))
    with pytest.raises(ConfigurationError, match="base_sizes"):
        validate_config(bad_config)

    bad_config = AppConfig(priors=PriorConfig(strides=(8, 0, 32)))
    with pytest.raises(ConfigurationError, match="strides"):
        validate_config(bad_config)

    bad_config = AppConfig(detection=DetectionConfig(max_results=-1))
    with pytest.raises(ConfigurationError, match="max_results"):
        validate_config(bad_config)


def test_env_override(monkeypatch):
    """Test environment variable overrides."""
    monkeypatch.setenv("RETINAFACE_DETECTION_SCORE_THRESHOLD", "0.9")
    monkeypatch.setenv("RETINAFACE_MODEL_BACKEND", "cuda")
    monkeypatch.setenv("RETINAFACE_MODEL_INPUT_SIZE", "640,640")
    monkeypatch.setenv("RETINAFACE_DETECTION_MAX_RESULTS", "5")

    config = load_config(None)

    assert config.detection.score_threshold == 0.9
    assert config.model.backend == "cuda"
    assert config.model.input_size == (640, 640)
    assert config.detection.max_results == 5


def test_yaml_file(tmp_path):
    """Test loading every section from a YAML file."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "model:\n"
        "  input_size: [640, 480]\n"
        "  output_names: [loc, conf, landms]\n"
        "priors:\n"
        "  strides: [16, 32]\n"
        "  base_sizes: [[32, 64], [128, 256]]\n"
        "  clip: true\n"
        "detection:\n"
        "  iou_threshold: 0.5\n"
        "pose:\n"
        "  yaw_factor: 1.0\n"
        "output:\n"
        "  mode: save_json, save_csv\n",
        encoding="utf-8",
    )

    config = load_config(str(path))

    assert config.model.input_size == (640, 480)
    assert config.model.output_names == ("loc", "conf", "landms")
    assert config.priors.strides == (16, 32)
    assert config.priors.base_sizes == ((32, 64), (128, 256))
    assert config.priors.clip is True
    assert config.detection.iou_threshold == 0.5
    assert config.detection.score_threshold == 0.3
    assert config.pose.yaw_factor == 1.0


def test_yaml_invalid_value(tmp_path):
    """Test that a YAML value outside its range is rejected."""
    path = tmp_path / "config.yaml"
    path.write_text("detection:\n  iou_threshold: 2\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="iou_threshold"):
        load_config(str(path))


def test_yaml_unparseable_value(tmp_path):
    """Test that a non-numeric threshold becomes a configuration error."""
    path = tmp_path / "config.yaml"
    path.write_text("detection:\n  score_threshold: high\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_missing_config_file(tmp_path):
    """Test that a missing config path fails loudly."""
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))
