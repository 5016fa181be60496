"""
Configuration management for the face detection post-processing engine.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, I/O, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

from retinaface_post.errors import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: retinaface_post/config.py → repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Model-related configuration.

    Attributes:
        model_path: Path to the RetinaFace .onnx file (relative to project root).
        backend: Compute backend — 'cpu' or 'cuda'.
        input_size: Network input (width, height). Also the resolution
                    the priors are generated for.
        mean_values: Per-channel mean subtraction values (BGR order).
        scale_factor: Pixel value scale factor applied during blob creation.
        swap_rb: Swap R and B channels when building the blob.
        output_names: Network output names for (boxes, scores, landmarks).
    """

    model_path: str = "models/retinaface_mobilenet0.25_320.onnx"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (320, 320)
    mean_values: Tuple[float, float, float] = (104.0, 117.0, 123.0)
    scale_factor: float = 1.0
    swap_rb: bool = False
    output_names: Tuple[str, str, str] = ("boxes", "scores", "landmarks")


@dataclass(frozen=True)
class PriorConfig:
    """Anchor pyramid configuration.

    Attributes:
        strides: Feature-map stride of each pyramid level.
        base_sizes: Anchor sizes in pixels, one group per level.
        clip: Clamp anchor coordinates to [0, 1].
    """

    strides: Tuple[int, ...] = (8, 16, 32)
    base_sizes: Tuple[Tuple[int, ...], ...] = ((16, 32), (64, 128), (256, 512))
    clip: bool = False


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds.

    Attributes:
        score_threshold: Minimum face score to keep an anchor (inclusive).
        iou_threshold: IoU at or above which NMS drops a candidate.
        max_results: Result limit used when a caller passes none.
    """

    score_threshold: float = 0.3
    iou_threshold: float = 0.4
    max_results: int = 50


@dataclass(frozen=True)
class PoseConfig:
    """Calibration constants of the landmark head-pose estimator.

    These are empirical. Keep the defaults unless recalibrating against
    a reference pose dataset.

    Attributes:
        yaw_factor: Multiplier applied to the raw yaw angle.
        pitch_center: Nose position (0 = eye line, 1 = mouth line) that
                      counts as zero pitch.
        pitch_range: Degrees per unit of nose-position offset.
    """

    yaw_factor: float = 1.2
    pitch_center: float = 0.5
    pitch_range: float = 90.0


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Comma-separated output modes: 'save_json', 'save_csv'.
        save_path: Directory where output artifacts are written.
    """

    mode: str = "save_json"
    save_path: str = "output/"


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    priors: PriorConfig = field(default_factory=PriorConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    pose: PoseConfig = field(default_factory=PoseConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_OUTPUT_MODES = {"save_json", "save_csv"}


def parse_modes(mode: str) -> set:
    """Split a comma-separated mode string into a set of mode names."""
    return {m.strip() for m in mode.split(",") if m.strip()}


def validate_config(config: AppConfig) -> None:
    """Validate configuration values. Raises ConfigurationError on invalid state."""

    if config.model.backend not in _VALID_BACKENDS:
        raise ConfigurationError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    invalid_modes = parse_modes(config.output.mode) - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ConfigurationError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    if not (0.0 <= config.detection.score_threshold <= 1.0):
        raise ConfigurationError(
            f"detection.score_threshold must be in [0.0, 1.0], "
            f"got {config.detection.score_threshold}."
        )

    if not (0.0 <= config.detection.iou_threshold <= 1.0):
        raise ConfigurationError(
            f"detection.iou_threshold must be in [0.0, 1.0], "
            f"got {config.detection.iou_threshold}."
        )

    if config.detection.max_results < 0:
        raise ConfigurationError(
            f"detection.max_results must be non-negative, "
            f"got {config.detection.max_results}."
        )

    if len(config.model.input_size) != 2:
        raise ConfigurationError(
            f"model.input_size must be a (width, height) tuple, "
            f"got {config.model.input_size}."
        )

    if any(d <= 0 for d in config.model.input_size):
        raise ConfigurationError(
            f"model.input_size dimensions must be positive, "
            f"got {config.model.input_size}."
        )

    if config.model.scale_factor <= 0:
        raise ConfigurationError(
            f"model.scale_factor must be positive, "
            f"got {config.model.scale_factor}."
        )

    if len(config.model.output_names) != 3:
        raise ConfigurationError(
            f"model.output_names must name (boxes, scores, landmarks), "
            f"got {config.model.output_names}."
        )

    if not config.priors.strides or any(s <= 0 for s in config.priors.strides):
        raise ConfigurationError(
            f"priors.strides must be a non-empty list of positive integers, "
            f"got {config.priors.strides}."
        )

    if len(config.priors.base_sizes) != len(config.priors.strides):
        raise ConfigurationError(
            f"priors.base_sizes needs one group per stride: "
            f"{len(config.priors.strides)} strides, "
            f"{len(config.priors.base_sizes)} groups."
        )

    for group in config.priors.base_sizes:
        if not group or any(v <= 0 for v in group):
            raise ConfigurationError(
                f"priors.base_sizes groups must be non-empty and positive, "
                f"got {group}."
            )

    for name in ("yaw_factor", "pitch_center", "pitch_range"):
        if not math.isfinite(getattr(config.pose, name)):
            raise ConfigurationError(
                f"pose.{name} must be finite, got {getattr(config.pose, name)}."
            )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: Optional[int], cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length.

    expected_len of None accepts any length.
    """
    if isinstance(value, str):
        value = [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        if expected_len is not None and len(value) != expected_len:
            raise ConfigurationError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "model_path" in raw:
        kwargs["model_path"] = str(raw["model_path"])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "mean_values" in raw:
        kwargs["mean_values"] = _parse_tuple(raw["mean_values"], 3, float)
    if "scale_factor" in raw:
        kwargs["scale_factor"] = float(raw["scale_factor"])
    if "swap_rb" in raw:
        kwargs["swap_rb"] = _parse_bool(raw["swap_rb"])
    if "output_names" in raw:
        kwargs["output_names"] = _parse_tuple(raw["output_names"], 3, str)
    return ModelConfig(**kwargs)


def _build_prior_config(raw: dict) -> PriorConfig:
    """Build PriorConfig from a raw YAML dict."""
    kwargs = {}
    if "strides" in raw:
        kwargs["strides"] = _parse_tuple(raw["strides"], None, int)
    if "base_sizes" in raw:
        kwargs["base_sizes"] = tuple(
            _parse_tuple(group, None, int) for group in raw["base_sizes"]
        )
    if "clip" in raw:
        kwargs["clip"] = _parse_bool(raw["clip"])
    return PriorConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "score_threshold" in raw:
        kwargs["score_threshold"] = float(raw["score_threshold"])
    if "iou_threshold" in raw:
        kwargs["iou_threshold"] = float(raw["iou_threshold"])
    if "max_results" in raw:
        kwargs["max_results"] = int(raw["max_results"])
    return DetectionConfig(**kwargs)


def _build_pose_config(raw: dict) -> PoseConfig:
    """Build PoseConfig from a raw YAML dict."""
    kwargs = {}
    for key in ("yaw_factor", "pitch_center", "pitch_range"):
        if key in raw:
            kwargs[key] = float(raw[key])
    return PoseConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "RETINAFACE_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        RETINAFACE_MODEL_BACKEND=cuda
        RETINAFACE_DETECTION_SCORE_THRESHOLD=0.5
        RETINAFACE_MODEL_INPUT_SIZE=640,640
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_PATH": ("model", "model_path"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}MODEL_INPUT_SIZE": ("model", "input_size"),
        f"{_ENV_PREFIX}DETECTION_SCORE_THRESHOLD": ("detection", "score_threshold"),
        f"{_ENV_PREFIX}DETECTION_IOU_THRESHOLD": ("detection", "iou_threshold"),
        f"{_ENV_PREFIX}DETECTION_MAX_RESULTS": ("detection", "max_results"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ConfigurationError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    try:
        config = AppConfig(
            model=_build_model_config(raw.get("model", {})),
            priors=_build_prior_config(raw.get("priors", {})),
            detection=_build_detection_config(raw.get("detection", {})),
            pose=_build_pose_config(raw.get("pose", {})),
            output=_build_output_config(raw.get("output", {})),
        )
    except (TypeError, ValueError) as e:
        if isinstance(e, ConfigurationError):
            raise
        raise ConfigurationError(f"Malformed configuration value: {e}") from e

    # --- Validate ---
    validate_config(config)

    logger.debug("Configuration loaded: %s", config)
    return config
