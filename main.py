"""
RetinaFace Post-processing CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, run the
    detector over images (or decode previously captured network
    outputs), and write the results.

Usage:
    python main.py --source photo.jpg                       # Single image
    python main.py --source images/ --limit 5               # Directory of images
    python main.py --outputs capture.npz --scale 0.5        # Saved raw tensors
    python main.py --config my_config.yaml --output-mode save_json,save_csv

An .npz archive for --outputs holds the arrays named by
model.output_names (default: boxes, scores, landmarks).

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import dataclasses
import logging
import sys
import time
from pathlib import Path
from typing import Dict, List

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

import cv2
import numpy as np
import yaml

from retinaface_post.config import (
    AppConfig,
    get_project_root,
    load_config,
    parse_modes,
    validate_config,
)
from retinaface_post.decoder import RawOutputs
from retinaface_post.detection import Detection
from retinaface_post.detector import Detector
from retinaface_post.errors import FaceDetectionError
from retinaface_post.pipeline import FaceDetectionPipeline
from retinaface_post.serializer import save_csv, save_json

# Image extensions recognized for --source
_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="RetinaFace face detection post-processing",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--source",
        type=str,
        help="Image file or directory of images to run the detector on.",
    )
    source.add_argument(
        "--outputs",
        type=str,
        help="An .npz archive of raw network outputs to decode without a model.",
    )

    parser.add_argument(
        "--scale",
        type=float,
        default=1.0,
        help="Resize scale the captured outputs were produced with (--outputs only).",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--score-threshold",
        type=float,
        help="Face score threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--iou-threshold",
        type=float,
        help="NMS IoU threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        help="Maximum faces per image. Overrides detection.max_results.",
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=["cpu", "cuda"],
        help="Compute backend preference. Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s), comma-separated: save_json, save_csv. Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Directory for output artifacts. Overrides config.",
    )

    return parser.parse_args()


def apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return a copy of config with CLI arguments applied."""
    detection = config.detection
    if args.score_threshold is not None:
        detection = dataclasses.replace(detection, score_threshold=args.score_threshold)
    if args.iou_threshold is not None:
        detection = dataclasses.replace(detection, iou_threshold=args.iou_threshold)
    if args.limit is not None:
        detection = dataclasses.replace(detection, max_results=args.limit)

    model = config.model
    if args.backend is not None:
        model = dataclasses.replace(model, backend=args.backend)

    output = config.output
    if args.output_mode is not None:
        output = dataclasses.replace(output, mode=args.output_mode)
    if args.output_path is not None:
        output = dataclasses.replace(output, save_path=args.output_path)

    return dataclasses.replace(config, detection=detection, model=model, output=output)


def list_images(source: str) -> List[Path]:
    """Resolve --source into a sorted list of image paths."""
    path = Path(source)
    if path.is_file():
        if path.suffix.lower() not in _IMAGE_EXTENSIONS:
            raise ValueError(
                f"Unrecognized image extension: '{path.suffix}'. "
                f"Supported: {_IMAGE_EXTENSIONS}."
            )
        return [path]
    if path.is_dir():
        images = sorted(p for p in path.iterdir() if p.suffix.lower() in _IMAGE_EXTENSIONS)
        if not images:
            raise ValueError(f"No image files found in directory: '{source}'.")
        return images
    raise FileNotFoundError(f"Input source not found: '{source}'.")


def run_images(config: AppConfig, source: str) -> Dict[str, List[Detection]]:
    """Run the detector over every image in source."""
    detector = Detector(config)
    results: Dict[str, List[Detection]] = {}

    for path in list_images(source):
        frame = cv2.imread(str(path))
        if frame is None:
            logger.warning("Skipping unreadable image: %s", path)
            continue
        faces = detector.detect(frame)
        logger.info("%s: %d face(s)", path.name, len(faces))
        results[path.name] = faces

    return results


def run_outputs(config: AppConfig, archive: str, scale: float) -> Dict[str, List[Detection]]:
    """Decode a saved set of raw network outputs."""
    pipeline = FaceDetectionPipeline.from_config(config)
    with np.load(archive) as data:
        outputs = RawOutputs.from_mapping(
            {name: data[name] for name in data.files}, config.model.output_names
        )
        faces = pipeline.process(outputs, scale=scale)
    logger.info("%s: %d face(s)", Path(archive).name, len(faces))
    return {Path(archive).name: faces}


def write_results(config: AppConfig, results: Dict[str, List[Detection]]) -> None:
    """Write results in every configured output mode."""
    save_path = Path(config.output.save_path)
    if not save_path.is_absolute():
        save_path = get_project_root() / save_path

    modes = parse_modes(config.output.mode)
    if "save_json" in modes:
        save_json(results, str(save_path / "detections.json"))
    if "save_csv" in modes:
        save_csv(results, str(save_path / "detections.csv"))


def main() -> int:
    """Main execution."""
    args = parse_args()

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = apply_cli_overrides(load_config(args.config), args)
        validate_config(config)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Detect / decode
    start_time = time.perf_counter()
    try:
        if args.source is not None:
            results = run_images(config, args.source)
        else:
            results = run_outputs(config, args.outputs, args.scale)
    except (FileNotFoundError, ValueError, RuntimeError, FaceDetectionError) as e:
        logger.error("Detection failed: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        return 1

    # 3. Output
    write_results(config, results)

    elapsed = time.perf_counter() - start_time
    logger.info(
        "Processing finished. Inputs: %d. Faces: %d. Elapsed: %.2fs.",
        len(results), sum(len(v) for v in results.values()), elapsed,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
