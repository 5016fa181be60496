"""
Anchor ("prior") generation for the RetinaFace detection head.

Responsibility:
    Produce the fixed anchor grid the network regresses against, for a
    given input resolution and pyramid configuration.

Ordering contract:
    Anchors are emitted level by level, each level row-major over its
    feature map (row i, column j), and base-size-minor within a cell.
    Anchor k pairs positionally with row k of every network output
    tensor, so this order must never change.

Caching:
    Priors depend only on (strides, base sizes, width, height, clip) and
    are immutable (read-only numpy arrays), so they are computed once per
    configuration and shared across calls and threads.
"""

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Sequence, Tuple

import numpy as np

from retinaface_post.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Priors:
    """Co-indexed anchor arrays in normalized [0, 1] coordinates.

    Attributes:
        cx: Anchor center x, shape (N,).
        cy: Anchor center y, shape (N,).
        w: Anchor width, shape (N,).
        h: Anchor height, shape (N,).
    """

    cx: np.ndarray
    cy: np.ndarray
    w: np.ndarray
    h: np.ndarray

    def __len__(self) -> int:
        return int(self.cx.shape[0])

    def subset(self, indices: np.ndarray) -> "Priors":
        """Return the priors at the given anchor indices, in that order."""
        return Priors(
            cx=self.cx[indices],
            cy=self.cy[indices],
            w=self.w[indices],
            h=self.h[indices],
        )

    def as_array(self) -> np.ndarray:
        """Return an (N, 4) array of (cx, cy, w, h) rows."""
        return np.stack([self.cx, self.cy, self.w, self.h], axis=1)


def prior_count(
    strides: Sequence[int],
    base_sizes: Sequence[Sequence[int]],
    image_width: int,
    image_height: int,
) -> int:
    """Number of anchors the given configuration produces."""
    return sum(
        math.ceil(image_height / s) * math.ceil(image_width / s) * len(sizes)
        for s, sizes in zip(strides, base_sizes)
    )


def generate_priors(
    strides: Sequence[int],
    base_sizes: Sequence[Sequence[int]],
    image_width: int,
    image_height: int,
    clip: bool = False,
) -> Priors:
    """Generate (or fetch from cache) the anchors for a configuration.

    Args:
        strides: Feature-map stride per pyramid level, e.g. (8, 16, 32).
        base_sizes: Anchor sizes in pixels per level, one group per stride,
                    e.g. ((16, 32), (64, 128), (256, 512)).
        image_width: Network input width in pixels.
        image_height: Network input height in pixels.
        clip: Clamp every anchor coordinate to [0, 1].

    Returns:
        A Priors instance with read-only arrays of equal length N.

    Raises:
        ConfigurationError: On non-positive resolution, strides or base
                            sizes, or a stride/base-size count mismatch.
    """
    strides_t = tuple(int(s) for s in strides)
    sizes_t = tuple(tuple(int(v) for v in group) for group in base_sizes)
    _validate_levels(strides_t, sizes_t, image_width, image_height)
    return _generate(strides_t, sizes_t, int(image_width), int(image_height), bool(clip))


def _validate_levels(
    strides: Tuple[int, ...],
    base_sizes: Tuple[Tuple[int, ...], ...],
    image_width: int,
    image_height: int,
) -> None:
    if image_width <= 0 or image_height <= 0:
        raise ConfigurationError(
            f"Prior resolution must be positive, got {image_width}x{image_height}."
        )
    if not strides:
        raise ConfigurationError("At least one pyramid level is required.")
    if len(strides) != len(base_sizes):
        raise ConfigurationError(
            f"Got {len(strides)} strides but {len(base_sizes)} base-size groups; "
            f"each pyramid level needs exactly one group."
        )
    if any(s <= 0 for s in strides):
        raise ConfigurationError(f"Strides must be positive, got {strides}.")
    for group in base_sizes:
        if not group or any(v <= 0 for v in group):
            raise ConfigurationError(
                f"Base sizes must be non-empty and positive, got {group}."
            )


@lru_cache(maxsize=16)
def _generate(
    strides: Tuple[int, ...],
    base_sizes: Tuple[Tuple[int, ...], ...],
    image_width: int,
    image_height: int,
    clip: bool,
) -> Priors:
    columns = {"cx": [], "cy": [], "w": [], "h": []}

    for step, sizes in zip(strides, base_sizes):
        rows = math.ceil(image_height / step)
        cols = math.ceil(image_width / step)
        per_cell = len(sizes)

        # Row-major cell grid, then one anchor per base size within each cell.
        ii, jj = np.meshgrid(np.arange(rows), np.arange(cols), indexing="ij")
        cx = (jj.ravel() + 0.5) * step / image_width
        cy = (ii.ravel() + 0.5) * step / image_height
        sizes_arr = np.asarray(sizes, dtype=np.float64)

        columns["cx"].append(np.repeat(cx, per_cell))
        columns["cy"].append(np.repeat(cy, per_cell))
        columns["w"].append(np.tile(sizes_arr / image_width, rows * cols))
        columns["h"].append(np.tile(sizes_arr / image_height, rows * cols))

    arrays = {}
    for name, parts in columns.items():
        arr = np.concatenate(parts).astype(np.float64)
        if clip:
            arr = np.clip(arr, 0.0, 1.0)
        arr.setflags(write=False)
        arrays[name] = arr

    priors = Priors(**arrays)
    logger.debug(
        "Generated %d priors for %dx%d (strides=%s)",
        len(priors), image_width, image_height, strides,
    )
    return priors
