"""
Orientation Frames
==================
Tangent and normal vectors along a sampled curve.

Normals are propagated by parallel transport: each normal is the previous one
turned by the minimal rotation between consecutive tangents. Unlike a Frenet
frame this never flips at inflection points, so ribbons extruded along the
curve do not twist.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

import numpy as np

from proteinribbon.config import CurveConfig
from proteinribbon.controller.spline import adaptive_sample
from proteinribbon.model.geometry_utils import (
    normalize, normalize_rows, project_orthogonal, minimal_rotation
)

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

FALLBACK_TANGENT = np.array([0.0, 0.0, 1.0])
UP = np.array([0.0, 1.0, 0.0])
RIGHT = np.array([1.0, 0.0, 0.0])
PARALLEL_LIMIT = 0.9


def _empty() -> npt.NDArray[np.float64]:
    return np.zeros((0, 3), dtype=np.float64)


@dataclass(frozen=True, eq=False)
class SampledCurve:
    """Sample points with a unit tangent and a unit normal for every sample."""
    points: npt.NDArray[np.float64] = field(default_factory=_empty)
    tangents: npt.NDArray[np.float64] = field(default_factory=_empty)
    normals: npt.NDArray[np.float64] = field(default_factory=_empty)

    def __post_init__(self) -> None:
        if not (len(self.points) == len(self.tangents) == len(self.normals)):
            raise ValueError(
                f"Frame arrays differ in length: {len(self.points)} points, "
                f"{len(self.tangents)} tangents, {len(self.normals)} normals."
            )

    def __len__(self) -> int:
        return len(self.points)

    @property
    def is_empty(self) -> bool:
        return len(self.points) < 2

    @property
    def binormals(self) -> npt.NDArray[np.float64]:
        return np.cross(self.tangents, self.normals)


def compute_tangents(points: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Unit tangents by finite differences: central inside, one-sided at the ends.

    A difference of zero length (coincident samples) reuses the previous valid
    tangent; leading degenerate samples take the first valid tangent.

    Args:
        points: Sample points, shape (N, 3), N >= 2.

    Returns:
        Unit tangents, shape (N, 3).
    """
    points = np.asarray(points, dtype=np.float64)
    n = len(points)
    if n < 2:
        return _empty()

    raw = np.empty_like(points)
    raw[0] = points[1] - points[0]
    raw[-1] = points[-1] - points[-2]
    if n > 2:
        raw[1:-1] = points[2:] - points[:-2]

    tangents = normalize_rows(raw)
    valid = np.linalg.norm(tangents, axis=1) > 0.5
    if not valid.any():
        logger.debug("All samples coincide; using a fixed tangent.")
        return np.tile(FALLBACK_TANGENT, (n, 1))

    last = tangents[np.argmax(valid)]
    for i in range(n):
        if valid[i]:
            last = tangents[i]
        else:
            tangents[i] = last
    return tangents


def initial_normal(tangent: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """A unit vector orthogonal to `tangent`, built from +Y (or +X when +Y is nearly parallel)."""
    seed = RIGHT if abs(np.dot(UP, tangent)) > PARALLEL_LIMIT else UP
    return normalize(project_orthogonal(seed, tangent))


def parallel_transport(tangents: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Propagate a normal along the tangents by minimal rotations.

    Args:
        tangents: Unit tangents, shape (N, 3).

    Returns:
        Unit normals orthogonal to their tangents, shape (N, 3).
    """
    tangents = np.asarray(tangents, dtype=np.float64)
    n = len(tangents)
    if n == 0:
        return _empty()

    normals = np.empty_like(tangents)
    normals[0] = initial_normal(tangents[0])

    for i in range(1, n):
        rotated = minimal_rotation(normals[i - 1], tangents[i - 1], tangents[i])
        # Re-orthogonalize to stop rounding drift from accumulating
        candidate = normalize(project_orthogonal(rotated, tangents[i]))
        if not candidate.any():
            candidate = initial_normal(tangents[i])
        normals[i] = candidate
    return normals


def build_curve(
    guide_points: npt.NDArray[np.float64],
    config: Optional[CurveConfig] = None
) -> SampledCurve:
    """
    Fit, sample and frame a curve through a segment's guide points.

    Every sample, including refinement midpoints, gets a tangent and a normal
    computed at its own position.

    Args:
        guide_points: Guide points, shape (N, 3).
        config: Sampling parameters.

    Returns:
        The sampled curve, empty when there is too little input to fit.
    """
    config = config or CurveConfig()
    guide_points = np.asarray(guide_points, dtype=np.float64).reshape(-1, 3) * config.scale
    if len(guide_points) < config.min_segment_points:
        return SampledCurve()

    points = adaptive_sample(guide_points, config)
    if len(points) < 2:
        return SampledCurve()

    tangents = compute_tangents(points)
    normals = parallel_transport(tangents)
    return SampledCurve(points=points, tangents=tangents, normals=normals)
