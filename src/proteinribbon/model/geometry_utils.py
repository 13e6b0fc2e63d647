from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from scipy.spatial.transform import Rotation

if TYPE_CHECKING:
    from numpy import typing as npt

EPS = 1e-9


def normalize(vector: npt.NDArray[np.float64], eps: float = EPS) -> npt.NDArray[np.float64]:
    """Unit vector in the direction of `vector`; the zero vector stays zero."""
    norm = np.linalg.norm(vector)
    if norm < eps:
        return np.zeros_like(vector, dtype=np.float64)
    return vector / norm


def normalize_rows(vectors: npt.NDArray[np.float64], eps: float = EPS) -> npt.NDArray[np.float64]:
    """
    Normalize each row of an (N, 3) array.

    Rows shorter than `eps` are returned as zero rows so callers can detect
    and repair them.
    """
    vectors = np.asarray(vectors, dtype=np.float64)
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    out = np.zeros_like(vectors)
    mask = norms[:, 0] >= eps
    out[mask] = vectors[mask] / norms[mask]
    return out


def project_orthogonal(
    vector: npt.NDArray[np.float64],
    direction: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    """
    Remove the component of `vector` along the unit vector `direction`.

    Args:
        vector: Vector to project.
        direction: Unit vector to be orthogonal to.

    Returns:
        The projected vector (not normalized).
    """
    return vector - direction * np.dot(vector, direction)


def rotate_about_axis(
    vector: npt.NDArray[np.float64],
    axis: npt.NDArray[np.float64],
    angle: float
) -> npt.NDArray[np.float64]:
    """
    Rotate `vector` by `angle` radians around the unit `axis` (Rodrigues' formula).

    Args:
        vector: Vector to rotate, shape (3,).
        axis: Unit rotation axis, shape (3,).
        angle: Rotation angle in radians (right-hand rule).

    Returns:
        The rotated vector.
    """
    return Rotation.from_rotvec(axis * angle).apply(vector)


def minimal_rotation(
    vector: npt.NDArray[np.float64],
    source: npt.NDArray[np.float64],
    target: npt.NDArray[np.float64],
    eps: float = 1e-6
) -> npt.NDArray[np.float64]:
    """
    Apply to `vector` the smallest rotation that carries unit `source` onto unit `target`.

    The axis is source x target and the angle arccos(source . target). When the
    axis is numerically zero (no direction change, or an exact reversal with no
    defined axis) the vector is returned unrotated.
    """
    axis = np.cross(source, target)
    axis_length = np.linalg.norm(axis)
    if axis_length < eps:
        return np.array(vector, dtype=np.float64)
    angle = float(np.arccos(np.clip(np.dot(source, target), -1.0, 1.0)))
    return rotate_about_axis(vector, axis / axis_length, angle)


def cumulative_arc_length(points: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Arc length from the first point to every point of a polyline.

    Returns:
        Array of shape (N,) starting at 0.0.
    """
    points = np.asarray(points, dtype=np.float64)
    if len(points) == 0:
        return np.zeros(0, dtype=np.float64)
    steps = np.linalg.norm(np.diff(points, axis=0), axis=1)
    return np.concatenate(([0.0], np.cumsum(steps)))


def arc_length_fractions(points: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Arc length of every point divided by the total length, in [0, 1].
    Falls back to the sample-index fraction for zero-length polylines.
    """
    lengths = cumulative_arc_length(points)
    n = len(lengths)
    if n == 0:
        return lengths
    if n == 1:
        return np.zeros(1, dtype=np.float64)
    total = lengths[-1]
    if total < EPS:
        return np.linspace(0.0, 1.0, n)
    return lengths / total
