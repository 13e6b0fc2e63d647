"""
Cubic B-Spline Fitting and Adaptive Sampling
============================================
Fits a smooth curve through a segment's guide points and samples it densely
where it bends and sparsely where it runs straight.
"""
from __future__ import annotations

import logging
from typing import Optional, TYPE_CHECKING

import numpy as np

from proteinribbon.config import CurveConfig

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

DEGREE = 3


def clamped_uniform_knots(n_control: int, degree: int) -> npt.NDArray[np.float64]:
    """
    Open uniform knot vector: `degree + 1` repeated knots at each end so the
    curve starts on the first and ends on the last control point.

    Returns:
        Array of `n_control + degree + 1` knots spanning [0, n_control - degree].
    """
    inner = np.arange(1, n_control - degree, dtype=np.float64)
    end = float(n_control - degree)
    return np.concatenate((np.zeros(degree + 1), inner, np.full(degree + 1, end)))


class BSplineCurve:
    """
    Uniform cubic B-spline through `control_points`.

    Fewer than four control points lower the degree to `n - 1` (a straight line
    for two points). Basis functions are evaluated with the Cox-de Boor
    recursion unrolled into its triangular table.
    """

    def __init__(self, control_points: npt.NDArray[np.float64]) -> None:
        self.control_points = np.asarray(control_points, dtype=np.float64).reshape(-1, 3)
        n = len(self.control_points)
        if n < 1:
            raise ValueError("A B-spline needs at least one control point.")
        self.degree = min(DEGREE, n - 1)
        self.knots = clamped_uniform_knots(n, self.degree)

    def __len__(self) -> int:
        return len(self.control_points)

    @property
    def domain_end(self) -> float:
        return float(self.knots[-1])

    def basis(self, u: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """
        Basis function values for every knot-space parameter in `u`.

        Args:
            u: Parameters in [0, domain_end], shape (S,).

        Returns:
            Array of shape (S, n_control); every row sums to 1.
        """
        u = np.atleast_1d(np.asarray(u, dtype=np.float64))
        knots = self.knots
        n = len(self.control_points)
        p = self.degree
        m = len(knots) - 1

        # Degree 0: indicator of the half-open span; the domain end belongs to the last span
        span = np.searchsorted(knots, u, side="right") - 1
        span = np.clip(span, p, n - 1)
        table = np.zeros((len(u), m), dtype=np.float64)
        table[np.arange(len(u)), span] = 1.0

        for k in range(1, p + 1):
            nxt = np.zeros((len(u), m - k), dtype=np.float64)
            for i in range(m - k):
                left_den = knots[i + k] - knots[i]
                right_den = knots[i + k + 1] - knots[i + 1]
                # Zero-width knot spans contribute zero weight
                if left_den > 0.0:
                    nxt[:, i] += (u - knots[i]) / left_den * table[:, i]
                if right_den > 0.0:
                    nxt[:, i] += (knots[i + k + 1] - u) / right_den * table[:, i + 1]
            table = nxt

        return table[:, :n]

    def evaluate(self, t: float | npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """
        Evaluate the curve at normalized parameters.

        Args:
            t: Scalar or array of parameters; values are clamped to [0, 1].

        Returns:
            A point of shape (3,) for scalar input, else an array of shape (S, 3).
        """
        scalar = np.ndim(t) == 0
        t_arr = np.clip(np.atleast_1d(np.asarray(t, dtype=np.float64)), 0.0, 1.0)
        points = self.basis(t_arr * self.domain_end) @ self.control_points
        return points[0] if scalar else points


def uniform_step_count(n_control: int, config: CurveConfig) -> int:
    """Number of uniform parameter steps for a curve with `n_control` points."""
    return max(1, min(config.max_uniform_steps, (n_control - 1) * config.samples_per_span))


def chord_deviation(
    start: npt.NDArray[np.float64],
    end: npt.NDArray[np.float64],
    mids: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    """
    Distance of each curve midpoint from the line through its chord.

    Degenerate chords fall back to the distance from the chord's start point.
    """
    chord = end - start
    offset = mids - start
    length = np.linalg.norm(chord, axis=1)
    normal_part = np.linalg.norm(np.cross(chord, offset), axis=1)
    return np.where(
        length > 1e-12,
        normal_part / np.where(length > 1e-12, length, 1.0),
        np.linalg.norm(offset, axis=1),
    )


def adaptive_sample(
    control_points: npt.NDArray[np.float64],
    config: Optional[CurveConfig] = None
) -> npt.NDArray[np.float64]:
    """
    Sample a B-spline through `control_points` with midpoint refinement.

    The curve is evaluated at `uniform_step_count` + 1 uniform parameters. Between
    two neighbouring samples the parameter midpoint is inserted when the chord is
    longer than `max_segment_length`, or when the curve's midpoint lies farther
    than `curvature_threshold` from the line through the chord.

    Deviation is measured perpendicular to the chord: the clamped knot vector
    does not traverse a straight run at constant speed, so the midpoint may slide
    along the line without the curve bending. A straight run therefore keeps its
    base samples unless the step cap leaves chords longer than `max_segment_length`.

    Args:
        control_points: Guide points, shape (N, 3).
        config: Sampling parameters.

    Returns:
        Sample points of shape (M, 3) with M >= steps + 1, or shape (0, 3) when
        fewer than two control points are given.
    """
    config = config or CurveConfig()
    control_points = np.asarray(control_points, dtype=np.float64).reshape(-1, 3)
    if len(control_points) < 2:
        return np.zeros((0, 3), dtype=np.float64)

    curve = BSplineCurve(control_points)
    steps = uniform_step_count(len(control_points), config)

    t = np.linspace(0.0, 1.0, steps + 1)
    base = curve.evaluate(t)
    mids = curve.evaluate(0.5 * (t[:-1] + t[1:]))

    chords = np.linalg.norm(base[1:] - base[:-1], axis=1)
    deviation = chord_deviation(base[:-1], base[1:], mids)
    refine = (chords > config.max_segment_length) | (deviation > config.curvature_threshold)

    insert_at = np.nonzero(refine)[0] + 1
    samples = np.insert(base, insert_at, mids[refine], axis=0)

    logger.debug(
        f"Sampled spline through {len(control_points)} points: "
        f"{steps + 1} uniform + {len(insert_at)} refined samples."
    )
    return samples
