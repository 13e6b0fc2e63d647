"""
Mesh Extrusion
==============
Sweeps a cross-section along a framed curve.

    - Helix: flat double-sided ribbon.
    - Sheet: the same ribbon widening into an arrowhead at the C-terminal end.
    - Coil: circular tube.

Winding is counter-clockwise seen from the side the vertex normals point to, so
back-face culling keeps every intended surface visible.
"""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, Optional, TYPE_CHECKING

import numpy as np

from proteinribbon.config import ExtrusionConfig
from proteinribbon.model.geometry_utils import arc_length_fractions
from proteinribbon.model.mesh import RibbonMesh
from proteinribbon.model.secondary_structure import StructureType

if TYPE_CHECKING:
    import numpy.typing as npt
    from proteinribbon.controller.frames import SampledCurve

logger = logging.getLogger(__name__)

# Across-width vertex columns of a ribbon face: left edge, centre line, right edge
RIBBON_COLUMNS = np.array([-1.0, 0.0, 1.0])
RIBBON_U = np.array([0.0, 0.5, 1.0])


class CrossSection(ABC):
    """A profile swept along a curve."""

    @abstractmethod
    def extrude(self, curve: SampledCurve) -> RibbonMesh:
        """Build the surface mesh for `curve`; empty curves give an empty mesh."""
        pass


class RibbonSection(CrossSection):
    """
    Flat band of constant width, emitted twice: a front face offset along +normal
    and a back face offset along -normal with reversed winding.

    Each face has three vertices per sample (left, centre, right), so every pair
    of samples contributes two quads per face: 8 triangles in total. With
`end_caps` the edges are walled and both ends closed.
    """

    def __init__(self, width: float, thickness: float, end_caps: bool = False) -> None:
        self.width = width
        self.thickness = thickness
        self.end_caps = end_caps

    def half_widths(self, n_samples: int) -> npt.NDArray[np.float64]:
        return np.full(n_samples, 0.5 * self.width)

    def extrude(self, curve: SampledCurve) -> RibbonMesh:
        if curve.is_empty:
            return RibbonMesh()

        n = len(curve)
        points, normals = curve.points, curve.normals
        binormals = curve.binormals
        half = self.half_widths(n)

        # (N, 3 columns, 3 coords)
        across = binormals[:, None, :] * (half[:, None, None] * RIBBON_COLUMNS[None, :, None])
        face = points[:, None, :] + across
        lift = normals[:, None, :] * (0.5 * self.thickness)

        front = (face + lift).reshape(-1, 3)
        back = (face - lift).reshape(-1, 3)

        front_normals = np.repeat(normals, 3, axis=0)
        v = arc_length_fractions(points)
        uv = np.column_stack((np.tile(RIBBON_U, n), np.repeat(v, 3)))

        indices = ribbon_face_indices(n)
        back_indices = indices[:, ::-1] + 3 * n

        mesh = RibbonMesh(
            positions=np.vstack((front, back)),
            normals=np.vstack((front_normals, -front_normals)),
            uvs=np.vstack((uv, uv)),
            indices=np.concatenate((indices.ravel(), back_indices.ravel())),
        )
        if self.end_caps:
            mesh.append(ribbon_closure(face + lift, face - lift, curve.tangents, binormals, v))
        return mesh


class ArrowSection(RibbonSection):
    """
    Ribbon whose half-width grows linearly over the tail samples, from the
    nominal width up to `multiplier` times it at the last sample.
    """

    def __init__(
        self, width: float, thickness: float, head_fraction: float, multiplier: float,
        end_caps: bool = False
    ) -> None:
        super().__init__(width, thickness, end_caps)
        self.head_fraction = head_fraction
        self.multiplier = multiplier

    def tail_samples(self, n_samples: int) -> int:
        return min(n_samples, max(2, math.ceil(n_samples * self.head_fraction)))

    def half_widths(self, n_samples: int) -> npt.NDArray[np.float64]:
        half = super().half_widths(n_samples)
        k = self.tail_samples(n_samples)
        start = n_samples - k
        alpha = np.linspace(0.0, 1.0, k)
        half[start:] *= 1.0 + alpha * (self.multiplier - 1.0)
        return half


class TubeSection(CrossSection):
    """Circular tube: one ring of `segments` vertices per sample, optionally capped by fans."""

    def __init__(self, radius: float, segments: int, end_caps: bool = False) -> None:
        self.radius = radius
        self.segments = segments
        self.end_caps = end_caps

    def extrude(self, curve: SampledCurve) -> RibbonMesh:
        if curve.is_empty:
            return RibbonMesh()

        n, m = len(curve), self.segments
        theta = 2.0 * np.pi * np.arange(m) / m

        # Outward radial directions, (N, M, 3)
        radial = (np.cos(theta)[None, :, None] * curve.normals[:, None, :]
                  + np.sin(theta)[None, :, None] * curve.binormals[:, None, :])
        positions = curve.points[:, None, :] + self.radius * radial

        v = arc_length_fractions(curve.points)
        uv = np.stack(np.broadcast_arrays(np.arange(m)[None, :] / m, v[:, None]), axis=-1)

        mesh = RibbonMesh(
            positions=positions.reshape(-1, 3),
            normals=radial.reshape(-1, 3),
            uvs=uv.reshape(-1, 2),
            indices=tube_indices(n, m).ravel(),
        )
        if self.end_caps:
            tangents = curve.tangents
            mesh.append(tube_cap(positions[0], curve.points[0], -tangents[0], theta))
            mesh.append(tube_cap(positions[-1], curve.points[-1], tangents[-1], theta))
        return mesh


def ribbon_face_indices(n_samples: int) -> npt.NDArray[np.int64]:
    """
    Front-face triangles of a three-column strip, shape (4 * (N - 1), 3).

    Vertex `3 * i + c` is column c (0 left, 1 centre, 2 right) of sample i.
    """
    a = 3 * np.arange(n_samples - 1, dtype=np.int64)[:, None]
    b = a + 3
    tris = np.hstack((
        a, a + 1, b + 1,
        a, b + 1, b,
        a + 1, a + 2, b + 2,
        a + 1, b + 2, b + 1,
    ))
    return tris.reshape(-1, 3)


def tube_indices(n_rings: int, segments: int) -> npt.NDArray[np.int64]:
    """Triangles joining consecutive rings, shape (2 * M * (N - 1), 3)."""
    i = np.arange(n_rings - 1, dtype=np.int64)[:, None]
    j = np.arange(segments, dtype=np.int64)[None, :]
    nxt = (j + 1) % segments

    v0 = i * segments + j
    v1 = i * segments + nxt
    v2 = (i + 1) * segments + nxt
    v3 = (i + 1) * segments + j

    tris = np.stack((v0, v1, v2, v0, v2, v3), axis=-1)
    return tris.reshape(-1, 3)


def wall_indices(n_samples: int) -> npt.NDArray[np.int64]:
    """
    Triangles of a strip joining front vertex `2 * i` to back vertex `2 * i + 1`,
    shape (2 * (N - 1), 3), facing +binormal when the front lies along +normal.
    """
    f = 2 * np.arange(n_samples - 1, dtype=np.int64)[:, None]
    b = f + 1
    return np.hstack((f, b, b + 2, f, b + 2, f + 2)).reshape(-1, 3)


def ribbon_closure(
    front: npt.NDArray[np.float64],
    back: npt.NDArray[np.float64],
    tangents: npt.NDArray[np.float64],
    binormals: npt.NDArray[np.float64],
    v: npt.NDArray[np.float64]
) -> RibbonMesh:
    """
    Edge walls and rectangular end caps that turn a two-faced ribbon into a
    closed slab.

    Args:
        front, back: Face vertices of shape (N, 3 columns, 3).
        tangents, binormals: Frame vectors per sample.
        v: Arc-length texture coordinate per sample.
    """
    n = len(front)
    parts = []
    for column, side in ((2, 1.0), (0, -1.0)):
        tris = wall_indices(n)
        if side < 0.0:
            tris = tris[:, ::-1]
        parts.append(RibbonMesh(
            positions=np.stack((front[:, column], back[:, column]), axis=1).reshape(-1, 3),
            normals=np.repeat(side * binormals, 2, axis=0),
            uvs=np.column_stack((np.tile([0.0, 1.0], n), np.repeat(v, 2))),
            indices=tris.ravel(),
        ))

    # Corners: front-left, front-right, back-right, back-left
    quad_uv = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    for k, sign in ((0, -1.0), (n - 1, 1.0)):
        tris = [0, 1, 2, 0, 2, 3] if sign > 0.0 else [0, 2, 1, 0, 3, 2]
        parts.append(RibbonMesh(
            positions=np.array([front[k, 0], front[k, 2], back[k, 2], back[k, 0]]),
            normals=np.tile(sign * tangents[k], (4, 1)),
            uvs=quad_uv,
            indices=tris,
        ))
    return RibbonMesh.merged(parts)


def tube_cap(
    ring: npt.NDArray[np.float64],
    center: npt.NDArray[np.float64],
    normal: npt.NDArray[np.float64],
    theta: npt.NDArray[np.float64]
) -> RibbonMesh:
    """
    Triangle fan closing one tube ring, wound counter-clockwise around `normal`.

    The ring runs from the frame normal towards the binormal, so the fan is
    reversed when `normal` points against the tangent.
    """
    m = len(ring)
    j = np.arange(m, dtype=np.int64)
    tris = np.column_stack((np.zeros(m, dtype=np.int64), 1 + j, 1 + (j + 1) % m))
    axis = np.cross(ring[0] - center, ring[1 % m] - center)
    if np.dot(axis, normal) < 0.0:
        tris = tris[:, [0, 2, 1]]

    uv = np.vstack(([0.5, 0.5], np.column_stack((0.5 + 0.5 * np.cos(theta), 0.5 + 0.5 * np.sin(theta)))))
    return RibbonMesh(
        positions=np.vstack((center, ring)),
        normals=np.tile(normal, (m + 1, 1)),
        uvs=uv,
        indices=tris.ravel(),
    )


class MeshExtruder:
    """Dispatches a curve to the cross-section for its structure type."""

    def __init__(self, config: Optional[ExtrusionConfig] = None) -> None:
        self.config = config or ExtrusionConfig()
        cfg = self.config
        self.sections: Dict[StructureType, CrossSection] = {
            StructureType.HELIX: RibbonSection(cfg.helix_width, cfg.helix_thickness, cfg.end_caps),
            StructureType.SHEET: ArrowSection(
                cfg.sheet_width, cfg.sheet_thickness,
                cfg.arrow_head_fraction, cfg.arrow_width_multiplier, cfg.end_caps,
            ),
            StructureType.COIL: TubeSection(cfg.tube_radius, cfg.tube_segments, cfg.end_caps),
        }

    def extrude(self, curve: SampledCurve, structure_type: StructureType) -> RibbonMesh:
        match structure_type:
            case StructureType.HELIX | StructureType.SHEET | StructureType.COIL:
                mesh = self.sections[structure_type].extrude(curve)
            case _:
                raise ValueError(f"Unsupported structure type: {structure_type}")
        mesh.structure_type = structure_type
        return mesh
