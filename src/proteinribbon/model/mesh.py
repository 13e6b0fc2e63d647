"""
Mesh Buffers
Vertex and triangle arrays for one extruded segment, tagged with its origin.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from proteinribbon.model.secondary_structure import StructureType

if TYPE_CHECKING:
    import numpy.typing as npt


class MeshTopologyError(ValueError):
    """Raised when triangle indices are out of range or repeat within a triangle."""


def _empty_vec3() -> npt.NDArray[np.float64]:
    return np.zeros((0, 3), dtype=np.float64)


def _empty_vec2() -> npt.NDArray[np.float64]:
    return np.zeros((0, 2), dtype=np.float64)


def _empty_indices() -> npt.NDArray[np.int64]:
    return np.zeros(0, dtype=np.int64)


@dataclass(eq=False)
class RibbonMesh:
    """
    Triangle mesh with per-vertex position, normal and texture coordinate.

    `indices` is a flat array with stride 3; every entry addresses a vertex.
    """
    positions: npt.NDArray[np.float64] = field(default_factory=_empty_vec3)
    normals: npt.NDArray[np.float64] = field(default_factory=_empty_vec3)
    uvs: npt.NDArray[np.float64] = field(default_factory=_empty_vec2)
    indices: npt.NDArray[np.int64] = field(default_factory=_empty_indices)
    structure_type: Optional[StructureType] = None
    chain_id: str = ""
    segment_index: int = -1
    residue_indices: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 3)
        self.normals = np.asarray(self.normals, dtype=np.float64).reshape(-1, 3)
        self.uvs = np.asarray(self.uvs, dtype=np.float64).reshape(-1, 2)
        self.indices = np.asarray(self.indices, dtype=np.int64).ravel()

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(type={self.structure_type}, chain='{self.chain_id}', "
                f"segment={self.segment_index}, vertices={self.vertex_count}, "
                f"triangles={self.triangle_count})")

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def triangles(self) -> npt.NDArray[np.int64]:
        """Triangle indices as an (T, 3) view."""
        return self.indices.reshape(-1, 3)

    @property
    def is_empty(self) -> bool:
        return self.vertex_count == 0 or self.triangle_count == 0

    def validate(self) -> None:
        """
        Check buffer shapes and triangle topology.

        Raises:
            MeshTopologyError: If the buffers disagree in length, the index count is
                not a multiple of 3, an index is out of range or a triangle repeats
                a vertex.
        """
        n = self.vertex_count
        if len(self.normals) != n or len(self.uvs) != n:
            raise MeshTopologyError(
                f"Vertex buffers differ: {n} positions, {len(self.normals)} normals, "
                f"{len(self.uvs)} uvs."
            )
        if len(self.indices) % 3 != 0:
            raise MeshTopologyError(f"Index count {len(self.indices)} is not a multiple of 3.")
        if len(self.indices) and (self.indices.min() < 0 or self.indices.max() >= n):
            raise MeshTopologyError(f"Triangle index out of range [0, {n}).")
        tris = self.triangles
        repeated = (tris[:, 0] == tris[:, 1]) | (tris[:, 1] == tris[:, 2]) | (tris[:, 0] == tris[:, 2])
        if repeated.any():
            raise MeshTopologyError(f"{int(repeated.sum())} triangles repeat a vertex index.")

    def append(self, other: RibbonMesh) -> None:
        """Append another mesh's buffers, offsetting its indices."""
        offset = self.vertex_count
        self.positions = np.vstack((self.positions, other.positions))
        self.normals = np.vstack((self.normals, other.normals))
        self.uvs = np.vstack((self.uvs, other.uvs))
        self.indices = np.concatenate((self.indices, other.indices + offset))
        self.residue_indices = self.residue_indices + other.residue_indices

    @staticmethod
    def merged(meshes: Sequence[RibbonMesh]) -> RibbonMesh:
        """Combine several meshes into one untagged mesh."""
        combined = RibbonMesh()
        for mesh in meshes:
            combined.append(mesh)
        return combined
