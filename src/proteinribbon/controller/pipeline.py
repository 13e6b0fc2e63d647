"""
Ribbon Pipeline (Mesh Assembly)
===============================
Runs text -> structure -> segments -> curves -> meshes and collects the meshes
in segment order.

Why is this file needed?
------------------------
1. Orchestration: it threads one immutable `RibbonConfig` through the parser,
   classifier, curve builder and extruder.
2. Assembly: it tags each mesh with its segment identity and merges per-segment
   results in order, whether segments were processed serially or in a pool.
3. Degradation: bad segments are dropped and counted; an input with no usable
   chain gives an explicit empty result instead of an exception.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Dict, List, Optional, Tuple

from proteinribbon.config import RibbonConfig
from proteinribbon.controller.extruder import MeshExtruder
from proteinribbon.controller.frames import build_curve
from proteinribbon.model.mesh import RibbonMesh
from proteinribbon.model.parser import PDBParser
from proteinribbon.model.secondary_structure import (
    SecondaryStructureClassifier, Segment, build_segments
)
from proteinribbon.model.structure import Structure

logger = logging.getLogger(__name__)


class ResultStatus(StrEnum):
    OK = "ok"
    EMPTY = "empty"


@dataclass
class RibbonResult:
    """Ordered meshes of one run plus the intermediate data they came from."""
    structure: Structure
    segments: List[Segment] = field(default_factory=list)
    meshes: List[RibbonMesh] = field(default_factory=list)
    skipped_segments: int = 0

    @property
    def status(self) -> ResultStatus:
        return ResultStatus.OK if self.meshes else ResultStatus.EMPTY

    @property
    def is_empty(self) -> bool:
        return self.status == ResultStatus.EMPTY

    @property
    def vertex_count(self) -> int:
        return sum(m.vertex_count for m in self.meshes)

    @property
    def triangle_count(self) -> int:
        return sum(m.triangle_count for m in self.meshes)

    def by_chain(self) -> Dict[str, List[RibbonMesh]]:
        grouped: Dict[str, List[RibbonMesh]] = {}
        for mesh in self.meshes:
            grouped.setdefault(mesh.chain_id, []).append(mesh)
        return grouped

    def combined(self) -> RibbonMesh:
        return RibbonMesh.merged(self.meshes)


class RibbonPipeline:
    """
    Builds ribbon meshes from coordinate text.

    Args:
        config: Parameters for every stage.
        classifier: Strategy override; by default the configuration picks one.
        max_workers: Segments are processed in a thread pool when greater than 1.
    """

    def __init__(
        self,
        config: Optional[RibbonConfig] = None,
        classifier: Optional[SecondaryStructureClassifier] = None,
        max_workers: int = 1,
    ) -> None:
        self.config = config or RibbonConfig()
        self.classifier = classifier
        self.max_workers = max(1, max_workers)
        self.extruder = MeshExtruder(self.config.extrusion)

    def run_file(self, filepath: str) -> RibbonResult:
        parser = PDBParser(self.config.parser)
        return self.run_structure(parser.parse_file(filepath))

    def run(self, text: str) -> RibbonResult:
        parser = PDBParser(self.config.parser)
        return self.run_structure(parser.parse(text))

    def run_structure(self, structure: Structure) -> RibbonResult:
        segments = build_segments(structure, self.classifier, self.config.classifier)
        result = RibbonResult(structure=structure, segments=segments)

        if not segments:
            logger.warning("No usable chains in structure; nothing to render.")
            return result

        if self.max_workers > 1 and len(segments) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                meshes = list(pool.map(self.build_segment_mesh, segments))
        else:
            meshes = [self.build_segment_mesh(segment) for segment in segments]

        for segment, mesh in zip(segments, meshes):
            if mesh.is_empty:
                logger.debug(
                    f"Segment {segment.segment_index} ({segment.structure_type}, chain "
                    f"'{segment.chain_id}', {len(segment)} residues) produced no mesh."
                )
                result.skipped_segments += 1
                continue
            result.meshes.append(mesh)

        logger.info(
            f"Assembled {len(result.meshes)} meshes ({result.vertex_count} vertices, "
            f"{result.triangle_count} triangles); skipped {result.skipped_segments} segments."
        )
        return result

    def build_segment_mesh(self, segment: Segment) -> RibbonMesh:
        """Curve and mesh for one segment; touches no state shared with other segments."""
        curve = build_curve(segment.guide_points, self.config.curve)
        mesh = self.extruder.extrude(curve, segment.structure_type)
        mesh.chain_id = segment.chain_id
        mesh.segment_index = segment.segment_index
        mesh.residue_indices = segment.residue_indices
        return mesh


def build_ribbons(text: str, config: Optional[RibbonConfig] = None) -> Tuple[RibbonMesh, ...]:
    """Convenience wrapper: meshes for PDB text with the given configuration."""
    return tuple(RibbonPipeline(config).run(text).meshes)
