"""Ribbon diagram meshes from macromolecular coordinate files."""
from proteinribbon.config import RibbonConfig, DEFAULT_CONFIG
from proteinribbon.controller.pipeline import RibbonPipeline, RibbonResult, ResultStatus, build_ribbons
from proteinribbon.model.mesh import RibbonMesh
from proteinribbon.model.parser import PDBParser
from proteinribbon.model.secondary_structure import StructureType

__all__ = [
    "RibbonConfig",
    "DEFAULT_CONFIG",
    "RibbonPipeline",
    "RibbonResult",
    "ResultStatus",
    "build_ribbons",
    "RibbonMesh",
    "PDBParser",
    "StructureType",
]
