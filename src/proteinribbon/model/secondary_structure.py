"""
Secondary Structure Assignment
==============================
Assigns Helix / Sheet / Coil to every residue and cuts chains into segments.

Why is this file needed?
------------------------
1. Strategy: classification is an interchangeable capability. The default
   `GeometricClassifier` is a placeholder heuristic; `RecordClassifier` uses the
   HELIX/SHEET annotations shipped in the file. A hydrogen-bond classifier can
   be added by subclassing `SecondaryStructureClassifier` without touching the
   curve builder or the extruder.
2. Segmentation: the curve builder works on maximal same-type runs, never across
   a chain boundary.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from proteinribbon.config import ClassifierConfig

if TYPE_CHECKING:
    import numpy.typing as npt
    from proteinribbon.model.structure import Residue, Structure, HelixRecord, SheetRecord

logger = logging.getLogger(__name__)

WINDOW = 3  # guide points i and i+3


class StructureType(StrEnum):
    HELIX = "helix"
    SHEET = "sheet"
    COIL = "coil"


@dataclass(frozen=True, eq=False)
class ClassifiedResidue:
    residue: Residue
    structure_type: StructureType
    guide_point: npt.NDArray[np.float64]

    @property
    def index(self) -> int:
        return self.residue.index


@dataclass(frozen=True, eq=False)
class Segment:
    """
    A maximal run of same-type residues within one chain.

    `guide_points` is the curve input. It normally holds one point per residue;
    with end extension it also holds the neighbouring residues' points.
    """
    chain_id: str
    structure_type: StructureType
    residues: Tuple[ClassifiedResidue, ...]
    guide_points: npt.NDArray[np.float64]
    segment_index: int = 0

    def __len__(self) -> int:
        return len(self.residues)

    @property
    def residue_indices(self) -> Tuple[int, ...]:
        return tuple(r.index for r in self.residues)


class SecondaryStructureClassifier(ABC):
    """Interface every classification strategy satisfies."""

    @abstractmethod
    def classify(self, residues: Sequence[Residue]) -> List[StructureType]:
        """
        Return one structure type per residue, in order.

        Args:
            residues: Guide-point-bearing residues of one chain, ascending by index.
        """
        pass


class GeometricClassifier(SecondaryStructureClassifier):
    """
    Local-geometry heuristic on the i -> i+3 guide point distance.

    A short i/i+3 distance marks the four residues of the window as helix; a
    distance in the extended-strand range marks them as sheet. Helix wins when
    windows of both kinds overlap a residue. The distance windows are
    uncalibrated configuration values.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None) -> None:
        self.config = config or ClassifierConfig()

    def classify(self, residues: Sequence[Residue]) -> List[StructureType]:
        n = len(residues)
        types = [StructureType.COIL] * n
        if n <= WINDOW:
            return types

        points = np.array([r.guide_point for r in residues], dtype=np.float64)
        distances = np.linalg.norm(points[WINDOW:] - points[:-WINDOW], axis=1)

        cfg = self.config
        helix_windows = (distances >= cfg.helix_min_distance) & (distances <= cfg.helix_max_distance)
        sheet_windows = (distances >= cfg.sheet_min_distance) & (distances <= cfg.sheet_max_distance)

        is_helix = np.zeros(n, dtype=bool)
        is_sheet = np.zeros(n, dtype=bool)
        for offset in range(WINDOW + 1):
            is_helix[offset:offset + len(distances)] |= helix_windows
            is_sheet[offset:offset + len(distances)] |= sheet_windows

        for i in range(n):
            if is_helix[i]:
                types[i] = StructureType.HELIX
            elif is_sheet[i]:
                types[i] = StructureType.SHEET
        return types


class RecordClassifier(SecondaryStructureClassifier):
    """Types residues from the HELIX / SHEET records of the coordinate file."""

    def __init__(
        self,
        helices: Sequence[HelixRecord] = (),
        sheets: Sequence[SheetRecord] = ()
    ) -> None:
        self.helices = tuple(helices)
        self.sheets = tuple(sheets)

    def classify(self, residues: Sequence[Residue]) -> List[StructureType]:
        types = []
        for residue in residues:
            structure_type = StructureType.COIL
            if any(h.covers(residue.chain_id, residue.index) for h in self.helices):
                structure_type = StructureType.HELIX
            # Sheets override helices on overlap
            if any(s.covers(residue.chain_id, residue.index) for s in self.sheets):
                structure_type = StructureType.SHEET
            types.append(structure_type)
        return types


def classifier_for(
    structure: Structure,
    config: Optional[ClassifierConfig] = None
) -> SecondaryStructureClassifier:
    """Pick the classification strategy named by the configuration."""
    config = config or ClassifierConfig()
    match config.strategy:
        case "records":
            return RecordClassifier(structure.helices, structure.sheets)
        case "geometric":
            return GeometricClassifier(config)
        case "auto":
            if structure.has_annotations:
                logger.debug("Using HELIX/SHEET records for secondary structure.")
                return RecordClassifier(structure.helices, structure.sheets)
            return GeometricClassifier(config)
        case _:
            raise ValueError(f"Unknown classifier strategy: {config.strategy}")


def classify_structure(
    structure: Structure,
    classifier: SecondaryStructureClassifier
) -> Dict[str, List[ClassifiedResidue]]:
    """
    Classify the guide-point-bearing residues of every chain.
    Residues without a guide point are left out; they remain in the structure.
    """
    result: Dict[str, List[ClassifiedResidue]] = {}
    for chain in structure:
        residues = chain.guided_residues
        types = classifier.classify(residues)
        if len(types) != len(residues):
            raise ValueError(
                f"{type(classifier).__name__} returned {len(types)} types "
                f"for {len(residues)} residues in chain '{chain.chain_id}'."
            )
        result[chain.chain_id] = [
            ClassifiedResidue(residue=r, structure_type=t, guide_point=r.guide_point)
            for r, t in zip(residues, types)
        ]
    return result


def segment_residues(
    chain_id: str,
    classified: Sequence[ClassifiedResidue],
    min_chain_residues: int = 4,
    extend_ends: bool = False,
    start_index: int = 0
) -> List[Segment]:
    """
    Split one chain's classified residues into maximal same-type segments.

    Args:
        chain_id: Identifier of the chain the residues belong to.
        classified: Residues in chain order.
        min_chain_residues: Chains with fewer residues yield no segments.
        extend_ends: Add the neighbouring residues' guide points to each segment's
            curve input so consecutive segment meshes meet.
        start_index: Running segment number assigned to the first segment.

    Returns:
        Segments in chain order.
    """
    if len(classified) < min_chain_residues:
        logger.debug(
            f"Chain '{chain_id}' has {len(classified)} usable residues "
            f"(< {min_chain_residues}); no segments."
        )
        return []

    runs: List[Tuple[int, int]] = []
    start = 0
    for i in range(1, len(classified) + 1):
        if i == len(classified) or classified[i].structure_type != classified[start].structure_type:
            runs.append((start, i))
            start = i

    segments = []
    for offset, (lo, hi) in enumerate(runs):
        first = max(0, lo - 1) if extend_ends else lo
        last = min(len(classified), hi + 1) if extend_ends else hi
        points = np.array([c.guide_point for c in classified[first:last]], dtype=np.float64)
        segments.append(Segment(
            chain_id=chain_id,
            structure_type=classified[lo].structure_type,
            residues=tuple(classified[lo:hi]),
            guide_points=points,
            segment_index=start_index + offset,
        ))
    return segments


def build_segments(
    structure: Structure,
    classifier: Optional[SecondaryStructureClassifier] = None,
    config: Optional[ClassifierConfig] = None
) -> List[Segment]:
    """Classify and segment every chain of the structure, preserving chain order."""
    config = config or ClassifierConfig()
    classifier = classifier or classifier_for(structure, config)
    classified = classify_structure(structure, classifier)

    segments: List[Segment] = []
    for chain_id, residues in classified.items():
        segments.extend(segment_residues(
            chain_id,
            residues,
            min_chain_residues=config.min_chain_residues,
            extend_ends=config.extend_segment_ends,
            start_index=len(segments),
        ))
    logger.info(f"Built {len(segments)} segments from {len(classified)} chains.")
    return segments
