"""
Structure Data Model
====================
Immutable containers for a parsed coordinate file: atoms grouped into residues,
residues into chains, chains into a structure.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

GUIDE_ATOM_NAME = "CA"


class ResidueIndexCollisionError(ValueError):
    """Raised when two distinct residues of one chain share a residue index."""


@dataclass(frozen=True)
class Atom:
    name: str
    residue_name: str
    chain_id: str
    residue_index: int
    position: Tuple[float, float, float]
    serial: int = 0
    alt_loc: str = ""
    insertion_code: str = ""
    occupancy: float = 1.0
    temp_factor: float = 0.0
    element: str = ""
    is_hetero: bool = False

    def to_array(self) -> npt.NDArray[np.float64]:
        return np.array(self.position, dtype=np.float64)


@dataclass(frozen=True)
class Residue:
    index: int
    name: str
    chain_id: str
    atoms: Tuple[Atom, ...] = ()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.chain_id}:{self.name}{self.index}, atoms={len(self.atoms)})"

    @property
    def alpha_carbon(self) -> Optional[Atom]:
        """The first alpha-carbon atom, or None for incomplete residues."""
        return self.atom(GUIDE_ATOM_NAME)

    @property
    def guide_point(self) -> Optional[npt.NDArray[np.float64]]:
        """Backbone guide point used for curve fitting (alpha-carbon position)."""
        ca = self.alpha_carbon
        return None if ca is None else ca.to_array()

    @property
    def has_guide_point(self) -> bool:
        return self.alpha_carbon is not None

    def atom(self, name: str) -> Optional[Atom]:
        """First atom called `name`, or None."""
        for atom in self.atoms:
            if atom.name == name:
                return atom
        return None


@dataclass(frozen=True)
class Chain:
    """
    An ordered sequence of residues.

    Raises:
        ResidueIndexCollisionError: If two residues share an index.
    """
    chain_id: str
    residues: Tuple[Residue, ...] = ()

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.residues, key=lambda r: r.index))
        for prev, cur in zip(ordered[:-1], ordered[1:]):
            if prev.index == cur.index:
                raise ResidueIndexCollisionError(
                    f"Chain '{self.chain_id}' has two residues with index {cur.index} "
                    f"({prev.name} and {cur.name})."
                )
        object.__setattr__(self, "residues", ordered)

    def __len__(self) -> int:
        return len(self.residues)

    def __iter__(self) -> Iterator[Residue]:
        return iter(self.residues)

    @property
    def guided_residues(self) -> Tuple[Residue, ...]:
        """Residues that carry a guide point, in chain order."""
        return tuple(r for r in self.residues if r.has_guide_point)

    @property
    def atom_count(self) -> int:
        return sum(len(r.atoms) for r in self.residues)


@dataclass(frozen=True)
class HelixRecord:
    serial: int
    helix_id: str
    start_chain: str
    start_index: int
    end_chain: str
    end_index: int
    helix_class: int = 1

    def covers(self, chain_id: str, index: int) -> bool:
        return chain_id == self.start_chain and self.start_index <= index <= self.end_index


@dataclass(frozen=True)
class SheetRecord:
    strand: int
    sheet_id: str
    start_chain: str
    start_index: int
    end_chain: str
    end_index: int
    sense: int = 0

    def covers(self, chain_id: str, index: int) -> bool:
        return chain_id == self.start_chain and self.start_index <= index <= self.end_index


@dataclass(frozen=True)
class Structure:
    """Top-level parse result: chains keyed by identifier in order of first appearance."""
    chains: Dict[str, Chain] = field(default_factory=dict)
    helices: Tuple[HelixRecord, ...] = ()
    sheets: Tuple[SheetRecord, ...] = ()

    def __iter__(self) -> Iterator[Chain]:
        return iter(self.chains.values())

    def __len__(self) -> int:
        return len(self.chains)

    def chain(self, chain_id: str) -> Chain:
        if chain_id not in self.chains:
            raise KeyError(f"No chain '{chain_id}' in structure.")
        return self.chains[chain_id]

    @property
    def chain_ids(self) -> list[str]:
        return list(self.chains)

    @property
    def residue_count(self) -> int:
        return sum(len(c) for c in self.chains.values())

    @property
    def atom_count(self) -> int:
        return sum(c.atom_count for c in self.chains.values())

    @property
    def has_annotations(self) -> bool:
        return bool(self.helices or self.sheets)
