"""
PDB Coordinate Parser
=====================
Reads fixed-column macromolecular coordinate records into a `Structure`.

Columns, not whitespace-separated fields, are authoritative: every value is cut
from its fixed character range so files with touching columns (large negative
coordinates, four-digit residue numbers) decode correctly.

Recovery policy:
    - Non-numeric coordinate, residue-number or serial fields decode to zero.
    - Lines shorter than the coordinate block are skipped.
    - A single bad line never aborts the parse.
"""
from __future__ import annotations

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from proteinribbon.config import ParserConfig
from proteinribbon.model.structure import (
    Atom, Residue, Chain, Structure, HelixRecord, SheetRecord, ResidueIndexCollisionError
)

logger = logging.getLogger(__name__)

# 0-based slices of the standard atom record layout
RECORD_TYPE = slice(0, 6)
SERIAL = slice(6, 11)
ATOM_NAME = slice(12, 16)
ALT_LOC = slice(16, 17)
RESIDUE_NAME = slice(17, 20)
CHAIN_ID = slice(21, 22)
RESIDUE_SEQ = slice(22, 26)
INSERTION_CODE = slice(26, 27)
X_COORD = slice(30, 38)
Y_COORD = slice(38, 46)
Z_COORD = slice(46, 54)
OCCUPANCY = slice(54, 60)
TEMP_FACTOR = slice(60, 66)
ELEMENT = slice(76, 78)

MIN_ATOM_LINE_LENGTH = 54
MIN_HELIX_LINE_LENGTH = 37
MIN_SHEET_LINE_LENGTH = 37

SOLVENT_AND_UNKNOWN = frozenset({"HOH", "WAT", "DOD", "UNK"})
RNA_NUCLEOTIDES = frozenset({
    "A", "U", "G", "C", "I", "PSU", "5MU", "1MA", "2MG", "M2G", "7MG", "OMC", "OMG", "YG"
})
DNA_NUCLEOTIDES = frozenset({"DA", "DT", "DG", "DC", "DU", "DI"})
NUCLEIC_ACIDS = RNA_NUCLEOTIDES | DNA_NUCLEOTIDES

PRIMARY_ALT_LOCS = frozenset({"", "A", "1"})


@dataclass
class ParseStats:
    """Counters describing what the last parse kept, skipped and repaired."""
    lines: int = 0
    atoms: int = 0
    short_lines: int = 0
    filtered_atoms: int = 0
    alternate_atoms: int = 0
    malformed_fields: int = 0
    duplicate_residues: int = 0
    helices: int = 0
    sheets: int = 0


def _field(line: str, columns: slice) -> str:
    return line[columns].strip()


class PDBParser:
    """
    Parser for PDB-format text.

    Args:
        config: Record filtering options.
        strict: If True, a residue index that reappears after a different residue
            in the same chain raises `ResidueIndexCollisionError`. Otherwise the
            later residue is dropped and a warning is logged.
    """

    def __init__(self, config: Optional[ParserConfig] = None, strict: bool = False) -> None:
        self.config = config or ParserConfig()
        self.strict = strict
        self.stats = ParseStats()

    def parse_file(self, filepath: str) -> Structure:
        logger.info(f"Parsing structure file: {filepath}")
        with open(filepath, "r", encoding="utf-8", errors="replace") as f:
            return self.parse(f.read())

    def parse(self, text: str) -> Structure:
        self.stats = ParseStats()
        atoms: List[Atom] = []
        helices: List[HelixRecord] = []
        sheets: List[SheetRecord] = []

        for line in text.splitlines():
            self.stats.lines += 1
            record = _field(line, RECORD_TYPE)

            match record:
                case "ATOM" | "HETATM":
                    atom = self._parse_atom(line, is_hetero=(record == "HETATM"))
                    if atom is not None:
                        atoms.append(atom)
                case "HELIX":
                    helix = self._parse_helix(line)
                    if helix is not None:
                        helices.append(helix)
                case "SHEET":
                    sheet = self._parse_sheet(line)
                    if sheet is not None:
                        sheets.append(sheet)
                case "ENDMDL":
                    if self.config.first_model_only:
                        break
                case _:
                    continue

        self.stats.atoms = len(atoms)
        self.stats.helices = len(helices)
        self.stats.sheets = len(sheets)

        chains = self._build_chains(atoms)
        structure = Structure(
            chains=chains,
            helices=tuple(sorted(helices, key=lambda h: (h.start_chain, h.start_index))),
            sheets=tuple(sorted(sheets, key=lambda s: (s.start_chain, s.start_index))),
        )

        logger.info(
            f"Parsed {self.stats.atoms} atoms into {len(structure)} chains "
            f"({structure.residue_count} residues)."
        )
        if self.stats.malformed_fields:
            logger.debug(f"{self.stats.malformed_fields} malformed numeric fields decoded as zero.")
        if self.stats.short_lines:
            logger.debug(f"Skipped {self.stats.short_lines} truncated coordinate lines.")
        return structure

    # ---- NUMERIC FIELDS ----
    def _to_float(self, text: str) -> float:
        try:
            value = float(text)
        except ValueError:
            self.stats.malformed_fields += 1
            return 0.0
        if not math.isfinite(value):
            self.stats.malformed_fields += 1
            return 0.0
        return value

    def _to_int(self, text: str, count_malformed: bool = True) -> int:
        try:
            return int(text)
        except ValueError:
            if count_malformed:
                self.stats.malformed_fields += 1
            return 0

    @staticmethod
    def _optional_float(text: str, default: float) -> float:
        try:
            value = float(text)
        except ValueError:
            return default
        return value if math.isfinite(value) else default

    # ---- RECORDS ----
    def _is_filtered(self, residue_name: str, is_hetero: bool) -> bool:
        if is_hetero and not self.config.include_hetero_atoms:
            return True
        if self.config.exclude_solvent_and_unknown and residue_name in SOLVENT_AND_UNKNOWN:
            return True
        if self.config.exclude_nucleic_acids and residue_name in NUCLEIC_ACIDS:
            return True
        return False

    def _parse_atom(self, line: str, is_hetero: bool) -> Optional[Atom]:
        if len(line) < MIN_ATOM_LINE_LENGTH:
            self.stats.short_lines += 1
            return None

        residue_name = _field(line, RESIDUE_NAME)
        if self._is_filtered(residue_name, is_hetero):
            self.stats.filtered_atoms += 1
            return None

        alt_loc = _field(line, ALT_LOC)
        if alt_loc not in PRIMARY_ALT_LOCS:
            self.stats.alternate_atoms += 1
            return None

        name = _field(line, ATOM_NAME)
        element = _field(line, ELEMENT) or infer_element(name)

        return Atom(
            name=name,
            residue_name=residue_name,
            chain_id=_field(line, CHAIN_ID),
            residue_index=self._to_int(_field(line, RESIDUE_SEQ)),
            position=(
                self._to_float(_field(line, X_COORD)),
                self._to_float(_field(line, Y_COORD)),
                self._to_float(_field(line, Z_COORD)),
            ),
            serial=self._to_int(_field(line, SERIAL)),
            alt_loc=alt_loc,
            insertion_code=_field(line, INSERTION_CODE),
            occupancy=self._optional_float(_field(line, OCCUPANCY), 1.0),
            temp_factor=self._optional_float(_field(line, TEMP_FACTOR), 0.0),
            element=element,
            is_hetero=is_hetero,
        )

    def _parse_helix(self, line: str) -> Optional[HelixRecord]:
        if len(line) < MIN_HELIX_LINE_LENGTH:
            return None
        try:
            start_index = int(line[21:25])
            end_index = int(line[33:37])
        except ValueError:
            logger.debug(f"Skipping unreadable HELIX record: {line.rstrip()}")
            return None
        return HelixRecord(
            serial=self._to_int(line[7:10].strip(), count_malformed=False),
            helix_id=line[11:14].strip(),
            start_chain=line[19:20].strip(),
            start_index=start_index,
            end_chain=line[31:32].strip(),
            end_index=end_index,
            helix_class=self._to_int(line[38:40].strip(), count_malformed=False) or 1,
        )

    def _parse_sheet(self, line: str) -> Optional[SheetRecord]:
        if len(line) < MIN_SHEET_LINE_LENGTH:
            return None
        try:
            start_index = int(line[22:26])
            end_index = int(line[33:37])
        except ValueError:
            logger.debug(f"Skipping unreadable SHEET record: {line.rstrip()}")
            return None
        return SheetRecord(
            strand=self._to_int(line[7:10].strip(), count_malformed=False),
            sheet_id=line[11:14].strip(),
            start_chain=line[21:22].strip(),
            start_index=start_index,
            end_chain=line[32:33].strip(),
            end_index=end_index,
            sense=self._to_int(line[38:40].strip(), count_malformed=False),
        )

    # ---- GROUPING ----
    def _build_chains(self, atoms: List[Atom]) -> Dict[str, Chain]:
        """
        Group consecutive atoms sharing (chain, residue index) into residues.
        Chains keep the order in which they first appear.

        A later run with the same index joins the earlier residue when both share
        residue name and insertion code (lines of one residue split apart);
        any other repeat is an index collision.
        """
        runs: List[Tuple[Tuple[str, int], List[Atom]]] = []
        for atom in atoms:
            key = (atom.chain_id, atom.residue_index)
            if runs and runs[-1][0] == key:
                runs[-1][1].append(atom)
            else:
                runs.append((key, [atom]))

        per_chain: Dict[str, Dict[int, Residue]] = OrderedDict()
        for (chain_id, index), run in runs:
            residues = per_chain.setdefault(chain_id, {})
            earlier = residues.get(index)
            if earlier is not None and _same_residue(earlier, run):
                residues[index] = replace(earlier, atoms=earlier.atoms + tuple(run))
                logger.debug(f"Merged split atom lines of residue {index} in chain '{chain_id}'.")
                continue
            if earlier is not None:
                msg = (f"Residue index {index} appears twice in chain '{chain_id}' "
                       f"({residues[index].name} and {run[0].residue_name}).")
                if self.strict:
                    raise ResidueIndexCollisionError(msg)
                logger.warning(f"{msg} Keeping the first occurrence.")
                self.stats.duplicate_residues += 1
                continue
            residues[index] = Residue(
                index=index,
                name=run[0].residue_name,
                chain_id=chain_id,
                atoms=tuple(run),
            )

        return OrderedDict(
            (chain_id, Chain(chain_id=chain_id, residues=tuple(residues.values())))
            for chain_id, residues in per_chain.items()
        )


def _same_residue(residue: Residue, run: List[Atom]) -> bool:
    return (residue.name == run[0].residue_name
            and residue.atoms[0].insertion_code == run[0].insertion_code)


def infer_element(atom_name: str) -> str:
    """Guess the element symbol from an atom name when columns 77-78 are blank."""
    stripped = atom_name.strip().lstrip("0123456789")
    if not stripped:
        return "C"
    return stripped[0].upper()


def format_atom_record(atom: Atom) -> str:
    """
    Serialize an atom into a fixed-column ATOM/HETATM line.
    Inverse of `PDBParser._parse_atom` for the fields the parser reads.
    """
    record = "HETATM" if atom.is_hetero else "ATOM"
    # One-letter elements start in column 14 by convention
    if len(atom.name) < 4 and len(atom.element) <= 1:
        name = f" {atom.name:<3}"
    else:
        name = f"{atom.name:<4}"
    x, y, z = atom.position
    return (
        f"{record:<6}{atom.serial:>5} {name}{atom.alt_loc:1}{atom.residue_name:>3} "
        f"{atom.chain_id:1}{atom.residue_index:>4}{atom.insertion_code:1}   "
        f"{x:>8.3f}{y:>8.3f}{z:>8.3f}{atom.occupancy:>6.2f}{atom.temp_factor:>6.2f}"
        f"          {atom.element:>2}"
    )
