"""
Test fixtures for the ribbon pipeline.
Provides PDB line factories and synthetic backbones with known geometry.

NOTE: the ideal helix uses radius 2.3 A, rise 1.5 A and 100 degrees per residue,
which puts guide points i and i+3 about 5.05 A apart (inside the default helix
window). The extended strand zig-zags with a 3.3 A step and +/-0.9 A offset, so
i and i+3 are about 10.06 A apart (inside the default sheet window).
"""
import logging

import numpy as np
import pytest

from proteinribbon.model.parser import format_atom_record
from proteinribbon.model.structure import Atom


def _ideal_helix(n, radius=2.3, rise=1.5, turn_deg=100.0):
    angles = np.deg2rad(turn_deg) * np.arange(n)
    return np.column_stack((radius * np.cos(angles), radius * np.sin(angles), rise * np.arange(n)))


def _extended_strand(n, step=3.3, offset=0.9):
    i = np.arange(n)
    return np.column_stack((step * i, offset * np.where(i % 2 == 0, 1.0, -1.0), np.zeros(n)))


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers bound to streams that pytest closes between tests."""
    yield
    logger = logging.getLogger("proteinribbon")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    for name in ("h5py", "pyvista"):
        logging.getLogger(name).setLevel(logging.NOTSET)


@pytest.fixture
def atom_line_factory():
    """Factory producing one fixed-column ATOM line."""
    def _make(name="CA", pos=(0.0, 0.0, 0.0), res_name="ALA", res_seq=1, chain_id="A",
              serial=1, element="", hetero=False, alt_loc=""):
        atom = Atom(
            name=name,
            residue_name=res_name,
            chain_id=chain_id,
            residue_index=res_seq,
            position=tuple(float(v) for v in pos),
            serial=serial,
            alt_loc=alt_loc,
            element=element or name[0],
            is_hetero=hetero,
        )
        return format_atom_record(atom)
    return _make


@pytest.fixture
def pdb_text_factory(atom_line_factory):
    """Factory turning a list of guide points into PDB text (N, CA, C per residue)."""
    def _make(ca_points, chain_id="A", start=1, res_name="ALA", backbone=True):
        lines = []
        serial = 1
        for k, p in enumerate(np.asarray(ca_points, dtype=float)):
            res_seq = start + k
            atoms = [("CA", p)]
            if backbone:
                atoms = [("N", p + [-0.5, 0.5, 0.0]), ("CA", p), ("C", p + [0.5, 0.5, 0.0])]
            for name, pos in atoms:
                lines.append(atom_line_factory(name=name, pos=pos, res_name=res_name,
                                               res_seq=res_seq, chain_id=chain_id, serial=serial))
                serial += 1
        return "\n".join(lines) + "\n"
    return _make


@pytest.fixture
def helix_record_factory():
    def _make(start, end, chain_id="A", serial=1, helix_id="1", helix_class=1):
        return (f"HELIX  {serial:>3} {helix_id:>3} ALA {chain_id} {start:>4}  "
                f"ALA {chain_id} {end:>4} {helix_class:>2}")
    return _make


@pytest.fixture
def sheet_record_factory():
    def _make(start, end, chain_id="A", strand=1, sheet_id="A", n_strands=2, sense=0):
        return (f"SHEET  {strand:>3} {sheet_id:>3}{n_strands:>2} ALA {chain_id}{start:>4}  "
                f"ALA {chain_id}{end:>4} {sense:>2}")
    return _make


@pytest.fixture
def helix_points():
    return _ideal_helix(10)


@pytest.fixture
def strand_points():
    return _extended_strand(8)


@pytest.fixture
def coil_points():
    """Five guide points whose i/i+3 spacing matches neither helix nor sheet."""
    return np.array([
        [1.0, 1.0, 1.0],
        [2.0, 2.0, 2.0],
        [3.0, 3.0, 2.0],
        [4.0, 4.0, 2.0],
        [5.0, 4.0, 2.0],
    ])


@pytest.fixture
def straight_points():
    return np.column_stack((3.8 * np.arange(6), np.zeros(6), np.zeros(6)))


@pytest.fixture
def wiggly_points():
    rng = np.random.default_rng(7)
    steps = rng.normal(size=(12, 3))
    steps = 3.8 * steps / np.linalg.norm(steps, axis=1, keepdims=True)
    return np.cumsum(steps, axis=0)
