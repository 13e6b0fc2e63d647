import logging

import numpy as np
import pytest

from proteinribbon.config import ParserConfig
from proteinribbon.model.parser import PDBParser, format_atom_record, infer_element
from proteinribbon.model.structure import Atom, ResidueIndexCollisionError

REFERENCE_LINE = "ATOM      1  N   MET A   1      27.340  24.430   2.614  1.00  9.67           N"


class TestAtomRecords:
    def test_reads_fixed_columns(self):
        structure = PDBParser().parse(REFERENCE_LINE)
        atom = structure.chain("A").residues[0].atoms[0]

        assert atom.name == "N"
        assert atom.residue_name == "MET"
        assert atom.residue_index == 1
        assert atom.serial == 1
        assert atom.position == pytest.approx((27.340, 24.430, 2.614))
        assert atom.occupancy == pytest.approx(1.0)
        assert atom.temp_factor == pytest.approx(9.67)
        assert atom.element == "N"
        assert not atom.is_hetero

    def test_touching_columns(self, atom_line_factory):
        # Negative coordinates fill the whole field, leaving no whitespace separator
        line = atom_line_factory(pos=(-100.123, -200.456, -300.789), res_seq=1234)
        assert line[30:54] == "-100.123-200.456-300.789"

        atom = PDBParser().parse(line).chain("A").residues[0].atoms[0]
        assert atom.position == pytest.approx((-100.123, -200.456, -300.789))
        assert atom.residue_index == 1234

    @pytest.mark.parametrize("name, pos, res_name, res_seq, chain_id", [
        ("CA", (1.0, 2.0, 3.0), "ALA", 1, "A"),
        ("N", (-12.5, 0.25, 99.999), "GLY", 42, "B"),
        ("CB", (0.0, -0.001, 1000.5), "SER", 9999, "Z"),
        ("OXT", (5.5, 6.25, -7.125), "LYS", -3, "A"),
    ])
    def test_format_then_parse_preserves_fields(self, atom_line_factory, name, pos, res_name, res_seq, chain_id):
        line = atom_line_factory(name=name, pos=pos, res_name=res_name, res_seq=res_seq, chain_id=chain_id)
        residue = PDBParser().parse(line).chain(chain_id).residues[0]
        atom = residue.atoms[0]

        assert atom.name == name
        assert atom.residue_name == res_name
        assert atom.residue_index == res_seq
        assert atom.chain_id == chain_id
        assert atom.position == pytest.approx(pos, abs=1e-3)

    def test_format_places_short_names_in_column_14(self):
        atom = Atom(name="CA", residue_name="ALA", chain_id="A", residue_index=7,
                    position=(1.0, 2.0, 3.0), serial=5, element="C")
        line = format_atom_record(atom)
        assert line[12:16] == " CA "
        assert line[76:78] == " C"
        assert line.startswith("ATOM  ")

    def test_malformed_coordinate_decodes_to_zero(self, atom_line_factory):
        good = atom_line_factory(pos=(1.5, 2.5, 3.5), res_seq=8)
        bad = good[:30] + "  abc.de" + good[38:]

        parser = PDBParser()
        atom = parser.parse(bad).chain("A").residues[0].atoms[0]

        assert atom.position == pytest.approx((0.0, 2.5, 3.5))
        assert atom.name == "CA"
        assert atom.residue_index == 8
        assert parser.stats.malformed_fields == 1

    def test_malformed_residue_number_decodes_to_zero(self, atom_line_factory):
        good = atom_line_factory(res_seq=12)
        bad = good[:22] + "  x?" + good[26:]
        atom = PDBParser().parse(bad).chain("A").residues[0].atoms[0]
        assert atom.residue_index == 0

    def test_short_line_is_skipped(self, atom_line_factory):
        line = atom_line_factory(pos=(11.104, 6.134, -6.504))
        parser = PDBParser()
        structure = parser.parse(line[:50] + "\n" + atom_line_factory(res_seq=2))

        assert structure.residue_count == 1
        assert structure.chain("A").residues[0].index == 2
        assert parser.stats.short_lines == 1

    def test_blank_element_is_inferred(self, atom_line_factory):
        line = atom_line_factory(name="CB")[:76]
        atom = PDBParser().parse(line).chain("A").residues[0].atoms[0]
        assert atom.element == "C"

    def test_infer_element(self):
        assert infer_element("CA") == "C"
        assert infer_element("1HB") == "H"
        assert infer_element("") == "C"


class TestFiltering:
    def test_hetero_atoms_excluded_by_default(self, atom_line_factory):
        text = "\n".join([
            atom_line_factory(res_seq=1),
            atom_line_factory(name="FE", res_name="HEM", res_seq=2, hetero=True),
        ])
        parser = PDBParser()
        structure = parser.parse(text)

        assert structure.residue_count == 1
        assert parser.stats.filtered_atoms == 1

    def test_hetero_atoms_included_on_request(self, atom_line_factory):
        text = "\n".join([
            atom_line_factory(res_seq=1),
            atom_line_factory(name="FE", res_name="HEM", res_seq=2, hetero=True),
        ])
        structure = PDBParser(ParserConfig(include_hetero_atoms=True)).parse(text)

        hem = structure.chain("A").residues[1]
        assert hem.name == "HEM"
        assert hem.atoms[0].is_hetero

    @pytest.mark.parametrize("res_name", ["HOH", "WAT", "UNK"])
    def test_solvent_and_unknown_excluded(self, atom_line_factory, res_name):
        structure = PDBParser().parse(atom_line_factory(name="O", res_name=res_name))
        assert structure.residue_count == 0

    @pytest.mark.parametrize("res_name", ["DA", "U", "PSU"])
    def test_nucleic_acids_excluded(self, atom_line_factory, res_name):
        structure = PDBParser().parse(atom_line_factory(name="P", res_name=res_name))
        assert structure.residue_count == 0

    def test_nucleic_acids_kept_when_allowed(self, atom_line_factory):
        config = ParserConfig(exclude_nucleic_acids=False)
        structure = PDBParser(config).parse(atom_line_factory(name="P", res_name="DA"))
        assert structure.residue_count == 1

    def test_alternate_locations_keep_primary(self, atom_line_factory):
        text = "\n".join([
            atom_line_factory(pos=(1.0, 0.0, 0.0), alt_loc="A"),
            atom_line_factory(pos=(9.0, 0.0, 0.0), alt_loc="B"),
        ])
        parser = PDBParser()
        residue = parser.parse(text).chain("A").residues[0]

        assert len(residue.atoms) == 1
        assert residue.guide_point == pytest.approx([1.0, 0.0, 0.0])
        assert parser.stats.alternate_atoms == 1

    def test_stops_at_first_model_end(self, atom_line_factory):
        text = "\n".join([
            "MODEL        1",
            atom_line_factory(res_seq=1),
            "ENDMDL",
            "MODEL        2",
            atom_line_factory(res_seq=1, pos=(5.0, 5.0, 5.0)),
            atom_line_factory(res_seq=2),
            "ENDMDL",
        ])
        structure = PDBParser().parse(text)
        assert structure.residue_count == 1
        assert structure.chain("A").residues[0].guide_point == pytest.approx([0.0, 0.0, 0.0])

    def test_ignores_unrelated_records(self, atom_line_factory):
        text = "\n".join([
            "HEADER    HYDROLASE                               01-JAN-00   1ABC",
            "REMARK   2 RESOLUTION.    1.80 ANGSTROMS.",
            atom_line_factory(),
            "TER",
            "END",
        ])
        assert PDBParser().parse(text).residue_count == 1


class TestGrouping:
    def test_residues_sorted_for_any_line_order(self, atom_line_factory):
        lines = [atom_line_factory(res_seq=i, pos=(float(i), 0.0, 0.0)) for i in range(1, 21)]
        order = np.random.default_rng(3).permutation(len(lines))
        structure = PDBParser().parse("\n".join(lines[i] for i in order))

        indices = [r.index for r in structure.chain("A")]
        assert indices == list(range(1, 21))

    def test_shuffled_multi_atom_residues_keep_all_atoms(self, pdb_text_factory, helix_points):
        lines = pdb_text_factory(helix_points).splitlines()
        order = np.random.default_rng(11).permutation(len(lines))
        structure = PDBParser().parse("\n".join(lines[i] for i in order))

        chain = structure.chain("A")
        indices = [r.index for r in chain]
        assert indices == list(range(1, 11))
        assert chain.atom_count == 30
        assert all(r.has_guide_point for r in chain)
        assert chain.residues[4].guide_point == pytest.approx(helix_points[4], abs=1e-3)

    def test_split_residue_lines_are_merged(self, atom_line_factory):
        text = "\n".join([
            atom_line_factory(name="N", res_seq=1),
            atom_line_factory(name="N", res_seq=2),
            atom_line_factory(name="CA", pos=(1.0, 2.0, 3.0), res_seq=1),
            atom_line_factory(name="CA", res_seq=2),
        ])
        parser = PDBParser(strict=True)
        chain = parser.parse(text).chain("A")

        assert [len(r.atoms) for r in chain] == [2, 2]
        assert chain.residues[0].atom("CA").position == pytest.approx((1.0, 2.0, 3.0))
        assert parser.stats.duplicate_residues == 0

    def test_atoms_grouped_into_residues(self, pdb_text_factory, helix_points):
        structure = PDBParser().parse(pdb_text_factory(helix_points))
        chain = structure.chain("A")

        assert len(chain) == 10
        assert chain.atom_count == 30
        assert all(r.has_guide_point for r in chain)
        assert chain.residues[3].guide_point == pytest.approx(helix_points[3], abs=1e-3)

    def test_chains_keep_first_appearance_order(self, atom_line_factory):
        text = "\n".join([
            atom_line_factory(chain_id="B", res_seq=1),
            atom_line_factory(chain_id="A", res_seq=1),
            atom_line_factory(chain_id="B", res_seq=2),
        ])
        structure = PDBParser().parse(text)
        assert structure.chain_ids == ["B", "A"]
        assert len(structure.chain("B")) == 2

    def test_residue_without_alpha_carbon_is_kept(self, atom_line_factory):
        text = "\n".join([
            atom_line_factory(name="N", res_seq=1),
            atom_line_factory(name="CA", res_seq=2),
        ])
        chain = PDBParser().parse(text).chain("A")
        assert len(chain) == 2
        assert not chain.residues[0].has_guide_point
        assert [r.index for r in chain.guided_residues] == [2]

    def test_index_collision_keeps_first_residue(self, atom_line_factory, caplog):
        text = "\n".join([
            atom_line_factory(res_name="ALA", res_seq=1),
            atom_line_factory(res_name="GLY", res_seq=2),
            atom_line_factory(res_name="SER", res_seq=1),
        ])
        parser = PDBParser()
        with caplog.at_level(logging.WARNING):
            chain = parser.parse(text).chain("A")

        assert [r.name for r in chain] == ["ALA", "GLY"]
        assert parser.stats.duplicate_residues == 1
        assert "appears twice" in caplog.text

    def test_index_collision_raises_in_strict_mode(self, atom_line_factory):
        text = "\n".join([
            atom_line_factory(res_name="ALA", res_seq=1),
            atom_line_factory(res_name="GLY", res_seq=2),
            atom_line_factory(res_name="SER", res_seq=1),
        ])
        with pytest.raises(ResidueIndexCollisionError):
            PDBParser(strict=True).parse(text)

    def test_missing_chain_raises_key_error(self):
        structure = PDBParser().parse("")
        assert len(structure) == 0
        with pytest.raises(KeyError):
            structure.chain("A")


class TestAnnotationRecords:
    def test_helix_record(self, helix_record_factory):
        structure = PDBParser().parse(helix_record_factory(2, 8, chain_id="A", serial=3, helix_class=5))
        helix = structure.helices[0]

        assert helix.serial == 3
        assert helix.start_chain == "A"
        assert (helix.start_index, helix.end_index) == (2, 8)
        assert helix.helix_class == 5
        assert helix.covers("A", 5)
        assert not helix.covers("A", 9)
        assert not helix.covers("B", 5)

    def test_sheet_record(self, sheet_record_factory):
        structure = PDBParser().parse(sheet_record_factory(10, 14, chain_id="B", strand=2, sense=-1))
        sheet = structure.sheets[0]

        assert sheet.strand == 2
        assert sheet.start_chain == "B"
        assert (sheet.start_index, sheet.end_index) == (10, 14)
        assert sheet.sense == -1
        assert structure.has_annotations

    def test_truncated_annotation_is_skipped(self, helix_record_factory):
        parser = PDBParser()
        structure = parser.parse(helix_record_factory(2, 8)[:30])
        assert structure.helices == ()
        assert not structure.has_annotations

    def test_parse_file(self, tmp_path, pdb_text_factory, helix_points):
        path = tmp_path / "helix.pdb"
        path.write_text(pdb_text_factory(helix_points), encoding="utf-8")
        structure = PDBParser().parse_file(str(path))
        assert structure.residue_count == 10
