"""Unit tests for PTM sets and theoretical proteoforms."""

import pytest

from proteoformfast.constants import ACETYL_MASS, AA_MASSES_DICT, H2O_MASS, OXIDATION_MASS, PHOSPHO_MASS
from proteoformfast.proteoforms import (
    Modification,
    Proteoform,
    Ptm,
    PtmSet,
    calculate_proteoform_mass,
    deduplicate_theoreticals,
    parse_ptm_set,
    theoretical_from_sequence,
)


class TestParsePtmSet:
    """Test modification parsing."""

    def test_empty_modifications(self):
        """Test parsing an empty modification string."""
        assert len(parse_ptm_set("", "")) == 0
        assert len(parse_ptm_set(None, "")) == 0

    def test_multiple_modifications(self):
        """Test parsing several modifications with sites."""
        ptm_set = parse_ptm_set("Acetyl@M;Phospho@S", "1;12")

        assert [p.position for p in ptm_set] == [0, 11]  # 0-based
        assert ptm_set.mass == pytest.approx(ACETYL_MASS + PHOSPHO_MASS)
        assert ptm_set.description == "Acetyl; Phospho"

    def test_byte_string_sites(self):
        """Test byte-string site cleanup."""
        ptm_set = parse_ptm_set("Oxidation@M", "b'5'")
        assert [p.position for p in ptm_set] == [4]

    def test_unknown_modification_skipped(self):
        """Test unknown modification names are skipped."""
        ptm_set = parse_ptm_set("Unknown@X;Oxidation@M", "1;2")
        assert len(ptm_set) == 1
        assert ptm_set.mass == pytest.approx(OXIDATION_MASS)


class TestPtmSet:
    """Test PTM set semantics."""

    def test_unmodified_description(self):
        """Test the description of an empty PTM set."""
        assert PtmSet().description == "unmodified"
        assert PtmSet().mass == 0.0

    def test_deduplicated_in_order(self):
        """Test duplicate PTMs are dropped keeping order."""
        oxidation = Modification.from_name("Oxidation")
        acetyl = Modification.from_name("Acetyl")
        ptm_set = PtmSet([Ptm(3, oxidation), Ptm(0, acetyl), Ptm(3, oxidation)])

        assert [p.modification.name for p in ptm_set] == ["Oxidation", "Acetyl"]
        assert ptm_set.mass == pytest.approx(OXIDATION_MASS + ACETYL_MASS)

    def test_equality_and_hash(self):
        """Test PtmSet equality and hashing."""
        a = parse_ptm_set("Oxidation@M", "2")
        b = parse_ptm_set("Oxidation@M", "2")
        assert a == b
        assert hash(a) == hash(b)
        assert a != parse_ptm_set("Oxidation@M", "3")

    def test_unknown_modification_name(self):
        """Test ValueError for an unknown modification name."""
        with pytest.raises(ValueError, match="Unknown modification"):
            Modification.from_name("NotAMod")


class TestTheoretical:
    """Test theoretical proteoforms from sequence."""

    def test_mass_from_sequence(self):
        """Test intact mass from a sequence."""
        expected = H2O_MASS + sum(AA_MASSES_DICT[aa] for aa in "PEPTIDEK")
        assert calculate_proteoform_mass("PEPTIDEK") == pytest.approx(expected)

    def test_theoretical_fields(self):
        """Test theoretical proteoform fields from a sequence."""
        ptm_set = parse_ptm_set("Acetyl@M", "1")
        pf = theoretical_from_sequence(
            "P1_1", "MKAKR", ptm_set, begin=1, name="Protein 1", fragment="full"
        )

        assert pf.is_theoretical
        assert pf.is_target
        assert pf.lysine_count == 2
        assert pf.reference.end == 5
        assert pf.modified_mass == pytest.approx(calculate_proteoform_mass("MKAKR") + ACETYL_MASS)
        assert pf.reference.ptm_description == "Acetyl"
        assert pf.anchor.rt is None
        assert pf.observation_count == 0
        assert pf.agg_intensity == 0.0

    def test_missed_mono_not_settable(self):
        """Test missed_mono cannot be set on a theoretical proteoform."""
        pf = theoretical_from_sequence("T1", "PEPTIDE")
        assert not pf.missed_mono
        with pytest.raises(ValueError):
            pf.missed_mono = True

    def test_deduplicate(self):
        """Test duplicate accessions within one table are skipped."""
        entries = [
            theoretical_from_sequence("T1", "PEPTIDE"),
            theoretical_from_sequence("T2", "PEPTIDEK"),
            theoretical_from_sequence("T1", "ACDEK"),
            Proteoform.experimental("E1", 1000.0),
        ]
        kept, n_skipped = deduplicate_theoreticals(entries)

        assert [pf.accession for pf in kept] == ["T1", "T2"]
        assert kept[0].reference.sequence == "PEPTIDE"
        assert n_skipped == 2

    def test_deduplicate_against_existing(self):
        """Test accessions already present are skipped."""
        kept, n_skipped = deduplicate_theoreticals(
            [theoretical_from_sequence("T1", "PEPTIDE")], existing_accessions=["T1"]
        )
        assert kept == []
        assert n_skipped == 1


class TestProteoformVariant:
    """Test the tagged-variant invariants."""

    def test_wrong_payload_rejected(self):
        """Test ValueError for a payload that does not match the kind."""
        from proteoformfast.proteoforms import ExperimentalEvidence, ProteoformKind

        with pytest.raises(ValueError):
            Proteoform("X", ProteoformKind.THEORETICAL, evidence=ExperimentalEvidence())

    def test_target_decoy_exclusive(self):
        """Test is_target and is_decoy are exclusive."""
        decoy = Proteoform.theoretical("D1", 1000.0, is_target=False)
        assert decoy.is_decoy and not decoy.is_target

    def test_bare_experimental(self):
        """Test an experimental proteoform without components."""
        pf = Proteoform.experimental("A1", 1000.0, 1)
        assert pf.observation_count == 0
        assert pf.agg_rt == 0.0
        assert pf.anchor == (1000.0, 0.0, 1)
