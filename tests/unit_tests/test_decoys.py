"""Unit tests for decoy database generation."""

from collections import Counter

import numpy as np
import pytest

from proteoformfast.database import (
    generate_decoy_groups,
    generate_decoy_sequences,
    generate_kr_swap_decoy,
    generate_reverse_decoy,
)
from proteoformfast.proteoforms import calculate_proteoform_mass, parse_ptm_set, theoretical_from_sequence


@pytest.fixture
def theoreticals():
    return [
        theoretical_from_sequence("P1", "MKTAYIAKQRQISFVKSHFSRQ", name="P1"),
        theoretical_from_sequence("P2", "MADEEKLPPGWEKRMSRSSGR", parse_ptm_set("Acetyl@M", "1")),
        theoretical_from_sequence("P3", "MSTNPKPQRKTKRNTNRRPQDVK"),
    ]


class TestDecoySequences:
    """Test sequence-level decoy methods."""

    def test_reverse(self):
        """Test simple sequence reversal."""
        assert generate_reverse_decoy("PEPTIDEK") == "KEDITPEP"

    def test_kr_swap(self):
        """Test reversal with K/R swap."""
        assert generate_kr_swap_decoy("PEPTADEK") == "REDATPEP"

    def test_shuffle_preserves_lengths_and_composition(self, theoreticals):
        """Test proteome shuffle keeps lengths and pooled composition."""
        sequences = [pf.reference.sequence for pf in theoreticals]
        decoys = generate_decoy_sequences(sequences, rng=np.random.default_rng(1))

        assert [len(d) for d in decoys] == [len(s) for s in sequences]
        assert Counter("".join(decoys)) == Counter("".join(sequences))

    def test_unknown_method(self):
        """Test ValueError for an unknown decoy method."""
        with pytest.raises(ValueError, match="Unknown decoy method"):
            generate_decoy_sequences(["PEPTIDE"], method="shuffle_everything")


class TestDecoyGroups:
    """Test decoy database generation."""

    def test_group_keys_and_accessions(self, theoreticals):
        """Test decoy group keys and decoy accessions."""
        groups = generate_decoy_groups(theoreticals, n_groups=2, seed=3)

        assert list(groups) == ["DecoyDatabase_0", "DecoyDatabase_1"]
        assert [pf.accession for pf in groups["DecoyDatabase_1"]] == [
            "P1_DECOY_1", "P2_DECOY_1", "P3_DECOY_1",
        ]
        assert all(pf.is_decoy and pf.is_theoretical for g in groups.values() for pf in g)

    def test_masses_from_decoy_sequence(self, theoreticals):
        """Test masses and lysine counts are recomputed from decoy sequences."""
        groups = generate_decoy_groups(theoreticals, n_groups=1, seed=0)
        for target, decoy in zip(theoreticals, groups["DecoyDatabase_0"]):
            sequence = decoy.reference.sequence
            assert len(sequence) == len(target.reference.sequence)
            assert decoy.lysine_count == sequence.count("K")
            assert decoy.modified_mass == pytest.approx(
                calculate_proteoform_mass(sequence) + target.reference.ptm_set.mass
            )
            assert decoy.reference.ptm_set == target.reference.ptm_set

    def test_deterministic_for_seed(self, theoreticals):
        """Test identical decoys for the same seed."""
        first = generate_decoy_groups(theoreticals, n_groups=3, seed=11)
        second = generate_decoy_groups(theoreticals, n_groups=3, seed=11)

        for key in first:
            assert [pf.reference.sequence for pf in first[key]] == [
                pf.reference.sequence for pf in second[key]
            ]

    def test_reverse_preserves_mass(self, theoreticals):
        """Test reversed decoys keep target masses."""
        groups = generate_decoy_groups(theoreticals, n_groups=1, method="reverse")
        for target, decoy in zip(theoreticals, groups["DecoyDatabase_0"]):
            assert decoy.modified_mass == pytest.approx(target.modified_mass)
            assert decoy.lysine_count == target.lysine_count

    def test_zero_groups(self, theoreticals):
        """Test that zero groups gives an empty mapping."""
        assert generate_decoy_groups(theoreticals, n_groups=0) == {}

    def test_decoy_inputs_ignored(self, theoreticals):
        """Test that decoy theoreticals are not used as templates."""
        groups = generate_decoy_groups(theoreticals, n_groups=1)
        again = generate_decoy_groups(groups["DecoyDatabase_0"], n_groups=1)
        assert again["DecoyDatabase_0"] == []
