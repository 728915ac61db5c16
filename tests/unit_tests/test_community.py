"""Unit tests for ProteoformCommunity rebuilds and bulk edits.

Tests cover:
1. Full rebuild: relations, peaks, FDR summaries, relation index
2. Atomic commit and superseded builds
3. ConfigurationError leaves the community untouched
4. Acceptance overrides, missed-mono propagation and mass shifting
5. Batch fan-out/fan-in
"""

import pytest

from proteoformfast.community import ProteoformCommunity, run_batch, unique_by_identity
from proteoformfast.config import ClusteringParams, CommunityParams
from proteoformfast.constants import MONOISOTOPIC_UNIT_MASS
from proteoformfast.exceptions import ConfigurationError
from proteoformfast.proteoforms import Proteoform, theoretical_from_sequence

PHOSPHO = 79.966331
N_PAIRS = 12


@pytest.fixture
def community():
    """Twelve phosphorylated experimentals, their theoreticals and one scattered decoy group."""
    community = ProteoformCommunity(CommunityParams.for_labeling(False), max_workers=4)
    for i in range(N_PAIRS):
        theoretical_mass = 10000.0 + 1000.0 * i
        community.add(Proteoform.theoretical(f"T{i}", theoretical_mass))
        community.add(Proteoform.experimental(f"E{i}", theoretical_mass + PHOSPHO))
    community.add_decoys("DecoyDatabase_0", [
        Proteoform.theoretical(f"T{i}_DECOY_0", 10000.0 + 1000.0 * i - 3.1 * i, is_target=False)
        for i in range(N_PAIRS)
    ])
    return community


class TestRebuild:
    """Test full rebuilds."""

    def test_relations_and_peaks(self, community):
        """Test ET, ED and EE relation sets and the single phospho peak."""
        build = community.rebuild()

        assert len(build.et_relations) == N_PAIRS
        assert build.ee_relations == []
        assert list(build.ed_relations) == ["DecoyDatabase_0"]
        assert len(build.ed_relations["DecoyDatabase_0"]) == N_PAIRS

        peak = build.et_peaks[0]
        assert peak.peak_relation_count == N_PAIRS
        assert peak.peak_accepted
        assert peak.peak_delta_mass == pytest.approx(PHOSPHO)
        assert all(r.accepted and r.peak_id == peak.peak_id for r in build.et_relations)

    def test_fdr_summary(self, community):
        """Test target totals and decoy counts after a rebuild."""
        community.rebuild()

        assert community.et_fdr.identified_count == N_PAIRS
        assert community.et_fdr.total_accepted_peaks == 1
        assert community.et_fdr.decoy_mean == 0.0
        assert community.et_peaks[0].decoy_relation_count == pytest.approx(1.0)

    def test_no_build_yet(self, community):
        """Test the empty views before the first rebuild."""
        assert community.build is None
        assert community.is_stale
        assert community.et_relations == []
        assert community.generation == 0

    def test_identical_rebuilds(self, community):
        """Test that two rebuilds with the same inputs agree."""
        first = community.rebuild()
        second = community.rebuild()

        assert second.generation == first.generation + 1
        assert [r.delta_mass for r in first.et_relations] == [r.delta_mass for r in second.et_relations]
        assert [r.accepted for r in first.et_relations] == [r.accepted for r in second.et_relations]
        assert [p.peak_delta_mass for p in first.delta_mass_peaks] == [
            p.peak_delta_mass for p in second.delta_mass_peaks
        ]

    def test_parameter_change_rebuilds_everything(self, community):
        """Test that a parameter change yields a fresh, independent build."""
        first = community.rebuild()
        stricter = community.params.with_changes(
            clustering=ClusteringParams(min_peak_count=N_PAIRS + 1)
        )
        second = community.rebuild(stricter)

        assert community.params is stricter
        assert not second.et_peaks[0].peak_accepted
        assert not any(r.accepted for r in second.et_relations)
        assert not {id(r) for r in second.et_relations} & {id(r) for r in first.et_relations}
        # previous build untouched
        assert first.et_peaks[0].peak_accepted

    def test_invalid_params_change_nothing(self, community):
        """Test that invalid parameters leave build and params untouched."""
        build = community.rebuild()
        params = community.params
        invalid = params.with_changes(clustering=ClusteringParams(
            no_mans_land_lower_bound=0.9, no_mans_land_upper_bound=0.1,
        ))

        with pytest.raises(ConfigurationError):
            community.rebuild(invalid)

        assert community.build is build
        assert community.params is params

    def test_invalid_initial_params(self):
        """Test validation of the constructor parameters."""
        with pytest.raises(ConfigurationError):
            ProteoformCommunity(CommunityParams(ee_max_mass_difference=-5.0))

    def test_superseded_build_discarded(self, community, monkeypatch):
        """Test that an older in-flight build is not committed."""
        original = community._compute_build
        calls = []

        def compute(params, generation):
            calls.append(generation)
            if len(calls) == 1:
                community.rebuild(params.with_changes(et_max_mass_difference=50.0))
            return original(params, generation)

        monkeypatch.setattr(community, "_compute_build", compute)
        outer = community.rebuild()

        assert calls == [1, 2]
        assert community.build is not outer
        assert community.build.generation == 2
        assert community.params.et_max_mass_difference == 50.0


class TestRelationIndex:
    """Test pid → relation lookups."""

    def test_relationships(self, community):
        """Test pid lookup of relations through the index."""
        build = community.rebuild()
        e0 = community.experimental_proteoforms[0]

        relations = community.relationships(e0)
        assert {r.relation_type.value for r in relations} == {"et", "ed"}
        for relation in relations:
            assert build.relations[relation.rid] is relation
            assert relation.involves(e0.pid)

    def test_connected_proteoforms(self, community):
        """Test partner proteoforms in first-seen order."""
        community.rebuild()
        e0 = community.experimental_proteoforms[0]

        partners = community.connected_proteoforms(e0)
        assert [pf.accession for pf in partners] == ["T0", "T0_DECOY_0"]

    def test_peak_ids_resolve_to_owning_peak(self, community):
        """Test that every relation's peak id resolves to the peak grouping it."""
        build = community.rebuild()

        peak_ids = [p.peak_id for p in build.delta_mass_peaks + build.background_peaks]
        assert len(peak_ids) == len(set(peak_ids))
        assert build.ed_relations["DecoyDatabase_0"]
        for relation in build.relations:
            assert relation.peak_id is not None
            assert relation in build.peak(relation.peak_id).grouped_relations

    def test_arena(self, community):
        """Test pid assignment and idempotent registration."""
        assert community.n_proteoforms == 3 * N_PAIRS
        pf = community.experimental_proteoforms[3]
        assert community.proteoform(pf.pid) is pf
        assert community.register(pf) == pf.pid


class TestUserEdits:
    """Test acceptance overrides and bulk edits."""

    def test_peak_acceptance_override(self, community):
        """Test rejecting a peak rejects its relations and clears totals."""
        community.rebuild()
        peak = community.et_peaks[0]

        community.set_peak_acceptance(peak.peak_id, False)

        assert not peak.peak_accepted
        assert not any(r.accepted for r in peak.grouped_relations)
        assert community.et_fdr.identified_count == 0
        assert community.et_fdr.total_accepted_peaks == 0

    def test_relation_acceptance_override(self, community):
        """Test rejecting a single relation."""
        community.rebuild()
        relation = community.et_relations[0]

        community.set_relation_acceptance(relation, False)
        assert not relation.accepted
        assert community.et_peaks[0].peak_accepted
        assert community.et_fdr.identified_count == N_PAIRS - 1
        assert community.et_fdr.total_accepted_peaks == 1

    def test_missed_mono_propagates(self, community):
        """Test missed_mono reaches every experimental proteoform of a peak."""
        community.rebuild()
        peak = community.et_peaks[0]

        n_updated = community.set_peak_missed_mono(peak, True)

        assert n_updated == N_PAIRS
        assert peak.missed_mono
        assert all(pf.missed_mono for pf in community.experimental_proteoforms)
        assert not any(pf.missed_mono for pf in community.theoretical_proteoforms)

        community.set_peak_missed_mono(peak, False)
        assert not any(pf.missed_mono for pf in community.experimental_proteoforms)

    def test_shift_peak_masses(self, community):
        """Test whole-unit mass shifts and the following rebuild."""
        community.rebuild()
        peak = community.et_peaks[0]
        masses = [pf.modified_mass for pf in community.experimental_proteoforms]

        assert community.shift_peak_masses(peak, -1) == N_PAIRS
        assert community.is_stale
        for pf, mass in zip(community.experimental_proteoforms, masses):
            assert pf.mass_shifted
            assert pf.modified_mass == pytest.approx(mass - MONOISOTOPIC_UNIT_MASS)

        # already shifted proteoforms are left alone
        assert community.shift_peak_masses(peak, -1) == 0

        build = community.rebuild()
        assert not community.is_stale
        assert build.et_peaks[0].peak_delta_mass == pytest.approx(PHOSPHO - MONOISOTOPIC_UNIT_MASS)

    def test_shift_during_rebuild_leaves_stale(self, community, monkeypatch):
        """Test that a mass shift made while a build runs keeps the community stale."""
        community.rebuild()
        peak = community.et_peaks[0]
        original = community._compute_build

        def compute(params, generation):
            build = original(params, generation)
            community.shift_peak_masses(peak, -1)
            return build

        monkeypatch.setattr(community, "_compute_build", compute)
        build = community.rebuild()

        assert community.build is build
        assert community.is_stale
        assert build.et_peaks[0].peak_delta_mass == pytest.approx(PHOSPHO)

        monkeypatch.undo()
        fresh = community.rebuild()
        assert not community.is_stale
        assert fresh.et_peaks[0].peak_delta_mass == pytest.approx(PHOSPHO - MONOISOTOPIC_UNIT_MASS)

    def test_unknown_peak(self, community):
        """Test KeyError for an unknown peak id."""
        community.rebuild()
        with pytest.raises(KeyError):
            community.set_peak_acceptance(999, True)


class TestInputs:
    """Test adding observations and reference tables."""

    def test_add_observations(self, observation_pool):
        """Test accession numbering across repeated observation batches."""
        community = ProteoformCommunity()
        assert community.add_observations(observation_pool) == 0
        assert community.add_observations(observation_pool[:1]) == 0

        accessions = [pf.accession for pf in community.experimental_proteoforms]
        assert accessions == ["E1", "E2", "E3"]

    def test_add_theoreticals_skips_clashes(self):
        """Test that duplicate accessions are skipped and counted."""
        community = ProteoformCommunity()
        assert community.add_theoreticals([theoretical_from_sequence("T1", "PEPTIDE")]) == 0
        n_skipped = community.add_theoreticals([
            theoretical_from_sequence("T1", "PEPTIDEK"),
            theoretical_from_sequence("T2", "ACDEK"),
        ])

        assert n_skipped == 1
        assert [pf.accession for pf in community.theoretical_proteoforms] == ["T1", "T2"]


class TestBatch:
    """Test fan-out/fan-in execution."""

    def test_results_in_order(self):
        """Test results come back in input order."""
        assert run_batch(range(20), lambda x: x * x, max_workers=4) == [x * x for x in range(20)]

    def test_empty(self):
        """Test an empty batch."""
        assert run_batch([], lambda x: x) == []

    def test_exception_after_barrier(self):
        """Test that errors are raised only after every task finished."""
        done = []

        def task(x):
            if x == 3:
                raise RuntimeError("boom")
            done.append(x)

        with pytest.raises(RuntimeError, match="boom"):
            run_batch(range(8), task, max_workers=2)
        assert sorted(done) == [0, 1, 2, 4, 5, 6, 7]

    def test_unique_by_identity(self):
        """Test identity-based deduplication."""
        a, b = object(), object()
        assert unique_by_identity([a, b, a]) == [a, b]
