"""Unit tests for decoy-based FDR estimation.

Tests cover:
1. Identified counts from accepted target peaks
2. Decoy mean and population standard deviation
3. Significance threshold
4. Edge cases (no decoy groups, empty groups)
"""

import numpy as np
import pytest

from proteoformfast.config import ClusteringParams
from proteoformfast.relations import ProteoformRelation, RelationType, find_delta_mass_peaks
from proteoformfast.scoring import DecoyFdrSummary, estimate_decoy_fdr, identified_relation_count


def make_relations(deltas, relation_type=RelationType.ET, group=None):
    return [
        ProteoformRelation(relation_type, (i, 10_000 + i), (f"E{i}", f"T{i}"), float(d), decoy_group=group)
        for i, d in enumerate(deltas)
    ]


@pytest.fixture
def clustering():
    return ClusteringParams(min_peak_count=3)


@pytest.fixture
def target_peaks(clustering):
    # 6 at phospho, 4 at oxidation, 2 at acetyl (rejected)
    deltas = [79.9663] * 6 + [15.9949] * 4 + [42.0106] * 2
    return find_delta_mass_peaks(make_relations(deltas), clustering)


class TestIdentifiedCounts:
    """Test target-side totals."""

    def test_identified_count(self, target_peaks, clustering):
        """Test identified relations and accepted peaks of the targets."""
        summary = estimate_decoy_fdr(target_peaks, {}, clustering)

        assert summary.identified_count == 10
        assert summary.total_accepted_peaks == 2
        assert identified_relation_count(target_peaks) == 10

    def test_rejected_relation_not_counted(self, target_peaks, clustering):
        """Test that a relation rejected inside an accepted peak is not identified."""
        target_peaks[0].grouped_relations[0].accepted = False

        assert identified_relation_count(target_peaks) == 9
        assert estimate_decoy_fdr(target_peaks, {}, clustering).identified_count == 9

    def test_no_decoy_groups(self, target_peaks, clustering):
        """Test zero decoy statistics without decoy groups."""
        summary = estimate_decoy_fdr(target_peaks, {}, clustering)

        assert summary.n_decoy_groups == 0
        assert summary.decoy_mean == 0.0
        assert summary.decoy_std == 0.0
        assert summary.is_significant(k=3.0)


class TestDecoyStatistics:
    """Test decoy mean/std across groups."""

    @pytest.fixture
    def decoy_relations(self):
        return {
            "DecoyDatabase_0": make_relations([14.0157] * 3, RelationType.ED, "DecoyDatabase_0"),
            "DecoyDatabase_1": make_relations([0.5, 1.5, 2.5], RelationType.ED, "DecoyDatabase_1"),
            "DecoyDatabase_2": make_relations([], RelationType.ED, "DecoyDatabase_2"),
        }

    def test_per_group_counts(self, target_peaks, decoy_relations, clustering):
        """Test per-group decoy identification and peak counts."""
        summary = estimate_decoy_fdr(target_peaks, decoy_relations, clustering)

        assert summary.decoy_identified_counts == {
            "DecoyDatabase_0": 3,
            "DecoyDatabase_1": 0,
            "DecoyDatabase_2": 0,
        }
        assert summary.decoy_accepted_peak_counts["DecoyDatabase_0"] == 1
        assert len(summary.decoy_peaks["DecoyDatabase_1"]) == 3

    def test_mean_and_population_std(self, target_peaks, decoy_relations, clustering):
        """Test decoy mean and population standard deviation."""
        summary = estimate_decoy_fdr(target_peaks, decoy_relations, clustering)

        assert summary.decoy_mean == pytest.approx(1.0)
        assert summary.decoy_std == pytest.approx(np.std([3, 0, 0]))
        assert summary.decoy_peak_mean == pytest.approx(1.0 / 3.0)

    def test_significance(self, target_peaks, decoy_relations, clustering):
        """Test the k-sigma significance threshold."""
        summary = estimate_decoy_fdr(target_peaks, decoy_relations, clustering)
        threshold = summary.significance_threshold(k=2.0)

        assert threshold == pytest.approx(1.0 + 2.0 * np.std([3, 0, 0]))
        assert summary.is_significant(k=2.0)
        assert not summary.is_significant(k=10.0)

    def test_peak_ids_continue_across_groups(self, target_peaks, decoy_relations, clustering):
        """Test decoy peak ids start after the given id and never repeat."""
        first = len(target_peaks)
        summary = estimate_decoy_fdr(target_peaks, decoy_relations, clustering, first_peak_id=first)

        ids = [p.peak_id for group in sorted(summary.decoy_peaks) for p in summary.decoy_peaks[group]]
        assert ids == list(range(first, first + len(ids)))

    def test_decoy_relations_clustered_in_place(self, target_peaks, decoy_relations, clustering):
        """Test that decoy relations get acceptance from their peaks."""
        estimate_decoy_fdr(target_peaks, decoy_relations, clustering)
        assert all(r.accepted for r in decoy_relations["DecoyDatabase_0"])
        assert not any(r.accepted for r in decoy_relations["DecoyDatabase_1"])


class TestSummary:
    """Test the summary object on its own."""

    def test_global_fdr(self):
        """Test decoy mean over identified count."""
        summary = DecoyFdrSummary(identified_count=20, decoy_mean=2.0)
        assert summary.global_fdr == pytest.approx(0.1)

    def test_global_fdr_nothing_identified(self):
        """Test global FDR with nothing identified."""
        assert DecoyFdrSummary().global_fdr == 0.0
