"""Delta-mass peak clustering.

Relations with similar delta masses are grouped into fixed-width peaks.
Dense regions are seeded first: relations are visited in order of
decreasing ``nearby_relations_count`` and each still-ungrouped seed opens a
window of width ``peak_width_base``, re-centered on the mean delta of the
ungrouped relations around the seed.

Acceptance
----------
A peak is accepted iff it holds at least ``min_peak_count`` relations and
its delta mass lies outside the no-man's-land band. Grouping does not
depend on ``min_peak_count``, so raising it can only reject more peaks.

Examples
--------
>>> peaks = find_delta_mass_peaks(et_relations, ClusteringParams(min_peak_count=5))
>>> accepted = [p for p in peaks if p.peak_accepted]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from ..config import ClusteringParams
from .relation import ProteoformRelation, RelationType, count_nearby, outside_no_mans_land

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class DeltaMassPeak:
    """A cluster of relations sharing a delta mass."""

    peak_id: int
    relation_type: Optional[RelationType]
    grouped_relations: List[ProteoformRelation] = field(default_factory=list)
    peak_delta_mass: float = 0.0
    peak_accepted: bool = False
    outside_no_mans_land: bool = False

    decoy_relation_count: float = 0.0
    peak_group_fdr: float = 0.0

    # User edits
    missed_mono: bool = False
    mass_shifter: int = 0

    @property
    def peak_relation_count(self) -> int:
        return len(self.grouped_relations)

    def __repr__(self):
        status = "accepted" if self.peak_accepted else "rejected"
        return (
            f"DeltaMassPeak(id={self.peak_id}, delta={self.peak_delta_mass:.4f}, "
            f"n={self.peak_relation_count}, {status})"
        )


def find_delta_mass_peaks(
    relations: Sequence[ProteoformRelation],
    clustering: ClusteringParams,
    first_peak_id: int = 0,
) -> List[DeltaMassPeak]:
    """Cluster relations into delta-mass peaks.

    Parameters
    ----------
    relations : Sequence[ProteoformRelation]
        One relation set (all of the same type)
    clustering : ClusteringParams
        Bin width, acceptance threshold and no-man's-land band
    first_peak_id : int, default=0
        Peak ids are assigned consecutively from here

    Returns
    -------
    List[DeltaMassPeak]
        Peaks in seeding order. Every relation ends up in exactly one peak
        with ``accepted`` and ``peak_id`` set from that peak.
    """
    n = len(relations)
    if n == 0:
        return []

    width = clustering.peak_width_base
    half_width = width / 2.0

    deltas = np.array([r.delta_mass for r in relations], dtype=np.float64)
    nearby = count_nearby(deltas, width)

    # Densest first, then by delta mass, then input order
    order = np.lexsort((np.arange(n), deltas, -nearby))
    grouped = np.zeros(n, dtype=np.bool_)

    peaks = []
    for seed in order:
        if grouped[seed]:
            continue

        around_seed = ~grouped & (np.abs(deltas - deltas[seed]) <= half_width)
        center = float(np.mean(deltas[around_seed]))

        members = ~grouped & (np.abs(deltas - center) <= half_width)
        members[seed] = True
        grouped |= members

        member_idx = np.flatnonzero(members)
        peak_delta_mass = float(np.mean(deltas[member_idx]))
        outside = outside_no_mans_land(
            peak_delta_mass,
            clustering.no_mans_land_lower_bound,
            clustering.no_mans_land_upper_bound,
        )
        accepted = len(member_idx) >= clustering.min_peak_count and outside

        peak = DeltaMassPeak(
            peak_id=first_peak_id + len(peaks),
            relation_type=relations[seed].relation_type,
            grouped_relations=[relations[i] for i in member_idx],
            peak_delta_mass=peak_delta_mass,
            peak_accepted=accepted,
            outside_no_mans_land=outside,
        )
        for relation in peak.grouped_relations:
            relation.accepted = accepted
            relation.peak_id = peak.peak_id
        peaks.append(peak)

    n_accepted = sum(p.peak_accepted for p in peaks)
    logger.debug(f"Clustered {n:,} relations into {len(peaks):,} peaks ({n_accepted:,} accepted)")

    return peaks


def count_decoy_relations(
    peaks: Sequence[DeltaMassPeak],
    background_sets: Sequence[Sequence[ProteoformRelation]],
    peak_width_base: float,
) -> None:
    """Set decoy_relation_count and peak_group_fdr on each peak.

    decoy_relation_count is the mean, over background sets, of background
    relations within ±peak_width_base/2 of the peak delta mass.
    peak_group_fdr = decoy_relation_count / peak_relation_count (0 for an
    empty peak or no background).
    """
    half_width = peak_width_base / 2.0
    sorted_sets = [
        np.sort(np.array([r.delta_mass for r in relations], dtype=np.float64))
        for relations in background_sets
    ]

    for peak in peaks:
        if not sorted_sets:
            peak.decoy_relation_count = 0.0
            peak.peak_group_fdr = 0.0
            continue

        counts = [
            np.searchsorted(d, peak.peak_delta_mass + half_width, side='right')
            - np.searchsorted(d, peak.peak_delta_mass - half_width, side='left')
            for d in sorted_sets
        ]
        peak.decoy_relation_count = float(np.mean(counts))
        if peak.peak_relation_count > 0:
            peak.peak_group_fdr = peak.decoy_relation_count / peak.peak_relation_count
        else:
            peak.peak_group_fdr = 0.0
