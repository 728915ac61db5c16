"""Decoy-based significance of delta-mass peak identifications.

Every decoy group's ED relations are clustered with exactly the same peak
logic as the target relations. The number of relations in accepted decoy
peaks, across groups, gives a null distribution for the target
identification count.

Examples
--------
>>> summary = estimate_decoy_fdr(et_peaks, ed_relations, params.clustering)
>>> summary.identified_count, summary.decoy_mean, summary.decoy_std
>>> summary.is_significant(k=3.0)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

import numpy as np

from ..config import ClusteringParams
from ..relations.peaks import DeltaMassPeak, find_delta_mass_peaks
from ..relations.relation import ProteoformRelation

logger = logging.getLogger(__name__)


def identified_relation_count(peaks: Sequence[DeltaMassPeak]) -> int:
    """Number of accepted relations grouped in accepted peaks.

    Relations rejected individually inside an accepted peak are not counted.
    """
    return int(sum(
        sum(r.accepted for r in p.grouped_relations)
        for p in peaks if p.peak_accepted
    ))


@dataclass
class DecoyFdrSummary:
    """Target identification count next to its decoy null distribution.

    ``decoy_std`` and ``decoy_peak_std`` are population standard deviations
    (ddof=0) across decoy groups; both are 0 with fewer than two groups.
    """

    identified_count: int = 0
    total_accepted_peaks: int = 0

    decoy_identified_counts: Dict[str, int] = field(default_factory=dict)
    decoy_accepted_peak_counts: Dict[str, int] = field(default_factory=dict)
    decoy_peaks: Dict[str, List[DeltaMassPeak]] = field(default_factory=dict, repr=False)

    decoy_mean: float = 0.0
    decoy_std: float = 0.0
    decoy_peak_mean: float = 0.0
    decoy_peak_std: float = 0.0

    @property
    def n_decoy_groups(self) -> int:
        return len(self.decoy_identified_counts)

    def significance_threshold(self, k: float = 3.0) -> float:
        """decoy_mean + k * decoy_std."""
        return self.decoy_mean + k * self.decoy_std

    def is_significant(self, k: float = 3.0) -> bool:
        return self.identified_count > self.significance_threshold(k)

    @property
    def global_fdr(self) -> float:
        """decoy_mean / identified_count (0 when nothing is identified)."""
        if self.identified_count == 0:
            return 0.0
        return self.decoy_mean / self.identified_count


def _mean_std(values: Sequence[float]):
    if len(values) == 0:
        return 0.0, 0.0
    arr = np.asarray(values, dtype=np.float64)
    return float(np.mean(arr)), float(np.std(arr))


def estimate_decoy_fdr(
    target_peaks: Sequence[DeltaMassPeak],
    decoy_relations: Mapping[str, Sequence[ProteoformRelation]],
    clustering: ClusteringParams,
    first_peak_id: int = 0,
) -> DecoyFdrSummary:
    """Summarize target identifications against clustered decoy groups.

    Parameters
    ----------
    target_peaks : Sequence[DeltaMassPeak]
        Peaks clustered from the target relation set
    decoy_relations : Mapping[str, Sequence[ProteoformRelation]]
        Decoy-group key → ED relations; clustering sets their ``accepted``
        and ``peak_id``
    clustering : ClusteringParams
        Same parameters the target peaks were clustered with
    first_peak_id : int, default=0
        Id of the first decoy peak; ids continue across groups so they
        stay unique next to the target peaks

    Returns
    -------
    DecoyFdrSummary
    """
    summary = DecoyFdrSummary(
        identified_count=identified_relation_count(target_peaks),
        total_accepted_peaks=int(sum(p.peak_accepted for p in target_peaks)),
    )

    next_peak_id = first_peak_id
    for group in sorted(decoy_relations):
        peaks = find_delta_mass_peaks(decoy_relations[group], clustering, first_peak_id=next_peak_id)
        next_peak_id += len(peaks)
        summary.decoy_peaks[group] = peaks
        summary.decoy_identified_counts[group] = identified_relation_count(peaks)
        summary.decoy_accepted_peak_counts[group] = int(sum(p.peak_accepted for p in peaks))

    summary.decoy_mean, summary.decoy_std = _mean_std(
        list(summary.decoy_identified_counts.values())
    )
    summary.decoy_peak_mean, summary.decoy_peak_std = _mean_std(
        list(summary.decoy_accepted_peak_counts.values())
    )

    logger.info(
        f"Identified {summary.identified_count:,} relations in "
        f"{summary.total_accepted_peaks:,} accepted peaks "
        f"(decoy mean {summary.decoy_mean:.1f} ± {summary.decoy_std:.1f}, "
        f"{summary.n_decoy_groups} groups)"
    )

    return summary
