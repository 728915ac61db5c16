"""Pairwise proteoform relations and the kernels that enumerate them.

A relation connects a subject proteoform (always experimental) to a second
proteoform (experimental, theoretical or decoy) and records the signed
delta mass plus snapshots of both sides at build time. Endpoints are stored
as arena ids (``pid``) and accessions, never as object references.

Relation types
--------------
- ``ee``: experimental vs experimental, equal label counts
- ``ef``: experimental vs experimental, unequal label counts (false background)
- ``et``: experimental vs target theoretical
- ``ed``: experimental vs decoy theoretical

Performance
-----------
- Pair enumeration: Numba-compiled count pass + fill pass, O(n_a * n_b)
- Nearby counts: two binary searches per relation on sorted delta masses
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np
from numba import njit

from ..config import ClusteringParams

# Label-count rule for pair enumeration
LYSINE_IGNORE = 0
LYSINE_EQUAL = 1
LYSINE_DIFFERENT = 2


class RelationType(Enum):
    EE = "ee"
    EF = "ef"
    ET = "et"
    ED = "ed"


@dataclass(eq=False)
class ProteoformRelation:
    """Snapshot of one proteoform pair.

    ``proteoform_ids`` and ``accessions`` are ordered [subject, reference].
    ``accepted`` stays False until the relation is clustered into an
    accepted peak.
    """

    relation_type: RelationType
    proteoform_ids: Tuple[int, int]
    accessions: Tuple[str, str]
    delta_mass: float

    proteoform_mass_1: float = 0.0
    proteoform_mass_2: float = 0.0
    agg_intensity_1: float = 0.0
    agg_intensity_2: float = 0.0
    agg_rt_1: float = 0.0
    agg_rt_2: float = 0.0
    num_observations_1: int = 0
    num_observations_2: int = 0
    lysine_count: int = -1

    # Reference side (theoretical/decoy relations)
    name: Optional[str] = None
    fragment: Optional[str] = None
    ptm_description: Optional[str] = None

    outside_no_mans_land: bool = False
    nearby_relations_count: int = 0
    accepted: bool = False
    peak_id: Optional[int] = None
    rid: int = field(default=-1, repr=False)
    decoy_group: Optional[str] = None

    @property
    def pair_key(self) -> Tuple[int, int]:
        """Unordered endpoint key used for de-duplication."""
        a, b = self.proteoform_ids
        return (a, b) if a <= b else (b, a)

    def involves(self, pid: int) -> bool:
        return pid in self.proteoform_ids


def outside_no_mans_land(
    delta_mass: float,
    lower_bound: float,
    upper_bound: float,
) -> bool:
    """True if the fractional part of |delta_mass| is <= lower or >= upper.

    Examples
    --------
    >>> outside_no_mans_land(79.966, 0.22, 0.88)
    True
    >>> outside_no_mans_land(10.5, 0.22, 0.88)
    False
    """
    magnitude = abs(delta_mass)
    fraction = magnitude - math.floor(magnitude)
    return fraction <= lower_bound or fraction >= upper_bound


def make_relation(
    relation_type: RelationType,
    subject,
    reference,
    clustering: ClusteringParams,
    decoy_group: Optional[str] = None,
) -> ProteoformRelation:
    """Build a relation with delta_mass = subject.mass - reference.mass.

    Parameters
    ----------
    relation_type : RelationType
        Kind of comparison
    subject : Proteoform
        First endpoint (experimental)
    reference : Proteoform
        Second endpoint
    clustering : ClusteringParams
        Supplies the no-man's-land band
    decoy_group : str, optional
        Decoy-group key for ED relations
    """
    delta_mass = subject.modified_mass - reference.modified_mass

    if subject.lysine_count >= 0:
        lysine_count = subject.lysine_count
    elif reference.lysine_count >= 0:
        lysine_count = reference.lysine_count
    else:
        lysine_count = -1

    name = fragment = ptm_description = None
    if reference.is_theoretical:
        name = reference.reference.name
        fragment = reference.reference.fragment
        ptm_description = reference.reference.ptm_description

    return ProteoformRelation(
        relation_type=relation_type,
        proteoform_ids=(subject.pid, reference.pid),
        accessions=(subject.accession, reference.accession),
        delta_mass=delta_mass,
        proteoform_mass_1=subject.modified_mass,
        proteoform_mass_2=reference.modified_mass,
        agg_intensity_1=subject.agg_intensity,
        agg_intensity_2=reference.agg_intensity,
        agg_rt_1=subject.agg_rt,
        agg_rt_2=reference.agg_rt,
        num_observations_1=subject.observation_count,
        num_observations_2=reference.observation_count,
        lysine_count=lysine_count,
        name=name,
        fragment=fragment,
        ptm_description=ptm_description,
        outside_no_mans_land=outside_no_mans_land(
            delta_mass,
            clustering.no_mans_land_lower_bound,
            clustering.no_mans_land_upper_bound,
        ),
        decoy_group=decoy_group,
    )


@njit
def _pair_passes(
    mass_a: float,
    rt_a: float,
    lys_a: int,
    pid_a: int,
    mass_b: float,
    rt_b: float,
    lys_b: int,
    pid_b: int,
    max_mass_difference: float,
    max_rt_difference: float,
    check_rt: bool,
    lysine_rule: int,
) -> bool:
    if pid_a == pid_b:
        return False
    if abs(mass_a - mass_b) > max_mass_difference:
        return False
    if check_rt and abs(rt_a - rt_b) > max_rt_difference:
        return False
    if lysine_rule == 1 and lys_a != lys_b:
        return False
    if lysine_rule == 2 and lys_a == lys_b:
        return False
    return True


@njit
def enumerate_pairs_numba(
    masses_a: np.ndarray,
    rts_a: np.ndarray,
    lysines_a: np.ndarray,
    pids_a: np.ndarray,
    masses_b: np.ndarray,
    rts_b: np.ndarray,
    lysines_b: np.ndarray,
    pids_b: np.ndarray,
    max_mass_difference: float,
    max_rt_difference: float,
    check_rt: bool,
    lysine_rule: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Index pairs (i, j) of set A x set B that pass every gate.

    Gates are inclusive: ``|mass_a - mass_b| <= max_mass_difference`` and,
    when check_rt, ``|rt_a - rt_b| <= max_rt_difference``. lysine_rule is
    0 (ignore), 1 (equal counts) or 2 (different counts). Pairs with equal
    pids are never returned.

    Returns
    -------
    idx_a, idx_b : np.ndarray
        Row-major order over (i, j)
    """
    n_a = len(masses_a)
    n_b = len(masses_b)

    # Count pass
    n_pairs = 0
    for i in range(n_a):
        for j in range(n_b):
            if _pair_passes(
                masses_a[i], rts_a[i], lysines_a[i], pids_a[i],
                masses_b[j], rts_b[j], lysines_b[j], pids_b[j],
                max_mass_difference, max_rt_difference, check_rt, lysine_rule,
            ):
                n_pairs += 1

    idx_a = np.empty(n_pairs, dtype=np.int64)
    idx_b = np.empty(n_pairs, dtype=np.int64)

    # Fill pass
    k = 0
    for i in range(n_a):
        for j in range(n_b):
            if _pair_passes(
                masses_a[i], rts_a[i], lysines_a[i], pids_a[i],
                masses_b[j], rts_b[j], lysines_b[j], pids_b[j],
                max_mass_difference, max_rt_difference, check_rt, lysine_rule,
            ):
                idx_a[k] = i
                idx_b[k] = j
                k += 1

    return idx_a, idx_b


def proteoform_arrays(proteoforms: Sequence) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """(masses, agg_rts, lysine_counts, pids) arrays for a proteoform list."""
    masses = np.array([pf.modified_mass for pf in proteoforms], dtype=np.float64)
    rts = np.array([pf.agg_rt for pf in proteoforms], dtype=np.float64)
    lysines = np.array([pf.lysine_count for pf in proteoforms], dtype=np.int64)
    pids = np.array([pf.pid for pf in proteoforms], dtype=np.int64)
    return masses, rts, lysines, pids


def candidate_pairs(
    set_a: Sequence,
    set_b: Sequence,
    max_mass_difference: float,
    max_rt_difference: float = 0.0,
    check_rt: bool = False,
    lysine_rule: int = LYSINE_IGNORE,
) -> List[Tuple[int, int]]:
    """Index pairs into set_a x set_b passing the gates (see enumerate_pairs_numba)."""
    if len(set_a) == 0 or len(set_b) == 0:
        return []
    idx_a, idx_b = enumerate_pairs_numba(
        *proteoform_arrays(set_a),
        *proteoform_arrays(set_b),
        float(max_mass_difference),
        float(max_rt_difference),
        bool(check_rt),
        int(lysine_rule),
    )
    return list(zip(idx_a.tolist(), idx_b.tolist()))


def count_nearby(delta_masses: np.ndarray, window: float) -> np.ndarray:
    """Number of values within ±window/2 of each value (itself included).

    Examples
    --------
    >>> count_nearby(np.array([0.0, 0.005, 1.0]), 0.015)
    array([2, 2, 1])
    """
    delta_masses = np.asarray(delta_masses, dtype=np.float64)
    if len(delta_masses) == 0:
        return np.zeros(0, dtype=np.int64)
    half_width = window / 2.0
    sorted_deltas = np.sort(delta_masses)
    upper = np.searchsorted(sorted_deltas, delta_masses + half_width, side='right')
    lower = np.searchsorted(sorted_deltas, delta_masses - half_width, side='left')
    return (upper - lower).astype(np.int64)


def assign_nearby_counts(relations: Sequence[ProteoformRelation], window: float) -> None:
    """Set nearby_relations_count on every relation of one output set."""
    deltas = np.array([r.delta_mass for r in relations], dtype=np.float64)
    for relation, count in zip(relations, count_nearby(deltas, window)):
        relation.nearby_relations_count = int(count)
