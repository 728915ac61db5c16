"""ProteoformCommunity: relation building, peak clustering and FDR in one place.

The community owns the proteoform collections and an arena that hands out
proteoform ids (``pid``). Everything derived from them (relations, peaks,
FDR summaries) lives in a :class:`CommunityBuild` that is recomputed as a
whole by :meth:`ProteoformCommunity.rebuild` and swapped in atomically.

Key Features
------------
- relate_ee / relate_unequal_ee_lysine_counts / relate_et / relate_ed
- Full rebuild on any parameter change; superseded builds are discarded
- Relation index pid → relation ids instead of back-references
- Bulk per-peak edits fanned out over a thread pool behind a barrier

Examples
--------
>>> community = ProteoformCommunity(CommunityParams.for_labeling(False))
>>> community.add_observations(observations)
>>> community.add_theoreticals(theoreticals)
>>> community.add_decoy_groups(generate_decoy_groups(theoreticals, n_groups=10))
>>> build = community.rebuild()
>>> [p for p in build.et_peaks if p.peak_accepted]
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np

from ..config import CommunityParams
from ..constants import MONOISOTOPIC_UNIT_MASS
from ..proteoforms.aggregation import aggregate_proteoforms
from ..proteoforms.model import Proteoform
from ..proteoforms.theoretical import deduplicate_theoreticals
from ..relations.peaks import DeltaMassPeak, count_decoy_relations, find_delta_mass_peaks
from ..relations.relation import (
    LYSINE_DIFFERENT,
    LYSINE_EQUAL,
    LYSINE_IGNORE,
    ProteoformRelation,
    RelationType,
    assign_nearby_counts,
    candidate_pairs,
    make_relation,
)
from ..scoring.fdr import DecoyFdrSummary, estimate_decoy_fdr, identified_relation_count
from .batch import run_batch, unique_by_identity

logger = logging.getLogger(__name__)

# Background key for EE peaks in the EE FDR summary
EF_BACKGROUND_KEY = "ef"

PeakRef = Union[int, DeltaMassPeak]


@dataclass(eq=False)
class CommunityBuild:
    """Everything derived from one parameter snapshot.

    Relation ids (``rid``) index ``relations``, which holds the EE, EF, ET
    and ED relations in that order. Peak ids are unique within a build:
    ET peaks first, then EE peaks, then the ED and EF background peaks.
    """

    params: CommunityParams
    generation: int

    ee_relations: List[ProteoformRelation] = field(default_factory=list)
    ef_relations: List[ProteoformRelation] = field(default_factory=list)
    et_relations: List[ProteoformRelation] = field(default_factory=list)
    ed_relations: Dict[str, List[ProteoformRelation]] = field(default_factory=dict)

    et_peaks: List[DeltaMassPeak] = field(default_factory=list)
    ee_peaks: List[DeltaMassPeak] = field(default_factory=list)

    relations: List[ProteoformRelation] = field(default_factory=list, repr=False)
    relation_index: Dict[int, List[int]] = field(default_factory=dict, repr=False)

    et_fdr: DecoyFdrSummary = field(default_factory=DecoyFdrSummary)
    ee_fdr: DecoyFdrSummary = field(default_factory=DecoyFdrSummary)

    @property
    def delta_mass_peaks(self) -> List[DeltaMassPeak]:
        return self.et_peaks + self.ee_peaks

    @property
    def background_peaks(self) -> List[DeltaMassPeak]:
        """Peaks clustered from the ED groups and the EF relations."""
        peaks = []
        for summary in (self.et_fdr, self.ee_fdr):
            for group in sorted(summary.decoy_peaks):
                peaks.extend(summary.decoy_peaks[group])
        return peaks

    def peak(self, peak_id: int) -> DeltaMassPeak:
        """Look up a target or background peak by id."""
        for peak in self.delta_mass_peaks + self.background_peaks:
            if peak.peak_id == peak_id:
                return peak
        raise KeyError(f"No peak with id {peak_id}")

    def refresh_summaries(self) -> None:
        """Recompute target identification totals after acceptance edits."""
        for summary, peaks in ((self.et_fdr, self.et_peaks), (self.ee_fdr, self.ee_peaks)):
            summary.identified_count = identified_relation_count(peaks)
            summary.total_accepted_peaks = int(sum(p.peak_accepted for p in peaks))


class ProteoformCommunity:
    """Collections of proteoforms and the relations between them.

    Parameters
    ----------
    params : CommunityParams, optional
        Initial parameter snapshot (validated). Defaults to unlabeled
        defaults.
    max_workers : int, optional
        Thread-pool size for bulk edits
    """

    def __init__(self, params: Optional[CommunityParams] = None, max_workers: Optional[int] = None):
        if params is None:
            params = CommunityParams()
        params.validate()
        self.params = params
        self.max_workers = max_workers

        self.experimental_proteoforms: List[Proteoform] = []
        self.theoretical_proteoforms: List[Proteoform] = []
        self.decoy_proteoforms: Dict[str, List[Proteoform]] = {}

        self._arena: List[Proteoform] = []
        self._arena_lock = threading.RLock()

        self._lock = threading.Lock()
        self._generation = 0
        self._build: Optional[CommunityBuild] = None
        # Bumped by every change to collections or masses
        self._revision = 0
        self._built_revision = -1

    # ------------------------------------------------------------------
    # Proteoform arena and collections
    # ------------------------------------------------------------------

    def register(self, proteoform: Proteoform) -> int:
        """Assign a pid to a proteoform (idempotent) and return it."""
        with self._arena_lock:
            pid = proteoform.pid
            if 0 <= pid < len(self._arena) and self._arena[pid] is proteoform:
                return pid
            proteoform.pid = len(self._arena)
            self._arena.append(proteoform)
            return proteoform.pid

    def proteoform(self, pid: int) -> Proteoform:
        return self._arena[pid]

    @property
    def n_proteoforms(self) -> int:
        return len(self._arena)

    def add(self, proteoform: Proteoform) -> Proteoform:
        """Register an experimental or target theoretical proteoform.

        Raises
        ------
        ValueError
            For decoy theoreticals, which belong to a decoy group
            (see :meth:`add_decoys`)
        """
        if proteoform.is_experimental:
            self.experimental_proteoforms.append(proteoform)
        elif proteoform.is_target:
            self.theoretical_proteoforms.append(proteoform)
        else:
            raise ValueError(
                f"{proteoform.accession!r} is a decoy; add it with add_decoys(group, ...)"
            )
        self.register(proteoform)
        self._revision += 1
        return proteoform

    def add_decoys(self, group: str, decoys: Iterable[Proteoform]) -> None:
        """Register decoy theoretical proteoforms under a decoy-group key."""
        members = self.decoy_proteoforms.setdefault(group, [])
        for decoy in decoys:
            if not decoy.is_theoretical:
                raise ValueError(f"Decoy {decoy.accession!r} must be a theoretical proteoform")
            members.append(decoy)
            self.register(decoy)
        self._revision += 1

    def add_decoy_groups(self, groups: Mapping[str, Iterable[Proteoform]]) -> None:
        for group, decoys in groups.items():
            self.add_decoys(group, decoys)

    def add_observations(self, observations: Iterable, quantitative: Sequence = ()) -> int:
        """Aggregate raw observations into experimental proteoforms and add them.

        Returns
        -------
        int
            Number of malformed records skipped
        """
        proteoforms, n_skipped = aggregate_proteoforms(
            observations,
            self.params.tolerance,
            quantitative=quantitative,
            accession_prefix="E",
        )
        offset = len(self.experimental_proteoforms)
        for i, proteoform in enumerate(proteoforms):
            if offset:
                proteoform.accession = f"E{offset + i + 1}"
            self.add(proteoform)
        return n_skipped

    def add_theoreticals(self, theoreticals: Iterable[Proteoform]) -> int:
        """Add target theoretical proteoforms, skipping accession clashes.

        Returns
        -------
        int
            Number of entries skipped
        """
        existing = [pf.accession for pf in self.theoretical_proteoforms]
        kept, n_skipped = deduplicate_theoreticals(theoreticals, existing)
        for proteoform in kept:
            self.add(proteoform)
        return n_skipped

    # ------------------------------------------------------------------
    # Relation builders
    # ------------------------------------------------------------------

    def _register_all(self, *collections: Sequence[Proteoform]) -> None:
        for collection in collections:
            for proteoform in collection:
                self.register(proteoform)

    def _finish(self, relations: List[ProteoformRelation], params: CommunityParams) -> List[ProteoformRelation]:
        assign_nearby_counts(relations, params.clustering.peak_width_base)
        return relations

    def _unordered_relations(
        self,
        pairs: Iterable,
        set_a: Sequence[Proteoform],
        set_b: Sequence[Proteoform],
        params: CommunityParams,
        relation_type: RelationType,
    ) -> List[ProteoformRelation]:
        relations = []
        seen = set()
        for i, j in pairs:
            pf_a, pf_b = set_a[i], set_b[j]
            key = (min(pf_a.pid, pf_b.pid), max(pf_a.pid, pf_b.pid))
            if key in seen:
                continue
            seen.add(key)
            # Heavier side is the subject so delta_mass >= 0
            if pf_b.modified_mass > pf_a.modified_mass:
                pf_a, pf_b = pf_b, pf_a
            relations.append(make_relation(relation_type, pf_a, pf_b, params.clustering))
        return relations

    def relate_ee(
        self,
        set_a: Sequence[Proteoform],
        set_b: Sequence[Proteoform],
        params: Optional[CommunityParams] = None,
        relation_type: RelationType = RelationType.EE,
    ) -> List[ProteoformRelation]:
        """Relate experimental proteoforms to each other.

        Every unordered pair of distinct proteoforms (one from each set)
        gives at most one relation. A pair qualifies when
        ``|mass_a - mass_b| <= ee_max_mass_difference``,
        ``|agg_rt_a - agg_rt_b| <= ee_max_retention_time_difference`` and,
        when labeled, the lysine counts are equal. The heavier proteoform
        is the subject, so delta_mass >= 0.

        Parameters
        ----------
        set_a, set_b : Sequence[Proteoform]
            Experimental proteoforms; usually the same collection
        params : CommunityParams, optional
            Snapshot to use; defaults to the community's current parameters
        relation_type : RelationType, default=EE

        Returns
        -------
        List[ProteoformRelation]
        """
        if params is None:
            params = self.params
        self._register_all(set_a, set_b)
        pairs = candidate_pairs(
            set_a,
            set_b,
            params.ee_max_mass_difference,
            params.ee_max_retention_time_difference,
            check_rt=True,
            lysine_rule=LYSINE_EQUAL if params.neucode_labeled else LYSINE_IGNORE,
        )
        relations = self._unordered_relations(pairs, set_a, set_b, params, relation_type)
        return self._finish(relations, params)

    def allowed_ee_relation(
        self,
        pf1: Proteoform,
        pf2: Proteoform,
        params: Optional[CommunityParams] = None,
    ) -> bool:
        """Unequal-label pair check: labels differ, accessions differ, mass gate passes."""
        if params is None:
            params = self.params
        return (
            pf1.lysine_count != pf2.lysine_count
            and pf1.accession != pf2.accession
            and abs(pf1.modified_mass - pf2.modified_mass) <= params.ee_max_mass_difference
        )

    def relate_unequal_ee_lysine_counts(
        self,
        params: Optional[CommunityParams] = None,
        experimentals: Optional[Sequence[Proteoform]] = None,
        match_equal_counts: bool = False,
        seed: int = 0,
    ) -> List[ProteoformRelation]:
        """EF relations: experimental pairs whose lysine counts differ.

        Each unordered pair accepted by :meth:`allowed_ee_relation` gives
        one relation, subject heavier. These relations are a background
        for EE peaks, since a true modification cannot change the number
        of lysines.

        Parameters
        ----------
        params : CommunityParams, optional
            Snapshot to use
        experimentals : Sequence[Proteoform], optional
            Defaults to the community's experimental proteoforms
        match_equal_counts : bool, default=False
            Cap each proteoform's unequal partners at its number of
            equal-label partners, sampled with ``np.random.default_rng(seed)``,
            so the background is size-matched to the EE set
        seed : int, default=0

        Returns
        -------
        List[ProteoformRelation]
        """
        if params is None:
            params = self.params
        if experimentals is None:
            experimentals = self.experimental_proteoforms
        experimentals = list(experimentals)
        self._register_all(experimentals)

        pairs = candidate_pairs(
            experimentals,
            experimentals,
            params.ee_max_mass_difference,
            lysine_rule=LYSINE_DIFFERENT,
        )
        pairs = [
            (i, j) for i, j in pairs
            if self.allowed_ee_relation(experimentals[i], experimentals[j], params)
        ]

        if match_equal_counts:
            equal_pairs = candidate_pairs(
                experimentals,
                experimentals,
                params.ee_max_mass_difference,
                lysine_rule=LYSINE_EQUAL,
            )
            n_equal = np.zeros(len(experimentals), dtype=np.int64)
            for i, j in equal_pairs:
                if experimentals[i].accession != experimentals[j].accession:
                    n_equal[i] += 1

            partners: Dict[int, List[int]] = {}
            for i, j in pairs:
                partners.setdefault(i, []).append(j)

            rng = np.random.default_rng(seed)
            capped = []
            for i in sorted(partners):
                candidates = partners[i]
                if len(candidates) > n_equal[i]:
                    chosen = np.sort(rng.choice(len(candidates), size=int(n_equal[i]), replace=False))
                    candidates = [candidates[c] for c in chosen]
                capped.extend((i, j) for j in candidates)
            pairs = capped

        relations = self._unordered_relations(
            pairs, experimentals, experimentals, params, RelationType.EF
        )
        return self._finish(relations, params)

    def relate_et(
        self,
        experimentals: Sequence[Proteoform],
        theoreticals: Sequence[Proteoform],
        params: Optional[CommunityParams] = None,
        relation_type: RelationType = RelationType.ET,
        decoy_group: Optional[str] = None,
    ) -> List[ProteoformRelation]:
        """Relate experimental to theoretical proteoforms.

        Cross product gated by ``|mass_e - mass_t| <= et_max_mass_difference``
        and, when labeled, equal lysine counts. delta_mass = mass_e - mass_t.
        """
        if params is None:
            params = self.params
        self._register_all(experimentals, theoreticals)
        lysine_rule = LYSINE_EQUAL if params.neucode_labeled else LYSINE_IGNORE

        pairs = candidate_pairs(
            experimentals,
            theoreticals,
            params.et_max_mass_difference,
            lysine_rule=lysine_rule,
        )
        relations = [
            make_relation(
                relation_type,
                experimentals[i],
                theoreticals[j],
                params.clustering,
                decoy_group=decoy_group,
            )
            for i, j in pairs
        ]
        return self._finish(relations, params)

    def relate_ed(
        self,
        params: Optional[CommunityParams] = None,
        experimentals: Optional[Sequence[Proteoform]] = None,
        decoy_groups: Optional[Mapping[str, Sequence[Proteoform]]] = None,
    ) -> Dict[str, List[ProteoformRelation]]:
        """relate_et of all experimentals against each decoy group.

        Returns
        -------
        Dict[str, List[ProteoformRelation]]
            One entry per registered decoy group (possibly an empty list);
            empty only when no groups are registered
        """
        if params is None:
            params = self.params
        if experimentals is None:
            experimentals = self.experimental_proteoforms
        if decoy_groups is None:
            decoy_groups = self.decoy_proteoforms

        return {
            group: self.relate_et(
                experimentals, decoys, params, relation_type=RelationType.ED, decoy_group=group
            )
            for group, decoys in decoy_groups.items()
        }

    # ------------------------------------------------------------------
    # Full rebuild
    # ------------------------------------------------------------------

    def _compute_build(self, params: CommunityParams, generation: int) -> CommunityBuild:
        experimentals = list(self.experimental_proteoforms)
        theoreticals = list(self.theoretical_proteoforms)
        decoy_groups = {group: list(decoys) for group, decoys in self.decoy_proteoforms.items()}

        build = CommunityBuild(params=params, generation=generation)
        build.ee_relations = self.relate_ee(experimentals, experimentals, params)
        build.ef_relations = self.relate_unequal_ee_lysine_counts(params, experimentals)
        build.et_relations = self.relate_et(experimentals, theoreticals, params)
        build.ed_relations = self.relate_ed(params, experimentals, decoy_groups)

        all_relations = build.ee_relations + build.ef_relations + build.et_relations
        for group in build.ed_relations:
            all_relations.extend(build.ed_relations[group])
        for rid, relation in enumerate(all_relations):
            relation.rid = rid
            for pid in set(relation.proteoform_ids):
                build.relation_index.setdefault(pid, []).append(rid)
        build.relations = all_relations

        clustering = params.clustering
        build.et_peaks = find_delta_mass_peaks(build.et_relations, clustering)
        build.ee_peaks = find_delta_mass_peaks(
            build.ee_relations, clustering, first_peak_id=len(build.et_peaks)
        )

        count_decoy_relations(
            build.et_peaks, list(build.ed_relations.values()), clustering.peak_width_base
        )
        count_decoy_relations(build.ee_peaks, [build.ef_relations], clustering.peak_width_base)

        next_peak_id = len(build.et_peaks) + len(build.ee_peaks)
        build.et_fdr = estimate_decoy_fdr(
            build.et_peaks, build.ed_relations, clustering, first_peak_id=next_peak_id
        )
        next_peak_id += sum(len(peaks) for peaks in build.et_fdr.decoy_peaks.values())
        build.ee_fdr = estimate_decoy_fdr(
            build.ee_peaks, {EF_BACKGROUND_KEY: build.ef_relations}, clustering,
            first_peak_id=next_peak_id,
        )
        return build

    def rebuild(self, params: Optional[CommunityParams] = None) -> CommunityBuild:
        """Recompute every relation, peak and FDR summary from scratch.

        The build runs outside the lock and is committed only if no later
        rebuild started in the meantime. Readers see either the previous
        build or the new one, never a partial one. Mass or collection edits
        made while the build runs leave the community stale after the
        commit.

        Parameters
        ----------
        params : CommunityParams, optional
            New parameter snapshot; defaults to the current one

        Returns
        -------
        CommunityBuild
            The computed build (committed unless superseded)

        Raises
        ------
        ConfigurationError
            If params are invalid; nothing is changed
        """
        if params is None:
            params = self.params
        params.validate()

        with self._lock:
            self._generation += 1
            generation = self._generation
            revision = self._revision

        logger.info(
            f"Building relations for {len(self.experimental_proteoforms):,} experimental, "
            f"{len(self.theoretical_proteoforms):,} theoretical proteoforms and "
            f"{len(self.decoy_proteoforms)} decoy groups..."
        )
        build = self._compute_build(params, generation)

        with self._lock:
            if generation != self._generation:
                logger.info(f"Build {generation} superseded by build {self._generation}, discarded")
                return build
            self._build = build
            self.params = params
            self._built_revision = revision

        logger.info(
            f"✓ Build {generation}: {len(build.ee_relations):,} EE, {len(build.ef_relations):,} EF, "
            f"{len(build.et_relations):,} ET relations; {len(build.et_peaks):,} ET and "
            f"{len(build.ee_peaks):,} EE peaks"
        )
        return build

    # ------------------------------------------------------------------
    # Read-only views of the committed build
    # ------------------------------------------------------------------

    @property
    def build(self) -> Optional[CommunityBuild]:
        return self._build

    @property
    def generation(self) -> int:
        return self._build.generation if self._build is not None else 0

    @property
    def is_stale(self) -> bool:
        """True if collections or masses changed since the committed build started."""
        return self._build is None or self._built_revision != self._revision

    def _committed(self) -> CommunityBuild:
        if self._build is None:
            return CommunityBuild(params=self.params, generation=0)
        return self._build

    @property
    def ee_relations(self) -> List[ProteoformRelation]:
        return self._committed().ee_relations

    @property
    def ef_relations(self) -> List[ProteoformRelation]:
        return self._committed().ef_relations

    @property
    def et_relations(self) -> List[ProteoformRelation]:
        return self._committed().et_relations

    @property
    def ed_relations(self) -> Dict[str, List[ProteoformRelation]]:
        return self._committed().ed_relations

    @property
    def et_peaks(self) -> List[DeltaMassPeak]:
        return self._committed().et_peaks

    @property
    def ee_peaks(self) -> List[DeltaMassPeak]:
        return self._committed().ee_peaks

    @property
    def delta_mass_peaks(self) -> List[DeltaMassPeak]:
        return self._committed().delta_mass_peaks

    @property
    def et_fdr(self) -> DecoyFdrSummary:
        return self._committed().et_fdr

    @property
    def ee_fdr(self) -> DecoyFdrSummary:
        return self._committed().ee_fdr

    def relationships(self, proteoform: Proteoform) -> List[ProteoformRelation]:
        """Relations of the committed build that involve a proteoform."""
        build = self._committed()
        return [build.relations[rid] for rid in build.relation_index.get(proteoform.pid, [])]

    def connected_proteoforms(self, proteoform: Proteoform) -> List[Proteoform]:
        """Distinct partner proteoforms over all relations, first-seen order."""
        partners = []
        for relation in self.relationships(proteoform):
            for pid in relation.proteoform_ids:
                if pid != proteoform.pid:
                    partners.append(self._arena[pid])
        return unique_by_identity(partners)

    # ------------------------------------------------------------------
    # User edits
    # ------------------------------------------------------------------

    def _resolve_peak(self, peak: PeakRef) -> DeltaMassPeak:
        if isinstance(peak, DeltaMassPeak):
            return peak
        return self._committed().peak(peak)

    def _peak_experimentals(self, peak: DeltaMassPeak) -> List[Proteoform]:
        proteoforms = []
        for relation in peak.grouped_relations:
            for pid in relation.proteoform_ids:
                proteoform = self._arena[pid]
                if proteoform.is_experimental:
                    proteoforms.append(proteoform)
        return unique_by_identity(proteoforms)

    def set_peak_acceptance(self, peak: PeakRef, accepted: bool) -> None:
        """Override a peak's acceptance; member relations follow."""
        peak = self._resolve_peak(peak)
        with self._lock:
            peak.peak_accepted = bool(accepted)
            for relation in peak.grouped_relations:
                relation.accepted = bool(accepted)
            self._committed().refresh_summaries()

    def set_relation_acceptance(self, relation: ProteoformRelation, accepted: bool) -> None:
        """Override acceptance of a single relation."""
        with self._lock:
            relation.accepted = bool(accepted)
            self._committed().refresh_summaries()

    def set_peak_missed_mono(self, peak: PeakRef, missed_mono: bool) -> int:
        """Set missed_mono on every experimental proteoform of a peak.

        Returns
        -------
        int
            Number of proteoforms updated
        """
        peak = self._resolve_peak(peak)
        missed_mono = bool(missed_mono)

        def _apply(proteoform: Proteoform) -> None:
            proteoform.missed_mono = missed_mono

        with self._lock:
            peak.missed_mono = missed_mono
            proteoforms = self._peak_experimentals(peak)
            run_batch(proteoforms, _apply, self.max_workers)
            self._committed().refresh_summaries()

        logger.info(f"Set missed_mono={missed_mono} on {len(proteoforms):,} proteoforms of peak {peak.peak_id}")
        return len(proteoforms)

    def shift_peak_masses(
        self,
        peak: PeakRef,
        mass_shifter: int,
        unit_mass: float = MONOISOTOPIC_UNIT_MASS,
    ) -> int:
        """Shift experimental proteoforms of a peak by whole isotope units.

        Each experimental proteoform not shifted before gets
        ``mass_shifter * unit_mass`` added to its modified and aggregated
        mass and is flagged ``mass_shifted``. Relations still hold the old
        masses until the next :meth:`rebuild`.

        Returns
        -------
        int
            Number of proteoforms shifted
        """
        peak = self._resolve_peak(peak)
        shift = int(mass_shifter) * unit_mass

        def _apply(proteoform: Proteoform) -> None:
            proteoform.modified_mass += shift
            proteoform.evidence.agg_mass += shift
            proteoform.evidence.mass_shifted = True

        with self._lock:
            peak.mass_shifter = int(mass_shifter)
            proteoforms = [pf for pf in self._peak_experimentals(peak) if not pf.mass_shifted]
            if int(mass_shifter) != 0:
                run_batch(proteoforms, _apply, self.max_workers)
                self._revision += 1
            else:
                proteoforms = []

        logger.info(f"Shifted {len(proteoforms):,} proteoforms of peak {peak.peak_id} by {shift:+.4f} Da")
        return len(proteoforms)
