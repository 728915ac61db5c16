"""Tolerance matching of observations against a mass/RT/label anchor.

A candidate belongs to an anchor when three independent windows all accept
it:

- retention time: ``|candidate.rt - anchor.rt| <= rt_tolerance``
- mass: within ``ppm`` of ``anchor.mass + k * MONOISOTOPIC_UNIT_MASS`` for
  any ``k`` in ``[-missed_monos, +missed_monos]`` (an upstream deconvolution
  step may have picked the wrong isotope peak)
- lysine count (NeuCode only): within ``missed_lysines`` of the anchor

Performance
-----------
- Scalar checks: plain Python, for one-off decisions
- Vectorized selection: Numba-compiled, >1M candidates/second

Examples
--------
>>> from proteoformfast.config import ToleranceParams
>>> matcher = ToleranceMatcher(ToleranceParams(mass_tolerance=5.0, missed_monos=2))
>>> anchor = MassAnchor(mass=10000.0, rt=30.0, lysine_count=-1)
>>> matcher.tolerable_mass(10000.0 + 2 * MONOISOTOPIC_UNIT_MASS, anchor.mass)
True
"""

from __future__ import annotations

from typing import NamedTuple, Optional, Sequence

import numpy as np
from numba import njit

from ..config import ToleranceParams
from ..constants import MONOISOTOPIC_UNIT_MASS


class MassAnchor(NamedTuple):
    """Capability shared by everything that can anchor a tolerance search.

    ``rt`` is None for entities without a retention time (theoretical
    proteoforms); ``lysine_count`` is -1 when unknown.
    """
    mass: float
    rt: Optional[float]
    lysine_count: int = -1


@njit
def tolerable_mass_numba(
    candidate_mass: float,
    anchor_mass: float,
    mass_tolerance_ppm: float,
    max_missed_monos: int,
    unit_mass: float,
) -> bool:
    """Check a mass against every missed-monoisotopic shift of the anchor.

    Args:
        candidate_mass: Candidate neutral mass (Da)
        anchor_mass: Anchor neutral mass (Da)
        mass_tolerance_ppm: Relative tolerance applied to each shifted mass
        max_missed_monos: Largest isotope-peak offset to try in either direction
        unit_mass: Spacing between isotope peaks (Da)

    Returns:
        True as soon as one shifted window contains the candidate
    """
    for missed_mono_count in range(-max_missed_monos, max_missed_monos + 1):
        shifted_mass = anchor_mass + missed_mono_count * unit_mass
        tolerance = shifted_mass / 1e6 * mass_tolerance_ppm
        low = shifted_mass - tolerance
        high = shifted_mass + tolerance
        if candidate_mass >= low and candidate_mass <= high:
            return True  # OR across shifts
    return False


@njit
def select_within_tolerance(
    masses: np.ndarray,
    rts: np.ndarray,
    lysine_counts: np.ndarray,
    anchor_mass: float,
    anchor_rt: float,
    anchor_lysine_count: int,
    mass_tolerance_ppm: float,
    rt_tolerance: float,
    max_missed_monos: int,
    max_missed_lysines: int,
    check_lysines: bool,
    unit_mass: float,
) -> np.ndarray:
    """Boolean mask of candidates accepted by all three windows.

    Args:
        masses: Candidate masses (Da)
        rts: Candidate retention times (min)
        lysine_counts: Candidate lysine counts (ignored unless check_lysines)
        anchor_mass: Anchor mass (Da)
        anchor_rt: Anchor retention time (min)
        anchor_lysine_count: Anchor lysine count
        mass_tolerance_ppm: Mass tolerance (ppm)
        rt_tolerance: Retention time tolerance (min)
        max_missed_monos: Missed monoisotopic range
        max_missed_lysines: Missed lysine range
        check_lysines: Whether the label window applies
        unit_mass: Isotope spacing (Da)

    Returns:
        Boolean array, same length as masses
    """
    n = len(masses)
    mask = np.zeros(n, dtype=np.bool_)

    for i in range(n):
        if abs(rts[i] - anchor_rt) > rt_tolerance:
            continue
        if check_lysines and abs(lysine_counts[i] - anchor_lysine_count) > max_missed_lysines:
            continue
        if tolerable_mass_numba(
            masses[i], anchor_mass, mass_tolerance_ppm, max_missed_monos, unit_mass
        ):
            mask[i] = True

    return mask


def _as_anchor(item) -> MassAnchor:
    if isinstance(item, MassAnchor):
        return item
    return item.anchor


class ToleranceMatcher:
    """Pure inclusion test bound to one ToleranceParams snapshot.

    Parameters
    ----------
    params : ToleranceParams
        Frozen tolerance windows; the matcher never reads anything else
    unit_mass : float, default=MONOISOTOPIC_UNIT_MASS
        Isotope spacing used for missed-monoisotopic correction
    """

    def __init__(self, params: ToleranceParams, unit_mass: float = MONOISOTOPIC_UNIT_MASS):
        self.params = params
        self.unit_mass = unit_mass

    def tolerable_rt(self, candidate_rt: float, anchor_rt: float) -> bool:
        return abs(candidate_rt - anchor_rt) <= self.params.retention_time_tolerance

    def tolerable_mass(self, candidate_mass: float, anchor_mass: float) -> bool:
        return bool(tolerable_mass_numba(
            float(candidate_mass),
            float(anchor_mass),
            float(self.params.mass_tolerance),
            int(self.params.missed_monos),
            float(self.unit_mass),
        ))

    def tolerable_lysine_count(self, candidate_lysine_count: int, anchor_lysine_count: int) -> bool:
        """Label window; always True when labeling is disabled."""
        if not self.params.neucode_labeled:
            return True
        return abs(candidate_lysine_count - anchor_lysine_count) <= self.params.missed_lysines

    def includes(self, candidate, anchor) -> bool:
        """Decide whether candidate belongs to anchor.

        Both arguments are MassAnchor values or objects exposing ``.anchor``
        (observations, experimental proteoforms).

        Raises
        ------
        ValueError
            If either side has no retention time
        """
        candidate = _as_anchor(candidate)
        anchor = _as_anchor(anchor)
        if candidate.rt is None or anchor.rt is None:
            raise ValueError("Tolerance matching requires a retention time on both sides")

        return (
            self.tolerable_rt(candidate.rt, anchor.rt)
            and self.tolerable_mass(candidate.mass, anchor.mass)
            and self.tolerable_lysine_count(candidate.lysine_count, anchor.lysine_count)
        )

    def select(
        self,
        masses: np.ndarray,
        rts: np.ndarray,
        lysine_counts: np.ndarray,
        anchor: MassAnchor,
    ) -> np.ndarray:
        """Vectorized form of :meth:`includes` over candidate arrays."""
        if len(masses) == 0:
            return np.zeros(0, dtype=np.bool_)
        return select_within_tolerance(
            np.asarray(masses, dtype=np.float64),
            np.asarray(rts, dtype=np.float64),
            np.asarray(lysine_counts, dtype=np.int64),
            float(anchor.mass),
            float(anchor.rt),
            int(anchor.lysine_count),
            float(self.params.mass_tolerance),
            float(self.params.retention_time_tolerance),
            int(self.params.missed_monos),
            int(self.params.missed_lysines),
            bool(self.params.neucode_labeled),
            float(self.unit_mass),
        )

    def select_observations(self, observations: Sequence, anchor) -> list:
        """Return the observations accepted against anchor, input order kept."""
        if len(observations) == 0:
            return []
        anchor = _as_anchor(anchor)
        masses = np.array([o.mass for o in observations], dtype=np.float64)
        rts = np.array([o.rt for o in observations], dtype=np.float64)
        lysine_counts = np.array([o.lysine_count for o in observations], dtype=np.int64)
        mask = self.select(masses, rts, lysine_counts, anchor)
        return [o for o, keep in zip(observations, mask) if keep]
