"""Aggregate an observation pool into experimental proteoforms.

Greedy, intensity-ordered clustering: the most intense unassigned
observation becomes a root, every remaining observation accepted by the
ToleranceMatcher joins it, and those members leave the pool. This repeats
until the pool is empty.

Performance
-----------
- Selection per root is Numba-compiled over the remaining pool
- O(n_roots * n_observations)
"""

import logging
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from ..config import ToleranceParams
from ..constants import MONOISOTOPIC_UNIT_MASS
from ..matching.tolerance import ToleranceMatcher
from .experimental import build_experimental_proteoform
from .model import Proteoform
from .observations import Observation, ObservationLike, validate_observations

logger = logging.getLogger(__name__)


def aggregate_proteoforms(
    observations: Iterable[ObservationLike],
    params: ToleranceParams,
    quantitative: Sequence[ObservationLike] = (),
    accession_prefix: str = "E",
    unit_mass: float = MONOISOTOPIC_UNIT_MASS,
) -> Tuple[List[Proteoform], int]:
    """Build experimental proteoforms from raw observation records.

    Parameters
    ----------
    observations : Iterable[Observation | Mapping]
        Identification observations
    params : ToleranceParams
        Tolerance snapshot (validated here)
    quantitative : Sequence[Observation | Mapping], optional
        Observations from quantitative input files
    accession_prefix : str, default="E"
        Accessions are ``f"{prefix}{n}"`` with n starting at 1
    unit_mass : float
        Isotope spacing for missed-monoisotopic correction

    Returns
    -------
    proteoforms : List[Proteoform]
        Experimental proteoforms, most intense root first
    n_skipped : int
        Malformed records skipped across both pools

    Raises
    ------
    ConfigurationError
        If params are invalid
    """
    params.validate()

    pool, n_skipped = validate_observations(observations)
    quant_pool, n_quant_skipped = validate_observations(quantitative)
    n_skipped += n_quant_skipped

    logger.info(f"Aggregating {len(pool):,} observations into experimental proteoforms...")

    # Most intense first; stable on ties so runs are reproducible
    order = sorted(range(len(pool)), key=lambda i: -pool[i].intensity)
    remaining: List[Observation] = [pool[i] for i in order]

    matcher = ToleranceMatcher(params, unit_mass)
    proteoforms = []

    while remaining:
        root = remaining[0]
        masses = np.array([o.mass for o in remaining], dtype=np.float64)
        rts = np.array([o.rt for o in remaining], dtype=np.float64)
        lysine_counts = np.array([o.lysine_count for o in remaining], dtype=np.int64)

        mask = matcher.select(masses, rts, lysine_counts, root.anchor)
        mask[0] = True  # root always anchors its own proteoform

        members = [o for o, keep in zip(remaining, mask) if keep]
        proteoform = build_experimental_proteoform(
            accession=f"{accession_prefix}{len(proteoforms) + 1}",
            root=root,
            candidates=members,
            params=params,
            quantitative=quant_pool,
            unit_mass=unit_mass,
        )
        proteoforms.append(proteoform)
        remaining = [o for o, keep in zip(remaining, mask) if not keep]

    logger.info(f"✓ Aggregated {len(proteoforms):,} experimental proteoforms")
    if n_skipped:
        logger.info(f"  Skipped records: {n_skipped:,}")

    return proteoforms, n_skipped
