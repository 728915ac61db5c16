"""Construction and quantification of experimental proteoforms.

An experimental proteoform is anchored by a root observation and aggregates
every candidate observation that passes the ToleranceMatcher against that
root. Aggregates are intensity-weighted; each member's mass is first pulled
back onto the root's isotope peak so that missed-monoisotopic members do not
bias the mass.

Examples
--------
>>> from proteoformfast.config import ToleranceParams
>>> pf = build_experimental_proteoform("E1", root, observations, ToleranceParams())
>>> pf.agg_mass, pf.agg_rt, pf.observation_count
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from ..config import ToleranceParams
from ..constants import MONOISOTOPIC_UNIT_MASS, NEUCODE_LYSINE_MASS_SHIFT, QUANT_PSEUDOCOUNT
from ..matching.tolerance import MassAnchor, ToleranceMatcher
from .model import ExperimentalEvidence, Proteoform, ProteoformKind
from .observations import Observation


def aggregate_components(
    components: Sequence[Observation],
    root_mass: float,
    unit_mass: float = MONOISOTOPIC_UNIT_MASS,
) -> Tuple[float, float, float]:
    """Intensity-weighted aggregates of a member set.

    Parameters
    ----------
    components : Sequence[Observation]
        Aggregated observations
    root_mass : float
        Mass of the anchoring observation (Da)
    unit_mass : float
        Isotope spacing used to remove missed-monoisotopic offsets

    Returns
    -------
    agg_intensity : float
        Summed intensity
    agg_rt : float
        Intensity-weighted mean retention time
    agg_mass : float
        Intensity-weighted mean of each member's mass after subtracting
        ``round((mass - root_mass) / unit_mass) * unit_mass``

    Notes
    -----
    Zero total intensity (or no members) gives (0.0, 0.0, 0.0).
    """
    if len(components) == 0:
        return 0.0, 0.0, 0.0

    masses = np.array([c.mass for c in components], dtype=np.float64)
    intensities = np.array([c.intensity for c in components], dtype=np.float64)
    rts = np.array([c.rt for c in components], dtype=np.float64)

    agg_intensity = float(np.sum(intensities))
    if agg_intensity <= 0.0:
        return 0.0, 0.0, 0.0

    weights = intensities / agg_intensity
    isotope_offsets = np.round((masses - root_mass) / unit_mass) * unit_mass

    agg_rt = float(np.sum(rts * weights))
    agg_mass = float(np.sum((masses - isotope_offsets) * weights))

    return agg_intensity, agg_rt, agg_mass


def build_experimental_proteoform(
    accession: str,
    root: Observation,
    candidates: Sequence[Observation],
    params: ToleranceParams,
    quantitative: Sequence[Observation] = (),
    is_target: bool = True,
    unit_mass: float = MONOISOTOPIC_UNIT_MASS,
) -> Proteoform:
    """Aggregate candidates around a root observation.

    Parameters
    ----------
    accession : str
        Identifier for the new proteoform
    root : Observation
        Anchoring observation (usually the most intense one)
    candidates : Sequence[Observation]
        Pool to select members from; the root is normally part of it
    params : ToleranceParams
        Tolerance snapshot
    quantitative : Sequence[Observation], optional
        Observations from quantitative input files. Light members are
        matched at (agg_rt, agg_mass); heavy members, when labeled, at
        (agg_rt, agg_mass + lysine_count * NEUCODE_LYSINE_MASS_SHIFT).
    is_target : bool, default=True
        Target/decoy status
    unit_mass : float
        Isotope spacing for missed-monoisotopic correction

    Returns
    -------
    Proteoform
        Experimental proteoform with ``modified_mass = agg_mass``
    """
    matcher = ToleranceMatcher(params, unit_mass)
    members = matcher.select_observations(candidates, root.anchor)

    agg_intensity, agg_rt, agg_mass = aggregate_components(members, root.mass, unit_mass)
    lysine_count = root.lysine_count if params.neucode_labeled else -1

    light = ()
    heavy = ()
    if len(quantitative) > 0:
        light_anchor = MassAnchor(agg_mass, agg_rt, lysine_count)
        light = tuple(matcher.select_observations(quantitative, light_anchor))
        if params.neucode_labeled:
            heavy_anchor = MassAnchor(
                agg_mass + lysine_count * NEUCODE_LYSINE_MASS_SHIFT, agg_rt, lysine_count
            )
            heavy = tuple(matcher.select_observations(quantitative, heavy_anchor))

    evidence = ExperimentalEvidence(
        root=root,
        aggregated_components=tuple(members),
        light_components=light,
        heavy_components=heavy,
        agg_mass=agg_mass,
        agg_intensity=agg_intensity,
        agg_rt=agg_rt,
    )
    return Proteoform(
        accession=accession,
        kind=ProteoformKind.EXPERIMENTAL,
        modified_mass=agg_mass,
        lysine_count=lysine_count,
        is_decoy=not is_target,
        evidence=evidence,
    )


def quantitative_input_files(proteoform: Proteoform) -> list:
    """Sorted input files that contribute light or heavy components."""
    if not proteoform.is_experimental:
        return []
    evidence = proteoform.evidence
    files = {c.input_file for c in evidence.light_components}
    files.update(c.input_file for c in evidence.heavy_components)
    return sorted(files)


def weighted_ratio_and_variance(
    proteoform: Proteoform,
    input_files: Optional[Iterable[str]] = None,
) -> Tuple[float, float]:
    """Intensity-weighted light/heavy log2 ratio across input files.

    Parameters
    ----------
    proteoform : Proteoform
        Experimental proteoform with light/heavy components
    input_files : Iterable[str], optional
        Quantitative input files to include. Defaults to every file that
        contributes a component.

    Returns
    -------
    weighted_ratio : float
        Sum over files of ``ratio * intensity / total_intensity``
    weighted_variance : float
        Sum over files of ``(intensity / total_intensity) * (ratio - weighted_ratio)**2``

    Notes
    -----
    Per file: ``ratio = log2((light + 0.1) / (heavy + 0.1))`` and
    ``intensity = light + heavy``. The pseudocount keeps files with a
    missing channel finite. This is a simplified estimate: files are
    treated as independent and no small-sample correction is applied.
    Zero total intensity returns (0.0, 0.0).
    """
    if not proteoform.is_experimental:
        return 0.0, 0.0

    if input_files is None:
        input_files = quantitative_input_files(proteoform)
    input_files = list(input_files)
    if not input_files:
        return 0.0, 0.0

    evidence = proteoform.evidence
    ratios = np.zeros(len(input_files), dtype=np.float64)
    intensities = np.zeros(len(input_files), dtype=np.float64)

    for i, input_file in enumerate(input_files):
        light = sum(c.intensity for c in evidence.light_components if c.input_file == input_file)
        heavy = sum(c.intensity for c in evidence.heavy_components if c.input_file == input_file)
        ratios[i] = np.log2((light + QUANT_PSEUDOCOUNT) / (heavy + QUANT_PSEUDOCOUNT))
        intensities[i] = light + heavy

    intensity_sum = float(np.sum(intensities))
    if intensity_sum <= 0.0:
        return 0.0, 0.0

    fractions = intensities / intensity_sum
    weighted_ratio = float(np.sum(ratios * fractions))
    weighted_variance = float(np.sum(fractions * (ratios - weighted_ratio) ** 2))

    return weighted_ratio, weighted_variance
