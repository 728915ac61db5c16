"""HDF5 persistence of a proteoform community.

Only inputs are stored: observations, experimental and theoretical
proteoforms, decoy groups and the parameter snapshot. Relations, peaks and
FDR summaries are derived data and are rebuilt after loading.

File layout
-----------
::

    /                     attrs: format_version, params (JSON)
    /observations         observation_id, mass, intensity, rt, lysine_count, input_file
    /experimental         per-proteoform columns + CSR index arrays into /observations
    /theoretical          target theoretical proteoforms
    /decoys/<i>           one group per decoy database, keys in /decoys/keys

Variable-length lists (components, PTMs) are stored CSR-style as an
``*_offsets`` array of length n+1 plus a flat value array.

Examples
--------
>>> save_community(community, "community.hdf")
>>> restored = load_community("community.hdf")
>>> restored.rebuild()
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Sequence, Union

import h5py
import numpy as np

from ..community.batch import unique_by_identity
from ..community.community import ProteoformCommunity
from ..config import CommunityParams
from ..proteoforms.model import ExperimentalEvidence, Proteoform, ProteoformKind, TheoreticalReference
from ..proteoforms.modifications import Modification, Ptm, PtmSet
from ..proteoforms.observations import Observation

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

PathLike = Union[str, Path]


def _write_strings(group: h5py.Group, name: str, values: Sequence[str]) -> None:
    data = np.array(["" if v is None else str(v) for v in values], dtype=object)
    group.create_dataset(name, data=data, dtype=h5py.string_dtype())


def _read_strings(group: h5py.Group, name: str) -> List[str]:
    return [str(v) for v in group[name].asstr()[()]]


def _optional(value: str):
    return value if value else None


def _write_csr(group: h5py.Group, name: str, rows: Sequence[Sequence[int]]) -> None:
    offsets = np.zeros(len(rows) + 1, dtype=np.int64)
    offsets[1:] = np.cumsum([len(r) for r in rows])
    values = np.array([v for r in rows for v in r], dtype=np.int64)
    group.create_dataset(f"{name}_offsets", data=offsets)
    group.create_dataset(f"{name}_idx", data=values)


def _read_csr(group: h5py.Group, name: str) -> List[np.ndarray]:
    offsets = group[f"{name}_offsets"][:]
    values = group[f"{name}_idx"][:]
    return [values[offsets[i]:offsets[i + 1]] for i in range(len(offsets) - 1)]


# ----------------------------------------------------------------------
# Writing
# ----------------------------------------------------------------------

def _write_observations(group: h5py.Group, observations: Sequence[Observation]) -> None:
    _write_strings(group, "observation_id", [o.observation_id for o in observations])
    group.create_dataset("mass", data=np.array([o.mass for o in observations], dtype=np.float64))
    group.create_dataset("intensity", data=np.array([o.intensity for o in observations], dtype=np.float64))
    group.create_dataset("rt", data=np.array([o.rt for o in observations], dtype=np.float64))
    group.create_dataset("lysine_count", data=np.array([o.lysine_count for o in observations], dtype=np.int64))
    _write_strings(group, "input_file", [o.input_file for o in observations])


def _write_experimentals(
    group: h5py.Group,
    proteoforms: Sequence[Proteoform],
    observation_index: Dict[int, int],
) -> None:
    evidences = [pf.evidence for pf in proteoforms]

    _write_strings(group, "accession", [pf.accession for pf in proteoforms])
    group.create_dataset("modified_mass", data=np.array([pf.modified_mass for pf in proteoforms], dtype=np.float64))
    group.create_dataset("lysine_count", data=np.array([pf.lysine_count for pf in proteoforms], dtype=np.int64))
    group.create_dataset("is_decoy", data=np.array([pf.is_decoy for pf in proteoforms], dtype=np.bool_))

    group.create_dataset("agg_mass", data=np.array([e.agg_mass for e in evidences], dtype=np.float64))
    group.create_dataset("agg_intensity", data=np.array([e.agg_intensity for e in evidences], dtype=np.float64))
    group.create_dataset("agg_rt", data=np.array([e.agg_rt for e in evidences], dtype=np.float64))
    group.create_dataset("missed_mono", data=np.array([e.missed_mono for e in evidences], dtype=np.bool_))
    group.create_dataset("mass_shifted", data=np.array([e.mass_shifted for e in evidences], dtype=np.bool_))

    roots = [observation_index[id(e.root)] if e.root is not None else -1 for e in evidences]
    group.create_dataset("root_idx", data=np.array(roots, dtype=np.int64))

    for name in ("aggregated_components", "light_components", "heavy_components"):
        rows = [[observation_index[id(o)] for o in getattr(e, name)] for e in evidences]
        _write_csr(group, name, rows)


def _write_theoreticals(group: h5py.Group, proteoforms: Sequence[Proteoform]) -> None:
    refs = [pf.reference for pf in proteoforms]

    _write_strings(group, "accession", [pf.accession for pf in proteoforms])
    group.create_dataset("modified_mass", data=np.array([pf.modified_mass for pf in proteoforms], dtype=np.float64))
    group.create_dataset("lysine_count", data=np.array([pf.lysine_count for pf in proteoforms], dtype=np.int64))
    group.create_dataset("is_decoy", data=np.array([pf.is_decoy for pf in proteoforms], dtype=np.bool_))

    _write_strings(group, "name", [r.name for r in refs])
    _write_strings(group, "description", [r.description for r in refs])
    _write_strings(group, "fragment", [r.fragment for r in refs])
    _write_strings(group, "sequence", [r.sequence for r in refs])
    group.create_dataset("begin", data=np.array([r.begin for r in refs], dtype=np.int64))
    group.create_dataset("end", data=np.array([r.end for r in refs], dtype=np.int64))
    group.create_dataset("unmodified_mass", data=np.array([r.unmodified_mass for r in refs], dtype=np.float64))
    group.create_dataset("psm_count_bu", data=np.array([r.psm_count_bu for r in refs], dtype=np.int64))
    group.create_dataset("psm_count_td", data=np.array([r.psm_count_td for r in refs], dtype=np.int64))

    # PTMs, flattened
    ptms = [p for r in refs for p in r.ptm_set]
    offsets = np.zeros(len(refs) + 1, dtype=np.int64)
    offsets[1:] = np.cumsum([len(r.ptm_set) for r in refs])
    group.create_dataset("ptm_offsets", data=offsets)
    group.create_dataset("ptm_position", data=np.array([p.position for p in ptms], dtype=np.int64))
    group.create_dataset("ptm_mass", data=np.array([p.modification.mass for p in ptms], dtype=np.float64))
    _write_strings(group, "ptm_name", [p.modification.name for p in ptms])
    _write_strings(group, "ptm_description", [p.modification.description for p in ptms])


def save_community(community: ProteoformCommunity, path: PathLike) -> None:
    """Write a community's inputs and parameters to an HDF5 file.

    Parameters
    ----------
    community : ProteoformCommunity
        Community to save
    path : str or Path
        Output file (overwritten)
    """
    path = Path(path)
    experimentals = community.experimental_proteoforms

    observations = []
    for pf in experimentals:
        evidence = pf.evidence
        if evidence.root is not None:
            observations.append(evidence.root)
        observations.extend(evidence.aggregated_components)
        observations.extend(evidence.light_components)
        observations.extend(evidence.heavy_components)
    observations = unique_by_identity(observations)
    observation_index = {id(o): i for i, o in enumerate(observations)}

    with h5py.File(path, 'w') as hdf:
        hdf.attrs['format_version'] = FORMAT_VERSION
        hdf.attrs['params'] = json.dumps(community.params.to_dict())

        _write_observations(hdf.create_group("observations"), observations)
        _write_experimentals(hdf.create_group("experimental"), experimentals, observation_index)
        _write_theoreticals(hdf.create_group("theoretical"), community.theoretical_proteoforms)

        decoys = hdf.create_group("decoys")
        keys = list(community.decoy_proteoforms)
        _write_strings(decoys, "keys", keys)
        for i, key in enumerate(keys):
            _write_theoreticals(decoys.create_group(str(i)), community.decoy_proteoforms[key])

    logger.info(
        f"✓ Saved {len(experimentals):,} experimental, "
        f"{len(community.theoretical_proteoforms):,} theoretical proteoforms and "
        f"{len(keys)} decoy groups to {path}"
    )


# ----------------------------------------------------------------------
# Reading
# ----------------------------------------------------------------------

def _read_observations(group: h5py.Group) -> List[Observation]:
    ids = _read_strings(group, "observation_id")
    files = _read_strings(group, "input_file")
    masses = group["mass"][:]
    intensities = group["intensity"][:]
    rts = group["rt"][:]
    lysines = group["lysine_count"][:]
    return [
        Observation(
            observation_id=ids[i],
            mass=float(masses[i]),
            intensity=float(intensities[i]),
            rt=float(rts[i]),
            lysine_count=int(lysines[i]),
            input_file=files[i],
        )
        for i in range(len(ids))
    ]


def _read_experimentals(group: h5py.Group, observations: List[Observation]) -> List[Proteoform]:
    accessions = _read_strings(group, "accession")
    modified_mass = group["modified_mass"][:]
    lysine_count = group["lysine_count"][:]
    is_decoy = group["is_decoy"][:]
    agg_mass = group["agg_mass"][:]
    agg_intensity = group["agg_intensity"][:]
    agg_rt = group["agg_rt"][:]
    missed_mono = group["missed_mono"][:]
    mass_shifted = group["mass_shifted"][:]
    roots = group["root_idx"][:]
    aggregated = _read_csr(group, "aggregated_components")
    light = _read_csr(group, "light_components")
    heavy = _read_csr(group, "heavy_components")

    proteoforms = []
    for i, accession in enumerate(accessions):
        evidence = ExperimentalEvidence(
            root=observations[roots[i]] if roots[i] >= 0 else None,
            aggregated_components=tuple(observations[j] for j in aggregated[i]),
            light_components=tuple(observations[j] for j in light[i]),
            heavy_components=tuple(observations[j] for j in heavy[i]),
            agg_mass=float(agg_mass[i]),
            agg_intensity=float(agg_intensity[i]),
            agg_rt=float(agg_rt[i]),
            missed_mono=bool(missed_mono[i]),
            mass_shifted=bool(mass_shifted[i]),
        )
        proteoforms.append(Proteoform(
            accession=accession,
            kind=ProteoformKind.EXPERIMENTAL,
            modified_mass=float(modified_mass[i]),
            lysine_count=int(lysine_count[i]),
            is_decoy=bool(is_decoy[i]),
            evidence=evidence,
        ))
    return proteoforms


def _read_theoreticals(group: h5py.Group) -> List[Proteoform]:
    accessions = _read_strings(group, "accession")
    names = _read_strings(group, "name")
    descriptions = _read_strings(group, "description")
    fragments = _read_strings(group, "fragment")
    sequences = _read_strings(group, "sequence")
    modified_mass = group["modified_mass"][:]
    lysine_count = group["lysine_count"][:]
    is_decoy = group["is_decoy"][:]
    begin = group["begin"][:]
    end = group["end"][:]
    unmodified_mass = group["unmodified_mass"][:]
    psm_count_bu = group["psm_count_bu"][:]
    psm_count_td = group["psm_count_td"][:]

    ptm_offsets = group["ptm_offsets"][:]
    ptm_position = group["ptm_position"][:]
    ptm_mass = group["ptm_mass"][:]
    ptm_name = _read_strings(group, "ptm_name")
    ptm_description = _read_strings(group, "ptm_description")

    proteoforms = []
    for i, accession in enumerate(accessions):
        ptm_set = PtmSet(
            Ptm(
                int(ptm_position[k]),
                Modification(ptm_name[k], float(ptm_mass[k]), ptm_description[k]),
            )
            for k in range(ptm_offsets[i], ptm_offsets[i + 1])
        )
        reference = TheoreticalReference(
            name=_optional(names[i]),
            description=_optional(descriptions[i]),
            fragment=_optional(fragments[i]),
            begin=int(begin[i]),
            end=int(end[i]),
            sequence=sequences[i],
            unmodified_mass=float(unmodified_mass[i]),
            ptm_set=ptm_set,
            psm_count_bu=int(psm_count_bu[i]),
            psm_count_td=int(psm_count_td[i]),
        )
        proteoforms.append(Proteoform(
            accession=accession,
            kind=ProteoformKind.THEORETICAL,
            modified_mass=float(modified_mass[i]),
            lysine_count=int(lysine_count[i]),
            is_decoy=bool(is_decoy[i]),
            reference=reference,
        ))
    return proteoforms


def load_community(path: PathLike, max_workers=None) -> ProteoformCommunity:
    """Read a community written by :func:`save_community`.

    The returned community has no build; call ``rebuild()`` to derive
    relations, peaks and FDR summaries. Empty name/description/fragment
    strings are read back as None.

    Raises
    ------
    ValueError
        If the file was written with an unsupported format version
    """
    path = Path(path)
    with h5py.File(path, 'r') as hdf:
        version = int(hdf.attrs['format_version'])
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported community file version {version} in {path}")

        params = CommunityParams.from_dict(json.loads(hdf.attrs['params']))
        observations = _read_observations(hdf["observations"])
        experimentals = _read_experimentals(hdf["experimental"], observations)
        theoreticals = _read_theoreticals(hdf["theoretical"])

        decoys = hdf["decoys"]
        decoy_groups = {
            key: _read_theoreticals(decoys[str(i)])
            for i, key in enumerate(_read_strings(decoys, "keys"))
        }

    community = ProteoformCommunity(params, max_workers=max_workers)
    for proteoform in experimentals + theoreticals:
        community.add(proteoform)
    community.add_decoy_groups(decoy_groups)

    logger.info(
        f"✓ Loaded {len(experimentals):,} experimental, {len(theoreticals):,} theoretical "
        f"proteoforms and {len(decoy_groups)} decoy groups from {path}"
    )
    return community
