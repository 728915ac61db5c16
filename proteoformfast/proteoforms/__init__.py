"""Proteoform entities: observations, modifications, experimental and theoretical kinds."""

from .aggregation import aggregate_proteoforms
from .experimental import (
    aggregate_components,
    build_experimental_proteoform,
    quantitative_input_files,
    weighted_ratio_and_variance,
)
from .model import ExperimentalEvidence, Proteoform, ProteoformKind, TheoreticalReference
from .modifications import Modification, Ptm, PtmSet, parse_ptm_set
from .observations import Observation, validate_observations
from .theoretical import (
    calculate_proteoform_mass,
    deduplicate_theoreticals,
    theoretical_from_sequence,
)

__all__ = [
    'Observation',
    'validate_observations',
    'Modification',
    'Ptm',
    'PtmSet',
    'parse_ptm_set',
    'ProteoformKind',
    'ExperimentalEvidence',
    'TheoreticalReference',
    'Proteoform',
    'aggregate_components',
    'build_experimental_proteoform',
    'quantitative_input_files',
    'weighted_ratio_and_variance',
    'aggregate_proteoforms',
    'calculate_proteoform_mass',
    'theoretical_from_sequence',
    'deduplicate_theoreticals',
]
