"""Proteoform relations and delta-mass peaks."""

from .peaks import DeltaMassPeak, count_decoy_relations, find_delta_mass_peaks
from .relation import (
    LYSINE_DIFFERENT,
    LYSINE_EQUAL,
    LYSINE_IGNORE,
    ProteoformRelation,
    RelationType,
    assign_nearby_counts,
    candidate_pairs,
    count_nearby,
    enumerate_pairs_numba,
    make_relation,
    outside_no_mans_land,
)

__all__ = [
    'RelationType',
    'ProteoformRelation',
    'make_relation',
    'outside_no_mans_land',
    'enumerate_pairs_numba',
    'candidate_pairs',
    'count_nearby',
    'assign_nearby_counts',
    'LYSINE_IGNORE',
    'LYSINE_EQUAL',
    'LYSINE_DIFFERENT',
    'DeltaMassPeak',
    'find_delta_mass_peaks',
    'count_decoy_relations',
]
