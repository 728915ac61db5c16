"""Tolerance matching of observations against mass/RT/label anchors."""

from .tolerance import (
    MassAnchor,
    ToleranceMatcher,
    select_within_tolerance,
    tolerable_mass_numba,
)

__all__ = [
    'MassAnchor',
    'ToleranceMatcher',
    'select_within_tolerance',
    'tolerable_mass_numba',
]
