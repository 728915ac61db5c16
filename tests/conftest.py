"""Pytest configuration for ProteoformFast tests.

Common fixtures: parameter snapshots, small observation pools and bare
proteoforms for relation scenarios.
"""

import numpy as np
import pytest

from proteoformfast.config import ClusteringParams, CommunityParams, ToleranceParams
from proteoformfast.constants import MONOISOTOPIC_UNIT_MASS
from proteoformfast.proteoforms import Observation, Proteoform


@pytest.fixture
def tolerance_params():
    """Unlabeled tolerance windows: 5 ppm, 1 min, 2 missed monos."""
    return ToleranceParams(
        mass_tolerance=5.0,
        retention_time_tolerance=1.0,
        missed_monos=2,
        missed_lysines=1,
    )


@pytest.fixture
def labeled_params():
    """NeuCode-labeled community parameters."""
    return CommunityParams.for_labeling(neucode_labeled=True)


@pytest.fixture
def unlabeled_params():
    """Unlabeled community parameters."""
    return CommunityParams.for_labeling(neucode_labeled=False)


@pytest.fixture
def small_clustering():
    """Clustering that accepts peaks of three or more relations."""
    return ClusteringParams(peak_width_base=0.015, min_peak_count=3)


@pytest.fixture
def observation_pool():
    """Two proteoforms' worth of observations, one with a missed mono."""
    return [
        Observation("o1", 10000.00, 1000.0, 30.0),
        Observation("o2", 10000.01, 500.0, 30.4),
        Observation("o3", 10000.0 + MONOISOTOPIC_UNIT_MASS, 250.0, 29.8),
        Observation("o4", 12000.00, 800.0, 45.0),
        Observation("o5", 12000.02, 200.0, 45.5),
    ]


@pytest.fixture
def make_experimental():
    """Factory for bare experimental proteoforms (no observations)."""
    def _make(accession, mass, lysine_count=-1, is_target=True):
        return Proteoform.experimental(accession, mass, lysine_count, is_target)
    return _make


@pytest.fixture
def make_theoretical():
    """Factory for bare theoretical proteoforms."""
    def _make(accession, mass, lysine_count=-1, is_target=True, **fields):
        return Proteoform.theoretical(accession, mass, lysine_count, is_target, **fields)
    return _make


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)
