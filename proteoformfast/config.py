"""Immutable parameter snapshots for relation building and peak clustering.

Every build reads its parameters from one frozen snapshot, so editing the
configuration while a build is running cannot change its result. Use
``dataclasses.replace`` (or :meth:`CommunityParams.with_changes`) to derive a
new snapshot.

Examples
--------
>>> params = CommunityParams.for_labeling(neucode_labeled=True)
>>> params.ee_max_mass_difference
150.0
>>> wider = params.with_changes(ee_max_mass_difference=200.0)
>>> wider.validate()
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict

from .constants import (
    DEFAULT_EE_MAX_MASS_DIFFERENCE,
    DEFAULT_EE_MAX_MASS_DIFFERENCE_LABELED,
    DEFAULT_EE_MAX_RETENTION_TIME_DIFFERENCE,
    DEFAULT_ET_MAX_MASS_DIFFERENCE,
    DEFAULT_MASS_TOLERANCE,
    DEFAULT_MIN_PEAK_COUNT,
    DEFAULT_MISSED_LYSINES,
    DEFAULT_MISSED_MONOS,
    DEFAULT_NO_MANS_LAND_LOWER_BOUND,
    DEFAULT_NO_MANS_LAND_UPPER_BOUND,
    DEFAULT_PEAK_WIDTH_BASE,
    DEFAULT_RETENTION_TIME_TOLERANCE,
)
from .exceptions import ConfigurationError


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigurationError(message)


@dataclass(frozen=True)
class ToleranceParams:
    """Windows used to decide whether an observation belongs to an anchor.

    Mass tolerance is relative (ppm); retention time is absolute (minutes).
    ``missed_lysines`` only matters when ``neucode_labeled`` is set.
    """

    mass_tolerance: float = DEFAULT_MASS_TOLERANCE  # ppm
    retention_time_tolerance: float = DEFAULT_RETENTION_TIME_TOLERANCE  # min
    missed_monos: int = DEFAULT_MISSED_MONOS
    missed_lysines: int = DEFAULT_MISSED_LYSINES
    neucode_labeled: bool = False

    def validate(self) -> None:
        """Raise ConfigurationError if any window is outside its domain."""
        _require(
            math.isfinite(self.mass_tolerance) and self.mass_tolerance >= 0,
            f"mass_tolerance must be a non-negative ppm value, got {self.mass_tolerance}",
        )
        _require(
            self.retention_time_tolerance >= 0,
            f"retention_time_tolerance must be >= 0, got {self.retention_time_tolerance}",
        )
        _require(
            int(self.missed_monos) == self.missed_monos and self.missed_monos >= 0,
            f"missed_monos must be a non-negative integer, got {self.missed_monos}",
        )
        _require(
            int(self.missed_lysines) == self.missed_lysines and self.missed_lysines >= 0,
            f"missed_lysines must be a non-negative integer, got {self.missed_lysines}",
        )


@dataclass(frozen=True)
class ClusteringParams:
    """Delta-mass histogram parameters.

    The no-man's-land band is expressed as fractions of one Dalton: a delta
    mass whose fractional part falls strictly between the two bounds cannot
    be told apart from noise or an isotope artifact.
    """

    peak_width_base: float = DEFAULT_PEAK_WIDTH_BASE  # Da
    min_peak_count: int = DEFAULT_MIN_PEAK_COUNT
    no_mans_land_lower_bound: float = DEFAULT_NO_MANS_LAND_LOWER_BOUND
    no_mans_land_upper_bound: float = DEFAULT_NO_MANS_LAND_UPPER_BOUND

    def validate(self) -> None:
        """Raise ConfigurationError if any threshold is outside its domain."""
        _require(
            math.isfinite(self.peak_width_base) and self.peak_width_base > 0,
            f"peak_width_base must be > 0 Da, got {self.peak_width_base}",
        )
        _require(
            self.min_peak_count >= 0,
            f"min_peak_count must be >= 0, got {self.min_peak_count}",
        )
        _require(
            0.0 <= self.no_mans_land_lower_bound <= 1.0
            and 0.0 <= self.no_mans_land_upper_bound <= 1.0,
            "no-man's-land bounds must lie in [0, 1], got "
            f"({self.no_mans_land_lower_bound}, {self.no_mans_land_upper_bound})",
        )
        _require(
            self.no_mans_land_lower_bound < self.no_mans_land_upper_bound,
            "no-man's-land lower bound must be below the upper bound, got "
            f"({self.no_mans_land_lower_bound}, {self.no_mans_land_upper_bound})",
        )


@dataclass(frozen=True)
class CommunityParams:
    """Complete parameter snapshot for one community build."""

    tolerance: ToleranceParams = field(default_factory=ToleranceParams)
    clustering: ClusteringParams = field(default_factory=ClusteringParams)

    # Coarse plain-Da gates, distinct from the ppm matching windows
    ee_max_mass_difference: float = DEFAULT_EE_MAX_MASS_DIFFERENCE
    et_max_mass_difference: float = DEFAULT_ET_MAX_MASS_DIFFERENCE
    ee_max_retention_time_difference: float = DEFAULT_EE_MAX_RETENTION_TIME_DIFFERENCE

    @property
    def neucode_labeled(self) -> bool:
        return self.tolerance.neucode_labeled

    @classmethod
    def for_labeling(cls, neucode_labeled: bool, **overrides) -> 'CommunityParams':
        """Create parameters with the EE gate suited to the labeling scheme.

        Args:
            neucode_labeled: Whether observations carry NeuCode lysine counts
            **overrides: Any other CommunityParams field

        Returns:
            CommunityParams with labeling-specific defaults
        """
        if neucode_labeled:
            ee_max = DEFAULT_EE_MAX_MASS_DIFFERENCE_LABELED
        else:
            ee_max = DEFAULT_EE_MAX_MASS_DIFFERENCE
        tolerance = overrides.pop('tolerance', ToleranceParams())
        tolerance = replace(tolerance, neucode_labeled=neucode_labeled)
        overrides.setdefault('ee_max_mass_difference', ee_max)
        return cls(tolerance=tolerance, **overrides)

    def with_changes(self, **changes) -> 'CommunityParams':
        """Return a new snapshot with the given top-level fields replaced."""
        return replace(self, **changes)

    def validate(self) -> None:
        """Validate every nested parameter group.

        Raises
        ------
        ConfigurationError
            If any value is outside its valid domain
        """
        self.tolerance.validate()
        self.clustering.validate()
        for name in (
            'ee_max_mass_difference',
            'et_max_mass_difference',
            'ee_max_retention_time_difference',
        ):
            value = getattr(self, name)
            _require(value >= 0, f"{name} must be >= 0, got {value}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'CommunityParams':
        values = dict(values)
        tolerance = ToleranceParams(**values.pop('tolerance', {}))
        clustering = ClusteringParams(**values.pop('clustering', {}))
        return cls(tolerance=tolerance, clustering=clustering, **values)
